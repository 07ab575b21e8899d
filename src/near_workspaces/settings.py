# -*- coding: utf-8 -*-

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # 日志配置
    log_level: str = "INFO"

    # Sandbox binary, resolved on PATH when not absolute
    NEAR_SANDBOX_BIN_PATH: str = "near-sandbox"
    NEAR_SANDBOX_READY_TIMEOUT: float = 30.0

    # Shared remote network
    NEAR_TESTNET_RPC_URL: str = "https://rpc.testnet.near.org"

    # Temporary sandbox home directories are created below this directory
    NEAR_WORKSPACES_TMP_DIR: str = ""

    NEAR_WORKSPACES_RPC_TIMEOUT: int = 30


_SETTINGS = Settings()


def get_settings():
    return _SETTINGS
