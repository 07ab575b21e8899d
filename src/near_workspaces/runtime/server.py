"""
本地沙箱进程管理
"""

import asyncio
import os
import shutil
import socket
import subprocess
import time
from pathlib import Path
from typing import List, Optional

import aiohttp
import psutil

from near_workspaces.config import Config
from near_workspaces.errors import RpcError, SandboxStartError
from near_workspaces.runtime.rpc import JsonRpcProvider
from near_workspaces.settings import get_settings
from near_workspaces.utils.loggers import get_logger

logger = get_logger(__name__)

LOG_FILE_NAME = "sandbox.log"


def get_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for an unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def rpc_addr_for_port(port: int) -> str:
    return f"http://127.0.0.1:{port}"


def copy_home(src: str, dst: str) -> None:
    """
    复制沙箱 home 目录, 克隆从该副本启动

    Args:
        src: 参考 home 目录
        dst: 目标目录, 已存在时内容会被覆盖
    """
    logger.debug(f"Copying sandbox home {src} -> {dst}")
    shutil.copytree(
        src,
        dst,
        dirs_exist_ok=True,
        ignore=shutil.ignore_patterns(LOG_FILE_NAME),
    )


class SandboxServer:
    """
    本地沙箱实例, 封装单个 near-sandbox 进程的生命周期
    """

    def __init__(self, config: Config):
        if not config.home_dir:
            raise SandboxStartError("Sandbox home directory is not configured")
        self.config = config
        self.settings = get_settings()
        self.home_dir = config.home_dir
        self.port: int = config.port or get_free_port()
        self.net_port: Optional[int] = None
        self.process: Optional[subprocess.Popen] = None
        self._log_file = None

    def __repr__(self) -> str:
        return f"SandboxServer(home_dir='{self.home_dir}', port={self.port})"

    @property
    def rpc_addr(self) -> str:
        return rpc_addr_for_port(self.port)

    @property
    def log_path(self) -> Path:
        return Path(self.home_dir) / LOG_FILE_NAME

    def _binary(self) -> str:
        binary = self.settings.NEAR_SANDBOX_BIN_PATH
        resolved = shutil.which(binary)
        if resolved is None:
            raise SandboxStartError(
                f"near-sandbox binary not found: {binary}",
                detail="install near-sandbox or set NEAR_SANDBOX_BIN_PATH",
            )
        return resolved

    def build_init_command(self) -> List[str]:
        return [self._binary(), "--home", self.home_dir, "init"]

    def build_run_command(self) -> List[str]:
        if self.net_port is None:
            self.net_port = get_free_port()
        return [
            self._binary(),
            "--home",
            self.home_dir,
            "run",
            "--rpc-addr",
            f"127.0.0.1:{self.port}",
            "--network-addr",
            f"127.0.0.1:{self.net_port}",
        ]

    async def init(self) -> None:
        """
        初始化 home 目录 (创世配置和验证者密钥)
        """
        cmd = self.build_init_command()
        logger.debug(f"Initializing sandbox home: {' '.join(cmd)}")
        Path(self.home_dir).mkdir(parents=True, exist_ok=True)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            lambda: subprocess.run(cmd, capture_output=True, text=True),
        )
        if result.returncode != 0:
            raise SandboxStartError(
                f"near-sandbox init failed, return code: {result.returncode}",
                detail=result.stderr,
                home_dir=self.home_dir,
            )

    async def start(self) -> None:
        """
        启动沙箱进程并等待 RPC 就绪
        """
        cmd = self.build_run_command()
        logger.info(f"Starting sandbox on {self.rpc_addr} (home={self.home_dir})")
        logger.debug(" ".join(cmd))

        self._log_file = open(self.log_path, "ab")
        loop = asyncio.get_running_loop()

        def _create_process():
            return subprocess.Popen(
                cmd,
                stdout=self._log_file,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )

        try:
            self.process = await loop.run_in_executor(None, _create_process)
        except OSError as e:
            self._close_log()
            raise SandboxStartError(f"Failed to spawn near-sandbox: {e}") from e

        try:
            await self._wait_for_ready(self.settings.NEAR_SANDBOX_READY_TIMEOUT)
        except BaseException:
            await self.terminate()
            raise

    def _tail_log(self, limit: int = 2000) -> str:
        try:
            return self.log_path.read_text(errors="replace")[-limit:]
        except OSError:
            return ""

    async def _wait_for_ready(self, timeout: float) -> None:
        """
        轮询 RPC status 直到成功
        """
        rpc = JsonRpcProvider(self.rpc_addr, timeout=2)
        deadline = time.time() + timeout

        while time.time() < deadline:
            if self.process.poll() is not None:
                raise SandboxStartError(
                    f"沙箱进程退出，返回码: {self.process.returncode}",
                    detail=self._tail_log(),
                    home_dir=self.home_dir,
                )
            try:
                await rpc.status()
                logger.debug(f"Sandbox ready on {self.rpc_addr}")
                return
            except (RpcError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.debug(f"Sandbox not ready yet: {e!r}")
            await asyncio.sleep(0.2)

        raise SandboxStartError(
            f"等待沙箱就绪超时 ({timeout}秒)",
            detail=self._tail_log(),
            rpc_addr=self.rpc_addr,
        )

    def is_alive(self) -> bool:
        return self.process is not None and self.process.poll() is None

    async def terminate(self, timeout: float = 5.0) -> None:
        """
        终止沙箱进程及其子进程
        """
        if not self.process:
            self._close_log()
            return

        pid = self.process.pid
        logger.debug(f"Terminating sandbox pid={pid}")
        loop = asyncio.get_running_loop()
        try:
            parent = psutil.Process(pid)
            procs = parent.children(recursive=True) + [parent]
            for proc in procs:
                try:
                    proc.terminate()
                except psutil.NoSuchProcess:
                    continue
            _, alive = await loop.run_in_executor(
                None, lambda: psutil.wait_procs(procs, timeout=timeout)
            )
            for proc in alive:
                logger.warning(f"Sandbox process {proc.pid} ignored SIGTERM, killing")
                try:
                    proc.kill()
                except psutil.NoSuchProcess:
                    continue
        except psutil.NoSuchProcess:
            pass
        finally:
            # 回收进程, 避免僵尸进程
            try:
                await loop.run_in_executor(None, lambda: self.process.wait(timeout=2))
            except subprocess.TimeoutExpired:
                logger.warning(f"Sandbox process {pid} was not reaped")
            self.process = None
            self._close_log()

    def _close_log(self) -> None:
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None
