"""
near-workspaces: write integration tests for smart contracts once, run them
against an isolated local sandbox or the shared testnet.
"""

__version__ = "0.1.0"

from near_workspaces.config import Config
from near_workspaces.errors import (
    InvalidArgumentsError,
    InvalidNetworkError,
    RpcError,
    SandboxStartError,
    WorkspaceError,
)
from near_workspaces.runtime import Account, Runtime, WorkspaceContainer
from near_workspaces.workspace import Runner, Workspace

__all__ = [
    "Account",
    "Config",
    "InvalidArgumentsError",
    "InvalidNetworkError",
    "RpcError",
    "Runner",
    "Runtime",
    "SandboxStartError",
    "Workspace",
    "WorkspaceContainer",
    "WorkspaceError",
]
