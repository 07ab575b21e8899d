from near_workspaces.runtime.account import Account, AccountBalance
from near_workspaces.runtime.container import (
    AccountArgs,
    CreateRunnerFn,
    RunnerFn,
    SandboxContainer,
    TestnetContainer,
    WorkspaceContainer,
)
from near_workspaces.runtime.rpc import JsonRpcProvider, RpcRequest
from near_workspaces.runtime.runtime import Runtime
from near_workspaces.runtime.server import SandboxServer

__all__ = [
    "Account",
    "AccountArgs",
    "AccountBalance",
    "CreateRunnerFn",
    "JsonRpcProvider",
    "RpcRequest",
    "RunnerFn",
    "Runtime",
    "SandboxContainer",
    "SandboxServer",
    "TestnetContainer",
    "WorkspaceContainer",
]
