"""
Workspace containers: the network a workspace and each of its clones run against
"""

import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

from near_workspaces.config import Config, default_config
from near_workspaces.errors import WorkspaceError
from near_workspaces.runtime.account import Account
from near_workspaces.runtime.rpc import JsonRpcProvider
from near_workspaces.runtime.runtime import Runtime
from near_workspaces.runtime.server import (
    SandboxServer,
    copy_home,
    get_free_port,
    rpc_addr_for_port,
)
from near_workspaces.settings import get_settings
from near_workspaces.utils.loggers import get_logger

logger = get_logger(__name__)

AccountArgs = Dict[str, Account]
CreateRunnerFn = Callable[[Runtime], Awaitable[Optional[AccountArgs]]]
RunnerFn = Callable[[AccountArgs, Runtime], Awaitable[Any]]


def make_home_dir() -> str:
    return tempfile.mkdtemp(
        prefix="sandbox-", dir=get_settings().NEAR_WORKSPACES_TMP_DIR or None
    )


class WorkspaceContainer(ABC):
    """
    Base class of network containers. ``create`` builds the reference
    container and runs the init function once; ``create_from`` derives a
    fresh container with the same initial state; ``clone`` runs a callback
    in a derived container and tears it down.
    """

    network: str = ""

    def __init__(
        self,
        config: Config,
        init_fn: Optional[CreateRunnerFn] = None,
        account_ids: Optional[Dict[str, str]] = None,
    ):
        self.config = config
        self.init_fn = init_fn
        self.account_ids: Dict[str, str] = dict(account_ids or {})
        self.runtime: Optional[Runtime] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(network='{self.network}', rpc_addr='{self.config.rpc_addr}')"

    @staticmethod
    async def create(
        config: Config, fn: Optional[CreateRunnerFn] = None
    ) -> "WorkspaceContainer":
        container_class = CONTAINER_CLASSES.get(config.network)
        if container_class is None:
            raise WorkspaceError(
                f"Unsupported network: {config.network}",
                detail="use 'testnet' or 'sandbox'",
            )
        container = container_class(container_class.resolve_config(config), fn)
        try:
            await container.initialize()
        except BaseException:
            await container.cleanup()
            raise
        return container

    @classmethod
    def resolve_config(cls, config: Config) -> Config:
        return default_config(cls.network).merge(config)

    def _bind_runtime(self) -> Runtime:
        runtime = Runtime(self.config, JsonRpcProvider(self.config.rpc_addr))
        runtime.accounts = {
            name: runtime.get_account(account_id)
            for name, account_id in self.account_ids.items()
        }
        self.runtime = runtime
        return runtime

    async def _run_init_fn(self) -> None:
        runtime = self._bind_runtime()
        if self.init_fn is None:
            return
        returned = await self.init_fn(runtime) or {}
        for name, account in returned.items():
            if not isinstance(account, Account):
                raise WorkspaceError(
                    "Init function must return a mapping of accounts",
                    detail=f"{name}={account!r}",
                )
            self.account_ids[name] = account.account_id
        runtime.accounts = {
            name: runtime.get_account(account_id)
            for name, account_id in self.account_ids.items()
        }

    def account_args(self) -> AccountArgs:
        if self.runtime is None:
            raise WorkspaceError("Container is not running", network=self.network)
        args: AccountArgs = {}
        if self.config.root_account:
            args["root"] = self.runtime.root
        args.update(self.runtime.accounts)
        return args

    async def clone(self, fn: RunnerFn) -> None:
        """Run ``fn`` with this container's accounts, then tear it down."""
        try:
            await fn(self.account_args(), self.runtime)
        finally:
            await self.tear_down()

    @abstractmethod
    async def initialize(self) -> None:
        """Bring up the reference state and run the init function."""

    @abstractmethod
    async def create_from(self) -> "WorkspaceContainer":
        """Derive a running container that starts from this one's state."""

    @abstractmethod
    async def tear_down(self) -> None:
        """Release whatever a derived container holds."""

    async def cleanup(self) -> None:
        """Release the reference state."""


class SandboxContainer(WorkspaceContainer):
    network = "sandbox"
    server_class = SandboxServer

    def __init__(
        self,
        config: Config,
        init_fn: Optional[CreateRunnerFn] = None,
        account_ids: Optional[Dict[str, str]] = None,
    ):
        super().__init__(config, init_fn, account_ids)
        self.server: Optional[SandboxServer] = None

    @classmethod
    def resolve_config(cls, config: Config) -> Config:
        resolved = super().resolve_config(config)
        if not resolved.home_dir:
            resolved.home_dir = make_home_dir()
            if config.rm is None:
                resolved.rm = True
        if not resolved.port:
            resolved.port = get_free_port()
        if not resolved.rpc_addr:
            resolved.rpc_addr = rpc_addr_for_port(resolved.port)
        return resolved

    async def initialize(self) -> None:
        self.server = self.server_class(self.config)
        if self.config.init:
            await self.server.init()
        await self.server.start()
        try:
            await self._run_init_fn()
        finally:
            # 保留数据, 克隆从该目录复制
            await self.server.terminate()
            self.server = None
        logger.info(
            f"Sandbox reference state ready in {self.config.home_dir} "
            f"with accounts {sorted(self.account_ids)}"
        )

    async def create_from(self) -> "SandboxContainer":
        home_dir = make_home_dir()
        copy_home(self.config.home_dir, home_dir)
        port = get_free_port()
        config = self.config.merge(
            {
                "home_dir": home_dir,
                "port": port,
                "rpc_addr": rpc_addr_for_port(port),
                "init": False,
                "rm": True,
                "ref_dir": self.config.home_dir,
            }
        )
        container = self.__class__(config, self.init_fn, self.account_ids)
        try:
            await container.start()
        except BaseException:
            await container.tear_down()
            raise
        return container

    async def start(self) -> None:
        self.server = self.server_class(self.config)
        await self.server.start()
        self._bind_runtime()

    async def tear_down(self) -> None:
        if self.server is not None:
            await self.server.terminate()
            self.server = None
        if self.config.rm:
            logger.debug(f"Removing sandbox home {self.config.home_dir}")
            shutil.rmtree(self.config.home_dir, ignore_errors=True)

    async def cleanup(self) -> None:
        await self.tear_down()


class TestnetContainer(WorkspaceContainer):
    """
    All clones share one remote network, so each clone provisions its own
    accounts by running the init function again.
    """

    __test__ = False
    network = "testnet"

    async def initialize(self) -> None:
        await self._run_init_fn()

    async def create_from(self) -> "TestnetContainer":
        container = self.__class__(self.config, self.init_fn)
        await container.initialize()
        return container

    async def tear_down(self) -> None:
        logger.debug("Testnet container torn down, remote state is kept")


CONTAINER_CLASSES = {
    SandboxContainer.network: SandboxContainer,
    TestnetContainer.network: TestnetContainer,
}
