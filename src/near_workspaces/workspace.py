"""
Public entry point: create a workspace with ``Workspace.init`` and run code in
isolated copies of it with ``Workspace.clone``.

Example::

    async def setup(runtime):
        return {"contract": runtime.get_account("status-message.test.near")}

    workspace = Workspace.init(setup)

    async def test_status(accounts, runtime):
        assert await accounts["contract"].view("get_status", {"account_id": "alice"}) is None

    await workspace.clone(test_status)

In sandbox mode every ``clone`` starts a new local node from a copy of the
state built by the init function and throws it away afterwards. In testnet
mode all clones share the remote network and the init function runs again
for each clone.
"""

import asyncio
import os
from typing import Any, Awaitable, Callable, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from near_workspaces.config import Config, Network
from near_workspaces.errors import InvalidArgumentsError, InvalidNetworkError
from near_workspaces.runtime.container import (
    CreateRunnerFn,
    RunnerFn,
    WorkspaceContainer,
)
from near_workspaces.utils.loggers import get_logger

logger = get_logger(__name__)

NETWORK_ENV_VAR = "NEAR_WORKSPACES_NETWORK"

ConfigOrFn = Union[Config, Mapping[str, Any], CreateRunnerFn, None]


async def _no_accounts(runtime) -> dict:
    return {}


def get_config_and_fn(
    config_or_fn: ConfigOrFn, fn: Optional[CreateRunnerFn] = None
) -> Tuple[Config, Optional[CreateRunnerFn]]:
    """
    Normalize ``(config, fn)`` / ``(fn)`` call styles.

    Raises:
        InvalidArgumentsError: for any other combination
    """
    if callable(config_or_fn) and fn is None:
        return Config(), config_or_fn
    if isinstance(config_or_fn, (Config, Mapping)) and (fn is None or callable(fn)):
        try:
            config = Config.coerce(config_or_fn)
        except ValidationError as e:
            raise InvalidArgumentsError(detail=str(e)) from e
        return config, fn
    raise InvalidArgumentsError(
        detail=f"got ({type(config_or_fn).__name__}, {type(fn).__name__})"
    )


class Workspace:
    """
    A test environment bound to a network mode. Construct it with
    :meth:`init`; the constructor takes the factory producing the reference
    container.
    """

    def __init__(self, container_factory: Callable[[], Awaitable[WorkspaceContainer]]):
        self._container_factory = container_factory
        self.container: Optional[WorkspaceContainer] = None
        self.ready: Optional[asyncio.Future] = None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # no loop yet, creation starts on first use
            return
        self.ready = asyncio.ensure_future(self._start_waiting())

    @classmethod
    def init(
        cls,
        config_or_fn: ConfigOrFn = None,
        fn: Optional[CreateRunnerFn] = None,
    ) -> "Workspace":
        """
        Initialize a new workspace. In sandbox mode this creates a local
        blockchain, runs ``fn`` against its root account and stops the node
        while keeping its data. Accounts returned by ``fn`` are passed to
        every later ``clone`` callback under the same names.

        Args:
            config_or_fn: a config (``Config`` or mapping) or the init function
            fn: the init function when ``config_or_fn`` is a config

        Returns:
            Workspace used as the starting point of cloned workspaces
        """
        if config_or_fn is None:
            config_or_fn = _no_accounts
        config, fn = get_config_and_fn(config_or_fn, fn)
        if config.network is None:
            config.network = cls.get_network_from_env()
        logger.debug(f"Initializing workspace: {config.to_dict()}")
        return cls(lambda: WorkspaceContainer.create(config, fn))

    @classmethod
    def network_is_testnet(cls) -> bool:
        return cls.get_network_from_env() == "testnet"

    @classmethod
    def network_is_sandbox(cls) -> bool:
        return cls.get_network_from_env() == "sandbox"

    @staticmethod
    def get_network_from_env() -> Network:
        network = os.environ.get(NETWORK_ENV_VAR)
        if network is None:
            return "sandbox"
        if network in ("sandbox", "testnet"):
            return network
        raise InvalidNetworkError(NETWORK_ENV_VAR, network)

    async def _start_waiting(self) -> None:
        self.container = await self._container_factory()

    def _ready_is_stale(self) -> bool:
        if self.ready.cancelled():
            return True
        # pending on another loop, which may never run it again
        return not self.ready.done() and self.ready.get_loop() is not asyncio.get_running_loop()

    async def wait_ready(self) -> WorkspaceContainer:
        if self.ready is None or self._ready_is_stale():
            self.ready = asyncio.ensure_future(self._start_waiting())
        await self.ready
        return self.container

    async def clone(self, fn: RunnerFn) -> WorkspaceContainer:
        """
        Run ``fn(accounts, runtime)`` in a fresh copy of the workspace.
        ``accounts`` holds ``root`` and the accounts returned by the init
        function. The copy is torn down when ``fn`` returns or raises.

        Returns:
            the container ``fn`` ran in
        """
        await self.wait_ready()
        container = await self.container.create_from()
        await container.clone(fn)
        return container

    async def clone_sandbox(self, fn: RunnerFn) -> Optional[WorkspaceContainer]:
        """Like :meth:`clone`, but only runs in sandbox mode; returns None otherwise."""
        await self.wait_ready()
        if self.container.config.network == "sandbox":
            return await self.clone(fn)
        return None

    async def close(self) -> None:
        """Release the reference state created by the init function."""
        if self.ready is None:
            return
        await self.wait_ready()
        await self.container.cleanup()


class Runner(Workspace):
    """``Workspace`` under its ``create``/``run``/``run_sandbox`` names."""

    @classmethod
    async def create(
        cls,
        config_or_fn: ConfigOrFn = None,
        fn: Optional[CreateRunnerFn] = None,
    ) -> "Runner":
        """Create the initial environment and wait until it is ready."""
        runner = cls.init(config_or_fn, fn)
        await runner.wait_ready()
        return runner

    async def run(self, fn: RunnerFn) -> WorkspaceContainer:
        """Set up the context, run ``fn`` and tear it down."""
        return await self.clone(fn)

    async def run_sandbox(self, fn: RunnerFn) -> Optional[WorkspaceContainer]:
        """Only runs ``fn`` if the network is sandbox."""
        return await self.clone_sandbox(fn)
