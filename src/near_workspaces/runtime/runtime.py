"""
Runtime handed to init and clone callbacks
"""

from typing import Dict, Optional

from near_workspaces.config import Config
from near_workspaces.errors import WorkspaceError
from near_workspaces.runtime.account import Account
from near_workspaces.runtime.rpc import JsonRpcProvider


class Runtime:
    """
    Network handle of one container.

    Args:
        config: resolved container configuration
        rpc: client connected to the container's node
    """

    def __init__(self, config: Config, rpc: JsonRpcProvider):
        self.config = config
        self.rpc = rpc
        self.accounts: Dict[str, Account] = {}

    def __repr__(self) -> str:
        return f"Runtime(network='{self.network}', rpc_addr='{self.rpc.rpc_addr}')"

    @property
    def network(self) -> Optional[str]:
        return self.config.network

    @property
    def root(self) -> Account:
        if not self.config.root_account:
            raise WorkspaceError(
                "No root account configured",
                detail="set `root_account` in the workspace config",
                network=self.network,
            )
        return self.get_account(self.config.root_account)

    def get_account(self, account_id: str) -> Account:
        return Account(account_id, self.rpc)
