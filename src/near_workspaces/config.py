"""
Workspace configuration
"""

from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from near_workspaces.settings import get_settings

Network = Literal["sandbox", "testnet"]

SANDBOX_ROOT_ACCOUNT = "test.near"


class Config(BaseModel):
    """
    User supplied configuration. Every field is optional so that a partial
    mapping such as ``{"network": "testnet"}`` is a valid configuration.

    Args:
        network: "sandbox" or "testnet"; filled from the environment when unset
        root_account: account every callback receives as ``root``
        rpc_addr: JSON-RPC endpoint, derived from ``port`` for sandboxes
        home_dir: sandbox home directory
        port: sandbox RPC port
        init: run ``near-sandbox init`` before starting
        rm: delete ``home_dir`` when the container is torn down
        ref_dir: reference home directory clones are copied from
    """

    model_config = ConfigDict(extra="forbid")

    network: Optional[Network] = None
    root_account: Optional[str] = None
    rpc_addr: Optional[str] = None
    home_dir: Optional[str] = None
    port: Optional[int] = None
    init: Optional[bool] = None
    rm: Optional[bool] = None
    ref_dir: Optional[str] = None

    @classmethod
    def coerce(cls, value: Union["Config", Mapping[str, Any]]) -> "Config":
        if isinstance(value, cls):
            return value.model_copy()
        return cls.model_validate(dict(value))

    def merge(self, other: Union["Config", Mapping[str, Any], None]) -> "Config":
        """Return a copy with every non-None field of ``other`` applied."""
        if other is None:
            return self.model_copy()
        updates = Config.coerce(other).model_dump(exclude_none=True)
        return self.model_copy(update=updates)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def default_config(network: Network) -> Config:
    """Defaults for ``network``; user values are merged on top."""
    if network == "sandbox":
        return Config(
            network="sandbox",
            root_account=SANDBOX_ROOT_ACCOUNT,
            init=True,
            rm=False,
        )
    return Config(
        network="testnet",
        rpc_addr=get_settings().NEAR_TESTNET_RPC_URL,
        init=False,
        rm=False,
    )
