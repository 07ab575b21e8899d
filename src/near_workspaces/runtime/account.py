"""
Read-only account handles
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from near_workspaces.errors import RpcError
from near_workspaces.runtime.rpc import JsonRpcProvider

# yoctoNEAR charged per byte of account storage
STORAGE_PRICE_PER_BYTE = 10**19


@dataclass
class AccountBalance:
    total: int
    state_staked: int
    staked: int
    available: int

    def to_dict(self) -> Dict[str, str]:
        # amounts exceed JSON's safe integer range
        return {
            "total": str(self.total),
            "state_staked": str(self.state_staked),
            "staked": str(self.staked),
            "available": str(self.available),
        }


def _is_unknown_account(error: RpcError) -> bool:
    cause = error.extra.get("cause") or {}
    if isinstance(cause, dict) and cause.get("name") == "UNKNOWN_ACCOUNT":
        return True
    text = f"{error.message} {error.detail or ''}"
    return "does not exist" in text


class Account:
    """An account on the network a runtime is connected to."""

    def __init__(self, account_id: str, rpc: JsonRpcProvider):
        self.account_id = account_id
        self.rpc = rpc

    def __repr__(self) -> str:
        return f"Account('{self.account_id}')"

    def __str__(self) -> str:
        return self.account_id

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Account):
            return self.account_id == other.account_id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.account_id)

    async def view_account(self) -> Dict[str, Any]:
        return await self.rpc.view_account(self.account_id)

    async def exists(self) -> bool:
        try:
            await self.view_account()
        except RpcError as e:
            if _is_unknown_account(e):
                return False
            raise
        return True

    async def balance(self) -> AccountBalance:
        account = await self.view_account()
        amount = int(account["amount"])
        locked = int(account.get("locked", 0))
        state_staked = int(account.get("storage_usage", 0)) * STORAGE_PRICE_PER_BYTE
        total = amount + locked
        return AccountBalance(
            total=total,
            state_staked=state_staked,
            staked=locked,
            available=total - max(locked, state_staked),
        )

    async def view(self, method: str, args: Optional[Dict[str, Any]] = None) -> Any:
        """Call a view method of the contract deployed to this account."""
        return await self.rpc.view_function(self.account_id, method, args)

    async def view_state(self, prefix: bytes = b"") -> Dict[bytes, bytes]:
        return await self.rpc.view_state(self.account_id, prefix)

    async def view_code(self) -> bytes:
        return await self.rpc.view_code(self.account_id)
