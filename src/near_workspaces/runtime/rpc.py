"""
JSON-RPC client for sandbox and testnet nodes
"""

import base64
import json
from typing import Any, Dict, List, Optional, Union

import aiohttp
import requests
from pydantic import BaseModel

from near_workspaces.errors import RpcError
from near_workspaces.settings import get_settings
from near_workspaces.utils.loggers import get_logger

logger = get_logger(__name__)

REQUEST_ID = "dontcare"


class RpcRequest(BaseModel):
    """A single JSON-RPC 2.0 call against ``url``."""

    url: str
    method: str
    params: Union[dict, list] = []
    headers: Optional[dict] = {}

    def payload(self) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": REQUEST_ID,
            "method": self.method,
            "params": self.params,
        }

    def _unwrap(self, status: int, reason: str, body: Any, text: str) -> Any:
        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise RpcError(
                url=self.url,
                status=status,
                reason=reason,
                message=error.get("message") or "RPC error",
                detail=error.get("data"),
                code=error.get("code"),
                name=error.get("name"),
                cause=error.get("cause"),
            )
        if status // 100 != 2:
            raise RpcError(url=self.url, status=status, reason=reason, detail=text)
        if not isinstance(body, dict) or "result" not in body:
            raise RpcError(
                url=self.url,
                status=status,
                reason=reason,
                message="Malformed JSON-RPC response",
                detail=text,
            )
        return body["result"]

    def call(self, timeout: Optional[int] = None) -> Any:
        timeout = timeout or get_settings().NEAR_WORKSPACES_RPC_TIMEOUT
        resp = requests.post(
            self.url,
            json=self.payload(),
            headers=self.headers,
            timeout=timeout,
        )
        try:
            body = resp.json()
        except json.decoder.JSONDecodeError:
            body = None
        return self._unwrap(resp.status_code, resp.reason, body, resp.text)

    async def call_async(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[int] = None,
    ) -> Any:
        timeout = aiohttp.ClientTimeout(
            total=timeout or get_settings().NEAR_WORKSPACES_RPC_TIMEOUT
        )
        if session is None:
            async with aiohttp.ClientSession(headers=self.headers) as own_session:
                return await self._post(own_session, timeout)
        return await self._post(session, timeout)

    async def _post(self, session: aiohttp.ClientSession, timeout) -> Any:
        async with session.post(self.url, json=self.payload(), timeout=timeout) as resp:
            text = await resp.text()
            try:
                body = json.loads(text) if text else None
            except json.decoder.JSONDecodeError:
                body = None
            return self._unwrap(resp.status, resp.reason or "", body, text)


class JsonRpcProvider:
    """
    Thin async client over the node's JSON-RPC interface. Only read-only
    methods are exposed, nothing here signs transactions.
    """

    def __init__(
        self,
        rpc_addr: str,
        timeout: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.rpc_addr = rpc_addr
        self.timeout = timeout
        self.headers = headers or {}

    def __repr__(self) -> str:
        return f"JsonRpcProvider(rpc_addr='{self.rpc_addr}')"

    async def send(self, method: str, params: Union[dict, list]) -> Any:
        logger.debug(f"rpc {method} -> {self.rpc_addr}")
        request = RpcRequest(
            url=self.rpc_addr, method=method, params=params, headers=self.headers
        )
        return await request.call_async(timeout=self.timeout)

    async def status(self) -> Dict[str, Any]:
        return await self.send("status", [])

    async def query(
        self, request_type: str, finality: str = "final", **params: Any
    ) -> Dict[str, Any]:
        result = await self.send(
            "query", {"request_type": request_type, "finality": finality, **params}
        )
        # call_function failures come back inside the result
        if isinstance(result, dict) and result.get("error"):
            raise RpcError(
                url=self.rpc_addr,
                status=200,
                reason="OK",
                message=str(result["error"]),
                detail=result.get("logs"),
            )
        return result

    async def view_account(self, account_id: str) -> Dict[str, Any]:
        return await self.query("view_account", account_id=account_id)

    async def view_function(
        self, account_id: str, method_name: str, args: Optional[Dict[str, Any]] = None
    ) -> Any:
        args_base64 = base64.b64encode(json.dumps(args or {}).encode()).decode()
        result = await self.query(
            "call_function",
            account_id=account_id,
            method_name=method_name,
            args_base64=args_base64,
        )
        raw = bytes(result.get("result", []))
        if not raw:
            return None
        try:
            return json.loads(raw.decode())
        except (UnicodeDecodeError, json.decoder.JSONDecodeError):
            return raw

    async def view_state(self, account_id: str, prefix: bytes = b"") -> Dict[bytes, bytes]:
        result = await self.query(
            "view_state",
            account_id=account_id,
            prefix_base64=base64.b64encode(prefix).decode(),
        )
        values: List[Dict[str, str]] = result.get("values", [])
        return {
            base64.b64decode(item["key"]): base64.b64decode(item["value"])
            for item in values
        }

    async def view_code(self, account_id: str) -> bytes:
        result = await self.query("view_code", account_id=account_id)
        return base64.b64decode(result.get("code_base64", ""))
