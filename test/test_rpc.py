import asyncio
import base64
import json
from unittest.mock import MagicMock, patch

import pytest
from aiohttp import test_utils, web

from near_workspaces.errors import RpcError
from near_workspaces.runtime.rpc import JsonRpcProvider, RpcRequest


def ok(result):
    return 200, {"jsonrpc": "2.0", "id": "dontcare", "result": result}


def run_with_node(responder, fn):
    """
    启动一个进程内 JSON-RPC 节点, 对 provider 执行 fn

    responder(body) -> (status, payload); payload 为 str 时按原文返回
    """

    async def _run():
        calls = []

        async def handle(request):
            body = await request.json()
            calls.append(body)
            status, payload = responder(body)
            if isinstance(payload, str):
                return web.Response(status=status, text=payload)
            return web.json_response(payload, status=status)

        app = web.Application()
        app.router.add_post("/", handle)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            provider = JsonRpcProvider(str(server.make_url("/")), timeout=5)
            result = await fn(provider)
        finally:
            await server.close()
        return result, calls

    return asyncio.run(_run())


class TestJsonRpcProvider:
    def test_status(self):
        result, calls = run_with_node(
            lambda body: ok({"chain_id": "sandbox"}),
            lambda provider: provider.status(),
        )
        assert result == {"chain_id": "sandbox"}
        assert calls == [
            {"jsonrpc": "2.0", "id": "dontcare", "method": "status", "params": []}
        ]

    def test_view_account(self):
        result, calls = run_with_node(
            lambda body: ok({"amount": "100", "locked": "0", "storage_usage": 182}),
            lambda provider: provider.view_account("alice.test.near"),
        )
        assert result["amount"] == "100"
        assert calls[0]["method"] == "query"
        assert calls[0]["params"] == {
            "request_type": "view_account",
            "finality": "final",
            "account_id": "alice.test.near",
        }

    def test_view_function_json_result(self):
        result, calls = run_with_node(
            lambda body: ok({"result": list(b'{"status": "hello"}'), "logs": []}),
            lambda provider: provider.view_function(
                "status.test.near", "get_status", {"account_id": "alice"}
            ),
        )
        assert result == {"status": "hello"}
        params = calls[0]["params"]
        assert params["request_type"] == "call_function"
        assert params["method_name"] == "get_status"
        assert json.loads(base64.b64decode(params["args_base64"])) == {"account_id": "alice"}

    def test_view_function_raw_and_empty_result(self):
        raw, _ = run_with_node(
            lambda body: ok({"result": [0xFF, 0x00], "logs": []}),
            lambda provider: provider.view_function("c.test.near", "bytes"),
        )
        empty, _ = run_with_node(
            lambda body: ok({"result": [], "logs": []}),
            lambda provider: provider.view_function("c.test.near", "nothing"),
        )
        assert raw == b"\xff\x00"
        assert empty is None

    def test_view_function_error_inside_result(self):
        with pytest.raises(RpcError) as exc_info:
            run_with_node(
                lambda body: ok({"error": "wasm execution failed", "logs": ["panic"]}),
                lambda provider: provider.view_function("c.test.near", "boom"),
            )
        assert exc_info.value.message == "wasm execution failed"
        assert exc_info.value.detail == ["panic"]

    def test_view_state(self):
        values = [
            {
                "key": base64.b64encode(b"STATE").decode(),
                "value": base64.b64encode(b"\x01\x02").decode(),
            }
        ]
        result, calls = run_with_node(
            lambda body: ok({"values": values}),
            lambda provider: provider.view_state("c.test.near", b"ST"),
        )
        assert result == {b"STATE": b"\x01\x02"}
        assert calls[0]["params"]["prefix_base64"] == base64.b64encode(b"ST").decode()

    def test_view_code(self):
        code = b"\x00asm\x01\x00\x00\x00"
        result, _ = run_with_node(
            lambda body: ok({"code_base64": base64.b64encode(code).decode(), "hash": "x"}),
            lambda provider: provider.view_code("c.test.near"),
        )
        assert result == code

    def test_error_member(self):
        error = {
            "code": -32000,
            "message": "Server error",
            "data": "account nobody.test.near does not exist while viewing",
            "name": "HANDLER_ERROR",
            "cause": {"name": "UNKNOWN_ACCOUNT", "info": {}},
        }
        with pytest.raises(RpcError) as exc_info:
            run_with_node(
                lambda body: (200, {"jsonrpc": "2.0", "id": "dontcare", "error": error}),
                lambda provider: provider.view_account("nobody.test.near"),
            )
        err = exc_info.value
        assert err.code == -32000
        assert err.status == 200
        assert err.message == "Server error"
        assert err.extra["cause"]["name"] == "UNKNOWN_ACCOUNT"
        assert err.to_dict()["code"] == -32000

    def test_http_error_without_body(self):
        with pytest.raises(RpcError) as exc_info:
            run_with_node(
                lambda body: (500, "boom"),
                lambda provider: provider.status(),
            )
        assert exc_info.value.status == 500
        assert exc_info.value.detail == "boom"

    def test_malformed_response(self):
        with pytest.raises(RpcError) as exc_info:
            run_with_node(
                lambda body: (200, {"jsonrpc": "2.0", "id": "dontcare"}),
                lambda provider: provider.status(),
            )
        assert exc_info.value.message == "Malformed JSON-RPC response"


class TestRpcRequestSync:
    """测试同步调用"""

    @patch("requests.post")
    def test_call_success(self, mock_post):
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.reason = "OK"
        mock_response.json.return_value = {"jsonrpc": "2.0", "id": "dontcare", "result": {"chain_id": "testnet"}}
        mock_post.return_value = mock_response

        result = RpcRequest(url="https://rpc.example.org", method="status").call(timeout=7)

        assert result == {"chain_id": "testnet"}
        mock_post.assert_called_once_with(
            "https://rpc.example.org",
            json={"jsonrpc": "2.0", "id": "dontcare", "method": "status", "params": []},
            headers={},
            timeout=7,
        )

    @patch("requests.post")
    def test_call_http_error(self, mock_post):
        mock_response = MagicMock()
        mock_response.status_code = 503
        mock_response.reason = "Service Unavailable"
        mock_response.text = "overloaded"
        mock_response.json.side_effect = json.decoder.JSONDecodeError("Expecting value", "", 0)
        mock_post.return_value = mock_response

        with pytest.raises(RpcError) as exc_info:
            RpcRequest(url="https://rpc.example.org", method="status").call()

        assert exc_info.value.status == 503
        assert exc_info.value.reason == "Service Unavailable"
        assert exc_info.value.detail == "overloaded"
