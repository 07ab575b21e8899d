import json
import os
from unittest.mock import MagicMock, patch

import pytest
import requests
import yaml

from near_workspaces.cli.formatter import StatusFormatter
from near_workspaces.cli.main import ExitCode, build_parser, main

STATUS = {
    "chain_id": "testnet",
    "protocol_version": 63,
    "version": {"version": "1.36.0", "build": "crates-0.20.0"},
    "sync_info": {
        "latest_block_height": 150000000,
        "latest_block_time": "2024-01-01T00:00:00.000000000Z",
        "syncing": False,
    },
    "validators": [{"account_id": "node0"}, {"account_id": "node1"}],
}


def rpc_response(result=None, status_code=200, error=None):
    response = MagicMock()
    response.status_code = status_code
    response.reason = "OK" if status_code == 200 else "Bad Gateway"
    body = {"jsonrpc": "2.0", "id": "dontcare"}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    response.json.return_value = body
    response.text = json.dumps(body)
    return response


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_status_defaults(self):
        args = build_parser().parse_args(["status"])
        assert args.format == "pretty"
        assert args.timeout == 10
        assert args.rpc_addr is None
        assert args.verbose is False


class TestNetworkCommand:
    def test_default(self, capsys):
        assert main(["network"]) == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == "sandbox"

    def test_testnet(self, monkeypatch, capsys):
        monkeypatch.setenv("NEAR_WORKSPACES_NETWORK", "testnet")
        assert main(["network"]) == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == "testnet"

    def test_invalid(self, monkeypatch, capsys):
        monkeypatch.setenv("NEAR_WORKSPACES_NETWORK", "mainnet")
        assert main(["network"]) == ExitCode.USAGE
        assert "NEAR_WORKSPACES_NETWORK=mainnet invalid" in capsys.readouterr().err


class TestStatusCommand:
    """测试 status 子命令"""

    @patch("requests.post")
    def test_json_summary(self, mock_post, capsys):
        mock_post.return_value = rpc_response(STATUS)

        code = main(["status", "--rpc-addr", "http://127.0.0.1:3030", "--format", "json"])

        assert code == ExitCode.SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert data["chain_id"] == "testnet"
        assert data["latest_block_height"] == 150000000
        assert data["validators"] == 2
        assert mock_post.call_args.args[0] == "http://127.0.0.1:3030"
        assert mock_post.call_args.kwargs["timeout"] == 10

    @patch("requests.post")
    def test_yaml_verbose(self, mock_post, capsys):
        mock_post.return_value = rpc_response(STATUS)

        code = main(["status", "--rpc-addr", "http://127.0.0.1:3030", "--format", "yaml", "-v"])

        assert code == ExitCode.SUCCESS
        assert yaml.safe_load(capsys.readouterr().out) == STATUS

    @patch("requests.post")
    def test_testnet_default_address(self, mock_post, monkeypatch, capsys):
        monkeypatch.setenv("NEAR_WORKSPACES_NETWORK", "testnet")
        mock_post.return_value = rpc_response(STATUS)

        assert main(["status", "--format", "json", "-t", "3"]) == ExitCode.SUCCESS
        assert mock_post.call_args.args[0] == "https://rpc.testnet.near.org"
        assert mock_post.call_args.kwargs["timeout"] == 3

    @patch("requests.post")
    def test_no_address_on_sandbox(self, mock_post, capsys):
        assert main(["status"]) == ExitCode.USAGE
        assert "No RPC address given" in capsys.readouterr().err
        mock_post.assert_not_called()

    @patch("requests.post")
    def test_rpc_error(self, mock_post, capsys):
        mock_post.return_value = rpc_response(
            error={"code": -32000, "message": "Server error", "data": "node is syncing"}
        )
        assert main(["status", "--rpc-addr", "http://127.0.0.1:3030"]) == ExitCode.FAILURE
        assert "Server error" in capsys.readouterr().err

    @patch("requests.post", side_effect=requests.ConnectionError("connection refused"))
    def test_connection_error(self, mock_post, capsys):
        assert main(["status", "--rpc-addr", "http://127.0.0.1:1"]) == ExitCode.FAILURE
        assert "connection refused" in capsys.readouterr().err


class TestSandboxCommand:
    def test_refuses_initialized_home(self, tmp_path, capsys):
        (tmp_path / "config.json").write_text("{}")
        assert main(["sandbox", "--home", str(tmp_path)]) == ExitCode.USAGE
        assert "already initialized" in capsys.readouterr().err

    def test_reports_start_failure(self, tmp_path, monkeypatch, capsys):
        from near_workspaces.settings import get_settings

        monkeypatch.setattr(get_settings(), "NEAR_SANDBOX_BIN_PATH", "near-sandbox-does-not-exist")
        assert main(["sandbox", "--home", str(tmp_path / "home")]) == ExitCode.SANDBOX_ERROR
        assert "binary not found" in capsys.readouterr().err

    def test_removes_temporary_home(self, settings, monkeypatch, capsys):
        monkeypatch.setattr(settings, "NEAR_SANDBOX_BIN_PATH", "near-sandbox-does-not-exist")

        assert main(["sandbox"]) == ExitCode.SANDBOX_ERROR

        assert os.listdir(settings.NEAR_WORKSPACES_TMP_DIR) == []

    def test_keeps_user_home(self, tmp_path, monkeypatch, capsys):
        from near_workspaces.settings import get_settings

        home = tmp_path / "home"
        home.mkdir()
        monkeypatch.setattr(get_settings(), "NEAR_SANDBOX_BIN_PATH", "near-sandbox-does-not-exist")

        assert main(["sandbox", "--home", str(home), "--no-init"]) == ExitCode.SANDBOX_ERROR
        assert home.exists()


class TestStatusFormatter:
    def test_summarize(self):
        summary = StatusFormatter.summarize("http://127.0.0.1:3030", STATUS)
        assert summary == {
            "rpc_addr": "http://127.0.0.1:3030",
            "chain_id": "testnet",
            "protocol_version": 63,
            "node_version": "1.36.0",
            "latest_block_height": 150000000,
            "latest_block_time": "2024-01-01T00:00:00.000000000Z",
            "syncing": False,
            "validators": 2,
        }

    def test_pretty_without_colors(self):
        output = StatusFormatter(use_colors=False).format_status("http://127.0.0.1:3030", STATUS)
        assert output.splitlines()[0] == "Node http://127.0.0.1:3030"
        assert "testnet (synced)" in output
        assert "validators: 2" in output

    def test_error(self):
        assert StatusFormatter(use_colors=False).format_error("boom") == "Error: boom"
