#!/usr/bin/env python3
"""
near-workspaces CLI - inspect the selected network and run local sandboxes
"""

import argparse
import asyncio
import shutil
import sys
from enum import IntEnum
from pathlib import Path
from typing import List, Optional

import requests

from near_workspaces import __version__
from near_workspaces.cli.formatter import StatusFormatter
from near_workspaces.config import Config
from near_workspaces.errors import InvalidNetworkError, RpcError, WorkspaceError
from near_workspaces.runtime.container import make_home_dir
from near_workspaces.runtime.rpc import RpcRequest
from near_workspaces.runtime.server import SandboxServer
from near_workspaces.settings import get_settings
from near_workspaces.utils.loggers import set_level
from near_workspaces.workspace import Workspace


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    USAGE = 2
    SANDBOX_ERROR = 4
    INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="near-workspaces",
        description="Inspect the workspace network and run local sandboxes",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "network",
        help="Print the network selected by NEAR_WORKSPACES_NETWORK",
    )

    status = subparsers.add_parser("status", help="Query a node's status")
    status.add_argument(
        "--rpc-addr",
        type=str,
        help="JSON-RPC endpoint (default: testnet RPC when the network is testnet)",
    )
    status.add_argument(
        "--format",
        choices=["pretty", "json", "yaml"],
        default="pretty",
        help="Output format (default: pretty)",
    )
    status.add_argument(
        "--timeout", "-t",
        type=int,
        default=10,
        help="Request timeout in seconds (default: 10)",
    )
    status.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print the full status response",
    )

    sandbox = subparsers.add_parser("sandbox", help="Run a local sandbox until interrupted")
    sandbox.add_argument("--home", type=str, help="Sandbox home directory (default: new temp dir)")
    sandbox.add_argument("--port", type=int, help="RPC port (default: a free port)")
    sandbox.add_argument(
        "--no-init",
        action="store_true",
        help="Reuse an initialized home directory",
    )
    return parser


def cmd_network(args) -> int:
    try:
        print(Workspace.get_network_from_env())
    except InvalidNetworkError as e:
        print(e.message, file=sys.stderr)
        return ExitCode.USAGE
    return ExitCode.SUCCESS


def resolve_rpc_addr(rpc_addr: Optional[str]) -> str:
    if rpc_addr:
        return rpc_addr
    if Workspace.network_is_testnet():
        return get_settings().NEAR_TESTNET_RPC_URL
    raise WorkspaceError(
        "No RPC address given",
        detail="pass --rpc-addr or set NEAR_WORKSPACES_NETWORK=testnet",
    )


def cmd_status(args) -> int:
    formatter = StatusFormatter(format=args.format, verbose=args.verbose)
    try:
        rpc_addr = resolve_rpc_addr(args.rpc_addr)
        status = RpcRequest(url=rpc_addr, method="status").call(timeout=args.timeout)
    except RpcError as e:
        print(formatter.format_error(f"{e.message} ({e.detail})"), file=sys.stderr)
        return ExitCode.FAILURE
    except requests.RequestException as e:
        print(formatter.format_error(str(e)), file=sys.stderr)
        return ExitCode.FAILURE
    except WorkspaceError as e:
        print(formatter.format_error(f"{e.message} ({e.detail})"), file=sys.stderr)
        return ExitCode.USAGE
    print(formatter.format_status(rpc_addr, status))
    return ExitCode.SUCCESS


async def serve_sandbox(home_dir: str, port: Optional[int], init: bool) -> None:
    server = SandboxServer(Config(network="sandbox", home_dir=home_dir, port=port))
    if init:
        await server.init()
    await server.start()
    print(f"Sandbox RPC listening on {server.rpc_addr} (home={home_dir})", flush=True)
    try:
        while server.is_alive():
            await asyncio.sleep(1)
    finally:
        await server.terminate()


def cmd_sandbox(args) -> int:
    init = not args.no_init
    if args.home and init and (Path(args.home) / "config.json").exists():
        print(f"Error: {args.home} is already initialized, pass --no-init", file=sys.stderr)
        return ExitCode.USAGE
    home_dir = args.home or make_home_dir()
    try:
        asyncio.run(serve_sandbox(home_dir, args.port, init))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return ExitCode.INTERRUPTED
    except WorkspaceError as e:
        print(e, file=sys.stderr)
        return ExitCode.SANDBOX_ERROR
    finally:
        # 临时 home 目录由本命令创建, 退出时删除
        if not args.home:
            shutil.rmtree(home_dir, ignore_errors=True)
    return ExitCode.SUCCESS


COMMANDS = {
    "network": cmd_network,
    "status": cmd_status,
    "sandbox": cmd_sandbox,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    set_level(args.log_level)
    return int(COMMANDS[args.command](args))


def entry_point():
    """CLI entry point"""
    sys.exit(main())


if __name__ == "__main__":
    entry_point()
