"""
Formatting of node status for CLI output
"""

import json
import sys
from typing import Any, Dict

import yaml


class StatusFormatter:
    """
    Format a node ``status`` response for the different output types
    """

    def __init__(self, format: str = "pretty", verbose: bool = False, use_colors: bool = True):
        self.format = format
        self.verbose = verbose
        self.use_colors = use_colors and self._supports_color()

        if self.use_colors:
            self.colors = {
                'reset': '\033[0m',
                'red': '\033[91m',
                'green': '\033[92m',
                'yellow': '\033[93m',
                'cyan': '\033[96m',
                'bold': '\033[1m'
            }
        else:
            self.colors = {k: '' for k in ['reset', 'red', 'green', 'yellow', 'cyan', 'bold']}

    def _supports_color(self) -> bool:
        return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    def _colorize(self, text: str, color: str) -> str:
        return f"{self.colors[color]}{text}{self.colors['reset']}"

    @staticmethod
    def summarize(rpc_addr: str, status: Dict[str, Any]) -> Dict[str, Any]:
        sync_info = status.get("sync_info", {})
        return {
            "rpc_addr": rpc_addr,
            "chain_id": status.get("chain_id"),
            "protocol_version": status.get("protocol_version"),
            "node_version": (status.get("version") or {}).get("version"),
            "latest_block_height": sync_info.get("latest_block_height"),
            "latest_block_time": sync_info.get("latest_block_time"),
            "syncing": sync_info.get("syncing"),
            "validators": len(status.get("validators", [])),
        }

    def format_status(self, rpc_addr: str, status: Dict[str, Any]) -> str:
        data = status if self.verbose else self.summarize(rpc_addr, status)
        if self.format == "json":
            return json.dumps(data, indent=2, ensure_ascii=False, default=str)
        elif self.format == "yaml":
            return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
        return self._format_pretty(self.summarize(rpc_addr, status))

    def _format_pretty(self, summary: Dict[str, Any]) -> str:
        output = [self._colorize(f"Node {summary['rpc_addr']}", 'bold')]
        syncing = summary.get("syncing")
        state = self._colorize("syncing", 'yellow') if syncing else self._colorize("synced", 'green')
        output.append(f"  chain:    {summary.get('chain_id')} ({state})")
        output.append(f"  height:   {summary.get('latest_block_height')}")
        output.append(f"  time:     {summary.get('latest_block_time')}")
        output.append(f"  version:  {summary.get('node_version')} (protocol {summary.get('protocol_version')})")
        output.append(f"  validators: {summary.get('validators')}")
        return "\n".join(output)

    def format_error(self, message: str) -> str:
        return self._colorize(f"Error: {message}", 'red')
