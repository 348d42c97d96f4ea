# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/config.py

"""
Gateway Configuration Management

Reads one toml file (default /etc/ipc-gateway/gateway.toml):

    [node]
    address = "connect.akave.ai:5500"
    private_key_file = "/etc/ipc-gateway/key"   # or private_key = "..."

    [cli]
    binary = "akavecli"
    timeout = 300            # seconds; omit to wait forever

    [chain]
    rpc_url = "https://.../rpc"
    retry_delay = 5

The private key normally lives in a separate file referenced by
[node].private_key_file. Environment variables NODE_ADDRESS, PRIVATE_KEY,
IPC_BINARY and RPC_URL override the file.
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from ipc_gateway.tx_lookup import DEFAULT_RETRY_DELAY, normalize_private_key


DEFAULT_CONFIG = Path("/etc/ipc-gateway/gateway.toml")
DEFAULT_BINARY = "akavecli"

ENV_OVERRIDES = {
    "NODE_ADDRESS": "node_address",
    "PRIVATE_KEY": "private_key",
    "IPC_BINARY": "binary",
    "RPC_URL": "rpc_url",
}


class ConfigError(Exception):
    """Raised when config is missing required fields."""
    pass


@dataclass
class GatewayConfig:
    """Complete gateway configuration."""
    node_address: Optional[str] = None
    private_key: Optional[str] = None
    binary: str = DEFAULT_BINARY
    rpc_url: Optional[str] = None
    command_timeout: Optional[float] = None
    tx_retry_delay: float = DEFAULT_RETRY_DELAY

    def __post_init__(self):
        if self.private_key:
            self.private_key = normalize_private_key(self.private_key.strip())

    @property
    def tracks_transactions(self) -> bool:
        return bool(self.rpc_url)

    def validate(self) -> tuple[list[str], list[str]]:
        """
        Validate configuration, return (errors, warnings).
        Empty errors list means config is valid for operations.
        """
        errors = []
        warnings = []

        if not self.node_address:
            errors.append("node address is not set")
        if not self.private_key:
            errors.append("private key is not set")
        else:
            try:
                int(self.private_key, 16)
            except ValueError:
                errors.append("private key is not hex")
            else:
                if len(self.private_key) != 64:
                    errors.append("private key must be 32 bytes (64 hex characters)")

        if self.command_timeout is not None and self.command_timeout <= 0:
            errors.append("cli timeout must be positive")

        if not self.rpc_url:
            warnings.append("no rpc_url configured, transaction hashes will not be reported")
        if self.command_timeout is None:
            warnings.append("no cli timeout configured, a hung command hangs its request")

        return errors, warnings

    def require_valid(self) -> "GatewayConfig":
        errors, _ = self.validate()
        if errors:
            raise ConfigError("; ".join(errors))
        return self


def _load_private_key(key_file: Path) -> str:
    """Read a file containing the hex private key.

    Raises:
        FileNotFoundError: If key file doesn't exist
        ValueError: If key file is empty
    """
    if not key_file.exists():
        raise FileNotFoundError(f"Private key file not found: {key_file}")

    text = key_file.read_text().strip()
    if not text:
        raise ValueError(f"Private key file is empty: {key_file}")
    return text


def _apply_env(values: dict, environ: Mapping[str, str]) -> dict:
    merged = dict(values)
    for env_name, attr in ENV_OVERRIDES.items():
        if environ.get(env_name):
            merged[attr] = environ[env_name]
    return merged


def load_config(config_path: Path = None, environ: Mapping[str, str] = None) -> GatewayConfig:
    """Load config from toml, then apply environment overrides.

    Args:
        config_path: Path to gateway.toml. Default: /etc/ipc-gateway/gateway.toml.
            An explicitly given path must exist; the default may be absent.
        environ: Environment mapping (default: os.environ)

    Returns:
        GatewayConfig object

    Raises:
        FileNotFoundError: If an explicit config file or the key file doesn't exist
        ValueError: If the config file is invalid
    """
    environ = os.environ if environ is None else environ
    config_file = Path(config_path) if config_path else DEFAULT_CONFIG

    data = {}
    if config_file.exists():
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    elif config_path:
        raise FileNotFoundError(f"Config file not found: {config_file}")

    node = data.get("node", {})
    cli = data.get("cli", {})
    chain = data.get("chain", {})

    private_key = node.get("private_key")
    if not private_key and "private_key_file" in node and not environ.get("PRIVATE_KEY"):
        private_key = _load_private_key(Path(node["private_key_file"]))

    values = {
        "node_address": node.get("address"),
        "private_key": private_key,
        "binary": cli.get("binary", DEFAULT_BINARY),
        "rpc_url": chain.get("rpc_url"),
        "command_timeout": cli.get("timeout"),
        "tx_retry_delay": chain.get("retry_delay", DEFAULT_RETRY_DELAY),
    }
    values = _apply_env(values, environ)

    timeout = values["command_timeout"]
    if timeout is not None and not isinstance(timeout, (int, float)):
        raise ValueError(f"[cli].timeout must be a number: {timeout!r}")

    return GatewayConfig(**values)
