# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/__init__.py

"""
IPC Gateway Library

Wraps the storage network CLI (akavecli) and turns its text output into
typed results and classified errors, for use behind an HTTP API.

Basic usage:
    import asyncio
    from ipc_gateway import IPCClient, load_config

    client = IPCClient(load_config())
    buckets = asyncio.run(client.list_buckets())

For more control:
    from ipc_gateway.executor import CommandExecutor
    from ipc_gateway.parser import OutputParser
    from ipc_gateway.errors import ErrorRegistry, default_registry
"""

# Config
from ipc_gateway.config import (
    ConfigError,
    GatewayConfig,
    load_config,
)

# Errors
from ipc_gateway.errors import (
    ClassifiedError,
    ErrorRegistry,
    ErrorSpec,
    GatewayError,
    ParseError,
    classify_exception,
    classify_stderr,
    default_registry,
)

# Types
from ipc_gateway.types import (
    BucketRecord,
    DeletionAck,
    ExecutionResult,
    FileRecord,
    ParserKind,
    UploadResult,
)

# Core
from ipc_gateway.parser import OutputParser
from ipc_gateway.executor import CommandExecutor
from ipc_gateway.tx_lookup import TransactionLookup
from ipc_gateway.client import IPCClient

__all__ = [
    # Config
    "ConfigError",
    "GatewayConfig",
    "load_config",
    # Errors
    "ClassifiedError",
    "ErrorRegistry",
    "ErrorSpec",
    "GatewayError",
    "ParseError",
    "classify_exception",
    "classify_stderr",
    "default_registry",
    # Types
    "BucketRecord",
    "DeletionAck",
    "ExecutionResult",
    "FileRecord",
    "ParserKind",
    "UploadResult",
    # Core
    "OutputParser",
    "CommandExecutor",
    "TransactionLookup",
    "IPCClient",
]
