# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/client.py

"""
IPC Client

One coroutine per bucket/file action. Each builds a fresh argument list

    ipc bucket|file <sub> <positional...> --node-address=<addr> --private-key=<hex>

and hands it to the CommandExecutor with the matching parser kind.
Input is validated before anything is spawned.
"""

import logging
from pathlib import Path
from typing import Optional

from ipc_gateway.config import GatewayConfig
from ipc_gateway.errors import ErrorRegistry, default_registry, validation_error
from ipc_gateway.executor import CommandExecutor
from ipc_gateway.parser import OutputParser
from ipc_gateway.tx_lookup import TransactionLookup, derive_address
from ipc_gateway.types import (
    BucketRecord,
    DeletionAck,
    FileRecord,
    ParserKind,
    UploadResult,
)


logger = logging.getLogger(__name__)


def _missing(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def build_executor(config: GatewayConfig, registry: ErrorRegistry = None) -> CommandExecutor:
    """Create a CommandExecutor from config."""
    registry = registry or default_registry()
    tx_lookup = None
    if config.tracks_transactions:
        tx_lookup = TransactionLookup(config.rpc_url, retry_delay=config.tx_retry_delay)
    return CommandExecutor(
        binary=config.binary,
        registry=registry,
        parser=OutputParser(registry),
        tx_lookup=tx_lookup,
        timeout=config.command_timeout,
    )


class IPCClient:
    """Bucket and file operations against the storage network."""

    def __init__(self, config: GatewayConfig, executor: CommandExecutor = None):
        self.config = config
        self.executor = executor or build_executor(config)
        self.registry = self.executor.registry
        self._address: Optional[str] = None

    @property
    def address(self) -> Optional[str]:
        """Address derived from the private key, used for transaction lookup."""
        if self._address is None and self.config.private_key:
            try:
                self._address = derive_address(self.config.private_key)
            except Exception as e:
                logger.warning(f"Could not derive address from private key: {e}")
        return self._address

    def _credentials(self) -> list[str]:
        return [
            f"--node-address={self.config.node_address}",
            f"--private-key={self.config.private_key}",
        ]

    def _args(self, *parts: str) -> list[str]:
        return [*parts, *self._credentials()]

    # -- validation -------------------------------------------------------

    def validate_bucket(self, bucket_name) -> None:
        if _missing(bucket_name):
            raise validation_error(
                self.registry,
                "Invalid bucket name",
                {"field": "bucketName", "type": "required"},
            )

    def validate_file(self, bucket_name, file_name, field: str = "fileName") -> None:
        errors = []
        if _missing(bucket_name):
            errors.append({"field": "bucketName", "type": "required"})
        if _missing(file_name):
            errors.append({"field": field, "type": "required"})
        if errors:
            raise validation_error(self.registry, "Invalid input parameters", errors)

    # -- buckets ----------------------------------------------------------

    async def create_bucket(self, bucket_name: str) -> BucketRecord:
        self.validate_bucket(bucket_name)
        return await self.executor.run(
            self._args("ipc", "bucket", "create", bucket_name),
            ParserKind.CREATE_BUCKET,
            track_transaction=True,
            address=self.address,
        )

    async def delete_bucket(self, bucket_name: str) -> DeletionAck:
        self.validate_bucket(bucket_name)
        return await self.executor.run(
            self._args("ipc", "bucket", "delete", bucket_name),
            ParserKind.DELETE_BUCKET,
            track_transaction=True,
            address=self.address,
        )

    async def view_bucket(self, bucket_name: str) -> BucketRecord:
        self.validate_bucket(bucket_name)
        return await self.executor.run(
            self._args("ipc", "bucket", "view", bucket_name),
            ParserKind.VIEW_BUCKET,
        )

    async def list_buckets(self) -> list[BucketRecord]:
        return await self.executor.run(
            self._args("ipc", "bucket", "list"),
            ParserKind.LIST_BUCKETS,
        )

    # -- files ------------------------------------------------------------

    async def list_files(self, bucket_name: str) -> list[FileRecord]:
        self.validate_bucket(bucket_name)
        return await self.executor.run(
            self._args("ipc", "file", "list", bucket_name),
            ParserKind.LIST_FILES,
        )

    async def file_info(self, bucket_name: str, file_name: str) -> FileRecord:
        self.validate_file(bucket_name, file_name)
        return await self.executor.run(
            self._args("ipc", "file", "info", bucket_name, file_name),
            ParserKind.FILE_INFO,
        )

    async def upload_file(self, bucket_name: str, file_path) -> UploadResult:
        file_path = str(file_path) if isinstance(file_path, Path) else file_path
        self.validate_file(bucket_name, file_path, field="filePath")
        return await self.executor.run(
            self._args("ipc", "file", "upload", bucket_name, file_path),
            ParserKind.UPLOAD_FILE,
            track_transaction=True,
            address=self.address,
        )

    async def download_file(self, bucket_name: str, file_name: str, destination) -> str:
        """Download into the destination directory; returns the CLI's text output."""
        self.validate_file(bucket_name, file_name)
        return await self.executor.run(
            self._args("ipc", "file", "download", bucket_name, file_name, str(destination)),
            ParserKind.DOWNLOAD_FILE,
        )
