# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/executor.py

"""
Command Executor

Runs one storage CLI invocation to completion and returns either the parsed
result or raises a GatewayError. Nothing else escapes: spawn failures,
non-zero exits, unparseable output all come out classified.

stdout and stderr are drained by two independent readers so a chatty
stream can never fill its pipe while we wait on the other one. The result
is final only after both readers hit end-of-stream and the process has
been reaped.

Debug logging:
    Enable with: IPC_GATEWAY_DEBUG=1
    Example: IPC_GATEWAY_DEBUG=1 ipc-gateway bucket list
"""

import asyncio
import codecs
import logging
import os
import secrets
from dataclasses import replace
from typing import Any, Optional, Sequence

from ipc_gateway.errors import (
    COMMAND_TIMEOUT,
    ErrorRegistry,
    GatewayError,
    ParseError,
    classify_exception,
    classify_stderr,
    default_registry,
    make_error,
    parse_failure,
    system_error,
)
from ipc_gateway.parser import OutputParser
from ipc_gateway.tx_lookup import TransactionLookup
from ipc_gateway.types import ExecutionResult, ParserKind


DEFAULT_BINARY = "akavecli"
READ_CHUNK_SIZE = 64 * 1024

# Stderr lines the CLI uses for progress rather than errors
STDERR_PROGRESS_MARKERS = ("File uploaded successfully:",)

logger = logging.getLogger(__name__)

# Enable debug logging via environment variable
if os.environ.get("IPC_GATEWAY_DEBUG"):
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )
    logger.setLevel(logging.DEBUG)


def redact_args(args: Sequence[str]) -> list[str]:
    """Hide the private key value in an argument list for logging."""
    redacted = []
    for arg in args:
        if arg.startswith("--private-key="):
            redacted.append("--private-key=***")
        else:
            redacted.append(arg)
    return redacted


def new_command_id() -> str:
    return secrets.token_hex(3)


class CommandExecutor:
    """Spawns the storage CLI and classifies what it printed."""

    def __init__(
        self,
        binary: str = DEFAULT_BINARY,
        registry: ErrorRegistry = None,
        parser: OutputParser = None,
        tx_lookup: TransactionLookup = None,
        timeout: float = None,
    ):
        """
        Args:
            binary: CLI executable name or path
            registry: Error code registry (default: default_registry())
            parser: Output parser (default: OutputParser over the same registry)
            tx_lookup: Optional transaction lookup used for enrichment
            timeout: Seconds before a running command is killed. None waits forever.
        """
        self.binary = binary
        self.registry = registry or default_registry()
        self.parser = parser or OutputParser(self.registry)
        self.tx_lookup = tx_lookup
        self.timeout = timeout

    async def run(
        self,
        args: Sequence[str],
        kind: ParserKind = ParserKind.DEFAULT,
        track_transaction: bool = False,
        address: str = None,
    ) -> Any:
        """
        Run `<binary> *args` and parse its output.

        Args:
            args: CLI arguments (sub-operation first, credential flags included)
            kind: Output grammar to apply on success
            track_transaction: Attach the caller's latest transaction hash
            address: Caller address for the transaction lookup

        Returns:
            Parsed result for kind (record, list, acknowledgment or text)

        Raises:
            GatewayError: for every failure
        """
        if not args:
            raise ValueError("args must not be empty")
        args = tuple(args)
        command_id = new_command_id()
        logger.info(f"[{command_id}] Executing: {self.binary} {' '.join(redact_args(args))}")

        result = await self.execute(args, command_id)
        parsed = self.interpret(result, kind, command_id)

        if track_transaction:
            parsed = await self.enrich(parsed, address, command_id)
        return parsed

    async def execute(self, args: Sequence[str], command_id: str = "-") -> ExecutionResult:
        """Spawn the process, drain both streams, wait for exit."""
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"[{command_id}] Process error: {e}")
            raise GatewayError(system_error(self.registry, e, self.binary)) from e

        try:
            if self.timeout is None:
                return await self._communicate(process, command_id)
            return await asyncio.wait_for(
                self._communicate(process, command_id), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"[{command_id}] Command timed out after {self.timeout}s, killing")
            await self._kill(process)
            raise GatewayError(
                make_error(
                    COMMAND_TIMEOUT,
                    self.registry,
                    details={"timeout": self.timeout},
                )
            )
        except asyncio.CancelledError:
            await self._kill(process)
            raise

    async def _communicate(self, process, command_id: str) -> ExecutionResult:
        stdout_chunks: list[str] = []
        stderr_chunks: list[str] = []

        # both streams must reach EOF before the exit code counts
        await asyncio.gather(
            self._drain(process.stdout, stdout_chunks, "stdout", command_id),
            self._drain(process.stderr, stderr_chunks, "stderr", command_id),
        )
        exit_code = await process.wait()

        return ExecutionResult(
            exit_code=exit_code,
            stdout="".join(stdout_chunks),
            stderr="".join(stderr_chunks),
        )

    async def _drain(
        self, stream: asyncio.StreamReader, chunks: list[str], name: str, command_id: str
    ) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(READ_CHUNK_SIZE)
            if not data:
                break
            text = decoder.decode(data)
            chunks.append(text)
            self._log_chunk(name, text, command_id)
        tail = decoder.decode(b"", final=True)
        if tail:
            chunks.append(tail)

    def _log_chunk(self, name: str, text: str, command_id: str) -> None:
        if name == "stderr" and not any(m in text for m in STDERR_PROGRESS_MARKERS):
            logger.debug(f"[{command_id}] Command error output: {text.strip()}")
        else:
            logger.debug(f"[{command_id}] Command output ({name}): {text.strip()}")

    async def _kill(self, process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    def interpret(
        self, result: ExecutionResult, kind: ParserKind = ParserKind.DEFAULT, command_id: str = "-"
    ) -> Any:
        """Turn a finished execution into a parsed result or a GatewayError.

        stderr failure signals win over the exit code.
        """
        if result.stderr:
            error = classify_stderr(result.stderr, self.registry)
            if error is not None:
                logger.error(
                    f"[{command_id}] Command failed with {error.code} "
                    f"(exit {result.exit_code}): {error.message}"
                )
                raise GatewayError(error)

        output = result.output

        if result.exit_code == 0:
            logger.info(f"[{command_id}] Command completed successfully")
            try:
                return self.parser.parse(output, kind)
            except ParseError as e:
                logger.error(f"[{command_id}] Failed to parse output: {e}")
                raise GatewayError(parse_failure(self.registry, e, output)) from e

        logger.error(f"[{command_id}] Command failed with exit code {result.exit_code}")
        failure = RuntimeError(result.stderr.strip() or output)
        raise GatewayError(classify_exception(failure, self.registry, output, self.binary))

    async def enrich(self, parsed: Any, address: Optional[str], command_id: str = "-") -> Any:
        """Attach the latest transaction hash; never fails the operation."""
        if self.tx_lookup is None or not address:
            logger.debug(f"[{command_id}] No transaction lookup configured, skipping")
            return parsed

        logger.info(f"[{command_id}] Fetching transaction hash")
        try:
            tx_hash = await self.tx_lookup.latest_transaction(address, command_id)
        except Exception as e:
            logger.warning(f"[{command_id}] Failed to get transaction hash: {e}")
            return parsed

        if not tx_hash:
            logger.warning(f"[{command_id}] No transaction hash found")
            return parsed
        return attach_transaction_hash(parsed, tx_hash)


def attach_transaction_hash(parsed: Any, tx_hash: str) -> Any:
    """Return parsed with the transaction hash attached where it fits."""
    if hasattr(parsed, "transaction_hash"):
        return replace(parsed, transaction_hash=tx_hash)
    if isinstance(parsed, dict):
        return {**parsed, "transactionHash": tx_hash}
    return parsed
