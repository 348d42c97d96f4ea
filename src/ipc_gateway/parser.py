# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/parser.py

"""
Output Parser

Turns the free-form text printed by the storage CLI into typed records.
Each ParserKind has one handler; every handler is line oriented:

    Bucket created: Name=mybucket, Owner=0xabc
    Bucket: Name=mybucket, CreationDate=2024-01-01
    File: Name=report.pdf, Size=1024, Hash=bafy...
    Bucket deleted: Name=mybucket
    ... File uploaded successfully: Name=report.pdf, Size=1024, ...

Whole-text JSON is tried first, since the CLI sometimes prints a structured
error envelope instead of its usual lines.
"""

import json
import logging
from typing import Any, Callable

from ipc_gateway.errors import (
    ErrorRegistry,
    GatewayError,
    ParseError,
    default_registry,
    make_error,
)
from ipc_gateway.types import (
    BucketRecord,
    DeletionAck,
    FileRecord,
    ParserKind,
    UploadResult,
)


logger = logging.getLogger(__name__)

BUCKET_CREATED_PREFIX = "Bucket created:"
BUCKET_PREFIX = "Bucket:"
BUCKET_DELETED_PREFIX = "Bucket deleted:"
FILE_PREFIX = "File:"
UPLOAD_SUCCESS_MARKER = "File uploaded successfully:"

BUCKET_DELETED_MESSAGE = "Bucket deleted successfully"

PAIR_SEPARATOR = ", "


def parse_pairs(text: str, kind: ParserKind = None) -> dict[str, str]:
    """Parse 'Key=value, Key=value' into a dict.

    Each pair is split on its first '='. A pair without '=' or with an
    empty key raises ParseError.
    """
    text = text.strip()
    if not text:
        raise ParseError("No key=value pairs found", kind, text)
    pairs = {}
    for item in text.split(PAIR_SEPARATOR):
        if "=" not in item:
            raise ParseError(f"Malformed pair (missing '='): {item!r}", kind, text)
        key, value = item.split("=", 1)
        key = key.strip()
        if not key:
            raise ParseError(f"Malformed pair (empty key): {item!r}", kind, text)
        pairs[key] = value.strip()
    return pairs


def _require_name(pairs: dict, kind: ParserKind, text: str) -> dict:
    if "Name" not in pairs:
        raise ParseError("Record has no Name", kind, text)
    return pairs


class OutputParser:
    """Dispatches CLI output to the grammar for its ParserKind."""

    def __init__(self, registry: ErrorRegistry = None):
        self.registry = registry or default_registry()
        self._handlers: dict[ParserKind, Callable[[str], Any]] = {
            ParserKind.CREATE_BUCKET: self.parse_bucket_creation,
            ParserKind.LIST_BUCKETS: self.parse_bucket_list,
            ParserKind.VIEW_BUCKET: self.parse_bucket_view,
            ParserKind.DELETE_BUCKET: self.parse_bucket_deletion,
            ParserKind.LIST_FILES: self.parse_file_list,
            ParserKind.FILE_INFO: self.parse_file_info,
            ParserKind.UPLOAD_FILE: self.parse_file_upload,
            ParserKind.DOWNLOAD_FILE: self.parse_file_download,
            ParserKind.DEFAULT: self.parse_default,
        }
        missing = set(ParserKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No output handler for: {sorted(k.value for k in missing)}")

    def parse(self, output: str, kind: ParserKind = ParserKind.DEFAULT) -> Any:
        """
        Parse output for the given kind.

        Returns:
            Decoded JSON if the whole output is JSON, otherwise the record,
            list of records, acknowledgment or raw text for the kind.

        Raises:
            ParseError: output does not match the kind's grammar
            GatewayError: output carries a recognized failure signal
        """
        kind = ParserKind(kind)
        logger.debug(f"Parsing {kind.value} output ({len(output or '')} chars)")
        try:
            return json.loads(output)
        except (json.JSONDecodeError, TypeError):
            pass
        return self._handlers[kind](output)

    # -- single records ---------------------------------------------------

    def _single_record(self, output: str, prefix: str, kind: ParserKind) -> dict:
        if not output or not output.strip():
            raise ParseError("Empty response", kind, output or "")
        if not output.startswith(prefix):
            raise ParseError(f"Unexpected output format, expected '{prefix}'", kind, output)
        pairs = parse_pairs(output[len(prefix):], kind)
        return _require_name(pairs, kind, output)

    def parse_bucket_creation(self, output: str) -> BucketRecord:
        pairs = self._single_record(output, BUCKET_CREATED_PREFIX, ParserKind.CREATE_BUCKET)
        return BucketRecord.from_pairs(pairs)

    def parse_bucket_view(self, output: str) -> BucketRecord:
        pairs = self._single_record(output, BUCKET_PREFIX, ParserKind.VIEW_BUCKET)
        return BucketRecord.from_pairs(pairs)

    def parse_file_info(self, output: str) -> FileRecord:
        pairs = self._single_record(output, FILE_PREFIX, ParserKind.FILE_INFO)
        return FileRecord.from_pairs(pairs)

    # -- lists ------------------------------------------------------------

    def _record_lines(self, output: str, prefix: str, kind: ParserKind) -> list[dict]:
        records = []
        for line in output.splitlines():
            if not line.startswith(prefix):
                continue
            pairs = parse_pairs(line[len(prefix):], kind)
            records.append(_require_name(pairs, kind, line))
        return records

    def parse_bucket_list(self, output: str) -> list[BucketRecord]:
        lines = self._record_lines(output, BUCKET_PREFIX, ParserKind.LIST_BUCKETS)
        return [BucketRecord.from_pairs(p) for p in lines]

    def parse_file_list(self, output: str) -> list[FileRecord]:
        lines = self._record_lines(output, FILE_PREFIX, ParserKind.LIST_FILES)
        return [FileRecord.from_pairs(p) for p in lines]

    # -- mutations --------------------------------------------------------

    def parse_bucket_deletion(self, output: str) -> DeletionAck:
        if "BucketNonempty" in output:
            raise GatewayError(make_error("BUCKET_NONEMPTY", self.registry, details=output))
        if not output or not output.strip():
            raise ParseError("Empty response", ParserKind.DELETE_BUCKET, output or "")
        if not output.startswith(BUCKET_DELETED_PREFIX):
            raise ParseError(
                f"Unexpected output format, expected '{BUCKET_DELETED_PREFIX}'",
                ParserKind.DELETE_BUCKET,
                output,
            )
        tail = output[len(BUCKET_DELETED_PREFIX):].strip()
        name = None
        if tail:
            # the tail is informational; only a Name= pair is picked up
            try:
                name = parse_pairs(tail, ParserKind.DELETE_BUCKET).get("Name")
            except ParseError:
                logger.debug(f"Ignoring unstructured deletion tail: {tail!r}")
        return DeletionAck(message=BUCKET_DELETED_MESSAGE, name=name)

    def parse_file_upload(self, output: str) -> UploadResult:
        if "FileFullyUploaded" in output:
            raise GatewayError(make_error("FILE_FULLY_UPLOADED", self.registry, details=output))
        for line in output.splitlines():
            if UPLOAD_SUCCESS_MARKER in line:
                tail = line[line.index(UPLOAD_SUCCESS_MARKER) + len(UPLOAD_SUCCESS_MARKER):]
                pairs = parse_pairs(tail, ParserKind.UPLOAD_FILE)
                return UploadResult.from_pairs(_require_name(pairs, ParserKind.UPLOAD_FILE, line))
        raise ParseError(f"File upload failed: {output}", ParserKind.UPLOAD_FILE, output)

    # -- passthrough ------------------------------------------------------

    def parse_file_download(self, output: str) -> str:
        # payload arrives on disk, not on stdout
        return output

    def parse_default(self, output: str) -> str:
        return output
