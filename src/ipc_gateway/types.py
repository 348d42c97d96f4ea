# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/types.py

"""
Gateway Type Definitions

Parsed entities built from CLI output, and the raw execution result.
Record keys use the CLI's own casing (Name=..., CreationDate=...) on the
wire; attributes are snake_case.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import json


class ParserKind(str, Enum):
    """Which output grammar applies to a command."""
    CREATE_BUCKET = "createBucket"
    LIST_BUCKETS = "listBuckets"
    VIEW_BUCKET = "viewBucket"
    DELETE_BUCKET = "deleteBucket"
    LIST_FILES = "listFiles"
    FILE_INFO = "fileInfo"
    UPLOAD_FILE = "uploadFile"
    DOWNLOAD_FILE = "downloadFile"
    DEFAULT = "default"


@dataclass(frozen=True)
class ExecutionResult:
    """Exit code plus everything the process wrote, in arrival order per stream."""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined output as handed to the parser; stderr always starts on its own line."""
        return (self.stdout.rstrip("\n") + "\n" + self.stderr).strip()


def _split_known(pairs: dict, fields: dict) -> tuple[dict, dict]:
    """Split CLI key=value pairs into known attributes and extras."""
    known = {}
    extra = {}
    for key, value in pairs.items():
        if key in fields:
            known[fields[key]] = value
        else:
            extra[key] = value
    return known, extra


def _dump(obj, fields: dict) -> dict:
    d = {}
    for key, attr in fields.items():
        value = getattr(obj, attr)
        if value is not None:
            d[key] = value
    d.update(obj.extra)
    return d


@dataclass
class BucketRecord:
    """A bucket as printed by `ipc bucket create|view|list`."""
    name: str
    owner: Optional[str] = None
    creation_date: Optional[str] = None
    visibility: Optional[str] = None
    extra: dict[str, str] = field(default_factory=dict)
    transaction_hash: Optional[str] = None

    FIELDS = {
        "Name": "name",
        "Owner": "owner",
        "CreationDate": "creation_date",
        "Visibility": "visibility",
    }

    @classmethod
    def from_pairs(cls, pairs: dict) -> "BucketRecord":
        known, extra = _split_known(pairs, cls.FIELDS)
        return cls(extra=extra, **known)

    def to_dict(self) -> dict:
        d = _dump(self, self.FIELDS)
        if self.transaction_hash:
            d["transactionHash"] = self.transaction_hash
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


@dataclass
class FileRecord:
    """A file as printed by `ipc file info|list`."""
    name: str
    size: Optional[str] = None
    hash: Optional[str] = None
    content_type: Optional[str] = None
    last_modified: Optional[str] = None
    extra: dict[str, str] = field(default_factory=dict)

    FIELDS = {
        "Name": "name",
        "Size": "size",
        "Hash": "hash",
        "ContentType": "content_type",
        "LastModified": "last_modified",
    }

    @classmethod
    def from_pairs(cls, pairs: dict):
        known, extra = _split_known(pairs, cls.FIELDS)
        return cls(extra=extra, **known)

    def to_dict(self) -> dict:
        return _dump(self, self.FIELDS)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


@dataclass
class UploadResult(FileRecord):
    """A file record from `ipc file upload`, optionally with its transaction."""
    transaction_hash: Optional[str] = None

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.transaction_hash:
            d["transactionHash"] = self.transaction_hash
        return d


@dataclass
class DeletionAck:
    """Acknowledgment for `ipc bucket delete`."""
    message: str
    name: Optional[str] = None
    transaction_hash: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"message": self.message}
        if self.name is not None:
            d["Name"] = self.name
        if self.transaction_hash:
            d["transactionHash"] = self.transaction_hash
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def to_payload(result):
    """Convert a parsed result (record, list of records, or raw value) to JSON data."""
    if isinstance(result, list):
        return [to_payload(r) for r in result]
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return result
