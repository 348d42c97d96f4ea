# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/errors.py

"""
Error Code Registry and Error Classifier

Every failure coming out of the gateway is a ClassifiedError: a stable code
(symbolic name or 8-hex-digit SDK code), a human message and the HTTP status
the API answers with.

The registry is a plain read-only table built once and handed to whoever
needs it (executor, parser, client, API). Classification is stateless and
total: any string or exception maps to exactly one ClassifiedError.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional


HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_PAYLOAD_TOO_LARGE = 413
HTTP_RANGE_NOT_SATISFIABLE = 416
HTTP_INTERNAL_SERVER_ERROR = 500
HTTP_GATEWAY_TIMEOUT = 504

# Symbolic codes that never come from the SDK
VALIDATION_ERROR = "VALIDATION_ERROR"
SYSTEM_ERROR = "SYSTEM_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
RANGE_ERROR = "RANGE_ERROR"
STREAM_ERROR = "STREAM_ERROR"
FILE_TOO_LARGE = "FILE_TOO_LARGE"
COMMAND_TIMEOUT = "COMMAND_TIMEOUT"

# Substrings the CLI prints instead of (or next to) a hex code
LITERAL_SIGNALS = (
    ("BucketNonempty", "BUCKET_NONEMPTY"),
    ("FileFullyUploaded", "FILE_FULLY_UPLOADED"),
)

# Heuristic: the first "0x" followed by 8 hex digits anywhere in the text.
# Unrelated hex-looking text (addresses, hashes) can match too.
HEX_CODE_RE = re.compile(r"0x[a-fA-F0-9]{8}")

INVALID_RESPONSE_MESSAGE = "Invalid response format"
UNKNOWN_SDK_MESSAGE = "Unknown SDK error"


@dataclass(frozen=True)
class ErrorSpec:
    """One row of the error code registry."""
    code: str
    message: str
    http_status: int


# (symbolic name, SDK hex code, message, http status)
SDK_ERRORS = (
    ("BUCKET_ALREADY_EXISTS", "0x497ef2c2", "Bucket already exists", HTTP_CONFLICT),
    ("BUCKET_INVALID", "0x4f4b202a", "Invalid bucket name", HTTP_BAD_REQUEST),
    ("BUCKET_INVALID_OWNER", "0xdc64d0ad", "Invalid bucket owner", HTTP_FORBIDDEN),
    ("BUCKET_NONEXISTS", "0x938a92b7", "Bucket does not exist", HTTP_NOT_FOUND),
    ("BUCKET_NONEMPTY", "0x89fddc00", "Bucket is not empty", HTTP_BAD_REQUEST),
    ("FILE_ALREADY_EXISTS", "0x6891dde0", "File already exists", HTTP_CONFLICT),
    ("FILE_INVALID", "0x77a3cbd8", "Invalid file name", HTTP_BAD_REQUEST),
    ("FILE_NONEXISTS", "0x21584586", "File does not exist", HTTP_NOT_FOUND),
    ("FILE_NONEMPTY", "0xc4a3b6f1", "File is not empty", HTTP_BAD_REQUEST),
    ("FILE_NAME_DUPLICATE", "0xd09ec7af", "Duplicate file name", HTTP_CONFLICT),
    ("FILE_FULLY_UPLOADED", "0xd96b03b1", "File is already fully uploaded", HTTP_CONFLICT),
    ("FILE_CHUNK_DUPLICATE", "0x702cf740", "Duplicate file chunk", HTTP_CONFLICT),
    ("BLOCK_ALREADY_EXISTS", "0xc1edd16a", "Block already exists", HTTP_CONFLICT),
    ("BLOCK_INVALID", "0xcb20e88c", "Invalid block", HTTP_BAD_REQUEST),
    ("BLOCK_NONEXISTS", "0x15123121", "Block not found", HTTP_NOT_FOUND),
    ("INVALID_ARRAY_LENGTH", "0x856b300d", "Invalid array length", HTTP_BAD_REQUEST),
    ("INVALID_FILE_BLOCKS_COUNT", "0x17ec8370", "Invalid file blocks count", HTTP_BAD_REQUEST),
    ("INVALID_LAST_BLOCK_SIZE", "0x5660ebd2", "Invalid last block size", HTTP_BAD_REQUEST),
    ("INVALID_ENCODED_SIZE", "0x1b6fdfeb", "Invalid encoded size", HTTP_BAD_REQUEST),
    ("INVALID_FILE_CID", "0xfe33db92", "Invalid file CID", HTTP_BAD_REQUEST),
    ("INDEX_MISMATCH", "0x37c7f255", "Index mismatch", HTTP_BAD_REQUEST),
    ("NO_POLICY", "0xcefa6b05", "No policy found", HTTP_NOT_FOUND),
)

GATEWAY_ERRORS = (
    (VALIDATION_ERROR, "Invalid input parameters", HTTP_BAD_REQUEST),
    (SYSTEM_ERROR, "Internal system error", HTTP_INTERNAL_SERVER_ERROR),
    (UNKNOWN_ERROR, "An unexpected error occurred", HTTP_INTERNAL_SERVER_ERROR),
    (RANGE_ERROR, "Requested range not satisfiable", HTTP_RANGE_NOT_SATISFIABLE),
    (STREAM_ERROR, "Error occurred while streaming file", HTTP_INTERNAL_SERVER_ERROR),
    (FILE_TOO_LARGE, "Uploaded file is too large", HTTP_PAYLOAD_TOO_LARGE),
    (COMMAND_TIMEOUT, "Storage command timed out", HTTP_GATEWAY_TIMEOUT),
)


class ErrorRegistry:
    """Read-only table of error codes.

    Both the symbolic name and the SDK hex code of an SDK error resolve to
    the same message and status; the returned ErrorSpec keeps the code
    that was asked for.
    """

    def __init__(self, entries: Mapping[str, ErrorSpec], names: Mapping[str, str] = None):
        self._entries = MappingProxyType(dict(entries))
        # symbolic name -> hex code
        self._hex_by_name = MappingProxyType(dict(names or {}))

    def __contains__(self, code: str) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, code: str) -> Optional[ErrorSpec]:
        """Return the registry row for code, or None if unknown."""
        return self._entries.get(code)

    def resolve(self, code: str) -> ErrorSpec:
        """Return the row for code; unknown codes get the UNKNOWN_ERROR status."""
        spec = self._entries.get(code)
        if spec is not None:
            return spec
        fallback = self._entries[UNKNOWN_ERROR]
        return ErrorSpec(code=code, message=fallback.message, http_status=fallback.http_status)

    def status_for(self, code: str) -> int:
        return self.resolve(code).http_status

    def hex_for(self, name: str) -> Optional[str]:
        """Return the SDK hex code for a symbolic name."""
        return self._hex_by_name.get(name)


def default_registry() -> ErrorRegistry:
    """Build the standard registry (SDK errors plus gateway-level codes)."""
    entries = {}
    names = {}
    for name, hex_code, message, status in SDK_ERRORS:
        entries[name] = ErrorSpec(code=name, message=message, http_status=status)
        entries[hex_code] = ErrorSpec(code=hex_code, message=message, http_status=status)
        names[name] = hex_code
    for name, message, status in GATEWAY_ERRORS:
        entries[name] = ErrorSpec(code=name, message=message, http_status=status)
    return ErrorRegistry(entries, names)


@dataclass(frozen=True)
class ClassifiedError:
    """Uniform error value produced by the classifier."""
    code: str
    message: str
    http_status: int
    details: Any = None
    original_error: Optional[BaseException] = field(default=None, compare=False, repr=False)
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    def to_dict(self) -> dict:
        d = {"code": self.code, "message": self.message}
        if self.details is not None:
            d["details"] = self.details
        return d


class GatewayError(Exception):
    """Raised for every failure that crosses the executor/client boundary."""

    def __init__(self, error: ClassifiedError):
        super().__init__(error.message)
        self.error = error

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def http_status(self) -> int:
        return self.error.http_status

    @property
    def details(self) -> Any:
        return self.error.details

    def to_dict(self) -> dict:
        return self.error.to_dict()


class ParseError(Exception):
    """Raised when CLI output does not match the grammar for its parser kind."""

    def __init__(self, message: str, kind=None, output: str = ""):
        super().__init__(message)
        self.kind = kind
        self.output = output


def make_error(
    code: str,
    registry: ErrorRegistry,
    message: str = None,
    details: Any = None,
    original_error: BaseException = None,
) -> ClassifiedError:
    """Build a ClassifiedError whose status always comes from the registry."""
    spec = registry.resolve(code)
    if message is None:
        known = registry.get(code)
        message = known.message if known else UNKNOWN_SDK_MESSAGE
    return ClassifiedError(
        code=code,
        message=message,
        http_status=spec.http_status,
        details=details,
        original_error=original_error,
    )


def validation_error(
    registry: ErrorRegistry, message: str, details: Any = None
) -> GatewayError:
    """Build (not raise) a VALIDATION_ERROR for bad caller input."""
    return GatewayError(make_error(VALIDATION_ERROR, registry, message=message, details=details))


def find_hex_code(text: str) -> Optional[str]:
    """Return the first embedded 8-hex-digit SDK code in text, if any."""
    if not text:
        return None
    match = HEX_CODE_RE.search(text)
    return match.group(0) if match else None


def find_literal_signal(text: str) -> Optional[str]:
    """Return the symbolic code for a known failure substring in text."""
    if not text:
        return None
    for needle, code in LITERAL_SIGNALS:
        if needle in text:
            return code
    return None


def classify_stderr(stderr: str, registry: ErrorRegistry) -> Optional[ClassifiedError]:
    """Classify CLI stderr: embedded hex code first, then literal substrings.

    Returns None when stderr carries no recognizable failure signal.
    """
    hex_code = find_hex_code(stderr)
    if hex_code:
        return make_error(hex_code, registry, details=stderr.strip())
    literal = find_literal_signal(stderr)
    if literal:
        return make_error(literal, registry, details=stderr.strip())
    return None


def parse_failure(
    registry: ErrorRegistry, exc: ParseError, output: str = ""
) -> ClassifiedError:
    """Wrap a parser failure as an invalid response format error."""
    details = {"reason": str(exc)}
    raw = exc.output or output
    if raw:
        details["output"] = raw
    if exc.kind is not None:
        details["parser"] = getattr(exc.kind, "value", str(exc.kind))
    return make_error(
        "BUCKET_INVALID",
        registry,
        message=INVALID_RESPONSE_MESSAGE,
        details=details,
        original_error=exc,
    )


def system_error(registry: ErrorRegistry, exc: OSError, binary: str = None) -> ClassifiedError:
    """Classify a failure to start the CLI process."""
    if isinstance(exc, FileNotFoundError):
        name = binary or exc.filename or "command"
        message = f"Command not found: {name}. Please ensure it is installed correctly."
    elif isinstance(exc, PermissionError):
        name = binary or exc.filename or "command"
        message = f"Permission denied running {name}"
    else:
        message = registry.resolve(SYSTEM_ERROR).message
    return make_error(SYSTEM_ERROR, registry, message=message, details=str(exc), original_error=exc)


def classify_exception(
    exc: BaseException, registry: ErrorRegistry, output: str = "", binary: str = None
) -> ClassifiedError:
    """Map any exception to exactly one ClassifiedError.

    Precedence: already classified > embedded hex code > literal substring >
    validation marker > parse failure > system error > UNKNOWN_ERROR.
    """
    if isinstance(exc, GatewayError):
        return exc.error

    text = str(exc)

    hex_code = find_hex_code(text)
    if hex_code:
        return make_error(hex_code, registry, details=text, original_error=exc)

    literal = find_literal_signal(text)
    if literal:
        return make_error(literal, registry, details=text, original_error=exc)

    if getattr(exc, "code", None) == VALIDATION_ERROR:
        return make_error(
            VALIDATION_ERROR, registry, message=text or None,
            details=getattr(exc, "details", None), original_error=exc,
        )

    if isinstance(exc, ParseError):
        return parse_failure(registry, exc, output)

    if isinstance(exc, OSError):
        return system_error(registry, exc, binary)

    return make_error(
        UNKNOWN_ERROR,
        registry,
        message=text or None,
        details=output or None,
        original_error=exc,
    )
