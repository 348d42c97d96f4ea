# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/api.py

"""
Storage Gateway API
Provides REST API for bucket and file operations on the storage network.

Handlers are thin: they call IPCClient and wrap the result as
{"success": true, "data": ...}. Every failure is a GatewayError answered as
{"success": false, "error": {code, message, details}} with its registry status.
"""

import logging
import re
import secrets
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from pydantic_settings import BaseSettings
from starlette.background import BackgroundTask

from ipc_gateway.client import IPCClient
from ipc_gateway.config import load_config
from ipc_gateway.errors import (
    FILE_TOO_LARGE,
    HTTP_OK,
    RANGE_ERROR,
    STREAM_ERROR,
    VALIDATION_ERROR,
    ErrorRegistry,
    GatewayError,
    classify_exception,
    make_error,
)
from ipc_gateway.types import to_payload


TEMP_PREFIX = "akave-"
STREAM_CHUNK_SIZE = 64 * 1024
MULTIPART_OVERHEAD = 16 * 1024
VERSION = "0.1.0"

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    config_file: Optional[str] = None
    cors_origin: str = "*"
    max_upload_bytes: int = 50 * 1024 * 1024
    download_dir: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3000


# ============================================================================
# MODELS
# ============================================================================

class CreateBucketRequest(BaseModel):
    bucketName: Optional[str] = None


# ============================================================================
# HELPERS
# ============================================================================

def normalize_file_name(file_name: str) -> str:
    """Replace anything but letters, digits, '.' and '-' with '_'."""
    return re.sub(r"[^a-zA-Z0-9.-]", "_", file_name)


def request_id() -> str:
    return secrets.token_hex(3)


def success(data) -> dict:
    return {"success": True, "data": to_payload(data)}


def error_response(error) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status,
        content={"success": False, "error": error.to_dict()},
    )


def parse_range(header: Optional[str], size: int, registry: ErrorRegistry) -> Optional[tuple[int, int]]:
    """
    Parse a single 'bytes=start-end' Range header.

    Returns:
        (start, end) inclusive, or None to serve the whole file
        (no header, or a header we don't understand)

    Raises:
        GatewayError: RANGE_ERROR when the range cannot be satisfied
    """
    if not header:
        return None
    header = header.strip()
    if not header.startswith("bytes=") or "-" not in header or "," in header:
        return None

    start_text, _, end_text = header[len("bytes="):].partition("-")
    start_text = start_text.strip()
    end_text = end_text.strip()

    unsatisfiable = GatewayError(
        make_error(RANGE_ERROR, registry, details={"range": header, "size": size})
    )
    try:
        if not start_text:
            # suffix range: last N bytes
            length = int(end_text)
            if length <= 0 or size == 0:
                raise unsatisfiable
            return max(size - length, 0), size - 1
        start = int(start_text)
        end = int(end_text) if end_text else size - 1
    except ValueError:
        raise unsatisfiable

    if start < 0 or start >= size or end >= size or start > end:
        raise unsatisfiable
    return start, end


def iter_file(path: Path, start: int, end: int):
    """Yield bytes start..end (inclusive) of path."""
    remaining = end - start + 1
    with open(path, "rb") as f:
        f.seek(start)
        while remaining > 0:
            chunk = f.read(min(STREAM_CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def remove_tree(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)


async def save_upload(upload: UploadFile, dest: Path, max_bytes: int, registry: ErrorRegistry) -> int:
    """Copy an uploaded body to dest, refusing bodies over max_bytes.

    By the time this runs Starlette has already spooled the multipart body
    to its own temp file, so this bounds what reaches the CLI, not what the
    gateway buffers. limit_upload_size rejects declared oversize bodies
    before they are read; chunked bodies without Content-Length are only
    caught here.
    """
    written = 0
    with open(dest, "wb") as f:
        while True:
            chunk = await upload.read(STREAM_CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                raise GatewayError(
                    make_error(
                        FILE_TOO_LARGE,
                        registry,
                        details={"limit": max_bytes, "filename": upload.filename},
                    )
                )
            f.write(chunk)
    return written


def _find_download(directory: Path, file_name: str) -> Optional[Path]:
    for candidate in (file_name, normalize_file_name(file_name)):
        path = directory / candidate
        if path.parent == directory and path.is_file():
            return path
    return None


# ============================================================================
# APP
# ============================================================================

def create_app(settings: Settings = None, client: IPCClient = None) -> FastAPI:
    """Build the FastAPI app; client defaults to one built from the config file."""
    settings = settings or Settings()
    if client is None:
        client = IPCClient(load_config(settings.config_file))
        errors, warnings = client.config.validate()
        for w in warnings:
            logger.warning(f"Config: {w}")
        for e in errors:
            logger.error(f"Config: {e}")

    app = FastAPI(title="Storage Gateway API", version=VERSION)
    app.state.settings = settings
    app.state.client = client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origin.split(",")],
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
        allow_headers=["*"],
    )

    logger.info(
        f"Initializing client: node_address={client.config.node_address}, "
        f"private_key_length={len(client.config.private_key or '')}"
    )

    register_error_handlers(app)
    register_upload_limit(app)
    register_routes(app)
    return app


def get_client(request: Request) -> IPCClient:
    return request.app.state.client


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def register_upload_limit(app: FastAPI) -> None:

    @app.middleware("http")
    async def limit_upload_size(request: Request, call_next):
        """Answer 413 from Content-Length before the multipart body is read."""
        if request.method == "POST" and request.url.path.endswith("/files"):
            limit = request.app.state.settings.max_upload_bytes
            declared = request.headers.get("content-length", "")
            # allowance for multipart boundaries and part headers
            if declared.isdigit() and int(declared) > limit + MULTIPART_OVERHEAD:
                registry = request.app.state.client.registry
                logger.warning(f"Rejecting upload of {declared} bytes (limit {limit})")
                return error_response(
                    make_error(
                        FILE_TOO_LARGE,
                        registry,
                        details={"limit": limit, "contentLength": int(declared)},
                    )
                )
        return await call_next(request)


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(_request: Request, exc: GatewayError) -> JSONResponse:
        logger.warning(f"{exc.code} ({exc.http_status}): {exc.message}")
        return error_response(exc.error)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        registry = request.app.state.client.registry
        details = [
            {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "type": e.get("type")}
            for e in exc.errors()
        ]
        return error_response(make_error(VALIDATION_ERROR, registry, details=details))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        registry = request.app.state.client.registry
        return error_response(classify_exception(exc, registry))


def register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # -- buckets ----------------------------------------------------------

    @app.post("/buckets")
    async def create_bucket(body: CreateBucketRequest, client: IPCClient = Depends(get_client)):
        return success(await client.create_bucket(body.bucketName))

    @app.get("/buckets")
    async def list_buckets(client: IPCClient = Depends(get_client)):
        return success(await client.list_buckets())

    @app.get("/buckets/{bucket_name}")
    async def view_bucket(bucket_name: str, client: IPCClient = Depends(get_client)):
        return success(await client.view_bucket(bucket_name))

    @app.delete("/buckets/{bucket_name}")
    async def delete_bucket(bucket_name: str, client: IPCClient = Depends(get_client)):
        return success(await client.delete_bucket(bucket_name))

    # -- files ------------------------------------------------------------

    @app.get("/buckets/{bucket_name}/files")
    async def list_files(bucket_name: str, client: IPCClient = Depends(get_client)):
        return success(await client.list_files(bucket_name))

    @app.get("/buckets/{bucket_name}/files/{file_name}")
    async def file_info(bucket_name: str, file_name: str, client: IPCClient = Depends(get_client)):
        return success(await client.file_info(bucket_name, file_name))

    @app.post("/buckets/{bucket_name}/files")
    async def upload_file(
        bucket_name: str,
        file: Optional[UploadFile] = File(None),
        file1: Optional[UploadFile] = File(None),
        filePath: Optional[str] = Form(None),
        client: IPCClient = Depends(get_client),
        settings: Settings = Depends(get_settings),
    ):
        """
        Upload a file to a bucket.

        Either a multipart body (field 'file' or 'file1'), buffered to a
        per-request temp directory that is always removed, or a 'filePath'
        form field naming a file already on the gateway host.
        """
        rid = request_id()
        logger.info(f"[{rid}] Processing file upload request: bucket={bucket_name}")
        client.validate_bucket(bucket_name)

        uploaded = file or file1
        if uploaded is not None:
            logger.info(f"[{rid}] Handling buffer upload: filename={uploaded.filename}")
            temp_dir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=settings.download_dir))
            try:
                temp_path = temp_dir / normalize_file_name(uploaded.filename or "upload")
                await save_upload(uploaded, temp_path, settings.max_upload_bytes, client.registry)
                result = await client.upload_file(bucket_name, temp_path)
            finally:
                remove_tree(temp_dir)
        elif filePath:
            logger.info(f"[{rid}] Handling file path upload: path={filePath}")
            result = await client.upload_file(bucket_name, filePath)
        else:
            raise GatewayError(
                make_error(
                    "FILE_INVALID",
                    client.registry,
                    message="No file uploaded",
                    details={"field": "file"},
                )
            )

        logger.info(f"[{rid}] File upload completed")
        return success(result)

    @app.get("/buckets/{bucket_name}/files/{file_name}/download")
    async def download_file(
        bucket_name: str,
        file_name: str,
        request: Request,
        client: IPCClient = Depends(get_client),
        settings: Settings = Depends(get_settings),
    ):
        """
        Download a file and stream it back.

        Honours a single 'Range: bytes=start-end' header. The per-request
        temp directory is removed once the body has been sent, or right
        away if anything fails before streaming starts.
        """
        rid = request_id()
        logger.info(f"[{rid}] Processing download request: bucket={bucket_name} file={file_name}")
        client.validate_file(bucket_name, file_name)

        temp_dir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=settings.download_dir))
        handed_off = False
        try:
            await client.download_file(bucket_name, file_name, temp_dir)

            path = _find_download(temp_dir, file_name)
            if path is None:
                raise GatewayError(
                    make_error(
                        STREAM_ERROR,
                        client.registry,
                        message="File download failed or file is not readable",
                        details={"file": file_name},
                    )
                )

            size = path.stat().st_size
            byte_range = parse_range(request.headers.get("range"), size, client.registry)

            headers = {
                "Accept-Ranges": "bytes",
                "Content-Disposition": f'attachment; filename="{file_name}"',
            }
            status_code = HTTP_OK
            if byte_range is None:
                start, end = 0, size - 1
            else:
                start, end = byte_range
                status_code = 206
                headers["Content-Range"] = f"bytes {start}-{end}/{size}"
            headers["Content-Length"] = str(max(end - start + 1, 0))

            logger.info(f"[{rid}] Starting file stream: bytes {start}-{end}/{size}")
            response = StreamingResponse(
                iter_file(path, start, end),
                status_code=status_code,
                media_type="application/octet-stream",
                headers=headers,
                background=BackgroundTask(remove_tree, temp_dir),
            )
            handed_off = True
            return response
        finally:
            if not handed_off:
                remove_tree(temp_dir)


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    # built by uvicorn on startup
    uvicorn.run(
        "ipc_gateway.api:create_app", factory=True, host=settings.host, port=settings.port
    )
