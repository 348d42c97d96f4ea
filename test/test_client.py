# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# test/test_client.py

"""Tests for IPCClient argument building and input validation."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from ipc_gateway.client import IPCClient, build_executor
from ipc_gateway.config import GatewayConfig
from ipc_gateway.errors import GatewayError, default_registry
from ipc_gateway.types import ParserKind


KEY = "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
CREDS = ["--node-address=node.test:5500", f"--private-key={KEY}"]


@pytest.fixture
def config():
    return GatewayConfig(node_address="node.test:5500", private_key="0x" + KEY)


@pytest.fixture
def executor():
    fake = MagicMock()
    fake.registry = default_registry()
    fake.run = AsyncMock(return_value="ok")
    return fake


@pytest.fixture
def client(config, executor):
    return IPCClient(config, executor=executor)


def call(executor):
    """(args, kind, kwargs) of the single executor.run call."""
    executor.run.assert_awaited_once()
    args, kwargs = executor.run.await_args
    return args[0], args[1], kwargs


class TestArguments:
    async def test_create_bucket(self, client, executor):
        await client.create_bucket("mybucket")
        args, kind, kwargs = call(executor)
        assert args == ["ipc", "bucket", "create", "mybucket", *CREDS]
        assert kind == ParserKind.CREATE_BUCKET
        assert kwargs == {"track_transaction": True, "address": ADDRESS}

    async def test_delete_bucket(self, client, executor):
        await client.delete_bucket("mybucket")
        args, kind, kwargs = call(executor)
        assert args == ["ipc", "bucket", "delete", "mybucket", *CREDS]
        assert kind == ParserKind.DELETE_BUCKET
        assert kwargs["track_transaction"] is True

    async def test_view_bucket(self, client, executor):
        await client.view_bucket("mybucket")
        args, kind, kwargs = call(executor)
        assert args == ["ipc", "bucket", "view", "mybucket", *CREDS]
        assert kind == ParserKind.VIEW_BUCKET
        assert kwargs == {}

    async def test_list_buckets(self, client, executor):
        await client.list_buckets()
        args, kind, _ = call(executor)
        assert args == ["ipc", "bucket", "list", *CREDS]
        assert kind == ParserKind.LIST_BUCKETS

    async def test_list_files(self, client, executor):
        await client.list_files("mybucket")
        args, kind, _ = call(executor)
        assert args == ["ipc", "file", "list", "mybucket", *CREDS]
        assert kind == ParserKind.LIST_FILES

    async def test_file_info(self, client, executor):
        await client.file_info("mybucket", "a.txt")
        args, kind, _ = call(executor)
        assert args == ["ipc", "file", "info", "mybucket", "a.txt", *CREDS]
        assert kind == ParserKind.FILE_INFO

    async def test_upload_file(self, client, executor):
        await client.upload_file("mybucket", Path("/tmp/akave-x/a.txt"))
        args, kind, kwargs = call(executor)
        assert args == ["ipc", "file", "upload", "mybucket", "/tmp/akave-x/a.txt", *CREDS]
        assert kind == ParserKind.UPLOAD_FILE
        assert kwargs["track_transaction"] is True

    async def test_download_file(self, client, executor):
        await client.download_file("mybucket", "a.txt", Path("/tmp/akave-y"))
        args, kind, _ = call(executor)
        assert args == ["ipc", "file", "download", "mybucket", "a.txt", "/tmp/akave-y", *CREDS]
        assert kind == ParserKind.DOWNLOAD_FILE

    async def test_fresh_argument_list_per_call(self, client, executor):
        await client.list_buckets()
        await client.list_buckets()
        first, second = [c.args[0] for c in executor.run.await_args_list]
        assert first == second
        assert first is not second

    async def test_result_passed_through(self, client, executor):
        executor.run.return_value = ["a", "b"]
        assert await client.list_buckets() == ["a", "b"]


class TestValidation:
    @pytest.mark.parametrize("name", [None, "", "   ", 42])
    async def test_bucket_name_required(self, client, executor, name):
        with pytest.raises(GatewayError) as exc_info:
            await client.create_bucket(name)
        err = exc_info.value
        assert err.code == "VALIDATION_ERROR"
        assert err.http_status == 400
        assert err.message == "Invalid bucket name"
        assert err.details == {"field": "bucketName", "type": "required"}
        executor.run.assert_not_awaited()

    async def test_file_name_required(self, client, executor):
        with pytest.raises(GatewayError) as exc_info:
            await client.file_info("mybucket", "")
        err = exc_info.value
        assert err.message == "Invalid input parameters"
        assert err.details == [{"field": "fileName", "type": "required"}]
        executor.run.assert_not_awaited()

    async def test_both_missing(self, client, executor):
        with pytest.raises(GatewayError) as exc_info:
            await client.download_file("", None, "/tmp")
        fields = [e["field"] for e in exc_info.value.details]
        assert fields == ["bucketName", "fileName"]

    async def test_upload_path_required(self, client, executor):
        with pytest.raises(GatewayError) as exc_info:
            await client.upload_file("mybucket", "")
        assert exc_info.value.details == [{"field": "filePath", "type": "required"}]
        executor.run.assert_not_awaited()


class TestAddress:
    def test_derived_from_key(self, client):
        assert client.address == ADDRESS

    def test_no_key(self, executor):
        client = IPCClient(GatewayConfig(node_address="n"), executor=executor)
        assert client.address is None

    def test_bad_key_is_none(self, executor):
        client = IPCClient(GatewayConfig(node_address="n", private_key="nothex"), executor=executor)
        assert client.address is None


class TestBuildExecutor:
    def test_without_rpc(self, config):
        executor = build_executor(config)
        assert executor.tx_lookup is None
        assert executor.binary == "akavecli"

    def test_with_rpc_and_timeout(self):
        config = GatewayConfig(
            node_address="n", private_key=KEY, rpc_url="http://rpc.test",
            command_timeout=30, binary="/opt/akavecli",
        )
        executor = build_executor(config)
        assert executor.tx_lookup is not None
        assert executor.timeout == 30
        assert executor.binary == "/opt/akavecli"

    def test_shares_registry(self, config):
        registry = default_registry()
        executor = build_executor(config, registry)
        assert executor.registry is registry
        assert executor.parser.registry is registry
