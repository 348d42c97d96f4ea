# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# test/test_cli.py

"""Tests for the command line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

import ipc_gateway.api as api_module
from ipc_gateway.cli import cli
from ipc_gateway.errors import GatewayError, default_registry, make_error
from ipc_gateway.types import BucketRecord


KEY = "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "gateway.toml"
    path.write_text(f"""
[node]
address = "node.test:5500"
private_key = "{KEY}"
""")
    return path


@pytest.fixture
def client():
    with patch("ipc_gateway.cli.IPCClient") as cls:
        yield cls.return_value


class TestCommands:
    def test_bucket_create(self, runner, config_file, client, monkeypatch):
        monkeypatch.delenv("PRIVATE_KEY", raising=False)
        client.create_bucket = AsyncMock(return_value=BucketRecord(name="b1", owner="0x1"))

        result = runner.invoke(cli, ["bucket", "create", "b1", "--config-file", str(config_file)])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"Name": "b1", "Owner": "0x1"}
        client.create_bucket.assert_awaited_once_with("b1")

    def test_bucket_list(self, runner, config_file, client):
        client.list_buckets = AsyncMock(return_value=[BucketRecord(name="a"), BucketRecord(name="b")])
        result = runner.invoke(cli, ["bucket", "list", "--config-file", str(config_file)])
        assert result.exit_code == 0, result.output
        assert [b["Name"] for b in json.loads(result.output)] == ["a", "b"]

    def test_file_download_creates_destination(self, runner, config_file, client, tmp_path):
        client.download_file = AsyncMock(return_value="File downloaded successfully")
        dest = tmp_path / "out" / "nested"

        result = runner.invoke(
            cli, ["file", "download", "b1", "a.txt", str(dest), "--config-file", str(config_file)]
        )

        assert result.exit_code == 0, result.output
        assert dest.is_dir()
        client.download_file.assert_awaited_once_with("b1", "a.txt", dest)

    def test_gateway_error_exits_1(self, runner, config_file, client):
        client.view_bucket = AsyncMock(
            side_effect=GatewayError(make_error("BUCKET_NONEXISTS", default_registry()))
        )
        result = runner.invoke(cli, ["bucket", "view", "nope", "--config-file", str(config_file)])
        assert result.exit_code == 1
        assert "BUCKET_NONEXISTS: Bucket does not exist" in result.output

    def test_invalid_config_exits_1(self, runner, tmp_path, client, monkeypatch):
        monkeypatch.delenv("PRIVATE_KEY", raising=False)
        monkeypatch.delenv("NODE_ADDRESS", raising=False)
        path = tmp_path / "gateway.toml"
        path.write_text("[cli]\nbinary = 'akavecli'\n")

        result = runner.invoke(cli, ["bucket", "list", "--config-file", str(path)])

        assert result.exit_code == 1
        assert "Invalid config" in result.output


class TestCheckConfig:
    def test_valid_with_warnings(self, runner, config_file):
        result = runner.invoke(cli, ["check-config", "--config-file", str(config_file)])
        assert result.exit_code == 0
        assert "node.test:5500" in result.output
        assert KEY not in result.output
        assert "Warnings:" in result.output

    def test_errors(self, runner, tmp_path, monkeypatch):
        monkeypatch.delenv("PRIVATE_KEY", raising=False)
        monkeypatch.delenv("NODE_ADDRESS", raising=False)
        path = tmp_path / "gateway.toml"
        path.write_text("[node]\naddress = 'n:5500'\n")
        result = runner.invoke(cli, ["check-config", "--config-file", str(path)])
        assert result.exit_code == 1
        assert "private key is not set" in result.output


class TestServe:
    def test_builds_one_app(self, runner, config_file, monkeypatch):
        monkeypatch.setenv("CONFIG_FILE", str(config_file))
        monkeypatch.delenv("NODE_ADDRESS", raising=False)
        with patch("uvicorn.run") as run, patch(
            "ipc_gateway.api.create_app", wraps=api_module.create_app
        ) as factory:
            result = runner.invoke(cli, ["serve", "--port", "8123"])

        assert result.exit_code == 0, result.output
        factory.assert_called_once()
        app = run.call_args.args[0]
        assert app.state.client.config.node_address == "node.test:5500"
        assert run.call_args.kwargs["port"] == 8123
