"""Tests for the certsync command line."""

import json
import logging

import pytest
from typer.testing import CliRunner
from unittest.mock import AsyncMock, MagicMock, patch

from certsync.blobs.exceptions import AggregateUploadError, BlobNotFoundError
from certsync.blobs.models import DownloadedBlob
from certsync.cli import EXIT_INPUT_ERROR, EXIT_QUERY_FAILURE, EXIT_STORE_FAILURE, app
from certsync.ledger.exceptions import LedgerQueryError
from certsync.ledger.models import LocatorResult
from certsync.persistence import db as db_module
from certsync.persistence.db import reset_database

from conftest import OWNER, make_object

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_environment(tmp_path, monkeypatch):
    """Point the CLI at a temporary database and restore logging afterwards."""
    monkeypatch.setattr(db_module, "DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    reset_database()
    yield
    reset_database()
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def invoke(tmp_path, *args):
    base = ["--log-level", "CRITICAL", "--log-file", str(tmp_path / "cli.log")]
    return runner.invoke(app, [*base, *args])


def locator_mock(result=None, error=None) -> MagicMock:
    locator = MagicMock()
    locator.locate = AsyncMock(return_value=result, side_effect=error)
    locator.resolve_transaction_id = AsyncMock(return_value="tx-1")
    return locator


# =============================================================================
# Hidden set
# =============================================================================


class TestHiddenCommands:
    """Tests for hide/unhide/hidden/unhide-all."""

    def test_hide_persists(self, tmp_path):
        result = invoke(tmp_path, "hide", "0xabc")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"hidden": ["0xabc"]}

        listed = invoke(tmp_path, "hidden")
        assert json.loads(listed.stdout) == {"hidden": ["0xabc"]}

    def test_unhide(self, tmp_path):
        invoke(tmp_path, "hide", "0x1")
        invoke(tmp_path, "hide", "0x2")
        result = invoke(tmp_path, "unhide", "0x1")
        assert json.loads(result.stdout) == {"hidden": ["0x2"]}

    def test_unhide_all(self, tmp_path):
        invoke(tmp_path, "hide", "0x1")
        invoke(tmp_path, "hide", "0x2")
        result = invoke(tmp_path, "unhide-all")
        assert json.loads(result.stdout) == {"cleared": 2, "hidden": []}
        assert json.loads(invoke(tmp_path, "hidden").stdout) == {"hidden": []}


# =============================================================================
# Ledger commands
# =============================================================================


class TestLedgerCommands:
    """Tests for list and reconcile."""

    def test_list(self, tmp_path):
        locator = locator_mock(LocatorResult(objects=[make_object("0xgit", "Git Expert")], failures=[]))
        with patch("certsync.ledger.LedgerObjectLocator", return_value=locator):
            result = invoke(tmp_path, "list", OWNER)

        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout)
        assert body["owner"] == OWNER
        assert body["objects"][0]["object_id"] == "0xgit"
        assert body["failures"] == []

    def test_list_query_failure(self, tmp_path):
        locator = locator_mock(error=LedgerQueryError("node down"))
        with patch("certsync.ledger.LedgerObjectLocator", return_value=locator):
            result = invoke(tmp_path, "list", OWNER)

        assert result.exit_code == EXIT_QUERY_FAILURE

    def test_reconcile(self, tmp_path):
        objects = [
            make_object("0xgit", "Git Expert", "CertHub Academy", "blob-git"),
            make_object("0xstray", "Cooking Basics", "Kitchen U", "blob-x"),
        ]
        locator = locator_mock(LocatorResult(objects=objects, failures=[]))
        with patch("certsync.ledger.LedgerObjectLocator", return_value=locator):
            result = invoke(tmp_path, "reconcile", OWNER)

        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout)
        record = body["records"][0]
        assert record["descriptor_id"] == "3"
        assert record["title"] == "Git Expert"
        assert record["tier"] == "exact"
        assert record["transaction_id"] == "tx-1"
        assert body["unmatched"] == ["0xstray"]
        assert body["hidden"] == 0

    def test_reconcile_hides_hidden_objects(self, tmp_path):
        invoke(tmp_path, "hide", "0xgit")
        objects = [make_object("0xgit", "Git Expert", "CertHub Academy", "blob-git")]
        locator = locator_mock(LocatorResult(objects=objects, failures=[]))
        with patch("certsync.ledger.LedgerObjectLocator", return_value=locator):
            result = invoke(tmp_path, "reconcile", OWNER, "--no-transactions")

        body = json.loads(result.stdout)
        assert body["records"] == []
        assert body["hidden"] == 1
        locator.resolve_transaction_id.assert_not_called()

    def test_reconcile_custom_catalog(self, tmp_path):
        catalog = tmp_path / "catalog.json"
        catalog.write_text(json.dumps([{"id": "rust", "title": "Rust Systems Programming", "issuer": "Ferris U"}]))
        objects = [make_object("0xr", "Rust Systems Programming", "Ferris U", "blob-r")]
        locator = locator_mock(LocatorResult(objects=objects, failures=[]))
        with patch("certsync.ledger.LedgerObjectLocator", return_value=locator):
            result = invoke(tmp_path, "reconcile", OWNER, "--catalog", str(catalog))

        assert json.loads(result.stdout)["records"][0]["descriptor_id"] == "rust"

    def test_reconcile_bad_catalog(self, tmp_path):
        catalog = tmp_path / "catalog.json"
        catalog.write_text("{}")
        result = invoke(tmp_path, "reconcile", OWNER, "--catalog", str(catalog))
        assert result.exit_code == EXIT_INPUT_ERROR


# =============================================================================
# Blob commands
# =============================================================================


class TestBlobCommands:
    """Tests for upload, download and prune-cache."""

    def test_upload(self, tmp_path):
        source = tmp_path / "cert.pdf"
        source.write_bytes(b"%PDF-1.7 cert")
        client = MagicMock()
        client.upload = AsyncMock(return_value="blob-123")
        with patch("certsync.blobs.BlobStoreClient", return_value=client):
            result = invoke(tmp_path, "upload", str(source))

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["content_address"] == "blob-123"
        client.upload.assert_awaited_once_with(b"%PDF-1.7 cert", "application/pdf")

    def test_upload_failure(self, tmp_path):
        source = tmp_path / "cert.pdf"
        source.write_bytes(b"data")
        client = MagicMock()
        client.upload = AsyncMock(side_effect=AggregateUploadError([]))
        with patch("certsync.blobs.BlobStoreClient", return_value=client):
            result = invoke(tmp_path, "upload", str(source))

        assert result.exit_code == EXIT_STORE_FAILURE

    def test_download_then_cache_hit(self, tmp_path):
        client = MagicMock()
        client.download = AsyncMock(return_value=DownloadedBlob("blob-1", b"%PDF-1.7 cert", "pdf"))
        out_dir = tmp_path / "out"
        out_dir.mkdir()
        with patch("certsync.blobs.BlobStoreClient", return_value=client):
            first = invoke(tmp_path, "download", "blob-1", "--out", str(out_dir), "--title", "Git Expert")
            second = invoke(tmp_path, "download", "blob-1", "--out", str(out_dir / "copy.pdf"))

        assert first.exit_code == 0, first.output
        body = json.loads(first.stdout)
        assert body["from_cache"] is False
        assert (out_dir / "Git_Expert_walrus.pdf").read_bytes() == b"%PDF-1.7 cert"

        assert json.loads(second.stdout)["from_cache"] is True
        assert (out_dir / "copy.pdf").read_bytes() == b"%PDF-1.7 cert"
        assert client.download.await_count == 1

    def test_download_not_found(self, tmp_path):
        client = MagicMock()
        client.download = AsyncMock(side_effect=BlobNotFoundError("missing"))
        with patch("certsync.blobs.BlobStoreClient", return_value=client):
            result = invoke(tmp_path, "download", "missing")

        assert result.exit_code == EXIT_STORE_FAILURE

    def test_prune_requires_bound(self, tmp_path):
        assert invoke(tmp_path, "prune-cache").exit_code == EXIT_INPUT_ERROR

    def test_prune_cache(self, tmp_path):
        result = invoke(tmp_path, "prune-cache", "--max-bytes", "0")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["deleted"] == []
