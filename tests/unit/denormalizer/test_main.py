"""
Unit tests for the denormalizer command-line interface.
"""

import base64
import io
import json
import logging
from unittest import mock

import pytest

from policy_docs.denormalizer import main as cli
from policy_docs.denormalizer.document_store import TransientStoreError

logger = logging.getLogger("tests.denormalizer.cli")


def run(argv, store, stdin=None):
    out = io.StringIO()
    code = cli.run_command(cli.parse_args(argv), store, logger, stdin=stdin, stdout=out)
    return code, out.getvalue()


def envelope_text(payload: dict) -> str:
    data = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return json.dumps({"message": {"data": data, "attributes": {}}})


class TestLookupCommands:
    """Tests for the read-only lookup commands."""

    def test_get_hostname(self, store):
        code, out = run(["get-hostname", "s1", "dev", "a.com"], store)

        assert code == 0
        assert json.loads(out) == {"verified": True}

    def test_get_hostname_metadata(self, store):
        code, out = run(["get-hostname-metadata", "s1", "dev", "a.com"], store)

        assert code == 0
        assert json.loads(out)["zone"] == "z1"

    def test_get_edge_logic(self, store):
        code, out = run(["get-edge-logic", "s1", "dev", "a.com"], store)

        assert code == 0
        assert json.loads(out)["cache_control"] == "max-age=300"

    def test_missing_record_exits_non_zero(self, store):
        code, out = run(["get-edge-logic", "s1", "live", "a.com"], store)

        assert code == 1
        assert out == ""

    def test_lookup_requires_three_arguments(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["get-hostname", "s1", "dev"])


class TestDenormalizeCommand:
    """Tests for the denormalize command."""

    def test_denormalize_prints_written_document(self, store):
        code, out = run(["denormalize", "s1", "dev", "a.com"], store)

        result = json.loads(out)
        assert code == 0
        assert result["path"] == "denormed/policydoc/a.com/policydoc"
        assert result["document"] == store.documents[result["path"]]

    def test_store_failure_is_fatal(self, store):
        store.read_error = TransientStoreError("connection refused", operation="read")

        code, _ = run(["denormalize", "s1", "dev", "a.com"], store)

        assert code == 2

    def test_write_failure_is_fatal(self, store):
        store.write_error = TransientStoreError("connection reset", operation="write")

        code, _ = run(["denormalize", "s1", "dev", "a.com"], store)

        assert code == 2


class TestHandleEventCommand:
    """Tests for replaying notifications through the CLI."""

    def test_event_from_stdin(self, store):
        stdin = io.BytesIO(envelope_text({"site": "s1", "env": "dev", "hostname": "a.com"}).encode("utf-8"))

        code, out = run(["handle-event"], store, stdin=stdin)

        assert code == 0
        assert json.loads(out) == {"acknowledged": True}
        assert "denormed/policydoc/a.com/policydoc" in store.documents

    def test_event_from_file(self, store, tmp_path):
        path = tmp_path / "envelope.json"
        path.write_text(envelope_text({"site": "s1", "env": "dev", "hostname": "a.com"}), encoding="utf-8")

        code, _ = run(["handle-event", str(path)], store)

        assert code == 0

    def test_non_utf8_file_is_acknowledged(self, store, tmp_path):
        path = tmp_path / "envelope.json"
        path.write_bytes(b"\xff\xfe not an envelope")

        code, out = run(["handle-event", str(path)], store)

        assert code == 0
        assert json.loads(out) == {"acknowledged": True}
        assert store.write_transactions == 0

    def test_non_utf8_stdin_is_acknowledged(self, store):
        code, out = run(["handle-event"], store, stdin=io.BytesIO(b"\xc3\x28"))

        assert code == 0
        assert json.loads(out) == {"acknowledged": True}

    def test_unacknowledged_event_exits_non_zero(self, store):
        store.read_error = TransientStoreError("connection refused")
        stdin = io.BytesIO(envelope_text({"site": "s1", "env": "dev", "hostname": "a.com"}).encode("utf-8"))

        code, out = run(["handle-event"], store, stdin=stdin)

        assert code == 1
        assert json.loads(out) == {"acknowledged": False}

    def test_missing_file_is_fatal(self, store, tmp_path):
        code, _ = run(["handle-event", str(tmp_path / "missing.json")], store)

        assert code == 2


class TestMain:
    """Tests for process start-up."""

    def test_config_error_is_fatal(self, tmp_path):
        assert cli.main(["--config", str(tmp_path / "missing.yml"), "get-hostname", "s1", "dev", "a.com"]) == 2

    def test_builds_store_from_config(self, store, tmp_path, monkeypatch, capsys):
        config = tmp_path / "denormalizer.yml"
        config.write_text(
            "store:\n  database_url: postgresql://docs@localhost/docs\n  documents_table: policy_documents\n",
            encoding="utf-8",
        )
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("DENORMALIZER_DOCUMENTS_TABLE", raising=False)

        with mock.patch.object(cli, "PostgresDocumentStore", return_value=store) as store_class, \
                mock.patch.object(cli, "load_dotenv"):
            code = cli.main(["--config", str(config), "get-hostname", "s1", "dev", "a.com"])

        assert code == 0
        store_class.assert_called_once()
        assert store_class.call_args.args == ("postgresql://docs@localhost/docs",)
        assert store_class.call_args.kwargs["table"] == "policy_documents"
        assert json.loads(capsys.readouterr().out.strip().splitlines()[-1]) == {"verified": True}

    def test_unreachable_store_is_fatal(self, tmp_path, monkeypatch):
        config = tmp_path / "denormalizer.yml"
        config.write_text("store:\n  database_url: postgresql://docs@localhost/docs\n", encoding="utf-8")
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with mock.patch.object(
            cli, "PostgresDocumentStore", side_effect=TransientStoreError("could not connect")
        ), mock.patch.object(cli, "load_dotenv"):
            code = cli.main(["--config", str(config), "denormalize", "s1", "dev", "a.com"])

        assert code == 2
