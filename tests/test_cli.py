from __future__ import annotations

import argparse
import json
from pathlib import Path

import pytest

from conftest import FakeEmbedder, InMemoryBackend
from rag_vectordb.cli import _load_document, main
from rag_vectordb.config import Settings
from rag_vectordb.provider import VectorDatabase


@pytest.fixture
def run_cli(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
    settings: Settings,
    backend: InMemoryBackend,
):
    """Run the CLI against in-memory storage and return (exit code, JSON output)."""
    embedder = FakeEmbedder()

    def _database(current: Settings) -> VectorDatabase:
        return VectorDatabase(current, backend=backend, embedder=embedder)

    monkeypatch.setattr("rag_vectordb.cli.VectorDatabase", _database)
    monkeypatch.setattr("rag_vectordb.cli._load_settings", lambda: settings)

    def _run(*argv: str) -> tuple[int, dict | None]:
        code = main(list(argv))
        out = capsys.readouterr().out.strip()
        return code, json.loads(out) if out.startswith("{") else None

    return _run


def test_ingest_then_count(run_cli, tmp_path: Path) -> None:
    doc = tmp_path / "sky.txt"
    doc.write_text("The sky is blue.", encoding="utf-8")

    code, payload = run_cli(
        "--json", "ingest", "--namespace", "proj", "--file", str(doc), "--doc-id", "doc-1"
    )
    assert code == 0
    assert payload == {"doc_id": "doc-1", "vectorized": True, "error": None}

    code, payload = run_cli("--json", "count", "--namespace", "proj")
    assert code == 0
    assert payload == {"namespace": "proj", "count": 1}


def test_ingest_empty_file_fails(run_cli, tmp_path: Path) -> None:
    doc = tmp_path / "empty.txt"
    doc.write_text("", encoding="utf-8")

    code, payload = run_cli("--json", "ingest", "--namespace", "proj", "--file", str(doc))

    assert code == 1
    assert payload["vectorized"] is False


def test_search_missing_namespace(run_cli) -> None:
    code, payload = run_cli("--json", "search", "--namespace", "proj", "--query", "hello")

    assert code == 0
    assert payload["context_texts"] == []
    assert payload["message"] == "Invalid query - no documents found for workspace!"


def test_delete_missing_namespace_reports_error(run_cli) -> None:
    code, _ = run_cli("delete-namespace", "--namespace", "missing")
    assert code == 1


def test_reset_requires_confirmation(run_cli) -> None:
    code, _ = run_cli("reset")
    assert code == 1


def test_heartbeat(run_cli) -> None:
    code, payload = run_cli("--json", "heartbeat")

    assert code == 0
    assert payload["heartbeat"] > 0


def test_load_document_from_json(tmp_path: Path) -> None:
    doc = tmp_path / "doc.json"
    doc.write_text(
        json.dumps({"pageContent": "The sky is blue.", "docId": "doc-1", "title": "Sky"}),
        encoding="utf-8",
    )
    args = argparse.Namespace(file=doc, doc_id=None, title=None)

    document = _load_document(args)

    assert document.doc_id == "doc-1"
    assert document.metadata == {"title": "Sky"}


def test_load_document_derives_id_from_path(tmp_path: Path) -> None:
    doc = tmp_path / "sky.txt"
    doc.write_text("The sky is blue.", encoding="utf-8")
    args = argparse.Namespace(file=doc, doc_id=None, title=None)

    first = _load_document(args)
    second = _load_document(args)

    assert first.doc_id == second.doc_id
    assert first.metadata["title"] == "sky.txt"
