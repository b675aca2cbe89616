"""Tests for the command line ingestion runner."""

import json

import pytest

from conftest import resume_text
from services.kb_ingestion.ingest_runner import main
from shared.clients.rag.local.RAGClientLocal import RAGClientLocal


def _stats_from(out: str) -> dict:
    # log lines share stdout with the printed statistics
    stats, _ = json.JSONDecoder().raw_decode(out, out.index("{\n"))
    return stats


@pytest.fixture(autouse=True)
def engine_env(monkeypatch, logger):
    # keep the session logger instead of reconfiguring handlers on every run
    monkeypatch.setattr("services.kb_ingestion.ingest_runner.setup_logging", lambda: logger)
    monkeypatch.setenv("EMBED_ENGINE", "hashing")
    monkeypatch.setenv("EMBED_DIMENSION", "32")
    monkeypatch.setenv("RAG_ENGINE", "local")
    monkeypatch.setenv("KB_WINDOW_TOKENS", "500")
    monkeypatch.setenv("KB_OVERLAP_TOKENS", "50")


class TestIngestRunner:
    async def test_ingests_files_and_persists_snapshot(self, tmp_path, capsys, make_config):
        cv = tmp_path / "cv.txt"
        cv.write_text(resume_text(2000), encoding="utf-8")
        store_dir = tmp_path / "store"

        code = await main([str(cv), "--category", "resume-version", "--persist-dir", str(store_dir)])

        assert code == 0
        stats = _stats_from(capsys.readouterr().out)
        assert stats["total_chunks"] == 5
        assert (store_dir / "documents.json").exists()

        reloaded = RAGClientLocal(helper_config=make_config(EMBED_DIMENSION=32, KB_PERSIST_DIR=str(store_dir)))
        await reloaded.boot()
        assert await reloaded.do_count() == 5

    async def test_failed_file_sets_exit_code(self, tmp_path, capsys):
        good = tmp_path / "plan.md"
        good.write_text("# Plan\n\nLead a team.", encoding="utf-8")
        bad = tmp_path / "cv.pdf"
        bad.write_bytes(b"%PDF-1.7")

        code = await main([str(good), str(bad), "--category", "career-plan"])

        assert code == 1
        stats = _stats_from(capsys.readouterr().out)
        assert stats["documents_by_status"] == {"processing": 0, "embedded": 1, "error": 1}

    async def test_missing_file_is_reported(self, tmp_path, capsys):
        code = await main([str(tmp_path / "absent.txt"), "--category", "career-plan"])

        assert code == 1
        assert _stats_from(capsys.readouterr().out)["total_documents"] == 0
