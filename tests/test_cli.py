"""Tests for the Typer CLI commands."""
from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from typer.testing import CliRunner

from localrag.main import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> str:
    chunks = tmp_path / "corpus_chunks.json"
    chunks.write_bytes(
        orjson.dumps(
            [
                {"id": "paris-1", "text": "Paris is the capital of France.", "source": "doc1"},
                {"id": "dogs-1", "text": "dogs bark loudly"},
            ]
        )
    )
    config = tmp_path / "config.yaml"
    config.write_text(
        "corpus:\n"
        f"  chunks_path: {chunks.as_posix()}\n"
        f"  embeddings_path: {(tmp_path / 'emb.json').as_posix()}\n"
        "generation:\n"
        "  provider: none\n"
        "logging:\n"
        "  level: WARNING\n"
        "  file: null\n",
        encoding="utf-8",
    )
    return str(config)


class TestAsk:
    def test_single_query_json(self, config_file: str) -> None:
        result = runner.invoke(app, ["ask", "-q", "capital of France", "-c", config_file, "--json"])
        assert result.exit_code == 0, result.output
        assert '"status": "context_only"' in result.output
        assert '"id": "paris-1"' in result.output

    def test_single_query_rich_output(self, config_file: str) -> None:
        result = runner.invoke(app, ["ask", "-q", "capital", "-c", config_file, "--top-k", "1"])
        assert result.exit_code == 0, result.output
        assert "paris-1" in result.output
        assert "dogs-1" not in result.output

    def test_missing_corpus_exits_nonzero(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text(
            f"corpus:\n  chunks_path: {(tmp_path / 'missing.json').as_posix()}\n"
            "generation:\n  provider: none\nlogging:\n  file: null\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["ask", "-q", "anything", "-c", str(config)])
        assert result.exit_code == 1


class TestEmbedAndStatus:
    def test_embed_switches_status_to_vector_mode(self, config_file: str, tmp_path: Path) -> None:
        before = runner.invoke(app, ["status", "-c", config_file])
        assert before.exit_code == 0, before.output
        assert "lexical" in before.output

        result = runner.invoke(app, ["embed", "-c", config_file])
        assert result.exit_code == 0, result.output
        assert len(orjson.loads((tmp_path / "emb.json").read_bytes())) == 2

        after = runner.invoke(app, ["status", "-c", config_file])
        assert after.exit_code == 0, after.output
        assert "vector" in after.output
