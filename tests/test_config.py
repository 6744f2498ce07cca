"""Tests for YAML config loading."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from localrag.config import AppConfig, load_config


class TestLoadConfig:
    def test_missing_file_yields_defaults(self, tmp_path: Path) -> None:
        cfg = load_config(tmp_path / "absent.yaml")
        assert cfg == AppConfig()
        assert cfg.retrieval.top_k == 5

    def test_partial_file_overrides_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "generation:\n  provider: none\nretrieval:\n  top_k: 3\n", encoding="utf-8"
        )
        cfg = load_config(path)
        assert cfg.generation.provider == "none"
        assert cfg.retrieval.top_k == 3
        assert cfg.corpus.chunks_path == "data/rag/corpus_chunks.json"

    def test_empty_file_yields_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == AppConfig()

    @pytest.mark.parametrize(
        "body",
        ["generation:\n  provider: llama\n", "retrieval:\n  top_k: -1\n"],
    )
    def test_invalid_values_are_rejected(self, tmp_path: Path, body: str) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(body, encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_shipped_config_is_valid(self) -> None:
        cfg = load_config(Path(__file__).parent.parent / "config" / "config.yaml")
        assert cfg.corpus.embeddings_path.endswith("corpus_embeddings.json")
