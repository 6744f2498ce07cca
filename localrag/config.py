"""
Application configuration loaded from YAML.

Secrets (API keys) are never read from the YAML file; the generation
engines pick them up from the environment, populated by python-dotenv.
"""
from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = "config/config.yaml"


class CorpusConfig(BaseModel):
    chunks_path: str = "data/rag/corpus_chunks.json"
    embeddings_path: Optional[str] = "data/rag/corpus_embeddings.json"


class RetrievalConfig(BaseModel):
    top_k: int = Field(default=5, ge=0)


class GenerationConfig(BaseModel):
    provider: Literal["openai", "anthropic", "none"] = "openai"
    model: str = "gpt-4o-mini"
    max_tokens: int = Field(default=1024, gt=0)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_retries: int = Field(default=3, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[str] = "logs/localrag.log"


class AppConfig(BaseModel):
    corpus: CorpusConfig = Field(default_factory=CorpusConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Read and validate the YAML config.  A missing file yields defaults."""
    config_path = Path(path)
    if not config_path.exists():
        logger.debug(f"[Config] {config_path} not found; using defaults")
        return AppConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return AppConfig.model_validate(raw)
