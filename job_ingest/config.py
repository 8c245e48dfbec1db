"""YAML config loader + Pydantic models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .models import JobSource

_DEFAULT_CONFIG = Path(__file__).parent / "config.default.yaml"
_DEFAULT_DB = Path.home() / ".local" / "share" / "job_ingest" / "jobs.db"


class PipelineConfig(BaseModel):
    max_workers: int = Field(default=1, ge=1)
    default_max_per_site: int = Field(default=50, gt=0)


class FetchConfig(BaseModel):
    timeout: int = 30
    max_retries: int = Field(default=3, ge=0)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )


class NormalizerConfig(BaseModel):
    url: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4o-mini"
    timeout: int = 60
    api_key_env: str = "OPENAI_API_KEY"
    description_max_chars: int = 6000


class StoreConfig(BaseModel):
    db_path: Optional[Path] = None

    def resolved_path(self) -> Path:
        env = os.environ.get("JOB_INGEST_DB")
        if env:
            return Path(env)
        return (self.db_path or _DEFAULT_DB).expanduser()


class SourceSettings(BaseModel):
    source: JobSource
    enabled: bool = True
    search_url: str
    base_url: str = ""
    link_pattern: str
    render: Literal["http", "browser"] = "http"
    fetch_details: bool = True
    description_max_chars: int = 2000
    request_delay: float = 1.0


class IngestConfig(BaseModel):
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sources: list[SourceSettings] = Field(default_factory=list)

    def enabled_sources(self) -> list[SourceSettings]:
        return [s for s in self.sources if s.enabled]


def load_config(config_path: Optional[Path] = None) -> IngestConfig:
    """Load config from YAML, falling back to defaults."""
    with open(_DEFAULT_CONFIG) as f:
        data = yaml.safe_load(f)

    if config_path and config_path.exists():
        with open(config_path) as f:
            overrides = yaml.safe_load(f) or {}
        _deep_merge(data, overrides)

    return IngestConfig.model_validate(data)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict. Lists are replaced, not merged."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base
