"""Application configuration loaded from config.yaml."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

API_KEY_ENV = "OPENAI_API_KEY"

CONVERSATION_MODES = ("local", "hosted", "stateless")


@dataclass(frozen=True)
class LLMConfig:
    model: str = "gpt-4o-mini"
    api_key: str | None = field(default=None, repr=False)
    base_url: str | None = None
    turn_timeout: float = 90.0
    conversation_mode: str = "local"

    def __post_init__(self) -> None:
        if self.conversation_mode not in CONVERSATION_MODES:
            raise ValueError(
                f"conversation_mode must be one of {CONVERSATION_MODES}, "
                f"got {self.conversation_mode!r}"
            )
        if self.turn_timeout <= 0:
            raise ValueError("turn_timeout must be positive")


@dataclass(frozen=True)
class PipelineConfig:
    max_attempts: int = 3
    retry_wait_min: float = 1.0
    retry_wait_max: float = 10.0
    bulk_concurrency: int = 3
    log_payloads: bool = False


@dataclass(frozen=True)
class CacheConfig:
    db_path: str = "~/.ats-tailor/cache.db"

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()


@dataclass(frozen=True)
class StorageConfig:
    db_path: str = "~/.ats-tailor/jobs.db"
    artifacts_dir: str = "~/.ats-tailor/artifacts"
    usage_db_path: str = "~/.ats-tailor/usage.db"

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()

    @property
    def resolved_artifacts_dir(self) -> Path:
        return Path(self.artifacts_dir).expanduser()

    @property
    def resolved_usage_db_path(self) -> Path:
        return Path(self.usage_db_path).expanduser()


@dataclass(frozen=True)
class PaywallConfig:
    pdf_limit: int | None = None
    jobs_per_resume_limit: int | None = None


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    paywall: PaywallConfig = field(default_factory=PaywallConfig)


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> AppConfig:
    """Load config from YAML file, falling back to defaults.

    The model credential is resolved here and nowhere else: an explicit
    ``llm.api_key`` in the YAML wins, otherwise ``OPENAI_API_KEY`` from
    ``environ`` (defaults to the process environment).
    """
    if path is None:
        candidates = [
            Path.cwd() / "config.yaml",
            Path(__file__).resolve().parent.parent.parent / "config.yaml",
        ]
        for c in candidates:
            if c.exists():
                path = c
                break

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    env = os.environ if environ is None else environ
    llm_raw = dict(raw.get("llm", {}))
    if not llm_raw.get("api_key"):
        llm_raw["api_key"] = env.get(API_KEY_ENV) or None

    return AppConfig(
        llm=LLMConfig(**llm_raw),
        pipeline=PipelineConfig(**raw.get("pipeline", {})),
        cache=CacheConfig(**raw.get("cache", {})),
        storage=StorageConfig(**raw.get("storage", {})),
        paywall=PaywallConfig(**raw.get("paywall", {})),
    )
