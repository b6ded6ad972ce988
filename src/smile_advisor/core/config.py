"""Nested pydantic-settings configuration for the application.

Each sub-config reads its own ``SMILE_<GROUP>_*`` env vars, so both
``AppSettings().qa.max_warning_violations`` and the flat
``SMILE_QA_MAX_WARNING_VIOLATIONS`` style work.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class CatalogConfig(BaseSettings):
    """Reference-data location.

    Env vars use ``SMILE_CATALOG_`` prefix. An empty ``directory`` loads the
    catalog bundled with the package.
    """

    model_config = {"env_prefix": "SMILE_CATALOG_"}

    directory: Path | None = None


class ContentConfig(BaseSettings):
    """Content repository backend.

    Env vars use ``SMILE_CONTENT_`` prefix::

        export SMILE_CONTENT_BACKEND=file
        export SMILE_CONTENT_ROOT=/srv/smile-content
    """

    model_config = {"env_prefix": "SMILE_CONTENT_"}

    backend: Literal["file", "memory"] = "file"
    root: Path = Path("./content")
    default_language: Literal["en", "nl"] = "en"
    encoding: str = "utf-8"


class CompositionConfig(BaseSettings):
    """Report composition toggles.

    Env vars use ``SMILE_COMPOSITION_`` prefix.
    """

    model_config = {"env_prefix": "SMILE_COMPOSITION_"}

    strict_placeholders: bool = False
    fail_on_missing_required_content: bool = False
    include_uncertainty_sentences: bool = True


class QAConfig(BaseSettings):
    """QA gate thresholds.

    Env vars use ``SMILE_QA_`` prefix.
    """

    model_config = {"env_prefix": "SMILE_QA_"}

    max_critical_violations: int = Field(default=0, ge=0)
    max_warning_violations: int = Field(default=5, ge=0)
    max_validation_errors: int = Field(default=0, ge=0)
    max_validation_warnings: int = Field(default=10, ge=0)
    block_on_unresolved_placeholders: bool = False
    min_scenario_score: float = Field(default=2.0, ge=0.0)


class EvaluationConfig(BaseSettings):
    """Advisory LLM evaluation. Never affects the gate outcome.

    Env vars use ``SMILE_EVALUATION_`` prefix::

        export SMILE_EVALUATION_ENABLED=true
        export SMILE_EVALUATION_MODEL=anthropic/claude-3-5-haiku-latest
    """

    model_config = {"env_prefix": "SMILE_EVALUATION_"}

    enabled: bool = False
    model: str = "ollama/qwen3:14b"
    api_base: str = ""
    api_key: str = ""
    temperature: float = 0.0
    timeout: float = Field(default=30.0, gt=0.0)
    max_tokens: int = 1024


class ObservabilityConfig(BaseSettings):
    """Logging and decision-trace configuration.

    Env vars use ``SMILE_OBS_`` prefix.
    """

    model_config = {"env_prefix": "SMILE_OBS_"}

    service_name: str = "smile-advisor"
    log_level: str = "INFO"
    json_logs: bool | None = None
    trace_max_string_length: int = Field(default=1000, ge=16)


class APIConfig(BaseSettings):
    """HTTP server configuration.

    Env vars use ``SMILE_API_`` prefix.
    """

    model_config = {"env_prefix": "SMILE_API_"}

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=list)


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs."""

    catalog: CatalogConfig = CatalogConfig()
    content: ContentConfig = ContentConfig()
    composition: CompositionConfig = CompositionConfig()
    qa: QAConfig = QAConfig()
    evaluation: EvaluationConfig = EvaluationConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
    api: APIConfig = APIConfig()
