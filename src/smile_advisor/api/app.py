"""FastAPI application with lifespan management."""

from __future__ import annotations

import importlib.metadata
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smile_advisor.api.middleware.error_handler import register_error_handlers
from smile_advisor.api.routes import catalog, health, intake, reports
from smile_advisor.catalog.loader import load_catalog
from smile_advisor.content import create_content_repository
from smile_advisor.core.config import APIConfig, AppSettings
from smile_advisor.core.startup_checks import validate_settings
from smile_advisor.hooks import setup_logging
from smile_advisor.pipeline.orchestrator import ReportPipeline
from smile_advisor.qa.evaluator import IReportEvaluator, LLMReportEvaluator

log = logging.getLogger(__name__)


def _get_version() -> str:
    """Read package version from installed metadata, with dev fallback."""
    try:
        return importlib.metadata.version("smile-advisor")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0-dev"


def build_pipeline(settings: AppSettings) -> ReportPipeline:
    """Wire catalog, content backend and optional evaluator from settings."""
    directory = settings.catalog.directory
    catalog = load_catalog(str(directory) if directory else None)
    evaluator: IReportEvaluator | None = None
    if settings.evaluation.enabled:
        evaluator = LLMReportEvaluator(settings.evaluation)
    return ReportPipeline(catalog, create_content_repository(settings), settings, evaluator)


def create_app(
    settings: AppSettings | None = None,
    pipeline: ReportPipeline | None = None,
) -> FastAPI:
    """Build the application. A prebuilt ``pipeline`` skips settings validation and wiring."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application startup/shutdown lifecycle."""
        resolved = settings or AppSettings()
        setup_logging(resolved.observability)
        active = pipeline
        if active is None:
            validate_settings(resolved)
            active = build_pipeline(resolved)
        app.state.settings = resolved
        app.state.pipeline = active
        app.state.catalog = active.catalog
        log.info("smile-advisor ready (catalog %s)", active.catalog.version)
        yield
        app.state.pipeline = None

    api_config = settings.api if settings is not None else APIConfig()
    application = FastAPI(
        title="smile-advisor",
        description="Questionnaire-to-advisory-report pipeline",
        version=_get_version(),
        lifespan=lifespan,
    )
    if api_config.cors_origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=api_config.cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )
    register_error_handlers(application)
    application.include_router(health.router)
    application.include_router(reports.router, prefix="/api")
    application.include_router(intake.router, prefix="/api")
    application.include_router(catalog.router, prefix="/api")
    return application


app = create_app()
