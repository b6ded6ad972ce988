"""Global exception handlers mapping domain exceptions to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from smile_advisor.exceptions import (
    CatalogError,
    ContentRepositoryError,
    IntakeValidationError,
    SmileAdvisorError,
)


def _issue_payload(issue: object) -> object:
    dump = getattr(issue, "model_dump", None)
    return dump() if callable(dump) else str(issue)


def register_error_handlers(app: FastAPI) -> None:
    """Register exception-to-HTTP-status mappings."""

    @app.exception_handler(IntakeValidationError)
    async def handle_intake_error(request: Request, exc: IntakeValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "error": str(exc),
                "type": "intake_validation_error",
                "issues": [_issue_payload(i) for i in exc.issues],
            },
        )

    @app.exception_handler(CatalogError)
    async def handle_catalog_error(request: Request, exc: CatalogError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc), "type": "catalog_error"})

    @app.exception_handler(ContentRepositoryError)
    async def handle_content_error(request: Request, exc: ContentRepositoryError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"error": str(exc), "type": "content_repository_error"})

    @app.exception_handler(SmileAdvisorError)
    async def handle_generic_error(request: Request, exc: SmileAdvisorError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc), "type": "smile_advisor_error"})

    @app.exception_handler(KeyError)
    async def handle_not_found(request: Request, exc: KeyError) -> JSONResponse:
        message = str(exc.args[0]) if exc.args else ""
        return JSONResponse(status_code=404, content={"error": message, "type": "not_found"})
