"""Intake validation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from smile_advisor.intake.validator import IntakeValidationResult, IntakeValidator
from smile_advisor.models import IntakeData

router = APIRouter(tags=["intake"])


def _validator(request: Request) -> IntakeValidator:
    return IntakeValidator(request.app.state.catalog)


@router.post("/intake/validate", response_model=IntakeValidationResult)
async def validate_intake(intake: IntakeData, request: Request) -> IntakeValidationResult:
    """Report every issue without running the pipeline."""
    return _validator(request).validate(intake)


@router.post("/intake/sanitize", response_model=IntakeData)
async def sanitize_intake(intake: IntakeData, request: Request) -> IntakeData:
    """Return the intake with ignorable answers dropped, or 422 with the blocking issues."""
    return _validator(request).validate_or_raise(intake)
