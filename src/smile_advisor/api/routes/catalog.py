"""Read-only views over the loaded reference catalog."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from smile_advisor.catalog.models import Catalog

router = APIRouter(tags=["catalog"])


def _catalog(request: Request) -> Catalog:
    return request.app.state.catalog


@router.get("/catalog")
async def catalog_summary(request: Request) -> dict[str, Any]:
    catalog = _catalog(request)
    return {
        "version": catalog.version,
        "questions": len(catalog.questions),
        "drivers": [d.driver_id for d in catalog.drivers],
        "scenarios": [s.scenario_id for s in catalog.scenarios],
        "tones": [t.tone_id for t in catalog.tones],
        "sections": sorted(catalog.sections),
    }


@router.get("/catalog/scenarios/{scenario_id}")
async def scenario_detail(scenario_id: str, request: Request) -> dict[str, Any]:
    """Matching criteria for one scenario. Unknown ids return 404."""
    scenario = _catalog(request).scenario(scenario_id)
    return {
        "scenario_id": scenario.scenario_id,
        "name": scenario.name,
        "priority": scenario.priority,
        "is_fallback": scenario.is_fallback,
        "is_safety": scenario.is_safety,
        "required": {k: sorted(v) for k, v in scenario.required.items()},
        "strong": {k: sorted(v) for k, v in scenario.strong.items()},
        "supporting": {k: sorted(v) for k, v in scenario.supporting.items()},
        "excluding": {k: sorted(v) for k, v in scenario.excluding.items()},
        "preferred_tags": list(scenario.preferred_tags),
    }
