"""Read-only reference data: questions, rule tables, scenarios and tones."""

from __future__ import annotations

from smile_advisor.catalog.loader import CatalogLoader, load_catalog, validate_catalog
from smile_advisor.catalog.models import Catalog

__all__ = ["Catalog", "CatalogLoader", "load_catalog", "validate_catalog"]
