"""Pluggable content repositories for authored report text."""

from __future__ import annotations

from typing import TYPE_CHECKING

from smile_advisor.content.file_backend import FileContentRepository
from smile_advisor.content.memory_backend import MemoryContentRepository
from smile_advisor.content.protocols import IContentRepository

if TYPE_CHECKING:
    from smile_advisor.core.config import AppSettings

__all__ = [
    "FileContentRepository",
    "IContentRepository",
    "MemoryContentRepository",
    "create_content_repository",
]


def create_content_repository(settings: AppSettings) -> IContentRepository:
    """Build the configured content backend."""
    if settings.content.backend == "memory":
        return MemoryContentRepository()
    return FileContentRepository(settings.content.root, encoding=settings.content.encoding)
