"""Contracts for content acquisition and title resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class Section:
  """One ordered section of a content page."""

  title: str
  text: str
  word_count: int


@dataclass(frozen=True)
class ResolvedTitle:
  id: int
  canonical_title: str
  english_title: str | None = None

  def as_dict(self) -> dict[str, Any]:
    return {"id": self.id, "canonicalTitle": self.canonical_title, "englishTitle": self.english_title}


class ContentSource(Protocol):
  """Content acquisition contract. Failures raise `ContentAcquisitionError`."""

  async def list_group_pages(self, source_id: str, group: str) -> list[str]:
    """Return page titles belonging to a group (category)."""

  async def fetch_sections(self, source_id: str, page: str) -> list[Section] | None:
    """Return the ordered sections of a page, or None when the page has no article content."""

  async def list_groups(self, source_id: str, prefix: str = "", limit: int = 500) -> list[str]:
    """List selectable groups, optionally filtered by prefix."""

  async def search_pages(self, source_id: str, prefix: str, limit: int = 10) -> list[str]:
    """Return page titles starting with `prefix`."""


class TitleResolver(Protocol):
  """Title catalog contract. Failures raise `TitleResolutionError`."""

  async def resolve(self, name: str) -> ResolvedTitle:
    """Resolve a free-form title name to its catalog id."""

  async def search(self, name: str, limit: int = 10) -> list[ResolvedTitle]:
    """Return catalog candidates for a name."""
