"""AniList GraphQL title resolution."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from wikiquiz.content.base import ResolvedTitle
from wikiquiz.errors import TitleResolutionError

_MEDIA_QUERY = """
query ($search: String) {
  Media(search: $search, type: ANIME) {
    id
    title { romaji english native }
  }
}
"""

_SEARCH_QUERY = """
query ($search: String, $perPage: Int) {
  Page(page: 1, perPage: $perPage) {
    media(search: $search, type: ANIME) {
      id
      title { romaji english native }
    }
  }
}
"""

logger = logging.getLogger(__name__)


def _to_title(media: dict[str, Any]) -> ResolvedTitle:
  titles = media.get("title") or {}
  canonical = titles.get("romaji") or titles.get("english") or titles.get("native") or ""
  return ResolvedTitle(id=int(media["id"]), canonical_title=canonical, english_title=titles.get("english"))


class AniListTitleResolver:
  def __init__(self, client: httpx.AsyncClient, *, url: str = "https://graphql.anilist.co") -> None:
    self._client = client
    self._url = url

  async def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
    try:
      response = await self._client.post(self._url, json={"query": query, "variables": variables})
      payload = response.json()
    except httpx.HTTPError as exc:
      raise TitleResolutionError(f"AniList request failed: {exc}") from exc
    except ValueError as exc:
      raise TitleResolutionError("AniList returned invalid JSON") from exc

    # AniList answers "not found" with a 404 and an errors array.
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors:
      raise TitleResolutionError(str(errors[0].get("message") or "AniList returned an error"))
    if response.status_code >= 400 or not isinstance(payload, dict):
      raise TitleResolutionError(f"AniList request failed with status {response.status_code}")
    return payload.get("data") or {}

  async def resolve(self, name: str) -> ResolvedTitle:
    data = await self._post(_MEDIA_QUERY, {"search": name})
    media = data.get("Media")
    if not media:
      raise TitleResolutionError(f"Could not find AniList ID for {name}")
    title = _to_title(media)
    logger.info("Resolved %r to AniList id %s (%s)", name, title.id, title.canonical_title)
    return title

  async def search(self, name: str, limit: int = 10) -> list[ResolvedTitle]:
    data = await self._post(_SEARCH_QUERY, {"search": name, "perPage": limit})
    return [_to_title(media) for media in (data.get("Page") or {}).get("media") or []]
