"""Fandom (MediaWiki) content source built on httpx and BeautifulSoup."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from wikiquiz.content.base import Section
from wikiquiz.errors import ContentAcquisitionError
from wikiquiz.jobs.units import count_words

INTRO_SECTION = "Introduction"
CATEGORY_MEMBER_LIMIT = 50
UNWANTED_SECTION_IDS = frozenset(
  {"References", "Navigation", "External_Links", "See_also", "Site_Navigation", "Gallery", "Merchandise", "Major_Battles", "Real-life_Counterpart", "Credits"}
)
_SYSTEM_CATEGORY_MARKERS = ("Hidden", "Maintenance", "Templates")
_STRIPPED_TAGS = ("table", "script", "style", "aside", "img", "figure", "noscript")
_SOURCE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]{0,62}$")
_CITATION_RE = re.compile(r"\[.*?\]")
_WHITESPACE_RE = re.compile(r"\s+")

logger = logging.getLogger(__name__)


def clean_text(text: str) -> str:
  """Collapse whitespace and drop bracketed citation markers."""
  collapsed = _WHITESPACE_RE.sub(" ", text).strip()
  return _WHITESPACE_RE.sub(" ", _CITATION_RE.sub("", collapsed)).strip()


def _heading_of(node: Tag) -> Tag | None:
  if node.name == "h2":
    return node
  # Newer MediaWiki wraps headings in <div class="mw-heading mw-heading2">.
  if node.name == "div" and "mw-heading2" in (node.get("class") or []):
    return node.find("h2")
  return None


def _heading_id(heading: Tag) -> str:
  headline = heading.find("span", class_="mw-headline")
  if isinstance(headline, Tag) and headline.get("id"):
    return str(headline["id"])
  return str(heading.get("id") or "")


def parse_sections(html: str) -> list[Section] | None:
  """Split rendered page HTML into cleaned h2 sections.

  Returns None for category pages, which list members instead of holding article text.
  """
  soup = BeautifulSoup(html, "html.parser")
  if soup.select_one("div.category-page__members") is not None:
    return None

  for tag in soup.find_all(list(_STRIPPED_TAGS)):
    tag.decompose()
  for tag in soup.select(".mw-editsection, .toc, #toc"):
    tag.decompose()

  root = soup.select_one("div.mw-parser-output") or soup
  sections: list[tuple[str, str, list[str]]] = [(INTRO_SECTION, "", [])]
  for node in root.children:
    if isinstance(node, Comment):
      continue
    if isinstance(node, NavigableString):
      sections[-1][2].append(str(node))
      continue
    if not isinstance(node, Tag):
      continue
    heading = _heading_of(node)
    if heading is not None:
      sections.append((clean_text(heading.get_text(" ")), _heading_id(heading), []))
      continue
    sections[-1][2].append(node.get_text(" "))

  result: list[Section] = []
  for title, heading_id, fragments in sections:
    if heading_id in UNWANTED_SECTION_IDS or title.replace(" ", "_") in UNWANTED_SECTION_IDS:
      continue
    text = clean_text(" ".join(fragments))
    if not text:
      continue
    result.append(Section(title=title or INTRO_SECTION, text=text, word_count=count_words(text)))
  return result


class FandomContentSource:
  """Reads category members and page sections through the MediaWiki action API."""

  def __init__(self, client: httpx.AsyncClient, *, api_template: str = "https://{source}.fandom.com/api.php") -> None:
    self._client = client
    self._api_template = api_template

  def api_url(self, source_id: str) -> str:
    if not _SOURCE_ID_RE.match(source_id or ""):
      raise ContentAcquisitionError(f"Invalid wiki name: {source_id!r}")
    return self._api_template.format(source=source_id.lower())

  async def _get(self, source_id: str, params: dict[str, Any]) -> dict[str, Any]:
    url = self.api_url(source_id)
    try:
      response = await self._client.get(url, params={**params, "format": "json"})
      response.raise_for_status()
      data = response.json()
    except httpx.HTTPError as exc:
      raise ContentAcquisitionError(f"Request to {url} failed: {exc}") from exc
    except ValueError as exc:
      raise ContentAcquisitionError(f"{url} returned invalid JSON") from exc

    if not isinstance(data, dict):
      raise ContentAcquisitionError(f"{url} returned an unexpected payload")
    return data

  async def list_group_pages(self, source_id: str, group: str) -> list[str]:
    data = await self._get(source_id, {"action": "query", "list": "categorymembers", "cmtitle": f"Category:{group}", "cmlimit": str(CATEGORY_MEMBER_LIMIT), "cmtype": "page"})
    members = (data.get("query") or {}).get("categorymembers")
    if not members:
      logger.warning("No pages found for category %s on %s", group, source_id)
      return []
    return [member["title"] for member in members if member.get("title")]

  async def fetch_sections(self, source_id: str, page: str) -> list[Section] | None:
    data = await self._get(source_id, {"action": "parse", "page": page, "prop": "text", "redirects": "1"})
    if "error" in data:
      info = (data.get("error") or {}).get("info") or "unknown error"
      raise ContentAcquisitionError(f"Error fetching page '{page}': {info}")
    try:
      html = data["parse"]["text"]["*"]
    except (KeyError, TypeError) as exc:
      raise ContentAcquisitionError(f"Page '{page}' returned no text") from exc
    return parse_sections(html)

  async def list_groups(self, source_id: str, prefix: str = "", limit: int = 500) -> list[str]:
    params: dict[str, Any] = {"action": "query", "list": "allcategories", "aclimit": str(limit)}
    if prefix:
      params["acprefix"] = prefix
    data = await self._get(source_id, params)
    categories = [entry.get("*", "") for entry in (data.get("query") or {}).get("allcategories", [])]
    return [name for name in categories if name and not any(marker in name for marker in _SYSTEM_CATEGORY_MARKERS)]

  async def search_pages(self, source_id: str, prefix: str, limit: int = 10) -> list[str]:
    data = await self._get(source_id, {"action": "query", "list": "prefixsearch", "pssearch": prefix, "pslimit": str(limit)})
    return [entry["title"] for entry in (data.get("query") or {}).get("prefixsearch", []) if entry.get("title")]
