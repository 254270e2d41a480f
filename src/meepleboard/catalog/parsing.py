"""
Parsing and heuristics for BGG XML API 2 documents.

Converts `/search`, `/thing` and `/hot` payloads into catalog
contracts. All functions are pure apart from logging, so they can
be exercised without any HTTP traffic.
"""

import html
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterable

from pydantic import ValidationError as PydanticValidationError

from meepleboard.catalog.contracts import (
    NO_DESCRIPTION,
    UNNAMED,
    CatalogEntry,
    GameSuggestion,
)
from meepleboard.catalog.errors import CatalogParseError
from meepleboard.logger import get_logger

logger = get_logger(__name__, component="bgg_parser")

NOT_RANKED = "Not Ranked"
EXPANSION_TYPE = "boardgameexpansion"
HOT_LIST_DESCRIPTION = "Popular game from the BGG hot list"

_TAG_PATTERN = re.compile(r"<.*?>", re.DOTALL)


def is_xml(body: str | None) -> bool:
    """A body counts as a document only if it starts with a tag."""
    return body is not None and body.lstrip().startswith("<")


def parse_document(body: str) -> ET.Element:
    """
    Parse a response body into its root element.

    Raises:
        CatalogParseError: If the body is not a document or is malformed
    """
    if not is_xml(body):
        raise CatalogParseError(f"Response is not an XML document: {body[:80]!r}")
    try:
        return ET.fromstring(body)
    except ET.ParseError as e:
        raise CatalogParseError(f"Malformed XML document: {e}", original_error=e) from e


def has_message(root: ET.Element) -> bool:
    """BGG answers with a bare <message> while an item is not yet available."""
    return root.tag == "message" or root.find(".//message") is not None


def strip_markup(raw: str) -> str:
    """Remove tags, then decode HTML entities."""
    return html.unescape(_TAG_PATTERN.sub("", raw))


def parse_int(value: str | None) -> int | None:
    """Parse an integer, returning None when absent or invalid."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_float(value: str | None) -> float | None:
    """Culture-invariant decimal parse (always '.' as separator)."""
    if value is None:
        return None
    try:
        return float(value.strip())
    except ValueError:
        return None


def parse_rank(value: str | None) -> int | None:
    """Parse a rank value; the 'Not Ranked' sentinel maps to None."""
    if value is None or not value.strip() or value == NOT_RANKED:
        return None
    return parse_int(value)


def looks_like_expansion(description: str) -> bool:
    """Keyword heuristic for expansions the source failed to flag."""
    lowered = description.lower()
    return "expands" in lowered and "expansion" in lowered


def levenshtein(s: str, t: str) -> int:
    """Classic edit distance with unit costs."""
    if not s:
        return len(t)
    if not t:
        return len(s)

    previous = list(range(len(t) + 1))
    for i, sc in enumerate(s, 1):
        current = [i]
        for j, tc in enumerate(t, 1):
            cost = 0 if sc == tc else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def best_match(entries: Iterable[CatalogEntry], query: str) -> CatalogEntry | None:
    """
    Pick the entry whose name best matches the query.

    A case-insensitive exact match wins; otherwise the smallest
    case-insensitive edit distance, first candidate on ties.
    """
    candidates = list(entries)
    if not candidates:
        return None

    wanted = query.strip()
    for entry in candidates:
        if entry.name.strip().casefold() == wanted.casefold():
            return entry

    lowered = query.lower()
    return min(candidates, key=lambda e: levenshtein(e.name.lower(), lowered))


def _value(element: ET.Element | None, attribute: str = "value") -> str | None:
    if element is None:
        return None
    return element.get(attribute)


def _text(element: ET.Element | None) -> str | None:
    if element is None or element.text is None:
        return None
    return element.text.strip() or None


def _primary_name(item: ET.Element) -> str | None:
    for name in item.iter("name"):
        if name.get("type") == "primary":
            return name.get("value")
    return None


def search_result_ids(root: ET.Element) -> list[int]:
    """Distinct numeric item ids of a /search response, in document order."""
    ids: dict[int, None] = {}
    for item in root.iter("item"):
        parsed = parse_int(item.get("id"))
        if parsed is not None and parsed > 0:
            ids.setdefault(parsed, None)
    return list(ids)


def parse_thing(item: ET.Element) -> CatalogEntry:
    """
    Convert a /thing item into a CatalogEntry.

    Raises:
        CatalogParseError: If the item has no usable id or invalid values
    """
    raw_id = item.get("id")
    external_id = parse_int(raw_id)
    if external_id is None or external_id <= 0:
        raise CatalogParseError(f"Invalid BGG id: {raw_id!r}")

    name = _primary_name(item) or UNNAMED

    description_element = item.find("description")
    if description_element is None:
        raw_description = NO_DESCRIPTION
    else:
        raw_description = description_element.text or ""
    description = strip_markup(raw_description)

    rank = None
    for rank_element in item.iter("rank"):
        if rank_element.get("name") == "boardgame":
            rank = parse_rank(rank_element.get("value"))
            break

    is_expansion = item.get("type") == EXPANSION_TYPE
    base_external_id = None
    for link in item.findall("link"):
        if link.get("type") == EXPANSION_TYPE and link.get("inbound") == "true":
            base_external_id = parse_int(link.get("id"))
            if base_external_id is not None:
                is_expansion = True
                break

    if not is_expansion and looks_like_expansion(description):
        is_expansion = True
        logger.warning(
            "Heuristic expansion guess, not flagged by source",
            external_id=external_id,
            name=name,
        )

    categories = [
        link.get("value", "")
        for link in item.findall("link")
        if link.get("type") == "boardgamecategory"
    ]

    try:
        return CatalogEntry(
            external_id=external_id,
            name=name,
            description=description,
            image_url=_text(item.find("image")) or "",
            thumbnail_url=_text(item.find("thumbnail")),
            rank=rank,
            average_rating=parse_float(_value(item.find(".//average"))),
            average_weight=parse_float(_value(item.find(".//averageweight"))),
            year_published=parse_int(_value(item.find("yearpublished"))),
            min_players=parse_int(_value(item.find("minplayers"))),
            max_players=parse_int(_value(item.find("maxplayers"))),
            categories=categories,
            is_expansion=is_expansion,
            base_external_id=base_external_id,
        )
    except PydanticValidationError as e:
        raise CatalogParseError(
            f"Item {external_id} failed validation: {e}",
            original_error=e,
        ) from e


def parse_hot_item(item: ET.Element) -> CatalogEntry | None:
    """Convert a /hot item; items without a usable id are dropped."""
    external_id = parse_int(item.get("id"))
    if external_id is None or external_id <= 0:
        return None

    return CatalogEntry(
        external_id=external_id,
        name=_value(item.find("name")) or "Unknown",
        description=HOT_LIST_DESCRIPTION,
        image_url=_value(item.find("thumbnail")) or "",
        thumbnail_url=_value(item.find("thumbnail")),
        year_published=parse_int(_value(item.find("yearpublished"))),
        is_expansion=item.get("type") == EXPANSION_TYPE,
    )


def parse_suggestion(item: ET.Element) -> GameSuggestion | None:
    """Convert a /thing item into a listing suggestion, or None if unusable."""
    external_id = parse_int(item.get("id"))
    name = _primary_name(item)
    if external_id is None or external_id <= 0 or not name or not name.strip():
        return None

    return GameSuggestion(
        external_id=external_id,
        name=name,
        year_published=parse_int(_value(item.find("yearpublished"))),
        image_url=_text(item.find("thumbnail")),
        is_expansion=item.get("type") == EXPANSION_TYPE,
    )
