"""Accept-header negotiation between a browser page and a JSON payload."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

HTML_MEDIA_TYPES = frozenset({"text/html", "application/xhtml+xml"})
JSON_MEDIA_TYPES = frozenset({"application/json", "application/*", "*/*"})


class Representation(Enum):
    """Response shape preferred by the caller."""

    HTML = "html"
    JSON = "json"


@dataclass(frozen=True)
class MediaRange:
    """One entry of an Accept header."""

    media_type: str
    quality: float
    position: int


def parse_accept(header: str | None) -> list[MediaRange]:
    """Parse an Accept header into media ranges.

    Malformed q-values are treated as 1.0; empty entries are skipped.
    """
    if not header:
        return []

    ranges: list[MediaRange] = []
    for position, entry in enumerate(header.split(",")):
        media_type, *params = entry.split(";")
        media_type = media_type.strip().lower()
        if not media_type:
            continue

        quality = 1.0
        for param in params:
            key, _, value = param.strip().partition("=")
            if key.strip().lower() == "q":
                try:
                    quality = min(max(float(value), 0.0), 1.0)
                except ValueError:
                    quality = 1.0

        ranges.append(MediaRange(media_type=media_type, quality=quality, position=position))
    return ranges


def _best(ranges: list[MediaRange], media_types: frozenset[str]) -> MediaRange | None:
    candidates = [r for r in ranges if r.media_type in media_types and r.quality > 0]
    if not candidates:
        return None
    return max(candidates, key=lambda r: (r.quality, -r.position))


def preferred_representation(header: str | None) -> Representation:
    """Decide whether the caller wants a document or a data payload.

    HTML wins only when the caller explicitly lists an HTML type with a
    higher q-value than any JSON-compatible range, or an equal q-value
    listed earlier. A missing header means JSON.
    """
    ranges = parse_accept(header)
    html = _best(ranges, HTML_MEDIA_TYPES)
    if html is None:
        return Representation.JSON

    data = _best(ranges, JSON_MEDIA_TYPES)
    if data is None:
        return Representation.HTML

    if (html.quality, -html.position) > (data.quality, -data.position):
        return Representation.HTML
    return Representation.JSON
