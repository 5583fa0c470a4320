"""Tests for Accept-header negotiation."""

from __future__ import annotations

import pytest

from animalmatch.core.negotiation import Representation, parse_accept, preferred_representation

BROWSER_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"
)


def test_parse_accept_reads_quality_and_order() -> None:
    ranges = parse_accept("application/json;q=0.5, Text/HTML")

    assert [(r.media_type, r.quality, r.position) for r in ranges] == [
        ("application/json", 0.5, 0),
        ("text/html", 1.0, 1),
    ]


def test_parse_accept_tolerates_garbage() -> None:
    ranges = parse_accept("text/html;q=abc, , */*;q=2")

    assert [(r.media_type, r.quality) for r in ranges] == [("text/html", 1.0), ("*/*", 1.0)]


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (BROWSER_ACCEPT, Representation.HTML),
        ("text/html", Representation.HTML),
        ("application/xhtml+xml", Representation.HTML),
        ("application/json", Representation.JSON),
        ("*/*", Representation.JSON),
        ("", Representation.JSON),
        (None, Representation.JSON),
        ("application/json, text/html", Representation.JSON),
        ("text/html, application/json", Representation.HTML),
        ("application/json;q=0.5, text/html", Representation.HTML),
        ("text/html;q=0", Representation.JSON),
        ("text/plain", Representation.JSON),
    ],
)
def test_preferred_representation(header: str | None, expected: Representation) -> None:
    assert preferred_representation(header) is expected
