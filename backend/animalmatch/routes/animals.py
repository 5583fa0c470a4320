"""Animal retrieval routes."""

from __future__ import annotations

import random
from collections.abc import Callable
from pathlib import Path

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse, Response

from animalmatch.core.catalog import CatalogStore
from animalmatch.core.matching import FALLBACK_NAME, MatchResult, match_name
from animalmatch.core.metrics import animal_match_ties, animal_matches_total
from animalmatch.core.models import AnimalResponse, ErrorResponse
from animalmatch.core.negotiation import Representation, preferred_representation

router = APIRouter()
logger = structlog.get_logger("animalmatch.routes.animals")

STATIC_DIR = Path(__file__).parent.parent / "static"
RESULTS_VIEW_PATH = "/animals"
FETCH_ERROR = "Failed to fetch animal"

Responder = Callable[[Request, MatchResult, int], Response]


def _run_match(request: Request, name: str) -> MatchResult:
    catalog: CatalogStore = request.app.state.catalog
    rng: random.Random = request.app.state.rng

    result = match_name(name, catalog, rng)
    animal_matches_total.inc()
    animal_match_ties.observe(result.tie_count)
    logger.info(
        "Animal matched",
        name=result.normalized_name,
        animal=result.selected.name,
        similarity_score=result.min_distance,
        closest_matches=result.tie_count,
    )
    return result


def respond_with_json(request: Request, result: MatchResult, total_animals: int) -> Response:
    """Structured success payload."""
    payload = AnimalResponse.from_match(result, total_animals)
    return JSONResponse(payload.model_dump(by_alias=True))


def redirect_to_results_view(request: Request, result: MatchResult, total_animals: int) -> Response:
    """Send browsers to the results page, which re-requests the data itself."""
    url = request.url.replace(path=RESULTS_VIEW_PATH, fragment="").include_query_params(
        name=result.normalized_name
    )
    return RedirectResponse(str(url), status_code=307)


RESPONDERS: dict[Representation, Responder] = {
    Representation.HTML: redirect_to_results_view,
    Representation.JSON: respond_with_json,
}


def _error_response() -> JSONResponse:
    return JSONResponse(ErrorResponse(error=FETCH_ERROR).model_dump(), status_code=500)


@router.get("/api/animals")
async def get_animal(request: Request, name: str | None = None) -> Response:
    """Match the ``name`` query parameter to an animal.

    Browsers asking for HTML are redirected to the results page; everyone
    else gets the JSON payload.
    """
    try:
        result = _run_match(request, name if name is not None else FALLBACK_NAME)
        representation = preferred_representation(request.headers.get("accept"))
        return RESPONDERS[representation](request, result, len(request.app.state.catalog))
    except Exception:
        logger.exception("Failed to fetch animal", method="GET")
        return _error_response()


@router.post("/api/animals")
async def post_animal(request: Request) -> Response:
    """Match the ``name`` field of a JSON body to an animal."""
    try:
        try:
            body = await request.json()
        except ValueError:
            body = {}
        name = body.get("name") if isinstance(body, dict) else None
        if not isinstance(name, str):
            name = FALLBACK_NAME

        result = _run_match(request, name)
        return respond_with_json(request, result, len(request.app.state.catalog))
    except Exception:
        logger.exception("Failed to fetch animal", method="POST")
        return _error_response()


@router.get("/", include_in_schema=False)
@router.get(RESULTS_VIEW_PATH, include_in_schema=False)
async def results_view() -> FileResponse:
    """Serve the page that collects a name and shows the match."""
    return FileResponse(STATIC_DIR / "animals.html")
