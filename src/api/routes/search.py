"""Search API endpoint.

GET /search: party-name search across the court providers, ordered by
the configured search policy.
"""

import structlog
from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_resolution_service
from src.models.domain import CourtCategory
from src.models.responses import PartySearchResponse
from src.services.courts.resolution import CourtResolutionService

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

router = APIRouter(prefix="/search", tags=["search"])


@router.get(
    "",
    response_model=PartySearchResponse,
    summary="Search cases by party name",
)
async def search_by_party(
    q: str = Query(..., min_length=3, max_length=200, description="Party name"),
    court_category: CourtCategory | None = Query(default=None),
    state_code: str | None = Query(default=None, max_length=10),
    year: str | None = Query(default=None, pattern=r"^\d{4}$"),
    resolver: CourtResolutionService = Depends(get_resolution_service),
) -> PartySearchResponse:
    """Cases in which ``q`` appears as a party."""
    query = q.strip()
    results = await resolver.search_by_party(query, court_category, state_code, year)
    logger.info(
        "party_search_served",
        court_category=court_category.value if court_category else None,
        results=len(results),
    )
    return PartySearchResponse(
        query=query,
        court_category=court_category,
        policy=resolver.policy,
        total=len(results),
        results=results,
    )
