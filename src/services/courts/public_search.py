"""Public judgment search (indiankanoon.org) used for party-name lookups.

The public site needs no key and accepts the same query language as its
paid API, including ``doctypes:`` filters that narrow a search to one
court tier. Results are judgments, not live case records, so this
provider is search-only: ``get_status`` always returns ``None``.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import httpx
import structlog
from bs4 import BeautifulSoup

from src.core.exceptions import UpstreamTransportError
from src.models.domain import CaseIdentifier, CaseSnapshot, CourtCategory, SearchResult
from src.services.courts.base import CourtProvider
from src.services.courts.session import browser_headers
from src.utils.text_cleaning import clean_judgment_title, split_parties

if TYPE_CHECKING:
    from src.core.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)
JUDGMENT_STATUS = "Disposed"

DOCTYPE_FILTERS: dict[CourtCategory, str] = {
    CourtCategory.SUPREME_COURT: "supremecourt",
    CourtCategory.HIGH_COURT: "allhighcourts",
    CourtCategory.DISTRICT_COURT: "alldistrictcourts",
    CourtCategory.TRIBUNAL: "alltribunals",
}

_CASE_NO_RE = re.compile(r"(?:No\.?\s*)?(\d+)\s*(?:/|of)\s*((?:19|20)\d{2})", re.IGNORECASE)
_DATE_YEAR_RE = re.compile(r"on\s+\d{1,2}\s+\w+,?\s+((?:19|20)\d{2})")
_DOC_ID_RE = re.compile(r"/(?:docfragment|doc)/(\d+)")


def infer_court_category(source: str) -> CourtCategory:
    """Guess the court tier from a result's court-name label."""
    lowered = source.lower()
    if "supreme court" in lowered:
        return CourtCategory.SUPREME_COURT
    if "high court" in lowered:
        return CourtCategory.HIGH_COURT
    if any(word in lowered for word in ("tribunal", "nclt", "company law")):
        return CourtCategory.TRIBUNAL
    if "consumer" in lowered or "ncdrc" in lowered:
        return CourtCategory.CONSUMER_FORUM
    return CourtCategory.DISTRICT_COURT


def extract_case_number(title: str) -> tuple[str, str]:
    """``(number, year)`` from "No. 1234/2022" or "1234 of 2022" forms.

    Falls back to the decision year of an "on 12 March, 2023" suffix with
    an empty number.
    """
    match = _CASE_NO_RE.search(title)
    if match:
        return match.group(1), match.group(2)
    dated = _DATE_YEAR_RE.search(title)
    if dated:
        return "", dated.group(1)
    return "", ""


def build_query(name: str, category: CourtCategory | None) -> str:
    doctype = DOCTYPE_FILTERS.get(category) if category else None
    return f"{name} doctypes: {doctype}" if doctype else name


def parse_results_page(markup: str, max_results: int = 20) -> list[SearchResult]:
    """Parse the ``<article class="result">`` blocks of a search page."""
    soup = BeautifulSoup(markup, "html.parser")
    results: list[SearchResult] = []
    for article in soup.select("article.result"):
        if len(results) >= max_results:
            break

        link = article.select_one(".result_title a")
        if link is None:
            continue
        raw_title = link.get_text(" ", strip=True)
        if not raw_title:
            continue

        source_tag = article.select_one(".docsource")
        court_name = source_tag.get_text(" ", strip=True) if source_tag else ""
        title = clean_judgment_title(raw_title) or raw_title
        petitioner, respondent = split_parties(title)
        case_number, case_year = extract_case_number(raw_title)
        if not case_number:
            doc_id = _DOC_ID_RE.search(str(link.get("href", "")))
            case_number = doc_id.group(1) if doc_id else ""

        results.append(
            SearchResult(
                title=title,
                case_number=case_number,
                case_year=case_year,
                court_category=infer_court_category(court_name),
                court_name=court_name,
                status=JUDGMENT_STATUS,
                petitioner=petitioner or None,
                respondent=respondent or None,
                source=PublicCaseSearchProvider.name,
            )
        )
    return results


class PublicCaseSearchProvider(CourtProvider):
    """Search-only provider over the public judgment search site."""

    name = "public_search"
    supports_registry_lookup = False

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = settings.public_search_url.rstrip("/")
        self._max_results = settings.public_search_max_results
        self._client = http_client or httpx.AsyncClient(
            timeout=settings.public_search_timeout_seconds,
            follow_redirects=True,
        )
        self._owns_client = http_client is None

    async def close(self) -> None:
        """Close the underlying HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def get_status(self, identifier: CaseIdentifier) -> CaseSnapshot | None:
        return None

    async def search_by_party(
        self,
        name: str,
        category: CourtCategory | None = None,
        state_code: str | None = None,
        year: str | None = None,
    ) -> list[SearchResult]:
        """Party search narrowed by a ``doctypes:`` filter for the category.

        Consumer forums have no filter of their own and search unfiltered.
        """
        return await self.search_judgments(build_query(name, category))

    async def search_judgments(self, query: str, page: int = 0) -> list[SearchResult]:
        """One page of results for a free-text query."""
        headers = browser_headers(USER_AGENT)
        headers["Accept-Language"] = "en-US,en;q=0.9"
        try:
            response = await self._client.get(
                f"{self._base_url}/search/",
                params={"formInput": query, "pagenum": str(page)},
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            msg = f"Public search returned HTTP {exc.response.status_code}"
            raise UpstreamTransportError(msg, details={"query": query}) from exc
        except httpx.HTTPError as exc:
            msg = f"Public search request failed: {exc}"
            raise UpstreamTransportError(msg, details={"query": query}) from exc

        results = parse_results_page(response.text, self._max_results)
        logger.info("public_search_complete", query=query, page=page, results=len(results))
        return results
