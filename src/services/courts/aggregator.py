"""Paid third-party court-data API used as a fallback after the official portals.

The aggregator speaks JSON over bearer-key auth and covers every court
tier, including CNR lookup. Its field names drift between endpoints
(``case_status`` vs ``status``, ``bench`` vs ``judge``), so every read
goes through an alias list. Without an API key the provider is disabled.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from src.core.exceptions import UpstreamTransportError
from src.models.domain import (
    CaseIdentifier,
    CaseSnapshot,
    CourtCategory,
    HearingEntry,
    OrderEntry,
    SearchResult,
)
from src.services.courts.base import CourtProvider

if TYPE_CHECKING:
    from src.core.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

ENDPOINTS: dict[CourtCategory, str] = {
    CourtCategory.SUPREME_COURT: "/api/v1/supreme-court",
    CourtCategory.HIGH_COURT: "/api/v1/high-court",
    CourtCategory.DISTRICT_COURT: "/api/v1/district-court",
    CourtCategory.TRIBUNAL: "/api/v1/nclt",
    CourtCategory.CONSUMER_FORUM: "/api/v1/consumer-forum",
}
CNR_ENDPOINT = "/api/v1/district-court/cnr"


def _pick(raw: dict[str, Any], *keys: str) -> str | None:
    """First non-empty value among ``keys``, as a stripped string."""
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def normalize_case(raw: dict[str, Any]) -> CaseSnapshot:
    """Map an aggregator case payload onto ``CaseSnapshot``."""
    history = [
        HearingEntry(
            date=_pick(entry, "hearing_date", "date") or "",
            purpose=_pick(entry, "purpose", "business") or "",
            court_number=_pick(entry, "court_no"),
            judge=_pick(entry, "judge"),
            order_details=_pick(entry, "order_details"),
        )
        for entry in raw.get("history") or []
        if isinstance(entry, dict)
    ]
    orders = [
        OrderEntry(
            date=_pick(entry, "order_date", "date") or "",
            order_type=_pick(entry, "order_type") or "Order",
            summary=_pick(entry, "order_details", "summary"),
            document_url=_pick(entry, "pdf_url", "download_link"),
        )
        for entry in raw.get("orders") or []
        if isinstance(entry, dict)
    ]
    acts = [str(act).strip() for act in raw.get("acts") or [] if str(act).strip()]

    return CaseSnapshot(
        title=_pick(raw, "case_title") or "",
        current_status=_pick(raw, "status", "case_status") or "",
        petitioner=_pick(raw, "petitioner"),
        respondent=_pick(raw, "respondent"),
        petitioner_advocate=_pick(raw, "petitioner_advocate"),
        respondent_advocate=_pick(raw, "respondent_advocate"),
        judges=_pick(raw, "judge", "bench"),
        filing_date=_pick(raw, "filing_date"),
        registration_date=_pick(raw, "registration_date"),
        decision_date=_pick(raw, "decision_date"),
        next_hearing_date=_pick(raw, "next_hearing_date", "next_date"),
        last_order_date=_pick(raw, "last_order_date"),
        last_order_summary=_pick(raw, "last_order"),
        hearing_history=history,
        orders=orders,
        acts=acts,
        raw_payload=raw,
    )


def normalize_search_result(raw: dict[str, Any], category: CourtCategory) -> SearchResult:
    return SearchResult(
        title=_pick(raw, "case_title") or "Unknown",
        case_number=_pick(raw, "case_number", "reg_no") or "",
        case_year=_pick(raw, "case_year", "year") or "",
        case_type=_pick(raw, "case_type") or "",
        court_category=category,
        court_name=_pick(raw, "court_name", "establishment") or "",
        court_code=_pick(raw, "court_code"),
        cnr_number=_pick(raw, "cnr_number"),
        status=_pick(raw, "status"),
        petitioner=_pick(raw, "petitioner"),
        respondent=_pick(raw, "respondent"),
        next_hearing_date=_pick(raw, "next_hearing_date"),
        source=LegalAggregatorApiProvider.name,
    )


class LegalAggregatorApiProvider(CourtProvider):
    """JSON client for the court-data aggregator API."""

    name = "aggregator"
    supports_registry_lookup = True
    status_uses_registry = True

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = settings.aggregator_api_url.rstrip("/")
        self._api_key = settings.aggregator_api_key
        self._client = http_client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=settings.aggregator_timeout_seconds,
        )
        self._owns_client = http_client is None

    @property
    def is_enabled(self) -> bool:
        return bool(self._api_key)

    async def close(self) -> None:
        """Close the underlying HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def get_status(self, identifier: CaseIdentifier) -> CaseSnapshot | None:
        if not self.is_enabled:
            return None

        endpoint = ENDPOINTS[identifier.court_category]
        params: dict[str, str] = {}
        if identifier.has_registry_number:
            params["cnr_number"] = (identifier.cnr_number or "").strip()
        else:
            params["case_type"] = identifier.case_type_code or identifier.case_type
            params["case_number"] = identifier.case_number
            params["case_year"] = identifier.case_year
            for key, value in (
                ("state_code", identifier.state_code),
                ("district_code", identifier.district_code),
                ("court_code", identifier.court_code),
            ):
                if value:
                    params[key] = value

        data = await self._get(f"{endpoint}/case-status", params)
        if data is None:
            return None
        return normalize_case(data)

    async def get_status_by_registry(self, cnr_number: str) -> CaseSnapshot | None:
        if not self.is_enabled or not cnr_number.strip():
            return None
        data = await self._get(CNR_ENDPOINT, {"cnr_number": cnr_number.strip().upper()})
        if data is None:
            return None
        return normalize_case(data)

    async def search_by_party(
        self,
        name: str,
        category: CourtCategory | None = None,
        state_code: str | None = None,
        year: str | None = None,
    ) -> list[SearchResult]:
        if not self.is_enabled:
            return []

        category = category or CourtCategory.DISTRICT_COURT
        params = {"party_name": name}
        if state_code:
            params["state_code"] = state_code
        if year:
            params["year"] = year

        data = await self._get(f"{ENDPOINTS[category]}/search", params)
        if data is None:
            return []
        rows = data.get("cases") or data.get("results") or []
        return [normalize_search_result(row, category) for row in rows if isinstance(row, dict)]

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any] | None:
        """GET ``path``; ``None`` when the API answers with an ``error`` body."""
        try:
            response = await self._client.get(
                f"{self._base_url}{path}",
                params=params,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Accept": "application/json",
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            msg = f"Aggregator API returned HTTP {exc.response.status_code}"
            raise UpstreamTransportError(
                msg, details={"path": path, "status": exc.response.status_code}
            ) from exc
        except httpx.HTTPError as exc:
            msg = f"Aggregator API request failed: {exc}"
            raise UpstreamTransportError(msg, details={"path": path}) from exc

        try:
            data = response.json()
        except ValueError as exc:
            msg = "Aggregator API returned a non-JSON body"
            raise UpstreamTransportError(msg, details={"path": path}) from exc

        if not isinstance(data, dict):
            return None
        if data.get("error"):
            logger.info("aggregator_lookup_error", path=path, error=str(data["error"]))
            return None
        return data
