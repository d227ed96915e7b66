"""eCourts case-status provider (high courts and district courts).

Two portals share one request shape: a form POST to ``index.php`` with
the session cookies and CAPTCHA answer. The high-court portal serves
HC cases; district, tribunal and consumer-forum cases all go to the
district portal. Responses are HTML fragments that signal a wrong
CAPTCHA or a missing record in plain text.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import httpx
import structlog

from src.core.exceptions import CaptchaRejectedError, UpstreamTransportError
from src.models.domain import (
    CaseIdentifier,
    CaseSnapshot,
    CourtCategory,
    HearingEntry,
    OrderEntry,
    SearchResult,
)
from src.services.courts.base import CourtProvider
from src.services.courts.html import (
    cell_at,
    extract_table_rows,
    find_document_link,
    first_field,
    iter_rows,
)
from src.services.courts.retry import with_fresh_session
from src.services.courts.session import (
    MOBILE_USER_AGENT,
    SessionNegotiator,
    UpstreamSession,
    browser_headers,
)
from src.utils.text_cleaning import split_parties

if TYPE_CHECKING:
    from src.core.config import Settings
    from src.services.captcha.solver import CaptchaSolver

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

_CAPTCHA_REJECTED_MARKERS = ("invalid captcha", "captcha is required")
_NOT_FOUND_MARKERS = ("record not found", "no record found")

_CAPTCHA_IMAGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"""src=["']([^"']*(?:captcha|securimage)[^"']*(?:\.php|\.png|\.jpg)[^"']*)["']""",
        re.IGNORECASE,
    ),
    re.compile(r"""id=["']captcha_image["'][^>]*src=["']([^"']+)["']""", re.IGNORECASE),
    re.compile(r"""src=["']([^"']+)["'][^>]*id=["']captcha_image["']""", re.IGNORECASE),
)
_CNR_IN_ROW_RE = re.compile(r"""(?:cnr_number|cnr|cino)=["']?([A-Z0-9]+)""", re.IGNORECASE)
_CASE_NO_RE = re.compile(r"([A-Za-z/().]+)\s*/?\s*(\d+)\s*/\s*(\d{4})")
_STATUS_WORD_RE = re.compile(r"pending|disposed|dismissed|allowed|decree", re.IGNORECASE)
_HISTORY_HEADER_KEYWORDS = ("judge", "hearing", "sl", "sr", "date")
_ORDER_HEADER_KEYWORDS = ("order", "sr", "sl", "date")
_SEARCH_HEADER_KEYWORDS = ("sr", "sl", "case")


def is_captcha_rejected(markup: str) -> bool:
    lowered = markup.lower()
    return any(marker in lowered for marker in _CAPTCHA_REJECTED_MARKERS)


def is_not_found(markup: str) -> bool:
    lowered = markup.lower()
    return any(marker in lowered for marker in _NOT_FOUND_MARKERS)


# ---------------------------------------------------------------------------
# Result parsing
# ---------------------------------------------------------------------------


def _parse_acts(markup: str) -> list[str]:
    acts: list[str] = []
    for row in extract_table_rows(
        markup, r"acts|under\s+section|act[\s-]+section", skip_keywords=("act",)
    ):
        acts.append(" - ".join(cell for cell in row.cells if cell))
    return acts


def parse_case_html(markup: str, base_url: str | None = None) -> CaseSnapshot | None:
    """Parse an eCourts case-status fragment. ``None`` when it holds no case."""
    if not markup or not markup.strip() or is_not_found(markup) or is_captcha_rejected(markup):
        return None

    hearings = [
        HearingEntry(
            date=row.cells[0],
            purpose=row.cells[1] or cell_at(row.cells, 2),
            court_number=cell_at(row.cells, 2) or None,
            judge=cell_at(row.cells, 3) or None,
        )
        for row in extract_table_rows(
            markup,
            r"case\s+history|hearing\s+details|business\s+on\s+date",
            skip_keywords=_HISTORY_HEADER_KEYWORDS,
        )
    ]
    orders = [
        OrderEntry(
            date=row.cells[0],
            order_type=row.cells[1] or "Order",
            summary=cell_at(row.cells, 2) or None,
            document_url=find_document_link(row.markup, base_url, pdf_only=False),
        )
        for row in extract_table_rows(
            markup, r"orders?|judgment", skip_keywords=_ORDER_HEADER_KEYWORDS
        )
    ]

    return CaseSnapshot(
        title=first_field(markup, "Case Title", "Case Details"),
        current_status=first_field(markup, "Case Status", "Status", "Stage of Case"),
        petitioner=first_field(
            markup, "Petitioner", "Petitioner/Applicant", "Petitioner Name", "Appellant"
        ),
        respondent=first_field(
            markup, "Respondent", "Respondent/Opponent", "Respondent Name", "Opposite Party"
        ),
        petitioner_advocate=first_field(
            markup, "Petitioner Advocate", "Advocate for Petitioner", "Pet. Adv."
        ),
        respondent_advocate=first_field(
            markup, "Respondent Advocate", "Advocate for Respondent", "Resp. Adv."
        ),
        judges=first_field(markup, "Coram", "Judge", "Court Number and Judge"),
        filing_date=first_field(markup, "Filing Date", "Date of Filing", "First Hearing Date"),
        registration_date=first_field(markup, "Registration Date", "Date of Registration"),
        decision_date=first_field(markup, "Decision Date", "Date of Decision", "Disposal Date"),
        next_hearing_date=first_field(
            markup, "Next Hearing Date", "Next Date", "Next Date of Hearing"
        ),
        last_order_date=first_field(markup, "Last Order Date", "Order Date"),
        hearing_history=hearings,
        orders=orders,
        acts=_parse_acts(markup),
        raw_payload={"source_html": markup},
    )


def parse_search_html(markup: str, category: CourtCategory) -> list[SearchResult]:
    """Parse a party-name search fragment from either portal."""
    if not markup or is_not_found(markup) or is_captcha_rejected(markup):
        return []

    court_name = "High Court" if category is CourtCategory.HIGH_COURT else "District Court"
    results: list[SearchResult] = []
    for row in iter_rows(markup):
        cells = row.cells
        if len(cells) < 3 or any(cells[0].lower().startswith(k) for k in _SEARCH_HEADER_KEYWORDS):
            continue

        cnr = _CNR_IN_ROW_RE.search(row.markup)
        case_no = _CASE_NO_RE.search(cells[1]) or _CASE_NO_RE.search(cells[2])
        title = next((c for c in cells if re.search(r"\s(?:vs|v\.)\s", c, re.IGNORECASE)), "")
        petitioner, respondent = split_parties(title)

        results.append(
            SearchResult(
                title=title or cells[2] or cells[1],
                case_number=case_no.group(2) if case_no else cells[1],
                case_year=case_no.group(3) if case_no else "",
                case_type=case_no.group(1).strip("/") if case_no else "",
                court_category=category,
                court_name=court_name,
                cnr_number=cnr.group(1) if cnr else None,
                status=next((c for c in cells if _STATUS_WORD_RE.search(c)), None),
                petitioner=petitioner or None,
                respondent=respondent or None,
                source=EcourtsProvider.name,
            )
        )
    return results


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class EcourtsProvider(CourtProvider):
    """Case status, CNR lookup and party search over the eCourts portals."""

    name = "ecourts"
    supports_registry_lookup = True
    status_uses_registry = True

    def __init__(
        self,
        settings: Settings,
        solver: CaptchaSolver,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._district_base = settings.ecourts_district_base_url.rstrip("/")
        self._high_court_base = settings.ecourts_high_court_base_url.rstrip("/")
        self._timeout = settings.ecourts_timeout_seconds
        self._attempts = settings.captcha_max_attempts
        self._client = http_client or httpx.AsyncClient(timeout=self._timeout)
        self._owns_client = http_client is None
        self._negotiator = SessionNegotiator(
            self._client,
            solver,
            image_patterns=_CAPTCHA_IMAGE_PATTERNS,
            user_agent=MOBILE_USER_AGENT,
            page_timeout=settings.ecourts_session_timeout_seconds,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    def _base_for(self, category: CourtCategory) -> str:
        if category is CourtCategory.HIGH_COURT:
            return self._high_court_base
        return self._district_base

    async def get_status(self, identifier: CaseIdentifier) -> CaseSnapshot | None:
        if identifier.court_category is CourtCategory.SUPREME_COURT:
            return None

        if identifier.has_registry_number:
            snapshot = await self.get_status_by_registry(identifier.cnr_number or "")
            if snapshot is not None:
                return snapshot

        if not identifier.case_number:
            return None

        form = {
            "case_type": identifier.case_type_code or identifier.case_type,
            "case_no": identifier.case_number,
            "rgyear": identifier.case_year,
            "state_code": identifier.state_code or "",
        }
        if identifier.court_category.uses_district_portal:
            form["dist_code"] = identifier.district_code or ""
            form["court_code"] = identifier.court_code or ""

        return await self._lookup(self._base_for(identifier.court_category), form, "get_status")

    async def get_status_by_registry(self, cnr_number: str) -> CaseSnapshot | None:
        """Try the high-court portal, then the district portal; first hit wins.

        The CNR format does not tell us which tier issued it, so both are
        asked in turn. A transport failure on one tier does not stop the
        other from being tried.
        """
        cnr = cnr_number.strip().upper()
        if not cnr:
            return None

        for base in (self._high_court_base, self._district_base):
            try:
                snapshot = await self._lookup(base, {"cino": cnr}, "get_status_by_registry")
            except UpstreamTransportError as exc:
                logger.warning("ecourts_cnr_tier_failed", base_url=base, error=exc.message)
                continue
            if snapshot is not None:
                return snapshot
        return None

    async def search_by_party(
        self,
        name: str,
        category: CourtCategory | None = None,
        state_code: str | None = None,
        year: str | None = None,
    ) -> list[SearchResult]:
        tiers: list[tuple[str, CourtCategory]] = []
        if category is None or category is CourtCategory.HIGH_COURT:
            tiers.append((self._high_court_base, CourtCategory.HIGH_COURT))
        if category is None or category.uses_district_portal:
            tiers.append((self._district_base, category or CourtCategory.DISTRICT_COURT))

        form = {"partyname": name, "state_code": state_code or "", "rgyear": year or ""}
        results: list[SearchResult] = []
        for base, tier_category in tiers:

            async def attempt(
                _: int, base: str = base, tier: CourtCategory = tier_category
            ) -> list[SearchResult]:
                markup = await self._submit(base, form)
                return parse_search_html(markup, tier)

            try:
                found = await with_fresh_session(
                    attempt, provider=self.name, operation="search_by_party", attempts=self._attempts
                )
            except UpstreamTransportError as exc:
                logger.warning("ecourts_search_tier_failed", base_url=base, error=exc.message)
                continue
            results.extend(found or [])
        return results

    async def _lookup(self, base: str, form: dict[str, str], operation: str) -> CaseSnapshot | None:
        async def attempt(_: int) -> CaseSnapshot | None:
            markup = await self._submit(base, form)
            if is_not_found(markup):
                logger.info("ecourts_record_not_found", base_url=base, operation=operation)
                return None
            return parse_case_html(markup, base)

        return await with_fresh_session(
            attempt, provider=self.name, operation=operation, attempts=self._attempts
        )

    async def _submit(self, base: str, form: dict[str, str]) -> str:
        """Negotiate a fresh session and POST one query form. Returns the HTML."""
        session = await self._negotiator.open_session(base, page_url=base)
        markup = await self._post(base, session, form)
        if is_captcha_rejected(markup):
            raise CaptchaRejectedError("eCourts rejected the CAPTCHA answer", details={"base_url": base})
        return markup

    async def _post(self, base: str, session: UpstreamSession, form: dict[str, str]) -> str:
        headers = session.request_headers(browser_headers(MOBILE_USER_AGENT))
        headers["X-Requested-With"] = "XMLHttpRequest"
        data = {**form, "captcha": session.captcha_answer, "ajax_req": "true"}
        try:
            response = await self._client.post(
                f"{base}/index.php", data=data, headers=headers, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            msg = f"eCourts request failed: {exc}"
            raise UpstreamTransportError(msg, details={"base_url": base}) from exc
        if response.status_code >= 400:
            msg = f"eCourts returned HTTP {response.status_code}"
            raise UpstreamTransportError(msg, details={"base_url": base, "status": response.status_code})
        return response.text
