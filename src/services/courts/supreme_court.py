"""Supreme Court of India case-status provider (sci.gov.in).

The portal is a WordPress site. A lookup loads the case-status page to
pick up session cookies, the ``scid`` field, a ``tok_*`` CSRF token and
an arithmetic CAPTCHA, then calls ``admin-ajax.php`` with all of them.
The AJAX reply is JSON wrapping an HTML fragment, which is parsed with
the label/positional fallbacks below.

The Supreme Court has no CNR numbers, so registry lookup is unsupported.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

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
    extract_all_cells,
    extract_table_rows,
    find_document_link,
    first_field,
    iter_rows,
)
from src.services.courts.retry import with_fresh_session
from src.services.courts.session import SessionNegotiator, UpstreamSession, browser_headers
from src.utils.text_cleaning import compact_label, split_parties

if TYPE_CHECKING:
    from src.core.config import Settings
    from src.services.captcha.solver import CaptchaSolver

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

COURT_NAME = "Supreme Court of India"

# Registry codes used by the case-status form.
CASE_TYPES: dict[str, str] = {
    "1": "SLP(C)",
    "2": "SLP(Crl)",
    "3": "C.A.",
    "4": "Crl.A.",
    "5": "W.P.(C)",
    "6": "W.P.(Crl.)",
    "7": "T.P.(C)",
    "8": "T.P.(Crl.)",
}
DEFAULT_CASE_TYPE_CODE = "5"

_BY_LABEL: dict[str, str] = {label.upper(): code for code, label in CASE_TYPES.items()}
_BY_COMPACT_LABEL: dict[str, str] = {compact_label(label): code for code, label in CASE_TYPES.items()}

# Keyed by compact_label() form.
_ALIASES: dict[str, str] = {
    "SLP": "1",
    "SPECIALLEAVEPETITION": "1",
    "SPECIALLEAVEPETITIONCIVIL": "1",
    "SPECIALLEAVEPETITIONCRIMINAL": "2",
    "CIVILAPPEAL": "3",
    "CRIMINALAPPEAL": "4",
    "WRITPETITION": "5",
    "WRITPETITIONCIVIL": "5",
    "WRITPETITIONCRIMINAL": "6",
    "TRANSFERPETITION": "7",
    "TRANSFERPETITIONCIVIL": "7",
    "TRANSFERPETITIONCRIMINAL": "8",
}

_CAPTCHA_IMAGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"""class=["'][^"']*siwp_captcha_image[^"']*["'][^>]*src=["']([^"']+)["']""", re.IGNORECASE),
    re.compile(r"""id=["']siwp_captcha_image_0["'][^>]*src=["']([^"']+)["']""", re.IGNORECASE),
    re.compile(r"""src=["']([^"']+)["'][^>]*class=["'][^"']*siwp_captcha_image""", re.IGNORECASE),
)
_REGISTERED_ON_RE = re.compile(r"Registered on\s+(\d{2}-\d{2}-\d{4})", re.IGNORECASE)
_CASE_NO_RE = re.compile(r"(\d+)\s*/\s*(\d{4})")
_STATUS_WORD_RE = re.compile(r"pending|disposed|dismissed|allowed", re.IGNORECASE)
_SEARCH_HEADER_KEYWORDS = ("sl", "diary", "#")
_TABLE_HEADER_KEYWORDS = ("date", "sl")


def resolve_case_type_code(case_type: str, case_type_code: str | None = None) -> str:
    """Map a free-text case type to the portal's registry code.

    Tries an explicit code, the label as a code, the exact label, the
    punctuation-free label, then the alias table. Unknown input falls
    back to ``"5"`` (W.P.(C)) with a warning instead of failing.
    """
    if case_type_code and case_type_code in CASE_TYPES:
        return case_type_code

    stripped = case_type.strip()
    if stripped in CASE_TYPES:
        return stripped
    if stripped.upper() in _BY_LABEL:
        return _BY_LABEL[stripped.upper()]

    compact = compact_label(stripped)
    if compact in _BY_COMPACT_LABEL:
        return _BY_COMPACT_LABEL[compact]
    if compact in _ALIASES:
        return _ALIASES[compact]

    logger.warning(
        "supreme_court_case_type_unknown",
        case_type=case_type,
        fallback_code=DEFAULT_CASE_TYPE_CODE,
    )
    return DEFAULT_CASE_TYPE_CODE


# ---------------------------------------------------------------------------
# Result parsing
# ---------------------------------------------------------------------------


def parse_case_html(markup: str, base_url: str | None = None) -> CaseSnapshot | None:
    """Parse the case-status fragment returned by the AJAX endpoint.

    The fragment is usually a plain table (serial, diary no, case no,
    petitioner, respondent, status), so every labelled field falls back
    to its column position.
    """
    if not markup or not markup.strip():
        return None

    cells = extract_all_cells(markup)

    petitioner = first_field(markup, "Petitioner", "Appellant", "Petitioner Name") or cell_at(cells, 3)
    respondent = first_field(markup, "Respondent", "Respondent Name") or cell_at(cells, 4)
    status = first_field(markup, "Status", "Case Status", "Disposal Nature") or cell_at(cells, 5)

    registration_date = first_field(
        markup, "Registration Date", "Date of Registration", "Reg. Date"
    )
    if not registration_date:
        registered = _REGISTERED_ON_RE.search(cell_at(cells, 2))
        registration_date = registered.group(1) if registered else ""

    hearings = [
        HearingEntry(
            date=row.cells[0],
            purpose=row.cells[1],
            court_number=cell_at(row.cells, 2) or None,
            judge=cell_at(row.cells, 3) or None,
        )
        for row in extract_table_rows(
            markup, r"hearing|history|listing", skip_keywords=_TABLE_HEADER_KEYWORDS
        )
    ]
    orders = [
        OrderEntry(
            date=row.cells[0],
            order_type=row.cells[1] or "Order",
            summary=cell_at(row.cells, 2) or None,
            document_url=find_document_link(row.markup, base_url),
        )
        for row in extract_table_rows(
            markup, r"order|judgment", skip_keywords=_TABLE_HEADER_KEYWORDS
        )
    ]

    return CaseSnapshot(
        title=first_field(markup, "Case Title", "Title"),
        current_status=status,
        petitioner=petitioner,
        respondent=respondent,
        petitioner_advocate=first_field(
            markup, "Pet. Advocate", "Petitioner Advocate", "Advocate for Petitioner"
        ),
        respondent_advocate=first_field(
            markup, "Resp. Advocate", "Respondent Advocate", "Advocate for Respondent"
        ),
        judges=first_field(markup, "Bench", "Coram", "Judge"),
        filing_date=first_field(markup, "Filing Date", "Date of Filing"),
        registration_date=registration_date,
        decision_date=first_field(markup, "Decision Date", "Disposal Date"),
        next_hearing_date=first_field(
            markup, "Next Date", "Next Hearing", "Next Date of Hearing", "Listed On"
        ),
        last_order_date=first_field(markup, "Last Order Date", "Order Date"),
        hearing_history=hearings,
        orders=orders,
        raw_payload={"source_html": markup},
    )


def parse_search_html(markup: str) -> list[SearchResult]:
    """Parse the party-name search fragment into result rows."""
    results: list[SearchResult] = []
    for row in iter_rows(markup):
        cells = row.cells
        if len(cells) < 3 or any(cells[0].lower().startswith(k) for k in _SEARCH_HEADER_KEYWORDS):
            continue

        case_no = _CASE_NO_RE.search(cells[1])
        title = next((c for c in cells if re.search(r"\s(?:vs|v\.)\s", c, re.IGNORECASE)), "")
        petitioner, respondent = split_parties(title)
        status = next((c for c in cells if _STATUS_WORD_RE.search(c)), None)

        results.append(
            SearchResult(
                title=title or cells[2] or cells[1],
                case_number=case_no.group(1) if case_no else cells[1],
                case_year=case_no.group(2) if case_no else "",
                court_category=CourtCategory.SUPREME_COURT,
                court_name=COURT_NAME,
                status=status,
                petitioner=petitioner or None,
                respondent=respondent or None,
                source=SupremeCourtProvider.name,
            )
        )
    return results


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class SupremeCourtProvider(CourtProvider):
    """Case status and party search against the Supreme Court portal."""

    name = "supreme_court"
    supports_registry_lookup = False

    def __init__(
        self,
        settings: Settings,
        solver: CaptchaSolver,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = settings.supreme_court_base_url.rstrip("/")
        self._page_url = f"{self._base_url}/case-status-case-no/"
        self._ajax_url = f"{self._base_url}/wp-admin/admin-ajax.php"
        self._timeout = settings.supreme_court_timeout_seconds
        self._attempts = settings.captcha_max_attempts
        self._client = http_client or httpx.AsyncClient(timeout=self._timeout)
        self._owns_client = http_client is None
        self._negotiator = SessionNegotiator(
            self._client,
            solver,
            image_patterns=_CAPTCHA_IMAGE_PATTERNS,
            page_timeout=self._timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def get_status(self, identifier: CaseIdentifier) -> CaseSnapshot | None:
        if identifier.court_category is not CourtCategory.SUPREME_COURT:
            return None
        if not identifier.case_number:
            return None

        code = resolve_case_type_code(identifier.case_type, identifier.case_type_code)
        params = {
            "action": "get_case_status_case_no",
            "case_type": code,
            "case_no": identifier.case_number,
            "year": identifier.case_year,
        }

        async def attempt(_: int) -> CaseSnapshot | None:
            data, markup = await self._query(params)
            if not markup:
                return None
            snapshot = parse_case_html(markup, self._base_url)
            if snapshot is None:
                return None
            raw = {
                **snapshot.raw_payload,
                "ajax_response": data,
                "case_type_code": code,
                "case_number": identifier.case_number,
                "year": identifier.case_year,
            }
            return snapshot.model_copy(update={"raw_payload": raw})

        return await with_fresh_session(
            attempt, provider=self.name, operation="get_status", attempts=self._attempts
        )

    async def search_by_party(
        self,
        name: str,
        category: CourtCategory | None = None,
        state_code: str | None = None,
        year: str | None = None,
    ) -> list[SearchResult]:
        if category is not None and category is not CourtCategory.SUPREME_COURT:
            return []

        params = {"action": "get_case_status_party_name", "party_name": name}

        async def attempt(_: int) -> list[SearchResult]:
            _data, markup = await self._query(params)
            return parse_search_html(markup) if markup else []

        results = await with_fresh_session(
            attempt, provider=self.name, operation="search_by_party", attempts=self._attempts
        )
        return results or []

    async def _query(self, params: dict[str, str]) -> tuple[dict[str, Any], str]:
        """One session plus one AJAX call. Returns the JSON body and results HTML."""
        session = await self._negotiator.open_session(
            self._base_url,
            page_url=self._page_url,
            required_fields=("scid",),
            require_csrf=True,
        )
        data = await self._ajax(session, params)

        if not data.get("success"):
            message = _failure_message(data.get("data"))
            if "captcha" in message.lower():
                raise CaptchaRejectedError(
                    "Supreme Court rejected the CAPTCHA answer",
                    details={"message": message},
                )
            logger.warning("supreme_court_ajax_failure", action=params["action"], message=message)
            return data, ""

        payload = data.get("data")
        markup = ""
        if isinstance(payload, dict):
            markup = payload.get("resultsHtml") or payload.get("html") or ""
        if not markup:
            logger.warning("supreme_court_empty_results", action=params["action"])
        return data, markup

    async def _ajax(self, session: UpstreamSession, params: dict[str, str]) -> dict[str, Any]:
        query = {
            **params,
            "siwp_captcha_value": session.captcha_answer,
            "scid": session.form_fields.get("scid", ""),
            "es_ajax_request": "1",
            "language": "en",
        }
        if session.csrf_field:
            query[session.csrf_field] = session.form_fields[session.csrf_field]

        headers = session.request_headers(browser_headers())
        headers["Accept"] = "application/json, text/javascript, */*; q=0.01"
        headers["X-Requested-With"] = "XMLHttpRequest"

        try:
            response = await self._client.get(
                self._ajax_url, params=query, headers=headers, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            msg = f"Supreme Court request failed: {exc}"
            raise UpstreamTransportError(msg, details={"action": params["action"]}) from exc

        if response.status_code >= 400:
            msg = f"Supreme Court returned HTTP {response.status_code}"
            raise UpstreamTransportError(msg, details={"status": response.status_code})

        try:
            data = response.json()
        except ValueError as exc:
            msg = "Supreme Court returned a non-JSON body"
            raise UpstreamTransportError(msg) from exc
        return data if isinstance(data, dict) else {"success": False, "data": data}


def _failure_message(payload: object) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        return str(payload.get("message") or "")
    return ""
