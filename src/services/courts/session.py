"""Portal session negotiation: cookies, hidden tokens and the CAPTCHA answer.

Court portals only accept a case query from a session that has loaded
the case-status page, carries its cookies back verbatim, echoes any
hidden anti-forgery fields, and submits the answer to the CAPTCHA shown
on that page. ``SessionNegotiator.open_session`` performs that handshake
once. A rejected CAPTCHA invalidates the whole session, so callers ask
for a new one on every attempt (see ``courts.retry``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import structlog

from src.core.exceptions import SessionError
from src.services.captcha.markup import answer_from_markup
from src.services.courts.html import resolve_url

if TYPE_CHECKING:
    from src.services.captcha.solver import CaptchaSolver

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
MOBILE_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)


def browser_headers(user_agent: str = DESKTOP_USER_AGENT) -> dict[str, str]:
    """Headers that make a request look like an ordinary page load."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }


_INPUT_TAG_RE = re.compile(r"<input\b[^>]*>", re.IGNORECASE)
_ATTR_RE = re.compile(r"""([\w-]+)\s*=\s*["']([^"']*)["']""")
_CSRF_NAME_RE = re.compile(r"^tok_[a-f0-9]+$", re.IGNORECASE)


@dataclass(frozen=True)
class UpstreamSession:
    """Everything a single case query needs to be accepted upstream."""

    cookies: str
    captcha_answer: str
    form_fields: dict[str, str] = field(default_factory=dict)
    csrf_field: str | None = None
    referer: str = ""

    def request_headers(self, base: dict[str, str]) -> dict[str, str]:
        headers = dict(base)
        if self.cookies:
            headers["Cookie"] = self.cookies
        if self.referer:
            headers["Referer"] = self.referer
        return headers


def collect_cookies(response: httpx.Response) -> list[str]:
    """``name=value`` of every ``Set-Cookie`` on a response, in header order."""
    pairs: list[str] = []
    for raw in response.headers.get_list("set-cookie"):
        pair = raw.split(";", 1)[0].strip()
        if pair:
            pairs.append(pair)
    return pairs


def join_cookies(*groups: list[str]) -> str:
    return "; ".join(pair for group in groups for pair in group)


def extract_hidden_fields(markup: str) -> dict[str, str]:
    """Map of name (or id) to value for every ``<input>`` carrying a value.

    Only hidden inputs and the known token names are collected; visible
    form inputs are left to the caller.
    """
    fields: dict[str, str] = {}
    for tag in _INPUT_TAG_RE.findall(markup):
        attrs = {key.lower(): value for key, value in _ATTR_RE.findall(tag)}
        name = attrs.get("name") or attrs.get("id")
        if not name or "value" not in attrs:
            continue
        if attrs.get("type", "").lower() == "hidden" or name == "scid" or _CSRF_NAME_RE.match(name):
            fields.setdefault(name, attrs["value"])
    return fields


def find_captcha_image(markup: str, patterns: tuple[re.Pattern[str], ...]) -> str | None:
    for pattern in patterns:
        match = pattern.search(markup)
        if match:
            return match.group(1)
    return None


class SessionNegotiator:
    """Opens fresh upstream sessions for one provider.

    Holds no per-session state: every ``open_session`` call starts from
    an empty cookie jar and a new CAPTCHA.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        solver: CaptchaSolver,
        *,
        image_patterns: tuple[re.Pattern[str], ...],
        user_agent: str = DESKTOP_USER_AGENT,
        page_timeout: float = 10.0,
        image_timeout: float = 10.0,
    ) -> None:
        self._client = http_client
        self._solver = solver
        self._image_patterns = image_patterns
        self._user_agent = user_agent
        self._page_timeout = page_timeout
        self._image_timeout = image_timeout

    async def open_session(
        self,
        base_url: str,
        *,
        page_url: str | None = None,
        required_fields: tuple[str, ...] = (),
        require_csrf: bool = False,
    ) -> UpstreamSession:
        """Load the portal page and return a session ready for one query.

        Raises:
            SessionError: the page could not be fetched, a required token
                is missing, or no CAPTCHA answer could be obtained.
        """
        page_url = page_url or base_url
        headers = browser_headers(self._user_agent)

        # Sessions must not inherit cookies from an earlier attempt.
        self._client.cookies.clear()
        try:
            response = await self._client.get(
                page_url,
                headers=headers,
                timeout=self._page_timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            msg = f"Session page fetch failed: {exc}"
            raise SessionError(msg, details={"url": page_url}) from exc
        if response.status_code >= 400:
            msg = f"Session page returned HTTP {response.status_code}"
            raise SessionError(msg, details={"url": page_url, "status": response.status_code})

        page_cookies = collect_cookies(response)
        markup = response.text
        fields = extract_hidden_fields(markup)

        missing = [name for name in required_fields if not fields.get(name)]
        if missing:
            msg = f"Session page lacks required fields: {', '.join(missing)}"
            raise SessionError(msg, details={"url": page_url})

        csrf_field = next((name for name in fields if _CSRF_NAME_RE.match(name)), None)
        if require_csrf and csrf_field is None:
            msg = "Session page carries no CSRF token"
            raise SessionError(msg, details={"url": page_url})

        answer = answer_from_markup(markup)
        if answer is not None:
            logger.info("captcha_answer_in_markup", url=page_url)
            return UpstreamSession(
                cookies=join_cookies(page_cookies),
                captcha_answer=answer,
                form_fields=fields,
                csrf_field=csrf_field,
                referer=page_url,
            )

        image_ref = find_captcha_image(markup, self._image_patterns)
        if image_ref is None:
            msg = "No CAPTCHA image on session page"
            raise SessionError(msg, details={"url": page_url})

        image_url = resolve_url(base_url, image_ref)
        image_bytes, image_cookies = await self._download_image(
            image_url, cookies=join_cookies(page_cookies), referer=page_url
        )

        solved = await self._solver.solve(image_bytes)
        if solved is None:
            msg = "CAPTCHA could not be solved"
            raise SessionError(msg, details={"url": image_url})

        return UpstreamSession(
            cookies=join_cookies(page_cookies, image_cookies),
            captcha_answer=solved,
            form_fields=fields,
            csrf_field=csrf_field,
            referer=page_url,
        )

    async def _download_image(
        self,
        image_url: str,
        *,
        cookies: str,
        referer: str,
    ) -> tuple[bytes, list[str]]:
        headers = {"User-Agent": self._user_agent, "Referer": referer}
        if cookies:
            headers["Cookie"] = cookies
        try:
            response = await self._client.get(image_url, headers=headers, timeout=self._image_timeout)
        except httpx.HTTPError as exc:
            msg = f"CAPTCHA image fetch failed: {exc}"
            raise SessionError(msg, details={"url": image_url}) from exc
        if response.status_code >= 400:
            msg = f"CAPTCHA image returned HTTP {response.status_code}"
            raise SessionError(msg, details={"url": image_url, "status": response.status_code})
        return response.content, collect_cookies(response)
