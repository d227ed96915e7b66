"""Tests for portal session negotiation and the fresh-session retry loop.

Upstream portals are simulated with ``httpx.MockTransport``; the CAPTCHA
solver is an ``AsyncMock``.
"""

import re
from unittest.mock import AsyncMock

import httpx
import pytest

from src.core.exceptions import CaptchaRejectedError, SessionError, UpstreamTransportError
from src.services.courts.retry import with_fresh_session
from src.services.courts.session import (
    SessionNegotiator,
    UpstreamSession,
    collect_cookies,
    extract_hidden_fields,
)

BASE_URL = "https://portal.test/app"
IMAGE_PATTERNS = (re.compile(r"""<img[^>]+id=["']captcha["'][^>]+src=["']([^"']+)["']"""),)

PAGE_WITH_IMAGE = """
<form>
  <input type="hidden" name="scid" value="abc123">
  <input type="hidden" name="tok_9f8e7d" value="csrf-value">
  <input type="text" name="case_no" value="">
  <img id="captcha" src="captcha.php?t=1">
</form>
"""


def _negotiator(handler, solver: AsyncMock | None = None) -> SessionNegotiator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    if solver is None:
        solver = AsyncMock()
        solver.solve = AsyncMock(return_value="10")
    return SessionNegotiator(client, solver, image_patterns=IMAGE_PATTERNS)


def _portal(page: str, *, page_status: int = 200, image_status: int = 200):
    """Handler serving the case page and its CAPTCHA image; records requests."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("captcha.php"):
            return httpx.Response(
                image_status,
                content=b"\x89PNGimage",
                headers={"Set-Cookie": "img_sess=2; Path=/"},
            )
        return httpx.Response(
            page_status,
            text=page,
            headers=[("Set-Cookie", "PHPSESSID=1; Path=/"), ("Set-Cookie", "lb=a; HttpOnly")],
        )

    return handler, seen


# ===================================================================
# Helpers
# ===================================================================


class TestHelpers:
    def test_hidden_fields_collected(self):
        fields = extract_hidden_fields(PAGE_WITH_IMAGE)
        assert fields == {"scid": "abc123", "tok_9f8e7d": "csrf-value"}

    def test_first_value_wins(self):
        markup = '<input type="hidden" name="a" value="1"><input type="hidden" name="a" value="2">'
        assert extract_hidden_fields(markup) == {"a": "1"}

    def test_cookie_pairs_in_header_order(self):
        response = httpx.Response(
            200, headers=[("Set-Cookie", "a=1; Path=/"), ("Set-Cookie", "b=2")]
        )
        assert collect_cookies(response) == ["a=1", "b=2"]

    def test_request_headers(self):
        session = UpstreamSession(cookies="a=1", captcha_answer="5", referer=BASE_URL)
        headers = session.request_headers({"User-Agent": "x"})
        assert headers == {"User-Agent": "x", "Cookie": "a=1", "Referer": BASE_URL}


# ===================================================================
# SessionNegotiator
# ===================================================================


class TestOpenSession:
    async def test_image_solved_and_cookies_merged(self):
        handler, seen = _portal(PAGE_WITH_IMAGE)
        negotiator = _negotiator(handler)

        session = await negotiator.open_session(BASE_URL)

        assert session.captcha_answer == "10"
        assert session.cookies == "PHPSESSID=1; lb=a; img_sess=2"
        assert session.form_fields["scid"] == "abc123"
        assert session.csrf_field == "tok_9f8e7d"
        assert session.referer == BASE_URL

        image_request = seen[1]
        assert str(image_request.url) == "https://portal.test/app/captcha.php?t=1"
        assert image_request.headers["Cookie"] == "PHPSESSID=1; lb=a"

    async def test_answer_in_markup_skips_solver(self):
        page = '<input type="hidden" name="scid" value="x"><span>3 + 4</span>'
        handler, seen = _portal(page)
        solver = AsyncMock()
        negotiator = _negotiator(handler, solver)

        session = await negotiator.open_session(BASE_URL)

        assert session.captcha_answer == "7"
        assert len(seen) == 1
        solver.solve.assert_not_called()

    async def test_required_field_missing(self):
        handler, _ = _portal('<img id="captcha" src="c.png">')
        with pytest.raises(SessionError, match="scid"):
            await _negotiator(handler).open_session(BASE_URL, required_fields=("scid",))

    async def test_csrf_required(self):
        page = '<input type="hidden" name="scid" value="x"><img id="captcha" src="captcha.php">'
        handler, _ = _portal(page)
        with pytest.raises(SessionError, match="CSRF"):
            await _negotiator(handler).open_session(BASE_URL, require_csrf=True)

    async def test_no_captcha_image(self):
        handler, _ = _portal("<form></form>")
        with pytest.raises(SessionError, match="No CAPTCHA image"):
            await _negotiator(handler).open_session(BASE_URL)

    async def test_unsolved_captcha(self):
        handler, _ = _portal(PAGE_WITH_IMAGE)
        solver = AsyncMock()
        solver.solve = AsyncMock(return_value=None)
        with pytest.raises(SessionError, match="could not be solved"):
            await _negotiator(handler, solver).open_session(BASE_URL)

    async def test_page_http_error(self):
        handler, _ = _portal(PAGE_WITH_IMAGE, page_status=503)
        with pytest.raises(SessionError, match="HTTP 503"):
            await _negotiator(handler).open_session(BASE_URL)

    async def test_image_http_error(self):
        handler, _ = _portal(PAGE_WITH_IMAGE, image_status=404)
        with pytest.raises(SessionError, match="image returned HTTP 404"):
            await _negotiator(handler).open_session(BASE_URL)

    async def test_transport_failure_is_session_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(SessionError, match="fetch failed"):
            await _negotiator(handler).open_session(BASE_URL)


# ===================================================================
# with_fresh_session
# ===================================================================


class TestWithFreshSession:
    async def test_first_success_returned(self):
        attempt_fn = AsyncMock(return_value="snapshot")
        result = await with_fresh_session(attempt_fn, provider="p", operation="op")
        assert result == "snapshot"
        attempt_fn.assert_awaited_once_with(1)

    async def test_rejections_bounded_to_three_attempts(self):
        attempt_fn = AsyncMock(side_effect=CaptchaRejectedError("wrong answer"))
        result = await with_fresh_session(attempt_fn, provider="p", operation="op")
        assert result is None
        assert [c.args[0] for c in attempt_fn.await_args_list] == [1, 2, 3]

    async def test_recovers_after_session_failure(self):
        attempt_fn = AsyncMock(side_effect=[SessionError("no captcha"), "snapshot"])
        result = await with_fresh_session(attempt_fn, provider="p", operation="op")
        assert result == "snapshot"
        assert attempt_fn.await_count == 2

    async def test_transport_error_propagates(self):
        attempt_fn = AsyncMock(side_effect=UpstreamTransportError("down"))
        with pytest.raises(UpstreamTransportError):
            await with_fresh_session(attempt_fn, provider="p", operation="op")
        attempt_fn.assert_awaited_once()

    async def test_custom_bound(self):
        attempt_fn = AsyncMock(side_effect=SessionError("x"))
        assert await with_fresh_session(attempt_fn, provider="p", operation="op", attempts=1) is None
        assert attempt_fn.await_count == 1
