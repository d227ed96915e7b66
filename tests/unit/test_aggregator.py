"""Tests for the aggregator API provider: aliasing, auth, error mapping."""

import httpx
import pytest

from src.core.exceptions import UpstreamTransportError
from src.models.domain import CourtCategory
from src.services.courts.aggregator import (
    LegalAggregatorApiProvider,
    normalize_case,
    normalize_search_result,
)
from tests.conftest import make_identifier, make_settings

API_URL = "https://aggregator.test"


def _provider(handler, *, api_key: str = "agg-key") -> LegalAggregatorApiProvider:
    settings = make_settings(aggregator_api_url=API_URL, aggregator_api_key=api_key)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LegalAggregatorApiProvider(settings, http_client=client)


def _recording(body: object, status: int = 200):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json=body)

    return handler, seen


class TestNormalization:
    def test_field_aliases(self):
        snapshot = normalize_case(
            {
                "case_status": "Disposed",
                "petitioner": "Ravi Kumar",
                "respondent": "State",
                "bench": "Justice A. Sharma",
                "next_date": "2025-03-15",
                "last_order": "Appeal allowed",
                "acts": ["IPC 420", " "],
                "history": [{"date": "2024-01-10", "business": "Arguments", "court_no": "4"}],
                "orders": [{"order_date": "2024-02-12", "download_link": "https://x/o.pdf"}],
            }
        )
        assert snapshot.current_status == "Disposed"
        assert snapshot.judges == "Justice A. Sharma"
        assert snapshot.next_hearing_date == "2025-03-15"
        assert snapshot.last_order_summary == "Appeal allowed"
        assert snapshot.acts == ["IPC 420"]
        assert snapshot.hearing_history[0].purpose == "Arguments"
        assert snapshot.orders[0].order_type == "Order"
        assert snapshot.orders[0].document_url == "https://x/o.pdf"
        assert snapshot.title == "Ravi Kumar vs State"

    def test_primary_key_preferred_over_alias(self):
        snapshot = normalize_case({"status": "Pending", "case_status": "Disposed", "case_title": "X"})
        assert snapshot.current_status == "Pending"

    def test_missing_status_defaults(self):
        assert normalize_case({"case_title": "X"}).current_status == "Pending"

    def test_search_result(self):
        result = normalize_search_result(
            {"case_title": "A vs B", "reg_no": 77, "year": 2021, "establishment": "Saket"},
            CourtCategory.DISTRICT_COURT,
        )
        assert (result.case_number, result.case_year) == ("77", "2021")
        assert result.court_name == "Saket"
        assert result.source == "aggregator"


class TestDisabled:
    async def test_no_key_no_calls(self):
        handler, seen = _recording({})
        provider = _provider(handler, api_key="")
        assert not provider.is_enabled
        assert await provider.get_status(make_identifier()) is None
        assert await provider.get_status_by_registry("DLCT01") is None
        assert await provider.search_by_party("Ravi") == []
        assert seen == []


class TestGetStatus:
    async def test_triple_params_and_auth(self):
        handler, seen = _recording({"case_title": "Ravi vs State", "status": "Pending"})
        snapshot = await _provider(handler).get_status(make_identifier(case_type_code="7"))

        assert snapshot is not None
        request = seen[0]
        assert request.url.path == "/api/v1/district-court/case-status"
        assert request.headers["Authorization"] == "Bearer agg-key"
        params = request.url.params
        assert params["case_type"] == "7"
        assert params["case_number"] == "1234"
        assert params["district_code"] == "1"
        assert "cnr_number" not in params

    async def test_cnr_replaces_triple(self):
        handler, seen = _recording({"case_title": "X"})
        identifier = make_identifier(court_category=CourtCategory.HIGH_COURT, cnr_number="HCCNR1")
        await _provider(handler).get_status(identifier)

        request = seen[0]
        assert request.url.path == "/api/v1/high-court/case-status"
        assert dict(request.url.params) == {"cnr_number": "HCCNR1"}

    async def test_error_body_is_none(self):
        handler, _ = _recording({"error": "Case not found"})
        assert await _provider(handler).get_status(make_identifier()) is None

    async def test_http_error_raises(self):
        handler, _ = _recording({"detail": "boom"}, status=500)
        with pytest.raises(UpstreamTransportError, match="HTTP 500"):
            await _provider(handler).get_status(make_identifier())

    async def test_non_json_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(UpstreamTransportError, match="non-JSON"):
            await _provider(handler).get_status(make_identifier())


class TestRegistryAndSearch:
    async def test_registry_endpoint(self):
        handler, seen = _recording({"case_title": "X"})
        assert await _provider(handler).get_status_by_registry(" dlct01 ") is not None
        assert seen[0].url.path == "/api/v1/district-court/cnr"
        assert seen[0].url.params["cnr_number"] == "DLCT01"

    async def test_search_defaults_to_district(self):
        handler, seen = _recording({"results": [{"case_title": "A vs B"}, "junk"]})
        results = await _provider(handler).search_by_party("A", state_code="26", year="2023")

        assert len(results) == 1
        assert results[0].court_category is CourtCategory.DISTRICT_COURT
        assert seen[0].url.path == "/api/v1/district-court/search"
        assert seen[0].url.params["state_code"] == "26"
        assert seen[0].url.params["year"] == "2023"
