"""Integration tests for the GET /api/v1/search endpoint.

The resolution service is replaced through ``dependency_overrides`` so
no court portal is contacted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.api.dependencies import get_resolution_service
from src.models.domain import CourtCategory, SearchPolicy
from tests.conftest import make_search_result, make_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

pytestmark = pytest.mark.integration


@pytest.fixture
def mock_resolver() -> MagicMock:
    resolver = MagicMock()
    resolver.policy = SearchPolicy.PUBLIC_FIRST
    resolver.search_by_party = AsyncMock(
        return_value=[
            make_search_result(),
            make_search_result(title="Ravi Kumar vs Union of India", source="public_search"),
        ]
    )
    return resolver


@pytest.fixture
async def app(mock_resolver: MagicMock) -> AsyncIterator[FastAPI]:
    application = create_app(make_settings())
    application.dependency_overrides[get_resolution_service] = lambda: mock_resolver
    yield application


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


class TestPartySearch:
    async def test_results_returned(self, client: AsyncClient, mock_resolver: MagicMock):
        response = await client.get("/api/v1/search", params={"q": "  Ravi Kumar "})
        assert response.status_code == 200

        data = response.json()
        assert data["query"] == "Ravi Kumar"
        assert data["policy"] == "public_first"
        assert data["total"] == 2
        assert data["results"][0]["court_category"] == "DC"
        mock_resolver.search_by_party.assert_awaited_once_with("Ravi Kumar", None, None, None)

    async def test_filters_passed_through(self, client: AsyncClient, mock_resolver: MagicMock):
        response = await client.get(
            "/api/v1/search",
            params={"q": "Ravi Kumar", "court_category": "HC", "state_code": "26", "year": "2023"},
        )
        assert response.status_code == 200
        assert response.json()["court_category"] == "HC"
        mock_resolver.search_by_party.assert_awaited_once_with(
            "Ravi Kumar", CourtCategory.HIGH_COURT, "26", "2023"
        )

    async def test_empty_results(self, client: AsyncClient, mock_resolver: MagicMock):
        mock_resolver.search_by_party.return_value = []
        response = await client.get("/api/v1/search", params={"q": "Nobody Known"})
        assert response.status_code == 200
        assert response.json()["total"] == 0

    @pytest.mark.parametrize(
        "params",
        [
            {},
            {"q": "ab"},
            {"q": "Ravi", "court_category": "XX"},
            {"q": "Ravi", "year": "23"},
        ],
    )
    async def test_invalid_query_returns_422(self, client: AsyncClient, params: dict[str, str]):
        response = await client.get("/api/v1/search", params=params)
        assert response.status_code == 422
