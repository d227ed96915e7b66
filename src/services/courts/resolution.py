"""Court resolution service: ordered fallback across providers.

Resolution and search never fail because one upstream did. Each provider
call is guarded; an exception is logged, counted and treated exactly like
"no result", and the next source in the chain is asked. The first
non-empty answer wins.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from src.core.metrics import PROVIDER_FAILURES
from src.models.domain import (
    CaseIdentifier,
    CaseSnapshot,
    CourtCategory,
    SearchPolicy,
    SearchResult,
)
from src.services.courts.base import CourtProvider
from src.services.courts.public_search import PublicCaseSearchProvider

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

T = TypeVar("T")

DEDUPE_PREFIX_LENGTH = 30


def dedupe_key(result: SearchResult) -> str:
    return result.title[:DEDUPE_PREFIX_LENGTH].lower()


def merge_results(*groups: list[SearchResult]) -> list[SearchResult]:
    """Concatenate result lists, keeping the first result per title prefix."""
    seen: set[str] = set()
    merged: list[SearchResult] = []
    for group in groups:
        for result in group:
            key = dedupe_key(result)
            if key in seen:
                continue
            seen.add(key)
            merged.append(result)
    return merged


class CourtResolutionService:
    """Resolves case status and party searches over the configured providers."""

    def __init__(
        self,
        supreme_court: CourtProvider,
        ecourts: CourtProvider,
        aggregator: CourtProvider,
        public_search: PublicCaseSearchProvider,
        *,
        policy: SearchPolicy = SearchPolicy.PUBLIC_FIRST,
    ) -> None:
        self._supreme_court = supreme_court
        self._ecourts = ecourts
        self._aggregator = aggregator
        self._public_search = public_search
        self._policy = policy

    @property
    def policy(self) -> SearchPolicy:
        return self._policy

    @property
    def providers(self) -> list[CourtProvider]:
        return [self._supreme_court, self._ecourts, self._aggregator, self._public_search]

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def resolve_status(self, identifier: CaseIdentifier) -> CaseSnapshot | None:
        """Current snapshot of a case from the first source that has it.

        Order: the category's official portal, the aggregator (when it has
        a key), then CNR lookup on the capable providers not yet asked
        with that CNR. eCourts never sees a Supreme Court CNR.
        """
        is_supreme_court = identifier.court_category is CourtCategory.SUPREME_COURT
        primary = self._supreme_court if is_supreme_court else self._ecourts
        status_providers = [primary]
        if self._aggregator.is_enabled:
            status_providers.append(self._aggregator)

        chain: list[tuple[CourtProvider, str, Callable[[], Awaitable[CaseSnapshot | None]]]] = [
            (provider, "get_status", lambda p=provider: p.get_status(identifier))
            for provider in status_providers
        ]
        if identifier.has_registry_number:
            cnr = (identifier.cnr_number or "").strip()
            already_asked = [p for p in status_providers if p.status_uses_registry]
            for provider in self.providers:
                if provider in already_asked or (is_supreme_court and provider is self._ecourts):
                    continue
                if provider.supports_registry_lookup and provider.is_enabled:
                    chain.append(
                        (
                            provider,
                            "get_status_by_registry",
                            lambda p=provider: p.get_status_by_registry(cnr),
                        )
                    )

        for provider, operation, call in chain:
            snapshot = await self._guarded(provider, operation, call)
            if snapshot is not None:
                logger.info(
                    "case_resolved",
                    provider=provider.name,
                    operation=operation,
                    court_category=identifier.court_category.value,
                )
                return snapshot

        logger.info(
            "case_unresolved",
            court_category=identifier.court_category.value,
            case_number=identifier.case_number,
            cnr_number=identifier.cnr_number,
        )
        return None

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search_by_party(
        self,
        name: str,
        category: CourtCategory | None = None,
        state_code: str | None = None,
        year: str | None = None,
    ) -> list[SearchResult]:
        """Party-name search ordered by the configured ``SearchPolicy``."""
        if self._policy is SearchPolicy.OFFICIAL_FIRST:
            results = await self._search_official(name, category, state_code, year)
            if results:
                return results
            return await self._search_public(name, category)

        if self._policy is SearchPolicy.PUBLIC_FIRST:
            results = await self._search_public(name, category)
            if results:
                return results
            return await self._search_official(name, category, state_code, year)

        public, official = await asyncio.gather(
            self._search_public(name, category),
            self._search_official(name, category, state_code, year),
        )
        return merge_results(public, official)

    async def search_judgments(self, query: str, page: int = 0) -> list[SearchResult]:
        results = await self._guarded(
            self._public_search,
            "search_judgments",
            lambda: self._public_search.search_judgments(query, page),
        )
        return results or []

    async def _search_public(self, name: str, category: CourtCategory | None) -> list[SearchResult]:
        """Filtered search first; if that is empty and a filter was applied, the broad one."""
        results = await self._guarded(
            self._public_search,
            "search_by_party",
            lambda: self._public_search.search_by_party(name, category),
        )
        if results:
            return results
        if category is None:
            return []
        return await self.search_judgments(name)

    async def _search_official(
        self,
        name: str,
        category: CourtCategory | None,
        state_code: str | None,
        year: str | None,
    ) -> list[SearchResult]:
        results: list[SearchResult] = []
        if category in (None, CourtCategory.SUPREME_COURT):
            found = await self._guarded(
                self._supreme_court,
                "search_by_party",
                lambda: self._supreme_court.search_by_party(name, category, state_code, year),
            )
            results.extend(found or [])
        if category is not CourtCategory.SUPREME_COURT:
            found = await self._guarded(
                self._ecourts,
                "search_by_party",
                lambda: self._ecourts.search_by_party(name, category, state_code, year),
            )
            results.extend(found or [])
        return results

    async def _guarded(
        self,
        provider: CourtProvider,
        operation: str,
        call: Callable[[], Awaitable[T]],
    ) -> T | None:
        """Run one provider call; any exception becomes ``None``."""
        try:
            return await call()
        except Exception as exc:
            PROVIDER_FAILURES.labels(provider=provider.name).inc()
            logger.warning(
                "provider_call_failed",
                provider=provider.name,
                operation=operation,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None
