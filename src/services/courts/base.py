"""Common contract every court data provider implements."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.domain import CaseIdentifier, CaseSnapshot, CourtCategory, SearchResult


class CourtProvider(ABC):
    """Adapter to one upstream source of Indian court case data.

    ``supports_registry_lookup`` is the capability flag the resolution
    service checks before calling ``get_status_by_registry``; providers
    that leave it ``False`` never attempt a CNR lookup.
    ``status_uses_registry`` marks providers whose ``get_status`` already
    looks up the CNR an identifier carries, so it is not asked twice.
    """

    name: str = "provider"
    supports_registry_lookup: bool = False
    status_uses_registry: bool = False

    @property
    def is_enabled(self) -> bool:
        """Providers needing credentials report ``False`` when unconfigured."""
        return True

    @abstractmethod
    async def search_by_party(
        self,
        name: str,
        category: CourtCategory | None = None,
        state_code: str | None = None,
        year: str | None = None,
    ) -> list[SearchResult]:
        """Cases in which ``name`` appears as a party."""

    @abstractmethod
    async def get_status(self, identifier: CaseIdentifier) -> CaseSnapshot | None:
        """Current snapshot of one case, or ``None`` if it could not be resolved."""

    async def get_status_by_registry(self, cnr_number: str) -> CaseSnapshot | None:
        return None

    async def close(self) -> None:
        """Release any resources the provider owns."""
