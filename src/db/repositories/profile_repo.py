"""Repository for user profiles and notification preferences."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.database import ProfileRow


class ProfileRepo:
    """Async repository for profiles."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, profile: ProfileRow) -> ProfileRow:
        self._session.add(profile)
        await self._session.flush()
        return profile

    async def get_by_id(self, user_id: str) -> ProfileRow | None:
        """Fetch a profile by its primary key."""
        stmt = select(ProfileRow).where(ProfileRow.id == user_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
