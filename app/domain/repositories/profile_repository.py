"""Profile repository."""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils import is_valid_uuid
from app.domain.models.profile import Profile


class ProfileRepository:
    """Repository for Profile entity operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, profile_id: str) -> Optional[Profile]:
        if not is_valid_uuid(profile_id):
            return None
        result = await self.db.execute(select(Profile).where(Profile.id == profile_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[Profile]:
        result = await self.db.execute(select(Profile).where(Profile.email == email))
        return result.scalar_one_or_none()

    async def create(
        self,
        profile_id: str,
        email: str,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Profile:
        """Create the profile for an identity seen for the first time."""
        profile = Profile(id=profile_id, email=email, full_name=full_name, avatar_url=avatar_url)
        self.db.add(profile)
        await self.db.flush()
        return profile
