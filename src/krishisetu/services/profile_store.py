"""Profile Store - ``users/{uid}`` identity records."""

import logging
from typing import AsyncIterator, Optional

from krishisetu.domain.enums import Collection, UserRole
from krishisetu.domain.records import UserProfile, utcnow
from krishisetu.infra.backend import Backend
from krishisetu.infra.object_storage import object_path
from krishisetu.services.exceptions import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

USERS = Collection.USERS.value


def validate_profile(profile: UserProfile) -> None:
    if not profile.id:
        raise ValidationFailedError("user id is required")
    if not profile.name.strip():
        raise ValidationFailedError("Enter your name")
    if not profile.phone.strip():
        raise ValidationFailedError("Enter your phone number")
    if profile.role not in (UserRole.FARMER, UserRole.BUYER):
        raise ValidationFailedError(f"Invalid role: {profile.role}")


class ProfileStore:
    """Reads and writes user profiles keyed by auth uid."""

    def __init__(self, backend: Backend):
        self.backend = backend
        self.documents = backend.documents

    async def upsert(self, profile: UserProfile) -> UserProfile:
        """Merge-write a profile; fields absent from it are left alone.

        On an existing profile only the fields set on ``profile`` are
        written, so a defaulted role never overwrites the stored one.
        createdAt is written only the first time a profile is saved.
        """
        validate_profile(profile)
        existing = await self.documents.get(USERS, profile.id)

        data = profile.to_document(exclude_unset=existing is not None)
        data["name"] = profile.name.strip()
        data["phone"] = profile.phone.strip()
        if existing is None:
            data["createdAt"] = utcnow()
        else:
            data.pop("createdAt", None)

        await self.documents.set(USERS, profile.id, data, merge=True)
        logger.info("Profile %s saved (%s)", profile.id, "new" if existing is None else "merged")
        return await self.require(profile.id)

    async def get(self, user_id: str) -> Optional[UserProfile]:
        data = await self.documents.get(USERS, user_id)
        if data is None:
            return None
        return UserProfile.from_document(user_id, data)

    async def require(self, user_id: str) -> UserProfile:
        profile = await self.get(user_id)
        if profile is None:
            raise NotFoundError(f"Profile {user_id} not found")
        return profile

    async def get_phone(self, user_id: str) -> Optional[str]:
        """Phone number for contact reveal after a deal; None when unknown."""
        profile = await self.get(user_id)
        if profile is None or not profile.phone:
            return None
        return profile.phone

    async def watch(self, user_id: str) -> AsyncIterator[Optional[UserProfile]]:
        async for data in self.documents.watch_document(USERS, user_id):
            yield None if data is None else UserProfile.from_document(user_id, data)

    async def attach_avatar(
        self,
        user_id: str,
        content: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        await self.require(user_id)
        if not content:
            raise ValidationFailedError("Image is empty")
        url = await self.backend.storage.put(object_path(USERS, user_id, filename), content, content_type)
        await self.documents.update(USERS, user_id, {"avatarUrl": url})
        return url
