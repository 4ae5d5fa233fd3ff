"""Free-tier quota ledger and profile repositories."""

import asyncio
from collections import defaultdict
from typing import Protocol

import structlog

from app.config import PersistenceConfig
from app.constants import FREE_CONVERSION_LIMIT
from app.models.account import Principal, UserProfile

logger = structlog.get_logger(__name__)


def remaining(profile: UserProfile, free_limit: int = FREE_CONVERSION_LIMIT) -> int:
    """Free conversions left. May be negative; treat <= 0 as exhausted."""
    return free_limit - profile.conversion_count


class ProfileRepository(Protocol):
    """Storage contract for user profiles."""

    async def get_profile(self, user_id: str) -> UserProfile | None:
        """Fetch a user profile."""

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """Persist a new default profile."""

    async def increment_conversion_count(self, user_id: str) -> UserProfile:
        """Atomically add one to conversion_count and return the new profile."""


class InMemoryProfileRepository:
    """In-memory repository used for tests and local fallback."""

    def __init__(self) -> None:
        self.profiles: dict[str, UserProfile] = {}

    async def get_profile(self, user_id: str) -> UserProfile | None:
        profile = self.profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        stored = profile.model_copy(deep=True)
        self.profiles[stored.user_id] = stored
        return stored.model_copy(deep=True)

    async def increment_conversion_count(self, user_id: str) -> UserProfile:
        profile = self.profiles.get(user_id)
        if profile is None:
            profile = UserProfile(user_id=user_id)
            self.profiles[user_id] = profile
        profile.conversion_count += 1
        return profile.model_copy(deep=True)


class SupabaseProfileRepository:
    """Supabase-backed repository for user profiles.

    The increment goes through a Postgres function so the read-modify-write
    happens in a single statement on the database side.
    """

    def __init__(self, client, config: PersistenceConfig):
        self.client = client
        self.table = config.profiles_table
        self.increment_rpc = config.increment_rpc

    @staticmethod
    def _from_row(row: dict) -> UserProfile:
        return UserProfile(
            user_id=str(row["id"]),
            conversion_count=row.get("conversion_count") or 0,
            is_premium=bool(row.get("is_premium")),
            full_name=row.get("full_name"),
        )

    async def get_profile(self, user_id: str) -> UserProfile | None:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return self._from_row(rows[0])

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        payload = {
            "id": profile.user_id,
            "conversion_count": profile.conversion_count,
            "is_premium": profile.is_premium,
            "full_name": profile.full_name,
        }
        response = (
            await self.client.table(self.table)
            .upsert(payload, on_conflict="id", ignore_duplicates=True)
            .execute()
        )
        rows = response.data or []
        return self._from_row(rows[0]) if rows else profile

    async def increment_conversion_count(self, user_id: str) -> UserProfile:
        await self.client.rpc(self.increment_rpc, {"user_id": user_id}).execute()
        profile = await self.get_profile(user_id)
        if profile is None:
            raise LookupError(f"Profile {user_id} disappeared after increment")
        return profile


class QuotaLedger:
    """Tracks consumed free conversions and premium status per principal."""

    def __init__(
        self,
        repository: ProfileRepository,
        free_limit: int = FREE_CONVERSION_LIMIT,
    ) -> None:
        self.repository = repository
        self.free_limit = free_limit
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def remaining(self, profile: UserProfile) -> int:
        return remaining(profile, self.free_limit)

    def guard(self, user_id: str) -> asyncio.Lock:
        """Per-user lock for check-and-increment sequences."""
        return self._locks[user_id]

    async def get_profile(self, principal: Principal) -> UserProfile:
        """Load the principal's profile, creating a default one on first use."""
        if not principal.is_authenticated or not principal.id:
            return UserProfile()
        profile = await self.repository.get_profile(principal.id)
        if profile is None:
            profile = await self.repository.create_profile(UserProfile(user_id=principal.id))
            logger.info("profile_created", user_id=principal.id)
        return profile

    async def increment(self, principal: Principal) -> UserProfile:
        if not principal.id:
            raise ValueError("Cannot increment quota for an anonymous principal")
        profile = await self.repository.increment_conversion_count(principal.id)
        logger.info(
            "quota_incremented",
            user_id=principal.id,
            conversion_count=profile.conversion_count,
        )
        return profile
