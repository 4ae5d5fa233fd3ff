"""Unit tests for the quota ledger and profile repositories."""

import pytest

from app.config import PersistenceConfig
from app.models.account import Principal, UserProfile
from app.services.quota_ledger import (
    InMemoryProfileRepository,
    QuotaLedger,
    SupabaseProfileRepository,
    remaining,
)

USER = Principal(id="user-1", email="user@example.com", is_authenticated=True)


class TestRemaining:
    def test_fresh_profile_has_full_allowance(self):
        assert remaining(UserProfile()) == 3

    def test_counts_down(self):
        assert remaining(UserProfile(conversion_count=2)) == 1

    def test_may_go_negative(self):
        assert remaining(UserProfile(conversion_count=5)) == -2

    def test_custom_limit(self):
        assert remaining(UserProfile(conversion_count=1), free_limit=10) == 9


class TestQuotaLedger:
    async def test_anonymous_gets_blank_profile_without_storage(self):
        repo = InMemoryProfileRepository()
        ledger = QuotaLedger(repo)

        profile = await ledger.get_profile(Principal.anonymous())

        assert profile.user_id is None
        assert profile.conversion_count == 0
        assert repo.profiles == {}

    async def test_first_use_creates_default_profile(self):
        repo = InMemoryProfileRepository()
        ledger = QuotaLedger(repo)

        profile = await ledger.get_profile(USER)

        assert profile.user_id == "user-1"
        assert profile.conversion_count == 0
        assert profile.is_premium is False
        assert "user-1" in repo.profiles

    async def test_existing_profile_is_returned(self):
        repo = InMemoryProfileRepository()
        repo.profiles["user-1"] = UserProfile(user_id="user-1", conversion_count=2, is_premium=True)
        ledger = QuotaLedger(repo)

        profile = await ledger.get_profile(USER)

        assert profile.conversion_count == 2
        assert profile.is_premium is True

    async def test_returned_profile_is_a_copy(self):
        repo = InMemoryProfileRepository()
        ledger = QuotaLedger(repo)
        profile = await ledger.get_profile(USER)

        profile.conversion_count = 99

        assert repo.profiles["user-1"].conversion_count == 0

    async def test_increment_adds_exactly_one(self):
        repo = InMemoryProfileRepository()
        ledger = QuotaLedger(repo)
        await ledger.get_profile(USER)

        first = await ledger.increment(USER)
        second = await ledger.increment(USER)

        assert first.conversion_count == 1
        assert second.conversion_count == 2
        assert repo.profiles["user-1"].conversion_count == 2

    async def test_increment_anonymous_raises(self):
        ledger = QuotaLedger(InMemoryProfileRepository())

        with pytest.raises(ValueError):
            await ledger.increment(Principal.anonymous())

    def test_remaining_uses_configured_limit(self):
        ledger = QuotaLedger(InMemoryProfileRepository(), free_limit=5)

        assert ledger.remaining(UserProfile(conversion_count=2)) == 3

    def test_guard_is_per_user(self):
        ledger = QuotaLedger(InMemoryProfileRepository())

        assert ledger.guard("user-1") is ledger.guard("user-1")
        assert ledger.guard("user-1") is not ledger.guard("user-2")


class TestSupabaseProfileRepository:
    async def test_get_missing_profile(self, fake_supabase):
        repo = SupabaseProfileRepository(fake_supabase, PersistenceConfig())

        assert await repo.get_profile("user-1") is None

    async def test_create_then_get(self, fake_supabase):
        repo = SupabaseProfileRepository(fake_supabase, PersistenceConfig())

        await repo.create_profile(UserProfile(user_id="user-1"))
        profile = await repo.get_profile("user-1")

        assert profile.user_id == "user-1"
        assert profile.conversion_count == 0
        assert fake_supabase.tables["profiles"][0]["id"] == "user-1"

    async def test_create_does_not_overwrite_existing_row(self, fake_supabase):
        fake_supabase.tables["profiles"] = [
            {"id": "user-1", "conversion_count": 2, "is_premium": False, "full_name": "Budi"}
        ]
        repo = SupabaseProfileRepository(fake_supabase, PersistenceConfig())

        profile = await repo.create_profile(UserProfile(user_id="user-1"))

        assert profile.user_id == "user-1"
        assert fake_supabase.tables["profiles"][0]["conversion_count"] == 2

    async def test_null_columns_map_to_defaults(self, fake_supabase):
        fake_supabase.tables["profiles"] = [
            {"id": "user-1", "conversion_count": None, "is_premium": None, "full_name": None}
        ]
        repo = SupabaseProfileRepository(fake_supabase, PersistenceConfig())

        profile = await repo.get_profile("user-1")

        assert profile.conversion_count == 0
        assert profile.is_premium is False

    async def test_increment_goes_through_rpc(self, fake_supabase):
        fake_supabase.tables["profiles"] = [{"id": "user-1", "conversion_count": 1, "is_premium": False}]
        repo = SupabaseProfileRepository(fake_supabase, PersistenceConfig())

        profile = await repo.increment_conversion_count("user-1")

        assert profile.conversion_count == 2
        assert fake_supabase.rpc_calls == [("increment_conversion_count", {"user_id": "user-1"})]

    async def test_increment_uses_configured_names(self, fake_supabase):
        fake_supabase.tables["accounts"] = [{"id": "user-1", "conversion_count": 0}]
        config = PersistenceConfig(profiles_table="accounts", increment_rpc="bump_count")
        repo = SupabaseProfileRepository(fake_supabase, config)

        await repo.increment_conversion_count("user-1")

        assert fake_supabase.rpc_calls[0][0] == "bump_count"

    async def test_increment_missing_profile_raises(self, fake_supabase):
        repo = SupabaseProfileRepository(fake_supabase, PersistenceConfig())

        with pytest.raises(LookupError):
            await repo.increment_conversion_count("ghost")

    async def test_rpc_failure_propagates(self, fake_supabase):
        fake_supabase.tables["profiles"] = [{"id": "user-1", "conversion_count": 0}]
        fake_supabase.failing_rpcs.add("increment_conversion_count")
        repo = SupabaseProfileRepository(fake_supabase, PersistenceConfig())

        with pytest.raises(RuntimeError):
            await repo.increment_conversion_count("user-1")
