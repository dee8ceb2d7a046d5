"""Unit tests for services.factor_registry."""

from schemas.models.security import FactorStatus

USER_ID = "user-1"
TOKEN = "user-token"


class TestCheckStatus:
    async def test_profile_only_without_session(self, registry, datastore, identity):
        datastore.profiles[USER_ID] = {"mfa_enabled": True, "mfa_verified": True}
        identity.down = True  # must not be consulted

        status = await registry.check_status(USER_ID)

        assert status.enabled is True
        assert status.source == "profile"
        assert datastore.updates == []

    async def test_verified_factor_turns_profile_flag_on(self, registry, datastore, identity):
        datastore.profiles[USER_ID] = {"mfa_enabled": False}
        identity.add_factor(FactorStatus.VERIFIED)

        status = await registry.check_status(USER_ID, TOKEN)

        assert status.enabled is True
        assert status.source == "provider"
        assert datastore.profiles[USER_ID]["mfa_enabled"] is True
        assert datastore.profiles[USER_ID]["mfa_verified"] is True

    async def test_no_verified_factor_turns_profile_flag_off(self, registry, datastore, identity):
        datastore.profiles[USER_ID] = {"mfa_enabled": True, "mfa_verified": True}
        identity.add_factor(FactorStatus.UNVERIFIED)

        status = await registry.check_status(USER_ID, TOKEN)

        assert status.enabled is False
        assert len(status.factors) == 1
        assert datastore.profiles[USER_ID]["mfa_enabled"] is False
        assert datastore.profiles[USER_ID]["mfa_verified"] is False

    async def test_zero_factors_corrects_enabled_profile(self, registry, datastore):
        datastore.profiles[USER_ID] = {"mfa_enabled": True}

        status = await registry.check_status(USER_ID, TOKEN)

        assert status.enabled is False
        assert datastore.profiles[USER_ID]["mfa_enabled"] is False

    async def test_consistent_state_is_not_rewritten(self, registry, datastore, identity):
        datastore.profiles[USER_ID] = {"mfa_enabled": True, "mfa_verified": True}
        identity.add_factor(FactorStatus.VERIFIED)

        await registry.check_status(USER_ID, TOKEN)

        assert datastore.updates == []

    async def test_provider_failure_falls_back_to_cached_value(self, registry, datastore, identity):
        datastore.profiles[USER_ID] = {"mfa_enabled": True}
        identity.down = True

        status = await registry.check_status(USER_ID, TOKEN)

        assert status.enabled is True
        assert status.source == "profile"
        assert datastore.updates == []

    async def test_profile_read_failure_is_treated_as_disabled(self, registry, datastore):
        datastore.down = True

        status = await registry.check_status(USER_ID)

        assert status.enabled is False

    async def test_returns_factor_list(self, registry, identity):
        identity.add_factor(FactorStatus.VERIFIED)
        identity.add_factor(FactorStatus.UNVERIFIED)

        status = await registry.check_status(USER_ID, TOKEN)

        assert [f.id for f in status.verified_factors] == ["factor-1"]
        assert [f.id for f in status.factors] == ["factor-1", "factor-2"]


class TestCleanupUnverified:
    async def test_removes_only_unverified(self, registry, identity, datastore):
        identity.add_factor(FactorStatus.VERIFIED)
        identity.add_factor(FactorStatus.UNVERIFIED)
        identity.add_factor(FactorStatus.UNVERIFIED)

        result = await registry.cleanup_unverified(USER_ID, TOKEN)

        assert result.ok
        assert result.data == {"factors_removed": 2}
        assert [f.id for f in identity.factors] == ["factor-1"]
        assert datastore.updates == []

    async def test_clears_flags_when_nothing_verified_remains(self, registry, identity, datastore):
        datastore.profiles[USER_ID] = {"mfa_enabled": True, "mfa_verified": True}
        identity.add_factor(FactorStatus.UNVERIFIED)

        result = await registry.cleanup_unverified(USER_ID, TOKEN)

        assert result.ok
        assert identity.factors == []
        assert datastore.profiles[USER_ID]["mfa_enabled"] is False

    async def test_provider_failure_returns_notice(self, registry, identity):
        identity.down = True

        result = await registry.cleanup_unverified(USER_ID, TOKEN)

        assert not result.ok
        assert result.reason == "upstream_unavailable"
        assert result.notice.variant == "destructive"
