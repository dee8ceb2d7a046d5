"""Unit tests for services.enrollment."""

from schemas.models.security import FactorStatus

USER_ID = "user-1"
TOKEN = "user-token"


class TestEnroll:
    async def test_returns_material_with_rendered_qr(self, enrollment_service, clock):
        result = await enrollment_service.enroll(USER_ID, TOKEN)

        assert result.ok
        material = result.value
        assert material.factor_id == "factor-1"
        assert material.secret == "JBSWY3DPEHPK3PXP"
        assert material.uri.startswith("otpauth://totp/")
        assert material.qr_data_uri == "data:image/png;base64,UVI="
        assert material.friendly_name == f"TOTP {clock().isoformat()}"

    async def test_removes_unverified_factors_first(self, enrollment_service, identity):
        identity.add_factor(FactorStatus.UNVERIFIED)
        identity.add_factor(FactorStatus.UNVERIFIED)
        identity.add_factor(FactorStatus.VERIFIED)

        result = await enrollment_service.enroll(USER_ID, TOKEN)

        assert result.ok
        removed = {factor_id for _, factor_id in identity.unenrolled}
        assert removed == {"factor-1", "factor-2"}
        unverified = [f for f in identity.factors if not f.is_verified]
        assert [f.id for f in unverified] == [result.value.factor_id]

    async def test_does_not_touch_profile(self, enrollment_service, datastore):
        await enrollment_service.enroll(USER_ID, TOKEN)

        assert datastore.updates == []

    async def test_provider_failure(self, enrollment_service, identity, datastore):
        identity.down = True

        result = await enrollment_service.enroll(USER_ID, TOKEN)

        assert not result.ok
        assert result.notice.title == "Erro ao configurar 2FA"
        assert result.value is None
        assert datastore.updates == []


class TestVerify:
    async def _enroll(self, enrollment_service) -> str:
        result = await enrollment_service.enroll(USER_ID, TOKEN)
        return result.value.factor_id

    async def test_valid_code_enables_mfa(self, enrollment_service, identity, datastore, clock):
        factor_id = await self._enroll(enrollment_service)

        result = await enrollment_service.verify(USER_ID, TOKEN, factor_id, "123456")

        assert result.ok
        assert result.notice.title == "2FA ativado com sucesso"
        assert result.value.access_token == "aal2-token"
        profile = datastore.profiles[USER_ID]
        assert profile["mfa_enabled"] is True
        assert profile["mfa_verified"] is True
        assert profile["mfa_enrollment_date"] == clock()
        assert identity.factors[0].is_verified
        assert datastore.event_types() == ["enrollment"]

    async def test_uses_supplied_challenge(self, enrollment_service, identity):
        factor_id = await self._enroll(enrollment_service)

        result = await enrollment_service.verify(
            USER_ID, TOKEN, factor_id, "123456", challenge_id="challenge-existing"
        )

        assert result.ok
        assert identity.challenges == []

    async def test_wrong_code_leaves_state_untouched(self, enrollment_service, identity, datastore):
        factor_id = await self._enroll(enrollment_service)

        result = await enrollment_service.verify(USER_ID, TOKEN, factor_id, "654321")

        assert not result.ok
        assert result.notice.title == "Código inválido"
        assert datastore.updates == []
        assert not identity.factors[0].is_verified

    async def test_malformed_code_never_reaches_provider(self, enrollment_service, identity):
        factor_id = await self._enroll(enrollment_service)

        result = await enrollment_service.verify(USER_ID, TOKEN, factor_id, "12ab")

        assert not result.ok
        assert result.reason == "invalid_code"
        assert identity.challenges == []

    async def test_provider_failure_is_reported_as_invalid_code(self, enrollment_service, identity):
        factor_id = await self._enroll(enrollment_service)
        identity.down = True

        result = await enrollment_service.verify(USER_ID, TOKEN, factor_id, "123456")

        assert not result.ok
        assert result.notice.title == "Código inválido"

    async def test_audit_failure_does_not_fail_enrollment(self, enrollment_service, datastore):
        factor_id = await self._enroll(enrollment_service)
        datastore.audit_down = True

        result = await enrollment_service.verify(USER_ID, TOKEN, factor_id, "123456")

        assert result.ok
        assert datastore.profiles[USER_ID]["mfa_enabled"] is True
