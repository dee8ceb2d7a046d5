"""Unit tests for services.enforcement."""

import re

from schemas.models.security import FactorStatus

USER_ID = "user-1"
TOKEN = "user-token"


class TestPhoneGate:
    async def test_no_user_passes_through(self, gate):
        decision = await gate.evaluate(None)

        assert decision.state == "passthrough"
        assert not decision.blocking

    async def test_unverified_phone_blocks(self, gate, datastore):
        datastore.profiles[USER_ID] = {"phone_number": "+5511987654321", "phone_verified": False}

        decision = await gate.evaluate(USER_ID, TOKEN)

        assert decision.state == "phone_verification_required"
        assert decision.blocking
        assert not decision.dismissible
        assert decision.phone_number == "+5511987654321"
        assert decision.phone_display == "(11) 98765-4321"

    async def test_missing_profile_blocks(self, gate):
        decision = await gate.evaluate(USER_ID, TOKEN)

        assert decision.state == "phone_verification_required"
        assert decision.phone_display is None

    async def test_profile_read_error_blocks(self, gate, datastore):
        datastore.down = True

        decision = await gate.evaluate(USER_ID, TOKEN)

        assert decision.state == "phone_verification_required"
        assert decision.blocking

    async def test_verified_phone_passes(self, gate, datastore):
        datastore.profiles[USER_ID] = {"phone_verified": True}

        decision = await gate.evaluate(USER_ID, TOKEN)

        assert decision.state == "passthrough"


class TestRoleGate:
    async def test_required_role_without_mfa_blocks(self, gate, datastore):
        datastore.profiles[USER_ID] = {"phone_verified": True}
        datastore.roles[USER_ID] = "owner"

        decision = await gate.evaluate(USER_ID, TOKEN)

        assert decision.state == "mfa_enrollment_required"
        assert decision.blocking
        assert not decision.dismissible
        assert decision.role == "owner"

    async def test_required_role_with_mfa_passes(self, gate, datastore, identity):
        datastore.profiles[USER_ID] = {"phone_verified": True}
        datastore.roles[USER_ID] = "master"
        identity.add_factor(FactorStatus.VERIFIED)

        decision = await gate.evaluate(USER_ID, TOKEN)

        assert decision.state == "passthrough"
        # drift repaired on the way
        assert datastore.profiles[USER_ID]["mfa_enabled"] is True

    async def test_other_roles_are_not_gated(self, gate, datastore):
        datastore.profiles[USER_ID] = {"phone_verified": True}
        datastore.roles[USER_ID] = "translator"

        decision = await gate.evaluate(USER_ID, TOKEN)

        assert decision.state == "passthrough"

    async def test_phone_gate_takes_precedence(self, gate, datastore):
        datastore.profiles[USER_ID] = {"phone_verified": False}
        datastore.roles[USER_ID] = "owner"

        decision = await gate.evaluate(USER_ID, TOKEN)

        assert decision.state == "phone_verification_required"


class TestEndToEnd:
    async def test_phone_verification_opens_the_gate(self, gate, phone_service, sender, datastore):
        assert (await gate.evaluate(USER_ID, TOKEN)).blocking

        await phone_service.save_phone(USER_ID, "11987654321")
        assert (await gate.evaluate(USER_ID, TOKEN)).blocking

        await phone_service.send_code(USER_ID, "11987654321")
        code = re.search(r"\d{6}", sender.sent[-1][1]).group(0)
        result = await phone_service.verify_code(USER_ID, code)

        assert result.ok
        decision = await gate.evaluate(USER_ID, TOKEN)
        assert decision.state == "passthrough"
        assert datastore.profiles[USER_ID]["phone_number"] == "+5511987654321"
