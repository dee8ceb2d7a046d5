"""
Shared test doubles.

In-memory stand-ins for the identity provider, the data store and the
message sender, plus a controllable clock. They follow the same protocols as
the real adapters, including raising UpstreamError when marked as down.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from config import VerificationSettings
from errors import UpstreamError
from infrastructure.cache.code_store import PhoneCodeStore
from infrastructure.cache.ephemeral_store import InMemoryEphemeralStore
from schemas.models.security import (
    AuthFactor,
    AuthSession,
    AuthUser,
    EnrollmentMaterial,
    FactorStatus,
    ProfileSecurityState,
    VerificationLogEntry,
)
from services.audit import AuditRecorder
from services.challenge import ChallengeService
from services.enforcement import EnforcementGate
from services.enrollment import EnrollmentService
from services.factor_registry import FactorRegistry
from services.phone_verification import PhoneVerificationService

USER_ID = "user-1"
USER_TOKEN = "user-token"
ELEVATED_TOKEN = "aal2-token"
VALID_TOTP = "123456"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeIdentityProvider:
    def __init__(self) -> None:
        self.users: dict[str, AuthUser] = {USER_TOKEN: AuthUser(id=USER_ID, email="ana@example.com")}
        self.factors: list[AuthFactor] = []
        self.valid_code = VALID_TOTP
        self.down = False
        self.fail_unenroll: set[str] = set()
        self.unenrolled: list[tuple[str, str]] = []
        self.challenges: list[str] = []
        self.challenged: list[str] = []
        self._seq = 0

    def add_factor(self, status: FactorStatus = FactorStatus.VERIFIED) -> AuthFactor:
        self._seq += 1
        factor = AuthFactor(id=f"factor-{self._seq}", type="totp", status=status)
        self.factors.append(factor)
        return factor

    def _check(self) -> None:
        if self.down:
            raise UpstreamError("Provedor de autenticação indisponível")

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        self._check()
        return self.users.get(access_token)

    async def list_factors(self, access_token: str) -> list[AuthFactor]:
        self._check()
        return [f.model_copy() for f in self.factors]

    async def enroll_factor(
        self, access_token: str, factor_type: str, friendly_name: str
    ) -> EnrollmentMaterial:
        self._check()
        factor = self.add_factor(FactorStatus.UNVERIFIED)
        factor.friendly_name = friendly_name
        return EnrollmentMaterial(
            factor_id=factor.id,
            friendly_name=friendly_name,
            secret="JBSWY3DPEHPK3PXP",
            uri="otpauth://totp/Imperia:ana@example.com?secret=JBSWY3DPEHPK3PXP",
            qr_code="<svg/>",
        )

    async def create_challenge(self, access_token: str, factor_id: str) -> str:
        self._check()
        if not any(f.id == factor_id for f in self.factors):
            raise UpstreamError("Fator não encontrado")
        challenge_id = f"challenge-{len(self.challenges) + 1}"
        self.challenges.append(challenge_id)
        self.challenged.append(factor_id)
        return challenge_id

    async def verify_challenge(
        self, access_token: str, factor_id: str, challenge_id: str, code: str
    ) -> Optional[AuthSession]:
        self._check()
        if code != self.valid_code:
            return None
        for factor in self.factors:
            if factor.id == factor_id:
                factor.status = FactorStatus.VERIFIED
        return AuthSession(access_token=ELEVATED_TOKEN, refresh_token="refresh", expires_in=3600)

    async def unenroll_factor(self, access_token: str, factor_id: str) -> None:
        self._check()
        if factor_id in self.fail_unenroll:
            raise UpstreamError("Erro ao remover fator")
        self.factors = [f for f in self.factors if f.id != factor_id]
        self.unenrolled.append((access_token, factor_id))


class FakeDataStore:
    """ProfileStore, AuditLog and BackupCodeStore in one object."""

    def __init__(self) -> None:
        self.profiles: dict[str, dict[str, Any]] = {}
        self.roles: dict[str, str] = {}
        self.logs: list[VerificationLogEntry] = []
        self.mfa_events: list[tuple[str, str, dict[str, Any]]] = []
        self.backup_codes: list[str] = []
        self.down = False
        self.audit_down = False
        self.updates: list[tuple[str, dict[str, Any]]] = []

    def _check(self) -> None:
        if self.down:
            raise UpstreamError("Banco de dados indisponível")

    async def get_profile(self, user_id: str) -> Optional[ProfileSecurityState]:
        self._check()
        row = self.profiles.get(user_id)
        return ProfileSecurityState(**row) if row is not None else None

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> None:
        self._check()
        self.profiles.setdefault(user_id, {}).update(fields)
        self.updates.append((user_id, dict(fields)))

    async def get_role(self, user_id: str) -> Optional[str]:
        self._check()
        return self.roles.get(user_id)

    async def insert_verification_log(self, entry: VerificationLogEntry) -> None:
        if self.audit_down:
            raise UpstreamError("Banco de dados indisponível")
        self.logs.append(entry)

    async def count_verification_logs(
        self, phone_number: str, status: str, since: datetime
    ) -> int:
        self._check()
        return sum(
            1
            for e in self.logs
            if e.phone_number == phone_number
            and e.status.value == status
            and e.created_at is not None
            and e.created_at >= since
        )

    async def log_mfa_event(
        self, access_token: str, event_type: str, metadata: dict[str, Any]
    ) -> None:
        if self.audit_down:
            raise UpstreamError("Banco de dados indisponível")
        self.mfa_events.append((access_token, event_type, metadata))

    async def generate_backup_codes(self, access_token: str) -> list[str]:
        self._check()
        self.backup_codes = ["A1B2C3D4", "E5F6G7H8", "J9K1L2M3"]
        return list(self.backup_codes)

    async def verify_backup_code(self, access_token: str, code: str) -> bool:
        self._check()
        if code in self.backup_codes:
            self.backup_codes.remove(code)
            return True
        return False

    def event_types(self) -> list[str]:
        return [event_type for _, event_type, _ in self.mfa_events]


class FakeSender:
    def __init__(self, channel: str = "sms", succeed: bool = True) -> None:
        self.channel = channel
        self.succeed = succeed
        self.sent: list[tuple[str, str]] = []

    async def send(self, destination: str, message: str) -> bool:
        self.sent.append((destination, message))
        return self.succeed


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def datastore() -> FakeDataStore:
    return FakeDataStore()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def ephemeral_store(clock) -> InMemoryEphemeralStore:
    return InMemoryEphemeralStore(clock=clock)


@pytest.fixture
def verification_settings() -> VerificationSettings:
    return VerificationSettings(
        code_ttl_seconds=600,
        max_verify_attempts=5,
        max_sends_per_window=3,
        send_window_seconds=600,
        default_country_code="55",
        disable_request_ttl_seconds=900,
        mfa_required_roles=["owner", "master"],
    )


@pytest.fixture
def code_store(ephemeral_store, verification_settings) -> PhoneCodeStore:
    return PhoneCodeStore(ephemeral_store, ttl_seconds=verification_settings.code_ttl_seconds)


@pytest.fixture
def audit(datastore, clock) -> AuditRecorder:
    return AuditRecorder(datastore, clock=clock)


@pytest.fixture
def registry(identity, datastore) -> FactorRegistry:
    return FactorRegistry(identity, datastore)


@pytest.fixture
def enrollment_service(identity, datastore, audit, clock) -> EnrollmentService:
    return EnrollmentService(
        identity,
        datastore,
        audit,
        clock=clock,
        qr_renderer=lambda uri: "data:image/png;base64,UVI=",
    )


@pytest.fixture
def challenge_service(identity, datastore, audit, ephemeral_store, clock) -> ChallengeService:
    return ChallengeService(
        identity, datastore, datastore, audit, ephemeral_store, clock=clock, pending_ttl_seconds=900
    )


@pytest.fixture
def phone_service(
    datastore, audit, code_store, sender, verification_settings, clock
) -> PhoneVerificationService:
    return PhoneVerificationService(
        datastore, datastore, audit, code_store, sender, verification_settings, clock=clock
    )


@pytest.fixture
def gate(datastore, registry, verification_settings) -> EnforcementGate:
    return EnforcementGate(datastore, registry, verification_settings.mfa_required_roles)
