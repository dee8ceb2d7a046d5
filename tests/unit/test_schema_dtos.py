"""Unit tests for the request/response DTOs."""

import pytest
from pydantic import ValidationError

from schemas.dto.requests.security import (
    ChallengeVerifyRequest,
    DisableMFARequest,
    EnrollVerifyRequest,
)
from schemas.dto.responses.security import (
    EnrollResponse,
    FlowResponse,
    MFAStatusResponse,
    SessionResponse,
)
from schemas.models.results import FlowResult
from schemas.models.security import (
    AuthFactor,
    AuthSession,
    EnrollmentMaterial,
    FactorStatus,
    MFAStatus,
)


class TestRequests:
    def test_enroll_verify_challenge_optional(self):
        body = EnrollVerifyRequest(factor_id="f1", code="123456")
        assert body.challenge_id is None

    def test_empty_factor_id_rejected(self):
        with pytest.raises(ValidationError):
            ChallengeVerifyRequest(factor_id="", challenge_id="c1", code="123456")

    def test_disable_resume_without_code(self):
        body = DisableMFARequest(request_id="dis_abc")
        assert body.code == ""


class TestResponses:
    def test_status_response(self):
        status = MFAStatus(
            enabled=True,
            factors=[AuthFactor(id="f1", status=FactorStatus.VERIFIED, friendly_name="TOTP")],
            source="provider",
        )
        resp = MFAStatusResponse.from_status(status)
        assert resp.enabled
        assert resp.factors[0].status == "verified"
        assert resp.factors[0].factor_type == "totp"

    def test_enroll_response(self):
        material = EnrollmentMaterial(
            factor_id="f1",
            friendly_name="TOTP x",
            secret="S3CR3T",
            uri="otpauth://totp/x",
            qr_data_uri="data:image/png;base64,AA==",
        )
        resp = EnrollResponse.from_result(FlowResult.success("Escaneie o código QR", value=material))
        assert resp.secret == "S3CR3T"
        assert resp.qr_data_uri == "data:image/png;base64,AA=="
        assert resp.notice.title == "Escaneie o código QR"

    def test_session_response(self):
        assert SessionResponse.from_session(None) is None
        resp = SessionResponse.from_session(AuthSession(access_token="aal2"))
        assert resp.access_token == "aal2"

    def test_flow_response(self):
        resp = FlowResponse.from_result(FlowResult.success("Telefone verificado!", data={"a": 1}))
        assert resp.success
        assert resp.data == {"a": 1}
