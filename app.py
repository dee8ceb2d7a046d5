"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.code_store import PhoneCodeStore
from infrastructure.cache.ephemeral_store import (
    EphemeralStore,
    InMemoryEphemeralStore,
    RedisEphemeralStore,
)
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.datastore.postgrest import PostgrestDataStore
from infrastructure.http_client import HttpClient
from infrastructure.identity.gotrue import GoTrueIdentityProvider
from infrastructure.messaging.protocol import MessageSender
from infrastructure.messaging.twilio_sms import TwilioSmsSender
from infrastructure.messaging.zapi_whatsapp import ZApiWhatsAppSender
from routes.gate_routes import router as gate_router
from routes.health_routes import router as health_router
from routes.mfa_routes import router as mfa_router
from routes.phone_routes import router as phone_router
from services.audit import AuditRecorder
from services.challenge import ChallengeService
from services.enforcement import EnforcementGate
from services.enrollment import EnrollmentService
from services.factor_registry import FactorRegistry
from services.phone_verification import PhoneVerificationService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_sender(settings: AppSettings, http_client: HttpClient) -> MessageSender:
    """Pick the verification channel configured for this deployment."""
    if settings.messaging.verification_channel == "whatsapp":
        return ZApiWhatsAppSender(settings.messaging, http_client)
    return TwilioSmsSender(settings.messaging, http_client)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging.log_level, settings.logging.log_format)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            environment=settings.env,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        app.state.settings = settings

        identity_http = HttpClient(timeout=settings.identity.auth_timeout_seconds)
        datastore_http = HttpClient()
        messaging_http = HttpClient(timeout=10.0)
        app.state.identity_http = identity_http

        # Redis is optional; without it pending codes live in this process only
        redis_client = await create_redis_client(settings.redis)
        app.state.redis = redis_client
        store: EphemeralStore
        if redis_client is not None:
            store = RedisEphemeralStore(redis_client, settings.redis.redis_key_prefix)
        else:
            store = InMemoryEphemeralStore()

        identity = GoTrueIdentityProvider(
            settings.identity.auth_url,
            settings.identity.auth_anon_key,
            identity_http,
            issuer=settings.verification.totp_issuer,
        )
        datastore = PostgrestDataStore(
            settings.datastore, datastore_http, anon_key=settings.identity.auth_anon_key
        )
        audit = AuditRecorder(datastore)
        registry = FactorRegistry(identity, datastore)
        sender = build_sender(settings, messaging_http)
        verification = settings.verification

        app.state.identity = identity
        app.state.factor_registry = registry
        app.state.enrollment_service = EnrollmentService(identity, datastore, audit)
        app.state.challenge_service = ChallengeService(
            identity,
            datastore,
            datastore,
            audit,
            store,
            pending_ttl_seconds=verification.disable_request_ttl_seconds,
        )
        app.state.phone_service = PhoneVerificationService(
            datastore,
            datastore,
            audit,
            PhoneCodeStore(store, ttl_seconds=verification.code_ttl_seconds),
            sender,
            verification,
        )
        app.state.enforcement_gate = EnforcementGate(
            datastore,
            registry,
            verification.mfa_required_roles,
            country_code=verification.default_country_code,
        )
        log.info(
            "app_started",
            env=settings.env,
            channel=sender.channel,
            code_store="redis" if redis_client is not None else "in_memory",
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        for client in (identity_http, datastore_http, messaging_http):
            await client.aclose()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(mfa_router)
    app.include_router(phone_router)
    app.include_router(gate_router)

    return app
