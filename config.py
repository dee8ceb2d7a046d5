"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

The identity provider and the data store are the two required collaborators;
Redis, messaging credentials and Sentry are optional and degrade gracefully
when absent (in-memory code store, failed sends, no error reporting).
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class IdentityProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    auth_url: str
    auth_anon_key: str = ""
    auth_timeout_seconds: float = 5.0


class DataStoreSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    rest_url: str
    rest_service_key: str = ""
    profiles_table: str = "profiles"
    verification_logs_table: str = "sms_verification_logs"
    roles_table: str = "user_roles"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional: without Redis pending codes live in process memory only
    redis_uri: Optional[str] = None
    redis_key_prefix: str = "security"


class MessagingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    verification_channel: Literal["sms", "whatsapp"] = "sms"

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    zapi_instance_id: str = ""
    zapi_token: str = ""


class VerificationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    code_ttl_seconds: int = 600
    # 0 disables the limit
    max_verify_attempts: int = 5
    max_sends_per_window: int = 3
    send_window_seconds: int = 600
    default_country_code: str = "55"
    disable_request_ttl_seconds: int = 900
    mfa_required_roles: list[str] = ["owner", "master"]
    totp_issuer: str = "Imperia Traduções"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "imperia-security"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    identity: Optional[IdentityProviderSettings] = None
    datastore: Optional[DataStoreSettings] = None
    redis: Optional[RedisSettings] = None
    messaging: Optional[MessagingSettings] = None
    verification: Optional[VerificationSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.identity is None:
            self.identity = IdentityProviderSettings()
        if self.datastore is None:
            self.datastore = DataStoreSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.messaging is None:
            self.messaging = MessagingSettings()
        if self.verification is None:
            self.verification = VerificationSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
