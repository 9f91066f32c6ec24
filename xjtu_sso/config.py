"""
Configuration module for the XJTU SSO client.

This module uses Pydantic Settings to load and validate environment variables
for the SSO endpoints, the derived-session services (EHall, WebVPN), the
credential encryption key and the HTTP behaviour shared by all of them.

Environment variables are loaded from .env file or system environment and are
prefixed with ``XJTU_`` (e.g. ``XJTU_MAX_REDIRECT_HOPS=2``).
"""

import logging
import sys
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Institutional public key used to encrypt login credentials.
XJTU_PUBLIC_KEY = """-----BEGIN PUBLIC KEY-----
MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEA2u2v/bjSIVsaxCBBxkjW
f7LpmsjuhFJUJE7MYTn9hBcDXlK4smgtNoMqmGz4ztg5t1h+h0fqrJT3WkdoLV/F
KC8OwElTe+p+YLqA6/PgmGtsffcQmAW0eye5NygiWM+B0tO69ML6jNLpAWAvXwod
5kr/k7qsM1DGTux+e7bjdFz/IA8vOZx3IlGHnX+RE/uBJUwPXHnLPw5pQSwkWwfp
PwxMrgzwik6htqRHF2c7Z+pJToXbrIJWD5nmRiU6jzgu8ncLqbMb3WNOKSodcEnl
UpTH/ApH56IOJHWpq3mxJL9DaUaWzjziR93wjlyvR1K4VM7TLqD35CVZQaoE5FWg
ZwIDAQAB
-----END PUBLIC KEY-----"""


class Settings(BaseSettings):
    """
    Client settings loaded from environment variables.

    Every field has a working default pointing at the production XJTU
    services, so ``Settings()`` is usable without any environment.
    """

    # =========================================================================
    # Endpoint Configuration
    # =========================================================================

    SSO_BASE_URL: str = Field(
        default="https://login.xjtu.edu.cn",
        description="Base URL of the SSO login service",
    )

    AUTHX_BASE_URL: str = Field(
        default="https://authx-service.xjtu.edu.cn",
        description="Base URL of the personal-info service",
    )

    EHALL_BASE_URL: str = Field(
        default="https://ehall.xjtu.edu.cn",
        description="Base URL of the academic portal (EHall)",
    )

    WEBVPN_BASE_URL: str = Field(
        default="https://webvpn.xjtu.edu.cn",
        description="Base URL of the WebVPN gateway",
    )

    # =========================================================================
    # Login Protocol Configuration
    # =========================================================================

    APP_ID: str = Field(
        default="com.supwisdom.xjtu",
        description="Application identifier sent with password logins",
    )

    OS_TYPE: str = Field(
        default="android",
        description="Operating system reported with password logins",
    )

    RSA_PUBLIC_KEY: str = Field(
        default=XJTU_PUBLIC_KEY,
        description="PEM public key used to encrypt netid and password",
    )

    CREDENTIAL_MARKER: str = Field(
        default="__RSA__",
        description="Prefix marking an encrypted credential field",
    )

    # =========================================================================
    # HTTP Behaviour
    # =========================================================================

    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout applied to every outgoing request",
        gt=0,
        le=300,
    )

    MAX_REDIRECT_HOPS: int = Field(
        default=1,
        description="Redirects followed automatically per request",
        ge=0,
        le=10,
    )

    # =========================================================================
    # Derived Session Configuration
    # =========================================================================

    WEBVPN_TICKET_TTL_MINUTES: int = Field(
        default=15,
        description="Freshness window of a cached WebVPN ticket",
        ge=1,
        le=1440,
    )

    WEBVPN_TICKET_COOKIE: str = Field(
        default="wengine_vpn_ticketwebvpn_xjtu_edu_cn",
        description="Name of the cookie carrying the WebVPN ticket",
    )

    EHALL_ENTRY_KEYWORD: str = Field(
        default="移动应用学生",
        description="Keyword selecting the EHall entry of an application",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level used by setup_logging",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_prefix="XJTU_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def webvpn_ticket_ttl_seconds(self) -> float:
        """Freshness window of a WebVPN ticket in seconds."""
        return self.WEBVPN_TICKET_TTL_MINUTES * 60.0

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("SSO_BASE_URL", "AUTHX_BASE_URL", "EHALL_BASE_URL", "WEBVPN_BASE_URL")
    @classmethod
    def validate_https_url(cls, v: str) -> str:
        """
        Validate that a service base URL uses HTTPS.

        Args:
            v: Raw base URL

        Returns:
            Base URL without trailing slash

        Raises:
            ValueError: If the URL is not an https:// URL
        """
        v = v.strip()
        if not v.lower().startswith("https://"):
            raise ValueError(f"Service URL must use https://, got: {v}")
        return v.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")
        return v


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    The settings are loaded only once per process; components receive the
    instance by reference instead of reading the environment themselves.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If an environment variable holds an invalid value.

    Example:
        >>> from xjtu_sso.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.SSO_BASE_URL)
    """
    return Settings()


# =============================================================================
# Logging
# =============================================================================

def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Configure JSON-line logging on stdout for applications embedding the client.

    Replaces any handlers already installed on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to ``LOG_LEVEL`` of the process settings
    """
    level = (log_level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
