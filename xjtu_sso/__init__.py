"""
XJTU SSO client.

Derives authenticated sessions for the academic portal (EHall) and the
WebVPN gateway from a NetID/password or a previously issued identity token.
"""

from .auth import CredentialEncoder, IdentitySession, LoginState, LoginStateMachine
from .client import XJTU
from .config import Settings, get_settings, setup_logging
from .errors import (
    AuthRejected,
    DetectionError,
    EncodingError,
    EntryNotFound,
    GidUnavailable,
    InvalidMfaCode,
    MfaRequired,
    MissingCredentials,
    NoActiveSession,
    SendError,
    SessionAcquisitionError,
    TooManyAttempts,
    UserInfoError,
    VerificationError,
    XJTUAuthError,
)
from .models import (
    Authenticated,
    LoginCredentials,
    MfaChallenge,
    MfaGid,
    MfaPending,
    TokenCredentials,
    TokenPair,
    UserInfo,
    VpnTicket,
)
from .services import EHALL_APPS, EHallSessionProvider, RedirectingHttpClient, TicketCache, WebVPNSessionProvider

__version__ = "0.1.0"

__all__ = [
    "XJTU",
    "Settings",
    "get_settings",
    "setup_logging",
    "CredentialEncoder",
    "IdentitySession",
    "LoginState",
    "LoginStateMachine",
    "RedirectingHttpClient",
    "EHallSessionProvider",
    "WebVPNSessionProvider",
    "TicketCache",
    "EHALL_APPS",
    "LoginCredentials",
    "TokenCredentials",
    "TokenPair",
    "Authenticated",
    "MfaPending",
    "MfaChallenge",
    "MfaGid",
    "VpnTicket",
    "UserInfo",
    "XJTUAuthError",
    "MissingCredentials",
    "EncodingError",
    "AuthRejected",
    "MfaRequired",
    "InvalidMfaCode",
    "DetectionError",
    "GidUnavailable",
    "TooManyAttempts",
    "SendError",
    "VerificationError",
    "EntryNotFound",
    "NoActiveSession",
    "SessionAcquisitionError",
    "UserInfoError",
]
