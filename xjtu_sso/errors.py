"""
Error Taxonomy
==============

Every failure raised by the client derives from ``XJTUAuthError`` so callers
can catch the whole family at once. Transport failures (``httpx.HTTPError``)
and undecodable response bodies are wrapped into the kind belonging to the
operation that failed; the original exception stays available as
``__cause__``.
"""

from typing import Any, Dict, Optional


class XJTUAuthError(Exception):
    """Base exception for all SSO client errors"""
    pass


# =============================================================================
# Credential / Login Errors
# =============================================================================

class MissingCredentials(XJTUAuthError):
    """NetID and password are required but not bound to the session"""
    pass


class EncodingError(XJTUAuthError):
    """The credential encryption primitive failed (e.g. malformed key)"""
    pass


class AuthRejected(XJTUAuthError):
    """The SSO backend rejected the password login"""
    pass


class MfaRequired(XJTUAuthError):
    """
    The account needs a second factor before the password login can run.

    Carries everything needed to drive the follow-up round: send a code to
    ``gid`` and call ``login(code, gid, state)``.

    Attributes:
        state: Opaque continuation token from MFA detection
        gid: Second-factor channel identifier
        secure_phone: Masked phone number receiving the code
    """

    def __init__(self, state: str, gid: str, secure_phone: str):
        self.state = state
        self.gid = gid
        self.secure_phone = secure_phone
        super().__init__(
            f"Multi-factor verification required (code will be sent to {secure_phone})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mfa_state": self.state,
            "mfa_gid": self.gid,
            "mfa_securePhone": self.secure_phone,
        }


class InvalidMfaCode(XJTUAuthError):
    """The one-time code was checked and reported as wrong"""
    pass


# =============================================================================
# MFA Sub-operation Errors
# =============================================================================

class DetectionError(XJTUAuthError):
    """MFA detection returned a non-zero code or could not be performed"""
    pass


class GidUnavailable(XJTUAuthError):
    """No second-factor channel could be looked up for the MFA state"""
    pass


class TooManyAttempts(GidUnavailable):
    """The backend throttled the GID lookup"""
    pass


class SendError(XJTUAuthError):
    """The one-time code could not be sent"""
    pass


class VerificationError(XJTUAuthError):
    """The one-time code verification call failed"""
    pass


# =============================================================================
# Derived Session Errors
# =============================================================================

class EntryNotFound(XJTUAuthError):
    """
    No EHall entry matched the requested keyword.

    Attributes:
        keyword: Keyword that was searched for
        app_id: Application whose entries were scanned
    """

    def __init__(self, keyword: str, app_id: Optional[str] = None):
        self.keyword = keyword
        self.app_id = app_id
        super().__init__(
            f'No entry containing keyword "{keyword}" found for app {app_id}; '
            "check that the application id is correct"
        )


class NoActiveSession(XJTUAuthError):
    """An identity token or derived session is required but absent"""
    pass


class SessionAcquisitionError(XJTUAuthError):
    """A derived session could not be obtained from a service login bridge"""
    pass


class UserInfoError(XJTUAuthError):
    """The personal-info endpoint could not be queried"""
    pass


__all__ = [
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
