"""
Password + MFA Login State Machine
==================================

Drives the SSO password login against ``login.xjtu.edu.cn``, including the
optional second-factor (secure phone) challenge.

Flow:
-----
1. Without a one-time code, probe whether the account needs MFA
   (``/token/mfa/detect``).
2. If it does, look up the phone channel for the detection state
   (``/token/mfa/initByType/securephone``) and stop with an ``MfaPending``
   outcome. No code is sent automatically; the caller sends one with
   ``send_mfa_code`` and retries with ``code``, ``gid`` and ``state``.
3. With a code, verify it first (``/attest/api/guard/securephone/valid``).
4. Submit the password login (``/token/password/passwordLogin``) with
   encrypted netid/password and store the returned token pair.

States:
-------
NEED_CREDENTIALS -> DETECTING_MFA -> {AUTHENTICATING | AWAITING_MFA}
                 -> AUTHENTICATED | FAILED
"""

import enum
import logging
from typing import Any, Dict, Optional, Type

import httpx
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..errors import (
    AuthRejected,
    DetectionError,
    GidUnavailable,
    InvalidMfaCode,
    MfaRequired,
    MissingCredentials,
    SendError,
    TooManyAttempts,
    VerificationError,
    XJTUAuthError,
)
from ..models import Authenticated, LoginOutcome, MfaChallenge, MfaGid, MfaPending, TokenPair
from .encoder import CredentialEncoder
from .identity import IdentitySession

logger = logging.getLogger(__name__)

# Backend message returned when the password login needs a finished MFA round
MFA_VERIFY_ERROR = "exception.mfa.verify.error"

# securephone/valid status meaning the code was accepted
MFA_CODE_VERIFIED = 2

# initByType error meaning the lookup was throttled
GID_THROTTLED = "not support"


class LoginState(str, enum.Enum):
    NEED_CREDENTIALS = "need_credentials"
    DETECTING_MFA = "detecting_mfa"
    AUTHENTICATING = "authenticating"
    AWAITING_MFA = "awaiting_mfa"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


def _read_json(
    response: httpx.Response,
    error_cls: Type[XJTUAuthError],
    operation: str,
) -> Dict[str, Any]:
    """Decode a JSON object body or raise ``error_cls``."""
    try:
        data = response.json()
    except ValueError as e:
        raise error_cls(
            f"{operation}: invalid JSON response (HTTP {response.status_code})"
        ) from e
    if not isinstance(data, dict):
        raise error_cls(f"{operation}: unexpected response {data!r}")
    return data


def _payload(
    data: Dict[str, Any],
    error_cls: Type[XJTUAuthError],
    operation: str,
) -> Dict[str, Any]:
    """Return the ``data`` object of a decoded body or raise ``error_cls``."""
    payload = data.get("data")
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise error_cls(f"{operation}: unexpected data {payload!r}")
    return payload


class LoginStateMachine:
    """
    Runs the SSO login protocol for one IdentitySession.

    Args:
        identity: Session whose credentials are used and whose tokens are
            replaced on success
        http_client: Client used for SSO requests
        encoder: Credential encoder holding the institutional key
        settings: Endpoint and protocol configuration
    """

    def __init__(
        self,
        identity: IdentitySession,
        http_client: httpx.AsyncClient,
        encoder: CredentialEncoder,
        settings: Optional[Settings] = None,
    ):
        self.identity = identity
        self._http = http_client
        self._encoder = encoder
        self._settings = settings or get_settings()
        self.state = LoginState.NEED_CREDENTIALS

    def _url(self, path: str) -> str:
        return f"{self._settings.SSO_BASE_URL}{path}"

    def _require_credentials(self, operation: str) -> None:
        if not self.identity.has_credentials:
            raise MissingCredentials(f"NetID and password are required for {operation}")

    # =========================================================================
    # Login
    # =========================================================================

    async def authenticate(
        self,
        mfa_code: Optional[str] = None,
        mfa_gid: Optional[str] = None,
        mfa_state: Optional[str] = None,
    ) -> LoginOutcome:
        """
        Run one login attempt.

        Args:
            mfa_code: One-time code received on the secure phone
            mfa_gid: Channel the code was sent to
            mfa_state: Continuation token from the MFA challenge

        Returns:
            ``Authenticated`` with the new token pair, or ``MfaPending`` when
            a second factor must be completed first

        Raises:
            MissingCredentials: If netid/password are not bound
            InvalidMfaCode: If the supplied code was rejected
            AuthRejected: If the password login was rejected
            DetectionError, GidUnavailable, TooManyAttempts,
            VerificationError: If an MFA sub-step failed
        """
        try:
            self._require_credentials("login")

            if mfa_code and mfa_gid:
                if not await self.verify_code(mfa_gid, mfa_code):
                    raise InvalidMfaCode("The verification code is incorrect")

            if not mfa_code:
                self.state = LoginState.DETECTING_MFA
                detection = await self.detect_mfa()
                if detection.need:
                    gid_info = await self.get_mfa_gid(detection.state or "")
                    self.state = LoginState.AWAITING_MFA
                    logger.info(
                        "Login requires multi-factor verification",
                        extra={"secure_phone": gid_info.secure_phone}
                    )
                    return MfaPending(
                        state=detection.state or "",
                        gid=gid_info.gid,
                        secure_phone=gid_info.secure_phone,
                    )

            self.state = LoginState.AUTHENTICATING
            tokens = await self._password_login(mfa_state)
        except XJTUAuthError:
            self.state = LoginState.FAILED
            raise

        self.identity.set_tokens(tokens.id_token, tokens.refresh_token)
        self.state = LoginState.AUTHENTICATED
        logger.info("Password login succeeded")
        return Authenticated(tokens=tokens)

    async def login(
        self,
        mfa_code: Optional[str] = None,
        mfa_gid: Optional[str] = None,
        mfa_state: Optional[str] = None,
    ) -> TokenPair:
        """
        Log in and return the new token pair.

        Same as ``authenticate`` but an MFA requirement is raised as the
        structured ``MfaRequired`` fault.

        Example:
            >>> try:
            ...     tokens = await machine.login()
            ... except MfaRequired as challenge:
            ...     await machine.send_mfa_code(challenge.gid)
            ...     tokens = await machine.login(code, challenge.gid, challenge.state)
        """
        outcome = await self.authenticate(mfa_code, mfa_gid, mfa_state)
        if isinstance(outcome, MfaPending):
            raise MfaRequired(outcome.state, outcome.gid, outcome.secure_phone)
        return outcome.tokens

    async def _password_login(self, mfa_state: Optional[str]) -> TokenPair:
        params = {
            "username": self._encoder.encode(self.identity.netid or ""),
            "password": self._encoder.encode(self.identity.password or ""),
            "appId": self._settings.APP_ID,
            "geo": "",
            "deviceId": self.identity.device_id,
            "osType": self._settings.OS_TYPE,
            "clientId": self.identity.client_id,
            "mfaState": mfa_state or "",
        }

        try:
            response = await self._http.post(
                self._url("/token/password/passwordLogin"), params=params
            )
        except httpx.HTTPError as e:
            logger.error(f"Password login request failed: {e}")
            raise AuthRejected(f"Login request failed: {e}") from e

        if response.status_code in (400, 401):
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get("message") if isinstance(body, dict) else None
            message = message or response.text
            logger.warning(f"Password login rejected with HTTP {response.status_code}")
            raise AuthRejected(message or f"HTTP {response.status_code}")

        data = _read_json(response, AuthRejected, "Login failed")

        if data.get("message") == MFA_VERIFY_ERROR:
            logger.warning("Password login requires a completed MFA verification")
            raise AuthRejected("Multi-factor verification must be completed first")

        if data.get("status") in (400, 401):
            logger.warning(f"Password login rejected with status {data.get('status')}")
            raise AuthRejected(data.get("message") or f"status {data.get('status')}")

        payload = _payload(data, AuthRejected, "Login failed")
        if not payload.get("idToken"):
            raise AuthRejected(f"Login failed: no token in response {data!r}")

        try:
            return TokenPair(
                id_token=payload["idToken"],
                refresh_token=payload.get("refreshToken") or "",
            )
        except ValidationError as e:
            raise AuthRejected(f"Login failed: malformed tokens in response {data!r}") from e

    # =========================================================================
    # MFA Sub-operations
    # =========================================================================

    async def detect_mfa(self) -> MfaChallenge:
        """
        Probe whether the account needs a second factor.

        Returns:
            MfaChallenge with ``need`` and, when needed, the continuation state

        Raises:
            MissingCredentials: If netid/password are not bound
            DetectionError: On a non-zero response code or transport failure
        """
        self._require_credentials("MFA detection")

        params = {
            "username": self.identity.netid,
            "password": self._encoder.encode(self.identity.password or ""),
            "deviceId": self.identity.device_id,
        }

        try:
            response = await self._http.post(self._url("/token/mfa/detect"), params=params)
        except httpx.HTTPError as e:
            logger.error(f"MFA detection request failed: {e}")
            raise DetectionError(f"MFA detection failed: {e}") from e

        data = _read_json(response, DetectionError, "MFA detection failed")
        if data.get("code") != 0:
            logger.warning("MFA detection returned non-zero code", extra={"code": data.get("code")})
            raise DetectionError(f"MFA detection failed: {data}")

        payload = _payload(data, DetectionError, "MFA detection failed")
        # Two backend revisions report this as ``mfaEnabled`` or ``need``.
        if payload.get("mfaEnabled") or payload.get("need"):
            try:
                return MfaChallenge(need=True, state=payload.get("state"))
            except ValidationError as e:
                raise DetectionError(f"MFA detection failed: invalid state in {data}") from e
        return MfaChallenge(need=False)

    async def get_mfa_gid(self, state: str) -> MfaGid:
        """
        Look up the secure-phone channel for an MFA state.

        Args:
            state: Continuation token from ``detect_mfa``

        Returns:
            MfaGid with the channel id and masked phone number

        Raises:
            TooManyAttempts: If the backend throttled the lookup
            GidUnavailable: On any other failure
        """
        try:
            response = await self._http.get(
                self._url("/token/mfa/initByType/securephone"), params={"state": state}
            )
        except httpx.HTTPError as e:
            logger.error(f"MFA GID lookup failed: {e}")
            raise GidUnavailable(f"Failed to get GID: {e}") from e

        data = _read_json(response, GidUnavailable, "Failed to get GID")
        if data.get("code") != 0:
            if data.get("error") == GID_THROTTLED:
                logger.warning("MFA GID lookup throttled")
                raise TooManyAttempts("Too many attempts, please try again later")
            raise GidUnavailable(data.get("error") or f"Failed to get GID: {data}")

        payload = _payload(data, GidUnavailable, "Failed to get GID")
        if payload.get("gid"):
            try:
                return MfaGid(gid=payload["gid"], secure_phone=payload.get("securePhone") or "")
            except ValidationError as e:
                raise GidUnavailable(f"Failed to get GID: {data}") from e

        raise GidUnavailable(f"Failed to get GID: {data}")

    async def send_mfa_code(self, gid: str) -> bool:
        """
        Send a one-time code to the phone bound to ``gid``.

        Returns:
            True if the backend reports the code as sent

        Raises:
            SendError: On a non-zero response code or transport failure
        """
        try:
            response = await self._http.post(
                self._url("/attest/api/guard/securephone/send"), json={"gid": gid}
            )
        except httpx.HTTPError as e:
            logger.error(f"Sending MFA code failed: {e}")
            raise SendError(f"Failed to send verification code: {e}") from e

        data = _read_json(response, SendError, "Failed to send verification code")
        if data.get("code") != 0:
            raise SendError(f"Failed to send verification code: {data.get('data')}")

        sent = _payload(data, SendError, "Failed to send verification code").get("result") == "ok"
        logger.info("MFA code send requested", extra={"sent": sent})
        return sent

    async def verify_code(self, gid: str, code: str) -> bool:
        """
        Check a one-time code.

        Returns:
            True only when the backend reports the code as verified

        Raises:
            VerificationError: On a non-zero response code or transport failure
        """
        try:
            response = await self._http.post(
                self._url("/attest/api/guard/securephone/valid"),
                json={"gid": gid, "code": code},
            )
        except httpx.HTTPError as e:
            logger.error(f"MFA code verification failed: {e}")
            raise VerificationError(f"Verification request failed: {e}") from e

        data = _read_json(response, VerificationError, "Verification request failed")
        if data.get("code") != 0:
            raise VerificationError(f"Verification request failed: {data.get('data')}")

        payload = _payload(data, VerificationError, "Verification request failed")
        return payload.get("status") == MFA_CODE_VERIFIED
