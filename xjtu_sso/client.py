"""
XJTU Client
===========

Entry point tying the identity session, the login state machine and the
derived-session providers together.

Usage:
------
    # NetID / password
    async with XJTU(LoginCredentials(netid="...", password="...")) as xjtu:
        try:
            await xjtu.login()
        except MfaRequired as challenge:
            await xjtu.send_mfa_code(challenge.gid)
            await xjtu.login(input("code: "), challenge.gid, challenge.state)

        ehall = xjtu.use_ehall()
        await ehall.acquire_session(xjtu.get_id_token())

    # Previously issued tokens
    xjtu = XJTU(TokenCredentials(id_token="...", refresh_token="..."))
"""

import logging
from typing import Any, Optional, Union

import httpx

from .auth.encoder import CredentialEncoder, get_default_encoder
from .auth.identity import IdentitySession
from .auth.login import LoginState, LoginStateMachine
from .config import Settings, get_settings
from .errors import MissingCredentials, NoActiveSession, UserInfoError
from .models import (
    LoginCredentials,
    LoginOutcome,
    MfaChallenge,
    MfaGid,
    TokenCredentials,
    TokenPair,
    UserInfo,
)
from .services.ehall import EHallSessionProvider
from .services.webvpn import WebVPNSessionProvider

logger = logging.getLogger(__name__)


class XJTU:
    """
    SSO client for one logical user.

    Args:
        credentials: NetID/password, a token pair, or None
        settings: Configuration (defaults to ``get_settings()``)
        encoder: Credential encoder (defaults to one built from settings)
        transport: Optional httpx transport shared by all created clients
    """

    def __init__(
        self,
        credentials: Optional[Union[LoginCredentials, TokenCredentials]] = None,
        *,
        settings: Optional[Settings] = None,
        encoder: Optional[CredentialEncoder] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        if encoder is None:
            encoder = get_default_encoder() if settings is None else CredentialEncoder.from_settings(settings)
        self.identity = IdentitySession.from_credentials(credentials)
        self._transport = transport
        self._session = httpx.AsyncClient(
            headers={"User-Agent": self.identity.user_agent},
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._login = LoginStateMachine(
            self.identity,
            self._session,
            encoder,
            self.settings,
        )
        self._ehall: Optional[EHallSessionProvider] = None
        self._webvpn: Optional[WebVPNSessionProvider] = None

    @property
    def login_state(self) -> LoginState:
        return self._login.state

    # =========================================================================
    # Login
    # =========================================================================

    async def authenticate(
        self,
        mfa_code: Optional[str] = None,
        mfa_gid: Optional[str] = None,
        mfa_state: Optional[str] = None,
    ) -> LoginOutcome:
        return await self._login.authenticate(mfa_code, mfa_gid, mfa_state)

    async def login(
        self,
        mfa_code: Optional[str] = None,
        mfa_gid: Optional[str] = None,
        mfa_state: Optional[str] = None,
    ) -> TokenPair:
        """
        Log in and return the identity token pair.

        Raises:
            MfaRequired: If the account needs a second factor first
        """
        return await self._login.login(mfa_code, mfa_gid, mfa_state)

    async def detect_mfa(self) -> MfaChallenge:
        return await self._login.detect_mfa()

    async def get_mfa_gid(self, state: str) -> MfaGid:
        return await self._login.get_mfa_gid(state)

    async def send_mfa_code(self, gid: str) -> bool:
        return await self._login.send_mfa_code(gid)

    async def verify_mfa_code(self, gid: str, code: str) -> bool:
        return await self._login.verify_code(gid, code)

    # =========================================================================
    # Personal Info
    # =========================================================================

    async def get_user_info(self) -> UserInfo:
        """
        Fetch the profile of the logged-in user.

        Logs in first when no identity token is held but credentials are.

        Returns:
            UserInfo with netid, name, email and department

        Raises:
            MissingCredentials: If neither a token nor credentials are bound
            UserInfoError: If the profile endpoint fails
        """
        if not self.identity.has_token:
            if not self.identity.has_credentials:
                raise MissingCredentials("Log in first or provide NetID and password")
            await self.login()

        headers = {
            "x-id-token": self.identity.id_token,
            "accept-encoding": "gzip",
        }
        url = f"{self.settings.AUTHX_BASE_URL}/personal/api/v1/personal/me/user"

        try:
            response = await self._session.get(url, headers=headers)
            response.raise_for_status()
            data = response.json()
            return UserInfo(
                netid=data["netid"],
                name=data.get("name") or "",
                email=data.get("email"),
                department=data.get("department"),
            )
        except httpx.HTTPError as e:
            logger.error(f"User info request failed: {e}")
            raise UserInfoError(f"Failed to get user info: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Unexpected user info response: {e}")
            raise UserInfoError(f"Failed to get user info: {e}") from e

    # =========================================================================
    # Derived Sessions
    # =========================================================================

    def use_ehall(self) -> EHallSessionProvider:
        if self._ehall is None:
            self._ehall = EHallSessionProvider(
                self.identity.user_agent, self.settings, transport=self._transport
            )
        return self._ehall

    def use_webvpn(self) -> WebVPNSessionProvider:
        if self._webvpn is None:
            self._webvpn = WebVPNSessionProvider(
                self.identity.user_agent, self.settings, transport=self._transport
            )
        return self._webvpn

    # =========================================================================
    # Tokens
    # =========================================================================

    def get_id_token(self) -> str:
        if not self.identity.id_token:
            raise NoActiveSession("Not logged in")
        return self.identity.id_token

    def get_refresh_token(self) -> str:
        if not self.identity.refresh_token:
            raise NoActiveSession("No refresh token")
        return self.identity.refresh_token

    def set_tokens(self, id_token: str, refresh_token: Optional[str] = None) -> TokenPair:
        return self.identity.set_tokens(id_token, refresh_token)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def aclose(self) -> None:
        await self._session.aclose()
        for provider in (self._ehall, self._webvpn):
            if provider is not None:
                await provider.aclose()

    async def __aenter__(self) -> "XJTU":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
