"""
Identity Session
================

Holds the authentication state of one logical user: the optional
netid/password, the identity token pair issued by the SSO and the device
markers sent along with every login.

The token pair is only replaced as a whole, either by a successful login or by
an explicit ``set_tokens`` call.
"""

import logging
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import jwt

from ..errors import NoActiveSession
from ..models import LoginCredentials, TokenCredentials, TokenPair

logger = logging.getLogger(__name__)


USER_AGENTS = (
    "Mozilla/5.0 (compatible; MSIE 9.0; Windows NT 6.1; WOW64; Trident/5.0; SLCC2; .NET CLR 2.0.50727; .NET CLR 3.5.30729; .NET CLR 3.0.30729; Media Center PC 6.0; InfoPath.3; .NET4.0C; .NET4.0E)",
    "Mozilla/5.0 (iPhone; U; CPU iPhone OS 4_3_3 like Mac OS X; en-us) AppleWebKit/533.17.9 (KHTML, like Gecko) Version/5.0.2 Mobile/8J2 Safari/6533.18.5",
    "Mozilla/5.0 (iPad; U; CPU OS 4_2_1 like Mac OS X; zh-cn) AppleWebKit/533.17.9 (KHTML, like Gecko) Version/5.0.2 Mobile/8C148 Safari/6533.18.5",
)


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def generate_device_id() -> str:
    return str(uuid.uuid4())


class IdentitySession:
    """
    Authentication state for one logical user.

    Attributes:
        netid: University NetID, if logging in with a password
        password: Account password, if logging in with a password
        device_id: Device identifier reported to the SSO
        client_id: Client identifier reported to the SSO
        user_agent: User-Agent used for every request of this user
    """

    def __init__(
        self,
        netid: Optional[str] = None,
        password: Optional[str] = None,
        *,
        id_token: str = "",
        refresh_token: str = "",
        device_id: Optional[str] = None,
        client_id: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.netid = netid
        self.password = password
        self.device_id = device_id or generate_device_id()
        self.client_id = client_id or generate_device_id()
        self.user_agent = user_agent or random_user_agent()
        self._id_token = id_token
        self._refresh_token = refresh_token

    @classmethod
    def from_credentials(
        cls,
        credentials: Optional[Union[LoginCredentials, TokenCredentials]] = None,
    ) -> "IdentitySession":
        """
        Build a session from either credential flavour.

        Args:
            credentials: NetID/password, a token pair, or None for an empty
                session whose tokens are set later

        Returns:
            New IdentitySession
        """
        if credentials is None:
            return cls()

        markers = {
            "device_id": credentials.device_id,
            "client_id": credentials.client_id,
            "user_agent": credentials.user_agent,
        }
        if isinstance(credentials, LoginCredentials):
            return cls(credentials.netid, credentials.password, **markers)
        return cls(
            id_token=credentials.id_token,
            refresh_token=credentials.refresh_token or "",
            **markers,
        )

    # =========================================================================
    # Credentials
    # =========================================================================

    @property
    def has_credentials(self) -> bool:
        return bool(self.netid and self.password)

    # =========================================================================
    # Tokens
    # =========================================================================

    @property
    def id_token(self) -> str:
        return self._id_token

    @property
    def refresh_token(self) -> str:
        return self._refresh_token

    @property
    def has_token(self) -> bool:
        return bool(self._id_token)

    def set_tokens(self, id_token: str, refresh_token: Optional[str] = None) -> TokenPair:
        """
        Replace the token pair.

        A missing refresh token clears the stored one; the previous pair is
        never merged with the new one.

        Args:
            id_token: New identity token
            refresh_token: New refresh token (optional)

        Returns:
            The stored pair
        """
        self._id_token = id_token
        self._refresh_token = refresh_token or ""
        logger.debug(
            "Identity tokens replaced",
            extra={"has_refresh_token": bool(self._refresh_token)}
        )
        return self.tokens

    @property
    def tokens(self) -> TokenPair:
        return TokenPair(id_token=self._id_token, refresh_token=self._refresh_token)

    # =========================================================================
    # Token Inspection
    # =========================================================================

    def token_claims(self) -> Dict[str, Any]:
        """
        Decode the identity token without verifying its signature.

        The SSO issues JWTs; the claims are only used for inspection (e.g.
        expiry) and must not be trusted for authorization decisions.

        Returns:
            Decoded (unverified) claims

        Raises:
            NoActiveSession: If no identity token is held
            jwt.InvalidTokenError: If the token is not a decodable JWT
        """
        if not self._id_token:
            raise NoActiveSession("No identity token; log in first")
        return jwt.decode(self._id_token, options={"verify_signature": False})

    def token_expiry(self) -> Optional[datetime]:
        """
        Expiry of the identity token.

        Returns:
            Expiry datetime in UTC, or None if the token has no ``exp`` claim
        """
        exp = self.token_claims().get("exp")
        if exp:
            return datetime.fromtimestamp(exp, tz=timezone.utc)
        return None

    def is_token_expired(self, leeway_seconds: int = 10) -> bool:
        exp = self.token_claims().get("exp")
        if not exp:
            return True
        return time.time() > (exp + leeway_seconds)
