"""
WebVPN Session Provider
=======================

Exchanges an identity token for a WebVPN session and its short-lived ticket.

The gateway's CAS bridge (``/login?cas_login=true``) delivers the ticket in
a ``Set-Cookie`` header. The ticket is cached together with its acquisition
time; reading it after the freshness window re-runs the bridge with the last
identity token instead of handing out a stale ticket. There is no background
refresh.
"""

import logging
import re
import time
from typing import Callable, Dict, Optional

import httpx

from ..config import Settings, get_settings
from ..errors import NoActiveSession, SessionAcquisitionError
from ..models import VpnTicket
from .http import RedirectingHttpClient

logger = logging.getLogger(__name__)


# UI-state cookies the gateway expects (banners and heartbeat disabled)
WEBVPN_UI_COOKIES: Dict[str, str] = {
    "show_vpn": "0",
    "show_fast": "0",
    "heartbeat": "1",
    "show_faq": "0",
    "refresh": "0",
}


# ============================================================================
# Ticket Cache
# ============================================================================

class TicketCache:
    """
    Holds one WebVPN ticket and enforces its freshness window.

    Args:
        ttl_seconds: Maximum age of a ticket handed out by ``get``
        clock: Returns the current epoch time in seconds
    """

    def __init__(self, ttl_seconds: float = 15 * 60, clock: Callable[[], float] = time.time):
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._ticket: Optional[VpnTicket] = None

    def store(self, ticket: str) -> VpnTicket:
        self._ticket = VpnTicket(ticket=ticket, ticket_time=self._clock())
        return self._ticket

    def is_fresh(self) -> bool:
        if self._ticket is None:
            return False
        return self._clock() - self._ticket.ticket_time <= self._ttl_seconds

    @property
    def ticket(self) -> Optional[VpnTicket]:
        """Last stored ticket regardless of its age."""
        return self._ticket

    def get(self) -> Optional[VpnTicket]:
        """Return the cached ticket, or None if absent or stale."""
        return self._ticket if self.is_fresh() else None

    def clear(self) -> None:
        self._ticket = None


# ============================================================================
# Session Provider
# ============================================================================

class WebVPNSessionProvider:
    """
    VPN-gateway flavour of the derived-session provider.

    Not safe for concurrent acquisitions: the cookie jar and the ticket cache
    are shared state of the instance.

    Args:
        user_agent: User-Agent of the owning identity session
        settings: Endpoint configuration
        http: Client to use instead of a newly created one
        transport: Optional httpx transport for the created client
        clock: Time source for the ticket cache
    """

    def __init__(
        self,
        user_agent: str,
        settings: Optional[Settings] = None,
        *,
        http: Optional[RedirectingHttpClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings or get_settings()
        self.session = http or RedirectingHttpClient(
            user_agent,
            timeout=self._settings.REQUEST_TIMEOUT_SECONDS,
            max_redirect_hops=self._settings.MAX_REDIRECT_HOPS,
            transport=transport,
        )
        self.ticket_cache = TicketCache(self._settings.webvpn_ticket_ttl_seconds, clock)
        self._ticket_pattern = re.compile(
            re.escape(self._settings.WEBVPN_TICKET_COOKIE) + r"=([^;]+)"
        )
        self._id_token: Optional[str] = None

    def _extract_ticket(self, response: httpx.Response) -> Optional[str]:
        ticket = None
        for resp in [*response.history, response]:
            for cookie in resp.headers.get_list("set-cookie"):
                match = self._ticket_pattern.search(cookie)
                if match:
                    ticket = match.group(1)
        return ticket

    async def acquire_session(self, id_token: str) -> RedirectingHttpClient:
        """
        Log in to the gateway with an identity token and cache its ticket.

        Args:
            id_token: SSO identity token

        Returns:
            The authenticated client, reusable for gateway requests

        Raises:
            SessionAcquisitionError: If the bridge cannot be reached or does
                not deliver a ticket cookie
        """
        headers = {"x-id-token": id_token, "accept-encoding": "gzip"}
        try:
            response = await self.session.get(
                f"{self._settings.WEBVPN_BASE_URL}/login",
                headers=headers,
                params={"cas_login": "true"},
            )
        except httpx.HTTPError as e:
            logger.error(f"WebVPN login bridge failed: {e}")
            raise SessionAcquisitionError(f"Failed to get WebVPN session: {e}") from e

        self._id_token = id_token

        ticket = self._extract_ticket(response)
        if ticket is None:
            logger.warning(
                "WebVPN bridge returned no ticket cookie",
                extra={"status_code": response.status_code}
            )
            raise SessionAcquisitionError(
                f"WebVPN login did not set {self._settings.WEBVPN_TICKET_COOKIE}"
            )

        self.ticket_cache.store(ticket)
        self.session.update_cookies(WEBVPN_UI_COOKIES)
        logger.info("WebVPN session acquired")
        return self.session

    async def get_ticket(self) -> VpnTicket:
        """
        Return a ticket no older than the freshness window.

        A stale or missing ticket is re-acquired once with the identity token
        of the last acquisition.

        Returns:
            VpnTicket with the ticket value and its acquisition time

        Raises:
            NoActiveSession: If no session was acquired before
            SessionAcquisitionError: If re-acquisition fails
        """
        cached = self.ticket_cache.get()
        if cached is not None:
            return cached

        if not self._id_token:
            raise NoActiveSession("Acquire a WebVPN session first")

        logger.info("WebVPN ticket stale, re-acquiring session")
        await self.acquire_session(self._id_token)
        return self.ticket_cache.ticket

    async def aclose(self) -> None:
        await self.session.aclose()
