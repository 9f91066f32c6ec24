"""
Services Package
================

Derived sessions for the services reached with an SSO identity token.

Main Components:
----------------
- http.py: Redirect-following, cookie-accumulating HTTP client
- ehall.py: Academic portal (EHall) session and entry resolution
- webvpn.py: WebVPN session and ticket cache

Usage:
------
    ehall = xjtu.use_ehall()
    await ehall.acquire_session(xjtu.get_id_token())
"""

from .ehall import EHALL_APPS, EHallSessionProvider
from .http import RedirectingHttpClient
from .webvpn import TicketCache, WebVPNSessionProvider

__all__ = [
    "EHALL_APPS",
    "EHallSessionProvider",
    "RedirectingHttpClient",
    "TicketCache",
    "WebVPNSessionProvider",
]
