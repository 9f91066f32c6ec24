"""
Redirecting HTTP Client
=======================

Request layer shared by the derived-session providers.

Behaviour:
----------
- Every ``Set-Cookie`` header is absorbed into a cookie jar owned by the
  instance (name -> value, last write wins, no domain/path scoping).
- Every request carries the whole jar as one ``Cookie`` header composed for
  that request; httpx's own cookie store is kept empty.
- A 302 response is followed transparently: the ``Location`` is resolved
  against the previous request URL (RFC 3986) and fetched with GET. At most
  ``max_redirect_hops`` hops are followed per call, after which the last
  response is returned as is. Earlier responses are kept on
  ``response.history``.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class RedirectingHttpClient:
    """
    Cookie-accumulating HTTP client following a bounded number of redirects.

    A ``Location`` is resolved like a browser would: absolute URLs are used
    as is, ``/path`` replaces the path of the previous URL and ``path`` is
    joined to its directory.

    Args:
        user_agent: User-Agent sent with every request
        timeout: Per-request timeout in seconds
        max_redirect_hops: Redirects followed automatically per call
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        user_agent: str,
        *,
        timeout: float = 10.0,
        max_redirect_hops: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.max_redirect_hops = max_redirect_hops
        self._cookies: Dict[str, str] = {}
        self._client = httpx.AsyncClient(
            headers={"User-Agent": user_agent},
            timeout=timeout,
            follow_redirects=False,
            transport=transport,
        )

    # =========================================================================
    # Cookie Jar
    # =========================================================================

    @property
    def cookies(self) -> Dict[str, str]:
        return self._cookies

    def get_cookies(self) -> Dict[str, str]:
        return dict(self._cookies)

    def set_cookies(self, cookies: Dict[str, str]) -> None:
        """Replace the whole cookie jar."""
        self._cookies = dict(cookies)

    def update_cookies(self, cookies: Dict[str, str]) -> None:
        self._cookies.update(cookies)

    def _absorb_cookies(self, response: httpx.Response) -> None:
        for header in response.headers.get_list("set-cookie"):
            name, sep, value = header.split(";", 1)[0].partition("=")
            name = name.strip()
            if sep and name:
                self._cookies[name] = value.strip()
        # the owned jar is the only cookie source
        self._client.cookies.clear()

    def _compose_headers(self, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        composed = dict(headers or {})
        if self._cookies:
            composed["Cookie"] = "; ".join(f"{k}={v}" for k, v in self._cookies.items())
        return composed

    # =========================================================================
    # Requests
    # =========================================================================

    async def _send(self, method: str, url: Any, headers: Optional[Dict[str, str]], **kwargs: Any) -> httpx.Response:
        response = await self._client.request(
            method, url, headers=self._compose_headers(headers), **kwargs
        )
        self._absorb_cookies(response)
        return response

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request, absorbing cookies and following redirects.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Headers for this request only (not re-sent on redirects)
            **kwargs: Passed to ``httpx.AsyncClient.request`` (params, data,
                json, ...)

        Returns:
            Response of the last request issued

        Raises:
            httpx.HTTPError: On transport failures
        """
        response = await self._send(method, url, headers, **kwargs)
        history: List[httpx.Response] = []

        while (
            response.status_code == 302
            and response.headers.get("location")
            and len(history) < self.max_redirect_hops
        ):
            target = response.request.url.join(response.headers["location"])
            logger.debug(
                "Following redirect",
                extra={"location": f"{target.scheme}://{target.host}{target.path}"}
            )
            history.append(response)
            response = await self._send("GET", target, None)

        if response.status_code == 301:
            logger.debug(
                "Permanent redirect not followed",
                extra={"location": response.headers.get("location")}
            )

        if history:
            response.history = history
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RedirectingHttpClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
