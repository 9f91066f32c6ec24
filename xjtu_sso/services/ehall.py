"""
EHall Session Provider
======================

Exchanges an identity token for a cookie session on the academic portal
(``ehall.xjtu.edu.cn``).

The portal login bridge answers with a chain of cookies and redirects which
the RedirectingHttpClient absorbs; afterwards the same client is
authenticated for business-data calls. Every application on the portal is
opened through an entry URL looked up on the role/menu endpoint
(``appMultiGroupEntranceList``).
"""

import logging
import time
from typing import List, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..errors import EntryNotFound, SessionAcquisitionError
from ..models import RoleGroup
from .http import RedirectingHttpClient

logger = logging.getLogger(__name__)


# Known portal applications
EHALL_APPS = {
    "course": "4770397878132218",
    "score": "4768574631264620",
    "classroom": "4768402106681759",
}


class EHallSessionProvider:
    """
    Academic-portal flavour of the derived-session provider.

    Not safe for concurrent acquisitions: the cookie jar is shared state of
    the instance.

    Args:
        user_agent: User-Agent of the owning identity session
        settings: Endpoint configuration
        http: Client to use instead of a newly created one
        transport: Optional httpx transport for the created client
    """

    def __init__(
        self,
        user_agent: str,
        settings: Optional[Settings] = None,
        *,
        http: Optional[RedirectingHttpClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings()
        self.session = http or RedirectingHttpClient(
            user_agent,
            timeout=self._settings.REQUEST_TIMEOUT_SECONDS,
            max_redirect_hops=self._settings.MAX_REDIRECT_HOPS,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._settings.EHALL_BASE_URL

    # =========================================================================
    # Session Acquisition
    # =========================================================================

    async def acquire_session(self, id_token: str) -> RedirectingHttpClient:
        """
        Log in to the portal with an identity token.

        Args:
            id_token: SSO identity token

        Returns:
            The authenticated client, reusable for portal requests

        Raises:
            SessionAcquisitionError: If the login bridge cannot be reached
        """
        headers = {
            "x-id-token": id_token,
            "x-requested-with": self._settings.APP_ID,
            "accept-encoding": "gzip",
        }
        params = {"service": f"{self.base_url}/new/index.html?browser=no"}

        try:
            response = await self.session.get(
                f"{self.base_url}/login", headers=headers, params=params
            )
        except httpx.HTTPError as e:
            logger.error(f"EHall login bridge failed: {e}")
            raise SessionAcquisitionError(f"Failed to get EHall session: {e}") from e

        logger.info(
            "EHall session acquired",
            extra={"status_code": response.status_code, "cookies": len(self.session.cookies)}
        )
        return self.session

    # =========================================================================
    # Entry Resolution
    # =========================================================================

    async def get_role_groups(self, app_id: str) -> List[RoleGroup]:
        """
        Fetch the entrances offered for an application.

        Args:
            app_id: Portal application id

        Returns:
            Entrances in the order the portal lists them

        Raises:
            SessionAcquisitionError: If the endpoint fails or answers with
                something other than a group list
        """
        params = {"r_t": str(int(time.time() * 1000)), "appId": app_id, "param": ""}
        try:
            response = await self.session.get(
                f"{self.base_url}/appMultiGroupEntranceList", params=params
            )
            data = response.json()
            groups = data["data"]["groupList"]
            return [RoleGroup.model_validate(group) for group in groups]
        except httpx.HTTPError as e:
            logger.error(f"EHall role list request failed: {e}")
            raise SessionAcquisitionError(f"Failed to get role list for app {app_id}: {e}") from e
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Unexpected EHall role list response: {e}")
            raise SessionAcquisitionError(f"Invalid role list for app {app_id}: {e}") from e

    async def resolve_entry_url(self, app_id: str, keyword: Optional[str] = None) -> str:
        """
        Find the entry URL of an application.

        Args:
            app_id: Portal application id
            keyword: Text the entry name must contain (defaults to the
                configured mobile-student keyword)

        Returns:
            Target URL of the first matching entry

        Raises:
            EntryNotFound: If no entry name contains the keyword
        """
        keyword = keyword or self._settings.EHALL_ENTRY_KEYWORD
        for group in await self.get_role_groups(app_id):
            if keyword in group.group_name:
                return group.target_url

        logger.warning("No EHall entry matched", extra={"app_id": app_id, "keyword": keyword})
        raise EntryNotFound(keyword, app_id)

    async def open_app(self, app_id: str, keyword: Optional[str] = None) -> httpx.Response:
        """
        Enter an application so its data endpoints accept the session.

        Example:
            >>> await ehall.acquire_session(xjtu.get_id_token())
            >>> await ehall.open_app(EHALL_APPS["course"])
            >>> await ehall.session.post(".../xskcb.do", data={"XNXQDM": "2024-2025-1"})
        """
        target_url = await self.resolve_entry_url(app_id, keyword)
        try:
            return await self.session.get(target_url)
        except httpx.HTTPError as e:
            logger.error(f"Opening EHall app failed: {e}")
            raise SessionAcquisitionError(f"Failed to open EHall app {app_id}: {e}") from e

    async def aclose(self) -> None:
        await self.session.aclose()
