# src/nanit_client/authenticated.py

import asyncio
import logging
import typing

from .errors import NanitError, NotAuthenticated, SessionExpired, Unauthorized
from .models import Baby, CareEvent
from .session_store import SessionStore
from .vendor_client import VendorClient

logger = logging.getLogger(__name__)

T = typing.TypeVar("T")


class AuthenticatedClient:
    """
    Runs vendor calls with the stored access token and recovers from a 401
    with exactly one refresh and one retry.

    Refreshes are single-flight: concurrent callers that all hit a 401 queue on
    one lock, and whoever arrives after the token was already rotated reuses
    the new token instead of refreshing again.
    """

    def __init__(self, session_store: SessionStore, vendor_client: VendorClient):
        self.session_store = session_store
        self.vendor_client = vendor_client
        self._refresh_lock = asyncio.Lock()

    async def request(self, call: typing.Callable[[str], typing.Awaitable[T]]) -> T:
        token = self.session_store.get_access_token()
        if not token:
            raise NotAuthenticated()

        try:
            return await call(token)
        except Unauthorized:
            logger.info("AuthenticatedClient: Got 401, attempting token refresh.")

        new_token = await self._refresh(token)

        try:
            return await call(new_token)
        except Unauthorized:
            logger.warning("AuthenticatedClient: Still unauthorized after refresh. Clearing session.")
            self.session_store.clear()
            raise SessionExpired() from None

    async def _refresh(self, stale_token: str) -> str:
        async with self._refresh_lock:
            current = self.session_store.get_access_token()
            if current and current != stale_token:
                logger.debug("AuthenticatedClient: Token already rotated by a concurrent call.")
                return current

            refresh_token = self.session_store.get_refresh_token()
            if not current or not refresh_token:
                self.session_store.clear()
                raise SessionExpired()

            try:
                result = await self.vendor_client.refresh(current, refresh_token)
            except NanitError as e:
                logger.warning("AuthenticatedClient: Token refresh failed: %s", e)
                self.session_store.clear()
                raise SessionExpired() from e

            self.session_store.store_tokens(result)
            return result.access_token

    # --- Care data ---

    async def get_babies(self) -> typing.List[Baby]:
        return await self.request(self.vendor_client.get_babies)

    async def get_calendar(self, baby_uid: str, start: int, end: int) -> typing.List[CareEvent]:
        return await self.request(
            lambda token: self.vendor_client.get_calendar(token, baby_uid, start, end))
