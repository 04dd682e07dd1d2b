# src/nanit_client/vendor_client.py

import logging
import typing

import httpx
from pydantic import ValidationError

from .config import Settings, settings
from .errors import InvalidResponse, Unauthorized, UpstreamError
from .models import Authenticated, Baby, CareEvent, CareEventKind, LoginResult, MfaRequired

logger = logging.getLogger(__name__)

# The vendor answers a password login with this status when a one-time code is needed.
MFA_REQUIRED_STATUS = 482

_CARE_EVENT_KINDS = {kind.value for kind in CareEventKind}


class VendorClient:
    """
    Talks to the Nanit API directly. One httpx.AsyncClient per call; pass a
    transport to route calls somewhere else (tests, ASGI apps).
    """

    auth_scheme = "token"
    login_path = "/login"
    verify_mfa_path = "/login"
    refresh_path = "/tokens/refresh"
    babies_path = "/babies"

    def __init__(
            self,
            base_url: str,
            api_version: str = "1",
            user_agent: typing.Optional[str] = None,
            verify_tls: bool = True,
            timeout: float = 10.0,
            transport: typing.Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.user_agent = user_agent
        self.verify_tls = verify_tls
        self.timeout = timeout
        self.transport = transport
        if not verify_tls:
            logger.warning(
                "%s: TLS certificate verification is DISABLED for %s. Only use this for a known-broken upstream chain.",
                type(self).__name__, self.base_url)

    @classmethod
    def from_settings(cls, cfg: Settings = settings,
                      transport: typing.Optional[httpx.AsyncBaseTransport] = None) -> "VendorClient":
        return cls(
            base_url=cfg.api_base_url,
            api_version=cfg.NANIT_API_VERSION,
            user_agent=cfg.NANIT_USER_AGENT,
            verify_tls=cfg.NANIT_VERIFY_TLS,
            timeout=cfg.NANIT_TIMEOUT_SECONDS,
            transport=transport,
        )

    # --- Wire helpers ---

    def calendar_path(self, baby_uid: str) -> str:
        return f"/babies/{baby_uid}/calendar"

    def _headers(self, token: typing.Optional[str] = None,
                 extra: typing.Optional[typing.Dict[str, str]] = None) -> typing.Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "nanit-api-version": self.api_version,
        }
        if token:
            headers["Authorization"] = f"{self.auth_scheme} {token}"
        if extra:
            headers.update(extra)
        return headers

    def _login_headers(self) -> typing.Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return headers

    async def _send(self, method: str, path: str, *, token: typing.Optional[str] = None,
                    json: typing.Optional[dict] = None, params: typing.Optional[dict] = None,
                    headers: typing.Optional[typing.Dict[str, str]] = None) -> httpx.Response:
        async with httpx.AsyncClient(
                base_url=self.base_url,
                verify=self.verify_tls,
                timeout=self.timeout,
                transport=self.transport,
        ) as client:
            try:
                logger.debug("%s: %s %s", type(self).__name__, method, path)
                return await client.request(
                    method, path, json=json, params=params, headers=self._headers(token, headers))
            except httpx.RequestError as e:
                logger.error("%s: Request error calling %s %s: %s", type(self).__name__, method, path, e)
                raise UpstreamError(f"Could not connect to Nanit API: {e}") from e

    @staticmethod
    def _body(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_message(response: httpx.Response, data: dict, default: str) -> str:
        for key in ("message", "detail", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
        return response.text or default

    @staticmethod
    def _token_from(data: dict) -> typing.Optional[str]:
        return data.get("access_token") or data.get("token")

    # --- Auth ---

    def _verify_mfa_body(self, email: str, password: str, mfa_token: str, code: str, channel: str) -> dict:
        return {
            "mfa_token": mfa_token,
            "channel": channel,
            "mfa_code": code,
            "password": password,
            "email": email,
        }

    async def login(self, email: str, password: str) -> LoginResult:
        response = await self._send(
            "POST", self.login_path,
            json={"email": email, "password": password},
            headers=self._login_headers())
        data = self._body(response)

        # 482 is a branch of the handshake, not a failure.
        if response.status_code == MFA_REQUIRED_STATUS or data.get("mfa_token"):
            if not data.get("mfa_token"):
                raise InvalidResponse("MFA required but no mfa_token received")
            logger.info("%s: Login requires MFA via channel '%s'.", type(self).__name__, data.get("channel"))
            return MfaRequired(
                mfa_token=data["mfa_token"],
                channel=data.get("channel") or "",
                phone_suffix=data.get("phone_suffix"),
            )

        if not response.is_success:
            raise UpstreamError(self._error_message(response, data, "Login failed"), response.status_code)

        token = self._token_from(data)
        if not token:
            raise InvalidResponse("Unexpected response from server")
        logger.info("%s: Login succeeded without MFA.", type(self).__name__)
        return Authenticated(access_token=token, refresh_token=data.get("refresh_token"))

    async def verify_mfa(self, email: str, password: str, mfa_token: str, code: str,
                         channel: str) -> Authenticated:
        response = await self._send(
            "POST", self.verify_mfa_path,
            json=self._verify_mfa_body(email, password, mfa_token, code, channel),
            headers=self._login_headers())
        data = self._body(response)
        if not response.is_success:
            raise UpstreamError(
                self._error_message(response, data, "MFA verification failed"), response.status_code)

        token = self._token_from(data)
        if not token:
            raise InvalidResponse("No token received after MFA verification")
        logger.info("%s: MFA verification succeeded.", type(self).__name__)
        return Authenticated(access_token=token, refresh_token=data.get("refresh_token"))

    async def refresh(self, access_token: str, refresh_token: str) -> Authenticated:
        response = await self._send(
            "POST", self.refresh_path,
            token=access_token,
            json={"refresh_token": refresh_token},
            headers={"Content-Type": "application/json"})
        data = self._body(response)
        if not response.is_success:
            raise UpstreamError(
                self._error_message(response, data, "Token refresh failed"), response.status_code)

        token = self._token_from(data)
        if not token:
            raise InvalidResponse("No token received from token refresh")
        logger.info("%s: Access token refreshed.", type(self).__name__)
        return Authenticated(access_token=token, refresh_token=data.get("refresh_token"))

    # --- Care data ---

    async def _get_authenticated(self, path: str, token: str, what: str,
                                 params: typing.Optional[dict] = None,
                                 headers: typing.Optional[typing.Dict[str, str]] = None) -> dict:
        response = await self._send("GET", path, token=token, params=params, headers=headers)
        data = self._body(response)
        if response.status_code == 401:
            raise Unauthorized(self._error_message(response, data, "Unauthorized"))
        if not response.is_success:
            logger.error("%s: HTTP error fetching %s: %s", type(self).__name__, what, response.status_code)
            raise UpstreamError(
                self._error_message(response, data, f"Failed to fetch {what}"), response.status_code)
        return data

    async def fetch_babies(self, token: str) -> dict:
        """The vendor's `{"babies": [...]}` body, untouched."""
        return await self._get_authenticated(self.babies_path, token, "babies")

    async def fetch_calendar(self, token: str, baby_uid: str, start: int, end: int) -> dict:
        """The vendor's `{"calendar": [...]}` body, every entry type included."""
        return await self._get_authenticated(
            self.calendar_path(baby_uid), token, "calendar",
            params={"start": start, "end": end},
            headers={"X-Nanit-Platform": "unknown", "X-Nanit-Service": "3.52.0 (882)"})

    async def get_babies(self, token: str) -> typing.List[Baby]:
        data = await self.fetch_babies(token)
        try:
            return [Baby.model_validate(item) for item in data.get("babies") or []]
        except ValidationError as e:
            raise InvalidResponse(f"Malformed babies response: {e}") from e

    async def get_calendar(self, token: str, baby_uid: str, start: int, end: int) -> typing.List[CareEvent]:
        data = await self.fetch_calendar(token, baby_uid, start, end)

        events = []
        for item in data.get("calendar") or []:
            if not isinstance(item, dict) or item.get("type") not in _CARE_EVENT_KINDS:
                continue
            try:
                events.append(CareEvent.model_validate(item))
            except ValidationError as e:
                raise InvalidResponse(f"Malformed calendar entry: {e}") from e
        return events


class ProxyVendorClient(VendorClient):
    """Same contract, routed through the local backend proxy (nanit_proxy)."""

    auth_scheme = "Bearer"
    login_path = "/api/auth/login"
    verify_mfa_path = "/api/auth/verify-mfa"
    refresh_path = "/api/auth/refresh"
    babies_path = "/api/babies"

    @classmethod
    def from_settings(cls, cfg: Settings = settings,
                      transport: typing.Optional[httpx.AsyncBaseTransport] = None) -> "ProxyVendorClient":
        return cls(
            base_url=cfg.proxy_base_url,
            api_version=cfg.NANIT_API_VERSION,
            verify_tls=cfg.NANIT_VERIFY_TLS,
            timeout=cfg.NANIT_TIMEOUT_SECONDS,
            transport=transport,
        )

    def calendar_path(self, baby_uid: str) -> str:
        return f"/api/calendar/{baby_uid}"

    def _verify_mfa_body(self, email: str, password: str, mfa_token: str, code: str, channel: str) -> dict:
        return {
            "email": email,
            "password": password,
            "mfaToken": mfa_token,
            "mfaCode": code,
            "channel": channel,
        }


def build_vendor_client(cfg: Settings = settings,
                        transport: typing.Optional[httpx.AsyncBaseTransport] = None) -> VendorClient:
    if cfg.NANIT_CLIENT_MODE == "proxy":
        return ProxyVendorClient.from_settings(cfg, transport=transport)
    return VendorClient.from_settings(cfg, transport=transport)
