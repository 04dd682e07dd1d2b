# src/nanit_proxy/main.py

import functools
import logging
import typing

from fastapi import Depends, FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from nanit_client.config import settings as client_settings
from nanit_client.errors import InvalidResponse, Unauthorized, UpstreamError
from nanit_client.models import Authenticated, MfaRequired
from nanit_client.vendor_client import MFA_REQUIRED_STATUS, VendorClient

from .auth_utils import extract_token, require_token, session_expired_exception, upstream_http_exception
from .config import settings

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROXY_TITLE,
    description="Backend proxy for the care dashboard, forwarding auth and care data calls to the Nanit API.",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.PROXY_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


# --- Dependencies ---

@functools.lru_cache(maxsize=None)
def get_vendor_client() -> VendorClient:
    # One client per process; it holds no connections between calls.
    return VendorClient.from_settings(client_settings)


# --- Request bodies ---

class LoginRequest(BaseModel):
    email: str
    password: str


class VerifyMfaRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    mfa_token: str = Field(alias="mfaToken")
    mfa_code: str = Field(alias="mfaCode")
    channel: str = ""


class RefreshRequest(BaseModel):
    refresh_token: typing.Optional[str] = None


def _tokens(result: Authenticated) -> dict:
    return result.model_dump(exclude_none=True)


# --- Auth endpoints ---

@app.get("/")
async def home():
    return {"message": "Nanit proxy is running!"}


@app.post("/api/auth/login")
async def login(body: LoginRequest, vendor: VendorClient = Depends(get_vendor_client)):
    try:
        result = await vendor.login(body.email, body.password)
    except UpstreamError as e:
        logger.warning("PROXY: /api/auth/login - Upstream rejected login: %s", e)
        raise upstream_http_exception(e, "Login failed")
    except InvalidResponse as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    if isinstance(result, MfaRequired):
        logger.info("PROXY: /api/auth/login - MFA required, channel '%s'.", result.channel)
        return JSONResponse(status_code=MFA_REQUIRED_STATUS, content=result.model_dump())
    return _tokens(result)


@app.post("/api/auth/verify-mfa")
async def verify_mfa(body: VerifyMfaRequest, vendor: VendorClient = Depends(get_vendor_client)):
    try:
        result = await vendor.verify_mfa(body.email, body.password, body.mfa_token, body.mfa_code, body.channel)
    except UpstreamError as e:
        logger.warning("PROXY: /api/auth/verify-mfa - Upstream rejected code: %s", e)
        raise upstream_http_exception(e, "MFA verification failed")
    except InvalidResponse as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return _tokens(result)


@app.post("/api/auth/refresh")
async def refresh(
        body: RefreshRequest,
        authorization: typing.Optional[str] = Header(None),
        vendor: VendorClient = Depends(get_vendor_client),
):
    if not body.refresh_token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing refresh_token")

    access_token = extract_token(authorization)
    if not access_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing access token")

    try:
        result = await vendor.refresh(access_token, body.refresh_token)
    except UpstreamError as e:
        logger.warning("PROXY: /api/auth/refresh - Token refresh failed: %s", e)
        raise upstream_http_exception(e, "Token refresh failed")
    except InvalidResponse as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return _tokens(result)


# --- Care data endpoints ---

@app.get("/api/babies")
async def get_babies(token: str = Depends(require_token), vendor: VendorClient = Depends(get_vendor_client)):
    try:
        return await vendor.fetch_babies(token)
    except Unauthorized:
        raise session_expired_exception()
    except UpstreamError as e:
        logger.error("PROXY: /api/babies - %s", e)
        raise upstream_http_exception(e, "Failed to fetch babies")


@app.get("/api/calendar/{baby_uid}")
async def get_calendar(
        baby_uid: str,
        start: typing.Optional[int] = None,
        end: typing.Optional[int] = None,
        token: str = Depends(require_token),
        vendor: VendorClient = Depends(get_vendor_client),
):
    if not start or not end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing start or end time")

    try:
        return await vendor.fetch_calendar(token, baby_uid, start, end)
    except Unauthorized:
        raise session_expired_exception()
    except UpstreamError as e:
        logger.error("PROXY: /api/calendar/%s - %s", baby_uid, e)
        raise upstream_http_exception(e, "Failed to fetch calendar")


# --- Startup Event ---
@app.on_event("startup")
async def startup_event():
    logger.info("--- Nanit Proxy (FastAPI) Starting Up ---")
    logger.info("Upstream API: %s", client_settings.api_base_url)
    logger.info("Upstream TLS verification: %s", "on" if client_settings.NANIT_VERIFY_TLS else "OFF")
    logger.info("CORS origins: %s", settings.PROXY_CORS_ORIGINS)
    logger.info("-------------------------------------------")


def run() -> None:
    import uvicorn

    logging.basicConfig(
        level=settings.PROXY_LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.PROXY_HOST, port=settings.PROXY_PORT)


if __name__ == "__main__":
    run()
