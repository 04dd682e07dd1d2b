# src/nanit_proxy/auth_utils.py

import typing

from fastapi import Header, HTTPException, status

from nanit_client.errors import UpstreamError

_AUTH_SCHEMES = ("Bearer ", "token ")


def extract_token(authorization: typing.Optional[str]) -> str:
    """
    Strips the scheme from an Authorization header. The browser sends
    `Bearer <token>`; `token <token>` (the vendor's own scheme) is accepted too.
    """
    if not authorization:
        return ""
    value = authorization.strip()
    for scheme in _AUTH_SCHEMES:
        if value[:len(scheme)].lower() == scheme.lower():
            return value[len(scheme):].strip()
    return value


async def require_token(authorization: typing.Optional[str] = Header(None)) -> str:
    token = extract_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def upstream_http_exception(error: UpstreamError, fallback_detail: str) -> HTTPException:
    """Vendor 4xx statuses pass through; anything else becomes a 502."""
    if error.status_code is not None and 400 <= error.status_code < 500:
        return HTTPException(status_code=error.status_code, detail=error.message or fallback_detail)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=fallback_detail)


def session_expired_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Session expired",
        headers={"WWW-Authenticate": "Bearer"},
    )
