from typing import Optional

from fastapi import Cookie, Header, HTTPException, Query, Request

from courierhub.config import settings
from courierhub.errors import AuthenticationError, CourierHubError, RateLimitedError
from courierhub.services.auth_service import decode_token
from courierhub.services.authz import Actor

TOKEN_COOKIE = "token"


def get_current_actor(
    token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
) -> Actor:
    """Resolve the caller from the `token` cookie or an `Authorization: Bearer` header."""
    raw = token
    if not raw and authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value:
            raw = value.strip()
    if not raw:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return Actor.from_claims(decode_token(raw))
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))


class Pagination:
    def __init__(
        self,
        page: int = Query(1, ge=1),
        size: int = Query(20, ge=1),
    ):
        self.page = page
        self.size = min(size, settings.MAX_PAGE_SIZE)


def http_error(e: CourierHubError) -> HTTPException:
    headers = None
    if isinstance(e, RateLimitedError):
        headers = {"Retry-After": str(e.retry_after)}
    return HTTPException(status_code=e.status_code, detail=str(e), headers=headers)


def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
