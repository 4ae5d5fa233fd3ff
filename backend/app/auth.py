"""
Authentication dependencies for FastAPI endpoints.

Resolves the acting Principal from an optional Bearer token verified via
Supabase auth.get_user(). Requests without a token act as an anonymous
principal so the workflows can answer with a login-required outcome instead
of the transport rejecting them up front.
"""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.models.account import Principal

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> Principal:
    """
    FastAPI dependency returning the session's Principal.

    Raises:
        HTTPException 503: a token was sent but Supabase is not configured.
        HTTPException 401: token is invalid, expired, or user not found.
    """
    if credentials is None:
        return Principal.anonymous()

    supabase = getattr(request.app.state, "supabase", None)
    if supabase is None:
        raise HTTPException(status_code=503, detail="Layanan autentikasi tidak tersedia")

    token = credentials.credentials
    try:
        response = await supabase.auth.get_user(token)
        user = response.user if response else None
        if user is None:
            raise HTTPException(status_code=401, detail="Token tidak valid atau kedaluwarsa")
        structlog.contextvars.bind_contextvars(user_id=str(user.id))
        return Principal(id=str(user.id), email=user.email, is_authenticated=True)
    except HTTPException:
        raise
    except Exception as e:
        logger.warning("auth_token_verification_failed", error=str(e))
        raise HTTPException(status_code=401, detail="Token tidak valid atau kedaluwarsa")


def login_required_error() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "login_required", "message": "Silakan login terlebih dahulu"},
    )


async def require_authenticated(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    if not principal.is_authenticated:
        raise login_required_error()
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AuthenticatedPrincipal = Annotated[Principal, Depends(require_authenticated)]
