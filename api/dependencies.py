"""
api/dependencies.py -- FastAPI Depends() helpers for authentication.

Only the Authorization: Bearer <access token> header is accepted. Token
verification, class enforcement and account state checks all happen in
AuthService.authenticate(); this module only extracts the header and maps a
failure to HTTP 401.

Layer rule: api/ imports from auth/, never the other way around.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import InvalidToken
from auth.models import Account
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def bearer_token(request: Request) -> str:
    """Return the raw token from the Authorization header or raise HTTP 401."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


def get_current_account(request: Request) -> Account:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    token = bearer_token(request)
    try:
        return get_auth_service(request).authenticate(token)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=401,
            detail=exc.to_dict(),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
