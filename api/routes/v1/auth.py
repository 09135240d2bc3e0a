"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; returns account + token pair (201)
  POST /api/v1/auth/login      -- password login; returns account + token pair
  POST /api/v1/auth/refresh    -- exchange refresh token for a new access token
  POST /api/v1/auth/logout     -- revoke an access + refresh token pair
  GET  /api/v1/auth/me         -- current account (requires Bearer access token)

Every handler is a plain `def`, not `async def`. Starlette runs sync handlers
on its worker thread pool, which keeps bcrypt's deliberate ~250ms of CPU off
the event loop so unrelated requests are not blocked.

Errors raised by AuthService (auth.errors.AuthError) are not caught here:
the exception handler in api/main.py maps each ErrorKind to a status code
and the shared {"error": {...}} envelope.

Security:
  [C1] login() equalizes timing and error messages inside AuthService -- never
       inline get_by_email() + verify() here.
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_auth_service, get_current_account
from api.models import (
    AccessTokenResponse,
    AccountResponse,
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
)
from auth.models import Account, AccountView
from auth.service import AuthService

router = APIRouter()


def _no_store(status_code: int, content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(body: RegisterRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Create an account and return it with an access + refresh token pair."""
    result = service.register(
        body.email,
        body.password,
        given_name=body.given_name,
        family_name=body.family_name,
    )
    return _no_store(201, AuthResponse.from_result(result).model_dump(mode="json"))


@router.post("/auth/login", response_model=AuthResponse)
def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email, wrong password and inactive account all produce the same
    401 invalid_credentials response.
    """
    result = service.login(body.email, body.password)
    return _no_store(200, AuthResponse.from_result(result).model_dump(mode="json"))


@router.post("/auth/refresh", response_model=AccessTokenResponse)
def refresh(body: RefreshRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Issue a new access token. The refresh token itself is not rotated."""
    grant = service.refresh(body.refresh_token)
    return _no_store(200, AccessTokenResponse.from_grant(grant).model_dump(mode="json"))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(body: LogoutRequest, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """Revoke both tokens. Repeating the call is harmless."""
    service.logout(body.access_token, body.refresh_token)
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=AccountResponse)
def me(current: Account = Depends(get_current_account)) -> AccountResponse:
    """Return the account behind the presented access token."""
    return AccountResponse.from_view(AccountView.from_account(current))
