"""
api/routes/accounts.py -- Account and credential REST endpoints.

Routes:
  GET  /api/accounts                 -- list public account views
  POST /api/accounts                 -- signup; 201
  POST /api/accounts/login           -- password login
  GET  /api/account?id=              -- one public account view
  POST /api/accounts/update          -- set name / description
  POST /api/accounts/request-reset   -- issue a reset token
  POST /api/accounts/reset           -- complete a reset with the token

Handlers are plain `def`: scrypt is CPU-bound, and FastAPI runs sync
handlers in its thread pool so hashing never stalls the event loop (and the
open event streams with it).

Failures are raised as core.errors exceptions from AuthService and rendered
by the handler in api/main.py. An empty body is treated as {}.

Security:
  login and request-reset are rate-limited per client address. @limiter.limit
  sits below @router.post so the registered endpoint is the limiting wrapper;
  that keeps enforcement independent of how SlowAPIMiddleware finds routes.
  Annotations stay real objects (no postponed evaluation) for the same
  reason: FastAPI introspects the wrapper.
  Cache-Control: no-store on responses that carry credentials or tokens.
"""

from typing import Optional

from fastapi import APIRouter, Request, Response

from api.limiter import limiter
from api.models import (
    AccountUpdate,
    AccountUpdateResponse,
    LoginRequest,
    MessageResponse,
    PublicAccount,
    ResetCompletion,
    ResetTokenRequest,
    ResetTokenResponse,
    SignupRequest,
    SignupResponse,
)
from auth.service import AuthService
from core.config import get_settings

router = APIRouter()

_settings = get_settings()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@router.get("/accounts", response_model=list[PublicAccount])
def list_accounts(request: Request) -> list[dict]:
    """Return every account as a public view."""
    return [a.public_view() for a in _service(request).list_accounts()]


@router.post("/accounts", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: Optional[SignupRequest] = None) -> SignupResponse:
    """Create an account. 409 if the email is already registered."""
    body = body or SignupRequest()
    account = _service(request).signup(body.email, body.password, name=body.name, role=body.role)
    return SignupResponse(
        id=account.id,
        email=account.email,
        name=account.name,
        createdAt=account.created_at,
        role=account.role,
    )


@router.post("/accounts/login", response_model=PublicAccount)
@limiter.limit(_settings.login_rate_limit)
def login(request: Request, response: Response, body: Optional[LoginRequest] = None) -> dict:
    """Authenticate with email and password.

    Wrong email and wrong password both produce 401 "invalid credentials".
    """
    body = body or LoginRequest()
    account = _service(request).login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return account.public_view()


@router.get("/account", response_model=PublicAccount)
def get_account(request: Request, id: Optional[str] = None) -> dict:  # noqa: A002 -- query param name is part of the API
    return _service(request).get_by_id(id).public_view()


@router.post("/accounts/update", response_model=AccountUpdateResponse)
def update_account(request: Request, body: Optional[AccountUpdate] = None) -> AccountUpdateResponse:
    """Update name and/or description. Credentials are not reachable from here."""
    body = body or AccountUpdate()
    account = _service(request).update(body.id, name=body.name, description=body.description)
    return AccountUpdateResponse(id=account.id, name=account.name, description=account.description)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/accounts/request-reset", response_model=ResetTokenResponse)
@limiter.limit(_settings.reset_rate_limit)
def request_reset(request: Request, response: Response, body: Optional[ResetTokenRequest] = None) -> ResetTokenResponse:
    """Issue a one-hour reset token.

    There is no mail transport, so the token is returned in the body; only
    its SHA-256 is stored.
    """
    body = body or ResetTokenRequest()
    token = _service(request).request_reset(body.email)
    response.headers["Cache-Control"] = "no-store"
    return ResetTokenResponse(token=token)


@router.post("/accounts/reset", response_model=MessageResponse)
def complete_reset(request: Request, response: Response, body: Optional[ResetCompletion] = None) -> MessageResponse:
    """Set a new password using a pending reset token. The token is single-use."""
    body = body or ResetCompletion()
    _service(request).complete_reset(body.email, body.token, body.new_password)
    response.headers["Cache-Control"] = "no-store"
    return MessageResponse(message="password updated")
