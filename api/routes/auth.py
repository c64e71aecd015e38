"""
api/routes/auth.py -- Signup, login, second-factor, token, and logout endpoints.

Routes:
  POST /signup        -- register; 201, no session
  POST /login         -- password stage; 200 + cookie, or 206 + loginAttemptId
  POST /verify-2fa    -- second factor; 200 + cookie
  POST /verify-token  -- 200 if the token is authentic, unexpired, not revoked
  POST /logout        -- revoke the cookie's token and clear the cookie

Handlers stay thin: parse the body (Pydantic), call AuthService, shape the
response. Every AuthError raised by the service is turned into a status code
and error envelope by the handler in api/main.py, so no route maps errors
itself.

Security:
  Cache-Control: no-store on every response that sets or clears the session
  cookie, and on signup/login failures.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.models import (
    LoginRequest,
    MessageResponse,
    SignupRequest,
    TwoFactorAuthResponse,
    Verify2FARequest,
    VerifyTokenRequest,
)
from auth.dependencies import get_auth_service, get_session_token, get_settings_dep
from auth.models import LoginState
from auth.service import AuthService
from auth.tokens import clear_auth_cookie, set_auth_cookie
from core.config import Settings

router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/signup", status_code=201, response_model=MessageResponse)
async def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Create an account. Does not log the user in."""
    await service.signup(body.email, body.password, body.requires_2fa)
    return _no_store(
        JSONResponse(
            status_code=201,
            content=MessageResponse(message="User created successfully!").model_dump(),
        )
    )


@router.post(
    "/login",
    response_model=MessageResponse,
    responses={206: {"model": TwoFactorAuthResponse}},
)
async def login(
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_dep),
) -> JSONResponse:
    """Check email and password.

    Wrong password and unknown email return the same 401 body -- the response
    never says which check failed.
    """
    outcome = await service.login(body.email, body.password)

    if outcome.state is LoginState.awaiting_second_factor:
        return _no_store(
            JSONResponse(
                status_code=206,
                content=TwoFactorAuthResponse(
                    message="2FA required",
                    login_attempt_id=outcome.login_attempt_id.value,
                ).model_dump(by_alias=True),
            )
        )

    resp = JSONResponse(status_code=200, content=MessageResponse(message="Login successful.").model_dump())
    set_auth_cookie(resp, outcome.token, settings)
    return _no_store(resp)


@router.post("/verify-2fa", response_model=MessageResponse)
async def verify_2fa(
    body: Verify2FARequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_dep),
) -> JSONResponse:
    """Complete a 2FA login with the attempt id from /login and the e-mailed code."""
    token = await service.verify_2fa(body.email, body.login_attempt_id, body.two_fa_code)
    resp = JSONResponse(status_code=200, content=MessageResponse(message="2FA verified.").model_dump())
    set_auth_cookie(resp, token, settings)
    return _no_store(resp)


@router.post("/verify-token", response_model=MessageResponse)
async def verify_token(body: VerifyTokenRequest, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """Used by other services to check a session token they were handed."""
    await service.verify_token(body.token)
    return MessageResponse(message="Token is valid.")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str | None = Depends(get_session_token),
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_dep),
) -> JSONResponse:
    """Revoke the session cookie's token and clear the cookie.

    A missing or invalid cookie fails before anything is written, so a logout
    never half-succeeds.
    """
    await service.logout(token)
    resp = JSONResponse(status_code=200, content=MessageResponse(message="Logged out.").model_dump())
    clear_auth_cookie(resp, settings)
    return _no_store(resp)
