"""
API request and response models for the auth service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from auth/credentials.py, which owns the
domain validation rules. A body that fails these models is malformed JSON
(422); a body that passes them but holds a bad email or weak password is
rejected by the orchestrator (400).

Wire names follow the public contract (requires2FA, loginAttemptId,
2FACode); Python attributes stay snake_case via aliases.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /signup."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    requires_2fa: bool = Field(alias="requires2FA")


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    email: str
    password: str


class Verify2FARequest(BaseModel):
    """Request body for POST /verify-2fa."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    login_attempt_id: str = Field(alias="loginAttemptId")
    two_fa_code: str = Field(alias="2FACode")


class VerifyTokenRequest(BaseModel):
    """Request body for POST /verify-token."""

    token: str


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class TwoFactorAuthResponse(BaseModel):
    """206 body for a login that still needs the second factor.

    Carries the attempt id only; the code travels by e-mail.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str
    login_attempt_id: str = Field(alias="loginAttemptId")


class ErrorDetail(BaseModel):
    """Structured error payload embedded in every non-2xx response."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope: {"error": {"code": ..., "message": ...}}."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
