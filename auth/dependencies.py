"""
auth/dependencies.py -- FastAPI Depends() helpers for the auth routes.

get_auth_service()  returns the AuthService built by the lifespan and stored
                    on app.state.
get_settings_dep()  returns the Settings object the app was started with (not
                    a fresh get_settings() call, so tests can inject their own).
get_session_token() reads the session cookie; None when absent. The
                    orchestrator decides what a missing token means.

Layer rule: no imports from api/ or cache/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.service import AuthService
from core.config import Settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_session_token(request: Request) -> str | None:
    settings: Settings = request.app.state.settings
    return request.cookies.get(settings.auth_cookie_name) or None
