"""
Per-request application context and the authentication gate.

The session token and the theme preference arrive as cookies; both are read
once per request into a RequestContext on flask.g, and views read them from
there.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from flask import current_app, g, redirect, request

from bsm.domain.models import User

AUTH_COOKIE = "authToken"
THEME_COOKIE = "dashboardTheme"
THEMES = ("light", "dark")

PUBLIC_PREFIXES = ("/auth", "/api", "/static")


@dataclass(frozen=True)
class RequestContext:
    user: Optional[User]
    theme: str = "light"

    @property
    def authenticated(self) -> bool:
        return self.user is not None


def container():
    return current_app.extensions["bsm"]


def current_context() -> RequestContext:
    return g.request_context


def is_public_path(path: str) -> bool:
    return path == "/favicon.ico" or any(path.startswith(p) for p in PUBLIC_PREFIXES)


def load_request_context() -> None:
    token = request.cookies.get(AUTH_COOKIE)
    user = container().auth.authenticate(token) if token else None
    theme = request.cookies.get(THEME_COOKIE, "light")
    g.request_context = RequestContext(user=user, theme=theme if theme in THEMES else "light")


def enforce_auth_gate():
    path = request.path
    ctx = current_context()

    # signed-in users have no business on the login/register pages
    if path.startswith("/auth") and ctx.authenticated and request.method == "GET":
        return redirect("/")

    if is_public_path(path):
        return None

    if not ctx.authenticated:
        return redirect("/auth/login?" + urlencode({"next": path}))
    return None
