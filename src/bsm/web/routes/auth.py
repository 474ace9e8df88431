# Overview: login, logout, registration and password change; sets the session cookie.

from flask import Blueprint, current_app, jsonify, request

from bsm.domain.errors import AuthorizationError
from ..context import AUTH_COOKIE, container, current_context

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.get("/login")
def login_page():
    return jsonify({"message": "Login required", "next": request.args.get("next", "/")})


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    session = container().auth.login(data.get("email", ""), data.get("password", ""))

    response = jsonify({"user": {"id": session.user.id, "email": session.user.email}, "expires_at": session.expires_at})
    response.set_cookie(
        AUTH_COOKIE,
        session.token,
        max_age=container().auth.policy.session_ttl_seconds,
        httponly=True,
        samesite="Lax",
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
    )
    return response


@auth_bp.post("/logout")
def logout_route():
    container().auth.logout(request.cookies.get(AUTH_COOKIE))
    response = jsonify({"status": "ok"})
    response.delete_cookie(AUTH_COOKIE)
    return response


@auth_bp.post("/register")
def register_route():
    data = request.get_json(silent=True) or {}
    user = container().auth.register(
        data.get("email", ""),
        data.get("password", ""),
        data.get("confirm_password", ""),
    )
    return jsonify({"user": {"id": user.id, "email": user.email}}), 201


@auth_bp.post("/password")
def change_password_route():
    ctx = current_context()
    if not ctx.authenticated:
        raise AuthorizationError("Authentication required.")
    data = request.get_json(silent=True) or {}
    container().auth.change_password(
        ctx.user,
        data.get("current_password", ""),
        data.get("new_password", ""),
        data.get("confirm_password", ""),
    )
    response = jsonify({"status": "ok"})
    response.delete_cookie(AUTH_COOKIE)
    return response
