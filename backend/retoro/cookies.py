# Overview: Cookie helpers for the session and anonymous identity cookies.

from flask import current_app, request

from .services.session_service import SESSION_DURATION


SESSION_MAX_AGE = int(SESSION_DURATION.total_seconds())
ANONYMOUS_MAX_AGE = 60 * 60 * 24 * 365  # 1 year


def _secure() -> bool:
    return current_app.config.get("RETORO_ENV") == "production"


def read_session_token() -> str | None:
    """
    Session token from the session cookie, or a Bearer Authorization header
    for non-browser clients.
    """
    token = request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])
    if token:
        return token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def read_anonymous_ids() -> list[str]:
    """Anonymous ids carried by cookies, current cookie first."""
    cfg = current_app.config
    ids = []
    for name in (cfg["ANONYMOUS_COOKIE_NAME"], cfg["LEGACY_USER_COOKIE_NAME"]):
        value = request.cookies.get(name)
        if value:
            ids.append(value)
    return ids


def set_session_cookie(response, token: str):
    response.set_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=_secure(),
        samesite="Lax",
        path="/",
    )
    return response


def clear_session_cookie(response):
    response.delete_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        httponly=True,
        secure=_secure(),
        samesite="Lax",
        path="/",
    )
    return response


def set_anonymous_cookie(response, anonymous_id: str):
    # Readable by the browser so the client can send it back as user_id
    response.set_cookie(
        current_app.config["ANONYMOUS_COOKIE_NAME"],
        anonymous_id,
        max_age=ANONYMOUS_MAX_AGE,
        httponly=False,
        secure=_secure(),
        samesite="Lax",
        path="/",
    )
    return response


def clear_anonymous_cookies(response):
    """Clear the anonymous cookie and the legacy user id cookie."""
    cfg = current_app.config
    for name in (cfg["ANONYMOUS_COOKIE_NAME"], cfg["LEGACY_USER_COOKIE_NAME"]):
        response.delete_cookie(name, secure=_secure(), samesite="Lax", path="/")
    return response
