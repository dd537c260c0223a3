# Overview: Service-layer operations for Google OAuth; code exchange and profile lookup.

"""
Google OAuth

WHY: "Sign in with Google" creates or finds an account without a password.
The anonymous visitor id travels through Google inside the OAuth state
parameter so their items can be migrated in the callback. The state is
signed with SECRET_KEY so a forged callback cannot choose the id.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

import requests
from flask import current_app
from itsdangerous import BadData, URLSafeTimedSerializer


logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
REQUEST_TIMEOUT_SECONDS = 10
STATE_SALT = "google-oauth-state"
STATE_MAX_AGE_SECONDS = 600


class OAuthError(Exception):
    """Raised when the Google exchange fails. str(e) is a short error code."""
    pass


@dataclass(frozen=True)
class GoogleProfile:
    email: str
    name: str | None = None
    picture: str | None = None


def is_configured() -> bool:
    cfg = current_app.config
    return bool(cfg.get("GOOGLE_CLIENT_ID") and cfg.get("GOOGLE_CLIENT_SECRET"))


def redirect_uri() -> str:
    return f"{current_app.config['SITE_URL'].rstrip('/')}/api/auth/google/callback"


def _state_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=STATE_SALT)


def encode_state(anonymous_user_id: str | None) -> str:
    return _state_serializer().dumps({
        "anonymous_user_id": anonymous_user_id,
        "nonce": secrets.token_urlsafe(16),
    })


def decode_state(state: str | None) -> str | None:
    """
    Anonymous id from the signed state parameter.

    None if missing, tampered with, expired or unreadable.
    """
    if not state:
        return None
    try:
        data = _state_serializer().loads(state, max_age=STATE_MAX_AGE_SECONDS)
    except BadData:
        logger.warning("Rejected OAuth state %r", state)
        return None
    if not isinstance(data, dict):
        return None
    return data.get("anonymous_user_id") or None


def authorization_url(anonymous_user_id: str | None) -> str:
    params = {
        "client_id": current_app.config["GOOGLE_CLIENT_ID"],
        "redirect_uri": redirect_uri(),
        "response_type": "code",
        "scope": "openid email profile",
        "access_type": "online",
        "prompt": "select_account",
        "state": encode_state(anonymous_user_id),
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(code: str) -> GoogleProfile:
    """
    Trade an authorization code for the user's Google profile.

    Raises OAuthError("token_exchange_failed" | "user_info_failed" | "no_email").
    """
    cfg = current_app.config
    try:
        token_response = requests.post(
            TOKEN_URL,
            data={
                "code": code,
                "client_id": cfg["GOOGLE_CLIENT_ID"],
                "client_secret": cfg["GOOGLE_CLIENT_SECRET"],
                "redirect_uri": redirect_uri(),
                "grant_type": "authorization_code",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        token_response.raise_for_status()
        access_token = token_response.json()["access_token"]
    except (requests.RequestException, ValueError, KeyError) as exc:
        logger.warning("Google token exchange failed: %s", exc)
        raise OAuthError("token_exchange_failed") from exc

    try:
        info_response = requests.get(
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        info_response.raise_for_status()
        info = info_response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Google userinfo request failed: %s", exc)
        raise OAuthError("user_info_failed") from exc

    email = info.get("email")
    if not email:
        raise OAuthError("no_email")

    return GoogleProfile(email=email, name=info.get("name"), picture=info.get("picture"))
