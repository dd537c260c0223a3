# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

Accounts are optional. Every flow that signs a user in (register, login,
magic link, Google) moves the visitor's anonymous items to the account,
starts a session cookie and clears the anonymous cookies.

SECURITY:
- Session token lives in an HTTP-only cookie (secure in production)
- Login failures use one generic message
- Migration failures are logged and never block authentication
"""

from flask import Blueprint, request, jsonify, current_app, g, redirect

from ..cookies import (
    read_anonymous_ids,
    read_session_token,
    set_session_cookie,
    clear_session_cookie,
    clear_anonymous_cookies,
)
from ..decorators import with_identity
from ..models import MagicLinkToken
from ..services import auth_service, email_service, identity_service, oauth_service, session_service
from ..services.auth_service import AuthError, DuplicateUserError, InvalidTokenError, PasswordValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _site_url(path: str) -> str:
    return f"{current_app.config['SITE_URL'].rstrip('/')}{path}"


def _sign_in(user, response, *anonymous_ids):
    """Migrate anonymous data, start a session and set cookies on response."""
    migrated = identity_service.migrate_on_authentication(
        user.id, *anonymous_ids, *read_anonymous_ids()
    )

    _session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.headers.get("X-Forwarded-For") or request.remote_addr,
    )

    set_session_cookie(response, token)
    clear_anonymous_cookies(response)
    return migrated


@auth_bp.get("/init")
@with_identity
def init_route():
    """
    Make sure the browser has an identity.

    Mints and sets the anonymous cookie on first visit.
    """
    return jsonify(g.identity.to_dict())


@auth_bp.get("/session")
@with_identity
def session_route():
    """
    Report the current identity.

    An expired session cookie is cleared and reported as expired=true; the
    request then falls back to the anonymous identity.
    """
    identity = g.identity
    payload = identity.to_dict()
    payload["expired"] = identity.session_lookup.status is session_service.SessionStatus.EXPIRED

    response = jsonify(payload)
    if payload["expired"]:
        clear_session_cookie(response)
    return response


@auth_bp.post("/register")
def register_route():
    """
    Create an account.

    Request body:
    {
        "email": "a@example.com",
        "password": "optional, min 8 chars",
        "name": "optional",
        "anonymous_user_id": "optional"
    }

    Returns:
        201: Account created and signed in
        400: Invalid email / weak password
        409: Email already registered
    """
    try:
        data = request.get_json(silent=True) or {}

        user = auth_service.create_user(
            email=data.get("email"),
            password=data.get("password") or None,
            name=data.get("name"),
        )

        response = jsonify({
            "user": user.to_dict(),
            "message": "Account created successfully. Please check your email to verify.",
        })
        response.status_code = 201
        migrated = _sign_in(user, response, data.get("anonymous_user_id"))

        record = auth_service.create_link_token(user.id, purpose=MagicLinkToken.PURPOSE_EMAIL_VERIFICATION)
        link = _site_url(f"/api/auth/verify-email?token={record.token}")
        if not email_service.send_verification_email(user.email, link):
            current_app.logger.warning("Verification email not sent to %s", user.email)

        current_app.logger.info("Registered user %s (migrated %d items)", user.id, migrated)
        return response

    except DuplicateUserError as e:
        return jsonify({"error": str(e)}), 409
    except (PasswordValidationError, AuthError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Failed to create account"}), 500


@auth_bp.post("/register/magic-link")
def magic_link_route():
    """
    Email a one-time sign-in link, creating the account if needed.

    The anonymous id is stored with the token and migrated when the link
    is opened.
    """
    try:
        data = request.get_json(silent=True) or {}

        user, created = auth_service.get_or_create_user(data.get("email"), name=data.get("name"))

        anonymous_ids = [data.get("anonymous_user_id"), *read_anonymous_ids()]
        anonymous_id = next((value for value in anonymous_ids if value), None)

        record = auth_service.create_link_token(
            user.id,
            purpose=MagicLinkToken.PURPOSE_MAGIC_LINK,
            anonymous_user_id=anonymous_id,
        )
        link = _site_url(f"/api/auth/verify?token={record.token}")
        sent = email_service.send_magic_link_email(user.email, link)

        payload = {
            "message": "Magic link sent to your email!",
            "email_sent": sent,
            "created": created,
        }
        if current_app.config.get("RETORO_ENV") == "development":
            payload["magic_link"] = link
        return jsonify(payload), 200

    except AuthError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to send magic link")
        return jsonify({"error": "Failed to send magic link"}), 500


@auth_bp.get("/verify")
def verify_route():
    """
    Open a magic link: verify the email, sign in and go to the dashboard.
    """
    try:
        record = auth_service.consume_link_token(
            request.args.get("token"), purpose=MagicLinkToken.PURPOSE_MAGIC_LINK
        )
        response = redirect(_site_url("/"))
        _sign_in(record.user, response, record.anonymous_user_id)
        return response

    except InvalidTokenError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to verify magic link")
        return jsonify({"error": "Failed to verify token"}), 500


@auth_bp.get("/verify-email")
def verify_email_route():
    try:
        auth_service.consume_link_token(
            request.args.get("token"), purpose=MagicLinkToken.PURPOSE_EMAIL_VERIFICATION
        )
        return redirect(_site_url("/?verified=true"))

    except InvalidTokenError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to verify email")
        return jsonify({"error": "Failed to verify email"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Email + password login.

    Returns:
        200: Signed in (session cookie set)
        400: Missing email or password
        401: Bad credentials, or the account has no password
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "Email and password are required"}), 400
        if not isinstance(email, str) or not isinstance(password, str):
            return jsonify({"error": "Email and password must be strings"}), 400

        user = auth_service.authenticate(email, password)

        response = jsonify({"user": user.to_dict(), "message": "Login successful"})
        migrated = _sign_in(user, response, data.get("anonymous_user_id"))
        current_app.logger.info("User %s logged in (migrated %d items)", user.id, migrated)
        return response

    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Failed to log in"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke the session and clear every identity cookie.

    Idempotent: succeeds without a session or with an already revoked one.
    """
    response = jsonify({"success": True})
    try:
        session_service.revoke_session(read_session_token())
    except Exception:
        current_app.logger.exception("Failed to revoke session on logout")
        response = jsonify({"error": "Failed to logout", "success": False})
        response.status_code = 500

    clear_session_cookie(response)
    clear_anonymous_cookies(response)
    return response


@auth_bp.get("/google")
@with_identity
def google_route():
    """Redirect to Google's consent screen carrying the anonymous id."""
    if not oauth_service.is_configured():
        current_app.logger.error("Google OAuth credentials not configured")
        return redirect(_site_url("/?error=oauth_not_configured"))

    anonymous_id = None if g.identity.is_authenticated else g.identity.user_id
    return redirect(oauth_service.authorization_url(anonymous_id))


@auth_bp.get("/google/callback")
def google_callback_route():
    if request.args.get("error"):
        return redirect(_site_url("/?error=oauth_cancelled"))

    code = request.args.get("code")
    if not code:
        return jsonify({"error": "Authorization code is required"}), 400

    if not oauth_service.is_configured():
        current_app.logger.error("Google OAuth credentials not configured")
        return redirect(_site_url("/?error=oauth_not_configured"))

    try:
        profile = oauth_service.exchange_code(code)
        user, _created = auth_service.get_or_create_user(
            profile.email, name=profile.name, email_verified=True
        )

        response = redirect(_site_url("/?oauth_success=true"))
        migrated = _sign_in(user, response, oauth_service.decode_state(request.args.get("state")))
        current_app.logger.info("Google sign-in for user %s (migrated %d items)", user.id, migrated)
        return response

    except oauth_service.OAuthError as e:
        return redirect(_site_url(f"/?error={e}"))
    except Exception:
        current_app.logger.exception("Google OAuth callback failed")
        return redirect(_site_url("/?error=oauth_failed"))
