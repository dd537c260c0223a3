# Overview: Request identity and access decorators for API routes.

import hmac
from functools import wraps

from flask import request, jsonify, g, current_app, make_response

from .cookies import read_session_token, read_anonymous_ids, set_anonymous_cookie
from .services import identity_service, session_service


def _supplied_user_id():
    """Explicit user_id from the query string or a JSON body."""
    value = request.args.get("user_id")
    if value:
        return value
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        value = body.get("user_id")
        if isinstance(value, str):
            return value
    return None


def resolve_request_identity() -> identity_service.ResolvedIdentity:
    anonymous_ids = read_anonymous_ids()
    return identity_service.resolve_identity(
        session_token=read_session_token(),
        supplied_user_id=_supplied_user_id(),
        anonymous_cookie=anonymous_ids[0] if anonymous_ids else None,
    )


def with_identity(f):
    """
    Resolve the acting identity for this request.

    Sets g.identity (ResolvedIdentity) and g.owner (OwnerRef). When a new
    anonymous id had to be minted it is written back as a cookie on the
    response, so the same browser keeps the same id.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity = resolve_request_identity()
        g.identity = identity
        g.owner = identity.owner

        response = make_response(f(*args, **kwargs))
        if identity.minted:
            set_anonymous_cookie(response, identity.user_id)
        return response

    return decorated_function


def require_auth(f):
    """
    Require a logged-in user.

    Sets g.current_user and g.session_lookup. Returns 401 for a missing,
    unknown or expired session.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        lookup = session_service.lookup_session(read_session_token())

        if lookup.status is session_service.SessionStatus.EXPIRED:
            return jsonify({"error": "Session expired"}), 401
        if not lookup.is_active:
            return jsonify({"error": "Authentication required"}), 401

        g.current_user = lookup.user
        g.session_lookup = lookup
        return f(*args, **kwargs)

    return decorated_function


def require_api_key(f):
    """
    Require the shared automation key in the X-API-Key header.

    Every request is rejected when RETORO_API_KEY is not configured.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("RETORO_API_KEY")
        provided = request.headers.get("X-API-Key")

        if not expected or not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
            return jsonify({"error": "Unauthorized"}), 401

        return f(*args, **kwargs)

    return decorated_function
