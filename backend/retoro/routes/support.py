# Overview: Flask API route for the support contact form.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import with_identity
from ..services import email_service


support_bp = Blueprint("support", __name__, url_prefix="/api/support")


@support_bp.post("/contact")
@with_identity
def contact_route():
    """
    Relay a support message to the support mailbox.

    Request body: {"subject": "...", "message": "...", "email": "optional"}

    The request succeeds even if the email could not be delivered.
    """
    try:
        data = request.get_json(silent=True) or {}
        subject = (data.get("subject") or "").strip()
        message = (data.get("message") or "").strip()

        if not subject or not message:
            return jsonify({"error": "Subject and message are required"}), 400

        identity = g.identity
        user = identity.user
        from_email = data.get("email") or (user.email if user else None)

        delivered = email_service.send_support_request(
            subject=subject,
            message=message,
            from_email=from_email,
            user_id=identity.user_id if identity.is_authenticated else None,
            user_name=user.name if user else None,
        )
        current_app.logger.info(
            "Support request from %s (delivered=%s)", identity.user_id, delivered
        )

        return jsonify({
            "success": True,
            "message": "Support request received successfully",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to process support request")
        return jsonify({"error": "Failed to process support request"}), 500
