# Overview: Flask API routes for retailer policies and automation lookups; parses input and returns JSON responses.

"""
Retailer Policy API Routes

WHY: Users pick a retailer when logging a purchase; automation keeps the
policies current.

SECURITY:
- Listing and reading are public
- Policy updates and the integration endpoints require X-API-Key
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_api_key
from ..services import retailer_service
from ..services.retailer_service import RetailerNotFoundError
from ..validation import ValidationError, ConflictError


retailers_bp = Blueprint("retailers", __name__, url_prefix="/api/retailers")
integrations_bp = Blueprint("integrations", __name__, url_prefix="/api/integrations")


@retailers_bp.get("")
def list_retailers_route():
    try:
        return jsonify([r.to_dict() for r in retailer_service.list_retailers()]), 200
    except Exception:
        current_app.logger.exception("Failed to list retailers")
        return jsonify({"error": "Failed to fetch retailers"}), 500


@retailers_bp.get("/<retailer_id>")
def get_retailer_route(retailer_id: str):
    retailer = retailer_service.get_retailer(retailer_id)
    if not retailer:
        return jsonify({"error": "Retailer not found"}), 404
    return jsonify(retailer.to_dict()), 200


@retailers_bp.post("")
def create_retailer_route():
    """
    Add a retailer.

    Request body:
    {
        "name": "Uniqlo",
        "return_window_days": 30,
        "policy_description": "...",  (optional)
        "website_url": "...",         (optional)
        "has_free_returns": false     (optional)
    }

    Returns:
        201: Created (id derived from the name)
        400: Invalid input
        409: Retailer already exists (body includes retailer_id)
    """
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        retailer = retailer_service.create_retailer(payload)
        return jsonify(retailer.to_dict()), 201

    except ConflictError as e:
        return jsonify({"error": str(e), "retailer_id": getattr(e, "retailer_id", None)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create retailer")
        return jsonify({"error": "Failed to create retailer"}), 500


@retailers_bp.put("/<retailer_id>")
@require_api_key
def update_retailer_route(retailer_id: str):
    """
    Update a retailer's policy (automation).

    Existing items keep their stored deadlines.
    """
    try:
        payload = request.get_json(silent=True)
        retailer = retailer_service.update_policy(retailer_id, payload)
        return jsonify(retailer.to_dict()), 200

    except RetailerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update retailer %s", retailer_id)
        return jsonify({"error": "Failed to update retailer"}), 500


@integrations_bp.get("/retailer-check")
@require_api_key
def retailer_check_route():
    """
    Does a retailer with this name exist? Case-insensitive.

    Returns a list with the match, or an empty list.
    """
    name = request.args.get("name")
    if not name or not name.strip():
        return jsonify({"error": "Retailer name is required"}), 400

    retailer = retailer_service.find_by_name(name)
    return jsonify([retailer.to_dict()] if retailer else []), 200


@integrations_bp.post("/retailer-check")
@require_api_key
def retailer_check_result_route():
    """Final result of an automation retailer check. Logged only."""
    data = request.get_json(silent=True) or {}
    current_app.logger.info(
        "Retailer check completed: %s (%s) - %s",
        data.get("retailer_name"),
        data.get("retailer_id"),
        data.get("status"),
    )
    return jsonify({"success": True}), 200
