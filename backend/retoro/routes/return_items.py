# Overview: Flask API routes for return items; parses input and returns JSON responses.

"""
Return Item API Routes

WHY: Track purchases against their retailer's return deadline.

SECURITY:
- Every route acts as the identity resolved by @with_identity
- Reads and writes of a single item check existence first (404), then
  ownership (403 with a generic "Unauthorized")
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import with_identity
from ..services import return_item_service
from ..services.retailer_service import RetailerNotFoundError
from ..services.return_item_service import ItemNotFoundError, ItemAccessDenied
from ..validation import ValidationError


return_items_bp = Blueprint("return_items", __name__, url_prefix="/api/return-items")


def _error_response(e: Exception):
    if isinstance(e, ValidationError):
        return jsonify({"error": str(e)}), 400
    if isinstance(e, (ItemNotFoundError, RetailerNotFoundError)):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, ItemAccessDenied):
        return jsonify({"error": "Unauthorized"}), 403
    raise e


@return_items_bp.get("")
@with_identity
def list_items_route():
    """
    List the caller's items, soonest deadline first.

    Query params:
        status: all | active | returned | kept (default all)
    """
    try:
        items = return_item_service.list_items(g.owner, status=request.args.get("status"))
        return jsonify({
            "user_id": g.identity.user_id,
            "items": [return_item_service.serialize_item(item) for item in items],
        }), 200

    except ValidationError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list return items")
        return jsonify({"error": "Failed to fetch return items"}), 500


@return_items_bp.get("/stats")
@with_identity
def stats_route():
    try:
        return jsonify(return_item_service.get_stats(g.owner)), 200
    except Exception:
        current_app.logger.exception("Failed to compute return item stats")
        return jsonify({"error": "Failed to fetch stats"}), 500


@return_items_bp.post("")
@with_identity
def create_item_route():
    """
    Log a purchase.

    Request body:
    {
        "retailer_id": "zara",
        "purchase_date": "2024-01-01",
        "name": "Blue jacket",       (optional)
        "price": 59.99,              (optional)
        "currency": "EUR",           (optional, default USD)
        "user_id": "..."             (optional, automation callers)
    }

    Returns:
        201: Item created
        400: Invalid input
        404: Retailer not found
    """
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        payload = {k: v for k, v in payload.items() if k != "user_id"}

        item = return_item_service.add_item(g.owner, payload)
        return jsonify(return_item_service.serialize_item(item)), 201

    except (ValidationError, RetailerNotFoundError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add return item")
        return jsonify({"error": "Failed to add return item"}), 500


@return_items_bp.get("/<item_id>")
@with_identity
def get_item_route(item_id: str):
    try:
        item = return_item_service.get_owned_item(item_id, g.owner)
        return jsonify(return_item_service.serialize_item(item)), 200

    except (ItemNotFoundError, ItemAccessDenied) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to fetch return item")
        return jsonify({"error": "Failed to fetch return item"}), 500


@return_items_bp.put("/<item_id>")
@with_identity
def update_item_route(item_id: str):
    """
    Replace an item's purchase details; the deadline is re-derived.
    """
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        payload = {k: v for k, v in payload.items() if k != "user_id"}

        item = return_item_service.update_item(item_id, g.owner, payload)
        return jsonify(return_item_service.serialize_item(item)), 200

    except (ValidationError, ItemNotFoundError, ItemAccessDenied, RetailerNotFoundError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update return item")
        return jsonify({"error": "Failed to update return item"}), 500


@return_items_bp.patch("/<item_id>")
@with_identity
def set_status_route(item_id: str):
    """
    Mark returned or kept.

    Request body: {"is_returned": true}
    """
    try:
        data = request.get_json(silent=True) or {}
        item = return_item_service.set_returned(item_id, g.owner, data.get("is_returned"))
        return jsonify({"success": True, "item": return_item_service.serialize_item(item)}), 200

    except (ValidationError, ItemNotFoundError, ItemAccessDenied) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update return status")
        return jsonify({"error": "Failed to update return status"}), 500


@return_items_bp.delete("/<item_id>")
@with_identity
def delete_item_route(item_id: str):
    try:
        return_item_service.delete_item(item_id, g.owner)
        return jsonify({"success": True}), 200

    except (ItemNotFoundError, ItemAccessDenied) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete return item")
        return jsonify({"error": "Failed to delete return item"}), 500
