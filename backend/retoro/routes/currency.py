# Overview: Flask API routes for currency conversion and currency preferences.

from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import with_identity, require_auth
from ..services import auth_service
from ..services.currency_service import (
    common_currencies,
    get_exchange_rates,
    is_valid_currency,
)


currency_bp = Blueprint("currency", __name__, url_prefix="/api/currency")
settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@currency_bp.get("/convert")
def convert_route():
    """
    Query params: amount (default 0), from (default USD), to (default USD)
    """
    try:
        amount = Decimal(request.args.get("amount") or "0")
        if not amount.is_finite():
            raise InvalidOperation
    except InvalidOperation:
        return jsonify({"error": "Invalid amount"}), 400

    source = (request.args.get("from") or "USD").upper()
    target = (request.args.get("to") or "USD").upper()
    if not is_valid_currency(source) or not is_valid_currency(target):
        return jsonify({"error": "Valid currency code is required (e.g., USD, EUR, GEL)"}), 400

    try:
        rates = get_exchange_rates()
        converted = rates.convert(amount, source, target)
        return jsonify({
            "amount": float(amount),
            "from": source,
            "to": target,
            "converted": float(converted),
            "rate": rates.get_rate(source, target),
        }), 200
    except Exception:
        current_app.logger.exception("Currency conversion failed")
        return jsonify({"error": "Failed to convert currency"}), 500


@currency_bp.get("/currencies")
def currencies_route():
    return jsonify(common_currencies()), 200


@settings_bp.get("/currency")
@with_identity
def get_currency_route():
    """Preferred display currency; USD for anonymous visitors."""
    user = g.identity.user
    return jsonify({"currency": user.preferred_currency if user else "USD"}), 200


@settings_bp.put("/currency")
@require_auth
def update_currency_route():
    try:
        data = request.get_json(silent=True) or {}
        currency = data.get("currency")

        if not isinstance(currency, str) or not is_valid_currency(currency):
            return jsonify({"error": "Valid currency code is required (e.g., USD, EUR, GEL)"}), 400

        user = auth_service.update_preferred_currency(g.current_user, currency.upper())
        return jsonify({"success": True, "currency": user.preferred_currency}), 200

    except Exception:
        current_app.logger.exception("Failed to update currency preference")
        return jsonify({"error": "Failed to update currency preference"}), 500
