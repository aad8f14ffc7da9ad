# Overview: Flask API routes for the USD to LBP exchange rate; parses input and returns JSON responses.

# backend/arcadepos/routes/exchange_rate.py
"""Exchange rate API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_user
from ..errors import BillingError
from ..services import exchange_rate_service


exchange_rate_bp = Blueprint("exchange_rate", __name__, url_prefix="/api/exchange-rate")


@exchange_rate_bp.get("/current")
@require_user
def current_rate_route():
    latest = exchange_rate_service.get_latest_rate()
    return jsonify({
        "rate": exchange_rate_service.get_current_rate(),
        "source": "database" if latest is not None else "config",
        "exchange_rate": latest.to_dict() if latest is not None else None,
    }), 200


@exchange_rate_bp.post("/update")
@require_user
def update_rate_route():
    """Body: rate (whole LBP per USD, required), notes"""
    try:
        data = request.get_json() or {}
        if data.get("rate") is None:
            return jsonify({"error": "rate required"}), 400

        row = exchange_rate_service.update_rate(g.user_id, data["rate"], notes=data.get("notes"))
        return jsonify({"exchange_rate": row.to_dict()}), 201

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update exchange rate")
        return jsonify({"error": "Internal server error"}), 500


@exchange_rate_bp.get("/history")
@require_user
def rate_history_route():
    limit = max(min(request.args.get("limit", 20, type=int), 100), 1)
    history = exchange_rate_service.get_rate_history(limit=limit)
    return jsonify({"history": [row.to_dict() for row in history]}), 200


@exchange_rate_bp.get("/convert")
@require_user
def convert_route():
    """Query params: amount, from (USD/LBP)"""
    try:
        amount = request.args.get("amount")
        currency = request.args.get("from")
        if amount is None or currency is None:
            return jsonify({"error": "amount and from required"}), 400
        return jsonify(exchange_rate_service.convert(amount, currency)), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
