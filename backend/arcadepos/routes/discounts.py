# Overview: Flask API routes for discounts; parses input and returns JSON responses.

# backend/arcadepos/routes/discounts.py
"""Discount API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_user
from ..errors import BillingError
from ..services import discount_service


discounts_bp = Blueprint("discounts", __name__, url_prefix="/api/discounts")


def _parse_bool(value):
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes")


@discounts_bp.post("/")
@require_user
def create_discount_route():
    """
    Create a percentage discount.

    Body: name, value (0-100), target (PRODUCT/CATEGORY/GAMING_SESSION/SALE),
          target_id (PRODUCT/CATEGORY only), description, is_active,
          start_date, end_date (ISO-8601)
    """
    try:
        data = request.get_json() or {}
        discount = discount_service.create_discount(g.user_id, data)
        return jsonify({"discount": discount.to_dict()}), 201

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except ValueError as e:
        return jsonify({"error": f"Invalid date: {e}"}), 400
    except Exception:
        current_app.logger.exception("Failed to create discount")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.get("/")
@require_user
def list_discounts_route():
    result = discount_service.list_discounts(
        target=request.args.get("target"),
        is_active=_parse_bool(request.args.get("is_active")),
        target_id=request.args.get("target_id", type=int),
        page=max(request.args.get("page", 1, type=int), 1),
        limit=max(min(request.args.get("limit", 20, type=int), 100), 1),
    )
    return jsonify(result), 200


@discounts_bp.get("/active/product/<int:product_id>")
@require_user
def product_discounts_route(product_id: int):
    try:
        discounts = discount_service.get_active_discounts_for_product(product_id)
        return jsonify({"discounts": [d.to_dict() for d in discounts]}), 200
    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code


@discounts_bp.get("/active/gaming-session")
@require_user
def session_discounts_route():
    discounts = discount_service.get_active_discounts_for_gaming_session()
    return jsonify({"discounts": [d.to_dict() for d in discounts]}), 200


@discounts_bp.get("/active/sale")
@require_user
def sale_discounts_route():
    discounts = discount_service.get_active_discounts_for_sale()
    return jsonify({"discounts": [d.to_dict() for d in discounts]}), 200


@discounts_bp.get("/<int:discount_id>")
@require_user
def get_discount_route(discount_id: int):
    try:
        discount = discount_service.get_discount(discount_id)
        return jsonify({"discount": discount.to_dict()}), 200
    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code


@discounts_bp.put("/<int:discount_id>")
@require_user
def update_discount_route(discount_id: int):
    try:
        data = request.get_json() or {}
        discount = discount_service.update_discount(discount_id, data)
        return jsonify({"discount": discount.to_dict()}), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except ValueError as e:
        return jsonify({"error": f"Invalid date: {e}"}), 400
    except Exception:
        current_app.logger.exception("Failed to update discount")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.delete("/<int:discount_id>")
@require_user
def delete_discount_route(discount_id: int):
    try:
        discount_service.delete_discount(discount_id)
        return jsonify({"deleted": True}), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete discount")
        return jsonify({"error": "Internal server error"}), 500
