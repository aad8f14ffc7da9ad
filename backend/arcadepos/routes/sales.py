# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/arcadepos/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_user
from ..errors import BillingError
from ..services import payment_service, projection_service, sale_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@require_user
def create_sale_route():
    """
    Create a PENDING sale.

    Body: items [{product_id, quantity, discount_id?}] (required),
          customer_id, sale_discount_id, notes
    """
    try:
        data = request.get_json() or {}
        items = data.get("items")
        if not items:
            return jsonify({"error": "items required"}), 400

        sale = sale_service.create_sale(
            g.user_id,
            items,
            customer_id=data.get("customer_id"),
            sale_discount_id=data.get("sale_discount_id"),
            notes=data.get("notes"),
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/items")
@require_user
def add_item_route(sale_id: int):
    try:
        data = request.get_json() or {}
        product_id = data.get("product_id")
        if not product_id:
            return jsonify({"error": "product_id required"}), 400

        sale = sale_service.add_item(
            sale_id,
            product_id,
            quantity=data.get("quantity", 1),
            discount_id=data.get("discount_id"),
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add sale item")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>")
@require_user
def update_sale_route(sale_id: int):
    """
    Update a PENDING sale.

    Body: items, session_discounts [{product_sku, discount_id?}],
          sale_discount_id ("" or null removes the sale discount),
          customer_id, notes
    """
    try:
        data = request.get_json() or {}
        clear_sale_discount = "sale_discount_id" in data and data["sale_discount_id"] in (None, "")

        sale = sale_service.update_sale(
            sale_id,
            g.user_id,
            items=data.get("items"),
            session_discounts=data.get("session_discounts"),
            sale_discount_id=None if clear_sale_discount else data.get("sale_discount_id"),
            clear_sale_discount=clear_sale_discount,
            customer_id=data.get("customer_id"),
            notes=data.get("notes"),
        )
        return jsonify({"sale": sale.to_dict()}), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/pay")
@require_user
def pay_sale_route(sale_id: int):
    """
    Pay a sale in USD or LBP.

    Body: payment_method (CASH/CARD/BANK_TRANSFER), payment_currency (USD/LBP), amount
    """
    try:
        data = request.get_json() or {}
        missing = [k for k in ("payment_method", "payment_currency", "amount") if data.get(k) is None]
        if missing:
            return jsonify({"error": f"{', '.join(missing)} required"}), 400

        sale = payment_service.pay_sale(
            sale_id,
            g.user_id,
            payment_method=data["payment_method"],
            payment_currency=data["payment_currency"],
            amount=data["amount"],
        )
        return jsonify({
            "sale": sale.to_dict(),
            "change_due": float(payment_service.change_due(sale)),
        }), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to pay sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/cancel")
@require_user
def cancel_sale_route(sale_id: int):
    try:
        sale = sale_service.cancel_sale(sale_id, g.user_id)
        return jsonify({"sale": sale.to_dict()}), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>/current-cost")
@require_user
def current_cost_route(sale_id: int):
    try:
        return jsonify(projection_service.project_sale_cost(sale_id)), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to project sale cost")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_user
def get_sale_route(sale_id: int):
    try:
        sale = sale_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/invoice/<string:invoice_number>")
@require_user
def get_sale_by_invoice_route(invoice_number: str):
    try:
        sale = sale_service.get_sale_by_invoice(invoice_number)
        return jsonify({"sale": sale.to_dict()}), 200
    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/")
@require_user
def list_sales_route():
    """Query params: status, customer_id, cashier_id, start_date, end_date, page, limit"""
    try:
        result = sale_service.list_sales(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            cashier_user_id=request.args.get("cashier_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=max(request.args.get("page", 1, type=int), 1),
            limit=max(min(request.args.get("limit", 20, type=int), 100), 1),
        )
        return jsonify(result), 200

    except ValueError as e:
        return jsonify({"error": f"Invalid date filter: {e}"}), 400
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/today")
@require_user
def today_sales_route():
    return jsonify(sale_service.today_summary()), 200
