# Overview: Flask API routes for gaming sessions; parses input and returns JSON responses.

# backend/arcadepos/routes/gaming.py
"""Gaming session API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_user
from ..errors import BillingError
from ..services import projection_service, session_service


gaming_bp = Blueprint("gaming", __name__, url_prefix="/api/gaming")


@gaming_bp.post("/sessions/start")
@require_user
def start_session_route():
    """
    Start a gaming session on a PC.

    Body: pc_id (required), customer_id, customer_name, existing_sale_id, notes
    """
    try:
        data = request.get_json() or {}
        pc_id = data.get("pc_id")
        if not pc_id:
            return jsonify({"error": "pc_id required"}), 400

        session = session_service.start_session(
            pc_id=pc_id,
            user_id=g.user_id,
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name"),
            existing_sale_id=data.get("existing_sale_id"),
            notes=data.get("notes"),
        )
        return jsonify({"session": session.to_dict()}), 201

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to start gaming session")
        return jsonify({"error": "Internal server error"}), 500


@gaming_bp.post("/sessions/<int:session_id>/end")
@require_user
def end_session_route(session_id: int):
    """End a session; optional body field discount_id (GAMING_SESSION discount)."""
    try:
        data = request.get_json(silent=True) or {}
        session = session_service.end_session(
            session_id,
            g.user_id,
            discount_id=data.get("discount_id"),
        )
        return jsonify({"session": session.to_dict()}), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to end gaming session")
        return jsonify({"error": "Internal server error"}), 500


@gaming_bp.post("/sessions/<int:session_id>/cancel")
@require_user
def cancel_session_route(session_id: int):
    try:
        session = session_service.cancel_session(session_id, g.user_id)
        return jsonify({"session": session.to_dict()}), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel gaming session")
        return jsonify({"error": "Internal server error"}), 500


@gaming_bp.get("/sessions/<int:session_id>/current-cost")
@require_user
def current_cost_route(session_id: int):
    try:
        return jsonify(projection_service.project_session_cost(session_id)), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to project session cost")
        return jsonify({"error": "Internal server error"}), 500


@gaming_bp.get("/sessions/active")
@require_user
def active_sessions_route():
    sessions = session_service.list_active_sessions()
    return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200


@gaming_bp.get("/sessions/<int:session_id>")
@require_user
def get_session_route(session_id: int):
    try:
        session = session_service.get_session(session_id)
        return jsonify({"session": session.to_dict()}), 200
    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code


@gaming_bp.get("/sessions")
@require_user
def list_sessions_route():
    """Query params: status, pc_id, customer_id, payment_status, start_date, end_date, page, limit"""
    try:
        result = session_service.list_sessions(
            status=request.args.get("status"),
            pc_id=request.args.get("pc_id", type=int),
            customer_id=request.args.get("customer_id", type=int),
            payment_status=request.args.get("payment_status"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=max(request.args.get("page", 1, type=int), 1),
            limit=max(min(request.args.get("limit", 20, type=int), 100), 1),
        )
        return jsonify(result), 200

    except ValueError as e:
        return jsonify({"error": f"Invalid date filter: {e}"}), 400
    except Exception:
        current_app.logger.exception("Failed to list gaming sessions")
        return jsonify({"error": "Internal server error"}), 500


@gaming_bp.get("/stats/today")
@require_user
def today_stats_route():
    return jsonify(session_service.today_stats()), 200
