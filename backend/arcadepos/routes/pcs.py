# Overview: Flask API routes for the PC directory; parses input and returns JSON responses.

# backend/arcadepos/routes/pcs.py
"""PC directory API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_user
from ..errors import BillingError
from ..services import pc_service


pcs_bp = Blueprint("pcs", __name__, url_prefix="/api/pcs")


@pcs_bp.post("/")
@require_user
def create_pc_route():
    """
    Register a PC.

    Body: pc_number, name (required), hourly_rate_usd, location, notes
    """
    try:
        data = request.get_json() or {}
        if not data.get("pc_number") or not data.get("name"):
            return jsonify({"error": "pc_number and name required"}), 400

        pc = pc_service.create_pc(
            data["pc_number"],
            data["name"],
            hourly_rate_usd=data.get("hourly_rate_usd"),
            location=data.get("location"),
            notes=data.get("notes"),
        )
        return jsonify({"pc": pc.to_dict()}), 201

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create PC")
        return jsonify({"error": "Internal server error"}), 500


@pcs_bp.get("/")
@require_user
def list_pcs_route():
    include_inactive = request.args.get("all", "").lower() in ("1", "true", "yes")
    pcs = pc_service.list_pcs(include_inactive=include_inactive)
    return jsonify({"pcs": [pc.to_dict() for pc in pcs]}), 200


@pcs_bp.get("/<int:pc_id>")
@require_user
def get_pc_route(pc_id: int):
    try:
        pc = pc_service.get_pc(pc_id)
        active = pc_service.get_active_session_for_pc(pc.id)
        return jsonify({
            "pc": pc.to_dict(),
            "active_session": active.to_dict() if active else None,
        }), 200
    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code


@pcs_bp.put("/<int:pc_id>/rate")
@require_user
def update_rate_route(pc_id: int):
    try:
        data = request.get_json() or {}
        if data.get("hourly_rate_usd") is None:
            return jsonify({"error": "hourly_rate_usd required"}), 400
        pc = pc_service.update_hourly_rate(pc_id, data["hourly_rate_usd"])
        return jsonify({"pc": pc.to_dict()}), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update PC rate")
        return jsonify({"error": "Internal server error"}), 500


@pcs_bp.put("/<int:pc_id>/status")
@require_user
def update_status_route(pc_id: int):
    """Body: status (AVAILABLE/MAINTENANCE/RESERVED) and/or is_active"""
    try:
        data = request.get_json() or {}
        if "status" not in data and "is_active" not in data:
            return jsonify({"error": "status or is_active required"}), 400

        pc = None
        if "status" in data:
            pc = pc_service.set_status(pc_id, data["status"])
        if "is_active" in data:
            pc = pc_service.set_active(pc_id, bool(data["is_active"]))
        return jsonify({"pc": pc.to_dict()}), 200

    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update PC status")
        return jsonify({"error": "Internal server error"}), 500
