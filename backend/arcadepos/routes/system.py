# backend/arcadepos/routes/system.py
"""
System health endpoint.

Reports database connectivity and the exchange rate used for USD to LBP
conversion, for deployment debugging.
"""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import PC
from ..services import exchange_rate_service
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run a trivial query and count PCs; returns status and latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        pc_count = db.session.query(PC).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "response_time_ms": round(elapsed_ms, 2),
            "pcs": pc_count,
        }
    except SQLAlchemyError as e:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "error": str(e)}


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "database": database,
        "exchange_rate_usd_to_lbp": exchange_rate_service.get_current_rate() if healthy else None,
    }), 200 if healthy else 503
