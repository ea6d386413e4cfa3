# Overview: Flask API routes for shifts operations; parses input and returns JSON responses.

# backend/retailpos/routes/shifts.py
"""
Shift Close API Routes

- POST /api/shifts/close persists a reconciliation for the open period
- GET /api/shifts/preview shows the expected totals without closing
- GET /api/shifts/history?date=YYYY-MM-DD lists shifts that ended that day
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services import shift_service


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("/close")
@require_auth
def close_shift_route():
    """
    Request body: {"actual_cash": int, "actual_card": int} (cents)

    Returns:
        201: Shift report (expected/actual per tender, variance, username)
        400: Missing or non-integer amounts
        500: Database failure; no shift row written
    """
    try:
        data = request.get_json(silent=True) or {}

        report = shift_service.close_shift(
            user_id=g.current_user.id,
            actual_cash=data.get("actual_cash"),
            actual_card=data.get("actual_card"),
        )

        return jsonify({"message": "Shift closed successfully", "shiftReport": report}), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/preview")
@require_auth
def preview_shift_route():
    try:
        return jsonify(shift_service.preview_shift()), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/history")
@require_auth
def shift_history_route():
    try:
        day = request.args.get("date")
        if not day:
            return jsonify({"error": "Date query parameter is required."}), 400
        return jsonify(shift_service.shift_history(day)), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to fetch shift history")
        return jsonify({"error": "Internal server error"}), 500
