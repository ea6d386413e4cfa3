# Overview: Flask API routes for inventory count operations; parses input and returns JSON responses.

# backend/retailpos/routes/counts.py
"""
Physical inventory count API routes.

A count moves IN_PROGRESS -> COMPLETED. Only one count can be in progress;
starting a second returns 409.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services import count_service


counts_bp = Blueprint("counts", __name__, url_prefix="/api/inventory")


@counts_bp.get("/worksheet")
@require_auth
def worksheet_route():
    """Query params: count_type (ALL | CATEGORY | SUPPLIER), count_scope."""
    try:
        rows = count_service.get_worksheet(
            request.args.get("count_type"),
            request.args.get("count_scope"),
        )
        return jsonify(rows), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build inventory worksheet")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.get("/counts")
@require_auth
def list_counts_route():
    try:
        return jsonify(count_service.list_counts(status=request.args.get("status"))), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory counts")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.get("/counts/active")
@require_auth
def active_count_route():
    """The in-progress count with its items, or null."""
    try:
        return jsonify(count_service.get_active_count()), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get active inventory count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/counts/start")
@require_auth
def start_count_route():
    """
    Request body: {"count_type": "ALL" | "CATEGORY" | "SUPPLIER", "count_scope": ...}

    Returns:
        201: {message, countId}
        404: No products match the scope
        409: A count is already in progress
    """
    try:
        data = request.get_json(silent=True) or {}
        count = count_service.start_count(
            user_id=g.current_user.id,
            count_type=data.get("count_type"),
            count_scope=data.get("count_scope"),
        )
        return jsonify({"message": "Inventory count started", "countId": count.id}), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to start inventory count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.put("/counts/items/<int:item_id>")
@require_auth
def update_count_item_route(item_id: int):
    """Request body: {"counted_quantity": int | null}"""
    try:
        data = request.get_json(silent=True) or {}
        if "counted_quantity" not in data:
            return jsonify({"error": "counted_quantity is required"}), 400
        item = count_service.update_item_count(item_id, data.get("counted_quantity"))
        return jsonify(item.to_dict()), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update inventory count item")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/counts/<int:count_id>/finalize")
@require_auth
def finalize_count_route(count_id: int):
    """
    Apply the count to stock.

    Returns:
        200: {message, inventory_count_id, total_variance_value, items}
        404: Count not found
        409: Count already completed
    """
    try:
        result = count_service.finalize_count(count_id, user_id=g.current_user.id)
        return jsonify({"message": "Inventory count finalized", **result}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to finalize inventory count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.get("/counts/<int:count_id>")
@require_auth
def get_count_route(count_id: int):
    try:
        return jsonify(count_service.get_count_summary(count_id)), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get inventory count")
        return jsonify({"error": "Internal server error"}), 500
