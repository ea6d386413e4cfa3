# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/retailpos/routes/returns.py
"""
Return Processing API Routes

A return references the original sale, restocks the returned catalog
units and records the refund per tender. It is recorded in one step; there
is no approval workflow.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services import return_service


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_auth
def create_return_route():
    """
    Record a return.

    Request body:
    {
        "original_transaction_id": 123,
        "items": [{"product_id": 1, "quantity": 1, "price_cents": 500}],
        "payment_methods": [{"method": "cash", "amount_cents": 500}],
        "notes": "..."  (optional)
    }

    Returns:
        201: {message, returnId, total_amount_cents}
        400: Invalid input
        404: Original sale or product not found
    """
    try:
        data = request.get_json(silent=True) or {}

        return_doc = return_service.record_return(
            original_transaction_id=data.get("original_transaction_id"),
            user_id=g.current_user.id,
            items=data.get("items"),
            payment_methods=data.get("payment_methods"),
            notes=data.get("notes") or "Returned from POS",
        )

        return jsonify({
            "message": "Return processed successfully",
            "returnId": return_doc.id,
            "total_amount_cents": return_doc.total_amount_cents,
        }), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/<int:return_id>")
@require_auth
def get_return_route(return_id: int):
    try:
        return jsonify(return_service.get_return_summary(return_id)), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get return")
        return jsonify({"error": "Internal server error"}), 500
