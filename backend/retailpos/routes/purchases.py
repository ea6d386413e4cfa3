# Overview: Flask API routes for purchases operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services import purchase_service


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    try:
        return jsonify(purchase_service.list_purchases()), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list purchases")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Record a supplier purchase and increment stock.

    Request body:
    {
        "supplier_id": 2,
        "total_amount_cents": 12000,  (optional, defaults to sum of lines)
        "items": [{"product_id": 1, "quantity": 10, "cost_price_cents": 1200}]
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        purchase = purchase_service.record_purchase(
            supplier_id=data.get("supplier_id"),
            user_id=g.current_user.id,
            items=data.get("items"),
            total_amount_cents=data.get("total_amount_cents"),
        )

        return jsonify({
            "message": "Purchase recorded successfully",
            "purchaseId": purchase.id,
            "total_amount_cents": purchase.total_amount_cents,
        }), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/search")
@require_auth
def search_purchases_route():
    """Query params: term, type (invoiceId | supplierName | productName | productBarcode)."""
    try:
        results = purchase_service.search_purchases(
            request.args.get("term"),
            request.args.get("type"),
        )
        return jsonify(results), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to search purchases")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_items_route(purchase_id: int):
    try:
        return jsonify(purchase_service.get_purchase_items(purchase_id)), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get purchase items")
        return jsonify({"error": "Internal server error"}), 500
