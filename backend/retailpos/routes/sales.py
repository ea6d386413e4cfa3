# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/retailpos/routes/sales.py
"""
Sales API routes

Records sales, looks up receipts, and moves pending (parked) sales to
closed so they count toward the shift.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services import sales_service
from ..validation import coerce_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api")


@sales_bp.post("/transactions")
@require_auth
def create_sale_route():
    """
    Record a sale.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "price_cents": 500},
                  {"product_id": null, "name": "Bag", "quantity": 1, "price_cents": 50}],
        "payment_methods": [{"method": "cash", "amount_cents": 1050}],
        "total_cents": 1050,            (optional, defaults to sum of lines)
        "discount_cents": 0,            (optional)
        "final_total_cents": 1050,      (optional, total - discount)
        "notes": "...",                 (optional)
        "is_delivery": false,           (optional)
        "customer_id": 3,               (optional)
        "status": "closed" | "pending"  (optional)
    }

    Returns:
        201: {message, transactionId}
        400: Invalid input
        404: Unknown product or customer
    """
    try:
        data = request.get_json(silent=True) or {}

        sale = sales_service.record_sale(
            user_id=g.current_user.id,
            items=data.get("items"),
            payment_methods=data.get("payment_methods"),
            total_cents=data.get("total_cents"),
            discount_cents=data.get("discount_cents", 0),
            final_total_cents=data.get("final_total_cents"),
            notes=data.get("notes"),
            is_delivery=bool(data.get("is_delivery", False)),
            customer_id=data.get("customer_id"),
            status=data.get("status") or sales_service.SALE_STATUS_CLOSED,
        )

        return jsonify({"message": "Sale processed successfully", "transactionId": sale.id}), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/transactions/search")
@require_auth
def search_transactions_route():
    """
    Query params: id, or startDate + endDate (YYYY-MM-DD); optional q
    matches customer name or cashier username.
    """
    try:
        raw_id = request.args.get("id")
        transactions = sales_service.search_transactions(
            transaction_id=coerce_int(raw_id, "id") if raw_id else None,
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
            q=request.args.get("q"),
        )
        return jsonify(transactions), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to search transactions")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/transactions/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    try:
        return jsonify(sales_service.get_transaction_detail(transaction_id)), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/pending-sales")
@require_auth
def list_pending_sales_route():
    try:
        return jsonify(sales_service.list_pending_sales()), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list pending sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/close-sales")
@require_auth
def close_sales_route():
    """
    Request body: {"ids": [1, 2, 3]}

    Returns:
        200: {message, closed}
        404: None of the ids is a pending sale
    """
    try:
        data = request.get_json(silent=True) or {}
        closed = sales_service.close_pending_sales(data.get("ids"))
        return jsonify({"message": "Sales closed", "closed": closed}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close pending sales")
        return jsonify({"error": "Internal server error"}), 500
