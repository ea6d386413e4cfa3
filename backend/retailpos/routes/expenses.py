# Overview: Flask API routes for expenses operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services import expense_service


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    try:
        return jsonify([e.to_dict() for e in expense_service.list_expenses()]), 200

    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("")
@require_auth
def create_expense_route():
    """
    Request body: {"description": str, "amount_cents": int,
    "expense_date": "YYYY-MM-DD", "category": str (optional)}
    """
    try:
        data = request.get_json(silent=True) or {}
        expense = expense_service.create_expense(data, user_id=g.current_user.id)
        return jsonify(expense.to_dict()), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.put("/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    try:
        data = request.get_json(silent=True) or {}
        expense = expense_service.update_expense(expense_id, data)
        return jsonify(expense.to_dict()), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<int:expense_id>")
@require_auth
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
        return jsonify({"message": "Expense deleted"}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500
