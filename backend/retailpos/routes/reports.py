# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

# backend/retailpos/routes/reports.py
"""
Reporting API routes.

All reports are read-only aggregations. Bad parameters are a 400 with the
reason; any other failure is logged and returned as a generic 500.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services import reporting_service
from ..validation import coerce_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/reports/summary")
@require_auth
def sales_summary_route():
    """Query params: startDate, endDate (YYYY-MM-DD, inclusive)."""
    try:
        summary = reporting_service.sales_summary(
            start=request.args.get("startDate"),
            end=request.args.get("endDate"),
        )
        return jsonify(summary), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to generate sales summary")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/reports/low-stock")
@require_auth
def low_stock_route():
    try:
        return jsonify(reporting_service.low_stock_report()), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to generate low stock report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/reports/sold-products")
@require_auth
def sold_products_route():
    """Query params: start, end, category, q, page, perPage."""
    try:
        report = reporting_service.sold_products_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
            category=request.args.get("category"),
            q=request.args.get("q"),
            page=coerce_int(request.args.get("page", "1"), "page"),
            per_page=coerce_int(request.args.get("perPage", "50"), "perPage"),
        )
        return jsonify(report), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to generate sold products report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/reports/all-transactions")
@require_auth
def all_transactions_route():
    try:
        limit = coerce_int(request.args.get("limit", "500"), "limit")
        return jsonify(reporting_service.all_transactions(limit=max(1, limit))), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build transactions feed")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/products/<int:product_id>/history")
@require_auth
def product_history_route(product_id: int):
    try:
        return jsonify(reporting_service.product_history(product_id)), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get product history")
        return jsonify({"error": "Internal server error"}), 500
