# Overview: Flask API routes for user management; parses input and returns JSON responses.

# backend/retailpos/routes/users.py
"""
User management routes.

- GET /api/users lists accounts
- POST /api/users creates one (409 on a taken username)
- PUT /api/users/<id> replaces username, role and capabilities; the
  password changes only when a non-blank one is sent
- DELETE /api/users/<id> removes an account (403 for the last admin)

`permissions` is a list of capability names; omitted means the role's
defaults.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services import auth_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
def list_users_route():
    try:
        return jsonify([u.to_dict() for u in auth_service.list_users()]), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("")
@require_auth
def create_user_route():
    """
    Request body: {"username": str, "password": str, "role": str, "permissions": [str] (optional)}

    Returns:
        201: {user, message}
        400: Missing fields, unknown role or capability, weak password
        409: Username already taken
    """
    try:
        data = request.get_json(silent=True) or {}
        if not all([data.get("username"), data.get("password"), data.get("role")]):
            return jsonify({"error": "Username, password, and role are required."}), 400

        user = auth_service.create_user(
            data["username"],
            data["password"],
            role=data["role"],
            permissions=data.get("permissions"),
        )
        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    """Request body: {"username": str, "role": str, "password": str (optional), "permissions": [str] (optional)}"""
    try:
        data = request.get_json(silent=True) or {}
        if not all([data.get("username"), data.get("role")]):
            return jsonify({"error": "Username and role are required."}), 400

        user = auth_service.update_user(
            user_id,
            username=data["username"],
            role=data["role"],
            password=data.get("password"),
            permissions=data.get("permissions"),
        )
        return jsonify({"user": user.to_dict(), "message": "User updated successfully"}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(user_id)
        return "", 204

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
