# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

The login form picks a warehouse; the session token carries it for every
later request. Self-registration does not exist: users are created by an
administrator through the CLI.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.warehouse_service import UnknownWarehouseError, configured_warehouses
from ..decorators import require_auth
from ..http import json_body, error_response
from ..validation import ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/warehouses")
def warehouses_route():
    """Warehouses offered on the login form."""
    return jsonify({
        "warehouses": configured_warehouses(),
        "default": current_app.config.get("DEFAULT_WAREHOUSE"),
    }), 200


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create a session token bound to a warehouse.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = json_body()
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400
        if not isinstance(username, str) or not isinstance(password, str):
            return jsonify({"error": "username and password must be strings"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        warehouse = data.get("warehouse") or user.default_warehouse or current_app.config.get("DEFAULT_WAREHOUSE")

        session, token = session_service.create_session(
            user_id=user.id,
            warehouse=warehouse,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        current_app.logger.info("User %s logged in to %s", user.username, session.warehouse)
        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "warehouse": session.warehouse,
            "message": "Login successful",
        }), 200

    except (UnknownWarehouseError, ValidationError) as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers.get("Authorization", "").split(" ", 1)[1]
    session_service.revoke_session(token)
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "warehouse": g.warehouse,
        "session": g.session_context.session.to_dict(),
    }), 200
