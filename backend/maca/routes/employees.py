# Overview: Flask API routes for employee operations; parses input and returns JSON responses.

"""Staff records. Every route is restricted to administrators."""

from flask import Blueprint, jsonify, current_app, request

from ..services import employee_service
from ..services.employee_service import EmployeeError, EmployeeNotFoundError
from ..decorators import require_auth, require_role
from ..http import json_body, error_response, pagination_args
from ..models import UserRole
from ..validation import ValidationError


employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
@require_auth
@require_role(UserRole.ADMIN.value)
def list_employees_route():
    """Query params: status, search (or q), page, per_page"""
    try:
        page, per_page = pagination_args()
        result = employee_service.list_employees(
            status=request.args.get("status"),
            search=request.args.get("search") or request.args.get("q"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ValidationError as e:
        return error_response(e, 400)


@employees_bp.get("/departments")
@require_auth
@require_role(UserRole.ADMIN.value)
def departments_route():
    departments = employee_service.list_departments()
    return jsonify({"items": departments, "count": len(departments)}), 200


@employees_bp.get("/positions")
@require_auth
@require_role(UserRole.ADMIN.value)
def positions_route():
    positions = employee_service.list_positions()
    return jsonify({"items": positions, "count": len(positions)}), 200


@employees_bp.get("/stats")
@require_auth
@require_role(UserRole.ADMIN.value)
def employee_stats_route():
    return jsonify(employee_service.employee_stats()), 200


@employees_bp.get("/document/<document>")
@require_auth
@require_role(UserRole.ADMIN.value)
def get_employee_by_document_route(document: str):
    try:
        employee = employee_service.get_employee_by_document(document)
        return jsonify({"employee": employee.to_dict()}), 200
    except EmployeeNotFoundError as e:
        return error_response(e, 404)


@employees_bp.get("/<int:employee_id>")
@require_auth
@require_role(UserRole.ADMIN.value)
def get_employee_route(employee_id: int):
    try:
        employee = employee_service.get_employee(employee_id)
        return jsonify({"employee": employee.to_dict()}), 200
    except EmployeeNotFoundError as e:
        return error_response(e, 404)


@employees_bp.post("")
@require_auth
@require_role(UserRole.ADMIN.value)
def create_employee_route():
    try:
        employee = employee_service.create_employee(json_body())
        return jsonify({"employee": employee.to_dict()}), 201
    except EmployeeError as e:
        return error_response(e, 409)
    except ValidationError as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.put("/<int:employee_id>")
@require_auth
@require_role(UserRole.ADMIN.value)
def update_employee_route(employee_id: int):
    try:
        employee = employee_service.update_employee(employee_id, json_body())
        return jsonify({"employee": employee.to_dict()}), 200
    except EmployeeNotFoundError as e:
        return error_response(e, 404)
    except EmployeeError as e:
        return error_response(e, 409)
    except ValidationError as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to update employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.patch("/<int:employee_id>/status")
@require_auth
@require_role(UserRole.ADMIN.value)
def change_employee_status_route(employee_id: int):
    try:
        status = json_body().get("status")
        if not status:
            return jsonify({"error": "status required"}), 400
        employee = employee_service.change_employee_status(employee_id, status)
        return jsonify({"employee": employee.to_dict()}), 200
    except EmployeeNotFoundError as e:
        return error_response(e, 404)
    except ValidationError as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to change employee status")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.delete("/<int:employee_id>")
@require_auth
@require_role(UserRole.ADMIN.value)
def deactivate_employee_route(employee_id: int):
    try:
        employee = employee_service.deactivate_employee(employee_id)
        return jsonify({"employee": employee.to_dict(), "message": "Employee deactivated"}), 200
    except EmployeeNotFoundError as e:
        return error_response(e, 404)
    except EmployeeError as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to deactivate employee")
        return jsonify({"error": "Internal server error"}), 500
