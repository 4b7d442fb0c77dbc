# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Sales API routes. A POST records a completed sale in one step."""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import sales_service
from ..services.sales_service import SaleError, SaleNotFoundError
from ..services.products_service import ProductNotFoundError
from ..decorators import require_auth, require_role
from ..http import json_body, error_response, with_retry, pagination_args, date_arg
from ..models import UserRole
from ..validation import ValidationError, ConflictError, money_str


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale.

    Body: items [{product_id, size, quantity}], payments [{payment_method,
    amount, reference?}] or a single payment_method, discount?, tax?,
    customer_name?, customer_email?, customer_phone?, notes?
    """
    try:
        data = json_body()
        sale = with_retry(lambda: sales_service.create_sale(
            warehouse=g.warehouse,
            user_id=g.current_user.id,
            items=data.get("items"),
            payments=data.get("payments"),
            payment_method=data.get("payment_method"),
            discount=data.get("discount", 0),
            tax=data.get("tax", 0),
            customer_name=data.get("customer_name"),
            customer_email=data.get("customer_email"),
            customer_phone=data.get("customer_phone"),
            notes=data.get("notes"),
        ))
        return jsonify({"sale": sale.to_dict()}), 201

    # A product id in the body that does not resolve is a bad request here.
    except (SaleError, ProductNotFoundError, ValidationError) as e:
        return error_response(e, 400)
    except ConflictError as e:
        return error_response(e, 409)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query params: start_date, end_date, status, search, page, per_page"""
    try:
        page, per_page = pagination_args()
        result = sales_service.list_sales(
            g.warehouse,
            start=date_arg("start_date"),
            end=date_arg("end_date"),
            status=request.args.get("status"),
            search=request.args.get("search"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ValidationError as e:
        return error_response(e, 400)


@sales_bp.get("/summary")
@require_auth
def sales_summary_route():
    try:
        totals = sales_service.sales_total(g.warehouse, date_arg("start_date"), date_arg("end_date"))
        return jsonify({"count": totals["count"], "total": money_str(totals["total"])}), 200
    except ValidationError as e:
        return error_response(e, 400)


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.warehouse)
        return jsonify({"sale": sale.to_dict()}), 200
    except SaleNotFoundError as e:
        return error_response(e, 404)


@sales_bp.get("/number/<sale_number>")
@require_auth
def get_sale_by_number_route(sale_number: str):
    try:
        sale = sales_service.get_sale_by_number(sale_number, g.warehouse)
        return jsonify({"sale": sale.to_dict()}), 200
    except SaleNotFoundError as e:
        return error_response(e, 404)


@sales_bp.post("/<int:sale_id>/cancel")
@require_auth
@require_role(UserRole.ADMIN.value)
def cancel_sale_route(sale_id: int):
    """Cancel a sale and restock its items. Payments are not reversed."""
    try:
        sale = with_retry(lambda: sales_service.cancel_sale(sale_id, g.warehouse, g.current_user.id))
        return jsonify({"sale": sale.to_dict()}), 200
    except SaleNotFoundError as e:
        return error_response(e, 404)
    except SaleError as e:
        return error_response(e, 400)
    except ConflictError as e:
        return error_response(e, 409)
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500
