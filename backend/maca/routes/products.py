# Overview: Flask API routes for products operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app, request, g

from ..services import products_service
from ..services.products_service import (
    ProductNotFoundError,
    DuplicateProductCodeError,
)
from ..decorators import require_auth, require_role
from ..http import json_body, error_response, with_retry, pagination_args, bool_arg
from ..models import UserRole
from ..validation import ValidationError, ConflictError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products of the session warehouse.

    Query params: search, active_only, page, per_page
    """
    try:
        page, per_page = pagination_args()
        result = products_service.list_products(
            g.warehouse,
            search=request.args.get("search"),
            active_only=bool_arg("active_only"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/low-stock")
@require_auth
def low_stock_route():
    products = products_service.list_low_stock_products(g.warehouse)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.warehouse)
        return jsonify({"product": product.to_dict()}), 200
    except ProductNotFoundError as e:
        return error_response(e, 404)


@products_bp.post("")
@require_auth
@require_role(UserRole.ADMIN.value)
def create_product_route():
    try:
        data = json_body()
        product = with_retry(lambda: products_service.create_product(g.warehouse, data))
        return jsonify({"product": product.to_dict()}), 201
    except (ValidationError, DuplicateProductCodeError) as e:
        return error_response(e, 400)
    except ConflictError as e:
        return error_response(e, 409)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(UserRole.ADMIN.value)
def update_product_route(product_id: int):
    """Update product fields; a "stocks" list replaces the size rows."""
    try:
        data = json_body()
        product = with_retry(lambda: products_service.update_product(product_id, g.warehouse, data))
        return jsonify({"product": product.to_dict()}), 200
    except ProductNotFoundError as e:
        return error_response(e, 404)
    except (ValidationError, DuplicateProductCodeError) as e:
        return error_response(e, 400)
    except ConflictError as e:
        return error_response(e, 409)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


def _set_active(product_id: int, active: bool):
    try:
        product = products_service.set_product_active(product_id, g.warehouse, active)
        return jsonify({"product": product.to_dict()}), 200
    except ProductNotFoundError as e:
        return error_response(e, 404)
    except Exception:
        current_app.logger.exception("Failed to change product status")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/deactivate")
@require_auth
@require_role(UserRole.ADMIN.value)
def deactivate_product_route(product_id: int):
    return _set_active(product_id, False)


@products_bp.post("/<int:product_id>/activate")
@require_auth
@require_role(UserRole.ADMIN.value)
def activate_product_route(product_id: int):
    return _set_active(product_id, True)


@products_bp.get("/<any(categories, brands, materials, colors):facet>")
@require_auth
def product_facet_route(facet: str):
    """Distinct values offered as catalog filters, e.g. /api/products/brands"""
    values = products_service.list_product_facet(g.warehouse, facet)
    return jsonify({"items": values, "count": len(values)}), 200
