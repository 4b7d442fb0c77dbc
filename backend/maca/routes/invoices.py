# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

"""Accounts payable: provider invoices and the payments made against them."""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import invoice_service
from ..services.invoice_service import InvoiceError, InvoiceNotFoundError
from ..services.provider_service import ProviderNotFoundError
from ..decorators import require_auth, require_role
from ..http import json_body, error_response, with_retry, pagination_args, date_arg
from ..models import InvoiceStatus, UserRole
from ..validation import ValidationError, ConflictError, money_str


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """Query params: status, provider_id, start_date, end_date, page, per_page"""
    try:
        page, per_page = pagination_args()
        result = invoice_service.list_invoices(
            g.warehouse,
            status=request.args.get("status"),
            provider_id=request.args.get("provider_id", type=int),
            start=date_arg("start_date"),
            end=date_arg("end_date"),
            page=page,
            per_page=per_page,
        )
        result["pending_balance"] = money_str(invoice_service.total_pending_balance(g.warehouse))
        return jsonify(result), 200
    except ValidationError as e:
        return error_response(e, 400)


@invoices_bp.get("/overdue")
@require_auth
def overdue_invoices_route():
    invoices = invoice_service.list_overdue_invoices(g.warehouse)
    return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)}), 200


@invoices_bp.get("/totals")
@require_auth
def invoice_totals_route():
    """Invoice totals per status, plus the outstanding balance of open invoices."""
    totals = {
        status.value: money_str(invoice_service.total_by_status(g.warehouse, status.value))
        for status in InvoiceStatus
    }
    return jsonify({
        "totals": totals,
        "pending_balance": money_str(invoice_service.total_pending_balance(g.warehouse)),
    }), 200


@invoices_bp.get("/number/<invoice_number>")
@require_auth
def get_invoice_by_number_route(invoice_number: str):
    try:
        invoice = invoice_service.get_invoice_by_number(invoice_number, g.warehouse)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except InvoiceNotFoundError as e:
        return error_response(e, 404)


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id, g.warehouse)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except InvoiceNotFoundError as e:
        return error_response(e, 404)


@invoices_bp.post("")
@require_auth
@require_role(UserRole.ADMIN.value)
def create_invoice_route():
    try:
        data = json_body()
        invoice = with_retry(lambda: invoice_service.create_invoice(
            g.warehouse, data, user_id=g.current_user.id,
        ))
        return jsonify({"invoice": invoice.to_dict()}), 201
    except ProviderNotFoundError as e:
        return error_response(e, 404)
    except (ValidationError, InvoiceError) as e:
        return error_response(e, 400)
    except ConflictError as e:
        return error_response(e, 409)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.put("/<int:invoice_id>")
@require_auth
@require_role(UserRole.ADMIN.value)
def update_invoice_route(invoice_id: int):
    try:
        data = json_body()
        invoice = with_retry(lambda: invoice_service.update_invoice(invoice_id, g.warehouse, data))
        return jsonify({"invoice": invoice.to_dict()}), 200
    except InvoiceNotFoundError as e:
        return error_response(e, 404)
    except (ValidationError, InvoiceError) as e:
        return error_response(e, 400)
    except ConflictError as e:
        return error_response(e, 409)
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/cancel")
@require_auth
@require_role(UserRole.ADMIN.value)
def cancel_invoice_route(invoice_id: int):
    try:
        invoice = with_retry(lambda: invoice_service.cancel_invoice(invoice_id, g.warehouse))
        return jsonify({"invoice": invoice.to_dict()}), 200
    except InvoiceNotFoundError as e:
        return error_response(e, 404)
    except InvoiceError as e:
        return error_response(e, 400)
    except ConflictError as e:
        return error_response(e, 409)
    except Exception:
        current_app.logger.exception("Failed to cancel invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/payments")
@require_auth
def add_payment_route(invoice_id: int):
    """
    Body: amount, payment_method, payment_date?, reference?, notes?

    Returns the payment and the invoice with its new status and balance.
    """
    try:
        data = json_body()
        payment, invoice = with_retry(lambda: invoice_service.add_payment(
            invoice_id=invoice_id,
            warehouse=g.warehouse,
            payment_date=data.get("payment_date"),
            amount=data.get("amount"),
            payment_method=data.get("payment_method") or data.get("method"),
            reference=data.get("reference") or data.get("reference_number"),
            notes=data.get("notes"),
            user_id=g.current_user.id,
        ))
        return jsonify({"payment": payment.to_dict(), "invoice": invoice.to_dict()}), 201
    except InvoiceNotFoundError as e:
        return error_response(e, 404)
    except (ValidationError, InvoiceError) as e:
        return error_response(e, 400)
    except ConflictError as e:
        return error_response(e, 409)
    except Exception:
        current_app.logger.exception("Failed to add invoice payment")
        return jsonify({"error": "Internal server error"}), 500
