# Overview: Flask API routes for providers operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app, request, g

from ..services import provider_service
from ..services.provider_service import (
    ProviderError,
    ProviderNotFoundError,
)
from ..decorators import require_auth, require_role
from ..http import json_body, error_response, bool_arg
from ..models import UserRole
from ..validation import ValidationError


providers_bp = Blueprint("providers", __name__, url_prefix="/api/providers")


@providers_bp.get("")
@require_auth
def list_providers_route():
    """Query params: search, include_inactive"""
    providers = provider_service.list_providers(
        g.warehouse,
        include_inactive=bool_arg("include_inactive"),
        search=request.args.get("search"),
    )
    return jsonify({"items": [p.to_dict() for p in providers], "count": len(providers)}), 200


@providers_bp.get("/<int:provider_id>")
@require_auth
def get_provider_route(provider_id: int):
    try:
        provider = provider_service.get_provider(provider_id, g.warehouse)
        return jsonify({"provider": provider.to_dict()}), 200
    except ProviderNotFoundError as e:
        return error_response(e, 404)


@providers_bp.post("")
@require_auth
@require_role(UserRole.ADMIN.value)
def create_provider_route():
    try:
        provider = provider_service.create_provider(g.warehouse, json_body())
        return jsonify({"provider": provider.to_dict()}), 201
    except (ValidationError, ProviderError) as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to create provider")
        return jsonify({"error": "Internal server error"}), 500


@providers_bp.put("/<int:provider_id>")
@require_auth
@require_role(UserRole.ADMIN.value)
def update_provider_route(provider_id: int):
    try:
        provider = provider_service.update_provider(provider_id, g.warehouse, json_body())
        return jsonify({"provider": provider.to_dict()}), 200
    except ProviderNotFoundError as e:
        return error_response(e, 404)
    except (ValidationError, ProviderError) as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to update provider")
        return jsonify({"error": "Internal server error"}), 500


@providers_bp.post("/<int:provider_id>/deactivate")
@require_auth
@require_role(UserRole.ADMIN.value)
def deactivate_provider_route(provider_id: int):
    try:
        provider = provider_service.deactivate_provider(provider_id, g.warehouse)
        return jsonify({"provider": provider.to_dict()}), 200
    except ProviderNotFoundError as e:
        return error_response(e, 404)
    except ProviderError as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to deactivate provider")
        return jsonify({"error": "Internal server error"}), 500


@providers_bp.post("/<int:provider_id>/activate")
@require_auth
@require_role(UserRole.ADMIN.value)
def activate_provider_route(provider_id: int):
    try:
        provider = provider_service.activate_provider(provider_id, g.warehouse)
        return jsonify({"provider": provider.to_dict()}), 200
    except ProviderNotFoundError as e:
        return error_response(e, 404)
    except ProviderError as e:
        return error_response(e, 400)
    except Exception:
        current_app.logger.exception("Failed to activate provider")
        return jsonify({"error": "Internal server error"}), 500


@providers_bp.get("/document/<document>")
@require_auth
def get_provider_by_document_route(document: str):
    try:
        provider = provider_service.get_provider_by_document(document, g.warehouse)
        return jsonify({"provider": provider.to_dict()}), 200
    except ProviderNotFoundError as e:
        return error_response(e, 404)


@providers_bp.get("/cities")
@require_auth
def provider_cities_route():
    cities = provider_service.list_provider_cities(g.warehouse)
    return jsonify({"items": cities, "count": len(cities)}), 200


@providers_bp.get("/countries")
@require_auth
def provider_countries_route():
    countries = provider_service.list_provider_countries(g.warehouse)
    return jsonify({"items": countries, "count": len(countries)}), 200
