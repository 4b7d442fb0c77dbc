# Overview: Service-layer operations for providers; encapsulates business logic and database work.

"""
Provider Service

WHY: Every accounts-payable invoice belongs to exactly one provider, and
the provider's payment_days gives the invoice its default due date.

WAREHOUSE SCOPING: Providers belong to one warehouse. The tax document is
unique within the warehouse.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Provider
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .concurrency import run_in_transaction

PROVIDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "document", "name", "business_name", "contact_name", "email", "phone",
        "mobile", "address", "city", "country", "payment_terms", "payment_days",
        "notes", "is_active",
    },
    required_on_create={"document", "name"},
)


class ProviderError(Exception):
    """Base class for provider errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProviderNotFoundError(ProviderError):
    """Raised when a provider is not found in the warehouse."""
    pass


class DuplicateProviderDocumentError(ProviderError):
    """Raised when the tax document is already registered in the warehouse."""
    pass


def _check_unique_document(warehouse: str, document: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Provider).filter(
        Provider.warehouse == warehouse,
        Provider.document == document,
    )
    if exclude_id is not None:
        query = query.filter(Provider.id != exclude_id)
    if query.first():
        raise DuplicateProviderDocumentError(
            f"A provider with document {document} already exists",
            details={"document": document},
        )


def create_provider(warehouse: str, data: dict) -> Provider:
    """
    Create a new provider.

    Args:
        warehouse: Warehouse the provider belongs to
        data: Provider fields (document and name required)

    Returns:
        Created Provider object

    Raises:
        ValidationError: If a field is missing or malformed
        DuplicateProviderDocumentError: If the document is already used
    """
    patch = validate_payload(model=Provider, payload=data, policy=PROVIDER_POLICY, partial=False)
    if patch.get("payment_days") is not None and patch["payment_days"] < 0:
        raise ValidationError("payment_days must be >= 0")

    def _op():
        _check_unique_document(warehouse, patch["document"])
        provider = Provider(warehouse=warehouse, **patch)
        db.session.add(provider)
        db.session.flush()
        return provider

    return run_in_transaction(_op)


def update_provider(provider_id: int, warehouse: str, data: dict) -> Provider:
    """
    Update provider fields.

    Raises:
        ProviderNotFoundError: If provider not found in the warehouse
        DuplicateProviderDocumentError: If the new document is already used
    """
    patch = validate_payload(model=Provider, payload=data, policy=PROVIDER_POLICY, partial=True)

    def _op():
        provider = get_provider(provider_id, warehouse)
        if "document" in patch and patch["document"] != provider.document:
            _check_unique_document(warehouse, patch["document"], exclude_id=provider.id)
        for key, value in patch.items():
            setattr(provider, key, value)
        return provider

    return run_in_transaction(_op)


def get_provider(provider_id: int, warehouse: str) -> Provider:
    """
    Get a provider by ID.

    Raises:
        ProviderNotFoundError: If provider not found in the warehouse
    """
    provider = db.session.query(Provider).filter_by(id=provider_id, warehouse=warehouse).first()
    if not provider:
        raise ProviderNotFoundError(
            f"Provider {provider_id} not found",
            details={"provider_id": provider_id},
        )
    return provider


def list_providers(
    warehouse: str,
    *,
    include_inactive: bool = False,
    search: str | None = None,
) -> list[Provider]:
    """
    List providers for a warehouse, ordered by name.

    Args:
        warehouse: Warehouse to list
        include_inactive: If True, include inactive providers
        search: Optional search term for name, business name or document
    """
    query = db.session.query(Provider).filter(Provider.warehouse == warehouse)

    if not include_inactive:
        query = query.filter(Provider.is_active.is_(True))

    if search:
        search_term = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Provider.name.ilike(search_term),
                Provider.business_name.ilike(search_term),
                Provider.document.ilike(search_term),
            )
        )

    return query.order_by(Provider.name.asc()).all()


def deactivate_provider(provider_id: int, warehouse: str) -> Provider:
    """
    Deactivate a provider (soft delete). Existing invoices keep pointing at it.

    Raises:
        ProviderNotFoundError: If provider not found
        ProviderError: If provider already inactive
    """
    def _op():
        provider = get_provider(provider_id, warehouse)
        if not provider.is_active:
            raise ProviderError("Provider is already inactive", details={"provider_id": provider.id})
        provider.is_active = False
        return provider

    return run_in_transaction(_op)


def activate_provider(provider_id: int, warehouse: str) -> Provider:
    """
    Reactivate a deactivated provider.

    Raises:
        ProviderNotFoundError: If provider not found
        ProviderError: If provider already active
    """
    def _op():
        provider = get_provider(provider_id, warehouse)
        if provider.is_active:
            raise ProviderError("Provider is already active", details={"provider_id": provider.id})
        provider.is_active = True
        return provider

    return run_in_transaction(_op)


def get_provider_by_document(document: str, warehouse: str) -> Provider:
    """
    Get a provider by tax document.

    Raises:
        ProviderNotFoundError: If no provider in the warehouse has that document
    """
    provider = db.session.query(Provider).filter_by(
        document=(document or "").strip(),
        warehouse=warehouse,
    ).first()
    if not provider:
        raise ProviderNotFoundError(
            f"Provider with document {document} not found",
            details={"document": document},
        )
    return provider


def _distinct_values(column, warehouse: str) -> list[str]:
    rows = (
        db.session.query(column)
        .filter(
            Provider.warehouse == warehouse,
            Provider.is_active.is_(True),
            column.isnot(None),
            column != "",
        )
        .distinct()
        .order_by(column.asc())
        .all()
    )
    return [value for (value,) in rows]


def list_provider_cities(warehouse: str) -> list[str]:
    """Cities of active providers, sorted."""
    return _distinct_values(Provider.city, warehouse)


def list_provider_countries(warehouse: str) -> list[str]:
    """Countries of active providers, sorted."""
    return _distinct_values(Provider.country, warehouse)
