"""
Warehouse Service: partition validation and helpers

WHY: Nearly every row (products, sales, providers, invoices) carries a
warehouse tag and every query filters on it. The tag is chosen at login,
stored on the session token and passed explicitly to every service call;
nothing here reads it from global state.

INVARIANTS:
1. Only warehouses listed in config WAREHOUSES are accepted at login
2. Services never infer the warehouse; callers pass it in
3. Rows from another warehouse are reported as "not found"
"""

from __future__ import annotations

import re

from flask import current_app


class UnknownWarehouseError(ValueError):
    """Raised when a warehouse name is not configured."""

    def __init__(self, warehouse: str | None):
        super().__init__(f"Unknown warehouse: {warehouse!r}")
        self.message = str(self)
        self.details = {"warehouse": warehouse, "allowed": configured_warehouses()}


def configured_warehouses() -> list[str]:
    return list(current_app.config.get("WAREHOUSES", {}).keys())


def require_warehouse(warehouse: str | None) -> str:
    """Normalize and validate a warehouse name coming from client input."""
    name = (warehouse or "").strip()
    for known in configured_warehouses():
        if known.lower() == name.lower():
            return known
    raise UnknownWarehouseError(warehouse)


def derive_code(warehouse: str) -> str:
    """
    Short code for an unconfigured name: initials of a multi-word name
    ("San Francisco" -> "SF"), else the first three letters ("Centro" -> "CEN").
    """
    words = [w for w in re.split(r"[^A-Za-z0-9]+", warehouse) if w]
    if not words:
        return "GEN"
    if len(words) > 1:
        return "".join(w[0] for w in words).upper()
    return words[0][:3].upper()


def warehouse_code(warehouse: str) -> str:
    """Code used in sale numbers; configured codes win over derived ones."""
    codes = current_app.config.get("WAREHOUSES", {})
    return codes.get(warehouse) or derive_code(warehouse)
