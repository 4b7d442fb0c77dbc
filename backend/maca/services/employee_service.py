# Overview: Service-layer operations for employees; encapsulates business logic and database work.

"""
Employee Service

WHY: Staff records hold what the login account does not: contract data,
emergency contacts and the commission rate used for seller commissions.

RULES:
- document and email are unique across all employees
- a login account is linked to at most one employee
- employees are never deleted; "delete" sets status INACTIVE
- commission_rate is a percentage between 0 and 100
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..extensions import db
from ..models import Employee, EmployeeStatus, User, UserRole
from ..pagination import paginate
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .concurrency import run_in_transaction

logger = logging.getLogger(__name__)

MAX_COMMISSION_RATE = Decimal("100.00")

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={
        "document", "first_name", "last_name", "email", "phone", "birth_date",
        "gender", "marital_status", "address", "city", "department", "position",
        "hire_date", "salary", "work_schedule", "contract_type", "commission_rate",
        "emergency_contact_name", "emergency_contact_phone",
        "emergency_contact_relationship", "status", "notes", "user_id",
    },
    required_on_create={"document", "first_name", "last_name"},
)


class EmployeeError(Exception):
    """Base class for employee errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EmployeeNotFoundError(EmployeeError):
    pass


class DuplicateEmployeeError(EmployeeError):
    """Document, email or login account already belongs to another employee."""
    pass


def _parse_status(status) -> str:
    try:
        return EmployeeStatus(str(status).strip().upper()).value
    except ValueError:
        raise ValidationError(
            f"Invalid employee status: {status!r}",
            details={"allowed": [s.value for s in EmployeeStatus]},
        )


def _check_commission_rate(rate: Decimal) -> None:
    if rate > MAX_COMMISSION_RATE:
        raise ValidationError("commission_rate must be between 0 and 100")


def _check_unique(field: str, value, exclude_id: int | None = None) -> None:
    if value is None:
        return
    query = db.session.query(Employee).filter(getattr(Employee, field) == value)
    if exclude_id is not None:
        query = query.filter(Employee.id != exclude_id)
    if query.first():
        raise DuplicateEmployeeError(
            f"An employee with {field} {value} already exists",
            details={field: value},
        )


def _clean(data: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Employee, payload=data, policy=EMPLOYEE_POLICY, partial=partial)
    if "status" in patch:
        patch["status"] = _parse_status(patch["status"])
    if patch.get("commission_rate") is not None:
        _check_commission_rate(patch["commission_rate"])
    if patch.get("email") == "":
        patch["email"] = None
    return patch


def _linked_user(user_id: int, exclude_employee_id: int | None = None) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise ValidationError(f"User {user_id} not found", details={"user_id": user_id})
    _check_unique("user_id", user_id, exclude_id=exclude_employee_id)
    return user


def _apply_role(employee: Employee, role) -> None:
    """Role changes go to the linked login account."""
    if role is None:
        return
    try:
        role = UserRole(str(role).strip().upper()).value
    except ValueError:
        raise ValidationError(f"Invalid role: {role!r}")
    if employee.user is None:
        raise ValidationError("role can only be set on an employee linked to a user")
    employee.user.role = role


def get_employee(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if not employee:
        raise EmployeeNotFoundError(
            f"Employee {employee_id} not found",
            details={"employee_id": employee_id},
        )
    return employee


def get_employee_by_document(document: str) -> Employee:
    employee = db.session.query(Employee).filter_by(document=(document or "").strip()).first()
    if not employee:
        raise EmployeeNotFoundError(
            f"Employee with document {document} not found",
            details={"document": document},
        )
    return employee


def create_employee(data: dict) -> Employee:
    """
    Register an employee.

    The payload may carry user_id to link a login account, and role to
    change that account's role in the same step.

    Raises:
        ValidationError: missing or malformed fields, unknown user
        DuplicateEmployeeError: document, email or user already taken
    """
    patch = _clean(data, partial=False)
    role = data.get("role")
    user_id = patch.pop("user_id", None)

    def _op():
        _check_unique("document", patch["document"])
        _check_unique("email", patch.get("email"))

        employee = Employee(**patch)
        if user_id is not None:
            employee.user = _linked_user(user_id)
        _apply_role(employee, role)
        db.session.add(employee)
        db.session.flush()
        return employee

    employee = run_in_transaction(_op)
    logger.info("Employee %s (%s) registered", employee.full_name, employee.document)
    return employee


def update_employee(employee_id: int, data: dict) -> Employee:
    """
    Update employee fields. user_id=null unlinks the login account.

    Raises:
        EmployeeNotFoundError: unknown employee
        DuplicateEmployeeError: document, email or user already taken
    """
    patch = _clean(data, partial=True)
    role = data.get("role")
    relink = "user_id" in patch
    user_id = patch.pop("user_id", None)

    def _op():
        employee = get_employee(employee_id)
        if "document" in patch and patch["document"] != employee.document:
            _check_unique("document", patch["document"], exclude_id=employee.id)
        if patch.get("email") and patch["email"] != employee.email:
            _check_unique("email", patch["email"], exclude_id=employee.id)
        if relink:
            if user_id is None:
                employee.user = None
            elif user_id != employee.user_id:
                employee.user = _linked_user(user_id, exclude_employee_id=employee.id)

        for key, value in patch.items():
            setattr(employee, key, value)
        _apply_role(employee, role)
        return employee

    return run_in_transaction(_op)


def change_employee_status(employee_id: int, status: str) -> Employee:
    status = _parse_status(status)

    def _op():
        employee = get_employee(employee_id)
        employee.status = status
        return employee

    employee = run_in_transaction(_op)
    logger.info("Employee %s status set to %s", employee.document, status)
    return employee


def deactivate_employee(employee_id: int) -> Employee:
    """
    Employees are kept for history; deleting one marks it INACTIVE.

    Raises:
        EmployeeNotFoundError: unknown employee
        EmployeeError: already inactive
    """
    def _op():
        employee = get_employee(employee_id)
        if employee.status == EmployeeStatus.INACTIVE.value:
            raise EmployeeError("Employee is already inactive", details={"employee_id": employee.id})
        employee.status = EmployeeStatus.INACTIVE.value
        return employee

    return run_in_transaction(_op)


def list_employees(
    *,
    status: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Ordered by first name. search matches names, document and email."""
    query = db.session.query(Employee)
    if status:
        query = query.filter(Employee.status == _parse_status(status))
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Employee.first_name.ilike(term),
            Employee.last_name.ilike(term),
            Employee.document.ilike(term),
            Employee.email.ilike(term),
        ))
    query = query.order_by(Employee.first_name.asc(), Employee.last_name.asc(), Employee.id.asc())
    return paginate(query, page, per_page, lambda e: e.to_dict())


def _active_values(column) -> list[str]:
    rows = (
        db.session.query(column)
        .filter(
            Employee.status == EmployeeStatus.ACTIVE.value,
            column.isnot(None),
            column != "",
        )
        .distinct()
        .order_by(column.asc())
        .all()
    )
    return [value for (value,) in rows]


def list_departments() -> list[str]:
    return _active_values(Employee.department)


def list_positions() -> list[str]:
    return _active_values(Employee.position)


def employee_stats() -> dict:
    """Headcount per status plus the total."""
    counts = dict(
        db.session.query(Employee.status, db.func.count(Employee.id))
        .group_by(Employee.status)
        .all()
    )
    stats = {status.value.lower(): counts.get(status.value, 0) for status in EmployeeStatus}
    stats["total"] = sum(counts.values())
    return stats
