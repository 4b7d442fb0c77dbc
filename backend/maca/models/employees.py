from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from maca.time_utils import to_iso_date, to_utc_z
from maca.validation import money_str
from .enums import EmployeeStatus

DEFAULT_COMMISSION_RATE = Decimal("5.00")


class Employee(db.Model):
    """
    Staff record kept by the administrator.

    Like users, employees are not bound to a warehouse. An employee may be
    linked to at most one login account; the link is optional because not
    every employee operates the POS.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.Index("ix_employees_status_first_name", "status", "first_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    document = db.Column(db.String(32), nullable=False, unique=True)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(64), nullable=True)

    birth_date = db.Column(db.Date, nullable=True)
    gender = db.Column(db.String(32), nullable=True)
    marital_status = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)

    department = db.Column(db.String(128), nullable=True)
    position = db.Column(db.String(128), nullable=True)
    hire_date = db.Column(db.Date, nullable=True)
    salary = db.Column(db.Numeric(12, 2), nullable=True)
    work_schedule = db.Column(db.String(128), nullable=True)
    contract_type = db.Column(db.String(64), nullable=True)

    # Percentage of each completed sale, 0-100
    commission_rate = db.Column(db.Numeric(5, 2), nullable=False, default=DEFAULT_COMMISSION_RATE)

    emergency_contact_name = db.Column(db.String(255), nullable=True)
    emergency_contact_phone = db.Column(db.String(64), nullable=True)
    emergency_contact_relationship = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=EmployeeStatus.ACTIVE.value, index=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, unique=True)
    user = db.relationship("User", lazy="joined")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document": self.document,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "birth_date": to_iso_date(self.birth_date),
            "gender": self.gender,
            "marital_status": self.marital_status,
            "address": self.address,
            "city": self.city,
            "department": self.department,
            "position": self.position,
            "hire_date": to_iso_date(self.hire_date),
            "salary": money_str(self.salary),
            "work_schedule": self.work_schedule,
            "contract_type": self.contract_type,
            "commission_rate": money_str(self.commission_rate),
            "emergency_contact_name": self.emergency_contact_name,
            "emergency_contact_phone": self.emergency_contact_phone,
            "emergency_contact_relationship": self.emergency_contact_relationship,
            "status": self.status,
            "notes": self.notes,
            "user": (
                {"id": self.user.id, "username": self.user.username, "role": self.user.role}
                if self.user else None
            ),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
