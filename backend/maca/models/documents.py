from __future__ import annotations

from ..extensions import db


class DocumentSequence(db.Model):
    """
    Atomic document counters keyed by (scope, document_type, period).

    scope is a warehouse name or "GLOBAL"; period is the YYYYMMDD stamp, so
    every warehouse/day pair gets its own counter for sale numbers and every
    day gets one shared counter for invoice payment numbers.

    WHY: numbers derived from COUNT(*) can repeat under concurrent writers;
    an UPDATE ... SET next_number = next_number + 1 on this row cannot.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("scope", "document_type", "period", name="uq_doc_sequences_scope_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(64), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period = db.Column(db.String(8), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
