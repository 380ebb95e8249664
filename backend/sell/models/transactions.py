from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class FinancialTransaction(db.Model):
    """
    Append-only audit trail of staff balance movements.

    transaction_type: topup, withdraw
    source_type: sales (settlement), bonus, manual
    """
    __tablename__ = "financial_transactions"
    __table_args__ = (
        db.Index("ix_financial_transactions_staff_created", "staff_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False)

    transaction_type = db.Column(db.String(16), nullable=False)
    source_type = db.Column(db.String(16), nullable=False, default="sales")
    amount = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "staff_id": self.staff_id,
            "transaction_type": self.transaction_type,
            "source_type": self.source_type,
            "amount": self.amount,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
