from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Branch(db.Model):
    """Physical shop location; inventory and staff are scoped to a branch."""
    __tablename__ = "branches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    address = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    Read-only during settlement: the unit price is copied into the basket
    line when the product is added, so later price edits never touch open
    or settled sales.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative price in minor units
    price = db.Column(db.Integer, nullable=False, default=0)

    # Scannable code used by the barcode endpoint
    barcode = db.Column(db.String(64), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} barcode={self.barcode!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "barcode": self.barcode,
            "created_at": to_utc_z(self.created_at),
        }


class StaffTariff(db.Model):
    """
    Staff compensation rule.

    TARIFF TYPES:
    - fixed: flat amount per sale (amount_for_cash / amount_for_card)
    - percent: percentage of the sale total, truncated to whole units
    """
    __tablename__ = "staff_tariffs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    tariff_type = db.Column(db.String(16), nullable=False)  # fixed, percent
    amount_for_cash = db.Column(db.Integer, nullable=False, default=0)
    amount_for_card = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def amount_for(self, payment_type: str) -> int:
        return self.amount_for_cash if payment_type == "cash" else self.amount_for_card

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tariff_type": self.tariff_type,
            "amount_for_cash": self.amount_for_cash,
            "amount_for_card": self.amount_for_card,
        }


class Staff(db.Model):
    """
    Branch employee (cashier or shop assistant).

    balance is mutated only by settlement commissions or explicit
    FinancialTransaction postings.
    """
    __tablename__ = "staff"
    __table_args__ = (
        db.CheckConstraint("balance >= 0", name="ck_staff_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    tariff_id = db.Column(db.Integer, db.ForeignKey("staff_tariffs.id"), nullable=False, index=True)
    staff_type = db.Column(db.String(32), nullable=False, default="cashier")  # cashier, shop_assistant
    name = db.Column(db.String(255), nullable=False)
    balance = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("staff", lazy=True))
    tariff = db.relationship("StaffTariff")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Staff id={self.id} name={self.name!r} type={self.staff_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "tariff_id": self.tariff_id,
            "staff_type": self.staff_type,
            "name": self.name,
            "balance": self.balance,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
