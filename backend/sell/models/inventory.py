from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InventoryRecord(db.Model):
    """
    Stock on hand for one product at one branch.

    count may never go negative; the check constraint backs up the
    service-level stock check.
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("product_id", "branch_id", name="uq_inventory_records_product_branch"),
        db.CheckConstraint("count >= 0", name="ck_inventory_records_count_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryRecord product_id={self.product_id} branch_id={self.branch_id} count={self.count}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "branch_id": self.branch_id,
            "count": self.count,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryLedgerEntry(db.Model):
    """
    Append-only log of stock movements.

    entry_type:
    - plus: stock intake (income product)
    - minus: stock sold on a settled sale
    """
    __tablename__ = "inventory_ledger_entries"
    __table_args__ = (
        db.Index("ix_inventory_ledger_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # Source document (exactly one is set)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    income_id = db.Column(db.Integer, db.ForeignKey("incomes.id"), nullable=True, index=True)

    entry_type = db.Column(db.String(16), nullable=False)  # plus, minus
    price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "branch_id": self.branch_id,
            "sale_id": self.sale_id,
            "income_id": self.income_id,
            "entry_type": self.entry_type,
            "price": self.price,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
        }


class Income(db.Model):
    """Stock-intake document for a branch; price is the sum of its product prices."""
    __tablename__ = "incomes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    price = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("incomes", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "price": self.price,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class IncomeProduct(db.Model):
    __tablename__ = "income_products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    income_id = db.Column(db.Integer, db.ForeignKey("incomes.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    price = db.Column(db.Integer, nullable=False)
    count = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    income = db.relationship("Income", backref=db.backref("products", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "income_id": self.income_id,
            "product_id": self.product_id,
            "price": self.price,
            "count": self.count,
            "created_at": to_utc_z(self.created_at),
        }
