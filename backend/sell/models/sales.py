from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Checkout session accumulating basket lines until settled.

    LIFECYCLE:
    - open: basket lines may be added/removed
    - success: settled; inventory decremented, commissions paid
    - cancel: settled with total 0; no inventory or balance effects

    success and cancel are terminal.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_branch_status_created", "branch_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    cashier_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    shop_assistant_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True, index=True)

    payment_type = db.Column(db.String(16), nullable=False, default="cash")  # cash, card
    status = db.Column(db.String(16), nullable=False, default="open", index=True)

    # Sum of basket line prices once settled with success; 0 while open or cancelled
    total_price = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    branch = db.relationship("Branch", backref=db.backref("sales", lazy=True))
    cashier = db.relationship("Staff", foreign_keys=[cashier_id])
    shop_assistant = db.relationship("Staff", foreign_keys=[shop_assistant_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} status={self.status} total_price={self.total_price}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "cashier_id": self.cashier_id,
            "shop_assistant_id": self.shop_assistant_id,
            "payment_type": self.payment_type,
            "status": self.status,
            "total_price": self.total_price,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "version_id": self.version_id,
        }


class BasketLine(db.Model):
    """One product on an open sale; price is quantity x unit price at time of add."""
    __tablename__ = "basket_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "product_id", name="uq_basket_lines_sale_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Integer, nullable=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("lines", lazy=True))
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": self.price,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
