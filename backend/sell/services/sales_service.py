"""
Sales Service - sale documents and their baskets

A sale is opened by a cashier at a branch, filled through the basket
service and finalised by the settlement service. This module owns the
document itself: opening, reading, and the locked "must be open" lookup
every mutating operation starts from.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, InvalidStateError
from ..validation import ValidationError
from ..models import Sale, BasketLine, Branch, Staff
from .concurrency import lock_for_update, run_atomic


STATUS_OPEN = "open"
STATUS_SUCCESS = "success"
STATUS_CANCEL = "cancel"


def _get_staff(staff_id: int, branch_id: int, role: str) -> Staff:
    staff = db.session.get(Staff, staff_id)
    if not staff:
        raise NotFoundError(f"{role} not found", details={"staff_id": staff_id})
    if staff.branch_id != branch_id:
        raise ValidationError(
            f"{role} does not belong to branch",
            details={"staff_id": staff_id, "branch_id": branch_id},
        )
    return staff


def create_sale(
    *,
    branch_id: int,
    cashier_id: int,
    shop_assistant_id: int | None = None,
    payment_type: str = "cash",
) -> Sale:
    """Open a new sale with an empty basket."""
    def _op():
        if not db.session.get(Branch, branch_id):
            raise NotFoundError("Branch not found", details={"branch_id": branch_id})

        _get_staff(cashier_id, branch_id, "Cashier")
        if shop_assistant_id is not None:
            _get_staff(shop_assistant_id, branch_id, "Shop assistant")

        sale = Sale(
            branch_id=branch_id,
            cashier_id=cashier_id,
            shop_assistant_id=shop_assistant_id,
            payment_type=payment_type or "cash",
            status=STATUS_OPEN,
            total_price=0,
        )
        db.session.add(sale)
        db.session.flush()
        return sale

    return run_atomic(_op)


def get_sale(sale_id: int) -> tuple[Sale, list[BasketLine]]:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale, get_lines(sale_id)


def get_lines(sale_id: int) -> list[BasketLine]:
    return (
        db.session.query(BasketLine)
        .filter_by(sale_id=sale_id)
        .order_by(BasketLine.id)
        .all()
    )


def lock_open_sale(sale_id: int) -> Sale:
    """
    Load and lock a sale that must still be open.

    Raises NotFoundError / InvalidStateError; callers run inside run_atomic.
    """
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})

    if sale.status != STATUS_OPEN:
        if sale.status == STATUS_SUCCESS:
            raise InvalidStateError("Sale already ended", details={"sale_id": sale_id, "status": sale.status})
        if sale.status == STATUS_CANCEL:
            raise InvalidStateError("Sale canceled", details={"sale_id": sale_id, "status": sale.status})
        raise InvalidStateError(f"Cannot modify sale with status {sale.status}", details={"sale_id": sale_id})

    return sale
