"""
Sale Settlement Service - end-sell

Finalises an open sale as success or cancel in a single unit of work.

SUCCESS:
1. total_price = sum of basket line prices
2. every product is checked against branch stock BEFORE anything changes
3. inventory records are decremented, one minus ledger entry per line
4. cashier and (optional) shop assistant are paid commission from their
   own tariff; one topup FinancialTransaction per paid staff member

CANCEL:
- total_price = 0, status = cancel, one zero-amount withdraw transaction
  for audit; inventory and balances are untouched

Either everything above is committed or nothing is (see run_atomic).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..errors import NotFoundError, InsufficientStockError
from ..validation import ValidationError, PAYMENT_TYPES, SETTLEMENT_STATUSES
from ..models import Sale, Staff, StaffTariff, FinancialTransaction
from ..time_utils import utcnow
from .sales_service import lock_open_sale, get_lines, STATUS_CANCEL, STATUS_SUCCESS
from .inventory_service import get_record, append_ledger_entry
from .concurrency import lock_for_update, run_atomic


TARIFF_FIXED = "fixed"
TARIFF_PERCENT = "percent"

SALE_DESCRIPTION = "staff sell products"
CANCEL_DESCRIPTION = "sale canceled"


@dataclass
class StaffCommission:
    staff_id: int
    role: str
    commission: int

    def to_dict(self) -> dict:
        return {"staff_id": self.staff_id, "role": self.role, "commission": self.commission}


@dataclass
class SettlementResult:
    sale: Sale
    commissions: list[StaffCommission] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "commissions": [c.to_dict() for c in self.commissions],
        }


def compute_commission(tariff: StaffTariff, payment_type: str, total_price: int) -> int:
    """
    fixed: the tariff amount for the payment type, regardless of total.
    percent: total_price * amount / 100, truncated.
    """
    amount = tariff.amount_for(payment_type)
    if tariff.tariff_type == TARIFF_FIXED:
        return amount
    if tariff.tariff_type == TARIFF_PERCENT:
        return total_price * amount // 100
    raise ValidationError(
        f"Unknown tariff type {tariff.tariff_type!r}",
        details={"tariff_id": tariff.id},
    )


def _check_stock(sale: Sale, lines) -> dict:
    """Lock every inventory record the sale touches; raise if any is short."""
    product_totals: dict[int, int] = {}
    for line in lines:
        product_totals[line.product_id] = product_totals.get(line.product_id, 0) + line.quantity

    records = {}
    insufficient = []
    # Fixed lock order across concurrent settlements
    for product_id in sorted(product_totals):
        qty = product_totals[product_id]
        record = get_record(product_id, sale.branch_id, lock=True)
        available = record.count if record else 0
        if available < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "available": available,
            })
        records[product_id] = record

    if insufficient:
        raise InsufficientStockError(
            "Insufficient inventory to settle sale",
            details={"items": insufficient},
        )
    return records


def _pay_staff(sale: Sale, staff_id: int, role: str, total_price: int) -> StaffCommission:
    staff = lock_for_update(db.session.query(Staff).filter_by(id=staff_id)).first()
    if not staff:
        raise NotFoundError(f"{role} not found", details={"staff_id": staff_id})

    tariff = db.session.get(StaffTariff, staff.tariff_id)
    if not tariff:
        raise NotFoundError("Staff tariff not found", details={"tariff_id": staff.tariff_id})

    commission = compute_commission(tariff, sale.payment_type, total_price)
    staff.balance += commission

    db.session.add(FinancialTransaction(
        sale_id=sale.id,
        staff_id=staff.id,
        transaction_type="topup",
        source_type="sales",
        amount=total_price,
        description=SALE_DESCRIPTION,
    ))
    return StaffCommission(staff_id=staff.id, role=role, commission=commission)


def _cancel_locked(sale: Sale) -> SettlementResult:
    sale.status = STATUS_CANCEL
    sale.total_price = 0
    sale.completed_at = utcnow()

    db.session.add(FinancialTransaction(
        sale_id=sale.id,
        staff_id=sale.shop_assistant_id or sale.cashier_id,
        transaction_type="withdraw",
        source_type="sales",
        amount=0,
        description=CANCEL_DESCRIPTION,
    ))
    db.session.flush()
    return SettlementResult(sale=sale)


def _success_locked(sale: Sale) -> SettlementResult:
    lines = get_lines(sale.id)
    # A sale with nothing in the basket is closed with cancel, not success
    if not lines:
        raise ValidationError("Cannot settle sale with no basket lines", details={"sale_id": sale.id})

    total_price = sum(line.price for line in lines)

    records = _check_stock(sale, lines)

    sale.status = STATUS_SUCCESS
    sale.total_price = total_price
    sale.completed_at = utcnow()

    for line in lines:
        record = records[line.product_id]
        record.count -= line.quantity
        append_ledger_entry(
            product_id=line.product_id,
            branch_id=sale.branch_id,
            entry_type="minus",
            price=line.price,
            quantity=line.quantity,
            sale_id=sale.id,
        )

    commissions = [_pay_staff(sale, sale.cashier_id, "cashier", total_price)]
    if sale.shop_assistant_id:
        commissions.append(_pay_staff(sale, sale.shop_assistant_id, "shop_assistant", total_price))

    db.session.flush()
    return SettlementResult(sale=sale, commissions=commissions)


def settle_sale(sale_id: int, requested_status: str, payment_type: str | None = None) -> SettlementResult:
    """
    End a sale with requested_status (success or cancel).

    payment_type overrides the sale's stored payment type when given.
    """
    if requested_status not in SETTLEMENT_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(SETTLEMENT_STATUSES))}",
            details={"status": requested_status},
        )
    if payment_type is not None and payment_type not in PAYMENT_TYPES:
        raise ValidationError(
            f"payment_type must be one of: {', '.join(sorted(PAYMENT_TYPES))}",
            details={"payment_type": payment_type},
        )

    def _op():
        sale = lock_open_sale(sale_id)
        if payment_type is not None:
            sale.payment_type = payment_type

        if requested_status == STATUS_CANCEL:
            return _cancel_locked(sale)
        return _success_locked(sale)

    return run_atomic(_op)
