# Overview: Service-layer operations for staff balances and financial transactions.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError
from ..validation import InsufficientFundsError
from ..models import Staff, FinancialTransaction
from .concurrency import lock_for_update, run_atomic


def get_staff(staff_id: int) -> Staff:
    staff = db.session.get(Staff, staff_id)
    if not staff:
        raise NotFoundError("Staff not found", details={"staff_id": staff_id})
    return staff


def create_transaction(
    *,
    staff_id: int,
    transaction_type: str,
    amount: int,
    source_type: str = "manual",
    description: str | None = None,
    sale_id: int | None = None,
) -> tuple[FinancialTransaction, Staff]:
    """
    Post an explicit balance movement for a staff member.

    topup adds amount; withdraw subtracts it and may not go below zero.
    """
    def _op():
        staff = lock_for_update(db.session.query(Staff).filter_by(id=staff_id)).first()
        if not staff:
            raise NotFoundError("Staff not found", details={"staff_id": staff_id})

        if transaction_type == "withdraw":
            if staff.balance < amount:
                raise InsufficientFundsError(
                    "Insufficient balance",
                    details={"staff_id": staff_id, "balance": staff.balance, "amount": amount},
                )
            staff.balance -= amount
        else:
            staff.balance += amount

        tx = FinancialTransaction(
            sale_id=sale_id,
            staff_id=staff.id,
            transaction_type=transaction_type,
            source_type=source_type,
            amount=amount,
            description=description,
        )
        db.session.add(tx)
        db.session.flush()
        return tx, staff

    return run_atomic(_op)


def list_transactions(
    *,
    sale_id: int | None = None,
    staff_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[FinancialTransaction], int]:
    query = db.session.query(FinancialTransaction)
    if sale_id is not None:
        query = query.filter(FinancialTransaction.sale_id == sale_id)
    if staff_id is not None:
        query = query.filter(FinancialTransaction.staff_id == staff_id)
    count = query.count()
    transactions = (
        query.order_by(FinancialTransaction.created_at.desc(), FinancialTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return transactions, count
