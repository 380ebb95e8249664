# Overview: Service-layer operations for stock intake (income documents).

"""
Income Service

An income is a stock-intake document for one branch. Every product added
to it is posted immediately:
- the (product, branch) inventory record grows by count (created if missing)
- one plus ledger entry records price and quantity
- income.price is recomputed as the sum of its product prices

Each add is one atomic unit of work.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError
from ..models import Branch, Income, IncomeProduct, Product
from .inventory_service import get_or_create_record, append_ledger_entry
from .concurrency import lock_for_update, run_atomic


def create_income(branch_id: int) -> Income:
    def _op():
        if not db.session.get(Branch, branch_id):
            raise NotFoundError("Branch not found", details={"branch_id": branch_id})
        income = Income(branch_id=branch_id, price=0)
        db.session.add(income)
        db.session.flush()
        return income

    return run_atomic(_op)


def get_income(income_id: int) -> tuple[Income, list[IncomeProduct]]:
    income = db.session.get(Income, income_id)
    if not income:
        raise NotFoundError("Income not found", details={"income_id": income_id})
    products = (
        db.session.query(IncomeProduct)
        .filter_by(income_id=income_id)
        .order_by(IncomeProduct.id)
        .all()
    )
    return income, products


def list_incomes(
    branch_id: int | None = None,
    *,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Income], int]:
    query = db.session.query(Income)
    if branch_id is not None:
        query = query.filter(Income.branch_id == branch_id)
    count = query.count()
    incomes = query.order_by(Income.created_at.desc(), Income.id.desc()).offset(offset).limit(limit).all()
    return incomes, count


def add_income_product(*, income_id: int, product_id: int, price: int, count: int) -> IncomeProduct:
    """Receive count units of a product into the income's branch."""
    def _op():
        income = lock_for_update(db.session.query(Income).filter_by(id=income_id)).first()
        if not income:
            raise NotFoundError("Income not found", details={"income_id": income_id})

        if not db.session.get(Product, product_id):
            raise NotFoundError("Product not found", details={"product_id": product_id})

        item = IncomeProduct(income_id=income.id, product_id=product_id, price=price, count=count)
        db.session.add(item)

        record = get_or_create_record(product_id, income.branch_id)
        record.count += count

        append_ledger_entry(
            product_id=product_id,
            branch_id=income.branch_id,
            entry_type="plus",
            price=price,
            quantity=count,
            income_id=income.id,
        )

        income.price = int(
            db.session.query(func.coalesce(func.sum(IncomeProduct.price), 0))
            .filter(IncomeProduct.income_id == income.id)
            .scalar()
            or 0
        )
        db.session.flush()
        return item

    return run_atomic(_op)
