# Overview: Service-layer operations for inventory records and the inventory ledger.

from __future__ import annotations

from ..extensions import db
from ..models import InventoryRecord, InventoryLedgerEntry
from .concurrency import lock_for_update
"""
Inventory Invariants (authoritative)

- One InventoryRecord per (product, branch); count is the stock on hand.
- count may never go negative. Callers check availability before any
  decrement; the CHECK constraint is the last line of defence.
- Every count change appends an InventoryLedgerEntry in the same DB
  transaction: plus for intake, minus for sales.
- The ledger is append-only (no updates/deletes).
"""


def get_record(product_id: int, branch_id: int, *, lock: bool = False) -> InventoryRecord | None:
    query = db.session.query(InventoryRecord).filter_by(product_id=product_id, branch_id=branch_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_or_create_record(product_id: int, branch_id: int) -> InventoryRecord:
    """Locked record for (product, branch), created with count 0 when missing."""
    record = get_record(product_id, branch_id, lock=True)
    if record is None:
        record = InventoryRecord(product_id=product_id, branch_id=branch_id, count=0)
        db.session.add(record)
        db.session.flush()
    return record


def get_available_quantity(product_id: int, branch_id: int) -> int:
    """Stock on hand; a product with no record at the branch has none."""
    record = get_record(product_id, branch_id)
    return record.count if record else 0


def append_ledger_entry(
    *,
    product_id: int,
    branch_id: int,
    entry_type: str,
    price: int,
    quantity: int,
    sale_id: int | None = None,
    income_id: int | None = None,
) -> InventoryLedgerEntry:
    """
    Append-only inventory ledger entry.

    No updates of existing entries; flushed so the id is assigned without committing.
    """
    if entry_type not in ("plus", "minus"):
        raise ValueError(f"invalid ledger entry type {entry_type!r}")

    entry = InventoryLedgerEntry(
        product_id=product_id,
        branch_id=branch_id,
        entry_type=entry_type,
        price=price,
        quantity=quantity,
        sale_id=sale_id,
        income_id=income_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_records(branch_id: int | None = None, product_id: int | None = None) -> list[InventoryRecord]:
    query = db.session.query(InventoryRecord)
    if branch_id is not None:
        query = query.filter(InventoryRecord.branch_id == branch_id)
    if product_id is not None:
        query = query.filter(InventoryRecord.product_id == product_id)
    return query.order_by(InventoryRecord.branch_id, InventoryRecord.product_id).all()


def list_ledger_entries(
    *,
    product_id: int | None = None,
    branch_id: int | None = None,
    sale_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryLedgerEntry], int]:
    query = db.session.query(InventoryLedgerEntry)
    if product_id is not None:
        query = query.filter(InventoryLedgerEntry.product_id == product_id)
    if branch_id is not None:
        query = query.filter(InventoryLedgerEntry.branch_id == branch_id)
    if sale_id is not None:
        query = query.filter(InventoryLedgerEntry.sale_id == sale_id)

    count = query.count()
    entries = (
        query.order_by(InventoryLedgerEntry.created_at.desc(), InventoryLedgerEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return entries, count
