# Overview: Service-layer operations for basket lines; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, InsufficientStockError
from ..validation import ValidationError
from ..models import BasketLine, Product
from .sales_service import lock_open_sale
from .inventory_service import get_available_quantity
from .concurrency import lock_for_update, run_atomic


def _add_locked(sale, product: Product, quantity: int) -> tuple[BasketLine, bool]:
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")

    line = lock_for_update(
        db.session.query(BasketLine).filter_by(sale_id=sale.id, product_id=product.id)
    ).first()
    reserved = line.quantity if line else 0

    # Fail fast at add time; settlement re-checks against stock under lock.
    available = get_available_quantity(product.id, sale.branch_id)
    if reserved + quantity > available:
        raise InsufficientStockError(
            "Not enough product",
            details={"items": [{
                "product_id": product.id,
                "requested_quantity": reserved + quantity,
                "available": available,
            }]},
        )

    added_price = product.price * quantity
    if line:
        line.quantity += quantity
        line.price += added_price
        db.session.flush()
        return line, False

    line = BasketLine(
        sale_id=sale.id,
        product_id=product.id,
        quantity=quantity,
        price=added_price,
    )
    db.session.add(line)
    db.session.flush()
    return line, True


def add_product(sale_id: int, product_id: int, quantity: int) -> tuple[BasketLine, bool]:
    """
    Add quantity of a product to an open sale's basket.

    Merges into the existing line for the product when there is one.
    Returns (line, created).
    """
    def _op():
        sale = lock_open_sale(sale_id)
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        return _add_locked(sale, product, quantity)

    return run_atomic(_op)


def add_by_barcode(sale_id: int, barcode: str, quantity: int) -> tuple[BasketLine, bool]:
    """Barcode-scan variant of add_product."""
    barcode = (barcode or "").strip()
    if not barcode:
        raise ValidationError("barcode is required")

    def _op():
        sale = lock_open_sale(sale_id)
        product = db.session.query(Product).filter_by(barcode=barcode).first()
        if not product:
            raise NotFoundError("Product not found for barcode", details={"barcode": barcode})
        return _add_locked(sale, product, quantity)

    return run_atomic(_op)


def remove_line(sale_id: int, line_id: int) -> None:
    def _op():
        lock_open_sale(sale_id)
        line = db.session.query(BasketLine).filter_by(id=line_id, sale_id=sale_id).first()
        if not line:
            raise NotFoundError("Basket line not found", details={"line_id": line_id})
        db.session.delete(line)

    run_atomic(_op)
