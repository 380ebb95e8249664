# Overview: Domain error kinds shared by services and routes.

from __future__ import annotations


class ShopError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class NotFoundError(ShopError):
    """Sale, product, staff, tariff or income does not exist."""
    status_code = 404


class InvalidStateError(ShopError):
    """Sale is not open (already settled or cancelled)."""
    status_code = 409


class InsufficientStockError(ShopError):
    """Requested quantity exceeds inventory on hand."""
    status_code = 409


class PersistenceError(ShopError):
    """Storage failure; the unit of work was rolled back."""
    status_code = 500
