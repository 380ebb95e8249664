from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ShopError


# Maximum price: 999,999,999 minor units
# This prevents database overflow issues and nonsensical prices
MAX_PRICE = 999_999_999

SETTLEMENT_STATUSES = {"success", "cancel"}
PAYMENT_TYPES = {"cash", "card"}
TRANSACTION_TYPES = {"topup", "withdraw"}
SOURCE_TYPES = {"sales", "bonus", "manual"}


class ValidationError(ShopError, ValueError):
    """400-level input problem."""
    status_code = 400


class InsufficientFundsError(ValidationError):
    """Withdraw would take a staff balance below zero."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects floats, bools and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_positive_int(payload: dict, field: str) -> int:
    if field not in payload or payload[field] is None:
        raise ValidationError(f"{field} is required")
    value = coerce_int(payload[field], field)
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return value


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool = False,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _enforce_choice(patch: dict, field: str, choices: set[str]) -> None:
    if field in patch and patch[field] is not None:
        value = str(patch[field]).lower()
        if value not in choices:
            raise ValidationError(f"{field} must be one of: {', '.join(sorted(choices))}")
        patch[field] = value


def _enforce_price(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        price = patch[field]
        if price < 0:
            raise ValidationError(f"{field} must be >= 0")
        if price > MAX_PRICE:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")


def enforce_rules_sale(patch: dict) -> None:
    _enforce_choice(patch, "payment_type", PAYMENT_TYPES)
    shop_assistant_id = patch.get("shop_assistant_id")
    if shop_assistant_id is not None and shop_assistant_id == patch.get("cashier_id"):
        raise ValidationError("shop_assistant_id must differ from cashier_id")


def enforce_rules_settlement(payload: dict) -> tuple[str, str | None]:
    """Returns (requested_status, payment_type) from an end-sell body."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    status = payload.get("status")
    if not status:
        raise ValidationError("status is required")
    patch = {"status": status, "payment_type": payload.get("payment_type")}
    _enforce_choice(patch, "status", SETTLEMENT_STATUSES)
    _enforce_choice(patch, "payment_type", PAYMENT_TYPES)
    return patch["status"], patch["payment_type"]


def enforce_rules_income_product(patch: dict) -> None:
    # Income requires count > 0 and a non-negative price
    if patch.get("count") is None or patch["count"] <= 0:
        raise ValidationError("count must be > 0")
    _enforce_price(patch, "price")


def enforce_rules_staff_transaction(patch: dict) -> None:
    _enforce_choice(patch, "transaction_type", TRANSACTION_TYPES)
    _enforce_choice(patch, "source_type", SOURCE_TYPES)
    if patch.get("amount") is None or patch["amount"] <= 0:
        raise ValidationError("amount must be > 0")
    _enforce_price(patch, "amount")
