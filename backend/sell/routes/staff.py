# Overview: Flask API routes for staff balances and financial transactions.

from flask import Blueprint, request, jsonify, current_app

from ..models import FinancialTransaction
from ..errors import ShopError
from ..services import staff_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_staff_transaction,
)


staff_bp = Blueprint("staff", __name__, url_prefix="/api")

STAFF_TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"transaction_type", "amount", "source_type", "description", "sale_id"},
    required_on_create={"transaction_type", "amount"},
)


@staff_bp.get("/staff/<int:staff_id>")
def get_staff_route(staff_id: int):
    try:
        staff = staff_service.get_staff(staff_id)
    except ShopError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"staff": staff.to_dict()}), 200


@staff_bp.post("/staff/<int:staff_id>/transactions")
def create_staff_transaction_route(staff_id: int):
    """
    Top up or withdraw from a staff balance.

    Body: {transaction_type: topup|withdraw, amount, source_type?, description?, sale_id?}
    """
    try:
        patch = validate_payload(
            model=FinancialTransaction,
            payload=request.get_json(silent=True) or {},
            policy=STAFF_TRANSACTION_POLICY,
        )
        patch.setdefault("source_type", "manual")
        enforce_rules_staff_transaction(patch)

        tx, staff = staff_service.create_transaction(staff_id=staff_id, **patch)
        current_app.logger.info(
            "Staff %s %s %s (balance=%s)", staff_id, tx.transaction_type, tx.amount, staff.balance
        )
        return jsonify({"transaction": tx.to_dict(), "staff": staff.to_dict()}), 201

    except ShopError as e:
        current_app.logger.warning("Staff transaction rejected: %s %s", e.message, e.details)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create staff transaction")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.get("/transactions")
def list_transactions_route():
    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
    offset = max(request.args.get("offset", 0, type=int), 0)

    transactions, count = staff_service.list_transactions(
        sale_id=request.args.get("sale_id", type=int),
        staff_id=request.args.get("staff_id", type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": [t.to_dict() for t in transactions], "count": count}), 200
