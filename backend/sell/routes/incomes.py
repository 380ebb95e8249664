# Overview: Flask API routes for stock intake (income) documents.

"""
Income Routes

An income document collects stock received at a branch. Each product added
to it is posted to inventory immediately.
"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Income, IncomeProduct
from ..errors import ShopError
from ..services import income_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_income_product,
)


incomes_bp = Blueprint("incomes", __name__, url_prefix="/api/incomes")

INCOME_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"branch_id"},
    required_on_create={"branch_id"},
)

INCOME_PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "price", "count"},
    required_on_create={"product_id", "price", "count"},
)


@incomes_bp.post("")
def create_income_route():
    try:
        patch = validate_payload(
            model=Income,
            payload=request.get_json(silent=True) or {},
            policy=INCOME_CREATE_POLICY,
        )
        income = income_service.create_income(patch["branch_id"])
        return jsonify({"income": income.to_dict()}), 201

    except ShopError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create income")
        return jsonify({"error": "Internal server error"}), 500


@incomes_bp.get("")
def list_incomes_route():
    """
    List income documents.

    Query parameters:
    - branch_id: Filter by branch
    - limit: Maximum results (default: 100, max 500)
    - offset: Pagination offset (default: 0)
    """
    branch_id = request.args.get("branch_id", type=int)
    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
    offset = max(request.args.get("offset", 0, type=int), 0)

    incomes, count = income_service.list_incomes(branch_id, limit=limit, offset=offset)
    return jsonify({"items": [i.to_dict() for i in incomes], "count": count}), 200


@incomes_bp.get("/<int:income_id>")
def get_income_route(income_id: int):
    try:
        income, products = income_service.get_income(income_id)
    except ShopError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "income": income.to_dict(),
        "products": [p.to_dict() for p in products],
    }), 200


@incomes_bp.post("/<int:income_id>/products")
def add_income_product_route(income_id: int):
    """
    Receive a product into the income's branch.

    Body: {product_id, price, count}
    """
    try:
        patch = validate_payload(
            model=IncomeProduct,
            payload=request.get_json(silent=True) or {},
            policy=INCOME_PRODUCT_POLICY,
        )
        enforce_rules_income_product(patch)

        item = income_service.add_income_product(income_id=income_id, **patch)
        current_app.logger.info(
            "Income %s received product %s x%s", income_id, item.product_id, item.count
        )
        return jsonify({"income_product": item.to_dict()}), 201

    except ShopError as e:
        current_app.logger.warning("Income product rejected: %s %s", e.message, e.details)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add income product")
        return jsonify({"error": "Internal server error"}), 500
