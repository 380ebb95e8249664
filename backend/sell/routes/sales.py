# Overview: Flask API routes for sales, baskets and end-sell; parses input and returns JSON responses.

# backend/sell/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Sale
from ..errors import ShopError
from ..services import sales_service, basket_service, settlement_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_sale,
    enforce_rules_settlement,
    require_positive_int,
    ValidationError,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"branch_id", "cashier_id", "shop_assistant_id", "payment_type"},
    required_on_create={"branch_id", "cashier_id"},
)


def _json_object() -> dict:
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def _shop_error(e: ShopError):
    current_app.logger.warning("Sale request rejected: %s %s", e.message, e.details)
    return jsonify(e.to_dict()), e.status_code


@sales_bp.post("")
def create_sale_route():
    """
    Open a new sale.

    Body: {branch_id, cashier_id, shop_assistant_id?, payment_type?}
    """
    try:
        patch = validate_payload(
            model=Sale,
            payload=request.get_json(silent=True) or {},
            policy=SALE_CREATE_POLICY,
        )
        enforce_rules_sale(patch)

        sale = sales_service.create_sale(**patch)
        return jsonify({"sale": sale.to_dict()}), 201

    except ShopError as e:
        return _shop_error(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Get sale with basket lines."""
    try:
        sale, lines = sales_service.get_sale(sale_id)
    except ShopError as e:
        return _shop_error(e)

    return jsonify({
        "sale": sale.to_dict(),
        "lines": [line.to_dict() for line in lines],
    }), 200


@sales_bp.post("/<int:sale_id>/basket")
def add_basket_line_route(sale_id: int):
    """
    Add product to the basket by id.

    Body: {product_id, quantity}
    201 when a new line was created, 200 when an existing line grew.
    """
    try:
        data = _json_object()
        product_id = require_positive_int(data, "product_id")
        quantity = require_positive_int(data, "quantity")

        line, created = basket_service.add_product(sale_id, product_id, quantity)
        return jsonify({"line": line.to_dict()}), 201 if created else 200

    except ShopError as e:
        return _shop_error(e)
    except Exception:
        current_app.logger.exception("Failed to add basket line")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/barcode")
def scan_barcode_route(sale_id: int):
    """
    Add product to the basket by barcode scan.

    Body: {barcode, count}
    """
    try:
        data = _json_object()
        barcode = data.get("barcode")
        if not isinstance(barcode, str) or not barcode.strip():
            raise ValidationError("barcode is required")
        count = require_positive_int(data, "count")

        line, created = basket_service.add_by_barcode(sale_id, barcode, count)
        return jsonify({"line": line.to_dict()}), 201 if created else 200

    except ShopError as e:
        return _shop_error(e)
    except Exception:
        current_app.logger.exception("Failed to scan barcode")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>/basket/<int:line_id>")
def remove_basket_line_route(sale_id: int, line_id: int):
    try:
        basket_service.remove_line(sale_id, line_id)
        return jsonify({"deleted": line_id}), 200

    except ShopError as e:
        return _shop_error(e)
    except Exception:
        current_app.logger.exception("Failed to remove basket line")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>/end-sell")
def end_sell_route(sale_id: int):
    """
    Settle a sale.

    Body: {status: success|cancel, payment_type?: cash|card}
    Returns the updated sale and the commission paid per staff member.
    """
    try:
        status, payment_type = enforce_rules_settlement(request.get_json(silent=True) or {})

        result = settlement_service.settle_sale(sale_id, status, payment_type)
        current_app.logger.info(
            "Sale %s settled as %s (total_price=%s, commissions=%s)",
            sale_id,
            status,
            result.sale.total_price,
            [(c.staff_id, c.commission) for c in result.commissions],
        )
        return jsonify(result.to_dict()), 200

    except ShopError as e:
        return _shop_error(e)
    except Exception:
        current_app.logger.exception("Failed to settle sale")
        return jsonify({"error": "Internal server error"}), 500
