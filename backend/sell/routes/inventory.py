# backend/sell/routes/inventory.py
"""
Inventory read routes.

Stock changes only through income postings and sale settlement; these
endpoints expose the current records and the append-only ledger.
"""
from flask import Blueprint, request, jsonify

from ..services import inventory_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
def list_inventory_route():
    """
    Query parameters:
    - branch_id: Filter by branch
    - product_id: Filter by product
    """
    records = inventory_service.list_records(
        branch_id=request.args.get("branch_id", type=int),
        product_id=request.args.get("product_id", type=int),
    )
    return jsonify({"items": [r.to_dict() for r in records], "count": len(records)}), 200


@inventory_bp.get("/ledger")
def list_ledger_route():
    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
    offset = max(request.args.get("offset", 0, type=int), 0)

    entries, count = inventory_service.list_ledger_entries(
        product_id=request.args.get("product_id", type=int),
        branch_id=request.args.get("branch_id", type=int),
        sale_id=request.args.get("sale_id", type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": [e.to_dict() for e in entries], "count": count}), 200
