from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from tabby.api.validators import ApiValidationError, parse_calculate_request
from tabby.domain.models import BillTotals, PersonTotal, ShareReferenceError, ValidationError
from tabby.domain.money import cents_to_str
from tabby.domain.totals import compute_totals, validate_bill_totals
from tabby.logging import get_logger

api_bp = Blueprint("api", __name__, url_prefix="/api")

log = get_logger(__name__)


def _json_error(message: str, *, status: int = 400, code: str = "bad_request"):
    return jsonify({"error": {"code": code, "message": message}}), status


def _person_json(pt: PersonTotal, symbol: str) -> Dict[str, Any]:
    return {
        "person_id": pt.person_id,
        "name": pt.name,
        "subtotal_cents": pt.subtotal,
        "tax_share_cents": pt.tax_share,
        "tip_share_cents": pt.tip_share,
        "discount_share_cents": pt.discount_share,
        "service_fee_share_cents": pt.service_fee_share,
        "total_cents": pt.total,
        "total_display": cents_to_str(pt.total, symbol=symbol),
    }


def totals_to_json(totals: BillTotals, *, currency: str = "USD", symbol: str = "$") -> Dict[str, Any]:
    return {
        "currency": currency,
        "subtotal_cents": totals.subtotal,
        "tax_cents": totals.tax,
        "tip_cents": totals.tip,
        "discount_cents": totals.discount,
        "service_fee_cents": totals.service_fee,
        "total_cents": totals.total,
        "total_display": cents_to_str(totals.total, symbol=symbol),
        "unassigned_subtotal_cents": totals.unassigned_subtotal,
        "unassigned_item_ids": list(totals.unassigned_item_ids),
        "discount_clamped": totals.discount_clamped,
        "degenerate_splits": list(totals.degenerate_splits),
        "negative_person_ids": list(totals.negative_person_ids),
        "penny_reconciliation": {
            "distributed": totals.penny_reconciliation.distributed,
            "method": totals.penny_reconciliation.method,
        },
        "person_totals": [_person_json(pt, symbol) for pt in totals.person_totals],
        "breakdown_by_item_id": totals.breakdown_by_item_id,
    }


@api_bp.get("/health")
def health():
    return jsonify({"status": "ok"}), 200


@api_bp.post("/calculate")
def calculate_endpoint():
    """
    JSON body:
      - items: [{id, label, unit_price, quantity}]
      - people: [{id, name, items?}]
      - shares: [{item_id, person_id, weight}] (optional; else people[].items)
      - config: {tax, tip, discount, service_fee, *_split_method, include_zero_item_people}
    Response: bill and per-person totals in integer cents.
    """
    data = request.get_json(silent=True)
    if data is None:
        return _json_error("Request body must be JSON.", status=400)

    try:
        req = parse_calculate_request(data)
    except ApiValidationError as e:
        log.info("calculate.rejected", reason=str(e))
        return _json_error(str(e), status=400)
    except ValidationError as e:
        log.info("calculate.invalid", reason=str(e))
        return _json_error(str(e), status=422, code="validation_failed")

    try:
        totals = compute_totals(req.items, req.shares, req.people, req.config)
    except ShareReferenceError as e:
        log.info("calculate.unknown_reference", reason=str(e))
        return _json_error(str(e), status=422, code="unknown_reference")
    except ValidationError as e:
        log.info("calculate.invalid", reason=str(e))
        return _json_error(str(e), status=422, code="validation_failed")

    check = validate_bill_totals(totals)
    if not check.valid:
        log.error("calculate.internal_mismatch", reason=check.error)
        return _json_error("Internal error: totals do not reconcile.", status=500, code="internal_mismatch")

    return jsonify(
        totals_to_json(
            totals,
            currency=current_app.config.get("CURRENCY", "USD"),
            symbol=current_app.config.get("CURRENCY_SYMBOL", "$"),
        )
    ), 200
