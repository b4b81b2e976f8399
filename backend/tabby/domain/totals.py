# backend/tabby/domain/totals.py
from __future__ import annotations

import warnings
from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, List, Optional, Sequence

from tabby.domain.allocation import allocate_items
from tabby.domain.models import (
    BillConfig,
    BillTotals,
    DegenerateInputWarning,
    Item,
    ItemShare,
    PennyReconciliation,
    Person,
    PersonTotal,
    ShareReferenceError,
    SplitMethod,
    ValidationError,
)
from tabby.domain.pennies import distributed_pennies, reconcile_pennies
from tabby.domain.split_strategy import ChargeSplit, split_charge
from tabby.domain.weights import normalize_weights
from tabby.logging import get_logger

log = get_logger(__name__)

# Order matters only for reporting; each charge is split independently.
CHARGES = ("tax", "tip", "discount", "service_fee")


def _validate_inputs(
    items: Sequence[Item],
    shares: Sequence[ItemShare],
    people: Sequence[Person],
    config: BillConfig,
) -> None:
    if not isinstance(config, BillConfig):
        raise ValidationError("config must be a BillConfig")

    for it in items:
        if not isinstance(it, Item):
            raise ValidationError("items must contain Item objects")
    for p in people:
        if not isinstance(p, Person):
            raise ValidationError("people must contain Person objects")
    for s in shares:
        if not isinstance(s, ItemShare):
            raise ValidationError("shares must contain ItemShare objects")

    iids = [it.id for it in items]
    if len(set(iids)) != len(iids):
        raise ValidationError("item ids must be unique")

    pids = [p.id for p in people]
    if len(set(pids)) != len(pids):
        raise ValidationError("person ids must be unique")

    iid_set = set(iids)
    pid_set = set(pids)
    for s in shares:
        if s.item_id not in iid_set:
            raise ShareReferenceError(f"share references unknown item id: {s.item_id}")
        if s.person_id not in pid_set:
            raise ShareReferenceError(f"share references unknown person id: {s.person_id}")

    if not people and any(config.charge_cents(name) > 0 for name in ("tax", "tip", "service_fee")):
        raise ValidationError("people must not be empty when there is a charge to split")


def compute_totals(
    items: Sequence[Item],
    shares: Sequence[ItemShare],
    people: Sequence[Person],
    config: BillConfig,
) -> BillTotals:
    """
    Turn items, ownership weights and bill-level charges into penny-exact
    per-person totals.

    Pipeline: normalize weights -> allocate item value -> split each charge
    -> reconcile each component to whole cents -> assemble.

    Guarantees (integer cents):
      sum(person.subtotal) == subtotal
      sum(person.total) == total

    The discount is capped at the assigned subtotal, so the bill total is
    never negative. Proportional splits weight by the pre-discount subtotal.
    Raises ValidationError / ShareReferenceError before any rounding happens.
    """
    items = list(items)
    shares = list(shares)
    people = list(people)

    _validate_inputs(items, shares, people, config)

    normalized = normalize_weights(items, shares)
    allocation = allocate_items(items, people, normalized)
    subtotal_cents = allocation.subtotal_cents
    subtotals = allocation.subtotals_by_person_id
    person_ids = [p.id for p in people]

    requested_discount = config.charge_cents("discount")
    applied_discount = min(requested_discount, subtotal_cents)
    discount_clamped = applied_discount < requested_discount
    if discount_clamped:
        log.warning(
            "totals.discount_clamped",
            requested_cents=requested_discount,
            applied_cents=applied_discount,
        )

    charge_cents = {
        "tax": config.charge_cents("tax"),
        "tip": config.charge_cents("tip"),
        "discount": applied_discount,
        "service_fee": config.charge_cents("service_fee"),
    }

    splits: Dict[str, ChargeSplit] = {}
    for name in CHARGES:
        splits[name] = split_charge(
            charge_cents[name],
            config.split_method(name),
            person_ids,
            subtotals,
            subtotal_cents,
            include_zero_item_people=config.include_zero_item_people,
        )

    degenerate = tuple(name for name in CHARGES if splits[name].fell_back)
    for name in degenerate:
        log.warning("totals.degenerate_split", charge=name, method=splits[name].method.value)
        warnings.warn(
            f"{name} fell back to an equal split (nothing assigned to weight by)",
            DegenerateInputWarning,
            stacklevel=2,
        )

    exact_subtotals = [subtotals[pid] for pid in person_ids]
    rounded_subtotals = reconcile_pennies(exact_subtotals, subtotal_cents)
    distributed = distributed_pennies(exact_subtotals, rounded_subtotals)

    # A proportional discount never exceeds the exact subtotal, so its cents
    # are capped at the rounded subtotal to keep every total non-negative.
    discount_split = splits["discount"]
    cap_discount = discount_split.method is SplitMethod.PROPORTIONAL and not discount_split.fell_back

    rounded: Dict[str, Sequence[int]] = {}
    for name in CHARGES:
        exact: List[Fraction] = [splits[name].exact_by_person_id[pid] for pid in person_ids]
        caps = rounded_subtotals if name == "discount" and cap_discount else None
        rounded[name] = reconcile_pennies(exact, charge_cents[name], caps=caps)
        distributed += distributed_pennies(exact, rounded[name])

    person_totals = []
    for idx, person in enumerate(people):
        sub = rounded_subtotals[idx]
        tax = rounded["tax"][idx]
        tip = rounded["tip"][idx]
        disc = rounded["discount"][idx]
        fee = rounded["service_fee"][idx]
        person_totals.append(
            PersonTotal(
                person_id=person.id,
                name=person.name,
                subtotal=sub,
                tax_share=tax,
                tip_share=tip,
                discount_share=disc,
                service_fee_share=fee,
                total=sub + tax + tip + fee - disc,
            )
        )

    negative = tuple(pt.person_id for pt in person_totals if pt.total < 0)
    if negative:
        log.warning("totals.negative_person_totals", person_ids=list(negative))

    total = (
        subtotal_cents
        + charge_cents["tax"]
        + charge_cents["tip"]
        + charge_cents["service_fee"]
        - applied_discount
    )

    result = BillTotals(
        subtotal=subtotal_cents,
        tax=charge_cents["tax"],
        tip=charge_cents["tip"],
        discount=applied_discount,
        service_fee=charge_cents["service_fee"],
        total=total,
        person_totals=tuple(person_totals),
        unassigned_subtotal=allocation.unassigned_subtotal_cents,
        unassigned_item_ids=normalized.unassigned_item_ids,
        discount_clamped=discount_clamped,
        degenerate_splits=degenerate,
        negative_person_ids=negative,
        penny_reconciliation=PennyReconciliation(distributed=distributed),
        breakdown_by_item_id=allocation.breakdown_by_item_id,
    )

    log.debug(
        "totals.computed",
        items=len(items),
        people=len(people),
        total_cents=total,
        pennies_distributed=distributed,
    )
    return result


@dataclass(frozen=True)
class TotalsCheck:
    valid: bool
    error: Optional[str] = None


def validate_bill_totals(totals: BillTotals) -> TotalsCheck:
    """
    Re-check the conservation invariants on a (possibly deserialised) result.
    """
    people = totals.person_totals

    if sum(p.subtotal for p in people) != totals.subtotal:
        return TotalsCheck(False, "person subtotals do not sum to the bill subtotal")

    for field_name, bill_value in (
        ("tax_share", totals.tax),
        ("tip_share", totals.tip),
        ("discount_share", totals.discount),
        ("service_fee_share", totals.service_fee),
    ):
        if people and sum(getattr(p, field_name) for p in people) != bill_value:
            return TotalsCheck(False, f"person {field_name} values do not sum to the bill amount")

    for p in people:
        expected = p.subtotal + p.tax_share + p.tip_share + p.service_fee_share - p.discount_share
        if p.total != expected:
            return TotalsCheck(False, f"total for person {p.person_id} does not add up")

    expected_total = totals.subtotal + totals.tax + totals.tip + totals.service_fee - totals.discount
    if totals.total != expected_total:
        return TotalsCheck(False, "bill total does not add up")

    if people and sum(p.total for p in people) != totals.total:
        return TotalsCheck(False, "person totals do not sum to the bill total")

    return TotalsCheck(True)


def get_person_total(totals: Optional[BillTotals], person_id: str) -> int:
    """A person's total in cents, or 0 if unknown."""
    if totals is None:
        return 0
    pt = totals.person(person_id)
    return pt.total if pt is not None else 0


def get_person_breakdown(totals: Optional[BillTotals], person_id: str) -> Optional[PersonTotal]:
    if totals is None:
        return None
    return totals.person(person_id)
