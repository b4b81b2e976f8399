# backend/tabby/domain/allocation.py
from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Sequence

from tabby.domain.models import Item, Person
from tabby.domain.pennies import reconcile_pennies
from tabby.domain.weights import NormalizedShares


@dataclass(frozen=True)
class ItemAllocation:
    """
    Exact item value owned by each person, in cents.

    subtotals_by_person_id holds unrounded Fractions keyed in people order
    (everyone present, zero if they own nothing). subtotal_cents is the sum of
    assigned item prices and always equals the sum of those fractions.
    breakdown_by_item_id is the per-item view, penny-reconciled per item.
    """
    subtotals_by_person_id: Dict[str, Fraction]
    subtotal_cents: int
    unassigned_subtotal_cents: int
    breakdown_by_item_id: Dict[str, Dict[str, int]]


def allocate_items(
    items: Sequence[Item],
    people: Sequence[Person],
    normalized: NormalizedShares,
) -> ItemAllocation:
    subtotals: Dict[str, Fraction] = {p.id: Fraction(0) for p in people}
    breakdown: Dict[str, Dict[str, int]] = {}
    assigned = 0
    unassigned = 0

    for item in items:
        price = item.price_cents
        owners = normalized.fractions_by_item_id.get(item.id)
        if not owners:
            unassigned += price
            continue

        assigned += price
        exact = [frac * price for _pid, frac in owners]
        for (pid, _frac), amount in zip(owners, exact, strict=True):
            subtotals[pid] += amount

        per_item = reconcile_pennies(exact, price)
        breakdown[item.id] = {pid: cents for (pid, _frac), cents in zip(owners, per_item, strict=True)}

    return ItemAllocation(
        subtotals_by_person_id=subtotals,
        subtotal_cents=assigned,
        unassigned_subtotal_cents=unassigned,
        breakdown_by_item_id=breakdown,
    )
