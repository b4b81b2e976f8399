# backend/tabby/domain/split_strategy.py
from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, List, Mapping, Sequence

from tabby.domain.models import SplitMethod, ValidationError


@dataclass(frozen=True)
class ChargeSplit:
    """
    Exact (unrounded) cents of one bill-level charge per person, in people
    order. `fell_back` is set when a proportional split had no subtotal to
    weight by, or nobody was eligible, and an equal split was used instead.
    """
    charge_cents: int
    method: SplitMethod
    exact_by_person_id: Dict[str, Fraction]
    fell_back: bool = False


def eligible_people(
    person_ids: Sequence[str],
    subtotals: Mapping[str, Fraction],
    include_zero_item_people: bool,
) -> List[str]:
    if include_zero_item_people:
        return list(person_ids)
    return [pid for pid in person_ids if subtotals.get(pid, 0) > 0]


def _equal(charge_cents: int, person_ids: Sequence[str], among: Sequence[str]) -> Dict[str, Fraction]:
    chosen = set(among)
    each = Fraction(charge_cents, len(among))
    return {pid: each if pid in chosen else Fraction(0) for pid in person_ids}


def split_charge(
    charge_cents: int,
    method: SplitMethod,
    person_ids: Sequence[str],
    subtotals: Mapping[str, Fraction],
    subtotal_cents: int,
    *,
    include_zero_item_people: bool,
) -> ChargeSplit:
    """
    Distribute a charge across people.

    proportional: charge * person_subtotal / subtotal
    equal:        charge / count(eligible)

    A zero subtotal turns proportional into equal. When nobody is eligible
    (nothing assigned and zero-item people excluded) everyone present shares
    the charge equally.
    """
    if charge_cents < 0:
        raise ValidationError("charge must be >= 0")

    if charge_cents == 0:
        return ChargeSplit(
            charge_cents=0,
            method=method,
            exact_by_person_id={pid: Fraction(0) for pid in person_ids},
        )

    if not person_ids:
        raise ValidationError("people must not be empty when there is a charge to split")

    fell_back = False
    eligible = eligible_people(person_ids, subtotals, include_zero_item_people)
    if not eligible:
        eligible = list(person_ids)
        fell_back = True

    if method is SplitMethod.PROPORTIONAL and subtotal_cents > 0:
        exact = {
            pid: Fraction(charge_cents) * subtotals.get(pid, Fraction(0)) / subtotal_cents
            for pid in person_ids
        }
    elif method is SplitMethod.PROPORTIONAL:
        exact = _equal(charge_cents, person_ids, eligible)
        fell_back = True
    else:
        exact = _equal(charge_cents, person_ids, eligible)

    return ChargeSplit(
        charge_cents=charge_cents,
        method=method,
        exact_by_person_id=exact,
        fell_back=fell_back,
    )
