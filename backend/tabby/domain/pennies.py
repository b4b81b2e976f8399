# backend/tabby/domain/pennies.py
from __future__ import annotations

import math
from fractions import Fraction
from typing import List, Optional, Sequence, Tuple, Union

Exact = Union[Fraction, int]


class ReconciliationError(ValueError):
    """Raised when exact amounts cannot be reconciled to the target."""


def reconcile_pennies(
    exact_cents: Sequence[Exact],
    target_cents: int,
    *,
    caps: Optional[Sequence[int]] = None,
) -> Tuple[int, ...]:
    """
    Round exact cent amounts to integers that sum to target_cents
    (largest-remainder / Hamilton method).

      1. floor every amount, keep the fractional remainder
      2. deficit = target - sum(floors)
      3. order by remainder descending, ties by input position
      4. the first `deficit` entries get one extra cent

    The exact amounts must already sum to target_cents, so the deficit is
    always in [0, len(exact_cents)). Output order matches input order.

    With `caps`, no entry may end above its cap: an entry already at its cap
    is skipped and the cent goes to the next one in remainder order. The
    floors must fit under the caps and the caps must cover the target.
    """
    if not isinstance(target_cents, int) or isinstance(target_cents, bool):
        raise ReconciliationError("target_cents must be an int")

    amounts = [Fraction(a) for a in exact_cents]
    if not amounts:
        if target_cents != 0:
            raise ReconciliationError("cannot distribute a non-zero target across nobody")
        return ()

    if sum(amounts, Fraction(0)) != target_cents:
        raise ReconciliationError("exact amounts do not sum to the target")

    floors = [math.floor(a) for a in amounts]
    remainders = [a - f for a, f in zip(amounts, floors)]
    deficit = target_cents - sum(floors)

    # Safety: floor <= value, and the remainders are each < 1
    if deficit < 0 or deficit > len(amounts):
        raise ReconciliationError("internal error: deficit out of range")

    order = sorted(range(len(amounts)), key=lambda i: (-remainders[i], i))
    result: List[int] = list(floors)

    if caps is None:
        for idx in order[:deficit]:
            result[idx] += 1
    else:
        limits = list(caps)
        if len(limits) != len(amounts):
            raise ReconciliationError("caps must match the amounts one to one")
        if any(f > cap for f, cap in zip(floors, limits)):
            raise ReconciliationError("an amount is already above its cap")
        if sum(limits) < target_cents:
            raise ReconciliationError("caps do not leave room for the target")
        while deficit > 0:
            for idx in order:
                if deficit == 0:
                    break
                if result[idx] < limits[idx]:
                    result[idx] += 1
                    deficit -= 1

    if sum(result) != target_cents:
        raise ReconciliationError("internal error: reconciled amounts do not sum to target")
    return tuple(result)


def distributed_pennies(exact_cents: Sequence[Exact], reconciled: Sequence[int]) -> int:
    """Number of cents handed out on top of the floors."""
    return sum(r - math.floor(Fraction(a)) for a, r in zip(exact_cents, reconciled, strict=True))
