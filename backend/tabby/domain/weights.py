# backend/tabby/domain/weights.py
from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from tabby.domain.models import Item, ItemShare, ShareReferenceError, ValidationError


@dataclass(frozen=True)
class NormalizedShares:
    """
    Per-item ownership fractions.

    fractions_by_item_id maps item_id -> ((person_id, fraction), ...) in the
    order the owners first appeared in the shares list. Fractions for an item
    sum to exactly 1. Items nobody owns are listed in unassigned_item_ids
    (input order).
    """
    fractions_by_item_id: Dict[str, Tuple[Tuple[str, Fraction], ...]]
    unassigned_item_ids: Tuple[str, ...]


def normalize_weights(items: Sequence[Item], shares: Sequence[ItemShare]) -> NormalizedShares:
    """
    fraction(item, person) = weight / sum(weights recorded against item).

    Repeated (item, person) pairs add their weights. Raises ValidationError
    for a non-positive or non-finite weight and ShareReferenceError for a
    share that names an unknown item.
    """
    item_ids = [it.id for it in items]
    known = set(item_ids)

    weights: Dict[str, Dict[str, Fraction]] = {}
    for share in shares:
        if share.item_id not in known:
            raise ShareReferenceError(f"share references unknown item id: {share.item_id}")
        w = share.weight_fraction
        per_item = weights.setdefault(share.item_id, {})
        per_item[share.person_id] = per_item.get(share.person_id, Fraction(0)) + w

    fractions: Dict[str, Tuple[Tuple[str, Fraction], ...]] = {}
    unassigned: List[str] = []
    for iid in item_ids:
        per_item = weights.get(iid)
        if not per_item:
            unassigned.append(iid)
            continue
        total = sum(per_item.values(), Fraction(0))
        fractions[iid] = tuple((pid, w / total) for pid, w in per_item.items())

    return NormalizedShares(fractions_by_item_id=fractions, unassigned_item_ids=tuple(unassigned))


def _claimed_item_id(entry: object) -> Optional[str]:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, Mapping):
        iid = entry.get("id")
        return iid if isinstance(iid, str) else None
    iid = getattr(entry, "id", None)
    return iid if isinstance(iid, str) else None


def build_shares_from_people_items(
    items: Iterable[object],
    people: Iterable[object],
) -> List[ItemShare]:
    """
    Convert the "person -> claimed item ids" model into ItemShares.

    Each person (mapping or object) carries `id` and an optional `items`
    list of item ids or `{"id": ...}` objects. An item claimed by N people
    gets weight 1/N for each of them. Claims on unknown items are skipped.
    """
    def _get(obj: object, key: str):
        if isinstance(obj, Mapping):
            return obj.get(key)
        return getattr(obj, key, None)

    known = {_get(it, "id") for it in items}

    claims: List[Tuple[str, str]] = []
    for person in people:
        pid = _get(person, "id")
        if not isinstance(pid, str):
            raise ValidationError("each person must have a string 'id'")
        claimed = _get(person, "items")
        if claimed is None:
            continue
        if not isinstance(claimed, (list, tuple)):
            raise ValidationError(f"items claimed by person {pid} must be a list")
        for entry in claimed:
            iid = _claimed_item_id(entry)
            if iid is None or iid not in known:
                continue
            claims.append((iid, pid))

    counts: Dict[str, int] = {}
    for iid, _pid in claims:
        counts[iid] = counts.get(iid, 0) + 1

    return [
        ItemShare(item_id=iid, person_id=pid, weight=1 if counts[iid] == 1 else 1 / counts[iid])
        for iid, pid in claims
    ]
