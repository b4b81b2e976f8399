# backend/tabby/domain/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Dict, Optional, Tuple, Union

from tabby.domain.money import MoneyError, decimal_to_cents, to_decimal

Amount = Union[Decimal, int, float, str]

# Weights live in [1e-9, 1e10) with at most 32 significant digits
MAX_WEIGHT_EXPONENT = 9
MAX_WEIGHT_DIGITS = 32


class ValidationError(ValueError):
    """Raised when engine inputs are invalid. Nothing is computed."""


class ShareReferenceError(ValidationError):
    """Raised when an ItemShare points at an unknown item or person."""


class DegenerateInputWarning(UserWarning):
    """A split had to fall back to an equal split (nothing assigned yet)."""


class SplitMethod(str, Enum):
    PROPORTIONAL = "proportional"
    EQUAL = "equal"

    @classmethod
    def parse(cls, value: object) -> "SplitMethod":
        if isinstance(value, SplitMethod):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key == "even":
                return cls.EQUAL
            for method in cls:
                if method.value == key:
                    return method
        raise ValidationError(f"unknown split method: {value!r}")


def _require_id(value: object, label: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} must be a non-empty string")


def _amount_to_cents(value: object, label: str) -> int:
    try:
        return decimal_to_cents(value, allow_negative=False)
    except MoneyError as e:
        raise ValidationError(f"{label}: {e}") from e


@dataclass(frozen=True)
class Item:
    """
    A receipt line item. unit_price is in major units (dollars).
    """
    id: str
    label: str
    unit_price: Amount
    quantity: int = 1

    def __post_init__(self) -> None:
        _require_id(self.id, "Item.id")
        if not isinstance(self.label, str):
            raise ValidationError("Item.label must be a string")
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool) or self.quantity < 1:
            raise ValidationError("Item.quantity must be an int >= 1")
        _amount_to_cents(self.unit_price, "Item.unit_price")

    @property
    def unit_price_cents(self) -> int:
        return _amount_to_cents(self.unit_price, "Item.unit_price")

    @property
    def price_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class Person:
    id: str
    name: str

    def __post_init__(self) -> None:
        _require_id(self.id, "Person.id")
        if not isinstance(self.name, str):
            raise ValidationError("Person.name must be a string")


@dataclass(frozen=True)
class ItemShare:
    """
    Relative ownership of an item. Weights are normalized per item, so
    (1, 1) is a 50/50 split and (2, 1) is 2/3 vs 1/3.
    """
    item_id: str
    person_id: str
    weight: Amount = 1

    def __post_init__(self) -> None:
        _require_id(self.item_id, "ItemShare.item_id")
        _require_id(self.person_id, "ItemShare.person_id")
        self.weight_fraction  # raises on a bad weight

    @property
    def weight_fraction(self) -> Fraction:
        try:
            d = to_decimal(self.weight)
        except MoneyError as e:
            raise ValidationError(
                f"weight for item {self.item_id} / person {self.person_id} must be a finite number"
            ) from e
        if d <= 0:
            raise ValidationError(
                f"weight for item {self.item_id} / person {self.person_id} must be > 0"
            )
        if abs(d.adjusted()) > MAX_WEIGHT_EXPONENT or len(d.as_tuple().digits) > MAX_WEIGHT_DIGITS:
            raise ValidationError(
                f"weight for item {self.item_id} / person {self.person_id} is out of range"
            )
        return Fraction(d)


@dataclass(frozen=True)
class BillConfig:
    """
    Bill-level charges in major units plus the split policy for each.
    All charges are absolute amounts; proportional splits weight them by
    each person's pre-discount item subtotal.
    """
    tax: Amount = 0
    tip: Amount = 0
    discount: Amount = 0
    service_fee: Amount = 0
    tax_split_method: SplitMethod = SplitMethod.PROPORTIONAL
    tip_split_method: SplitMethod = SplitMethod.PROPORTIONAL
    discount_split_method: SplitMethod = SplitMethod.PROPORTIONAL
    service_fee_split_method: SplitMethod = SplitMethod.PROPORTIONAL
    include_zero_item_people: bool = True

    def __post_init__(self) -> None:
        for name in ("tax", "tip", "discount", "service_fee"):
            _amount_to_cents(getattr(self, name), f"BillConfig.{name}")
        for name in (
            "tax_split_method",
            "tip_split_method",
            "discount_split_method",
            "service_fee_split_method",
        ):
            if not isinstance(getattr(self, name), SplitMethod):
                raise ValidationError(f"BillConfig.{name} must be a SplitMethod")
        if not isinstance(self.include_zero_item_people, bool):
            raise ValidationError("BillConfig.include_zero_item_people must be a bool")

    def charge_cents(self, name: str) -> int:
        return _amount_to_cents(getattr(self, name), f"BillConfig.{name}")

    def split_method(self, name: str) -> SplitMethod:
        return getattr(self, f"{name}_split_method")


@dataclass(frozen=True)
class PersonTotal:
    """
    One person's reconciled share, all in integer cents.
    discount_share is a positive amount that is subtracted in total.
    """
    person_id: str
    name: str
    subtotal: int
    tax_share: int
    tip_share: int
    discount_share: int
    service_fee_share: int
    total: int


@dataclass(frozen=True)
class PennyReconciliation:
    distributed: int
    method: str = "largest_remainder"


@dataclass(frozen=True)
class BillTotals:
    """
    Output of compute_totals. All amounts are integer cents.

    subtotal counts assigned items only; unassigned items are reported in
    unassigned_subtotal and never enter a split.
    discount is the applied (possibly clamped) discount.
    negative_person_ids lists people whose total went below zero, which only
    an equal discount can cause.
    """
    subtotal: int
    tax: int
    tip: int
    discount: int
    service_fee: int
    total: int
    person_totals: Tuple[PersonTotal, ...]
    unassigned_subtotal: int = 0
    unassigned_item_ids: Tuple[str, ...] = ()
    discount_clamped: bool = False
    degenerate_splits: Tuple[str, ...] = ()
    negative_person_ids: Tuple[str, ...] = ()
    penny_reconciliation: PennyReconciliation = PennyReconciliation(distributed=0)
    breakdown_by_item_id: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def item_total(self) -> int:
        return self.subtotal + self.unassigned_subtotal

    def person(self, person_id: str) -> Optional[PersonTotal]:
        for pt in self.person_totals:
            if pt.person_id == person_id:
                return pt
        return None
