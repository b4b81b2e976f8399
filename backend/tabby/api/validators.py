from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from tabby.domain.models import BillConfig, Item, ItemShare, Person, SplitMethod, ValidationError
from tabby.domain.weights import build_shares_from_people_items


class ApiValidationError(ValueError):
    """Raised when request payload validation fails."""


@dataclass(frozen=True)
class CalculateRequest:
    items: List[Item]
    people: List[Person]
    shares: List[ItemShare]
    config: BillConfig


def _is_number_like(value: object) -> bool:
    return isinstance(value, (int, float, str)) and not isinstance(value, bool)


def parse_items(raw_items: object) -> List[Item]:
    if not isinstance(raw_items, list):
        raise ApiValidationError("'items' must be a list.")

    items: List[Item] = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ApiValidationError(f"Item at index {idx} must be an object.")

        iid = raw.get("id")
        if not isinstance(iid, str) or not iid.strip():
            raise ApiValidationError(f"Item at index {idx} must include a non-empty 'id'.")

        label = raw.get("label", raw.get("name", "Item"))
        if not isinstance(label, str):
            raise ApiValidationError(f"Item at index {idx} has a non-string 'label'.")

        unit_price = raw.get("unit_price", raw.get("price"))
        if not _is_number_like(unit_price):
            raise ApiValidationError(
                f"Item at index {idx} must include 'unit_price' as a number or decimal string."
            )

        quantity = raw.get("quantity", 1)
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise ApiValidationError(f"Item at index {idx} must have an integer 'quantity'.")

        items.append(Item(id=iid, label=label.strip(), unit_price=unit_price, quantity=quantity))

    return items


def parse_people(raw_people: object) -> List[Person]:
    if not isinstance(raw_people, list):
        raise ApiValidationError("'people' must be a list.")

    people: List[Person] = []
    for idx, raw in enumerate(raw_people):
        if not isinstance(raw, dict):
            raise ApiValidationError(f"Person at index {idx} must be an object.")
        pid = raw.get("id")
        if not isinstance(pid, str) or not pid.strip():
            raise ApiValidationError(f"Person at index {idx} must include a non-empty 'id'.")
        name = raw.get("name", "")
        if not isinstance(name, str):
            raise ApiValidationError(f"Person at index {idx} has a non-string 'name'.")
        claimed = raw.get("items")
        if claimed is not None and not isinstance(claimed, list):
            raise ApiValidationError(f"Person at index {idx} must have 'items' as a list.")
        people.append(Person(id=pid, name=name.strip()))

    return people


def parse_shares(raw_shares: object) -> List[ItemShare]:
    if not isinstance(raw_shares, list):
        raise ApiValidationError("'shares' must be a list.")

    shares: List[ItemShare] = []
    for idx, raw in enumerate(raw_shares):
        if not isinstance(raw, dict):
            raise ApiValidationError(f"Share at index {idx} must be an object.")
        item_id = raw.get("item_id")
        person_id = raw.get("person_id")
        if not isinstance(item_id, str) or not isinstance(person_id, str):
            raise ApiValidationError(
                f"Share at index {idx} must include string 'item_id' and 'person_id'."
            )
        weight = raw.get("weight", 1)
        if not _is_number_like(weight):
            raise ApiValidationError(f"Share at index {idx} must have a numeric 'weight'.")
        shares.append(ItemShare(item_id=item_id, person_id=person_id, weight=weight))

    return shares


def parse_config(raw_config: object) -> BillConfig:
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ApiValidationError("'config' must be an object.")

    kwargs: Dict[str, Any] = {}
    for name in ("tax", "tip", "discount", "service_fee"):
        value = raw_config.get(name, 0)
        if value is None:
            value = 0
        if not _is_number_like(value):
            raise ApiValidationError(f"'config.{name}' must be a number or decimal string.")
        kwargs[name] = value

    for name in ("tax", "tip", "discount", "service_fee"):
        key = f"{name}_split_method"
        if key in raw_config and raw_config[key] is not None:
            kwargs[key] = SplitMethod.parse(raw_config[key])

    include_zero = raw_config.get("include_zero_item_people", True)
    if not isinstance(include_zero, bool):
        raise ApiValidationError("'config.include_zero_item_people' must be a boolean.")
    kwargs["include_zero_item_people"] = include_zero

    return BillConfig(**kwargs)


def parse_calculate_request(data: object) -> CalculateRequest:
    """
    Validate a /api/calculate payload into the engine's strict shapes.

    Shares come from 'shares' when present, otherwise from each person's
    claimed 'items'. Raises ApiValidationError for payload shape problems
    and the domain ValidationError for values the models reject.
    """
    if not isinstance(data, dict):
        raise ApiValidationError("Request body must be a JSON object.")

    for key in ("items", "people"):
        if key not in data:
            raise ApiValidationError(f"Missing field: {key}")

    items = parse_items(data["items"])
    people = parse_people(data["people"])

    if data.get("shares") is not None:
        shares = parse_shares(data["shares"])
    else:
        try:
            shares = build_shares_from_people_items(data["items"], data["people"])
        except ValidationError as e:
            raise ApiValidationError(str(e)) from e

    config = parse_config(data.get("config"))
    return CalculateRequest(items=items, people=people, shares=shares, config=config)
