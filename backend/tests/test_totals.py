# backend/tests/test_totals.py
import dataclasses
import random

import pytest

from tabby.domain.models import (
    BillConfig,
    DegenerateInputWarning,
    Item,
    ItemShare,
    Person,
    ShareReferenceError,
    SplitMethod,
    ValidationError,
)
from tabby.domain.totals import (
    compute_totals,
    get_person_breakdown,
    get_person_total,
    validate_bill_totals,
)

P = SplitMethod.PROPORTIONAL
E = SplitMethod.EQUAL

ITEMS = [
    Item(id="1", label="Pizza", unit_price="20.00"),
    Item(id="2", label="Beer", unit_price="8.00"),
    Item(id="3", label="Salad", unit_price="12.00"),
]
PEOPLE = [Person("p1", "Alice"), Person("p2", "Bob"), Person("p3", "Charlie")]
ONE_EACH = [ItemShare("1", "p1", 1), ItemShare("2", "p2", 1), ItemShare("3", "p3", 1)]


def _assert_conserved(result):
    assert sum(p.subtotal for p in result.person_totals) == result.subtotal
    assert sum(p.total for p in result.person_totals) == result.total
    assert validate_bill_totals(result).valid


def test_proportional_tax_and_tip():
    result = compute_totals(ITEMS, ONE_EACH, PEOPLE, BillConfig(tax="4.00", tip="6.00"))

    alice, bob, charlie = result.person_totals
    assert (alice.subtotal, alice.tax_share, alice.tip_share, alice.total) == (2000, 200, 300, 2500)
    assert (bob.subtotal, bob.tax_share, bob.tip_share, bob.total) == (800, 80, 120, 1000)
    assert (charlie.subtotal, charlie.tax_share, charlie.tip_share, charlie.total) == (1200, 120, 180, 1500)
    assert result.total == 5000
    _assert_conserved(result)


def test_equal_split_skips_people_without_items():
    shares = [ItemShare("1", "p1", 1), ItemShare("2", "p2", 1)]
    config = BillConfig(tax=4, tip=6, tax_split_method=E, tip_split_method=E, include_zero_item_people=False)

    result = compute_totals(ITEMS, shares, PEOPLE, config)

    assert [p.tax_share for p in result.person_totals] == [200, 200, 0]
    assert [p.tip_share for p in result.person_totals] == [300, 300, 0]
    # salad nobody claimed stays out of the split
    assert result.subtotal == 2800
    assert result.unassigned_subtotal == 1200
    assert result.unassigned_item_ids == ("3",)
    assert result.item_total == 4000
    _assert_conserved(result)


def test_equal_split_includes_zero_item_people_when_flag_set():
    shares = [ItemShare("1", "p1", 1)]
    config = BillConfig(tax=3, tip=6, tax_split_method=E, tip_split_method=E, include_zero_item_people=True)

    result = compute_totals(ITEMS, shares, PEOPLE, config)

    assert [p.tax_share for p in result.person_totals] == [100, 100, 100]
    assert [p.tip_share for p in result.person_totals] == [200, 200, 200]
    _assert_conserved(result)


@pytest.mark.parametrize("include_zero", [True, False])
def test_zero_item_person_pays_tax_only_when_included(include_zero):
    shares = [ItemShare("1", "p1", 1), ItemShare("2", "p2", 1)]
    config = BillConfig(tax="1.50", tip="2.00", tax_split_method=E, tip_split_method=E,
                        include_zero_item_people=include_zero)

    charlie = compute_totals(ITEMS, shares, PEOPLE, config).person_totals[2]

    assert (charlie.tax_share > 0) is include_zero
    assert (charlie.tip_share > 0) is include_zero


def test_shared_item_weights():
    shares = [ItemShare("1", "p1", 0.5), ItemShare("1", "p2", 0.5), ItemShare("2", "p3", 1)]
    result = compute_totals(ITEMS, shares, PEOPLE, BillConfig())
    assert [p.subtotal for p in result.person_totals] == [1000, 1000, 800]


def test_two_to_one_weights():
    items = [Item(id="x", label="Nachos", unit_price="3.00")]
    shares = [ItemShare("x", "p1", 2), ItemShare("x", "p2", 1)]
    result = compute_totals(items, shares, PEOPLE[:2], BillConfig())
    assert [p.subtotal for p in result.person_totals] == [200, 100]


def test_odd_cent_goes_to_first_listed_person():
    items = [Item(id="x", label="Wine", unit_price="10.01")]
    shares = [ItemShare("x", "p2", 1), ItemShare("x", "p1", 1)]
    result = compute_totals(items, shares, PEOPLE[:2], BillConfig())
    # people order, not share order, breaks the tie
    assert [p.subtotal for p in result.person_totals] == [501, 500]
    assert result.breakdown_by_item_id == {"x": {"p2": 501, "p1": 500}}


def test_ten_cents_three_ways():
    items = [Item(id="x", label="Mint", unit_price="0.10")]
    shares = [ItemShare("x", p.id, 1) for p in PEOPLE]
    result = compute_totals(items, shares, PEOPLE, BillConfig())
    assert [p.subtotal for p in result.person_totals] == [4, 3, 3]
    assert result.subtotal == 10


def test_ten_dollars_three_ways():
    items = [Item(id="x", label="Pizza", unit_price="10.00")]
    shares = [ItemShare("x", p.id, 1) for p in PEOPLE]
    result = compute_totals(items, shares, PEOPLE, BillConfig())
    assert [p.total for p in result.person_totals] == [334, 333, 333]
    assert result.penny_reconciliation.distributed == 1
    assert result.penny_reconciliation.method == "largest_remainder"


def test_proportional_tax_on_thirds_is_conserved():
    items = [Item(id="x", label="Pizza", unit_price="10.00")]
    shares = [ItemShare("x", p.id, 1) for p in PEOPLE]
    result = compute_totals(items, shares, PEOPLE, BillConfig(tax="1.00", tip="1.00"))
    assert [p.tax_share for p in result.person_totals] == [34, 33, 33]
    assert result.total == 1200
    _assert_conserved(result)


def test_equal_vs_proportional_tip():
    items = [Item(id="a", label="Steak", unit_price=30), Item(id="b", label="Soup", unit_price=10)]
    shares = [ItemShare("a", "p1", 1), ItemShare("b", "p2", 1)]
    people = PEOPLE[:2]

    proportional = compute_totals(items, shares, people, BillConfig(tip=4, tip_split_method=P))
    equal = compute_totals(items, shares, people, BillConfig(tip=4, tip_split_method=E))

    assert [p.tip_share for p in proportional.person_totals] == [300, 100]
    assert [p.tip_share for p in equal.person_totals] == [200, 200]


def test_quantity_multiplies_unit_price():
    items = [Item(id="x", label="Taco", unit_price="2.50", quantity=3)]
    result = compute_totals(items, [ItemShare("x", "p1", 1)], PEOPLE[:1], BillConfig())
    assert result.subtotal == 750


def test_proportional_discount():
    items = ITEMS[:2]
    shares = [ItemShare("1", "p1", 1), ItemShare("2", "p2", 1)]
    result = compute_totals(items, shares, PEOPLE[:2], BillConfig(discount=7))

    alice, bob = result.person_totals
    assert (alice.discount_share, alice.total) == (500, 1500)
    assert (bob.discount_share, bob.total) == (200, 600)
    assert result.total == 2100
    _assert_conserved(result)


def test_proportional_service_fee():
    items = ITEMS[:2]
    shares = [ItemShare("1", "p1", 1), ItemShare("2", "p2", 1)]
    result = compute_totals(items, shares, PEOPLE[:2], BillConfig(service_fee="5.60"))

    assert [p.service_fee_share for p in result.person_totals] == [400, 160]
    assert [p.total for p in result.person_totals] == [2400, 960]
    assert result.total == 3360


def test_all_charges_together():
    items = ITEMS[:2]
    shares = [ItemShare("1", "p1", 1), ItemShare("2", "p2", 1)]
    config = BillConfig(tax="2.80", tip="5.60", discount="5.00", service_fee="3.00")
    result = compute_totals(items, shares, PEOPLE[:2], config)
    assert result.total == 3440
    _assert_conserved(result)


def test_discount_larger_than_subtotal_is_clamped():
    items = [Item(id="x", label="Coffee", unit_price="10.00")]
    shares = [ItemShare("x", "p1", 1)]
    config = BillConfig(tax="1.00", discount="15.00")

    result = compute_totals(items, shares, PEOPLE[:2], config)

    assert result.discount == 1000
    assert result.discount_clamped
    assert result.total == 100
    assert [p.total for p in result.person_totals] == [100, 0]
    assert all(p.total >= 0 for p in result.person_totals)
    _assert_conserved(result)


def test_equal_discount_can_push_a_light_spender_negative():
    items = [Item(id="a", label="Steak", unit_price=30), Item(id="b", label="Water", unit_price=1)]
    shares = [ItemShare("a", "p1", 1), ItemShare("b", "p2", 1)]
    config = BillConfig(discount=4, discount_split_method=E)

    result = compute_totals(items, shares, PEOPLE[:2], config)

    assert not result.discount_clamped
    assert [p.total for p in result.person_totals] == [2800, -100]
    assert result.negative_person_ids == ("p2",)
    _assert_conserved(result)


def test_zero_subtotal_proportional_falls_back_to_equal():
    with pytest.warns(DegenerateInputWarning):
        result = compute_totals(ITEMS, [], PEOPLE, BillConfig(tax=3))

    assert [p.tax_share for p in result.person_totals] == [100, 100, 100]
    assert result.degenerate_splits == ("tax",)
    assert result.subtotal == 0
    _assert_conserved(result)


def test_no_eligible_people_falls_back_to_everyone():
    config = BillConfig(tip=2, tip_split_method=E, include_zero_item_people=False)
    with pytest.warns(DegenerateInputWarning):
        result = compute_totals(ITEMS, [], PEOPLE[:2], config)
    assert [p.tip_share for p in result.person_totals] == [100, 100]
    assert result.degenerate_splits == ("tip",)


def test_idempotent():
    shares = [ItemShare("1", "p1", 1), ItemShare("1", "p2", 2), ItemShare("3", "p3", 1)]
    config = BillConfig(tax="3.17", tip="5.03", discount="1.11", service_fee="0.99", tip_split_method=E)
    assert compute_totals(ITEMS, shares, PEOPLE, config) == compute_totals(ITEMS, shares, PEOPLE, config)


def test_empty_people_without_charges_is_all_zero():
    result = compute_totals(ITEMS, [], [], BillConfig())
    assert result.person_totals == ()
    assert result.total == 0
    assert result.unassigned_subtotal == 4000


def test_empty_people_with_charge_raises():
    with pytest.raises(ValidationError):
        compute_totals(ITEMS, [], [], BillConfig(tip=1))


def test_unknown_person_reference_raises():
    with pytest.raises(ShareReferenceError):
        compute_totals(ITEMS, [ItemShare("1", "ghost", 1)], PEOPLE, BillConfig())


def test_unknown_item_reference_raises():
    with pytest.raises(ShareReferenceError):
        compute_totals(ITEMS, [ItemShare("ghost", "p1", 1)], PEOPLE, BillConfig())


def test_duplicate_ids_raise():
    with pytest.raises(ValidationError):
        compute_totals(ITEMS + [ITEMS[0]], [], PEOPLE, BillConfig())
    with pytest.raises(ValidationError):
        compute_totals(ITEMS, [], PEOPLE + [PEOPLE[0]], BillConfig())


@pytest.mark.parametrize("field", ["tax", "tip", "discount", "service_fee"])
def test_negative_charges_rejected(field):
    with pytest.raises(ValidationError):
        BillConfig(**{field: "-0.01"})


def test_invalid_item_rejected():
    with pytest.raises(ValidationError):
        Item(id="x", label="Bad", unit_price="-1")
    with pytest.raises(ValidationError):
        Item(id="x", label="Bad", unit_price=1, quantity=0)
    with pytest.raises(ValidationError):
        Item(id="", label="Bad", unit_price=1)


def test_validate_bill_totals_detects_tampering():
    result = compute_totals(ITEMS, ONE_EACH, PEOPLE, BillConfig(tax=4))
    assert validate_bill_totals(result).valid

    bad_person = dataclasses.replace(result.person_totals[0], total=result.person_totals[0].total + 1)
    tampered = dataclasses.replace(result, person_totals=(bad_person,) + result.person_totals[1:])
    check = validate_bill_totals(tampered)
    assert not check.valid
    assert check.error


def test_person_lookup_helpers():
    result = compute_totals(ITEMS, ONE_EACH, PEOPLE, BillConfig())
    assert get_person_total(result, "p2") == 800
    assert get_person_total(result, "ghost") == 0
    assert get_person_total(None, "p1") == 0
    assert get_person_breakdown(result, "p3").name == "Charlie"
    assert get_person_breakdown(result, "ghost") is None
    assert get_person_breakdown(None, "p1") is None


def test_proportional_discount_never_exceeds_rounded_subtotal():
    # p1 owns 4/7 of a cent: subtotal rounds to 0 while the largest
    # discount remainder still points at p1
    items = [Item(id="x", label="Gum", unit_price="0.04")]
    shares = [ItemShare("x", "p1", 1), ItemShare("x", "p2", 3), ItemShare("x", "p3", 3)]

    result = compute_totals(items, shares, PEOPLE, BillConfig(discount="0.03"))

    p1, p2, p3 = result.person_totals
    assert (p1.subtotal, p1.discount_share, p1.total) == (0, 0, 0)
    assert [p.discount_share for p in result.person_totals] == [0, 2, 1]
    assert result.negative_person_ids == ()
    _assert_conserved(result)


def test_proportional_discount_keeps_totals_non_negative_when_clamped():
    items = [Item(id="x", label="Gum", unit_price="0.04")]
    shares = [ItemShare("x", "p1", 1), ItemShare("x", "p2", 3), ItemShare("x", "p3", 3)]

    result = compute_totals(items, shares, PEOPLE, BillConfig(discount="1.00"))

    assert result.discount == 4
    assert [p.total for p in result.person_totals] == [0, 0, 0]
    _assert_conserved(result)


def test_out_of_range_amounts_are_validation_errors():
    with pytest.raises(ValidationError):
        Item(id="x", label="Yacht", unit_price="1e30")
    with pytest.raises(ValidationError):
        BillConfig(tax="1e30")
    with pytest.raises(ValidationError):
        ItemShare("x", "p1", "1e999999999")


def _random_bill(rng, tax_method, tip_method, discount_method, fee_method, include_zero):
    people = [Person(f"p{i}", f"Person {i}") for i in range(rng.randint(1, 4))]
    items = [
        Item(
            id=f"i{i}",
            label=f"Item {i}",
            unit_price=f"{rng.randint(0, 2500) / 100:.2f}",
            quantity=rng.randint(1, 3),
        )
        for i in range(rng.randint(1, 4))
    ]
    shares = []
    for item in items:
        if rng.random() < 0.15:
            continue
        owners = rng.sample(people, rng.randint(1, len(people)))
        for person in owners:
            shares.append(ItemShare(item.id, person.id, rng.choice([1, 2, 3, "0.5", "1.25", 7])))

    item_cents = sum(it.price_cents for it in items)
    config = BillConfig(
        tax=f"{rng.randint(0, 400) / 100:.2f}",
        tip=f"{rng.randint(0, 700) / 100:.2f}",
        discount=f"{rng.randint(0, item_cents + 200) / 100:.2f}",
        service_fee=f"{rng.randint(0, 300) / 100:.2f}",
        tax_split_method=tax_method,
        tip_split_method=tip_method,
        discount_split_method=discount_method,
        service_fee_split_method=fee_method,
        include_zero_item_people=include_zero,
    )
    return items, shares, people, config


@pytest.mark.filterwarnings("ignore::tabby.domain.models.DegenerateInputWarning")
@pytest.mark.parametrize("include_zero", [True, False])
@pytest.mark.parametrize("discount_method", [P, E])
@pytest.mark.parametrize("charge_method", [P, E])
@pytest.mark.parametrize("seed", range(25))
def test_conservation_holds_across_generated_bills(seed, charge_method, discount_method, include_zero):
    rng = random.Random(seed)
    items, shares, people, config = _random_bill(
        rng, charge_method, charge_method, discount_method, charge_method, include_zero
    )

    result = compute_totals(items, shares, people, config)

    _assert_conserved(result)
    assert result.total >= 0
    for pt in result.person_totals:
        assert min(pt.subtotal, pt.tax_share, pt.tip_share, pt.discount_share, pt.service_fee_share) >= 0
    if discount_method is P:
        assert all(pt.discount_share <= pt.subtotal for pt in result.person_totals)
        assert all(pt.total >= 0 for pt in result.person_totals)
    assert result.negative_person_ids == tuple(pt.person_id for pt in result.person_totals if pt.total < 0)
    assert compute_totals(items, shares, people, config) == result
