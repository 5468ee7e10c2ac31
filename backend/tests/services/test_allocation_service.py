from decimal import Decimal

import pytest

from rentsplit.schemas.calculation import CalculationData, RoomAdjustments
from rentsplit.services.allocation_service import basis_fractions, compute, net_adjustment_percentage

CENT = Decimal("0.01")


def make_data(roommates, rent="3000", utilities="0", expenses=(), use_room_size_split=False):
    return CalculationData(
        total_rent=rent,
        utilities=utilities,
        custom_expenses=[
            {"id": f"exp{i}", "name": name, "amount": amount}
            for i, (name, amount) in enumerate(expenses, start=1)
        ],
        roommates=[
            {"id": str(i), **rm} for i, rm in enumerate(roommates, start=1)
        ],
        use_room_size_split=use_room_size_split,
    )


def by_name(results):
    return {r.roommate_name: r for r in results}


def rent_total(results):
    return sum(r.rent_share for r in results)


def test_income_split_two_roommates():
    data = make_data(
        [{"name": "Alice", "income": 60000}, {"name": "Bob", "income": 80000}],
        rent="2000", utilities="300",
    )
    results = by_name(compute(data, False))

    assert results["Alice"].rent_share == Decimal("857.14")
    assert results["Bob"].rent_share == Decimal("1142.86")
    assert results["Alice"].utilities_share == Decimal("150.00")
    assert results["Bob"].utilities_share == Decimal("150.00")
    assert results["Alice"].basis_percentage == Decimal("0.43")
    assert results["Bob"].basis_percentage == Decimal("0.57")
    assert rent_total(results.values()) == Decimal("2000.00")


def test_room_size_split():
    data = make_data(
        [{"name": "Alice", "income": 60000, "room_size": 100}, {"name": "Bob", "income": 80000, "room_size": 200}],
        rent="2000",
    )
    results = by_name(compute(data, True))
    assert results["Alice"].rent_share == Decimal("666.67")
    assert results["Bob"].rent_share == Decimal("1333.33")


def test_three_way_room_size_split_matches_fractions():
    data = make_data(
        [
            {"name": "Alice", "income": 60000, "room_size": 100},
            {"name": "Bob", "income": 80000, "room_size": 150},
            {"name": "Charlie", "income": 100000, "room_size": 200},
        ],
        rent="2000", utilities="300", expenses=[("Internet", 50), ("Cable", 80)],
    )
    results = by_name(compute(data, True))
    assert results["Alice"].rent_share == Decimal("444.44")
    assert results["Charlie"].rent_share == Decimal("888.89")
    assert abs(sum(r.basis_percentage for r in results.values()) - 1) <= CENT
    for r in results.values():
        assert r.utilities_share == Decimal("100.00")
        assert r.custom_expenses_share == Decimal("43.33")


def test_single_roommate_pays_everything():
    data = make_data([{"name": "Alice", "income": 60000}], rent="1000")
    [result] = compute(data)
    assert result.rent_share == Decimal("1000.00")
    assert result.total_share == Decimal("1000.00")
    assert result.basis_percentage == Decimal("1.00")


def test_single_roommate_with_utilities_and_expenses():
    data = make_data(
        [{"name": "Alice", "income": 60000}],
        rent="2000", utilities="300", expenses=[("Internet", 50), ("Cable", 80)],
    )
    [result] = compute(data)
    assert result.utilities_share == Decimal("300.00")
    assert result.custom_expenses_share == Decimal("130.00")
    assert result.total_share == Decimal("2430.00")


def test_room_size_mode_without_sizes_splits_equally():
    data = make_data(
        [{"name": "Alice", "income": 60000}, {"name": "Bob", "income": 80000}],
        rent="2000",
    )
    for result in compute(data, True):
        assert result.rent_share == Decimal("1000.00")
        assert result.basis_percentage == Decimal("0.50")


def test_zero_total_income_splits_equally():
    data = make_data(
        [{"name": "Alice", "income": 0}, {"name": "Bob", "income": 0}, {"name": "Cara", "income": 0}],
        rent="900",
    )
    results = compute(data, False)
    assert [r.rent_share for r in results] == [Decimal("300.00")] * 3


def test_flag_on_data_is_used_when_not_overridden():
    data = make_data(
        [{"name": "Alice", "income": 100, "room_size": 100}, {"name": "Bob", "income": 300, "room_size": 100}],
        rent="1000", use_room_size_split=True,
    )
    assert [r.rent_share for r in compute(data)] == [Decimal("500.00"), Decimal("500.00")]
    assert [r.rent_share for r in compute(data, False)] == [Decimal("250.00"), Decimal("750.00")]


def test_no_adjustments_matches_plain_proportional_split():
    data = make_data(
        [{"name": "Alice", "income": 50000}, {"name": "Bob", "income": 50000}],
    )
    results = by_name(compute(data))
    assert results["Alice"].rent_share == results["Bob"].rent_share == Decimal("1500.00")
    assert results["Alice"].adjustment_amount == 0
    assert results["Bob"].adjustment_amount == 0


def test_private_bathroom_against_no_window_and_flex_wall():
    data = make_data(
        [
            {"name": "Alice", "income": 50000, "adjustments": {"has_private_bathroom": True}},
            {"name": "Bob", "income": 50000, "adjustments": {"has_window": False, "has_flex_wall": True}},
        ],
        utilities="200",
    )
    results = by_name(compute(data))

    # +15% and -15% cancel out so no rescaling is needed
    assert results["Alice"].rent_share == Decimal("1725.00")
    assert results["Bob"].rent_share == Decimal("1275.00")
    assert results["Alice"].adjustment_amount == Decimal("225.00")
    assert results["Bob"].adjustment_amount == Decimal("-225.00")
    assert abs(rent_total(results.values()) - Decimal("3000")) <= CENT


def test_single_adjustment_is_redistributed():
    data = make_data(
        [
            {"name": "Alice", "income": 50000, "adjustments": {"has_private_bathroom": True}},
            {"name": "Bob", "income": 50000},
        ],
    )
    results = by_name(compute(data))

    assert results["Alice"].rent_share == Decimal("1604.65")
    assert results["Bob"].rent_share == Decimal("1395.35")
    assert results["Alice"].adjustment_amount == Decimal("104.65")
    assert results["Bob"].adjustment_amount == Decimal("-104.65")
    assert rent_total(results.values()) == Decimal("3000.00")


def test_discount_is_paid_for_by_the_others():
    data = make_data(
        [
            {"name": "Alice", "income": 50000, "adjustments": {}},
            {"name": "Bob", "income": 50000, "adjustments": {"has_window": False, "has_flex_wall": True}},
        ],
    )
    results = by_name(compute(data))
    assert results["Bob"].rent_share < results["Alice"].rent_share
    assert results["Alice"].rent_share > Decimal("1500")
    assert results["Alice"].adjustment_amount > 0
    assert results["Bob"].adjustment_amount < 0
    assert abs(rent_total(results.values()) - Decimal("3000")) <= CENT


def test_clamped_to_fifty_percent_each_way():
    data = make_data(
        [
            {"name": "Alice", "income": 50000, "adjustments": {"adjustment_percentage": 100}},
            {"name": "Bob", "income": 50000, "adjustments": {"adjustment_percentage": -100}},
        ],
    )
    results = by_name(compute(data))
    assert results["Alice"].rent_share == Decimal("2250.00")
    assert results["Bob"].rent_share == Decimal("750.00")
    assert results["Alice"].adjustment_amount == Decimal("750.00")
    assert results["Bob"].adjustment_amount == Decimal("-750.00")
    assert rent_total(results.values()) == Decimal("3000.00")


def test_extreme_adjustment_behaves_like_the_cap():
    def split(pct):
        return compute(make_data([
            {"name": "Alice", "income": 40000, "adjustments": {"adjustment_percentage": pct}},
            {"name": "Bob", "income": 60000},
        ]))

    assert [r.rent_share for r in split(1000)] == [r.rent_share for r in split(50)]
    assert [r.rent_share for r in split(-1000)] == [r.rent_share for r in split(-50)]


def test_complex_scenario_preserves_total_and_ordering():
    data = make_data(
        [
            {"name": "Alice", "income": 60000, "adjustments": {"has_private_bathroom": True}},
            {"name": "Bob", "income": 40000,
             "adjustments": {"has_window": False, "has_flex_wall": True, "adjustment_percentage": -20}},
            {"name": "Charlie", "income": 50000},
        ],
    )
    results = by_name(compute(data))
    assert results["Alice"].rent_share == Decimal("1427.59")
    assert results["Bob"].rent_share == Decimal("537.93")
    assert results["Charlie"].rent_share == Decimal("1034.48")
    assert results["Alice"].rent_share > results["Charlie"].rent_share > results["Bob"].rent_share
    assert rent_total(results.values()) == Decimal("3000.00")


@pytest.mark.parametrize("alice_pct,bob_pct", [
    (15, 0), (0, -15), (50, -50), (1000, -1000), (5, -30), (-10, -10), (15, -15),
])
def test_rent_is_conserved(alice_pct, bob_pct):
    data = make_data(
        [
            {"name": "Alice", "income": 50000, "adjustments": {"adjustment_percentage": alice_pct}},
            {"name": "Bob", "income": 70000, "adjustments": {"adjustment_percentage": bob_pct}},
        ],
        rent="2345.67",
    )
    results = compute(data)
    assert abs(rent_total(results) - Decimal("2345.67")) <= CENT


def test_sign_of_adjustment_follows_net_percentage():
    data = make_data(
        [
            {"name": "Alice", "income": 50000, "adjustments": {"adjustment_percentage": 15}},
            {"name": "Bob", "income": 70000, "adjustments": {"adjustment_percentage": -15}},
        ],
        rent="2345.67",
    )
    results = by_name(compute(data))
    assert results["Alice"].adjustment_amount > 0
    assert results["Bob"].adjustment_amount < 0
    # base shares are 977.36 and 1368.31
    assert results["Alice"].rent_share > Decimal("977.36")
    assert results["Bob"].rent_share < Decimal("1368.31")


def test_total_share_is_sum_of_rounded_line_items():
    data = make_data(
        [
            {"name": "Alice", "income": 61234, "adjustments": {"has_private_bathroom": True}},
            {"name": "Bob", "income": 48765, "adjustments": {"has_window": False}},
            {"name": "Cara", "income": 55555},
        ],
        rent="2999.99", utilities="301.01", expenses=[("Internet", "49.99"), ("Cleaning", "80.5")],
    )
    for r in compute(data):
        assert r.total_share == r.rent_share + r.utilities_share + r.custom_expenses_share
        assert r.rent_share == r.rent_share.quantize(CENT)


def test_compute_is_deterministic():
    data = make_data(
        [
            {"name": "Alice", "income": 61234, "adjustments": {"has_flex_wall": True}},
            {"name": "Bob", "income": 48765},
        ],
    )
    assert compute(data) == compute(data)


def test_empty_roommate_list_returns_nothing():
    data = CalculationData.model_construct(
        total_rent=Decimal("1000"), utilities=Decimal("0"), custom_expenses=[], roommates=[],
        currency="USD", use_room_size_split=False,
    )
    assert compute(data) == []


def test_net_adjustment_percentage_combines_features():
    adj = RoomAdjustments(
        has_private_bathroom=True, has_window=False, has_flex_wall=True, adjustment_percentage=5,
    )
    assert net_adjustment_percentage(adj) == Decimal("5")
    assert net_adjustment_percentage(None) == 0
    assert net_adjustment_percentage(RoomAdjustments()) == 0


def test_net_adjustment_percentage_uses_custom_feature_values():
    adj = RoomAdjustments(has_private_bathroom=True, private_bathroom_percentage=20, adjustment_percentage=45)
    assert net_adjustment_percentage(adj) == Decimal("50")


def test_basis_fractions_ignores_missing_room_sizes():
    data = make_data(
        [{"name": "Alice", "income": 1, "room_size": 120}, {"name": "Bob", "income": 1}],
    )
    assert basis_fractions(data.roommates, True) == [Decimal(1), Decimal(0)]
