import math

import pytest

from firm_market.errors import InvalidAmount, UnknownOutcome
from firm_market.market_logic import cost_function, prices, quote_trade, signed_amount

B = 20.0

TOTALS_CASES = [
    {"A": 0.0, "B": 0.0, "C": 0.0},
    {"A": 10.0, "B": 0.0, "C": 0.0},
    {"A": 35.5, "B": -12.0, "C": 7.25, "D": 0.0},
    {"A": 200.0, "B": 150.0, "C": 0.0},
    {"A": 20000.0, "B": 19990.0, "C": 19985.0},
    {str(i): float(i * 3) for i in range(14)},
]


def test_uniform_totals_give_uniform_prices():
    result = prices({"A": 0.0, "B": 0.0, "C": 0.0}, B)
    for value in result.values():
        assert value == pytest.approx(1.0 / 3.0, abs=1e-15)


def test_cost_function_at_origin():
    assert cost_function({"A": 0.0, "B": 0.0, "C": 0.0}, B) == pytest.approx(B * math.log(3))


@pytest.mark.parametrize("totals", TOTALS_CASES)
def test_prices_form_a_probability_vector(totals):
    result = prices(totals, B)
    assert set(result) == set(totals)
    assert sum(result.values()) == pytest.approx(1.0, abs=1e-9)
    for value in result.values():
        assert 0.0 < value < 1.0


@pytest.mark.parametrize("totals", TOTALS_CASES)
def test_cost_function_stays_finite_for_large_totals(totals):
    assert math.isfinite(cost_function(totals, B))


def test_cost_function_is_invariant_to_outcome_order():
    forward = {"A": 3.0, "B": 11.0, "C": -4.0}
    backward = {"C": -4.0, "B": 11.0, "A": 3.0}
    assert cost_function(forward, B) == pytest.approx(cost_function(backward, B))


def test_cost_function_matches_naive_formula_in_normal_regime():
    totals = {"A": 12.0, "B": -3.0, "C": 40.0}
    naive = B * math.log(sum(math.exp(q / B) for q in totals.values()))
    assert cost_function(totals, B) == pytest.approx(naive, rel=1e-12)


def test_nonpositive_liquidity_rejected():
    with pytest.raises(ValueError):
        prices({"A": 0.0}, 0.0)
    with pytest.raises(ValueError):
        cost_function({"A": 0.0}, -1.0)


@pytest.mark.parametrize("totals", TOTALS_CASES)
@pytest.mark.parametrize("magnitude", [0.001, 1.0, 10.0, 250.0])
def test_buying_costs_and_selling_pays(totals, magnitude):
    outcome = next(iter(totals))
    assert quote_trade(totals, outcome, magnitude, B).cost > 0
    assert quote_trade(totals, outcome, -magnitude, B).cost < 0


def test_buy_moves_price_toward_bought_outcome():
    totals = {"A": 0.0, "B": 0.0, "C": 0.0}
    quote = quote_trade(totals, "A", 10.0, B)

    assert quote.totals_after == {"A": 10.0, "B": 0.0, "C": 0.0}
    after = quote.prices_after
    assert after["A"] > 1.0 / 3.0
    assert after["B"] == after["C"]
    assert after["B"] < 1.0 / 3.0
    assert after["A"] + after["B"] + after["C"] == pytest.approx(1.0, abs=1e-12)
    assert quote.prices_before["A"] == pytest.approx(1.0 / 3.0)


def test_quote_does_not_modify_input_totals():
    totals = {"A": 1.0, "B": 2.0}
    quote_trade(totals, "A", 5.0, B)
    assert totals == {"A": 1.0, "B": 2.0}


def test_quote_cost_is_difference_of_cost_function():
    totals = {"A": 4.0, "B": 9.0, "C": 0.0}
    quote = quote_trade(totals, "B", 7.5, B)
    expected = cost_function({"A": 4.0, "B": 16.5, "C": 0.0}, B) - cost_function(totals, B)
    assert quote.cost == pytest.approx(expected)


def test_buy_cost_bounded_by_price_range():
    # Each share costs somewhere between the price before and after.
    totals = {"A": 0.0, "B": 0.0, "C": 0.0}
    quote = quote_trade(totals, "A", 10.0, B)
    assert 10.0 * quote.prices_before["A"] < quote.cost < 10.0 * quote.prices_after["A"]


def test_round_trip_never_profits():
    totals = {"A": 5.0, "B": 0.0, "C": -2.0}
    buy = quote_trade(totals, "A", 10.0, B)
    sell = quote_trade(buy.totals_after, "A", -10.0, B)
    assert -sell.cost <= buy.cost + 1e-9


def test_large_totals_quote_is_stable():
    totals = {"A": 20000.0, "B": 0.0}
    quote = quote_trade(totals, "A", 1.0, B)
    # A is all but certain, so one more share costs almost exactly one chip.
    assert quote.cost == pytest.approx(1.0, abs=1e-6)


@pytest.mark.parametrize("amount", [0.0, float("nan"), float("inf"), float("-inf")])
def test_quote_rejects_invalid_amount(amount):
    with pytest.raises(InvalidAmount):
        quote_trade({"A": 0.0, "B": 0.0}, "A", amount, B)


def test_quote_rejects_unknown_outcome():
    with pytest.raises(UnknownOutcome):
        quote_trade({"A": 0.0, "B": 0.0}, "Z", 1.0, B)


def test_signed_amount():
    assert signed_amount(3.5, "buy") == 3.5
    assert signed_amount(3.5, "sell") == -3.5


@pytest.mark.parametrize("magnitude", [0, -1.0, float("nan"), float("inf"), "5", True])
def test_signed_amount_rejects_bad_magnitude(magnitude):
    with pytest.raises(InvalidAmount):
        signed_amount(magnitude, "buy")


def test_signed_amount_rejects_bad_side():
    with pytest.raises(ValueError):
        signed_amount(1.0, "hold")
