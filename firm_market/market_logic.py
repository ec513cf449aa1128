"""Core market logic implementing a Logarithmic Market Scoring Rule (LMSR).

The market maker prices N mutually exclusive outcomes from the aggregate
number of outstanding shares ``q_i`` in each one:

    C(q)      = b * ln(sum_i exp(q_i / b))
    price_i   = exp(q_i / b) / sum_j exp(q_j / b)

and the cost of a trade is the change in ``C``. Everything here is a pure
function of its inputs: no storage, no clock, no randomness.
"""

import math
from typing import Dict, Mapping

from firm_market.config import LIQUIDITY
from firm_market.errors import InvalidAmount, UnknownOutcome
from firm_market.schemas import Quote


def _check_liquidity(b: float) -> None:
    if not math.isfinite(b) or b <= 0:
        raise ValueError("liquidity must be a positive finite number")


def cost_function(totals: Mapping[str, float], b: float = LIQUIDITY) -> float:
    """Return the value of the LMSR cost function for the given totals.

    Args:
        totals: Outstanding shares per outcome.
        b: The liquidity parameter. Larger ``b`` results in smoother price
           changes and requires more capital to move the price.

    Returns:
        ``C(q)`` in chips.
    """
    _check_liquidity(b)
    if not totals:
        raise ValueError("totals must contain at least one outcome")
    # Subtract the largest exponent before summing so exp() cannot overflow
    # however far the totals drift.
    scaled = [shares / b for shares in totals.values()]
    peak = max(scaled)
    return b * (peak + math.log(sum(math.exp(s - peak) for s in scaled)))


def prices(totals: Mapping[str, float], b: float = LIQUIDITY) -> Dict[str, float]:
    """Return the instantaneous price of every outcome.

    Prices lie strictly between 0 and 1 and sum to 1, so they can be read
    as the market's probability for each outcome.
    """
    _check_liquidity(b)
    if not totals:
        raise ValueError("totals must contain at least one outcome")
    peak = max(shares / b for shares in totals.values())
    weights = {outcome: math.exp(shares / b - peak) for outcome, shares in totals.items()}
    denom = sum(weights.values())
    return {outcome: weight / denom for outcome, weight in weights.items()}


def signed_amount(magnitude: float, side: str) -> float:
    """Turn a positive share count plus a side into a signed trade amount.

    Raises:
        InvalidAmount: If ``magnitude`` is not a finite positive number.
        ValueError: If ``side`` is neither 'buy' nor 'sell'.
    """
    if side not in ("buy", "sell"):
        raise ValueError("side must be 'buy' or 'sell'")
    if isinstance(magnitude, bool) or not isinstance(magnitude, (int, float)):
        raise InvalidAmount("Amount must be a number")
    if not math.isfinite(magnitude) or magnitude <= 0:
        raise InvalidAmount("Amount must be positive")
    return float(magnitude) if side == "buy" else -float(magnitude)


def quote_trade(
    totals: Mapping[str, float], outcome: str, amount: float, b: float = LIQUIDITY
) -> Quote:
    """Price a trade of ``amount`` shares (signed) in ``outcome``.

    The cost is positive for buys and negative for sells; the trader pays
    ``cost`` chips, so a sell returns ``-cost`` chips.

    Raises:
        UnknownOutcome: If ``outcome`` is not one of the keys of ``totals``.
        InvalidAmount: If ``amount`` is zero or not finite.
    """
    if outcome not in totals:
        raise UnknownOutcome(f"Unknown outcome: {outcome!r}")
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmount("Amount must be a number")
    if not math.isfinite(amount) or amount == 0:
        raise InvalidAmount("Amount must be non-zero")

    before = dict(totals)
    after = dict(totals)
    after[outcome] = before[outcome] + amount

    return Quote(
        outcome=outcome,
        amount=float(amount),
        cost=cost_function(after, b) - cost_function(before, b),
        prices_before=prices(before, b),
        prices_after=prices(after, b),
        totals_after=after,
    )
