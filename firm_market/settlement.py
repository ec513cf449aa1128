"""Settlement engine: validates trades and applies them atomically.

A committed trade changes three things together: the market total for the
outcome, the trader's chip balance and the trader's position. They are
written in one unit of work (along with a ledger row), so a reader sees
either all of them or none of them.

Within a process, commits are serialised by a lock. Across processes each
attempt runs in a write transaction (``BEGIN IMMEDIATE`` on SQLite,
``SELECT ... FOR UPDATE`` elsewhere). On top of that, every row a trade
updates is version-checked, and that includes the market-wide
``MarketSequence`` row. A commit built on any stale read, whether of the
trader, the position or any outcome's total, fails with ``StaleDataError``.
It is then rolled back, and the whole validate-price-commit sequence is
retried from fresh state.
"""

import logging
import threading
from typing import Dict, List

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from firm_market.catalog import get_catalog, get_firm, is_outcome
from firm_market.config import LIQUIDITY, MAX_RETRIES, TOLERANCE
from firm_market.database import begin_write, unit_of_work
from firm_market.errors import (
    InsufficientBalance,
    InsufficientShares,
    StorageConflict,
    TradeError,
    UnknownOutcome,
    UnknownTrader,
)
from firm_market.market_logic import prices, quote_trade, signed_amount
from firm_market.models import MarketSequence, MarketTotal, Position, Trader, TradeRecord
from firm_market.schemas import PositionView, Quote, TradeReceipt, TradeRecordView, TraderView

logger = logging.getLogger(__name__)

_commit_lock = threading.Lock()


def get_market_snapshot(db: Session) -> Dict[str, float]:
    """Return current totals for every catalog outcome, in catalog order."""
    db.expire_all()
    stored = {row.outcome: row.shares for row in db.query(MarketTotal).all()}
    return {outcome: stored.get(outcome, 0.0) for outcome in get_catalog()}


def get_market_sequence(db: Session) -> int:
    """Return the number of trades committed so far, market-wide."""
    row = db.query(MarketSequence.trades).filter(MarketSequence.id == 1).first()
    return row.trades if row is not None else 0


def _position_view(outcome: str, shares: float) -> PositionView:
    firm = get_firm(outcome)
    return PositionView(outcome=outcome, slug=firm.slug, logo=firm.logo, shares=shares)


def get_trader_view(db: Session, trader_id: str, b: float = LIQUIDITY) -> TraderView:
    """Return balance, positions, totals and prices as currently committed.

    Positions are listed for every catalog outcome, zero-filled where the
    trader has no row yet.
    """
    db.expire_all()
    trader = db.query(Trader).filter(Trader.id == trader_id).first()
    if trader is None:
        raise UnknownTrader(f"Unknown trader: {trader_id}")

    held = {
        p.outcome: p.shares
        for p in db.query(Position).filter(Position.trader_id == trader_id).all()
    }
    totals = get_market_snapshot(db)
    return TraderView(
        id=trader.id,
        name=trader.name,
        balance=trader.balance,
        positions=[_position_view(o, held.get(o, 0.0)) for o in get_catalog()],
        totals=totals,
        prices=prices(totals, b),
    )


def get_trade_history(db: Session, trader_id: str, limit: int = 50) -> List[TradeRecordView]:
    """Return the trader's committed trades, newest first."""
    if db.query(Trader.id).filter(Trader.id == trader_id).first() is None:
        raise UnknownTrader(f"Unknown trader: {trader_id}")
    records = (
        db.query(TradeRecord)
        .filter(TradeRecord.trader_id == trader_id)
        .order_by(TradeRecord.timestamp.desc(), TradeRecord.id.desc())
        .limit(limit)
        .all()
    )
    return [
        TradeRecordView(
            id=r.id,
            outcome=r.outcome,
            side=r.side,
            amount=r.amount,
            signed_amount=r.signed_amount,
            cost=r.cost,
            price_before=r.price_before,
            price_after=r.price_after,
            sequence=r.sequence,
            timestamp=r.timestamp,
        )
        for r in records
    ]


def _apply_trade(db: Session, trader_id: str, outcome: str, amount: float, side: str, b: float) -> Quote:
    """Validate one trade against fresh state and stage its writes on ``db``.

    Nothing is committed here; the caller's unit of work does that.
    """
    db.expire_all()

    trader = db.query(Trader).filter(Trader.id == trader_id).with_for_update().first()
    if trader is None:
        raise UnknownTrader(f"Unknown trader: {trader_id}")
    if not is_outcome(outcome):
        raise UnknownOutcome(f"Unknown outcome: {outcome!r}")
    delta = signed_amount(amount, side)

    sequence = db.query(MarketSequence).filter(MarketSequence.id == 1).with_for_update().first()
    if sequence is None:
        sequence = MarketSequence(id=1, trades=0)
        db.add(sequence)

    rows = {row.outcome: row for row in db.query(MarketTotal).with_for_update().all()}
    total_row = rows.get(outcome)
    if total_row is None:
        total_row = MarketTotal(outcome=outcome, shares=0.0)
        db.add(total_row)
    totals = {o: (rows[o].shares if o in rows else 0.0) for o in get_catalog()}

    position = (
        db.query(Position)
        .filter(Position.trader_id == trader_id, Position.outcome == outcome)
        .with_for_update()
        .first()
    )
    if position is None:
        position = Position(trader_id=trader_id, outcome=outcome, shares=0.0)
        db.add(position)

    if side == "sell":
        held = position.shares or 0.0
        if held < amount - TOLERANCE or held <= 0:
            raise InsufficientShares(
                f"Not enough shares to sell: holding {held:.6f}, asked to sell {amount:.6f}"
            )
        if amount > held:
            # Within tolerance of the whole holding: sell exactly the holding.
            delta = -held

    quote = quote_trade(totals, outcome, delta, b)

    new_balance = trader.balance - quote.cost
    if new_balance < -TOLERANCE:
        raise InsufficientBalance(
            f"Not enough chips: trade costs {quote.cost:.6f}, balance is {trader.balance:.6f}"
        )

    total_row.shares = (total_row.shares or 0.0) + delta
    trader.balance = max(new_balance, 0.0)
    position.shares = position.shares + delta
    sequence.trades = (sequence.trades or 0) + 1
    db.add(
        TradeRecord(
            trader_id=trader_id,
            outcome=outcome,
            side=side,
            amount=abs(delta),
            signed_amount=delta,
            cost=quote.cost,
            price_before=quote.prices_before[outcome],
            price_after=quote.prices_after[outcome],
            sequence=sequence.trades,
        )
    )
    return quote


def place_trade(
    db: Session,
    trader_id: str,
    outcome: str,
    amount: float,
    side: str = "buy",
    b: float = LIQUIDITY,
    max_retries: int = MAX_RETRIES,
) -> TradeReceipt:
    """Buy or sell ``amount`` shares of ``outcome`` for a trader.

    Args:
        db: Session to run the trade on. Must not hold uncommitted changes.
        trader_id: The trader placing the order.
        outcome: A catalog outcome.
        amount: Number of shares, always positive; ``side`` gives direction.
        side: 'buy' or 'sell'.
        b: Liquidity parameter.
        max_retries: Attempts made before a storage conflict is surfaced.

    Returns:
        A receipt with the signed cost charged and the trader's refreshed
        view of the market, which already reflects this trade.

    Raises:
        UnknownTrader, UnknownOutcome, InvalidAmount, InsufficientShares,
        InsufficientBalance: the trade was rejected and nothing changed.
        StorageConflict: every attempt hit a conflicting or locked store.
    """
    for attempt in range(1, max_retries + 1):
        try:
            with _commit_lock:
                # Start every attempt in a transaction of our own.
                db.rollback()
                with unit_of_work(db):
                    begin_write(db)
                    quote = _apply_trade(db, trader_id, outcome, amount, side, b)
        except TradeError as exc:
            logger.info("Rejected %s %s x %r for trader %s: %s", side, amount, outcome, trader_id, exc.code)
            raise
        except (StaleDataError, OperationalError) as exc:
            logger.warning(
                "Storage conflict on attempt %d/%d for trader %s: %s",
                attempt,
                max_retries,
                trader_id,
                exc,
            )
            continue

        logger.info(
            "Committed %s %.6f x %r for trader %s at cost %.6f",
            side,
            abs(quote.amount),
            outcome,
            trader_id,
            quote.cost,
        )
        return TradeReceipt(
            outcome=outcome,
            side=side,
            amount=abs(quote.amount),
            cost=quote.cost,
            trader=get_trader_view(db, trader_id, b),
        )

    logger.error("Giving up on trade for trader %s after %d attempts", trader_id, max_retries)
    raise StorageConflict("The market changed while the trade was being placed; please retry")
