"""Trader registration.

Identity here is deliberately thin: a trader is a unique display name with
a chip balance. Whoever calls this module is responsible for deciding who
is allowed to act as which trader.
"""

import logging
from typing import Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from firm_market.catalog import get_catalog
from firm_market.config import STARTING_CHIPS
from firm_market.database import unit_of_work
from firm_market.errors import InvalidName
from firm_market.models import Position, Trader

logger = logging.getLogger(__name__)


def ensure_positions(db: Session, trader_id: str) -> int:
    """Add a zero position for every catalog outcome the trader lacks.

    Does not commit. Returns the number of rows added.
    """
    existing = {
        outcome
        for (outcome,) in db.query(Position.outcome).filter(Position.trader_id == trader_id).all()
    }
    missing = [o for o in get_catalog() if o not in existing]
    for outcome in missing:
        db.add(Position(trader_id=trader_id, outcome=outcome, shares=0.0))
    return len(missing)


def create_or_get_trader(db: Session, name: str, starting_chips: float = STARTING_CHIPS) -> Trader:
    """Return the trader called ``name``, registering them if needed."""
    trader, _ = register_trader(db, name, starting_chips)
    return trader


def register_trader(
    db: Session, name: str, starting_chips: float = STARTING_CHIPS
) -> Tuple[Trader, bool]:
    """Return ``(trader, created)`` for the trader called ``name``.

    New traders get ``starting_chips`` and a zero position in every
    outcome, all in one commit. ``created`` is False when the name was
    already registered.
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise InvalidName("Name is required")

    existing = db.query(Trader).filter(Trader.name == trimmed).first()
    if existing is not None:
        with unit_of_work(db):
            ensure_positions(db, existing.id)
        return existing, False

    try:
        with unit_of_work(db):
            trader = Trader(name=trimmed, balance=starting_chips)
            db.add(trader)
            db.flush()
            ensure_positions(db, trader.id)
    except IntegrityError:
        # Another request registered the same name first.
        existing = db.query(Trader).filter(Trader.name == trimmed).first()
        if existing is None:
            raise
        return existing, False

    logger.info("Registered trader %s (%s) with %.2f chips", trader.name, trader.id, starting_chips)
    return trader, True
