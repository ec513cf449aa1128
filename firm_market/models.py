"""Database models for the firm market.

``Trader`` holds a chip balance, ``Position`` holds one trader's shares in
one outcome, and ``MarketTotal`` holds the aggregate outstanding shares per
outcome. ``MarketSequence`` counts trades market-wide, and ``TradeRecord``
is an append-only ledger of committed trades.

Every row a trade updates carries a ``version`` column that the ORM bumps
and checks (``version_id_col``).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from firm_market.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Trader(Base):
    """A registered participant.

    Traders are identified by a UUID string and a unique display name. The
    balance starts at the configured number of starting chips and only
    changes when a trade commits. ``version`` guards the balance against
    an update built on a stale read.
    """

    __tablename__ = "traders"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, unique=True, index=True, nullable=False)
    balance = Column(Float, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    positions = relationship("Position", back_populates="trader", cascade="all, delete-orphan")
    trades = relationship("TradeRecord", back_populates="trader", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}


class Position(Base):
    """Shares held by one trader in one outcome. Never negative."""

    __tablename__ = "positions"
    __table_args__ = (UniqueConstraint("trader_id", "outcome", name="uq_position_trader_outcome"),)

    id = Column(Integer, primary_key=True, index=True)
    trader_id = Column(String, ForeignKey("traders.id", ondelete="CASCADE"), nullable=False, index=True)
    outcome = Column(String, nullable=False)
    shares = Column(Float, default=0.0, nullable=False)
    version = Column(Integer, nullable=False)

    trader = relationship("Trader", back_populates="positions")

    __mapper_args__ = {"version_id_col": version}


class MarketTotal(Base):
    """Aggregate outstanding shares in one outcome across all traders."""

    __tablename__ = "market_totals"

    outcome = Column(String, primary_key=True)
    shares = Column(Float, default=0.0, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class MarketSequence(Base):
    """Single row counting committed trades across the whole market.

    Every trade bumps it, and the ORM checks ``version`` in the UPDATE's
    WHERE clause. A trade priced from totals that another trade has since
    changed, in any outcome, therefore fails with ``StaleDataError`` instead
    of committing.
    """

    __tablename__ = "market_sequence"

    id = Column(Integer, primary_key=True)
    trades = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class TradeRecord(Base):
    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, index=True)
    trader_id = Column(String, ForeignKey("traders.id", ondelete="CASCADE"), nullable=False, index=True)
    outcome = Column(String, nullable=False)
    side = Column(String, nullable=False)  # 'buy' or 'sell'
    amount = Column(Float, nullable=False)  # shares traded, always positive
    signed_amount = Column(Float, nullable=False)  # change in the position and the total
    cost = Column(Float, nullable=False)  # signed chips paid by the trader
    price_before = Column(Float, nullable=False)
    price_after = Column(Float, nullable=False)
    sequence = Column(Integer, nullable=False)  # MarketSequence.trades after this trade
    timestamp = Column(DateTime, default=_utcnow, nullable=False)

    trader = relationship("Trader", back_populates="trades")
