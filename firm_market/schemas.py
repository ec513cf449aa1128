"""Pydantic models shared by the engine and the HTTP layer.

These enforce input validation at the API boundary and describe the values
the engine hands back: quotes, trader views and trade receipts.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

Side = Literal["buy", "sell"]


class Quote(BaseModel):
    """Result of pricing a proposed trade. Never persisted."""

    outcome: str
    amount: float  # signed: positive buys, negative sells
    cost: float  # signed: positive is paid by the trader
    prices_before: Dict[str, float]
    prices_after: Dict[str, float]
    totals_after: Dict[str, float]


class PositionView(BaseModel):
    outcome: str
    slug: str
    logo: str
    shares: float


class TraderView(BaseModel):
    id: str
    name: str
    balance: float
    positions: List[PositionView]
    totals: Dict[str, float]
    prices: Dict[str, float]


class TradeReceipt(BaseModel):
    outcome: str
    side: Side
    amount: float
    cost: float
    trader: TraderView


class TradeRecordView(BaseModel):
    id: int
    outcome: str
    side: Side
    amount: float
    signed_amount: float
    cost: float
    price_before: float
    price_after: float
    sequence: int
    timestamp: datetime


class MarketView(BaseModel):
    liquidity: float
    sequence: int  # trades committed so far
    totals: Dict[str, float]
    prices: Dict[str, float]


class FirmView(BaseModel):
    name: str
    slug: str
    logo: str


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)


class TradeRequest(BaseModel):
    outcome: str
    amount: float = Field(..., gt=0.0)
    side: Side = "buy"


class QuoteRequest(TradeRequest):
    pass


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
    retryable: bool = False
