"""FastAPI application exposing the firm prediction market.

Participants trade shares in which firm an event will resolve to. Prices
come from an LMSR automated market maker over the fixed firm catalog, and
every trade is settled atomically against the trader's chips and position.
The API uses JSON for all input and output. Authentication is out of scope:
callers address traders by id and are trusted to do so.
"""

import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from firm_market.catalog import FIRMS
from firm_market.config import CORS_ORIGINS, LIQUIDITY, LOG_LEVEL
from firm_market.database import get_db, init_db
from firm_market.errors import TradeError
from firm_market.market_logic import prices, quote_trade, signed_amount
from firm_market.schemas import (
    ErrorResponse,
    FirmView,
    MarketView,
    Quote,
    QuoteRequest,
    RegisterRequest,
    TradeReceipt,
    TradeRecordView,
    TradeRequest,
    TraderView,
)
from firm_market.settlement import (
    get_market_sequence,
    get_market_snapshot,
    get_trade_history,
    get_trader_view,
    place_trade,
)
from firm_market.traders import register_trader

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # In production you may want to manage migrations separately using
    # Alembic, but for a quick start this is convenient.
    init_db()
    logger.info("Market ready: %d outcomes, liquidity b=%s", len(FIRMS), LIQUIDITY)
    yield


app = FastAPI(title="Firm Prediction Market API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}


@app.exception_handler(TradeError)
async def trade_error_handler(request: Request, exc: TradeError):
    """Report engine errors with a stable code and whether a retry may help."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
def root():
    return {"message": "Firm Prediction Market API is running!"}


@app.get("/catalog", response_model=List[FirmView])
def list_catalog():
    """Return the tradable firms in catalog order."""
    return [FirmView(name=f.name, slug=f.slug, logo=f.logo) for f in FIRMS]


@app.get("/market", response_model=MarketView)
def get_market(db: Session = Depends(get_db)):
    """Return aggregate shares and current prices for every firm."""
    totals = get_market_snapshot(db)
    return MarketView(
        liquidity=LIQUIDITY,
        sequence=get_market_sequence(db),
        totals=totals,
        prices=prices(totals),
    )


@app.post("/quote", response_model=Quote, responses=_ERRORS)
def get_quote(request: QuoteRequest, db: Session = Depends(get_db)):
    """Price a trade against the current market without placing it.

    The quote is only indicative: by the time a trade is placed, other
    trades may have moved the market.
    """
    totals = get_market_snapshot(db)
    return quote_trade(totals, request.outcome, signed_amount(request.amount, request.side))


@app.post("/traders", response_model=TraderView, status_code=status.HTTP_201_CREATED, responses=_ERRORS)
def register(request: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    """Register a trader by name, or return the existing trader of that name.

    Answers 201 when a trader was created and 200 when the name was taken.
    """
    trader, created = register_trader(db, request.name)
    if not created:
        response.status_code = status.HTTP_200_OK
    return get_trader_view(db, trader.id)


@app.get("/traders/{trader_id}", response_model=TraderView, responses=_ERRORS)
def get_trader(trader_id: str, db: Session = Depends(get_db)):
    return get_trader_view(db, trader_id)


@app.post("/traders/{trader_id}/trades", response_model=TradeReceipt, responses=_ERRORS)
def trade(trader_id: str, request: TradeRequest, db: Session = Depends(get_db)):
    """Buy or sell shares in one firm.

    On success the returned view already includes this trade. On any error
    nothing about the market or the trader has changed.
    """
    return place_trade(db, trader_id, request.outcome, request.amount, request.side)


@app.get("/traders/{trader_id}/trades", response_model=List[TradeRecordView], responses=_ERRORS)
def trade_history(
    trader_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Return the trader's trades, newest first."""
    return get_trade_history(db, trader_id, limit)
