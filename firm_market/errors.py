"""Errors raised by the pricing core and the settlement engine.

Every error carries a stable ``code`` and a ``retryable`` flag so callers
can tell a request that will never succeed (bad input, not enough chips)
from a transient storage failure that may succeed on a later attempt.
"""


class TradeError(Exception):
    code = "TRADE_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, "retryable": self.retryable}


class UnknownOutcome(TradeError):
    code = "UNKNOWN_OUTCOME"


class InvalidAmount(TradeError):
    code = "INVALID_AMOUNT"


class InsufficientShares(TradeError):
    code = "INSUFFICIENT_SHARES"


class InsufficientBalance(TradeError):
    code = "INSUFFICIENT_BALANCE"


class InvalidName(TradeError):
    code = "INVALID_NAME"


class UnknownTrader(TradeError):
    code = "UNKNOWN_TRADER"
    status_code = 404


class StorageConflict(TradeError):
    """A commit lost a race or hit a locked store and ran out of retries."""

    code = "STORAGE_CONFLICT"
    status_code = 503
    retryable = True
