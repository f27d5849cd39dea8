"""
Domain Exceptions — Energy Trading

Every failure the ledger, the trade state machine and the rate limiter can
produce is one of the kinds below. The HTTP layer maps kinds to status codes;
the core never speaks in status codes.

Only Unavailable is retryable. Every other kind is terminal for the given
input and has to be corrected by the caller.
"""


class TradingError(Exception):
    """Base class for all energy trading domain errors."""

    retryable = False


class InvalidArgument(TradingError):
    """Raised when an amount, price or identifier is missing or malformed."""

    def __init__(self, field, message):
        self.field = field
        super().__init__(f"{field}: {message}")


class InvalidCredentials(InvalidArgument):
    """Raised when an email/password pair does not match a registered factory."""

    def __init__(self):
        super().__init__("credentials", "invalid email or password")


class NotFound(TradingError):
    pass


class FactoryNotFound(NotFound):
    def __init__(self, factory_id):
        self.factory_id = factory_id
        super().__init__(f"Factory {factory_id} does not exist")


class TradeNotFound(NotFound):
    def __init__(self, trade_id, message=None):
        self.trade_id = trade_id
        super().__init__(message or f"Trade {trade_id} does not exist")


class TradeNotPending(TradeNotFound):
    """
    Raised when a trade exists but is no longer pending.

    It stays a TradeNotFound so callers that only know the NotFound kind keep
    treating re-execution exactly like an unknown trade.
    """

    def __init__(self, trade_id, status):
        self.status = status
        super().__init__(trade_id, f"Trade {trade_id} is not pending (status={status})")


class OfferNotFound(NotFound):
    def __init__(self, offer_id):
        self.offer_id = offer_id
        super().__init__(f"Offer {offer_id} does not exist")


class InsufficientFunds(TradingError):
    """Raised when a debit would take a balance below zero."""

    def __init__(self, factory_id, kind, requested, available):
        self.factory_id = factory_id
        self.kind = kind
        self.requested = requested
        self.available = available
        super().__init__(
            f"Factory {factory_id}: insufficient {kind}, requested {requested}, available {available}"
        )


class Conflict(TradingError):
    """Raised when a caller-supplied identifier or unique attribute is already taken."""


class Unavailable(TradingError):
    """Raised when the backing store is unreachable or a transaction failed to commit."""

    retryable = True


class Throttled(TradingError):
    """Raised when the rate limiter rejects an attempt."""

    def __init__(self, endpoint, retry_after):
        self.endpoint = endpoint
        self.retry_after = retry_after
        super().__init__(f"Too many {endpoint} attempts, retry in {retry_after}s")
