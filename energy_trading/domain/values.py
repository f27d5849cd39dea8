"""
Domain Values — amounts, identifiers and read models.

All balances, amounts and prices are fixed-point Decimals with four decimal
places. Floats coming from JSON are converted through their string form so
that 0.1 stays 0.1 instead of its binary approximation.
"""

import enum
import secrets
import string
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Optional

from energy_trading.domain.exceptions import InvalidArgument

AMOUNT_PLACES = 4
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)
# Stored as a signed 64-bit count of quantum units.
AMOUNT_MAX_DIGITS = 18
ZERO = Decimal("0").quantize(AMOUNT_QUANTUM)

_ID_ALPHABET = string.ascii_lowercase + string.digits


class BalanceKind(str, enum.Enum):
    ENERGY = "energy"
    CURRENCY = "currency"


class TradeStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MovementReason(str, enum.Enum):
    MINT = "mint"
    TRANSFER = "transfer"
    TRADE = "trade"
    ADJUSTMENT = "adjustment"


class OfferType(str, enum.Enum):
    BUY = "buy"
    SELL = "sell"


class OfferStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def quantize(value):
    return value.quantize(AMOUNT_QUANTUM)


def to_amount(value, field, allow_zero=False):
    """
    Coerces a user supplied number into a quantized Decimal.

    Strictly positive unless allow_zero is set, in which case zero is
    accepted and only negatives are rejected.
    """
    if value is None or value == "":
        raise InvalidArgument(field, "is required")
    if isinstance(value, bool):
        raise InvalidArgument(field, "must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidArgument(field, "must be a number")
    if not amount.is_finite():
        raise InvalidArgument(field, "must be a finite number")

    try:
        amount = quantize(amount)
    except InvalidOperation:
        raise InvalidArgument(field, "is out of range")
    check_range(amount, field)

    if amount < 0 or (amount == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise InvalidArgument(field, f"must be a {qualifier} number")
    return amount


def check_range(amount, field):
    """Raises InvalidArgument when amount does not fit an amount column."""
    if len(amount.as_tuple().digits) > AMOUNT_MAX_DIGITS:
        raise InvalidArgument(field, "is out of range")
    return amount


def multiply(left, right, field):
    """
    Exact product of two amounts, quantized and range checked.

    Runs with enough precision for two full-width operands so the product
    is never rounded before the range check sees it.
    """
    with localcontext() as ctx:
        ctx.prec = 2 * AMOUNT_MAX_DIGITS + AMOUNT_PLACES
        try:
            product = quantize(left * right)
        except InvalidOperation:
            raise InvalidArgument(field, "is out of range")
    return check_range(product, field)


def require_id(value, field):
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(field, "is required")
    return value.strip()


def generate_id(prefix):
    """Returns ids shaped like ``Factory_1718031234567_k3j9x0a1b``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


@dataclass(frozen=True)
class BalanceSnapshot:
    factory_id: str
    energy: Decimal
    currency: Decimal
    available_energy: Decimal
    daily_consumption: Decimal
    current_generation: Decimal = ZERO
    current_consumption: Decimal = ZERO
    updated_at: object = None

    def amount_of(self, kind):
        return self.energy if BalanceKind(kind) is BalanceKind.ENERGY else self.currency


@dataclass(frozen=True)
class TradeRecord:
    trade_id: str
    seller_id: str
    buyer_id: str
    energy_amount: Decimal
    price_per_unit: Decimal
    total_price: Decimal
    status: TradeStatus
    created_at: object = None
    completed_at: object = None
    cancelled_at: object = None

    @property
    def is_pending(self):
        return self.status is TradeStatus.PENDING


@dataclass(frozen=True)
class FactoryProfile:
    factory_id: str
    name: str
    energy_type: str
    email: Optional[str] = None
    password_hash: str = ""
    localisation: str = ""
    fiscal_matricule: Optional[str] = None
    energy_capacity: Decimal = ZERO
    contact_info: str = ""
    created_at: object = None


@dataclass(frozen=True)
class BalanceMovementRecord:
    factory_id: str
    kind: BalanceKind
    delta: Decimal
    balance_after: Decimal
    reason: MovementReason
    trade_id: Optional[str] = None
    created_at: object = None


@dataclass(frozen=True)
class OfferRecord:
    offer_id: str
    factory_id: str
    offer_type: OfferType
    energy_amount: Decimal
    price_per_kwh: Decimal
    status: OfferStatus
    created_at: object = None
    updated_at: object = None
