"""
Application Use Case — Trade Settlement

A trade moves through a small state machine:

    pending --execute--> completed
    pending --cancel---> cancelled

Both targets are terminal. A failed execution leaves the trade pending so it
can be retried once the parties hold enough energy or currency.

Core guarantees of execute():

- Atomicity: trade lookup, both transfers and the status flip share one
  transaction scope.
- Row-level locking: the trade row is locked first, then both balance rows in
  sorted order. Two concurrent executions of the same trade serialize on the
  trade row; the second one observes a non-pending trade and is rejected.
- Frozen pricing: the stored energy amount and total price are settled, never
  a recomputed figure.
"""

import logging

from django.utils import timezone

from energy_trading.domain.exceptions import InvalidArgument, TradeNotPending
from energy_trading.domain.values import (
    BalanceKind,
    MovementReason,
    TradeRecord,
    TradeStatus,
    generate_id,
    multiply,
    require_id,
    to_amount,
)

logger = logging.getLogger(__name__)

TRANSITIONS = {
    TradeStatus.PENDING: {TradeStatus.COMPLETED, TradeStatus.CANCELLED},
    TradeStatus.COMPLETED: set(),
    TradeStatus.CANCELLED: set(),
}


class TradeService:

    def __init__(self, store, ledger, clock=timezone.now):
        self.store = store
        self.ledger = ledger
        self.clock = clock

    def create(self, seller_id, buyer_id, amount, price_per_unit, trade_id=None):
        """
        Records a pending trade. Balances are not consulted here; only the
        existence of both parties is checked. Self-trades are accepted.
        """
        seller_id = require_id(seller_id, "seller_id")
        buyer_id = require_id(buyer_id, "buyer_id")
        amount = to_amount(amount, "amount")
        price_per_unit = to_amount(price_per_unit, "price_per_unit")
        total_price = multiply(amount, price_per_unit, "total_price")
        if not total_price:
            raise InvalidArgument("total_price", "rounds to zero at four decimal places")
        if trade_id is None or (isinstance(trade_id, str) and not trade_id.strip()):
            trade_id = generate_id("Trade")
        else:
            trade_id = require_id(trade_id, "trade_id")

        self.store.read_factory(seller_id)
        self.store.read_factory(buyer_id)

        record = TradeRecord(
            trade_id=trade_id,
            seller_id=seller_id,
            buyer_id=buyer_id,
            energy_amount=amount,
            price_per_unit=price_per_unit,
            total_price=total_price,
            status=TradeStatus.PENDING,
            created_at=self.clock(),
        )
        record = self.store.insert_trade(record)
        logger.info(
            "Trade created: trade=%s seller=%s buyer=%s amount=%s total=%s",
            record.trade_id, seller_id, buyer_id, amount, record.total_price,
        )
        return record

    def execute(self, trade_id):
        trade_id = require_id(trade_id, "trade_id")

        with self.store.atomic():
            trade = self.store.lock_trade(trade_id)
            self._check_transition(trade, TradeStatus.COMPLETED)

            self.store.lock_balances([trade.seller_id, trade.buyer_id])
            self.ledger.transfer(
                trade.seller_id, trade.buyer_id, BalanceKind.ENERGY, trade.energy_amount,
                reason=MovementReason.TRADE, trade_id=trade_id,
            )
            self.ledger.transfer(
                trade.buyer_id, trade.seller_id, BalanceKind.CURRENCY, trade.total_price,
                reason=MovementReason.TRADE, trade_id=trade_id,
            )
            completed = self.store.update_trade_status(
                trade_id, TradeStatus.COMPLETED, completed_at=self.clock(),
            )

        logger.info(
            "Trade settled: trade=%s seller=%s buyer=%s amount=%s total=%s",
            trade_id, trade.seller_id, trade.buyer_id, trade.energy_amount, trade.total_price,
        )
        return completed

    def cancel(self, trade_id):
        trade_id = require_id(trade_id, "trade_id")

        with self.store.atomic():
            trade = self.store.lock_trade(trade_id)
            self._check_transition(trade, TradeStatus.CANCELLED)
            cancelled = self.store.update_trade_status(
                trade_id, TradeStatus.CANCELLED, cancelled_at=self.clock(),
            )

        logger.info("Trade cancelled: trade=%s", trade_id)
        return cancelled

    def get(self, trade_id):
        return self.store.read_trade(require_id(trade_id, "trade_id"))

    def list(self, status=None, factory_id=None):
        if status is not None:
            try:
                status = TradeStatus(status)
            except ValueError:
                raise InvalidArgument("status", f"unknown trade status {status!r}")
        return self.store.list_trades(status=status, factory_id=factory_id)

    @staticmethod
    def _check_transition(trade, target):
        if target not in TRANSITIONS[trade.status]:
            logger.warning(
                "Rejected %s transition: trade=%s status=%s",
                target.value, trade.trade_id, trade.status.value,
            )
            raise TradeNotPending(trade.trade_id, trade.status.value)
