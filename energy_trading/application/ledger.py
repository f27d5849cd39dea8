"""
Application Use Case — Balance Ledger

The ledger owns the authoritative energy and currency balances of every
factory. All mutations run inside the store's transaction scope, so a debit,
its sufficiency check and its paired credit commit together or not at all.

The ledger holds no in-process lock. Mutual exclusion is delegated to the
row locks taken by the store, which keeps the API tier horizontally
scalable.
"""

import logging

from energy_trading.domain.exceptions import InsufficientFunds
from energy_trading.domain.values import (
    BalanceKind,
    MovementReason,
    check_range,
    require_id,
    to_amount,
)

logger = logging.getLogger(__name__)


class BalanceLedger:

    def __init__(self, store):
        self.store = store

    def get_balances(self, factory_id):
        return self.store.read_balances(require_id(factory_id, "factory_id"))

    # Single-sided operations

    def debit_energy(self, factory_id, amount, reason=MovementReason.ADJUSTMENT, trade_id=None):
        return self._debit(factory_id, BalanceKind.ENERGY, amount, reason, trade_id)

    def credit_energy(self, factory_id, amount, reason=MovementReason.ADJUSTMENT, trade_id=None):
        return self._credit(factory_id, BalanceKind.ENERGY, amount, reason, trade_id)

    def debit_currency(self, factory_id, amount, reason=MovementReason.ADJUSTMENT, trade_id=None):
        return self._debit(factory_id, BalanceKind.CURRENCY, amount, reason, trade_id)

    def credit_currency(self, factory_id, amount, reason=MovementReason.ADJUSTMENT, trade_id=None):
        return self._credit(factory_id, BalanceKind.CURRENCY, amount, reason, trade_id)

    def mint(self, factory_id, amount):
        """Credits freshly generated surplus energy to a factory."""
        snapshot = self.credit_energy(factory_id, amount, reason=MovementReason.MINT)
        logger.info("Minted energy: factory=%s amount=%s", snapshot.factory_id, amount)
        return snapshot

    def _debit(self, factory_id, kind, amount, reason, trade_id):
        factory_id = require_id(factory_id, "factory_id")
        amount = to_amount(amount, "amount")
        with self.store.atomic():
            current = self.store.lock_balances([factory_id])[factory_id]
            available = current.amount_of(kind)
            if available < amount:
                logger.warning(
                    "Insufficient %s: factory=%s requested=%s available=%s",
                    kind.value, factory_id, amount, available,
                )
                raise InsufficientFunds(factory_id, kind.value, amount, available)
            return self.store.adjust_balance(factory_id, kind, -amount, reason, trade_id)

    def _credit(self, factory_id, kind, amount, reason, trade_id):
        factory_id = require_id(factory_id, "factory_id")
        amount = to_amount(amount, "amount")
        with self.store.atomic():
            current = self.store.lock_balances([factory_id])[factory_id]
            check_range(current.amount_of(kind) + amount, "amount")
            return self.store.adjust_balance(factory_id, kind, amount, reason, trade_id)

    # Paired operations

    def transfer(self, from_id, to_id, kind, amount, reason=MovementReason.TRANSFER, trade_id=None):
        """
        Moves ``amount`` of ``kind`` from one factory to another as one unit.

        Both rows are locked up front in sorted order. The credit is only
        attempted after the debit succeeded; if anything fails the enclosing
        transaction discards both sides.
        """
        from_id = require_id(from_id, "from_id")
        to_id = require_id(to_id, "to_id")
        kind = BalanceKind(kind)
        amount = to_amount(amount, "amount")

        with self.store.atomic():
            self.store.lock_balances([from_id, to_id])
            source = self._debit(from_id, kind, amount, reason, trade_id)
            target = self._credit(to_id, kind, amount, reason, trade_id)

        logger.debug(
            "Transferred %s %s: from=%s to=%s", amount, kind.value, from_id, to_id,
        )
        return source, target

    # Consumption bookkeeping

    def set_available_energy(self, factory_id, value):
        factory_id = require_id(factory_id, "factory_id")
        value = to_amount(value, "available_energy", allow_zero=True)
        return self.store.set_balance_fields(factory_id, available_energy=value)

    def set_daily_consumption(self, factory_id, value):
        factory_id = require_id(factory_id, "factory_id")
        value = to_amount(value, "daily_consumption", allow_zero=True)
        return self.store.set_balance_fields(factory_id, daily_consumption=value)

    def record_energy_readings(self, factory_id, current_generation, current_consumption,
                               energy_balance=None):
        """
        Stores the latest metering readings of a factory.

        When energy_balance is given the energy balance is moved to that figure
        through an adjustment movement, so the history still accounts for it.
        """
        factory_id = require_id(factory_id, "factory_id")
        generation = to_amount(current_generation, "current_generation", allow_zero=True)
        consumption = to_amount(current_consumption, "current_consumption", allow_zero=True)
        if energy_balance is not None:
            energy_balance = to_amount(energy_balance, "energy_balance", allow_zero=True)

        with self.store.atomic():
            current = self.store.lock_balances([factory_id])[factory_id]
            if energy_balance is not None and energy_balance != current.energy:
                self.store.adjust_balance(
                    factory_id, BalanceKind.ENERGY, energy_balance - current.energy,
                    MovementReason.ADJUSTMENT,
                )
            return self.store.set_balance_fields(
                factory_id,
                current_generation=generation,
                current_consumption=consumption,
            )

    def energy_status(self, factory_id):
        balances = self.get_balances(factory_id)
        difference = balances.available_energy - balances.daily_consumption
        if difference > 0:
            status = "surplus"
        elif difference < 0:
            status = "deficit"
        else:
            status = "balanced"
        return {
            "factory_id": balances.factory_id,
            "available_energy": balances.available_energy,
            "daily_consumption": balances.daily_consumption,
            "difference": difference,
            "status": status,
        }

    def history(self, factory_id):
        return self.store.list_movements(require_id(factory_id, "factory_id"))
