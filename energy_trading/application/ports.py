"""
Application Port — Ledger Store

The ledger and the trade state machine only talk to storage through this
interface. Exactly one adapter is active per process; it is chosen at startup
from ``ENERGY_TRADING["LEDGER_STORE"]`` (see energy_trading.services).

Contract every adapter honours:

- ``atomic()`` opens a transaction scope. Scopes nest; an exception leaving
  the outermost scope discards every write made inside it.
- ``lock_*`` methods take a row lock that is held until the outermost scope
  ends. They must only be called inside ``atomic()``.
- Connectivity and commit failures surface as Unavailable. Duplicate keys on
  insert surface as Conflict. Missing rows surface as NotFound subclasses.
"""

import abc


class LedgerStore(abc.ABC):

    @abc.abstractmethod
    def atomic(self):
        """Context manager delimiting one all-or-nothing unit of work."""

    # Balances

    @abc.abstractmethod
    def read_balances(self, factory_id):
        """Returns a BalanceSnapshot without locking."""

    @abc.abstractmethod
    def lock_balances(self, factory_ids):
        """Locks the balance rows in sorted id order and returns {id: BalanceSnapshot}."""

    @abc.abstractmethod
    def adjust_balance(self, factory_id, kind, delta, reason, trade_id=None):
        """
        Adds ``delta`` (signed) to the balance of ``kind``.

        Energy adjustments move available energy by the same delta, floored at
        zero. Writes a balance movement and bumps ``updated_at``. Sufficiency
        is the caller's job; the row must already be locked.
        """

    @abc.abstractmethod
    def set_balance_fields(self, factory_id, **fields):
        """Overwrites available_energy, daily_consumption or the metering readings."""

    @abc.abstractmethod
    def list_movements(self, factory_id):
        """Returns BalanceMovementRecords oldest first."""

    # Trades

    @abc.abstractmethod
    def insert_trade(self, record):
        """Persists a new TradeRecord. Raises Conflict on a duplicate id."""

    @abc.abstractmethod
    def read_trade(self, trade_id):
        """Returns a TradeRecord without locking."""

    @abc.abstractmethod
    def lock_trade(self, trade_id):
        """Locks and returns the TradeRecord."""

    @abc.abstractmethod
    def update_trade_status(self, trade_id, status, **timestamps):
        """Sets status plus completed_at/cancelled_at and returns the TradeRecord."""

    @abc.abstractmethod
    def list_trades(self, status=None, factory_id=None):
        """Returns TradeRecords newest first."""

    # Factories

    @abc.abstractmethod
    def insert_factory(self, profile, balances):
        """Persists a FactoryProfile with its initial BalanceSnapshot. Raises Conflict."""

    @abc.abstractmethod
    def read_factory(self, factory_id):
        """Returns a FactoryProfile."""

    @abc.abstractmethod
    def find_factory_by_email(self, email):
        """Returns the FactoryProfile registered with ``email`` or None."""

    @abc.abstractmethod
    def list_factories(self):
        """Returns (FactoryProfile, BalanceSnapshot) pairs ordered by id."""

    # Offers

    @abc.abstractmethod
    def insert_offer(self, record):
        """Persists a new OfferRecord. Raises Conflict on a duplicate id."""

    @abc.abstractmethod
    def read_offer(self, offer_id):
        """Returns an OfferRecord. Raises OfferNotFound."""

    @abc.abstractmethod
    def lock_offer(self, offer_id):
        """Locks and returns the OfferRecord."""

    @abc.abstractmethod
    def update_offer_status(self, offer_id, status, updated_at):
        """Sets status and updated_at and returns the OfferRecord."""

    @abc.abstractmethod
    def list_offers(self, status=None):
        """Returns OfferRecords oldest first."""
