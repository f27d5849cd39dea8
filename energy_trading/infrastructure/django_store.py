"""
Infrastructure Adapter — Django ORM Ledger Store

Implements the LedgerStore port on top of the Django ORM.

Guarantees:

- Transaction scope via transaction.atomic(); nested scopes become savepoints.
- Row-level locking via select_for_update() on balance and trade rows.
- Balance deltas are applied to the row read under select_for_update() and
  written back as absolute values. Amount columns are integers, so the
  arithmetic is exact Decimal arithmetic on every backend.
- OperationalError / InterfaceError (unreachable database, lock or statement
  timeout, failed commit) are translated to Unavailable.
- IntegrityError on insert is translated to Conflict.
"""

import logging
from contextlib import contextmanager

from django.db import IntegrityError, InterfaceError, OperationalError, transaction
from django.db.models import Q
from django.utils import timezone

from energy_trading.application.ports import LedgerStore
from energy_trading.domain.exceptions import (
    Conflict,
    FactoryNotFound,
    OfferNotFound,
    TradeNotFound,
    Unavailable,
)
from energy_trading.domain.values import (
    ZERO,
    BalanceKind,
    BalanceMovementRecord,
    BalanceSnapshot,
    FactoryProfile,
    MovementReason,
    OfferRecord,
    OfferStatus,
    OfferType,
    TradeRecord,
    TradeStatus,
    quantize,
)
from energy_trading.models import BalanceMovement, Factory, FactoryBalance, Offer, Trade

logger = logging.getLogger(__name__)

_BALANCE_COLUMNS = {
    BalanceKind.ENERGY: "energy_balance",
    BalanceKind.CURRENCY: "currency_balance",
}
_SETTABLE_FIELDS = {
    "available_energy",
    "daily_consumption",
    "current_generation",
    "current_consumption",
}


@contextmanager
def _database_errors(operation):
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.error("Ledger store unavailable during %s: %s", operation, exc)
        raise Unavailable(f"{operation} failed: {exc}") from exc


def _snapshot(row):
    return BalanceSnapshot(
        factory_id=row.factory_id,
        energy=row.energy_balance,
        currency=row.currency_balance,
        available_energy=row.available_energy,
        daily_consumption=row.daily_consumption,
        current_generation=row.current_generation,
        current_consumption=row.current_consumption,
        updated_at=row.updated_at,
    )


def _trade_record(row):
    return TradeRecord(
        trade_id=row.id,
        seller_id=row.seller_id,
        buyer_id=row.buyer_id,
        energy_amount=row.energy_amount,
        price_per_unit=row.price_per_unit,
        total_price=row.total_price,
        status=TradeStatus(row.status),
        created_at=row.created_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
    )


def _profile(row):
    return FactoryProfile(
        factory_id=row.id,
        name=row.name,
        energy_type=row.energy_type,
        email=row.email,
        password_hash=row.password,
        localisation=row.localisation,
        fiscal_matricule=row.fiscal_matricule,
        energy_capacity=row.energy_capacity,
        contact_info=row.contact_info,
        created_at=row.created_at,
    )


def _movement(row):
    return BalanceMovementRecord(
        factory_id=row.factory_id,
        kind=BalanceKind(row.kind),
        delta=row.delta,
        balance_after=row.balance_after,
        reason=MovementReason(row.reason),
        trade_id=row.trade_id,
        created_at=row.created_at,
    )


def _offer(row):
    return OfferRecord(
        offer_id=row.id,
        factory_id=row.factory_id,
        offer_type=OfferType(row.offer_type),
        energy_amount=row.energy_amount,
        price_per_kwh=row.price_per_kwh,
        status=OfferStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class DjangoLedgerStore(LedgerStore):

    def __init__(self, using="default"):
        self.using = using

    @contextmanager
    def atomic(self):
        with _database_errors("transaction"):
            with transaction.atomic(using=self.using):
                yield

    def _balances(self):
        return FactoryBalance.objects.using(self.using)

    def _trades(self):
        return Trade.objects.using(self.using)

    # Balances

    def read_balances(self, factory_id):
        with _database_errors("read_balances"):
            try:
                return _snapshot(self._balances().get(factory_id=factory_id))
            except FactoryBalance.DoesNotExist:
                raise FactoryNotFound(factory_id)

    def lock_balances(self, factory_ids):
        wanted = sorted(set(factory_ids))
        with _database_errors("lock_balances"):
            # Sorted ids give every transaction the same lock order.
            rows = {
                row.factory_id: _snapshot(row)
                for row in self._balances()
                .select_for_update()
                .filter(factory_id__in=wanted)
                .order_by("factory_id")
            }
        for factory_id in wanted:
            if factory_id not in rows:
                raise FactoryNotFound(factory_id)
        return rows

    def adjust_balance(self, factory_id, kind, delta, reason, trade_id=None):
        kind = BalanceKind(kind)
        column = _BALANCE_COLUMNS[kind]

        with _database_errors("adjust_balance"):
            try:
                row = self._balances().select_for_update().get(factory_id=factory_id)
            except FactoryBalance.DoesNotExist:
                raise FactoryNotFound(factory_id)

            # The row is locked, so absolute values computed here are safe.
            updates = {
                column: quantize(getattr(row, column) + delta),
                "updated_at": timezone.now(),
            }
            if kind is BalanceKind.ENERGY:
                updates["available_energy"] = quantize(max(row.available_energy + delta, ZERO))
            self._balances().filter(factory_id=factory_id).update(**updates)
            for name, value in updates.items():
                setattr(row, name, value)

            BalanceMovement.objects.using(self.using).create(
                factory_id=factory_id,
                kind=kind.value,
                delta=delta,
                balance_after=updates[column],
                reason=MovementReason(reason).value,
                trade_id=trade_id,
            )
        return _snapshot(row)

    def set_balance_fields(self, factory_id, **fields):
        unknown = set(fields) - _SETTABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot set balance fields: {sorted(unknown)}")

        with _database_errors("set_balance_fields"):
            updated = self._balances().filter(factory_id=factory_id).update(
                updated_at=timezone.now(),
                **fields,
            )
            if not updated:
                raise FactoryNotFound(factory_id)
            return _snapshot(self._balances().get(factory_id=factory_id))

    def list_movements(self, factory_id):
        with _database_errors("list_movements"):
            if not Factory.objects.using(self.using).filter(id=factory_id).exists():
                raise FactoryNotFound(factory_id)
            return [
                _movement(row)
                for row in BalanceMovement.objects.using(self.using).filter(factory_id=factory_id)
            ]

    # Trades

    def insert_trade(self, record):
        with _database_errors("insert_trade"):
            try:
                # Inner atomic keeps the outer transaction usable after IntegrityError.
                with transaction.atomic(using=self.using):
                    row = self._trades().create(
                        id=record.trade_id,
                        seller_id=record.seller_id,
                        buyer_id=record.buyer_id,
                        energy_amount=record.energy_amount,
                        price_per_unit=record.price_per_unit,
                        total_price=record.total_price,
                        status=record.status.value,
                        created_at=record.created_at,
                    )
            except IntegrityError:
                raise Conflict(f"Trade {record.trade_id} already exists")
        return _trade_record(row)

    def read_trade(self, trade_id):
        with _database_errors("read_trade"):
            try:
                return _trade_record(self._trades().get(id=trade_id))
            except Trade.DoesNotExist:
                raise TradeNotFound(trade_id)

    def lock_trade(self, trade_id):
        with _database_errors("lock_trade"):
            try:
                return _trade_record(self._trades().select_for_update().get(id=trade_id))
            except Trade.DoesNotExist:
                raise TradeNotFound(trade_id)

    def update_trade_status(self, trade_id, status, **timestamps):
        with _database_errors("update_trade_status"):
            updated = self._trades().filter(id=trade_id).update(
                status=TradeStatus(status).value,
                **timestamps,
            )
            if not updated:
                raise TradeNotFound(trade_id)
            return _trade_record(self._trades().get(id=trade_id))

    def list_trades(self, status=None, factory_id=None):
        queryset = self._trades()
        if status is not None:
            queryset = queryset.filter(status=TradeStatus(status).value)
        if factory_id is not None:
            queryset = queryset.filter(Q(seller_id=factory_id) | Q(buyer_id=factory_id))
        with _database_errors("list_trades"):
            return [_trade_record(row) for row in queryset]

    # Factories

    def insert_factory(self, profile, balances):
        with _database_errors("insert_factory"):
            try:
                with transaction.atomic(using=self.using):
                    factory = Factory.objects.using(self.using).create(
                        id=profile.factory_id,
                        name=profile.name,
                        energy_type=profile.energy_type,
                        email=profile.email,
                        password=profile.password_hash,
                        localisation=profile.localisation,
                        fiscal_matricule=profile.fiscal_matricule,
                        energy_capacity=profile.energy_capacity,
                        contact_info=profile.contact_info,
                    )
                    balance = self._balances().create(
                        factory=factory,
                        energy_balance=balances.energy,
                        currency_balance=balances.currency,
                        available_energy=balances.available_energy,
                        daily_consumption=balances.daily_consumption,
                        updated_at=timezone.now(),
                    )
            except IntegrityError as exc:
                logger.info("Factory insert rejected: id=%s error=%s", profile.factory_id, exc)
                raise Conflict(
                    f"Factory {profile.factory_id}, its email or its fiscal matricule already exists"
                )
        return _profile(factory), _snapshot(balance)

    def read_factory(self, factory_id):
        with _database_errors("read_factory"):
            try:
                return _profile(Factory.objects.using(self.using).get(id=factory_id))
            except Factory.DoesNotExist:
                raise FactoryNotFound(factory_id)

    def find_factory_by_email(self, email):
        with _database_errors("find_factory_by_email"):
            row = Factory.objects.using(self.using).filter(email__iexact=email).first()
        return _profile(row) if row is not None else None

    def list_factories(self):
        with _database_errors("list_factories"):
            rows = Factory.objects.using(self.using).select_related("balance")
            return [(_profile(row), _snapshot(row.balance)) for row in rows]

    # Offers

    def _offers(self):
        return Offer.objects.using(self.using)

    def insert_offer(self, record):
        with _database_errors("insert_offer"):
            try:
                with transaction.atomic(using=self.using):
                    row = self._offers().create(
                        id=record.offer_id,
                        factory_id=record.factory_id,
                        offer_type=record.offer_type.value,
                        energy_amount=record.energy_amount,
                        price_per_kwh=record.price_per_kwh,
                        status=record.status.value,
                        created_at=record.created_at,
                        updated_at=record.updated_at,
                    )
            except IntegrityError:
                raise Conflict(f"Offer {record.offer_id} already exists")
        return _offer(row)

    def read_offer(self, offer_id):
        with _database_errors("read_offer"):
            try:
                return _offer(self._offers().get(id=offer_id))
            except Offer.DoesNotExist:
                raise OfferNotFound(offer_id)

    def lock_offer(self, offer_id):
        with _database_errors("lock_offer"):
            try:
                return _offer(self._offers().select_for_update().get(id=offer_id))
            except Offer.DoesNotExist:
                raise OfferNotFound(offer_id)

    def update_offer_status(self, offer_id, status, updated_at):
        with _database_errors("update_offer_status"):
            updated = self._offers().filter(id=offer_id).update(
                status=OfferStatus(status).value,
                updated_at=updated_at,
            )
            if not updated:
                raise OfferNotFound(offer_id)
            return _offer(self._offers().get(id=offer_id))

    def list_offers(self, status=None):
        queryset = self._offers()
        if status is not None:
            queryset = queryset.filter(status=OfferStatus(status).value)
        with _database_errors("list_offers"):
            return [_offer(row) for row in queryset]
