"""
Persistence Models — Energy Trading (Django ORM)

This module defines the tables behind the DjangoLedgerStore adapter.

Key decisions:

- Factory holds the registration profile and credentials. Its balances live
  in FactoryBalance (table ``factory_balances``), one row per factory, so
  that settlement locks only ever touch balance rows.
- Trade (table ``trades``) references its parties by plain id. The
  references are weak: a trade never owns or cascades into a factory.
- Every money or energy figure is an AmountField: a BIGINT count of
  ten-thousandths, read back as a Decimal with four decimal places.
- Offer (table ``offers``) is a standing buy or sell announcement. It does
  not reserve balances; settlement always goes through a Trade.
- BalanceMovement is the append-only audit trail written for each balance
  mutation. It backs the factory history endpoint.

These models are infrastructure. Domain code receives the frozen dataclasses
from energy_trading.domain.values, never model instances.
"""

from django.db import models

from energy_trading.domain.values import (
    BalanceKind,
    MovementReason,
    OfferStatus,
    OfferType,
    TradeStatus,
)
from energy_trading.fields import AmountField


class Factory(models.Model):

    class EnergyType(models.TextChoices):
        SOLAR = "solar"
        WIND = "wind"
        FOOTSTEP = "footstep"
        OTHER = "other"

    id = models.CharField(max_length=64, primary_key=True)
    name = models.CharField(max_length=200)
    energy_type = models.CharField(
        max_length=20,
        choices=EnergyType.choices,
        default=EnergyType.OTHER,
    )

    # Credentials are optional: factories registered by an operator have none.
    email = models.EmailField(unique=True, null=True, blank=True)
    password = models.CharField(max_length=128, blank=True)

    localisation = models.CharField(max_length=200, blank=True)
    fiscal_matricule = models.CharField(max_length=64, unique=True, null=True, blank=True)
    energy_capacity = AmountField(default=0)
    contact_info = models.CharField(max_length=200, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "factories"
        ordering = ["id"]

    def __str__(self):
        return f"Factory {self.id} - {self.name}"


class FactoryBalance(models.Model):
    """
    Mutable balances of one factory.

    energy_balance and currency_balance are never observed below zero: every
    debit runs under select_for_update() with a sufficiency check in the same
    transaction. updated_at is an audit timestamp, not a concurrency token.
    """

    factory = models.OneToOneField(
        Factory,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="balance",
    )

    energy_balance = AmountField(default=0)
    currency_balance = AmountField(default=0)
    available_energy = AmountField(default=0)
    daily_consumption = AmountField(default=0)

    # Latest metering readings, informational only.
    current_generation = AmountField(default=0)
    current_consumption = AmountField(default=0)

    updated_at = models.DateTimeField()

    class Meta:
        db_table = "factory_balances"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(energy_balance__gte=0),
                name="factory_balance_energy_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(currency_balance__gte=0),
                name="factory_balance_currency_non_negative",
            ),
        ]

    def __str__(self):
        return (
            f"Balance {self.factory_id} - Energy: {self.energy_balance} "
            f"Currency: {self.currency_balance}"
        )


class Trade(models.Model):
    """
    An agreement to exchange a fixed energy amount for a fixed total price.

    total_price is computed once at creation and stored; execution settles
    the stored figures and never re-prices.
    """

    id = models.CharField(max_length=64, primary_key=True)
    seller_id = models.CharField(max_length=64, db_index=True)
    buyer_id = models.CharField(max_length=64, db_index=True)

    energy_amount = AmountField()
    price_per_unit = AmountField()
    total_price = AmountField()

    status = models.CharField(
        max_length=16,
        choices=[(s.value, s.value) for s in TradeStatus],
        default=TradeStatus.PENDING.value,
    )

    created_at = models.DateTimeField()
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "trades"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Trade {self.id} - {self.energy_amount} @ {self.price_per_unit} ({self.status})"


class BalanceMovement(models.Model):

    factory = models.ForeignKey(
        Factory,
        on_delete=models.CASCADE,
        related_name="movements",
    )

    kind = models.CharField(
        max_length=16,
        choices=[(k.value, k.value) for k in BalanceKind],
    )
    delta = AmountField()
    balance_after = AmountField()
    reason = models.CharField(
        max_length=16,
        choices=[(r.value, r.value) for r in MovementReason],
    )
    trade_id = models.CharField(max_length=64, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "balance_movements"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Movement {self.id} - {self.factory_id} {self.kind} {self.delta}"


class Offer(models.Model):

    id = models.CharField(max_length=64, primary_key=True)
    factory = models.ForeignKey(
        Factory,
        on_delete=models.CASCADE,
        related_name="offers",
    )

    offer_type = models.CharField(
        max_length=8,
        choices=[(t.value, t.value) for t in OfferType],
    )
    energy_amount = AmountField()
    price_per_kwh = AmountField()
    status = models.CharField(
        max_length=16,
        choices=[(s.value, s.value) for s in OfferStatus],
        default=OfferStatus.ACTIVE.value,
    )

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        db_table = "offers"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Offer {self.id} - {self.offer_type} {self.energy_amount} @ {self.price_per_kwh} ({self.status})"
