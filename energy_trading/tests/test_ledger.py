from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone

from energy_trading.application.factories import FactoryAccounts
from energy_trading.application.ledger import BalanceLedger
from energy_trading.domain.exceptions import (
    FactoryNotFound,
    InsufficientFunds,
    InvalidArgument,
    Unavailable,
)
from energy_trading.domain.values import BalanceKind, MovementReason
from energy_trading.infrastructure.django_store import DjangoLedgerStore
from energy_trading.models import BalanceMovement, FactoryBalance


class LedgerTestMixin:

    def setUp(self):
        self.store = DjangoLedgerStore()
        self.ledger = BalanceLedger(self.store)
        self.accounts = FactoryAccounts(self.store)

    def register(self, factory_id, energy="0", currency="0", **kwargs):
        self.accounts.register(
            factory_id=factory_id,
            name=f"{factory_id} plant",
            initial_energy=energy,
            energy_type="solar",
            currency=currency,
            **kwargs,
        )


class BalanceLedgerTest(LedgerTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.register("A", energy="100", currency="0")
        self.register("B", energy="0", currency="50")

    def test_get_balances(self):
        balances = self.ledger.get_balances("A")

        self.assertEqual(balances.energy, Decimal("100"))
        self.assertEqual(balances.currency, Decimal("0"))
        self.assertEqual(balances.available_energy, Decimal("100"))
        self.assertEqual(balances.daily_consumption, Decimal("0"))

    def test_get_balances_unknown_factory(self):
        with self.assertRaises(FactoryNotFound):
            self.ledger.get_balances("nope")

    def test_debit_and_credit_energy_move_available_energy(self):
        self.ledger.debit_energy("A", 30)
        self.ledger.credit_energy("B", "12.5")

        a = self.ledger.get_balances("A")
        b = self.ledger.get_balances("B")
        self.assertEqual((a.energy, a.available_energy), (Decimal("70"), Decimal("70")))
        self.assertEqual((b.energy, b.available_energy), (Decimal("12.5"), Decimal("12.5")))

    def test_available_energy_never_goes_negative(self):
        self.ledger.set_available_energy("A", 10)

        balances = self.ledger.debit_energy("A", 40)

        self.assertEqual(balances.energy, Decimal("60"))
        self.assertEqual(balances.available_energy, Decimal("0"))

    def test_debit_currency_insufficient(self):
        with self.assertRaises(InsufficientFunds) as ctx:
            self.ledger.debit_currency("B", "50.0001")

        self.assertEqual(ctx.exception.kind, "currency")
        self.assertEqual(self.ledger.get_balances("B").currency, Decimal("50"))

    def test_non_positive_amounts_rejected(self):
        for amount in (0, -1, "0", "abc", None, True, float("nan")):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidArgument):
                    self.ledger.credit_energy("A", amount)

        self.assertEqual(self.ledger.get_balances("A").energy, Decimal("100"))

    def test_mutation_updates_timestamp(self):
        later = timezone.now() + timedelta(hours=1)

        with mock.patch("django.utils.timezone.now", return_value=later):
            self.ledger.credit_currency("A", 1)

        self.assertEqual(FactoryBalance.objects.get(factory_id="A").updated_at, later)

    def test_fractional_debits_reach_exact_zero(self):
        self.register("C", energy="0.3")

        self.ledger.debit_energy("C", "0.1")
        balances = self.ledger.debit_energy("C", "0.2")

        self.assertEqual(balances.energy, Decimal("0"))
        self.assertEqual(FactoryBalance.objects.get(factory_id="C").energy_balance, Decimal("0"))
        with self.assertRaises(InsufficientFunds):
            self.ledger.debit_energy("C", "0.0001")

    def test_large_balances_keep_every_digit(self):
        self.register("BIG", energy="1234567890123.4567")

        source, _ = self.ledger.transfer("BIG", "B", BalanceKind.ENERGY, "0.0001")

        self.assertEqual(source.energy, Decimal("1234567890123.4566"))
        stored = FactoryBalance.objects.get(factory_id="BIG")
        self.assertEqual(stored.energy_balance, Decimal("1234567890123.4566"))
        self.assertEqual(stored.available_energy, Decimal("1234567890123.4566"))
        self.assertEqual(self.ledger.history("BIG")[-1].balance_after, Decimal("1234567890123.4566"))

    def test_credit_beyond_storage_range_is_rejected(self):
        self.register("MAX", currency="99999999999999.9999")

        with self.assertRaises(InvalidArgument):
            self.ledger.credit_currency("MAX", "0.0001")

        self.assertEqual(self.ledger.get_balances("MAX").currency, Decimal("99999999999999.9999"))
        self.assertFalse(BalanceMovement.objects.filter(factory_id="MAX").exists())

    def test_amounts_wider_than_storage_are_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.ledger.credit_energy("A", "100000000000000")

    def test_transfer_moves_both_sides(self):
        source, target = self.ledger.transfer("A", "B", BalanceKind.ENERGY, 25)

        self.assertEqual(source.energy, Decimal("75"))
        self.assertEqual(target.energy, Decimal("25"))

    def test_failed_transfer_does_not_credit(self):
        with self.assertRaises(InsufficientFunds):
            self.ledger.transfer("B", "A", BalanceKind.ENERGY, 1)

        self.assertEqual(self.ledger.get_balances("A").energy, Decimal("100"))
        self.assertEqual(self.ledger.get_balances("B").energy, Decimal("0"))
        self.assertEqual(BalanceMovement.objects.count(), 0)

    def test_transfer_to_unknown_factory_leaves_source_untouched(self):
        with self.assertRaises(FactoryNotFound):
            self.ledger.transfer("A", "ghost", BalanceKind.ENERGY, 10)

        self.assertEqual(self.ledger.get_balances("A").energy, Decimal("100"))

    def test_mint_records_history(self):
        self.ledger.mint("A", 5)
        self.ledger.transfer("A", "B", "energy", 3)

        history = self.ledger.history("A")

        self.assertEqual([m.reason for m in history], [MovementReason.MINT, MovementReason.TRANSFER])
        self.assertEqual([m.delta for m in history], [Decimal("5"), Decimal("-3")])
        self.assertEqual(history[-1].balance_after, Decimal("102"))

    def test_history_unknown_factory(self):
        with self.assertRaises(FactoryNotFound):
            self.ledger.history("ghost")


class EnergyStatusTest(LedgerTestMixin, TestCase):

    def test_surplus_deficit_balanced(self):
        self.register("S", energy="100", daily_consumption="40")
        self.register("D", energy="10", daily_consumption="40")
        self.register("E", energy="40", daily_consumption="40")

        self.assertEqual(self.ledger.energy_status("S")["status"], "surplus")
        self.assertEqual(self.ledger.energy_status("D")["status"], "deficit")
        self.assertEqual(self.ledger.energy_status("E")["status"], "balanced")
        self.assertEqual(self.ledger.energy_status("D")["difference"], Decimal("-30"))

    def test_daily_consumption_is_independent_of_energy(self):
        self.register("S", energy="100")

        self.ledger.set_daily_consumption("S", "75.5")

        balances = self.ledger.get_balances("S")
        self.assertEqual(balances.daily_consumption, Decimal("75.5"))
        self.assertEqual(balances.energy, Decimal("100"))

    def test_negative_settings_rejected(self):
        self.register("S", energy="100")

        with self.assertRaises(InvalidArgument):
            self.ledger.set_available_energy("S", -1)
        with self.assertRaises(InvalidArgument):
            self.ledger.set_daily_consumption("S", "-0.5")

class EnergyReadingsTest(LedgerTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.register("S", energy="100")

    def test_readings_are_stored_without_touching_energy(self):
        balances = self.ledger.record_energy_readings("S", "12.5", 3)

        self.assertEqual(balances.current_generation, Decimal("12.5"))
        self.assertEqual(balances.current_consumption, Decimal("3"))
        self.assertEqual(balances.energy, Decimal("100"))
        self.assertEqual(self.ledger.history("S"), [])

    def test_energy_balance_override_is_an_adjustment(self):
        balances = self.ledger.record_energy_readings("S", 0, 0, energy_balance="80")

        self.assertEqual(balances.energy, Decimal("80"))
        movement = self.ledger.history("S")[-1]
        self.assertEqual(movement.reason, MovementReason.ADJUSTMENT)
        self.assertEqual(movement.delta, Decimal("-20"))

    def test_invalid_readings_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.ledger.record_energy_readings("S", -1, 0)
        with self.assertRaises(InvalidArgument):
            self.ledger.record_energy_readings("S", 1, None)
        with self.assertRaises(FactoryNotFound):
            self.ledger.record_energy_readings("ghost", 1, 1)



class StoreUnavailableTest(LedgerTestMixin, TestCase):

    def test_database_errors_become_unavailable(self):
        self.register("A", energy="10")

        with mock.patch.object(
            self.store, "_balances", side_effect=OperationalError("database is locked"),
        ):
            with self.assertRaises(Unavailable) as ctx:
                self.ledger.get_balances("A")

        self.assertTrue(ctx.exception.retryable)

    def test_other_errors_are_not_retryable(self):
        with self.assertRaises(FactoryNotFound) as ctx:
            self.ledger.get_balances("ghost")

        self.assertFalse(ctx.exception.retryable)
