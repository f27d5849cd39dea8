"""
Application Use Case — Factory Accounts

Registration by an operator, self-service signup and login. None of this
touches settlement; it only creates the balance rows the ledger later
mutates and checks credentials for the rate-limited auth endpoints.
"""

import logging
import re

from django.contrib.auth.hashers import check_password, make_password

from energy_trading.conf import get_setting
from energy_trading.domain.exceptions import InvalidArgument, InvalidCredentials
from energy_trading.domain.values import (
    ZERO,
    BalanceSnapshot,
    FactoryProfile,
    generate_id,
    require_id,
    to_amount,
)

logger = logging.getLogger(__name__)

ENERGY_TYPES = {"solar", "wind", "footstep", "other"}
MIN_PASSWORD_LENGTH = 8
_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"[0-9]")


def _optional_amount(value, field, default=ZERO):
    if value is None:
        return default
    return to_amount(value, field, allow_zero=True)


def _energy_type(value):
    value = value or "other"
    if not isinstance(value, str) or value.strip().lower() not in ENERGY_TYPES:
        raise InvalidArgument("energy_type", f"must be one of {sorted(ENERGY_TYPES)}")
    return value.strip().lower()


def validate_password(password):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidArgument("password", f"must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not (_LETTER.search(password) and _DIGIT.search(password)):
        raise InvalidArgument("password", "must contain at least one letter and one number")


class FactoryAccounts:

    def __init__(self, store):
        self.store = store

    def register(self, factory_id, name, initial_energy, energy_type, currency=None,
                 daily_consumption=None, available_energy=None):
        """
        Registers a factory with explicit opening balances.

        available_energy defaults to the initial energy balance, currency and
        daily consumption default to zero.
        """
        factory_id = require_id(factory_id, "factory_id")
        name = require_id(name, "name")
        energy = to_amount(initial_energy, "initial_energy", allow_zero=True)

        profile = FactoryProfile(
            factory_id=factory_id,
            name=name,
            energy_type=_energy_type(energy_type),
        )
        balances = BalanceSnapshot(
            factory_id=factory_id,
            energy=energy,
            currency=_optional_amount(currency, "currency_balance"),
            available_energy=_optional_amount(available_energy, "available_energy", default=energy),
            daily_consumption=_optional_amount(daily_consumption, "daily_consumption"),
        )
        profile, balances = self.store.insert_factory(profile, balances)
        logger.info("Factory registered: factory=%s energy=%s", factory_id, balances.energy)
        return profile, balances

    def signup(self, email, password, factory_name, fiscal_matricule, localisation="",
               energy_capacity=None, contact_info="", energy_source=None):
        if not all([email, password, factory_name, fiscal_matricule]):
            raise InvalidArgument(
                "signup", "email, password, factory_name and fiscal_matricule are required",
            )
        validate_password(password)

        factory_id = generate_id("Factory")
        defaults = get_setting("SIGNUP_DEFAULT_BALANCES")
        profile = FactoryProfile(
            factory_id=factory_id,
            name=require_id(factory_name, "factory_name"),
            energy_type=_energy_type(energy_source),
            email=require_id(email, "email").lower(),
            password_hash=make_password(password),
            localisation=localisation or "",
            fiscal_matricule=require_id(fiscal_matricule, "fiscal_matricule"),
            energy_capacity=_optional_amount(energy_capacity, "energy_capacity"),
            contact_info=contact_info or "",
        )
        balances = BalanceSnapshot(
            factory_id=factory_id,
            energy=to_amount(defaults["energy"], "energy", allow_zero=True),
            currency=to_amount(defaults["currency"], "currency", allow_zero=True),
            available_energy=to_amount(defaults["available_energy"], "available_energy", allow_zero=True),
            daily_consumption=to_amount(defaults["daily_consumption"], "daily_consumption", allow_zero=True),
        )
        profile, balances = self.store.insert_factory(profile, balances)
        logger.info("Factory signed up: factory=%s email=%s", factory_id, profile.email)
        return profile, balances

    def authenticate(self, email, password):
        if not isinstance(email, str) or not isinstance(password, str) or not email.strip() or not password:
            raise InvalidArgument("credentials", "email and password are required")
        email = email.strip()

        profile = self.store.find_factory_by_email(email)
        if profile is None or not profile.password_hash:
            # Still hash once so unknown emails cost the same as wrong passwords.
            make_password(password)
            logger.info("Login failed: unknown email %s", email)
            raise InvalidCredentials()
        if not check_password(password, profile.password_hash):
            logger.info("Login failed: wrong password for %s", email)
            raise InvalidCredentials()
        return profile

    def get(self, factory_id):
        factory_id = require_id(factory_id, "factory_id")
        return self.store.read_factory(factory_id), self.store.read_balances(factory_id)

    def list(self):
        return self.store.list_factories()
