"""
Application Use Case — Offer Board

Factories announce what they want to buy or sell. An offer is informational:
it reserves nothing, and settlement always happens through a trade. Offers
start active and end either completed or cancelled.
"""

import logging

from django.utils import timezone

from energy_trading.domain.exceptions import Conflict, InvalidArgument
from energy_trading.domain.values import (
    OfferRecord,
    OfferStatus,
    OfferType,
    generate_id,
    require_id,
    to_amount,
)

logger = logging.getLogger(__name__)


def _enum_value(enum_cls, value, field):
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise InvalidArgument(field, f"must be one of {choices}")


class OfferBoard:

    def __init__(self, store, clock=timezone.now):
        self.store = store
        self.clock = clock

    def create(self, factory_id, offer_type, energy_amount, price_per_kwh, offer_id=None):
        factory_id = require_id(factory_id, "factory_id")
        offer_type = _enum_value(OfferType, offer_type, "offer_type")
        energy_amount = to_amount(energy_amount, "energy_amount")
        price_per_kwh = to_amount(price_per_kwh, "price_per_kwh")
        if offer_id is None or (isinstance(offer_id, str) and not offer_id.strip()):
            offer_id = generate_id("Offer")
        else:
            offer_id = require_id(offer_id, "offer_id")

        self.store.read_factory(factory_id)

        now = self.clock()
        record = self.store.insert_offer(OfferRecord(
            offer_id=offer_id,
            factory_id=factory_id,
            offer_type=offer_type,
            energy_amount=energy_amount,
            price_per_kwh=price_per_kwh,
            status=OfferStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        ))
        logger.info(
            "Offer created: offer=%s factory=%s type=%s amount=%s price=%s",
            offer_id, factory_id, offer_type.value, energy_amount, price_per_kwh,
        )
        return record

    def get(self, offer_id):
        return self.store.read_offer(require_id(offer_id, "offer_id"))

    def update_status(self, offer_id, status):
        """Closes an active offer. Completed and cancelled offers are final."""
        offer_id = require_id(offer_id, "offer_id")
        status = _enum_value(OfferStatus, status, "status")

        with self.store.atomic():
            offer = self.store.lock_offer(offer_id)
            if offer.status is not OfferStatus.ACTIVE:
                logger.warning(
                    "Rejected offer update: offer=%s status=%s target=%s",
                    offer_id, offer.status.value, status.value,
                )
                raise Conflict(f"Offer {offer_id} is already {offer.status.value}")
            return self.store.update_offer_status(offer_id, status, self.clock())

    def list_active(self):
        return self.store.list_offers(status=OfferStatus.ACTIVE)
