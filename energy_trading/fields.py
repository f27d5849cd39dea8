"""
Fixed-point amount column.

Amounts are stored as a BIGINT count of 1/10**AMOUNT_PLACES units and read
back as quantized Decimals. Integers are exact on every backend, whereas
SQLite keeps NUMERIC decimals as doubles and drops digits past the
fifteenth.
"""

from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import models

from energy_trading.domain.values import AMOUNT_PLACES, quantize


class AmountField(models.BigIntegerField):
    description = "Fixed-point amount with four decimal places"

    def from_db_value(self, value, expression, connection):
        if value is None:
            return value
        return quantize(Decimal(value).scaleb(-AMOUNT_PLACES))

    def to_python(self, value):
        if value is None or isinstance(value, Decimal):
            return value
        try:
            return quantize(Decimal(str(value)))
        except InvalidOperation:
            raise ValidationError(
                self.error_messages["invalid"],
                code="invalid",
                params={"value": value},
            )

    def get_prep_value(self, value):
        value = models.Field.get_prep_value(self, value)
        if value is None:
            return None
        units = Decimal(str(value)).scaleb(AMOUNT_PLACES)
        return int(units.to_integral_value())
