from django.apps import AppConfig
from django.core.signals import setting_changed


def _reset_on_settings_change(setting, **kwargs):
    if setting in ("ENERGY_TRADING", "CACHES"):
        from energy_trading.services import reset_services

        reset_services()


class EnergyTradingConfig(AppConfig):
    name = "energy_trading"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        setting_changed.connect(_reset_on_settings_change, dispatch_uid="energy_trading_reset")
