import django.db.models.deletion
import energy_trading.fields
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("energy_trading", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="factorybalance",
            name="current_generation",
            field=energy_trading.fields.AmountField(default=0),
        ),
        migrations.AddField(
            model_name="factorybalance",
            name="current_consumption",
            field=energy_trading.fields.AmountField(default=0),
        ),
        migrations.CreateModel(
            name="Offer",
            fields=[
                ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                (
                    "offer_type",
                    models.CharField(choices=[("buy", "buy"), ("sell", "sell")], max_length=8),
                ),
                ("energy_amount", energy_trading.fields.AmountField()),
                ("price_per_kwh", energy_trading.fields.AmountField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "active"),
                            ("completed", "completed"),
                            ("cancelled", "cancelled"),
                        ],
                        default="active",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
                (
                    "factory",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="offers",
                        to="energy_trading.factory",
                    ),
                ),
            ],
            options={
                "db_table": "offers",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
