import django.db.models.deletion
import energy_trading.fields
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Factory",
            fields=[
                ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                (
                    "energy_type",
                    models.CharField(
                        choices=[
                            ("solar", "Solar"),
                            ("wind", "Wind"),
                            ("footstep", "Footstep"),
                            ("other", "Other"),
                        ],
                        default="other",
                        max_length=20,
                    ),
                ),
                ("email", models.EmailField(blank=True, max_length=254, null=True, unique=True)),
                ("password", models.CharField(blank=True, max_length=128)),
                ("localisation", models.CharField(blank=True, max_length=200)),
                ("fiscal_matricule", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("energy_capacity", energy_trading.fields.AmountField(default=0)),
                ("contact_info", models.CharField(blank=True, max_length=200)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "factories",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="Trade",
            fields=[
                ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("seller_id", models.CharField(db_index=True, max_length=64)),
                ("buyer_id", models.CharField(db_index=True, max_length=64)),
                ("energy_amount", energy_trading.fields.AmountField()),
                ("price_per_unit", energy_trading.fields.AmountField()),
                ("total_price", energy_trading.fields.AmountField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "pending"),
                            ("completed", "completed"),
                            ("cancelled", "cancelled"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField()),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "trades",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="FactoryBalance",
            fields=[
                (
                    "factory",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="balance",
                        serialize=False,
                        to="energy_trading.factory",
                    ),
                ),
                ("energy_balance", energy_trading.fields.AmountField(default=0)),
                ("currency_balance", energy_trading.fields.AmountField(default=0)),
                ("available_energy", energy_trading.fields.AmountField(default=0)),
                ("daily_consumption", energy_trading.fields.AmountField(default=0)),
                ("updated_at", models.DateTimeField()),
            ],
            options={
                "db_table": "factory_balances",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(energy_balance__gte=0),
                        name="factory_balance_energy_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(currency_balance__gte=0),
                        name="factory_balance_currency_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BalanceMovement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[("energy", "energy"), ("currency", "currency")],
                        max_length=16,
                    ),
                ),
                ("delta", energy_trading.fields.AmountField()),
                ("balance_after", energy_trading.fields.AmountField()),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("mint", "mint"),
                            ("transfer", "transfer"),
                            ("trade", "trade"),
                            ("adjustment", "adjustment"),
                        ],
                        max_length=16,
                    ),
                ),
                ("trade_id", models.CharField(blank=True, max_length=64, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "factory",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="movements",
                        to="energy_trading.factory",
                    ),
                ),
            ],
            options={
                "db_table": "balance_movements",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
