import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="RestaurantChain",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("name_th", models.CharField(blank=True, max_length=255)),
                ("code", models.CharField(max_length=50, unique=True)),
                ("corporate_settings", models.JSONField(blank=True, default=dict)),
                ("timezone", models.CharField(default="Asia/Bangkok", max_length=50)),
                ("default_currency", models.CharField(default="THB", max_length=3)),
                ("is_active", models.BooleanField(default=True)),
                ("sync_sequence", models.BigIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "restaurant_chains",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="ChainRegion",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("name_th", models.CharField(blank=True, max_length=255)),
                ("code", models.CharField(max_length=50)),
                ("regional_settings", models.JSONField(blank=True, default=dict)),
                ("timezone", models.CharField(blank=True, max_length=50)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "chain",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="regions", to="chains.restaurantchain"),
                ),
            ],
            options={
                "db_table": "chain_regions",
                "ordering": ["chain", "code"],
            },
        ),
        migrations.AddConstraint(
            model_name="chainregion",
            constraint=models.UniqueConstraint(fields=("chain", "code"), name="uniq_region_code_per_chain"),
        ),
        migrations.CreateModel(
            name="Location",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("location_code", models.CharField(max_length=50)),
                ("sync_priority", models.IntegerField(default=1000)),
                ("sync_enabled", models.BooleanField(default=True)),
                ("last_sync_at", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "chain",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="locations", to="chains.restaurantchain"),
                ),
                (
                    "region",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="locations",
                        to="chains.chainregion",
                    ),
                ),
            ],
            options={
                "db_table": "restaurant_locations",
                "ordering": ["chain", "location_code"],
                "indexes": [
                    models.Index(fields=["chain", "sync_enabled"], name="location_chain_sync_idx"),
                    models.Index(fields=["sync_priority"], name="location_sync_priority_idx"),
                ],
            },
        ),
    ]
