import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("chains", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="LocationRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("table_name", models.CharField(max_length=100)),
                ("record_id", models.CharField(max_length=64)),
                ("data", models.JSONField(default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "location",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="records", to="chains.location"),
                ),
            ],
            options={
                "db_table": "location_records",
                "ordering": ["table_name", "record_id"],
                "constraints": [
                    models.UniqueConstraint(fields=("location", "table_name", "record_id"), name="uniq_record_per_location"),
                ],
            },
        ),
    ]
