from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand

from apps.sync.services import HealthAggregator


class Command(BaseCommand):
    help = "Roll the operation ledger up into sync performance metrics"

    def add_arguments(self, parser):
        parser.add_argument(
            "--window-hours",
            type=int,
            default=settings.SYNC_ENGINE["METRICS_WINDOW_HOURS"],
            help="Size of the aggregation window in hours",
        )

    def handle(self, *args, **options):
        rows = HealthAggregator(window=timedelta(hours=options["window_hours"])).aggregate()
        for row in rows:
            self.stdout.write(f"{row.chain_id} {row.table_name}: {row.records_processed} ops, quality {row.sync_quality_score}")
        self.stdout.write(self.style.SUCCESS(f"Wrote {len(rows)} metric rows"))
