import time

from django.conf import settings
from django.core.management.base import BaseCommand

from apps.sync.services import SyncWorker


class Command(BaseCommand):
    help = "Run the sync scheduler and executor: one pass with --once, otherwise forever"

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Run a single scheduling and execution pass")
        parser.add_argument(
            "--interval",
            type=int,
            default=settings.SYNC_ENGINE["WORKER_INTERVAL_SECONDS"],
            help="Seconds between passes",
        )

    def handle(self, *args, **options):
        worker = SyncWorker()

        while True:
            results = worker.run_once()
            for result in results:
                self.stdout.write(
                    f"job {result.job_id}: {result.status} "
                    f"(claimed={result.claimed} completed={result.completed} failed={result.failed} "
                    f"conflicts={result.conflicts} retried={result.retried})"
                )

            if options["once"]:
                self.stdout.write(self.style.SUCCESS(f"Sync pass finished: {len(results)} jobs executed"))
                return

            time.sleep(options["interval"])
