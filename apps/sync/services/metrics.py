import logging
import uuid
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import Avg, Count, Min, Q, Sum
from django.utils import timezone

from apps.sync.models import (
    SyncConfiguration,
    SyncConflict,
    SyncOperation,
    SyncPerformanceMetric,
    COMPLETED,
    FAILED,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def _percent(part, total) -> Decimal:
    if not total:
        return Decimal("0.00")
    return (Decimal(part) * HUNDRED / Decimal(total)).quantize(CENT, rounding=ROUND_HALF_UP)


def _clamp(value: Decimal) -> Decimal:
    return min(max(value, Decimal("0")), HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


class HealthAggregator:
    """Periodically rolls the ledger up into SyncPerformanceMetric rows"""

    def __init__(self, window: timedelta = None):
        self.window = window or timedelta(hours=settings.SYNC_ENGINE["METRICS_WINDOW_HOURS"])

    def aggregate(self, now=None, window: timedelta = None):
        """Write one immutable metric row per active (chain, table); rows of one run share a batch id"""
        now = now or timezone.now()
        since = now - (window or self.window)
        batch_id = uuid.uuid4()

        configs = SyncConfiguration.objects.filter(is_active=True, chain__is_active=True).select_related("chain")
        rows = []
        with transaction.atomic():
            for config in configs:
                figures = self.summarize(config.chain_id, config.table_name, since, now)
                rows.append(
                    SyncPerformanceMetric.objects.create(
                        chain_id=config.chain_id,
                        sync_batch_id=batch_id,
                        table_name=config.table_name,
                        restaurant_count=figures["restaurant_count"],
                        records_processed=figures["records_processed"],
                        records_success=figures["records_success"],
                        records_failed=figures["records_failed"],
                        conflicts_detected=figures["conflicts_detected"],
                        conflicts_resolved=figures["conflicts_resolved"],
                        strategy_fallbacks=figures["strategy_fallbacks"],
                        execution_time_ms=figures["execution_time_ms"],
                        avg_execution_time_ms=figures["avg_execution_time_ms"],
                        throughput_records_per_sec=figures["throughput_records_per_sec"],
                        error_rate_percent=figures["error_rate_percent"],
                        success_rate_percent=figures["success_rate_percent"],
                        sync_quality_score=figures["sync_quality_score"],
                        started_at=figures["started_at"],
                        completed_at=now,
                    )
                )

        logger.info(f"Aggregated sync metrics for {len(rows)} tables (batch {batch_id})")
        return rows

    def summarize(self, chain_id, table_name: str, since, until) -> dict:
        operations = SyncOperation.objects.filter(chain_id=chain_id, table_name=table_name, created_at__gte=since, created_at__lt=until)
        op_stats = operations.aggregate(
            total=Count("id"),
            completed=Count("id", filter=Q(status=COMPLETED)),
            failed=Count("id", filter=Q(status=FAILED)),
            locations=Count("target_location", distinct=True),
            execution_time=Sum("execution_time_ms"),
            avg_execution_time=Avg("execution_time_ms"),
            first=Min("created_at"),
        )

        conflicts = SyncConflict.objects.filter(chain_id=chain_id, table_name=table_name, created_at__gte=since, created_at__lt=until)
        conflict_stats = conflicts.aggregate(
            detected=Count("id"),
            resolved=Count("id", filter=Q(resolved_at__isnull=False)),
            fallbacks=Count("id", filter=Q(metadata__strategy_fallback=True)),
        )

        total = op_stats["total"]
        execution_time = op_stats["execution_time"] or 0
        unresolved = conflict_stats["detected"] - conflict_stats["resolved"]

        success_rate = _percent(op_stats["completed"], total) if total else HUNDRED
        error_rate = _percent(op_stats["failed"], total)

        quality = success_rate
        if total:
            quality -= Decimal(50) * Decimal(unresolved) / Decimal(total)
            quality -= Decimal(10) * Decimal(conflict_stats["fallbacks"]) / Decimal(total)

        throughput = Decimal("0.00")
        if execution_time:
            throughput = (Decimal(op_stats["completed"]) * 1000 / Decimal(execution_time)).quantize(CENT, rounding=ROUND_HALF_UP)

        return {
            "table_name": table_name,
            "restaurant_count": op_stats["locations"],
            "records_processed": total,
            "records_success": op_stats["completed"],
            "records_failed": op_stats["failed"],
            "conflicts_detected": conflict_stats["detected"],
            "conflicts_resolved": conflict_stats["resolved"],
            "strategy_fallbacks": conflict_stats["fallbacks"],
            "execution_time_ms": execution_time,
            "avg_execution_time_ms": Decimal(op_stats["avg_execution_time"] or 0).quantize(CENT, rounding=ROUND_HALF_UP),
            "throughput_records_per_sec": min(throughput, Decimal("99999999.99")),
            "error_rate_percent": error_rate,
            "success_rate_percent": success_rate,
            "sync_quality_score": _clamp(quality),
            "started_at": op_stats["first"] or since,
        }

    def health_summary(self, chain, now=None, window: timedelta = None):
        """Live figures per configured table for one chain, without persisting anything"""
        now = now or timezone.now()
        since = now - (window or self.window)
        tables = SyncConfiguration.objects.filter(chain=chain, is_active=True).values_list("table_name", flat=True)
        return [self.summarize(chain.pk, table_name, since, now) for table_name in tables]
