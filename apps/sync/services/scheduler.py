import logging
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from apps.sync.adapters import LocationStore
from apps.sync.exceptions import SyncConfigurationError
from apps.sync.models import (
    SyncConfiguration,
    SyncJob,
    SyncOperation,
    PENDING,
    IN_PROGRESS,
    FAILED,
    INSERT,
    UPDATE,
)
from .ledger import OperationLedger
from .priority import calculate_sync_priority

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_WEIGHT = 100


class SyncScheduler:
    """
    Decides which (configuration, target) pairs need a sync pass and enqueues jobs
    Never executes anything itself
    """

    def __init__(self, ledger: OperationLedger = None):
        self.ledger = ledger or OperationLedger()

    def tick(self, now=None):
        now = now or timezone.now()

        self.ledger.release_expired(now)
        self._fail_expired_jobs(now)

        jobs = self._requeue_failed_jobs(now)

        configs = SyncConfiguration.objects.filter(is_active=True, chain__is_active=True).select_related("chain", "source_location")
        for config in configs:
            if not self._is_due(config, now):
                continue
            jobs.extend(self._schedule(config, now))
            config.last_run_at = now
            config.save(update_fields=["last_run_at", "updated_at"])

        jobs.sort(key=lambda job: (-job.priority, job.created_at))
        if jobs:
            logger.info(f"Scheduler tick enqueued {len(jobs)} sync jobs")
        return jobs

    def due_jobs(self, now=None):
        now = now or timezone.now()
        return list(
            SyncJob.objects.filter(status=PENDING, scheduled_at__lte=now)
            .select_related("config", "source_location", "target_location")
            .order_by("-priority", "created_at")
        )

    def initiate_sync(self, chain, table_name: str, source_location=None, target_locations=None, sync_type: str = SyncJob.INCREMENTAL, now=None):
        """
        Force an out-of-band sync pass; returns the batch id grouping the created jobs
        A full sync first snapshots every source record into pending inserts
        """
        now = now or timezone.now()
        if sync_type not in {value for value, _ in SyncJob.SYNC_TYPE_CHOICES}:
            raise ValueError(f"Invalid sync type: {sync_type}")

        config = (
            SyncConfiguration.objects.filter(chain=chain, table_name=table_name, is_active=True)
            .select_related("chain")
            .first()
        )
        if config is None:
            raise SyncConfigurationError(chain.pk, table_name)

        if target_locations:
            targets = [target for target in target_locations if source_location is None or target.pk != source_location.pk]
            foreign = [target.pk for target in targets if target.chain_id != chain.pk]
            if foreign:
                raise ValueError(f"Target locations {foreign} do not belong to chain {chain.pk}")
        else:
            targets = list(config.candidate_targets(exclude=source_location))

        batch_id = uuid.uuid4()
        with transaction.atomic():
            if sync_type == SyncJob.FULL and source_location is not None:
                self._snapshot(config, source_location, targets, batch_id)

            jobs = [
                self._create_job(config, source_location, target, now, batch_id, sync_type, metadata={"initiated": True})
                for target in targets
            ]

        logger.info(f"Initiated {sync_type} sync of {table_name} for chain {chain.pk}: {len(jobs)} jobs in batch {batch_id}")
        return batch_id

    def _is_due(self, config, now) -> bool:
        if config.last_run_at is None:
            return True
        return now - config.last_run_at >= timedelta(minutes=config.sync_frequency_minutes)

    def _schedule(self, config, now):
        batch_id = uuid.uuid4()
        jobs = []
        for target in config.candidate_targets(exclude=config.source_location):
            pending = SyncOperation.objects.pending().filter(chain_id=config.chain_id, table_name=config.table_name, target_location=target)
            if config.source_location_id:
                pending = pending.filter(source_location_id=config.source_location_id)
            if not pending.exists():
                continue

            open_job = SyncJob.objects.filter(config=config, target_location=target, status__in=[PENDING, IN_PROGRESS]).exists()
            if open_job:
                logger.debug(f"Job already open for {config.table_name} -> {target.pk}; not scheduling another")
                continue

            jobs.append(self._create_job(config, config.source_location, target, now, batch_id, SyncJob.INCREMENTAL))
        return jobs

    def _create_job(self, config, source_location, target, now, batch_id, sync_type, metadata=None):
        return SyncJob.objects.create(
            config=config,
            batch_id=batch_id,
            source_location=source_location,
            target_location=target,
            sync_type=sync_type,
            scheduled_at=now,
            priority=self._job_priority(config, target),
            max_retries=settings.SYNC_ENGINE["MAX_RETRIES"],
            metadata=metadata or {},
        )

    def _job_priority(self, config, target) -> int:
        """Highest pending operation score for the target, shifted by the configuration's weight"""
        top = (
            SyncOperation.objects.pending()
            .filter(chain_id=config.chain_id, table_name=config.table_name, target_location=target)
            .aggregate(top=Max("priority"))["top"]
        )
        if top is None:
            top = calculate_sync_priority(config.table_name, UPDATE, target.sync_priority)
        return top + (config.priority_weight - DEFAULT_PRIORITY_WEIGHT)

    def _snapshot(self, config, source_location, targets, batch_id):
        count = 0
        for record_id, image in LocationStore(source_location).list_records(config.table_name):
            if not config.matches(image):
                continue
            new_data = config.prepare_image(image)
            for target in targets:
                self.ledger.append(
                    chain=config.chain,
                    source_location=source_location,
                    target_location=target,
                    table_name=config.table_name,
                    operation=INSERT,
                    record_id=record_id,
                    new_data=new_data,
                    batch_id=batch_id,
                    priority=calculate_sync_priority(config.table_name, INSERT, target.sync_priority),
                )
            count += 1
        logger.info(f"Full sync snapshot of {config.table_name} at {source_location.pk}: {count} records")

    def _fail_expired_jobs(self, now):
        """Jobs still in progress past their lease were abandoned; fail them and free their operations"""
        expired = list(SyncJob.objects.filter(status=IN_PROGRESS, lease_expires_at__lt=now))
        for job in expired:
            with transaction.atomic():
                updated = SyncJob.objects.filter(pk=job.pk, status=IN_PROGRESS).update(
                    status=FAILED,
                    retry_count=job.retry_count + 1,
                    error_message="Job exceeded its execution timeout",
                    completed_at=now,
                    updated_at=now,
                )
                if updated:
                    self.ledger.release(list(SyncOperation.objects.filter(job=job, status=IN_PROGRESS)))
                    logger.warning(f"Sync job {job.pk} timed out; its operations were returned to pending")

    def _requeue_failed_jobs(self, now):
        """Failed jobs with retries left are retried wholesale"""
        requeued = []
        for job in SyncJob.objects.filter(status=FAILED).select_related("config"):
            if job.retry_count >= job.max_retries:
                continue
            updated = SyncJob.objects.filter(pk=job.pk, status=FAILED).update(
                status=PENDING,
                scheduled_at=now,
                started_at=None,
                completed_at=None,
                lease_expires_at=None,
                updated_at=now,
            )
            if updated:
                job.refresh_from_db()
                requeued.append(job)
                logger.info(f"Requeued failed sync job {job.pk} (attempt {job.retry_count + 1}/{job.max_retries})")
        return requeued
