import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.chains.models import Location
from apps.sync.adapters import LocationStore
from apps.sync.exceptions import InvalidTransition
from apps.sync.models import (
    SyncConfiguration,
    SyncConflict,
    SyncJob,
    PENDING,
    IN_PROGRESS,
    COMPLETED,
    FAILED,
    CONFLICT,
    DELETE,
)
from .detector import ConflictDetector
from .ledger import OperationLedger
from .resolvers import ConflictResolutionService, _overlay
from .scheduler import SyncScheduler

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    job_id: str
    status: str
    claimed: int = 0
    completed: int = 0
    failed: int = 0
    conflicts: int = 0
    auto_resolved: int = 0
    retried: int = 0
    lost: int = 0
    errors: list = field(default_factory=list)


class SyncExecutor:
    """
    Runs one sync job: claims its pending operations and applies them at the target
    Failures of a single operation never abort the batch
    """

    def __init__(self, ledger: OperationLedger = None, detector: ConflictDetector = None, resolver: ConflictResolutionService = None, timeout_seconds: int = None):
        self.ledger = ledger or OperationLedger()
        self.detector = detector or ConflictDetector()
        self.resolver = resolver or ConflictResolutionService(ledger=self.ledger)
        self.timeout_seconds = timeout_seconds or settings.SYNC_ENGINE["JOB_TIMEOUT_SECONDS"]

    def execute(self, job: SyncJob, now=None) -> JobResult:
        now = now or timezone.now()
        result = JobResult(job_id=str(job.pk), status=job.status)

        started = SyncJob.objects.filter(pk=job.pk, status=PENDING).update(
            status=IN_PROGRESS,
            started_at=now,
            completed_at=None,
            lease_expires_at=now + timedelta(seconds=self.timeout_seconds),
            updated_at=now,
        )
        if not started:
            logger.info(f"Sync job {job.pk} is no longer pending; skipping")
            return result
        job.status = IN_PROGRESS

        claimed = []
        try:
            config = SyncConfiguration.objects.get(pk=job.config_id)
            claimed = self.ledger.claim(
                chain_id=config.chain_id,
                table_name=config.table_name,
                target_location=job.target_location,
                source_location=job.source_location,
                limit=config.batch_size,
                job=job,
                now=now,
            )
        except (SyncConfiguration.DoesNotExist, DatabaseError) as e:
            logger.error(f"Sync job {job.pk} aborted: {e}")
            self.ledger.release(claimed)
            self._finish(job, FAILED, now, error_message=str(e), retry_count=job.retry_count + 1)
            result.status = FAILED
            result.errors.append(str(e))
            return result

        result.claimed = len(claimed)
        logger.info(f"Sync job {job.pk}: claimed {len(claimed)} {config.table_name} operations for {job.target_location_id}")

        store = LocationStore(job.target_location)
        deadline = time.monotonic() + self.timeout_seconds
        timed_out = False

        for index, sync_op in enumerate(claimed):
            if time.monotonic() > deadline:
                remaining = claimed[index:]
                self.ledger.release(remaining)
                timed_out = True
                logger.warning(f"Sync job {job.pk} timed out with {len(remaining)} operations unprocessed")
                break
            self._run_operation(sync_op, config, store, result)

        if timed_out:
            status = FAILED
            error_message = "Job exceeded its execution timeout"
            retry_count = job.retry_count + 1
        elif result.failed:
            # exhausted operations are terminal, so the job is not requeued
            status = FAILED
            error_message = f"{result.failed} operations failed permanently"
            retry_count = job.max_retries
        elif result.conflicts > result.auto_resolved:
            status, error_message, retry_count = CONFLICT, None, job.retry_count
        elif result.retried:
            if job.retry_count < job.max_retries:
                status = PENDING
            else:
                status = FAILED
            error_message = f"{result.retried} operations awaiting retry"
            retry_count = job.retry_count + 1 if status == PENDING else job.retry_count
        else:
            status, error_message, retry_count = COMPLETED, None, job.retry_count

        self._finish(job, status, now, error_message=error_message, retry_count=retry_count)
        Location.objects.filter(pk=job.target_location_id).update(last_sync_at=now)

        result.status = status
        logger.info(
            f"Sync job {job.pk} finished {status}: {result.completed} completed, {result.failed} failed, "
            f"{result.conflicts} conflicts ({result.auto_resolved} auto-resolved), {result.retried} retried"
        )
        return result

    def _run_operation(self, sync_op, config, store, result):
        started = time.monotonic()
        try:
            with transaction.atomic():
                outcome = self._process(sync_op, config, store, started)
        except Exception as e:
            self._record_failure(sync_op, e, result)
            return

        if outcome == COMPLETED:
            result.completed += 1
            return

        result.conflicts += 1
        conflict = sync_op.conflict
        if not config.is_automatic:
            logger.info(f"Conflict {conflict.pk} on {sync_op.table_name}/{sync_op.record_id} left for manual review")
            return

        try:
            with transaction.atomic():
                self.resolver.resolve(conflict, config.conflict_resolution, auto=True)
        except Exception as e:
            # the conflict stays open and visible in the review queue
            logger.error(f"Auto-resolution of conflict {conflict.pk} failed: {e}")
            result.errors.append(f"{sync_op.record_id}: {e}")
            return
        result.auto_resolved += 1

    def _process(self, sync_op, config, store, started) -> str:
        table_name, record_id = sync_op.table_name, sync_op.record_id

        if sync_op.operation == DELETE:
            store.apply_image(table_name, record_id, None, DELETE)
            return self._complete(sync_op, started)

        current = store.get(table_name, record_id)
        image = sync_op.new_data or {}

        if current is None or self._fast_forward(current, sync_op.old_data):
            store.apply_image(table_name, record_id, _overlay(current, image), sync_op.operation)
            return self._complete(sync_op, started)

        detected = self.detector.detect(image, current)
        if not detected.has_conflict:
            store.apply_image(table_name, record_id, _overlay(current, image), sync_op.operation)
            return self._complete(sync_op, started)

        SyncConflict.objects.create(
            sync_operation=sync_op,
            chain_id=sync_op.chain_id,
            table_name=table_name,
            record_id=record_id,
            conflict_type=detected.conflict_type,
            source_data=image,
            target_data=current,
            base_data=sync_op.old_data,
            conflicting_fields=detected.conflicting_fields,
            priority_score=sync_op.priority,
        )
        self.ledger.update_status(
            sync_op,
            CONFLICT,
            conflict_detected=True,
            execution_time_ms=self._elapsed_ms(started),
        )
        logger.info(f"{detected.conflict_type} on {table_name}/{record_id} at {sync_op.target_location_id}: {detected.conflicting_fields}")
        return CONFLICT

    def _complete(self, sync_op, started) -> str:
        self.ledger.update_status(sync_op, COMPLETED, execution_time_ms=self._elapsed_ms(started))
        return COMPLETED

    def _record_failure(self, sync_op, error, result):
        """
        Retry bookkeeping runs outside the rolled-back savepoint
        The in-memory claim token is kept so a claim lost to lease expiry is never overwritten
        """
        sync_op.refresh_from_db(fields=["retry_count", "max_retries"])
        sync_op.status = IN_PROGRESS
        retry_count = sync_op.retry_count + 1
        status = PENDING if retry_count < sync_op.max_retries else FAILED

        try:
            self.ledger.update_status(sync_op, status, retry_count=retry_count, error_message=str(error))
        except InvalidTransition:
            result.lost += 1
            logger.warning(f"Operation {sync_op.pk} is no longer claimed by this worker; dropping its result")
            return
        result.errors.append(f"{sync_op.record_id}: {error}")
        if status == PENDING:
            result.retried += 1
            logger.warning(f"Operation {sync_op.pk} failed (attempt {retry_count}/{sync_op.max_retries}): {error}")
        else:
            result.failed += 1
            logger.error(f"Operation {sync_op.pk} failed permanently after {retry_count} attempts: {error}")

    @staticmethod
    def _fast_forward(current, before) -> bool:
        """Target still holds the source's before image, so the change applies cleanly"""
        if not before:
            return False
        return all(current.get(name) == value for name, value in before.items())

    @staticmethod
    def _elapsed_ms(started) -> int:
        return int((time.monotonic() - started) * 1000)

    def _finish(self, job, status, now, error_message=None, retry_count=None):
        fields = {
            "status": status,
            "error_message": error_message,
            "lease_expires_at": None,
            "updated_at": now,
        }
        if retry_count is not None:
            fields["retry_count"] = retry_count
        if status == PENDING:
            fields.update(scheduled_at=now, started_at=None, completed_at=None)
        else:
            fields["completed_at"] = now

        SyncJob.objects.filter(pk=job.pk, status=IN_PROGRESS).update(**fields)
        for name, value in fields.items():
            setattr(job, name, value)


class SyncWorker:
    """One scheduling pass followed by execution of every due job, highest priority first"""

    def __init__(self, scheduler: SyncScheduler = None, executor: SyncExecutor = None):
        self.scheduler = scheduler or SyncScheduler()
        self.executor = executor or SyncExecutor(ledger=self.scheduler.ledger)

    def run_once(self, now=None):
        now = now or timezone.now()
        self.scheduler.tick(now)

        results = []
        for job in self.scheduler.due_jobs(now):
            results.append(self.executor.execute(job, now=now))
        return results
