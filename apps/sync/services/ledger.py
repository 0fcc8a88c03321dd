import logging
import os
import socket
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import connection, transaction
from django.utils import timezone

from apps.sync.exceptions import InvalidTransition
from apps.sync.models import SyncOperation, PENDING, IN_PROGRESS, COMPLETED, FAILED, CONFLICT

logger = logging.getLogger(__name__)


# allowed status moves; terminal states only leave via the resolver (conflict -> completed)
TRANSITIONS = {
    PENDING: {IN_PROGRESS, COMPLETED},
    IN_PROGRESS: {COMPLETED, FAILED, CONFLICT, PENDING},
    CONFLICT: {COMPLETED},
    COMPLETED: set(),
    FAILED: set(),
}

TERMINAL_STATUSES = {COMPLETED, FAILED}


def default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class OperationLedger:
    """
    Append-only record of sync operations
    The only strictly exclusive step is claim(), a compare-and-set on status
    """

    def __init__(self, worker_id: str = None, lease_seconds: int = None):
        self.worker_id = worker_id or default_worker_id()
        self.lease_seconds = lease_seconds or settings.SYNC_ENGINE["CLAIM_LEASE_SECONDS"]

    def append(
        self,
        *,
        chain,
        source_location,
        target_location,
        table_name: str,
        operation: str,
        record_id,
        old_data=None,
        new_data=None,
        batch_id=None,
        priority: int = 0,
        record_ids=None,
    ):
        """
        Record a pending operation
        Returns (operation, created); re-appending the same capture within a batch is a no-op
        """
        batch_id = batch_id or uuid.uuid4()
        sync_op, created = SyncOperation.objects.get_or_create(
            source_location=source_location,
            target_location=target_location,
            table_name=table_name,
            record_id=str(record_id),
            sync_batch_id=batch_id,
            defaults={
                "chain": chain,
                "operation": operation,
                "record_ids": [str(r) for r in record_ids or []],
                "old_data": old_data,
                "new_data": new_data,
                "priority": priority,
                "sequence": chain.next_sequence(),
                "max_retries": settings.SYNC_ENGINE["MAX_RETRIES"],
            },
        )
        if not created:
            logger.debug(f"Duplicate capture ignored for {table_name}/{record_id} in batch {batch_id}")
        return sync_op, created

    def claim(self, *, chain_id, table_name: str, target_location, source_location=None, limit: int = 1000, job=None, now=None):
        """
        Atomically move up to `limit` of the oldest matching pending operations to in_progress
        Two workers can never both claim the same row: the update only touches rows still
        pending and tags them with a token unique to this call
        """
        now = now or timezone.now()
        token = uuid.uuid4()

        with transaction.atomic():
            candidates = SyncOperation.objects.pending().filter(
                chain_id=chain_id,
                table_name=table_name,
                target_location=target_location,
            )
            if source_location is not None:
                candidates = candidates.filter(source_location=source_location)
            candidates = candidates.causal_order()

            if connection.features.has_select_for_update_skip_locked:
                candidates = candidates.select_for_update(skip_locked=True)

            candidate_ids = list(candidates.values_list("id", flat=True)[:limit])
            if not candidate_ids:
                return []

            claimed = self._mark_claimed(candidate_ids, token, job, now)

        logger.debug(f"Worker {self.worker_id} claimed {claimed}/{len(candidate_ids)} operations for {table_name}")
        return list(SyncOperation.objects.filter(claim_token=token, status=IN_PROGRESS).causal_order())

    def _mark_claimed(self, candidate_ids, token, job, now) -> int:
        """Take the candidates still pending; rows another worker took meanwhile are skipped"""
        return SyncOperation.objects.filter(id__in=candidate_ids, status=PENDING).update(
            status=IN_PROGRESS,
            claim_token=token,
            claimed_by=self.worker_id,
            lease_expires_at=now + timedelta(seconds=self.lease_seconds),
            job=job,
            updated_at=now,
        )

    def update_status(self, sync_op, status: str, **details):
        """Compare-and-set the status of one operation, writing any extra fields alongside"""
        current = sync_op.status
        if status not in TRANSITIONS.get(current, set()):
            raise InvalidTransition(sync_op.pk, current, status)

        now = timezone.now()
        fields = dict(details)
        fields["status"] = status
        fields["updated_at"] = now
        if status in TERMINAL_STATUSES or status == CONFLICT:
            fields.setdefault("processed_at", now)
        if status != IN_PROGRESS:
            fields.update(claim_token=None, claimed_by=None, lease_expires_at=None)

        guard = {"pk": sync_op.pk, "status": current}
        if current == IN_PROGRESS:
            # a claim released on lease expiry may already belong to another worker
            guard["claim_token"] = sync_op.claim_token

        updated = SyncOperation.objects.filter(**guard).update(**fields)
        if not updated:
            actual = SyncOperation.objects.values_list("status", flat=True).get(pk=sync_op.pk)
            raise InvalidTransition(sync_op.pk, actual, status)

        for name, value in fields.items():
            setattr(sync_op, name, value)
        return sync_op

    def release(self, operations) -> int:
        """Return claimed operations to pending without counting a retry"""
        ids = [op.pk for op in operations]
        tokens = {op.claim_token for op in operations if op.claim_token}
        if not ids or not tokens:
            return 0
        released = SyncOperation.objects.filter(id__in=ids, status=IN_PROGRESS, claim_token__in=tokens).update(
            status=PENDING,
            claim_token=None,
            claimed_by=None,
            lease_expires_at=None,
            updated_at=timezone.now(),
        )
        for op in operations:
            if op.status == IN_PROGRESS:
                op.status = PENDING
                op.claim_token = None
        if released:
            logger.info(f"Released {released} claimed operations back to pending")
        return released

    def release_expired(self, now=None) -> int:
        """Revert claims held past their lease, e.g. by a dead worker"""
        now = now or timezone.now()
        released = SyncOperation.objects.filter(status=IN_PROGRESS, lease_expires_at__lt=now).update(
            status=PENDING,
            claim_token=None,
            claimed_by=None,
            lease_expires_at=None,
            updated_at=now,
        )
        if released:
            logger.warning(f"Released {released} operations with expired claims")
        return released

    def supersede(self, *, chain_id, table_name: str, record_id, source_location, target_location, resolved_data, captured_before) -> int:
        """
        Complete pending operations whose change is already contained in a converged resolution
        Only changes captured up to `captured_before` count; later edits still have to sync
        """
        now = timezone.now()
        superseded = SyncOperation.objects.filter(
            chain_id=chain_id,
            table_name=table_name,
            record_id=str(record_id),
            source_location=source_location,
            target_location=target_location,
            status=PENDING,
            created_at__lte=captured_before,
        ).update(
            status=COMPLETED,
            resolved_data=resolved_data,
            execution_time_ms=0,
            processed_at=now,
            updated_at=now,
        )
        if superseded:
            logger.info(f"Superseded {superseded} pending operations for {table_name}/{record_id}")
        return superseded
