import itertools
from datetime import timedelta

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError
from django.utils import timezone

from apps.records.adapters import LocationRecordAdapter
from apps.sync.adapters import TableAdapter
from apps.sync.apps import validate_engine_settings
from apps.sync.exceptions import ApplyError
from apps.sync.models import (
    SyncConflict,
    SyncJob,
    SyncOperation,
    PENDING,
    COMPLETED,
    FAILED,
    CONFLICT,
    MANUAL_REVIEW,
    LAST_WRITE_WINS,
    UPDATE,
)
from apps.sync.services import ChangeCapture, OperationLedger, SyncExecutor, SyncScheduler

from .conftest import T0, T1, T2


class FailingAdapter(TableAdapter):
    """Target store that rejects every write"""

    attempts = 0

    def get(self, location, table_name, record_id):
        return None

    def apply_image(self, location, table_name, record_id, image, operation):
        FailingAdapter.attempts += 1
        raise ApplyError("target unreachable")

    def list_records(self, location, table_name):
        return iter(())


class ContendedAdapter(LocationRecordAdapter):
    """Record store where another worker ticks and claims while an image is being applied"""

    rival_claims = []

    def apply_image(self, location, table_name, record_id, image, operation):
        later = timezone.now() + timedelta(seconds=301)
        SyncScheduler().tick(later)
        ContendedAdapter.rival_claims.extend(
            OperationLedger(worker_id="worker-2").claim(chain_id=location.chain_id, table_name=table_name, target_location=location, now=later)
        )
        return super().apply_image(location, table_name, record_id, image, operation)


def make_job(config, target, source=None):
    return SyncJob.objects.create(config=config, source_location=source, target_location=target, scheduled_at=timezone.now())


def test_insert_is_applied_to_an_empty_target(make_config, record_service, stored, location_a, location_b):
    config = make_config(table_name="menu_items")
    record_service.save(location_a, "menu_items", "1", {"name": "Khao Soi", "price": 95, "updated_at": T1})

    result = SyncExecutor().execute(make_job(config, location_b))

    assert result.status == COMPLETED
    assert (result.claimed, result.completed, result.conflicts) == (1, 1, 0)
    assert stored(location_b, "menu_items", "1") == {"id": "1", "name": "Khao Soi", "price": 95, "updated_at": T1}

    sync_op = SyncOperation.objects.get()
    assert sync_op.status == COMPLETED
    assert sync_op.execution_time_ms is not None
    location_b.refresh_from_db()
    assert location_b.last_sync_at is not None


def test_update_fast_forwards_an_untouched_target(make_config, record_service, seed_record, stored, location_a, location_b):
    config = make_config(table_name="menu_items")
    original = {"id": "1", "name": "Khao Soi", "price": 95, "updated_at": T0}
    seed_record(location_a, "menu_items", "1", original)
    seed_record(location_b, "menu_items", "1", original)

    record_service.save(location_a, "menu_items", "1", {**original, "price": 110, "updated_at": T1})
    result = SyncExecutor().execute(make_job(config, location_b))

    assert result.conflicts == 0
    assert stored(location_b, "menu_items", "1")["price"] == 110
    assert SyncConflict.objects.count() == 0


def test_apply_is_idempotent(location_b, stored):
    adapter = LocationRecordAdapter()
    image = {"id": "1", "name": "Som Tam", "updated_at": T1}

    adapter.apply_image(location_b, "menu_items", "1", image, UPDATE)
    once = stored(location_b, "menu_items", "1")
    adapter.apply_image(location_b, "menu_items", "1", image, UPDATE)

    assert stored(location_b, "menu_items", "1") == once == image


def test_conflict_left_for_manual_review(make_config, record_service, seed_record, location_a, location_b):
    config = make_config(table_name="menu_items", conflict_resolution=MANUAL_REVIEW)
    seed_record(location_a, "menu_items", "1", {"id": "1", "price": 95, "updated_at": T0})
    seed_record(location_b, "menu_items", "1", {"id": "1", "price": 99, "updated_at": T2})

    record_service.save(location_a, "menu_items", "1", {"id": "1", "price": 110, "updated_at": T1})
    job = make_job(config, location_b)
    result = SyncExecutor().execute(job)

    assert result.status == CONFLICT
    assert (result.conflicts, result.auto_resolved) == (1, 0)

    conflict = SyncConflict.objects.get()
    assert conflict.conflict_type == SyncConflict.VERSION_CONFLICT
    assert conflict.conflicting_fields == ["price", "updated_at"]
    assert conflict.resolved_at is None
    assert conflict.base_data == {"id": "1", "price": 95, "updated_at": T0}
    assert conflict.sync_operation.status == CONFLICT

    job.refresh_from_db()
    assert job.status == CONFLICT


def test_conflict_auto_resolved_with_last_write_wins(make_config, record_service, seed_record, stored, location_a, location_b):
    config = make_config(table_name="menu_items", conflict_resolution=LAST_WRITE_WINS)
    seed_record(location_a, "menu_items", "1", {"id": "1", "price": 95, "updated_at": T0})
    seed_record(location_b, "menu_items", "1", {"id": "1", "price": 99, "updated_at": T2})

    record_service.save(location_a, "menu_items", "1", {"id": "1", "price": 110, "updated_at": T1})
    result = SyncExecutor().execute(make_job(config, location_b))

    assert result.status == COMPLETED
    assert result.auto_resolved == 1
    # the target's edit is newer and survives
    assert stored(location_b, "menu_items", "1") == {"id": "1", "price": 99, "updated_at": T2}

    conflict = SyncConflict.objects.get()
    assert conflict.auto_resolved is True
    assert conflict.resolution_strategy == LAST_WRITE_WINS
    assert conflict.status == COMPLETED
    assert SyncOperation.objects.get(pk=conflict.sync_operation_id).status == COMPLETED


def test_unknown_strategy_falls_back_and_is_recorded(make_config, seed_record, stored, location_a, location_b):
    config = make_config(table_name="menu_items", conflict_resolution="coin_flip")
    seed_record(location_a, "menu_items", "1", {"id": "1", "price": 95, "updated_at": T0})
    seed_record(location_b, "menu_items", "1", {"id": "1", "price": 99, "updated_at": T1})

    ChangeCapture().on_mutation(
        location_a,
        "menu_items",
        UPDATE,
        "1",
        before={"id": "1", "price": 95, "updated_at": T0},
        after={"id": "1", "price": 110, "updated_at": T2},
    )
    SyncExecutor().execute(make_job(config, location_b))

    conflict = SyncConflict.objects.get()
    assert conflict.resolution_strategy == LAST_WRITE_WINS
    assert conflict.metadata["strategy_fallback"] is True
    assert stored(location_b, "menu_items", "1")["price"] == 110


def test_delete_bypasses_conflict_checks(make_config, record_service, seed_record, stored, location_a, location_b):
    config = make_config(table_name="menu_items")
    seed_record(location_a, "menu_items", "1", {"id": "1", "price": 95})
    seed_record(location_b, "menu_items", "1", {"id": "1", "price": 120, "note": "edited locally"})

    record_service.delete(location_a, "menu_items", "1")
    result = SyncExecutor().execute(make_job(config, location_b))

    assert result.completed == 1
    assert stored(location_b, "menu_items", "1") is None
    assert SyncConflict.objects.count() == 0


def test_retry_bound(settings, make_config, record_service, location_a, location_b):
    settings.SYNC_ENGINE = {
        **settings.SYNC_ENGINE,
        "MAX_RETRIES": 3,
        "TABLE_ADAPTERS": {**settings.SYNC_ENGINE["TABLE_ADAPTERS"], "staff_schedules": "tests.test_executor.FailingAdapter"},
    }
    FailingAdapter.attempts = 0
    config = make_config(table_name="staff_schedules")
    record_service.save(location_a, "staff_schedules", "s-1", {"shift": "morning"})

    job = make_job(config, location_b)
    executor = SyncExecutor()
    statuses = []
    for _ in range(5):
        job.refresh_from_db()
        if job.status != PENDING:
            break
        statuses.append(executor.execute(job).status)

    sync_op = SyncOperation.objects.get()
    assert FailingAdapter.attempts == 3
    assert sync_op.status == FAILED
    assert sync_op.retry_count == 3
    assert sync_op.error_message == "target unreachable"
    assert statuses == [PENDING, PENDING, FAILED]
    job.refresh_from_db()
    assert job.status == FAILED
    assert job.error_message == "1 operations failed permanently"

    # never picked up again, and the job is not requeued
    assert OperationLedger().claim(chain_id=config.chain_id, table_name="staff_schedules", target_location=location_b) == []
    assert SyncScheduler().tick() == []


def test_job_timeout_returns_operations_to_pending(monkeypatch, make_config, record_service, stored, location_a, location_b):
    config = make_config(table_name="menu_items")
    record_service.save(location_a, "menu_items", "1", {"name": "Larb"})
    record_service.save(location_a, "menu_items", "2", {"name": "Nam Tok"})

    clock = itertools.count(start=0, step=1000)
    monkeypatch.setattr("apps.sync.services.executor.time.monotonic", lambda: next(clock))

    job = make_job(config, location_b)
    result = SyncExecutor(timeout_seconds=600).execute(job)

    assert result.status == FAILED
    assert set(SyncOperation.objects.values_list("status", flat=True)) == {PENDING}
    assert stored(location_b, "menu_items", "1") is None
    job.refresh_from_db()
    assert job.status == FAILED
    assert job.retry_count == 1


def test_systemic_failure_aborts_the_job(monkeypatch, make_config, record_service, location_a, location_b):
    config = make_config(table_name="menu_items")
    record_service.save(location_a, "menu_items", "1", {"name": "Larb"})

    def unavailable(self, **kwargs):
        raise DatabaseError("ledger unavailable")

    monkeypatch.setattr(OperationLedger, "claim", unavailable)
    job = make_job(config, location_b)
    result = SyncExecutor().execute(job)

    assert result.status == FAILED
    job.refresh_from_db()
    assert job.status == FAILED
    assert job.retry_count == 1
    assert SyncOperation.objects.get().status == PENDING


def test_job_that_is_not_pending_is_skipped(make_config, location_b):
    config = make_config(table_name="menu_items")
    job = make_job(config, location_b)
    SyncJob.objects.filter(pk=job.pk).update(status=COMPLETED)
    job.refresh_from_db()

    result = SyncExecutor().execute(job)

    assert result.claimed == 0
    assert result.status == COMPLETED


def test_claim_survives_a_tick_while_the_operation_is_applied(settings, make_config, record_service, stored, location_a, location_b):
    settings.SYNC_ENGINE = {
        **settings.SYNC_ENGINE,
        "TABLE_ADAPTERS": {**settings.SYNC_ENGINE["TABLE_ADAPTERS"], "inventory_items": "tests.test_executor.ContendedAdapter"},
    }
    ContendedAdapter.rival_claims = []
    config = make_config(table_name="inventory_items")
    record_service.save(location_a, "inventory_items", "rice", {"id": "rice", "qty": 40})

    result = SyncExecutor().execute(make_job(config, location_b))

    assert ContendedAdapter.rival_claims == []
    assert result.completed == 1
    assert result.lost == 0
    assert SyncOperation.objects.get().status == COMPLETED
    assert stored(location_b, "inventory_items", "rice")["qty"] == 40


def test_claim_lease_must_cover_the_job_timeout():
    with pytest.raises(ImproperlyConfigured):
        validate_engine_settings({"CLAIM_LEASE_SECONDS": 300, "JOB_TIMEOUT_SECONDS": 600})

    validate_engine_settings({"CLAIM_LEASE_SECONDS": 900, "JOB_TIMEOUT_SECONDS": 600})
