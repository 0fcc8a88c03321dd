from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.chains.models import Location
from apps.sync.exceptions import SyncConfigurationError
from apps.sync.models import SyncJob, SyncOperation, SyncConfiguration, PENDING, IN_PROGRESS, INSERT, FAILED, COMPLETED
from apps.sync.services import OperationLedger, SyncExecutor, SyncScheduler, SyncWorker


def test_tick_creates_jobs_only_for_targets_with_pending_work(make_config, record_service, location_a, location_b, location_c):
    make_config(table_name="menu_items")
    record_service.save(location_a, "menu_items", "1", {"name": "Pad Kra Pao"})

    jobs = SyncScheduler().tick()

    assert sorted(job.target_location.location_code for job in jobs) == ["BKK-002", "BKK-003"]
    assert len({job.batch_id for job in jobs}) == 1
    assert all(job.status == PENDING for job in jobs)


def test_tick_honors_frequency(make_config, record_service, location_a, location_b):
    config = make_config(table_name="menu_items", sync_frequency_minutes=30)
    scheduler = SyncScheduler()
    now = timezone.now()

    record_service.save(location_a, "menu_items", "1", {"name": "Pad Kra Pao"})
    assert len(scheduler.tick(now)) == 1
    config.refresh_from_db()
    assert config.last_run_at == now

    SyncJob.objects.update(status="completed")
    assert scheduler.tick(now + timedelta(minutes=10)) == []
    assert len(scheduler.tick(now + timedelta(minutes=31))) == 1


def test_no_second_job_while_one_is_open(make_config, record_service, location_a, location_b):
    make_config(table_name="menu_items", sync_frequency_minutes=1)
    scheduler = SyncScheduler()
    now = timezone.now()
    record_service.save(location_a, "menu_items", "1", {"name": "Pad Kra Pao"})

    assert len(scheduler.tick(now)) == 1
    assert scheduler.tick(now + timedelta(minutes=5)) == []
    assert SyncJob.objects.count() == 1


def test_job_priority_follows_the_highest_pending_operation(make_config, record_service, seed_record, location_a, location_b):
    make_config(table_name="menu_items", priority_weight=150)
    seed_record(location_a, "menu_items", "1", {"id": "1"})
    record_service.save(location_a, "menu_items", "2", {"name": "Gaeng Som"})
    record_service.delete(location_a, "menu_items", "1")

    (job,) = SyncScheduler().tick()

    top = max(SyncOperation.objects.values_list("priority", flat=True))
    assert job.priority == top + 50


def test_higher_priority_job_runs_first(make_config, record_service, location_a, location_b):
    make_config(table_name="staff_schedules")
    make_config(table_name="sop_documents")
    record_service.save(location_a, "staff_schedules", "s-1", {"shift": "night"})
    record_service.save(location_a, "sop_documents", "D", {"title": "Fryer cleaning"})

    scheduler = SyncScheduler()
    now = timezone.now()
    scheduler.tick(now)
    # identical creation time; priority alone decides
    SyncJob.objects.update(created_at=now)

    executed = []

    class RecordingExecutor(SyncExecutor):
        def execute(self, job, now=None):
            executed.append(job.config.table_name)
            return super().execute(job, now=now)

    due = scheduler.due_jobs(now)
    assert [job.config.table_name for job in due] == ["sop_documents", "staff_schedules"]

    SyncWorker(scheduler=scheduler, executor=RecordingExecutor()).run_once(now)
    assert executed == ["sop_documents", "staff_schedules"]


def test_initiate_sync_requires_a_configuration(chain, location_a):
    with pytest.raises(SyncConfigurationError):
        SyncScheduler().initiate_sync(chain, "menu_items")


def test_initiate_full_sync_snapshots_the_source(make_config, seed_record, location_a, location_b, location_c):
    make_config(table_name="menu_items")
    seed_record(location_a, "menu_items", "1", {"id": "1", "name": "Khao Man Gai"})
    seed_record(location_a, "menu_items", "2", {"id": "2", "name": "Boat Noodles"})

    batch_id = SyncScheduler().initiate_sync(location_a.chain, "menu_items", source_location=location_a, sync_type=SyncJob.FULL)

    jobs = SyncJob.objects.filter(batch_id=batch_id)
    assert sorted(job.target_location.location_code for job in jobs) == ["BKK-002", "BKK-003"]
    assert all(job.sync_type == SyncJob.FULL for job in jobs)

    operations = SyncOperation.objects.filter(sync_batch_id=batch_id)
    assert operations.count() == 4
    assert set(operations.values_list("operation", flat=True)) == {INSERT}


def test_initiate_sync_with_explicit_targets(make_config, location_a, location_b, location_c):
    make_config(table_name="menu_items")

    batch_id = SyncScheduler().initiate_sync(location_a.chain, "menu_items", target_locations=[location_c])

    assert list(SyncJob.objects.filter(batch_id=batch_id).values_list("target_location", flat=True)) == [location_c.pk]


def test_initiate_sync_rejects_foreign_targets(make_config, other_chain, location_a):
    make_config(table_name="menu_items")
    foreign = Location.objects.create(chain=other_chain, name="Nimman", location_code="CNX-001")

    with pytest.raises(ValueError):
        SyncScheduler().initiate_sync(location_a.chain, "menu_items", target_locations=[foreign])


def test_stuck_job_is_failed_and_requeued(make_config, record_service, location_a, location_b):
    config = make_config(table_name="menu_items")
    record_service.save(location_a, "menu_items", "1", {"name": "Pad Kra Pao"})
    now = timezone.now()

    job = SyncJob.objects.create(
        config=config,
        target_location=location_b,
        scheduled_at=now - timedelta(hours=1),
        status=IN_PROGRESS,
        lease_expires_at=now - timedelta(minutes=1),
    )
    OperationLedger(worker_id="dead-worker").claim(
        chain_id=config.chain_id, table_name="menu_items", target_location=location_b, job=job, now=now - timedelta(hours=1)
    )
    SyncConfiguration.objects.filter(pk=config.pk).update(last_run_at=now)

    jobs = SyncScheduler().tick(now)

    job.refresh_from_db()
    assert [j.pk for j in jobs] == [job.pk]
    assert job.status == PENDING
    assert job.retry_count == 1
    assert SyncOperation.objects.get().status == PENDING


def test_exhausted_job_is_not_requeued(make_config, location_b):
    config = make_config(table_name="menu_items")
    SyncJob.objects.create(config=config, target_location=location_b, scheduled_at=timezone.now(), status=FAILED, retry_count=3)
    SyncConfiguration.objects.filter(pk=config.pk).update(last_run_at=timezone.now())

    assert SyncScheduler().tick() == []


def test_worker_command_runs_a_single_pass(make_config, record_service, location_a, location_b):
    make_config(table_name="menu_items")
    record_service.save(location_a, "menu_items", "1", {"name": "Pad Kra Pao"})
    out = StringIO()

    call_command("run_sync_worker", "--once", stdout=out)

    assert "1 jobs executed" in out.getvalue()
    assert SyncOperation.objects.get().status == COMPLETED
