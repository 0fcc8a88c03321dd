import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from apps.sync.exceptions import ImmutableRecordError, InvalidTransition
from apps.sync.models import SyncOperation, PENDING, IN_PROGRESS, COMPLETED, FAILED, UPDATE
from apps.sync.services import OperationLedger


@pytest.fixture
def append(chain, location_a, location_b):
    ledger = OperationLedger(worker_id="appender")

    def _append(record_id="1", batch_id=None, **kwargs):
        kwargs.setdefault("new_data", {"id": str(record_id), "name": "Tom Yum"})
        sync_op, _ = ledger.append(
            chain=chain,
            source_location=location_a,
            target_location=location_b,
            table_name="menu_items",
            operation=UPDATE,
            record_id=record_id,
            batch_id=batch_id or uuid.uuid4(),
            **kwargs,
        )
        return sync_op

    return _append


def claim(ledger, chain, location_b, **kwargs):
    return ledger.claim(chain_id=chain.pk, table_name="menu_items", target_location=location_b, **kwargs)


def test_append_is_idempotent_within_a_batch(chain, location_a, location_b):
    ledger = OperationLedger()
    batch_id = uuid.uuid4()
    kwargs = dict(
        chain=chain,
        source_location=location_a,
        target_location=location_b,
        table_name="menu_items",
        operation=UPDATE,
        record_id="1",
        new_data={"id": "1"},
        batch_id=batch_id,
    )

    first, created = ledger.append(**kwargs)
    second, created_again = ledger.append(**kwargs)

    assert created is True
    assert created_again is False
    assert first.pk == second.pk
    assert SyncOperation.objects.count() == 1


def test_sequence_numbers_increase_per_chain(append):
    first, second = append("1"), append("2")

    assert second.sequence > first.sequence


def test_claim_is_exclusive(chain, location_b, append):
    for record_id in range(5):
        append(str(record_id))

    worker_one = OperationLedger(worker_id="worker-1")
    worker_two = OperationLedger(worker_id="worker-2")

    claimed_one = claim(worker_one, chain, location_b)
    claimed_two = claim(worker_two, chain, location_b)

    assert len(claimed_one) == 5
    assert claimed_two == []
    assert set(SyncOperation.objects.values_list("claimed_by", flat=True)) == {"worker-1"}
    assert all(op.status == IN_PROGRESS for op in claimed_one)


def test_claim_respects_limit_and_causal_order(chain, location_b, append):
    created = [append(str(record_id)) for record_id in range(4)]

    claimed = claim(OperationLedger(), chain, location_b, limit=2)

    assert [op.pk for op in claimed] == [op.pk for op in created[:2]]
    assert SyncOperation.objects.filter(status=PENDING).count() == 2


def test_claim_filters_by_source(chain, location_b, location_c, append):
    append("1")

    assert claim(OperationLedger(), chain, location_b, source_location=location_c) == []


def test_update_status_rejects_illegal_transitions(append):
    sync_op = append()

    with pytest.raises(InvalidTransition):
        OperationLedger().update_status(sync_op, FAILED)


def test_update_status_is_compare_and_set(chain, location_b, append):
    append()
    ledger = OperationLedger()
    (sync_op,) = claim(ledger, chain, location_b)
    stale = SyncOperation.objects.get(pk=sync_op.pk)

    ledger.update_status(sync_op, COMPLETED, execution_time_ms=3)

    with pytest.raises(InvalidTransition):
        ledger.update_status(stale, FAILED)

    sync_op.refresh_from_db()
    assert sync_op.status == COMPLETED
    assert sync_op.claim_token is None
    assert sync_op.processed_at is not None


def test_release_expired_returns_claims_to_pending(chain, location_b, append):
    append()
    ledger = OperationLedger(lease_seconds=60)
    now = timezone.now()
    claim(ledger, chain, location_b, now=now)

    assert ledger.release_expired(now + timedelta(seconds=30)) == 0
    assert ledger.release_expired(now + timedelta(seconds=61)) == 1
    assert SyncOperation.objects.get().status == PENDING


def test_operations_cannot_be_deleted(append):
    sync_op = append()

    with pytest.raises(ImmutableRecordError):
        sync_op.delete()
    with pytest.raises(ImmutableRecordError):
        SyncOperation.objects.all().delete()

    assert SyncOperation.objects.count() == 1


def test_concurrent_claims_have_a_single_winner(chain, location_b, append):
    for record_id in range(3):
        append(str(record_id))

    worker_two = OperationLedger(worker_id="worker-2")
    rival_claims = []

    class InterleavedLedger(OperationLedger):
        def _mark_claimed(self, candidate_ids, token, job, now):
            # worker-2 runs while worker-1's candidates are still pending
            rival_claims.extend(claim(worker_two, chain, location_b))
            return super()._mark_claimed(candidate_ids, token, job, now)

    claimed_one = claim(InterleavedLedger(worker_id="worker-1"), chain, location_b)

    assert claimed_one == []
    assert len(rival_claims) == 3
    assert set(SyncOperation.objects.values_list("claimed_by", flat=True)) == {"worker-2"}


def test_reclaimed_operation_is_out_of_reach_of_the_old_claim(chain, location_b, append):
    append()
    now = timezone.now()
    worker_one = OperationLedger(worker_id="worker-1", lease_seconds=60)
    worker_two = OperationLedger(worker_id="worker-2", lease_seconds=60)

    (held_by_one,) = claim(worker_one, chain, location_b, now=now)
    worker_one.release_expired(now + timedelta(seconds=61))
    (held_by_two,) = claim(worker_two, chain, location_b, now=now + timedelta(seconds=61))

    with pytest.raises(InvalidTransition):
        worker_one.update_status(held_by_one, COMPLETED)
    assert worker_one.release([held_by_one]) == 0

    current = SyncOperation.objects.get()
    assert current.status == IN_PROGRESS
    assert current.claimed_by == "worker-2"
    assert current.claim_token == held_by_two.claim_token

