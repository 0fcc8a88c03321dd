"""
Conflict resolution strategies and the service that applies them

Every strategy turns a conflict (source image, target image and, when known,
the source's before image) into one resolved image. Unknown strategy names
fall back to last-write-wins so a misconfigured table keeps syncing; the
fallback is logged and recorded on the conflict for the metrics rollup.
"""

import logging
from django.db import transaction
from django.utils import timezone

from apps.sync.adapters import LocationStore
from apps.sync.exceptions import ConflictAlreadyResolved, ConflictTargetChanged, SyncError
from apps.sync.models import (
    SyncConfiguration,
    SyncConflict,
    COMPLETED,
    DELETE,
    UPDATE,
    LAST_WRITE_WINS,
    MANUAL_REVIEW,
    MERGE_STRATEGY,
    PRIORITY_BASED,
)
from .detector import ConflictDetector
from .ledger import OperationLedger
from .timestamps import parse_timestamp, timestamp_field

logger = logging.getLogger(__name__)


class ResolutionStrategy:
    name = None

    def __init__(self, timestamp_field_name: str = None):
        self.timestamp_field = timestamp_field_name or timestamp_field()

    def resolve(self, conflict) -> dict:
        raise NotImplementedError


class LastWriteWins(ResolutionStrategy):
    """Keep the image with the newer modification timestamp; ties go to the source"""

    name = LAST_WRITE_WINS

    def resolve(self, conflict) -> dict:
        source, target = conflict.source_data or {}, conflict.target_data or {}
        source_ts = parse_timestamp(source.get(self.timestamp_field))
        target_ts = parse_timestamp(target.get(self.timestamp_field))

        if source_ts is None and target_ts is not None:
            return dict(target)
        if source_ts is not None and target_ts is not None and target_ts > source_ts:
            return dict(target)
        return dict(source)


class PriorityBased(ResolutionStrategy):
    """The configured source is authoritative for the table"""

    name = PRIORITY_BASED

    def resolve(self, conflict) -> dict:
        return dict(conflict.source_data or {})


class MergeStrategy(ResolutionStrategy):
    """
    Field-level merge onto the target image

    A source field is taken when the target lacks it, when it is the timestamp
    field and the source's value is strictly newer, or when the source changed
    it (relative to the before image) while the target still holds the old
    value. Target fields the source does not carry are never touched. A field
    the target holds as null is present, not missing.
    """

    name = MERGE_STRATEGY

    def resolve(self, conflict) -> dict:
        source, target = conflict.source_data or {}, conflict.target_data or {}
        base = getattr(conflict, "base_data", None)

        merged = dict(target)
        for name, value in source.items():
            if name not in target:
                merged[name] = value
            elif name == self.timestamp_field:
                if self._is_newer(value, target[name]):
                    merged[name] = value
            elif base is not None and name in base:
                changed_by_source = value != base[name]
                untouched_at_target = target[name] == base[name]
                if changed_by_source and untouched_at_target:
                    merged[name] = value
        return merged

    @staticmethod
    def _is_newer(source_value, target_value) -> bool:
        source_ts, target_ts = parse_timestamp(source_value), parse_timestamp(target_value)
        if source_ts is None or target_ts is None:
            # without comparable timestamps the source never overwrites
            return False
        return source_ts > target_ts


STRATEGIES = {strategy.name: strategy for strategy in (LastWriteWins, PriorityBased, MergeStrategy)}


def get_strategy(name):
    """Returns (strategy, fell_back)"""
    strategy_class = STRATEGIES.get(name)
    if strategy_class is None:
        logger.warning(f"Unknown conflict resolution strategy {name!r}; falling back to {LAST_WRITE_WINS}")
        return LastWriteWins(), True
    return strategy_class(), False


def _overlay(current, image):
    if current is None:
        return dict(image)
    merged = dict(current)
    merged.update(image)
    return merged


class ConflictResolutionService:
    def __init__(self, ledger: OperationLedger = None, detector: ConflictDetector = None):
        self.ledger = ledger or OperationLedger()
        self.detector = detector or ConflictDetector()

    def refresh_target(self, conflict: SyncConflict) -> bool:
        """
        Re-read the target record and re-run detection when it moved on since the conflict was recorded
        Returns True when the stored target image was replaced
        """
        sync_op = conflict.sync_operation
        current = LocationStore(sync_op.target_location).get(conflict.table_name, conflict.record_id) or {}
        if current == (conflict.target_data or {}):
            return False

        detected = self.detector.detect(conflict.source_data, current)
        conflict.target_data = current
        conflict.conflicting_fields = detected.conflicting_fields
        if detected.has_conflict:
            conflict.conflict_type = detected.conflict_type
        conflict.metadata = {**conflict.metadata, "target_refreshed_at": timezone.now().isoformat()}
        conflict.save(update_fields=["target_data", "conflicting_fields", "conflict_type", "metadata", "updated_at"])
        logger.info(f"Target of conflict {conflict.pk} changed since detection; re-detected against the current record")
        return True

    def resolve(self, conflict: SyncConflict, strategy_name: str = None, resolved_image=None, user=None, auto: bool = True) -> dict:
        """
        Resolve a conflict, apply the result at the target and complete the operation

        With `resolved_image` the caller's image is used as-is (manual resolution);
        otherwise the named strategy (or the configuration's) computes it against the
        target's current record.
        """
        if conflict.is_resolved:
            raise ConflictAlreadyResolved(conflict.pk)

        sync_op = conflict.sync_operation
        config = SyncConfiguration.objects.filter(chain_id=conflict.chain_id, table_name=conflict.table_name).first()
        requested = strategy_name or (config.conflict_resolution if config else LAST_WRITE_WINS)

        if resolved_image is None and requested == MANUAL_REVIEW:
            raise SyncError("Manual review resolution requires a resolved image")
        if self.refresh_target(conflict) and resolved_image is not None:
            raise ConflictTargetChanged(conflict.pk)

        fell_back = False
        if resolved_image is not None:
            image = dict(resolved_image)
            applied = requested
        else:
            strategy, fell_back = get_strategy(requested)
            image = strategy.resolve(conflict)
            applied = strategy.name

        now = timezone.now()
        with transaction.atomic():
            target_store = LocationStore(sync_op.target_location)
            current = target_store.get(conflict.table_name, conflict.record_id)
            operation = UPDATE if sync_op.operation == DELETE else sync_op.operation
            target_store.apply_image(conflict.table_name, conflict.record_id, _overlay(current, image), operation)

            conflict.resolved_data = image
            conflict.resolution_strategy = applied
            conflict.auto_resolved = auto
            conflict.resolved_by = user
            conflict.resolved_at = now
            conflict.status = COMPLETED
            if fell_back:
                conflict.metadata = {**conflict.metadata, "strategy_fallback": True, "requested_strategy": requested}
            conflict.save()

            self.ledger.update_status(
                sync_op,
                COMPLETED,
                resolved_data=image,
                conflict_resolution_strategy=applied,
            )

            if config is not None and config.sync_direction == SyncConfiguration.BIDIRECTIONAL:
                self._converge(sync_op, image, captured_before=conflict.created_at)

        logger.info(
            f"Resolved conflict {conflict.pk} on {conflict.table_name}/{conflict.record_id} "
            f"with {applied} ({'auto' if auto else 'manual'})"
        )
        return image

    def _converge(self, sync_op, image, captured_before):
        """
        Write the resolution back to the source so both sides hold the same record
        Skipped when the source has moved past the operation's after image; its newer
        change is already queued and will be reconciled on its own. Reverse operations
        captured after the conflict carry newer edits and stay pending.
        """
        source = sync_op.source_location
        if source is None or sync_op.new_data is None:
            return

        source_store = LocationStore(source)
        current = source_store.get(sync_op.table_name, sync_op.record_id)
        if current is None or any(current.get(k) != v for k, v in sync_op.new_data.items()):
            logger.debug(f"Source {source.pk} moved on for {sync_op.table_name}/{sync_op.record_id}; skipping write-back")
            return

        source_store.apply_image(sync_op.table_name, sync_op.record_id, _overlay(current, image), UPDATE)
        self.ledger.supersede(
            chain_id=sync_op.chain_id,
            table_name=sync_op.table_name,
            record_id=sync_op.record_id,
            source_location=sync_op.target_location,
            target_location=source,
            resolved_data=image,
            captured_before=captured_before,
        )


def resolve_conflict(conflict_id, strategy: str = None, resolved_image=None, user=None) -> dict:
    """
    Manual resolution entry point
    A caller-supplied image is refused when the target changed since detection; the
    refreshed target image is kept on the conflict for the next attempt
    """
    service = ConflictResolutionService()
    with transaction.atomic():
        conflict = SyncConflict.objects.select_for_update().select_related("sync_operation").get(pk=conflict_id)
        stale = resolved_image is not None and not conflict.is_resolved and service.refresh_target(conflict)
        if not stale:
            return service.resolve(conflict, strategy, resolved_image=resolved_image, user=user, auto=False)
    raise ConflictTargetChanged(conflict_id)
