from dataclasses import dataclass, field
from typing import List, Optional

from apps.sync.models import SyncConflict
from .timestamps import parse_timestamp, timestamp_field


@dataclass(frozen=True)
class ConflictResult:
    has_conflict: bool
    conflict_type: Optional[str] = None
    conflicting_fields: List[str] = field(default_factory=list)


class ConflictDetector:
    """
    Field-level comparison of an incoming image against the target's current image
    Pure: holds no state beyond configuration, so one instance can serve concurrent callers
    """

    def __init__(self, timestamp_field_name: str = None):
        self.timestamp_field = timestamp_field_name or timestamp_field()

    def detect(self, source_image, target_image) -> ConflictResult:
        source_image = source_image or {}
        target_image = target_image or {}

        conflicting = [name for name, value in source_image.items() if self._differs(name, value, target_image.get(name))]
        if not conflicting:
            return ConflictResult(has_conflict=False)

        conflict_type = SyncConflict.DATA_MISMATCH
        source_ts = parse_timestamp(source_image.get(self.timestamp_field))
        target_ts = parse_timestamp(target_image.get(self.timestamp_field))
        if source_ts is not None and target_ts is not None and source_ts < target_ts:
            # the source is stale
            conflict_type = SyncConflict.VERSION_CONFLICT

        return ConflictResult(has_conflict=True, conflict_type=conflict_type, conflicting_fields=conflicting)

    def _differs(self, name, source_value, target_value) -> bool:
        if target_value is None:
            return False
        if name == self.timestamp_field:
            source_ts, target_ts = parse_timestamp(source_value), parse_timestamp(target_value)
            if source_ts is not None and target_ts is not None:
                return source_ts != target_ts
        return source_value != target_value
