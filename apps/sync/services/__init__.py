from .priority import calculate_sync_priority
from .ledger import OperationLedger
from .detector import ConflictDetector, ConflictResult
from .resolvers import ConflictResolutionService, get_strategy, resolve_conflict
from .capture import ChangeCapture
from .scheduler import SyncScheduler
from .executor import SyncExecutor, SyncWorker, JobResult
from .metrics import HealthAggregator

__all__ = [
    "calculate_sync_priority",
    "OperationLedger",
    "ConflictDetector",
    "ConflictResult",
    "ConflictResolutionService",
    "get_strategy",
    "resolve_conflict",
    "ChangeCapture",
    "SyncScheduler",
    "SyncExecutor",
    "SyncWorker",
    "JobResult",
    "HealthAggregator",
]
