class SyncError(Exception):
    """Base class for sync engine errors"""


class SyncConfigurationError(SyncError):
    """No active sync configuration for the requested chain/table"""

    def __init__(self, chain_id, table_name):
        self.chain_id = chain_id
        self.table_name = table_name
        super().__init__(f"No sync configuration found for chain {chain_id} table {table_name}")


class ApplyError(SyncError):
    """Raised by table adapters when an image cannot be applied at the target"""


class InvalidTransition(SyncError):
    def __init__(self, operation_id, current, requested):
        self.operation_id = operation_id
        self.current = current
        self.requested = requested
        super().__init__(f"Operation {operation_id} cannot move from {current} to {requested}")


class ConflictAlreadyResolved(SyncError):
    def __init__(self, conflict_id):
        self.conflict_id = conflict_id
        super().__init__(f"Conflict {conflict_id} is already resolved")


class ImmutableRecordError(SyncError):
    """Ledger entries are never deleted and metric rollups are never updated"""


class ConflictTargetChanged(SyncError):
    """The target record changed after the conflict was detected; the supplied image may drop that change"""

    def __init__(self, conflict_id):
        self.conflict_id = conflict_id
        super().__init__(f"Target record of conflict {conflict_id} changed since detection; review the refreshed target image")
