from apps.sync.models import DELETE, INSERT, UPDATE, BULK_UPDATE

BASE_PRIORITY = 1000

# shared reference data outranks transactional records
TABLE_WEIGHTS = {
    "sop_documents": 500,
    "auth_users": 400,
    "menu_items": 300,
    "inventory_items": 250,
    "staff_schedules": 200,
}
DEFAULT_TABLE_WEIGHT = 100

# deletes first: they risk dangling references at the target
OPERATION_WEIGHTS = {
    DELETE: 300,
    INSERT: 200,
    UPDATE: 150,
    BULK_UPDATE: 100,
}
DEFAULT_OPERATION_WEIGHT = 50


def calculate_sync_priority(table_name: str, operation: str, location_priority=None) -> int:
    """Deterministic scheduling score; higher runs first"""
    table_weight = TABLE_WEIGHTS.get(table_name, DEFAULT_TABLE_WEIGHT)
    operation_weight = OPERATION_WEIGHTS.get(operation, DEFAULT_OPERATION_WEIGHT)
    return BASE_PRIORITY + table_weight + operation_weight + (location_priority or 0)
