import logging
import uuid
from django.db import transaction

from apps.sync.models import SyncConfiguration, OPERATION_CHOICES, DELETE
from .ledger import OperationLedger
from .priority import calculate_sync_priority

logger = logging.getLogger(__name__)

VALID_OPERATIONS = {value for value, _ in OPERATION_CHOICES}


class ChangeCapture:
    """
    Turns a committed mutation at a location into pending ledger operations
    Called synchronously by the owning data store inside its write transaction
    """

    def __init__(self, ledger: OperationLedger = None):
        self.ledger = ledger or OperationLedger()

    def on_mutation(self, location, table_name: str, operation: str, record_id, before=None, after=None, batch_id=None, record_ids=None):
        if operation not in VALID_OPERATIONS:
            raise ValueError(f"Invalid operation type: {operation}")

        config = (
            SyncConfiguration.objects.filter(chain_id=location.chain_id, table_name=table_name, is_active=True)
            .select_related("chain", "source_location")
            .first()
        )
        if config is None:
            logger.debug(f"No active sync configuration for {table_name} in chain {location.chain_id}; change dropped")
            return []

        if not location.sync_enabled:
            logger.debug(f"Sync disabled at location {location.pk}; {table_name}/{record_id} change dropped")
            return []

        image = before if operation == DELETE else after
        if not config.matches(image):
            logger.debug(f"{table_name}/{record_id} does not match filter conditions; change dropped")
            return []

        targets = self.fan_out(config, location)
        if not targets:
            logger.debug(f"No sync targets for {table_name}/{record_id} from {location.pk} ({config.sync_direction})")
            return []

        old_data = config.prepare_image(before)
        new_data = None if operation == DELETE else config.prepare_image(after)
        batch_id = batch_id or uuid.uuid4()

        operations = []
        with transaction.atomic():
            for target in targets:
                sync_op, _ = self.ledger.append(
                    chain=config.chain,
                    source_location=location,
                    target_location=target,
                    table_name=table_name,
                    operation=operation,
                    record_id=record_id,
                    old_data=old_data,
                    new_data=new_data,
                    batch_id=batch_id,
                    priority=calculate_sync_priority(table_name, operation, target.sync_priority),
                    record_ids=record_ids,
                )
                operations.append(sync_op)

        logger.info(f"Captured {operation} {table_name}/{record_id} from {location.pk} for {len(operations)} targets (batch {batch_id})")
        return operations

    def fan_out(self, config: SyncConfiguration, location) -> list:
        """Target locations for a change made at `location`, per the configured direction"""
        direction = config.sync_direction

        if direction == SyncConfiguration.BIDIRECTIONAL:
            return list(config.candidate_targets(exclude=location))

        authority = config.authoritative_location()
        if authority is None:
            return []

        if direction == SyncConfiguration.TOP_DOWN:
            if authority.pk != location.pk:
                return []
            return list(config.candidate_targets(exclude=location))

        if direction == SyncConfiguration.BOTTOM_UP:
            if authority.pk == location.pk or not authority.sync_enabled:
                return []
            return [authority]

        logger.warning(f"Unknown sync direction {direction!r} on configuration {config.pk}")
        return []
