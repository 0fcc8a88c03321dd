from apps.sync.models import SyncConfiguration, SyncConflict, SyncOperation, COMPLETED, MERGE_STRATEGY, PRIORITY_BASED
from apps.sync.services import SyncWorker

from .conftest import T0, T1, T2


def test_concurrent_edits_converge_with_one_merged_conflict(make_config, record_service, seed_record, stored, location_a, location_b):
    make_config(table_name="sop_documents", sync_direction=SyncConfiguration.BIDIRECTIONAL, conflict_resolution=MERGE_STRATEGY)
    original = {"id": "D", "title": "Opening Checklist", "description": "Check fryers", "updated_at": T0}
    seed_record(location_a, "sop_documents", "D", original)
    seed_record(location_b, "sop_documents", "D", original)

    record_service.save(location_a, "sop_documents", "D", {**original, "title": "Updated Title", "updated_at": T1})
    record_service.save(location_b, "sop_documents", "D", {**original, "description": "New Desc", "updated_at": T2})

    SyncWorker().run_once()

    at_a = stored(location_a, "sop_documents", "D")
    at_b = stored(location_b, "sop_documents", "D")
    assert at_a == at_b
    assert at_a["title"] == "Updated Title"
    assert at_a["description"] == "New Desc"
    assert at_a["updated_at"] == T2

    conflict = SyncConflict.objects.get()
    assert conflict.auto_resolved is True
    assert set(SyncOperation.objects.values_list("status", flat=True)) == {COMPLETED}


def test_top_down_delete_reaches_every_location(make_config, record_service, seed_record, stored, location_a, location_b, location_c):
    make_config(
        table_name="menu_items",
        sync_direction=SyncConfiguration.TOP_DOWN,
        conflict_resolution=PRIORITY_BASED,
        source_location=location_a,
    )
    seed_record(location_a, "menu_items", "R", {"id": "R", "name": "Seasonal Mango Rice"})
    seed_record(location_b, "menu_items", "R", {"id": "R", "name": "Seasonal Mango Rice"})
    seed_record(location_c, "menu_items", "R", {"id": "R", "name": "Mango Sticky Rice", "note": "renamed locally"})

    record_service.delete(location_a, "menu_items", "R")
    results = SyncWorker().run_once()

    assert len(results) == 2
    for location in (location_a, location_b, location_c):
        assert stored(location, "menu_items", "R") is None
    assert SyncConflict.objects.count() == 0
    assert set(SyncOperation.objects.values_list("status", flat=True)) == {COMPLETED}
