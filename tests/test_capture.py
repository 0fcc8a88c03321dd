import pytest
from django.core.exceptions import ValidationError

from apps.chains.models import ChainRegion, Location
from apps.sync.models import SyncConfiguration, SyncOperation, INSERT, UPDATE, DELETE
from apps.sync.services import ChangeCapture, calculate_sync_priority

from .conftest import T1


@pytest.fixture
def capture():
    return ChangeCapture()


def targets_of(operations):
    return sorted(op.target_location.location_code for op in operations)


def test_bidirectional_fans_out_to_every_other_location(make_config, capture, location_a, location_b, location_c):
    make_config()

    operations = capture.on_mutation(location_b, "sop_documents", INSERT, "D", after={"id": "D", "title": "Opening checklist"})

    assert targets_of(operations) == ["BKK-001", "BKK-003"]
    assert len({op.sync_batch_id for op in operations}) == 1
    assert all(op.source_location_id == location_b.pk for op in operations)


def test_explicit_targets_limit_fan_out(make_config, capture, location_a, location_b, location_c):
    make_config(target_locations=[location_a, location_b])

    operations = capture.on_mutation(location_a, "sop_documents", INSERT, "D", after={"id": "D"})

    assert targets_of(operations) == ["BKK-002"]


def test_top_down_only_captures_at_the_authoritative_location(make_config, capture, location_a, location_b, location_c):
    make_config(sync_direction=SyncConfiguration.TOP_DOWN, source_location=location_a)

    from_branch = capture.on_mutation(location_b, "sop_documents", UPDATE, "D", before={"id": "D"}, after={"id": "D", "title": "x"})
    from_hq = capture.on_mutation(location_a, "sop_documents", UPDATE, "D", before={"id": "D"}, after={"id": "D", "title": "x"})

    assert from_branch == []
    assert targets_of(from_hq) == ["BKK-002", "BKK-003"]


def test_bottom_up_sends_changes_to_the_authority(make_config, capture, location_a, location_b, location_c):
    # without a designated source the lowest sync_priority location is authoritative
    make_config(sync_direction=SyncConfiguration.BOTTOM_UP)

    operations = capture.on_mutation(location_c, "sop_documents", INSERT, "D", after={"id": "D"})

    assert targets_of(operations) == ["BKK-001"]
    assert capture.on_mutation(location_a, "sop_documents", INSERT, "E", after={"id": "E"}) == []


def test_changes_without_configuration_are_dropped(capture, location_a, location_b):
    assert capture.on_mutation(location_a, "sop_documents", INSERT, "D", after={"id": "D"}) == []
    assert SyncOperation.objects.count() == 0


def test_changes_at_disabled_locations_are_dropped(make_config, capture, location_a, location_b):
    make_config()
    location_a.sync_enabled = False
    location_a.save()

    assert capture.on_mutation(location_a, "sop_documents", INSERT, "D", after={"id": "D"}) == []


def test_disabled_locations_are_not_targets(make_config, capture, location_a, location_b, location_c):
    make_config()
    location_c.sync_enabled = False
    location_c.save()

    operations = capture.on_mutation(location_a, "sop_documents", INSERT, "D", after={"id": "D"})

    assert targets_of(operations) == ["BKK-002"]


def test_filter_match_drops_unmatched_records(make_config, capture, location_a, location_b):
    make_config(table_name="menu_items", filter_conditions={"match": {"is_shared": True}})

    assert capture.on_mutation(location_a, "menu_items", INSERT, "1", after={"id": "1", "is_shared": False}) == []
    assert len(capture.on_mutation(location_a, "menu_items", INSERT, "2", after={"id": "2", "is_shared": True})) == 1


def test_images_are_filtered_mapped_and_transformed(make_config, capture, location_a, location_b):
    make_config(
        table_name="menu_items",
        filter_conditions={"exclude_fields": ["cost_price", "id"]},
        field_mappings={"local_name": "name_th"},
        transformation_rules={"defaults": {"currency": "THB"}, "set": {"synced": True}},
    )

    (sync_op,) = capture.on_mutation(
        location_a,
        "menu_items",
        INSERT,
        "1",
        after={"id": "1", "local_name": "ผัดไทย", "cost_price": 35, "updated_at": T1},
    )

    assert sync_op.new_data == {"id": "1", "name_th": "ผัดไทย", "updated_at": T1, "currency": "THB", "synced": True}
    assert sync_op.old_data is None


def test_delete_captures_the_before_image(make_config, capture, location_a, location_b):
    make_config()

    (sync_op,) = capture.on_mutation(location_a, "sop_documents", DELETE, "D", before={"id": "D", "title": "Old"})

    assert sync_op.operation == DELETE
    assert sync_op.old_data == {"id": "D", "title": "Old"}
    assert sync_op.new_data is None


def test_operation_priority_uses_target_location_priority(make_config, capture, location_a, location_b):
    make_config()

    (sync_op,) = capture.on_mutation(location_a, "sop_documents", DELETE, "D", before={"id": "D"})

    assert sync_op.priority == calculate_sync_priority("sop_documents", DELETE, location_b.sync_priority)


def test_unknown_operation_is_rejected(make_config, capture, location_a):
    make_config()

    with pytest.raises(ValueError):
        capture.on_mutation(location_a, "sop_documents", "upsert", "D", after={"id": "D"})


def test_priority_formula():
    assert calculate_sync_priority("sop_documents", DELETE, 20) == 1000 + 500 + 300 + 20
    assert calculate_sync_priority("pos_transactions", "merge", None) == 1000 + 100 + 50
    assert calculate_sync_priority("menu_items", DELETE) > calculate_sync_priority("menu_items", INSERT)
    assert calculate_sync_priority("menu_items", INSERT) > calculate_sync_priority("menu_items", UPDATE)


def test_location_region_must_share_the_chain(chain, other_chain):
    foreign_region = ChainRegion.objects.create(chain=other_chain, name="North", code="N")

    with pytest.raises(ValidationError):
        Location.objects.create(chain=chain, region=foreign_region, name="Silom", location_code="BKK-009")
