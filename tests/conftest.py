import pytest
from rest_framework.test import APIClient

from apps.authentication.models import User
from apps.chains.models import RestaurantChain, Location
from apps.records.models import LocationRecord
from apps.records.services import LocationRecordService
from apps.sync.models import SyncConfiguration, MERGE_STRATEGY


T0 = "2024-03-01T08:00:00+00:00"
T1 = "2024-03-01T09:00:00+00:00"
T2 = "2024-03-01T10:00:00+00:00"
T3 = "2024-03-01T11:00:00+00:00"


@pytest.fixture
def chain(db):
    return RestaurantChain.objects.create(name="Siam Noodle House", name_th="สยามก๋วยเตี๋ยว", code="SNH")


@pytest.fixture
def other_chain(db):
    return RestaurantChain.objects.create(name="Chiang Mai Grill", code="CMG")


@pytest.fixture
def location_a(chain):
    return Location.objects.create(chain=chain, name="Silom", location_code="BKK-001", sync_priority=10)


@pytest.fixture
def location_b(chain):
    return Location.objects.create(chain=chain, name="Sukhumvit", location_code="BKK-002", sync_priority=20)


@pytest.fixture
def location_c(chain):
    return Location.objects.create(chain=chain, name="Ari", location_code="BKK-003", sync_priority=30)


@pytest.fixture
def make_config(chain):
    def _make(table_name="sop_documents", **kwargs):
        kwargs.setdefault("conflict_resolution", MERGE_STRATEGY)
        target_locations = kwargs.pop("target_locations", None)
        config = SyncConfiguration.objects.create(chain=chain, table_name=table_name, **kwargs)
        if target_locations:
            config.target_locations.set(target_locations)
        return config

    return _make


@pytest.fixture
def seed_record():
    """Place a record directly in a location's store, bypassing change capture"""

    def _seed(location, table_name, record_id, data):
        return LocationRecord.objects.create(location=location, table_name=table_name, record_id=str(record_id), data=data)

    return _seed


@pytest.fixture
def record_service():
    return LocationRecordService()


@pytest.fixture
def stored():
    def _stored(location, table_name, record_id):
        record = LocationRecord.objects.filter(location=location, table_name=table_name, record_id=str(record_id)).first()
        return record.data if record else None

    return _stored


@pytest.fixture
def manager(chain):
    return User.objects.create_user(username="manager", email="manager@snh.co.th", password="pass1234", role="manager", chain=chain)


@pytest.fixture
def staff(chain, location_a):
    return User.objects.create_user(
        username="staff", email="staff@snh.co.th", password="pass1234", role="staff", chain=chain, location=location_a
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def manager_client(manager):
    client = APIClient()
    client.force_authenticate(user=manager)
    return client


@pytest.fixture
def staff_client(staff):
    client = APIClient()
    client.force_authenticate(user=staff)
    return client
