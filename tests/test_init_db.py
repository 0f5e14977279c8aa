from medly.core.config import settings
from medly.db.init_db import build_fixtures, ensure_data_version, init_db, reset_store, seed_if_empty
from medly.store import AUDIT_LOGS, COLLECTIONS, DATA_VERSION_KEY, NOTIFICATIONS, SCALES, USERS


def test_fixtures_reference_existing_records():
    fixtures = build_fixtures()
    ids = {collection: {item["id"] for item in records} for collection, records in fixtures.items()}
    for scale in fixtures[SCALES]:
        assert scale["location_id"] in ids["locations"]
        assert scale["specialty_id"] in ids["specialties"]
        assert scale["assigned_doctor_id"] in ids[USERS] | {None}
    for user in fixtures[USERS]:
        assert user.get("manager_id") in ids[USERS] | {None}
    assert set(fixtures) <= set(COLLECTIONS)


def test_seed_if_empty_only_fills_empty_collections(store):
    first = seed_if_empty(store)
    assert first[USERS] == 6
    assert first[SCALES] == 5
    assert first[NOTIFICATIONS] == 3
    assert first[AUDIT_LOGS] == 2
    assert seed_if_empty(store) == {}

    store.wipe()
    store.create(USERS, {"name": "Sozinho"})
    second = seed_if_empty(store)
    assert USERS not in second
    assert store.count(USERS) == 1


def test_data_version_mismatch_wipes_store(store):
    assert ensure_data_version(store, "1") is True
    store.create(USERS, {"name": "Antigo"})
    assert ensure_data_version(store, "1") is False
    assert store.count(USERS) == 1

    assert ensure_data_version(store, "2") is True
    assert store.count(USERS) == 0
    assert store.get_value(DATA_VERSION_KEY) == "2"


def test_init_and_reset(store):
    init_db(store)
    assert store.get_value(DATA_VERSION_KEY) == settings.DATA_VERSION
    store.soft_delete(USERS, "user-medico-3")
    assert init_db(store) == {}
    assert store.count(USERS) == 5

    reset_store(store)
    assert store.count(USERS) == 6
