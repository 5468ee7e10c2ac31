import pytest

from rentsplit.schemas.calculation import CalculationData
from rentsplit.services.share_service import InvalidShareIdError, ShareExistsError, ShareStore


def sample_data():
    return CalculationData(
        total_rent=2000,
        utilities=300,
        roommates=[{"id": "roommate1", "name": "Alice", "income": 60000, "room_size": 120}],
    )


def test_save_and_get():
    store = ShareStore()
    record = store.save("test123", sample_data())

    assert record.id == "test123"
    assert record.created_at.tzinfo is not None
    fetched = store.get("test123")
    assert fetched is record
    assert fetched.data.roommates[0].name == "Alice"


def test_unknown_id_returns_none():
    assert ShareStore().get("nothere") is None


def test_duplicate_id_rejected():
    store = ShareStore()
    store.save("dup1", sample_data())
    with pytest.raises(ShareExistsError):
        store.save("dup1", sample_data())
    assert len(store) == 1


@pytest.mark.parametrize("bad_id", ["", "with-dash", "spaces here", "bang!", "ünïcode"])
def test_non_alphanumeric_id_rejected(bad_id):
    with pytest.raises(InvalidShareIdError):
        ShareStore().save(bad_id, sample_data())


def test_oldest_record_evicted_when_full():
    store = ShareStore(max_entries=2)
    store.save("first", sample_data())
    store.save("second", sample_data())
    store.save("third", sample_data())

    assert "first" not in store
    assert store.get("second") is not None
    assert store.get("third") is not None
    assert len(store) == 2
