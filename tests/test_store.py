from datetime import UTC, datetime

import pytest
from google.api_core import exceptions as gexc

from review_engine.config import Settings
from review_engine.engine import ReviewEngine
from review_engine.errors import StorageError
from review_engine.models import Card, UserConfig
from review_engine.store import EngineRepository, InMemoryKeyValueStore, SQLiteKeyValueStore, create_store
from review_engine.store.base import card_index_key, card_key
from review_engine.store.firestore import FirestoreKeyValueStore, normalize_emulator_host

from tests.firestore_fakes import FakeFirestoreClient

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


def _card(card_id: str = "card_1") -> Card:
    return Card(
        id=card_id,
        learner_id="learner-1",
        vocabulary_id=f"vocab-{card_id}",
        text="word",
        next_review_date=NOW,
        created_at=NOW,
    )


@pytest.fixture(params=["memory", "sqlite", "firestore"])
def kv_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryKeyValueStore()
    if request.param == "sqlite":
        return SQLiteKeyValueStore(db_path=str(tmp_path / "kv.sqlite3"))
    return FirestoreKeyValueStore(FakeFirestoreClient(), collection="test_kv")


def test_get_set_delete(kv_store):
    assert kv_store.get("config:learner-1") is None

    kv_store.set("config:learner-1", b"one")
    kv_store.set("config:learner-1", b"two")
    assert kv_store.get("config:learner-1") == b"two"

    kv_store.delete("config:learner-1")
    assert kv_store.get("config:learner-1") is None
    kv_store.delete("config:learner-1")


def test_repository_round_trips_entities(kv_store):
    repo = EngineRepository(kv_store)
    card = _card()

    repo.add_card(card)
    repo.add_card(card)
    repo.save_config(UserConfig(learner_id="learner-1", timezone="Asia/Tokyo"))

    assert repo.list_cards("learner-1") == [card]
    assert repo.find_card_by_vocabulary("learner-1", card.vocabulary_id) == card
    assert repo.load_config("learner-1").timezone == "Asia/Tokyo"
    assert repo.load_config("learner-2") is None


def test_active_session_index(kv_store):
    repo = EngineRepository(kv_store)

    assert repo.get_active_session_id("learner-1") is None
    repo.set_active_session_id("learner-1", "session_1")
    assert repo.get_active_session_id("learner-1") == "session_1"
    repo.clear_active_session_id("learner-1")
    assert repo.get_active_session_id("learner-1") is None


def test_corrupt_record_raises_storage_error():
    store = InMemoryKeyValueStore()
    repo = EngineRepository(store)
    store.set(card_key("learner-1", "card_1"), b"{broken")
    store.set(card_index_key("learner-2"), b'{"not": "a list"}')

    with pytest.raises(StorageError):
        repo.load_card("learner-1", "card_1")
    with pytest.raises(StorageError):
        repo.list_cards("learner-2")


def test_sqlite_store_persists_across_instances(tmp_path):
    path = str(tmp_path / "nested" / "kv.sqlite3")
    SQLiteKeyValueStore(db_path=path).set("learners", b'["learner-1"]')

    assert SQLiteKeyValueStore(db_path=path).get("learners") == b'["learner-1"]'


def test_engine_state_survives_restart_on_sqlite(tmp_path, clock, engine_settings):
    path = str(tmp_path / "engine.sqlite3")
    first = ReviewEngine(store=SQLiteKeyValueStore(db_path=path), clock=clock, settings=engine_settings)
    card = first.add_card("learner-1", "vocab-1", "word")
    session = first.start_session("learner-1")

    second = ReviewEngine(store=SQLiteKeyValueStore(db_path=path), clock=clock, settings=engine_settings)

    assert second.get_card("learner-1", card.id) == card
    assert second.get_active_session("learner-1").id == session.id


def test_firestore_store_wraps_api_errors():
    client = FakeFirestoreClient()
    store = FirestoreKeyValueStore(client, collection="test_kv")
    client.fail_with = gexc.ServiceUnavailable("firestore down")

    with pytest.raises(StorageError):
        store.get("config:learner-1")
    with pytest.raises(StorageError):
        store.set("config:learner-1", b"x")


def test_firestore_store_uses_one_document_per_key():
    client = FakeFirestoreClient()
    store = FirestoreKeyValueStore(client, collection="test_kv")

    store.set("card:learner-1:card_1", b"payload")

    docs = client.documents("test_kv")
    assert list(docs) == ["card:learner-1:card_1"]
    assert docs["card:learner-1:card_1"]["value"] == b"payload"


def test_firestore_store_rejects_slash_keys():
    store = FirestoreKeyValueStore(FakeFirestoreClient())

    with pytest.raises(StorageError):
        store.set("card/oops", b"x")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("localhost:8080", "http://localhost:8080"),
        ("https://emulator:9000", "https://emulator:9000"),
        ("  ", None),
        (None, None),
    ],
)
def test_normalize_emulator_host(raw, expected):
    assert normalize_emulator_host(raw) == expected


def test_create_store_picks_backend(tmp_path):
    memory = create_store(Settings(store_backend="memory", strict_mode=False))
    sqlite = create_store(Settings(store_backend="sqlite", store_db_path=str(tmp_path / "kv.sqlite3")))

    assert isinstance(memory, InMemoryKeyValueStore)
    assert isinstance(sqlite, SQLiteKeyValueStore)
