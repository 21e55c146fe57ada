from __future__ import annotations

from ..config import Settings
from .base import KeyValueStore
from .memory import InMemoryKeyValueStore
from .repository import EngineRepository
from .sqlite import SQLiteKeyValueStore


def create_store(settings: Settings) -> KeyValueStore:
    """設定に応じた永続化バックエンドを初期化する。

    Firestore はクライアント生成時にネットワーク設定を解決するため、
    選択された場合にだけ import する。
    """

    if settings.store_backend == "memory":
        return InMemoryKeyValueStore()
    if settings.store_backend == "firestore":
        from .firestore import FirestoreKeyValueStore, build_firestore_client

        client = build_firestore_client(
            project_id=settings.firestore_project_id,
            emulator_host=settings.firestore_emulator_host,
            environment=settings.environment,
        )
        return FirestoreKeyValueStore(client, collection=settings.firestore_collection)
    return SQLiteKeyValueStore(db_path=settings.store_db_path)


__all__ = [
    "EngineRepository",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "create_store",
]
