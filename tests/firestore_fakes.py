"""Firestore をテストで再現するための簡易フェイク実装。

KV ストアが使う `collection().document().get/set/delete` だけを再現する。
`fail_with` に例外を設定すると以降の操作はその例外を送出する。
"""

from __future__ import annotations

from typing import Any


class FakeDocumentSnapshot:
    def __init__(self, doc_id: str, data: dict[str, Any] | None) -> None:
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        return None if self._data is None else dict(self._data)


class FakeDocumentReference:
    def __init__(self, client: "FakeFirestoreClient", collection: str, doc_id: str) -> None:
        self._client = client
        self._collection = collection
        self.id = doc_id

    def _bucket(self) -> dict[str, dict[str, Any]]:
        self._client._raise_if_failing()
        return self._client._data.setdefault(self._collection, {})

    def set(self, data: dict[str, Any], merge: bool = False) -> None:
        bucket = self._bucket()
        if merge and self.id in bucket:
            bucket[self.id].update(data)
        else:
            bucket[self.id] = dict(data)

    def get(self) -> FakeDocumentSnapshot:
        bucket = self._bucket()
        payload = dict(bucket[self.id]) if self.id in bucket else None
        return FakeDocumentSnapshot(self.id, payload)

    def delete(self) -> None:
        self._bucket().pop(self.id, None)


class FakeCollectionReference:
    def __init__(self, client: "FakeFirestoreClient", name: str) -> None:
        self._client = client
        self._name = name

    def document(self, doc_id: str) -> FakeDocumentReference:
        return FakeDocumentReference(self._client, self._name, doc_id)


class FakeFirestoreClient:
    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self.fail_with: Exception | None = None

    def collection(self, name: str) -> FakeCollectionReference:
        return FakeCollectionReference(self, name)

    def documents(self, collection: str) -> dict[str, dict[str, Any]]:
        return dict(self._data.get(collection, {}))

    def _raise_if_failing(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with
