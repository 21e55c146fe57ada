from __future__ import annotations

import os
from datetime import UTC, datetime

from google.api_core import exceptions as gexc
from google.cloud import firestore

from ..errors import StorageError


_DEFAULT_EMULATOR_HOST = "127.0.0.1:8080"


def normalize_emulator_host(raw_host: str | None) -> str | None:
    """FIRESTORE_EMULATOR_HOST で受け取ったホスト文字列を正規化する。

    スキームなしの `localhost:8080` でもクライアントオプションに渡せるよう、
    http:// を自動付与する。空文字や None は未設定として扱う。
    """

    host = (raw_host or "").strip()
    if not host:
        return None
    if host.startswith(("http://", "https://")):
        return host
    return f"http://{host}"


def build_firestore_client(
    *,
    project_id: str | None,
    emulator_host: str | None,
    environment: str,
) -> firestore.Client:
    """Firestore クライアントを構築する。

    - エミュレータのホストが指定されていればそちらへ接続する
    - 本番以外ではホスト未指定でも 127.0.0.1:8080 のエミュレータを優先する
    """

    environment_name = (environment or "").strip().lower()
    host = normalize_emulator_host(
        emulator_host
        or os.environ.get("FIRESTORE_EMULATOR_HOST")
        or (_DEFAULT_EMULATOR_HOST if environment_name != "production" else None)
    )
    if host:
        # google-cloud-firestore は FIRESTORE_EMULATOR_HOST を検知して匿名認証へ切り替える。
        os.environ.setdefault("FIRESTORE_EMULATOR_HOST", host.replace("http://", "").replace("https://", ""))
        return firestore.Client(project=project_id, client_options={"api_endpoint": host})
    return firestore.Client(project=project_id)


class FirestoreKeyValueStore:
    """Firestore 上で 1 キー = 1 ドキュメントとして値を保持するストア。

    キーにはコロンが含まれるが、Firestore のドキュメント ID では問題にならない。
    スラッシュはパス区切りとして解釈されるため、キーに含めてはならない。
    """

    def __init__(self, client: firestore.Client, collection: str = "review_engine_kv") -> None:
        self._client = client
        self._collection = client.collection(collection)

    def _document(self, key: str):
        if "/" in key:
            raise StorageError(f"key must not contain '/': {key}")
        return self._collection.document(key)

    def get(self, key: str) -> bytes | None:
        try:
            snapshot = self._document(key).get()
        except gexc.GoogleAPICallError as exc:
            raise StorageError(f"firestore get failed for {key}: {exc}") from exc
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        value = data.get("value")
        if value is None:
            return None
        return bytes(value)

    def set(self, key: str, value: bytes) -> None:
        try:
            self._document(key).set({"value": bytes(value), "updated_at": datetime.now(UTC).isoformat()})
        except gexc.GoogleAPICallError as exc:
            raise StorageError(f"firestore set failed for {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._document(key).delete()
        except gexc.GoogleAPICallError as exc:
            raise StorageError(f"firestore delete failed for {key}: {exc}") from exc
