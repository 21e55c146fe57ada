"""ID 生成ユーティリティ。

ストアのキーは `card:{learner}:{card}` のようにコロン区切りで組み立てるため、
生成する ID にはコロンやスラッシュを含めない。種別ごとの prefix を付けて
ログ上でも判別しやすくする。
"""

from __future__ import annotations

import uuid


def generate_card_id() -> str:
    return f"card_{uuid.uuid4().hex}"


def generate_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


def generate_notification_id() -> str:
    return f"notif_{uuid.uuid4().hex}"
