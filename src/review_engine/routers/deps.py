from fastapi import Request

from ..engine import ReviewEngine


def get_engine(request: Request) -> ReviewEngine:
    """アプリケーションに紐付いたエンジンを返す（create_app で注入）。"""
    return request.app.state.engine
