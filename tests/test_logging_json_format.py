import io
import json
from contextlib import redirect_stderr, redirect_stdout

from fastapi.testclient import TestClient

from review_engine.logging import bound_learner, configure_logging, logger
from review_engine.main import create_app


def _json_lines(buffer_text: str) -> list[dict]:
    lines = [ln for ln in buffer_text.splitlines() if ln.strip().startswith("{")]
    return [json.loads(ln) for ln in lines]


def _capture(run) -> list[dict]:
    buf_out = io.StringIO()
    buf_err = io.StringIO()
    with redirect_stdout(buf_out), redirect_stderr(buf_err):
        configure_logging()
        run()
    # logging は既定で stderr に出力する
    return _json_lines(buf_err.getvalue()) or _json_lines(buf_out.getvalue())


def test_structlog_outputs_pure_json_without_stdlib_prefix():
    records = _capture(lambda: logger.info("session_started", session_id="session_1", cards=3))

    assert records, "no log output captured"
    data = records[-1]
    assert data["event"] == "session_started"
    assert data["level"] == "info"
    assert data["cards"] == 3
    assert "timestamp" in data


def test_bound_learner_context_is_merged():
    def run() -> None:
        with bound_learner("learner-1", "session_9"):
            logger.info("response_recorded", card_id="card_1")
        logger.info("outside")

    records = _capture(run)

    inside = next(item for item in records if item["event"] == "response_recorded")
    outside = next(item for item in records if item["event"] == "outside")
    assert inside["learner_id"] == "learner-1"
    assert inside["session_id"] == "session_9"
    assert "learner_id" not in outside


def test_engine_operations_log_learner_id(engine):
    records = _capture(lambda: engine.add_card("learner-7", "vocab-1", "word"))

    added = next(item for item in records if item["event"] == "card_added")
    assert added["learner_id"] == "learner-7"


def test_request_complete_log_contains_status_code(engine):
    def run() -> None:
        app = create_app(engine, run_background=False)
        with TestClient(app) as client:
            assert client.get("/healthz").status_code == 200
            assert client.get("/api/sessions/session_missing").status_code == 404

    records = _capture(run)
    request_lines = [item for item in records if item["event"] == "request_complete"]

    assert [item["status_code"] for item in request_lines] == [200, 404]
    assert all(item["request_id"] for item in request_lines)
    assert request_lines[0]["path"] == "/healthz"
