from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from dream_drift.adapters.sqlite_anomaly_store import SQLiteAnomalyStore
from dream_drift.adapters.sqlite_story_store import SQLiteStoryStore
from dream_drift.api.app import build_story_snapshot, create_app, verify_trigger_request
from dream_drift.domain.errors import GenerationError, TriggerAuthError
from dream_drift.domain.models import DEFAULT_MOTIFS, GenerationContext, Paragraph, StoryState
from dream_drift.settings import RuntimeSettings

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
SECRET = "s3cret"
VALID_PARAGRAPH = " ".join(["She walked slowly past the quiet door."] * 10)
SHORT_PARAGRAPH = "She walked past the door. Then nothing."


class FixedRandom:
    def random(self) -> float:
        return 0.0


class ScriptedGenerator:
    def __init__(self, *items: str | GenerationError) -> None:
        self._items = list(items)
        self.calls = 0

    def generate(self, context: GenerationContext) -> str:
        self.calls += 1
        item = self._items.pop(0)
        if isinstance(item, GenerationError):
            raise item
        return item


class MutableClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _settings(tmp_path: Path, *, cron_secret: str | None = SECRET) -> RuntimeSettings:
    return RuntimeSettings(db_path=tmp_path / "api.db", cron_secret=cron_secret)


def _client(
    tmp_path: Path,
    generator: ScriptedGenerator,
    *,
    cron_secret: str | None = SECRET,
    clock: MutableClock | None = None,
) -> TestClient:
    app = create_app(
        settings=_settings(tmp_path, cron_secret=cron_secret),
        generator=generator,
        rng=FixedRandom(),
        clock=clock or MutableClock(NOW),
    )
    return TestClient(app)


def _auth() -> dict[str, str]:
    return {"Authorization": f"Bearer {SECRET}"}


def test_healthz_and_root(tmp_path: Path) -> None:
    client = _client(tmp_path, ScriptedGenerator())
    assert client.get("/healthz").json() == {"status": "ok", "service": "dream_drift"}
    root = client.get("/api/v1").json()
    assert "/api/v1/generate" in root["endpoints"]


def test_generate_rejects_missing_credential(tmp_path: Path) -> None:
    generator = ScriptedGenerator(VALID_PARAGRAPH)
    client = _client(tmp_path, generator)

    response = client.post("/api/v1/generate")
    assert response.status_code == 401
    assert response.json() == {"detail": "Unauthorized"}

    wrong = client.post("/api/v1/generate", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401
    assert generator.calls == 0


def test_generate_with_secret_commits_first_paragraph(tmp_path: Path) -> None:
    client = _client(tmp_path, ScriptedGenerator(VALID_PARAGRAPH))

    response = client.post("/api/v1/generate", headers=_auth())

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["paragraph"]["sequence"] == 1
    assert payload["paragraph"]["drift_level"] == 0.02
    assert payload["paragraph"]["content"] == VALID_PARAGRAPH


def test_generate_accepts_scheduler_marker_header(tmp_path: Path) -> None:
    client = _client(tmp_path, ScriptedGenerator(VALID_PARAGRAPH))
    response = client.post("/api/v1/generate", headers={"x-cron-trigger": "1"})
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_generate_is_open_without_configured_secret(tmp_path: Path) -> None:
    client = _client(tmp_path, ScriptedGenerator(VALID_PARAGRAPH), cron_secret=None)
    response = client.post("/api/v1/generate")
    assert response.status_code == 200


def test_generate_skips_until_interval_elapses(tmp_path: Path) -> None:
    clock = MutableClock(NOW)
    client = _client(tmp_path, ScriptedGenerator(VALID_PARAGRAPH, VALID_PARAGRAPH), clock=clock)
    assert client.post("/api/v1/generate", headers=_auth()).status_code == 200

    clock.now = NOW + timedelta(minutes=2)
    skipped = client.post("/api/v1/generate", headers=_auth())
    assert skipped.status_code == 200
    assert skipped.json() == {
        "skipped": True,
        "reason": "interval_not_elapsed",
        "message": "Not enough time has passed since last update",
    }

    clock.now = NOW + timedelta(minutes=11)
    second = client.post("/api/v1/generate", headers=_auth())
    assert second.json()["paragraph"]["sequence"] == 2
    assert second.json()["paragraph"]["drift_level"] == 0.04


def test_generate_reports_double_rejection(tmp_path: Path) -> None:
    client = _client(tmp_path, ScriptedGenerator(SHORT_PARAGRAPH, SHORT_PARAGRAPH))

    response = client.post("/api/v1/generate", headers=_auth())

    assert response.status_code == 500
    assert response.json()["detail"].startswith(
        "Failed to generate valid paragraph after 2 attempts: Paragraph too short"
    )
    anomalies = SQLiteAnomalyStore(db_path=tmp_path / "api.db").list_recent(code="cycle_rejected")
    assert len(anomalies) == 1
    assert anomalies[0].metadata()["attempts"] == 2
    rejected = SQLiteAnomalyStore(db_path=tmp_path / "api.db").list_recent(
        code="paragraph_rejected"
    )
    assert sorted(item.metadata()["attempt"] for item in rejected) == [1, 2]
    assert client.get("/api/v1/story").json()["paragraphs"] == []


def test_generate_reports_provider_failure(tmp_path: Path) -> None:
    generator = ScriptedGenerator(
        GenerationError("OpenRouter API error: 503"), GenerationError("OpenRouter API error: 503")
    )
    client = _client(tmp_path, generator)

    response = client.post("/api/v1/generate", headers=_auth())

    assert response.status_code == 502
    assert response.json()["detail"] == "Generation failed: OpenRouter API error: 503"
    anomaly_store = SQLiteAnomalyStore(db_path=tmp_path / "api.db")
    failed = anomaly_store.list_recent(code="generation_attempt_failed")
    assert sorted(item.metadata()["attempt"] for item in failed) == [1, 2]
    assert len(anomaly_store.list_recent(code="cycle_generation_failed")) == 1


def test_generate_records_rejected_attempt_anomalies(tmp_path: Path) -> None:
    client = _client(tmp_path, ScriptedGenerator(SHORT_PARAGRAPH, VALID_PARAGRAPH))

    response = client.post("/api/v1/generate", headers=_auth())

    assert response.status_code == 200
    anomalies = SQLiteAnomalyStore(db_path=tmp_path / "api.db").list_recent(
        code="paragraph_rejected"
    )
    assert len(anomalies) == 1
    assert anomalies[0].metadata() == {"attempt": 1}


def test_read_story_on_empty_store(tmp_path: Path) -> None:
    client = _client(tmp_path, ScriptedGenerator())
    assert client.get("/api/v1/story").json() == {
        "paragraphs": [],
        "drift_level": 0.0,
        "last_update": None,
    }


def test_read_story_returns_paragraphs_and_state(tmp_path: Path) -> None:
    client = _client(tmp_path, ScriptedGenerator(VALID_PARAGRAPH))
    client.post("/api/v1/generate", headers=_auth())

    payload = client.get("/api/v1/story").json()

    assert payload["drift_level"] == 0.02
    assert datetime.fromisoformat(payload["last_update"]) == NOW
    assert len(payload["paragraphs"]) == 1
    paragraph = payload["paragraphs"][0]
    assert paragraph["sequence"] == 1
    assert paragraph["content"] == VALID_PARAGRAPH
    assert datetime.fromisoformat(paragraph["created_at"]) == NOW


def test_lifespan_prunes_anomalies(tmp_path: Path) -> None:
    anomaly_store = SQLiteAnomalyStore(db_path=tmp_path / "api.db")
    for index in range(3):
        anomaly_store.write_anomaly(
            scope="generation", code=f"code_{index}", severity="warning", message="x"
        )
    settings = RuntimeSettings(db_path=tmp_path / "api.db", anomaly_max_rows=1)
    app = create_app(settings=settings, generator=ScriptedGenerator())

    with TestClient(app):
        pass

    assert [item.code for item in anomaly_store.list_recent()] == ["code_2"]


def test_snapshot_falls_back_to_latest_paragraph_without_state() -> None:
    paragraph = Paragraph(
        paragraph_id="p1",
        content="Text.",
        drift_level=0.31,
        sequence=1,
        created_at_utc=NOW,
    )
    snapshot = build_story_snapshot(None, [paragraph])
    assert snapshot.drift_level == 0.31
    assert snapshot.last_update == NOW


def test_snapshot_prefers_state_values() -> None:
    paragraph = Paragraph(
        paragraph_id="p1",
        content="Text.",
        drift_level=0.31,
        sequence=1,
        created_at_utc=NOW,
    )
    state = StoryState(
        state_id="s1",
        drift_level=0.35,
        motifs=("a door",),
        last_update_utc=NOW + timedelta(minutes=1),
    )
    snapshot = build_story_snapshot(state, [paragraph])
    assert snapshot.drift_level == 0.35
    assert snapshot.last_update == NOW + timedelta(minutes=1)


def test_verify_trigger_request_rules(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    verify_trigger_request({"authorization": f"Bearer {SECRET}"}, settings)
    verify_trigger_request({"x-cron-trigger": "1"}, settings)
    with pytest.raises(TriggerAuthError):
        verify_trigger_request({"authorization": "Bearer wrong"}, settings)
    with pytest.raises(TriggerAuthError):
        verify_trigger_request({}, settings)
    verify_trigger_request({}, _settings(tmp_path, cron_secret=None))


def test_generate_records_low_continuity_without_rejecting(tmp_path: Path) -> None:
    unrelated = " ".join(["He opened a heavy wooden gate."] * 9)
    clock = MutableClock(NOW)
    client = _client(tmp_path, ScriptedGenerator(VALID_PARAGRAPH, unrelated), clock=clock)
    client.post("/api/v1/generate", headers=_auth())

    clock.now = NOW + timedelta(minutes=11)
    response = client.post("/api/v1/generate", headers=_auth())

    assert response.status_code == 200
    anomalies = SQLiteAnomalyStore(db_path=tmp_path / "api.db").list_recent(code="continuity_low")
    assert len(anomalies) == 1
    assert anomalies[0].metadata()["overlap"] == 0


def test_generate_reports_store_failure_without_changing_state(tmp_path: Path) -> None:
    generator = ScriptedGenerator(VALID_PARAGRAPH)
    client = _client(tmp_path, generator)
    store = SQLiteStoryStore(db_path=tmp_path / "api.db")
    store.create_state(motifs=DEFAULT_MOTIFS)
    with sqlite3.connect(tmp_path / "api.db") as connection:
        connection.execute("DROP TABLE paragraphs")

    response = client.post("/api/v1/generate", headers=_auth())

    assert response.status_code == 500
    assert response.json() == {"detail": "Story store failure"}
    assert generator.calls == 0
    state = store.load_state()
    assert state is not None
    assert state.drift_level == 0.0
    assert state.last_update_utc is None
    assert state.last_paragraph_id is None
    anomalies = SQLiteAnomalyStore(db_path=tmp_path / "api.db").list_recent(
        code="cycle_store_failed"
    )
    assert len(anomalies) == 1
    assert "list paragraphs" in anomalies[0].message
