# ABOUTME: FastAPI TestClient tests for /api/goals/refine, saved-goal CRUD and /api/telemetry; mocks the refiner and DB.
# ABOUTME: Checks status-code mapping for rejection, configuration and model failures.

from contextlib import contextmanager
from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from api.main import app
from core.errors import ConfigurationError, ContractViolationError, TransportError
from core.schemas import GuardrailRejection, RefinedGoal
from core.telemetry import DatabaseTelemetrySink, TelemetryRecord

SAVED_GOAL = {
    "user_input": "Read more.",
    "refined_goal": "Read 12 books by December 2026.",
    "key_results": ["1/month", "Join club", "Track list"],
    "confidence_score": 9,
}


@contextmanager
def _with_fake_session(fake_get_session):
    """Patch get_session where the API and telemetry modules import it so all app code uses the in-memory DB."""
    with (
        patch("api.main.get_session", fake_get_session),
        patch("core.telemetry.get_session", fake_get_session),
    ):
        yield


@pytest.fixture
def client(fake_get_session):
    with _with_fake_session(fake_get_session):
        yield TestClient(app)


@patch("api.main.refine_goal")
def test_refine_success(mock_refine, client):
    mock_refine.return_value = RefinedGoal(
        refined_goal="Improve public speaking.",
        key_results=["Speak monthly", "Join Toastmasters", "Practice weekly"],
        confidence_score=8,
    )
    resp = client.post("/api/goals/refine", json={"goal": "I want to get better at speaking."})
    assert resp.status_code == 200
    data = resp.json()
    assert data["refined_goal"] == "Improve public speaking."
    assert data["confidence_score"] == 8
    assert len(data["key_results"]) == 3
    mock_refine.assert_called_once_with("I want to get better at speaking.")


@patch("api.main.refine_goal")
def test_refine_whitespace_returns_sentinel(mock_refine, client):
    mock_refine.return_value = RefinedGoal.empty()
    resp = client.post("/api/goals/refine", json={"goal": "   "})
    assert resp.status_code == 200
    assert resp.json() == {"refined_goal": "No goal provided", "key_results": [], "confidence_score": 0}


@pytest.mark.parametrize("body", [{}, {"goal": ""}, {"goal": 42}, {"goal": ["a"]}])
@patch("api.main.refine_goal")
def test_refine_400_when_goal_missing_or_not_string(mock_refine, client, body):
    resp = client.post("/api/goals/refine", json=body)
    assert resp.status_code == 400
    assert "required" in resp.json()["message"]
    mock_refine.assert_not_called()


@patch("api.main.refine_goal")
def test_refine_400_on_guardrail_rejection(mock_refine, client):
    mock_refine.return_value = GuardrailRejection(error="Input does not appear to be a valid goal.")
    resp = client.post("/api/goals/refine", json={"goal": "DROP TABLE goals;"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Input does not appear to be a valid goal."}


@pytest.mark.parametrize(
    "error",
    [TransportError("Gemini API error (503): overloaded"), ContractViolationError(["key_results: too short"])],
)
@patch("api.main.refine_goal")
def test_refine_502_on_model_failure(mock_refine, client, error):
    mock_refine.side_effect = error
    resp = client.post("/api/goals/refine", json={"goal": "anything"})
    assert resp.status_code == 502
    assert resp.json()["message"] == "AI model failed to generate a valid response."


@patch("api.main.refine_goal")
def test_refine_500_when_not_configured(mock_refine, client):
    mock_refine.side_effect = ConfigurationError("GOOGLE_API_KEY environment variable is not set")
    resp = client.post("/api/goals/refine", json={"goal": "anything"})
    assert resp.status_code == 500
    assert resp.json()["message"] == "AI service is not configured."


def test_post_goal_persists_and_get_by_id(client):
    resp = client.post("/api/goals", json=SAVED_GOAL)
    assert resp.status_code == 201
    data = resp.json()
    assert data["original_input"] == "Read more."
    assert data["key_results"] == ["1/month", "Join club", "Track list"]
    assert data["status"] == "saved"

    fetched = client.get(f"/api/goals/{data['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == data


@pytest.mark.parametrize(
    "overrides",
    [{"key_results": ["a", "b"]}, {"confidence_score": 0}, {"confidence_score": 11}, {"refined_goal": ""}],
)
def test_post_goal_rejects_invalid_body(client, overrides):
    resp = client.post("/api/goals", json={**SAVED_GOAL, **overrides})
    assert resp.status_code == 422


def test_get_goals_newest_first_with_pagination(client):
    for i in range(3):
        client.post("/api/goals", json={**SAVED_GOAL, "refined_goal": f"goal{i}"})

    resp = client.get("/api/goals")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 3
    assert [g["refined_goal"] for g in data["goals"]] == ["goal2", "goal1", "goal0"]

    resp2 = client.get("/api/goals?limit=2&offset=1")
    data2 = resp2.json()
    assert data2["total"] == 3
    assert [g["refined_goal"] for g in data2["goals"]] == ["goal1", "goal0"]


def test_get_goals_invalid_params_return_422(client):
    assert client.get("/api/goals?offset=-1").status_code == 422
    assert client.get("/api/goals?limit=-1").status_code == 422


def test_get_and_delete_missing_goal_return_404(client):
    missing = uuid4()
    assert client.get(f"/api/goals/{missing}").status_code == 404
    resp = client.delete(f"/api/goals/{missing}")
    assert resp.status_code == 404
    assert str(missing) in resp.json()["message"]


def test_delete_goal(client):
    goal_id = client.post("/api/goals", json=SAVED_GOAL).json()["id"]

    resp = client.delete(f"/api/goals/{goal_id}")
    assert resp.status_code == 200
    assert client.get(f"/api/goals/{goal_id}").status_code == 404
    assert client.get("/api/goals").json()["total"] == 0


def test_telemetry_summary_and_logs(client):
    sink = DatabaseTelemetrySink()
    sink.emit(
        TelemetryRecord.create(
            model="gemini-2.5-flash", success=True, latency_ms=250.0,
            user_input="Read more.", prompt_tokens=80, completion_tokens=40,
        )
    )
    sink.emit(
        TelemetryRecord.create(
            model="gemini-2.5-flash", success=False, latency_ms=750.0,
            user_input="Run more.", error_message="timeout",
        )
    )

    summary = client.get("/api/telemetry").json()
    assert summary["total_calls"] == 2
    assert summary["failed_calls"] == 1
    assert summary["average_latency_ms"] == 500
    assert summary["total_tokens"] == 120

    logs = client.get("/api/telemetry/logs").json()
    assert logs["count"] == 2
    assert logs["date_filter"] == "all"
    assert logs["logs"][0]["input"] == "Run more."

    empty_day = client.get("/api/telemetry/logs?date=2001-01-01").json()
    assert empty_day["count"] == 0
    assert empty_day["date_filter"] == "2001-01-01"


def test_telemetry_logs_invalid_date_returns_422(client):
    assert client.get("/api/telemetry/logs?date=yesterday").status_code == 422


def test_health(client):
    assert client.get("/api/health").json() == {"status": "healthy"}
