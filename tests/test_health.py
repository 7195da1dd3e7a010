import json
import logging
import os
from unittest.mock import patch

from app.observability.logger import log_event, sanitize_title, timing


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_healthz_basic(self, api):
        """Test basic health check without a scheduler."""
        response = api.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "timestamp" in data
        assert data["observability"]["enabled"] is False
        assert "scheduler" not in data

    def test_healthz_with_last_run(self, api):
        """Test health check reports the last job run."""
        api.post("/scheduler/run/retention")

        response = api.get("/healthz")

        data = response.json()
        assert data["scheduler"]["running"] is False
        last = data["scheduler"]["last_runs"]["retention"]
        assert last["job"] == "retention"
        assert last["success"] is True

    def test_healthz_sentry_flag(self, api):
        """Test sentry configuration is reported without exposing the DSN."""
        with patch.dict(os.environ, {"SENTRY_DSN": "https://key@sentry.example/1", "OBS_ENABLED": "true"}):
            data = api.get("/healthz").json()

        assert data["observability"] == {"enabled": True, "sentry_configured": True}

    def test_readiness(self, api):
        """Test readiness check pings the database."""
        response = api.get("/healthz/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["database"] == "ok"

    def test_readiness_database_down(self, api):
        """Test readiness check when the database is unavailable."""
        with patch("app.routes.health.ping", return_value=False):
            response = api.get("/healthz/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_liveness(self, api):
        response = api.get("/healthz/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_root(self, api):
        assert api.get("/").json() == {"status": "ok"}


class TestStructuredLogging:
    """Test structured logging helpers."""

    def test_log_event_is_json(self, caplog):
        with caplog.at_level(logging.INFO):
            log_event(action="job_completed", job="reminders", duration_ms=12.5, sent=2)

        record = json.loads(caplog.records[-1].getMessage())
        assert record["action"] == "job_completed"
        assert record["job"] == "reminders"
        assert record["duration_ms"] == 12.5
        assert record["sent"] == 2

    def test_sanitize_title(self):
        assert sanitize_title("Quarterly planning") == "Quarterly planning"
        long_title = "x" * 200
        assert len(sanitize_title(long_title)) < len(long_title)

    def test_timing(self):
        with timing("op") as timer:
            pass
        assert timer.get_duration_ms() >= 0
