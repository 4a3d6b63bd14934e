"""API tests for polling control endpoints."""

import pytest

SLOW = {"initial_interval_ms": 30_000}


@pytest.mark.integration
class TestPollingEndpoints:
    """Tests for /api/v1/polling."""

    def test_start_and_inspect_job(self, env_no_auth, api_client):
        """Test starting a job makes it visible in the status view."""
        response = api_client.post("/api/v1/polling/job-1", json=SLOW)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["changed"] is True
        assert data["job_ids"] == ["job-1"]

        status = api_client.get("/api/v1/polling").json()
        assert status["active_jobs"] == ["job-1"]
        assert status["total_jobs"] == 1
        assert status["jobs"]["job-1"]["current_interval_ms"] == 30_000
        assert "job-1" in status["next_poll_times"]

        job = api_client.get("/api/v1/polling/job-1").json()
        assert job["phase"] == "scheduled"
        assert job["retry_count"] == 0

    def test_start_twice_reports_unchanged(self, env_no_auth, api_client):
        """Test a second start is accepted but changes nothing."""
        api_client.post("/api/v1/polling/job-1", json=SLOW)
        response = api_client.post("/api/v1/polling/job-1", json=SLOW)

        assert response.status_code == 200
        assert response.json()["changed"] is False

    def test_stop_job(self, env_no_auth, api_client):
        """Test stopping known and unknown jobs."""
        api_client.post("/api/v1/polling/job-1", json=SLOW)

        assert api_client.delete("/api/v1/polling/job-1").json()["changed"] is True
        assert api_client.delete("/api/v1/polling/job-1").json()["changed"] is False
        assert api_client.get("/api/v1/polling/job-1").status_code == 404

    def test_unknown_job_is_404(self, env_no_auth, api_client):
        """Test inspecting a job that is not polled."""
        response = api_client.get("/api/v1/polling/missing")

        assert response.status_code == 404
        assert response.json()["detail"]["error_type"] == "not_found"

    def test_batch_start(self, env_no_auth, api_client):
        """Test starting several jobs at once."""
        api_client.post("/api/v1/polling/a", json=SLOW)

        response = api_client.post("/api/v1/polling/batch", json={"job_ids": ["a", "b", "c"]})

        assert response.status_code == 200
        assert response.json()["job_ids"] == ["b", "c"]

    def test_batch_requires_job_ids(self, env_no_auth, api_client):
        """Test an empty batch is rejected."""
        response = api_client.post("/api/v1/polling/batch", json={"job_ids": []})
        assert response.status_code == 422

    @pytest.mark.parametrize("job_id", ["stats", "environment"])
    def test_route_names_rejected_as_job_ids(self, env_no_auth, api_client, job_id):
        """Test fixed path names cannot be started as jobs."""
        response = api_client.post(f"/api/v1/polling/{job_id}", json=SLOW)

        assert response.status_code == 400
        assert response.json()["detail"]["error_type"] == "validation_error"
        assert api_client.get("/api/v1/polling").json()["total_jobs"] == 0

    def test_batch_rejects_route_names(self, env_no_auth, api_client):
        """Test a batch naming a fixed path is rejected as a whole."""
        response = api_client.post("/api/v1/polling/batch", json={"job_ids": ["a", "pause"]})

        assert response.status_code == 422
        assert api_client.get("/api/v1/polling").json()["total_jobs"] == 0

    def test_pause_and_resume(self, env_no_auth, api_client):
        """Test pauses nest across API calls."""
        api_client.post("/api/v1/polling/pause")
        api_client.post("/api/v1/polling/pause")

        assert api_client.post("/api/v1/polling/resume").json()["is_paused"] is True
        assert api_client.post("/api/v1/polling/resume").json()["is_paused"] is False

        extra = api_client.post("/api/v1/polling/resume").json()
        assert extra["changed"] is False
        assert extra["is_paused"] is False

    def test_stats(self, env_no_auth, api_client):
        """Test aggregate statistics."""
        api_client.post("/api/v1/polling/a", json=SLOW)
        api_client.post("/api/v1/polling/b", json={"initial_interval_ms": 10_000})

        stats = api_client.get("/api/v1/polling/stats").json()

        assert stats["active_polls"] == 2
        assert stats["average_interval_ms"] == 20_000
        assert stats["total_retries"] == 0

    def test_environment_transitions(self, env_no_auth, api_client):
        """Test host signals pause and resume polling through the gate."""
        initial = api_client.get("/api/v1/polling/environment").json()
        assert initial == {
            "foreground": True, "online": True, "should_schedule": True, "is_paused": False,
        }

        hidden = api_client.put("/api/v1/polling/environment", json={"foreground": False}).json()
        assert hidden["is_paused"] is True
        assert hidden["should_schedule"] is False

        offline = api_client.put("/api/v1/polling/environment", json={"online": False}).json()
        assert offline["online"] is False

        visible = api_client.put(
            "/api/v1/polling/environment", json={"foreground": True, "online": True}
        ).json()
        assert visible["is_paused"] is False
        assert visible["should_schedule"] is True


@pytest.mark.integration
class TestPollingAuth:
    """Tests for API key enforcement on polling endpoints."""

    def test_requires_key(self, env_with_auth, api_client):
        """Test requests without a key are rejected."""
        response = api_client.get("/api/v1/polling")

        assert response.status_code == 401
        assert response.json()["detail"]["error_type"] == "authentication_required"

    def test_accepts_bearer_and_header(self, env_with_auth, api_client, auth_headers, api_key_headers):
        """Test both supported key locations."""
        assert api_client.get("/api/v1/polling", headers=auth_headers).status_code == 200
        assert api_client.get("/api/v1/polling", headers=api_key_headers).status_code == 200

    def test_rejects_wrong_key(self, env_with_auth, api_client):
        """Test a wrong key is rejected."""
        response = api_client.get("/api/v1/polling", headers={"X-API-Key": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"]["error_type"] == "authentication_failed"
