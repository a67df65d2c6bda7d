"""
Tests for the HTTP control surface

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from repo_drive_backup.drive_uploader import RemoteArchive
from repo_drive_backup.orchestrator import RunInProgressError, RunResult
from repo_drive_backup.retention import SweepResult
from repo_drive_backup.server import create_app
from repo_drive_backup.status import RunPhase, RunStatus, StatusHolder

STARTED = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.status = StatusHolder()
    return orchestrator


@pytest.fixture
def client(orchestrator):
    app = create_app(orchestrator)
    app.config["TESTING"] = True
    return app.test_client()


def complete_run(orchestrator, processed=3):
    def run():
        orchestrator.status.publish(
            RunStatus(
                phase=RunPhase.COMPLETED,
                last_run_started_at=STARTED,
                last_run_finished_at=STARTED,
                repos_processed=processed,
            )
        )
        return RunResult(started_at=STARTED, sweep=SweepResult(deleted=2, kept=1))

    return run


class TestInfoEndpoints:
    """Tests for /, /health and /status"""

    def test_index_lists_endpoints(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "running"
        assert data["endpoints"]["trigger"] == "/trigger"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    def test_status_idle(self, client):
        """Test the initial status before any run"""
        data = client.get("/status").get_json()

        assert data["status"] == "idle"
        assert data["lastRun"] is None
        assert data["reposProcessed"] == 0
        assert "timestamp" in data

    def test_status_reflects_latest_run(self, client, orchestrator):
        complete_run(orchestrator, processed=5)()

        data = client.get("/status").get_json()

        assert data["status"] == "completed"
        assert data["reposProcessed"] == 5
        assert data["lastRun"] == STARTED.isoformat()


class TestTriggerEndpoint:
    """Tests for POST /trigger"""

    def test_trigger_success(self, client, orchestrator):
        orchestrator.run.side_effect = complete_run(orchestrator)

        response = client.post("/trigger")

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["status"] == "completed"
        assert data["reposProcessed"] == 3
        assert data["cleanup"]["deleted"] == 2

    def test_trigger_conflict(self, client, orchestrator):
        """Test a trigger during a run is answered with 409"""
        running = RunStatus(phase=RunPhase.RUNNING, last_run_started_at=STARTED)
        orchestrator.run.side_effect = RunInProgressError(running)

        response = client.post("/trigger")

        assert response.status_code == 409
        data = response.get_json()
        assert data["error"] == "Backup already in progress"
        assert data["status"]["status"] == "running"

    def test_trigger_failure(self, client, orchestrator):
        def fail():
            orchestrator.status.publish(
                RunStatus(phase=RunPhase.FAILED, error="invalid_grant")
            )
            raise RuntimeError("invalid_grant")

        orchestrator.run.side_effect = fail

        response = client.post("/trigger")

        assert response.status_code == 500
        data = response.get_json()
        assert data["success"] is False
        assert data["status"] == "failed"
        assert data["error"] == "invalid_grant"

    def test_trigger_requires_post(self, client):
        assert client.get("/trigger").status_code == 405


class TestListingEndpoints:
    """Tests for /repos and /backups"""

    def test_repos(self, client, orchestrator, make_repo):
        orchestrator.list_repositories.return_value = [
            make_repo("repo-a", private=True),
            make_repo("repo-b"),
        ]

        data = client.get("/repos").get_json()

        assert data["success"] is True
        assert data["count"] == 2
        assert data["repositories"][0]["fullName"] == "octocat/repo-a"
        assert data["repositories"][0]["private"] is True

    def test_repos_error(self, client, orchestrator):
        orchestrator.list_repositories.side_effect = RuntimeError("github down")

        response = client.get("/repos")

        assert response.status_code == 500
        assert response.get_json() == {"success": False, "error": "github down"}

    def test_backups(self, client, orchestrator):
        orchestrator.list_backups.return_value = [
            RemoteArchive(id="1", name="repo-a-2024-05-01.zip", created_time=STARTED)
        ]

        data = client.get("/backups").get_json()

        assert data["count"] == 1
        assert data["backups"][0]["name"] == "repo-a-2024-05-01.zip"

    def test_backups_error(self, client, orchestrator):
        orchestrator.list_backups.side_effect = RuntimeError("drive down")

        response = client.get("/backups")

        assert response.status_code == 500
        assert response.get_json()["success"] is False
