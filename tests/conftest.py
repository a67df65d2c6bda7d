"""
Shared fixtures for repo_drive_backup tests

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

import json
from datetime import datetime, timezone

import httplib2
import pytest
from googleapiclient.errors import HttpError

from repo_drive_backup.base import Repository


def _make_repo(name="repo-a", owner="octocat", private=False, branch="main"):
    return Repository(
        name=name,
        owner=owner,
        clone_url=f"https://github.com/{owner}/{name}.git",
        is_private=private,
        default_branch=branch,
        updated_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        description=f"{name} description",
        html_url=f"https://github.com/{owner}/{name}",
    )


def _make_http_error(status: int, message: str = "error") -> HttpError:
    resp = httplib2.Response({"status": status})
    content = json.dumps({"error": {"code": status, "message": message}}).encode()
    return HttpError(resp, content)


@pytest.fixture
def make_repo():
    """Factory for Repository records"""
    return _make_repo


@pytest.fixture
def http_error():
    """Factory for googleapiclient HttpError instances"""
    return _make_http_error


@pytest.fixture
def repo():
    return _make_repo()


@pytest.fixture
def working_copy(tmp_path):
    """A small directory tree standing in for a cloned repository"""
    root = tmp_path / "temp" / "repo-a"
    (root / "src").mkdir(parents=True)
    (root / "README.md").write_text("# repo-a\n")
    (root / "src" / "app.py").write_text("print('hello')\n" * 50)
    (root / "empty").mkdir()
    return root
