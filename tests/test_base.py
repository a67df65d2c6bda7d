"""
Tests for base module

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

import pytest

from repo_drive_backup.base import DEFAULT_BRANCH, Repository, RepositoryManager


class TestRepository:
    """Tests for Repository dataclass"""

    def test_repository_creation(self):
        """Test creating a Repository instance"""
        repo = Repository(
            name="test-repo",
            owner="test-owner",
            clone_url="https://github.com/test-owner/test-repo.git",
            is_private=True,
        )

        assert repo.name == "test-repo"
        assert repo.owner == "test-owner"
        assert repo.is_private is True
        assert repo.default_branch is None
        assert repo.updated_at is None

    def test_full_name(self):
        """Test full_name joins owner and name"""
        repo = Repository("test-repo", "test-owner", "https://x", False)
        assert repo.full_name == "test-owner/test-repo"

    def test_branch_falls_back_to_main(self):
        """Test branch is main when the provider reports no default branch"""
        repo = Repository("test-repo", "test-owner", "https://x", False)
        assert repo.branch == DEFAULT_BRANCH == "main"

    def test_branch_uses_default_branch(self):
        """Test branch prefers the reported default branch"""
        repo = Repository(
            "test-repo", "test-owner", "https://x", False, default_branch="develop"
        )
        assert repo.branch == "develop"

    def test_to_dict(self):
        """Test serialization uses camelCase keys"""
        repo = Repository(
            name="test-repo",
            owner="test-owner",
            clone_url="https://github.com/test-owner/test-repo.git",
            is_private=False,
            default_branch="main",
            updated_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            description="A repo",
            html_url="https://github.com/test-owner/test-repo",
        )

        assert repo.to_dict() == {
            "name": "test-repo",
            "fullName": "test-owner/test-repo",
            "description": "A repo",
            "url": "https://github.com/test-owner/test-repo",
            "private": False,
            "updatedAt": "2024-01-02T03:04:05+00:00",
            "defaultBranch": "main",
        }

    def test_to_dict_without_updated_at(self):
        """Test missing timestamps serialize as None"""
        repo = Repository("test-repo", "test-owner", "https://x", False)
        assert repo.to_dict()["updatedAt"] is None


class TestRepositoryManager:
    """Tests for RepositoryManager abstract base class"""

    def test_cannot_instantiate_abstract_class(self):
        """Test that RepositoryManager cannot be instantiated directly"""
        with pytest.raises(TypeError):
            RepositoryManager(token="test")

    def test_subclass_must_implement_methods(self):
        """Test that subclasses must implement abstract methods"""

        class IncompleteManager(RepositoryManager):
            pass

        with pytest.raises(TypeError):
            IncompleteManager(token="test")

    def test_complete_subclass(self):
        """Test that complete subclass can be instantiated"""

        class CompleteManager(RepositoryManager):
            def get_repositories(self):
                return []

            def check_connection(self):
                return "someone"

        manager = CompleteManager(token="test")
        assert manager.token == "test"
        assert manager.logger.name == "CompleteManager"
        assert manager.get_repositories() == []
