"""
Tests for archiver module

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

import zipfile
from datetime import date
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from repo_drive_backup.archiver import (
    Archiver,
    CompressionError,
    archive_filename,
)


class TestArchiveFilename:
    """Tests for archive naming"""

    def test_explicit_date(self):
        """Test the date is rendered as YYYY-MM-DD"""
        assert archive_filename("repo-a", date(2024, 3, 7)) == "repo-a-2024-03-07.zip"

    @freeze_time("2024-06-30 23:59:59")
    def test_defaults_to_today_utc(self):
        """Test the current UTC date is used by default"""
        assert archive_filename("repo-a") == "repo-a-2024-06-30.zip"


class TestArchiver:
    """Tests for zip creation"""

    @freeze_time("2024-05-01 10:00:00")
    def test_archive_name_and_location(self, tmp_path, repo, working_copy):
        """Test the archive lands in the output directory with a dated name"""
        archiver = Archiver(tmp_path / "zips")

        archive = archiver.archive(repo, working_copy)

        assert archive.path == tmp_path / "zips" / "repo-a-2024-05-01.zip"
        assert archive.name == "repo-a-2024-05-01.zip"
        assert archive.repository is repo
        assert archive.size_bytes > 0

    def test_entries_are_relative_to_working_copy(self, tmp_path, repo, working_copy):
        """Test the archive has no wrapping folder and keeps contents intact"""
        archive = Archiver(tmp_path / "zips").archive(repo, working_copy)

        with zipfile.ZipFile(archive.path) as zf:
            names = set(zf.namelist())
            assert names == {"README.md", "src/app.py", "empty/"}
            assert zf.read("README.md") == b"# repo-a\n"
            assert zf.read("src/app.py") == (b"print('hello')\n" * 50)
            assert zf.testzip() is None

    def test_uses_deflate(self, tmp_path, repo, working_copy):
        """Test file entries are deflate compressed"""
        archive = Archiver(tmp_path / "zips").archive(repo, working_copy)

        with zipfile.ZipFile(archive.path) as zf:
            info = zf.getinfo("src/app.py")
            assert info.compress_type == zipfile.ZIP_DEFLATED
            assert info.compress_size < info.file_size

    def test_same_day_archive_is_overwritten(self, tmp_path, repo, working_copy):
        """Test a second archive on the same day replaces the first"""
        archiver = Archiver(tmp_path / "zips")
        first = archiver.archive(repo, working_copy)
        (working_copy / "README.md").write_text("changed\n")

        second = archiver.archive(repo, working_copy)

        assert first.path == second.path
        assert len(list((tmp_path / "zips").iterdir())) == 1
        with zipfile.ZipFile(second.path) as zf:
            assert zf.read("README.md") == b"changed\n"

    def test_missing_working_copy(self, tmp_path, repo):
        """Test archiving a missing directory fails"""
        with pytest.raises(CompressionError):
            Archiver(tmp_path / "zips").archive(repo, tmp_path / "missing")

    def test_failure_removes_partial_archive(self, tmp_path, repo, working_copy):
        """Test a write failure leaves no partial zip behind"""
        archiver = Archiver(tmp_path / "zips")

        with patch.object(
            zipfile.ZipFile, "write", side_effect=OSError("disk full")
        ):
            with pytest.raises(CompressionError) as exc_info:
                archiver.archive(repo, working_copy)

        assert "disk full" in str(exc_info.value)
        assert list((tmp_path / "zips").iterdir()) == []
