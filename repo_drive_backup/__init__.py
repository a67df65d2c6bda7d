"""
repo-drive-backup - Scheduled GitHub repository backup to Google Drive

Zips every repository owned by a GitHub account and keeps a rolling,
retention-limited set of archives in Google Drive.

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

__version__ = "1.0.0"
__license__ = "Apache-2.0"
__description__ = "Scheduled GitHub repository backup to Google Drive with retention"

from .archiver import Archiver
from .base import Repository, RepositoryManager
from .credentials import CredentialBroker
from .drive_uploader import DriveUploader
from .fetcher import RepositoryFetcher
from .github_manager import GitHubManager
from .main import main
from .orchestrator import BackupOrchestrator
from .retention import RetentionSweeper

__all__ = [
    "Repository",
    "RepositoryManager",
    "GitHubManager",
    "RepositoryFetcher",
    "Archiver",
    "CredentialBroker",
    "DriveUploader",
    "RetentionSweeper",
    "BackupOrchestrator",
    "main",
]
