"""
Backup run orchestration: list, fetch, archive, upload, clean up, sweep

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

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger
from tqdm import tqdm

from .archiver import ArchiveFile, Archiver
from .base import Repository, RepositoryManager
from .credentials import CredentialBroker, CredentialError
from .drive_uploader import DriveUploader, RemoteArchive
from .fetcher import RepositoryFetcher, WorkingCopy
from .retention import RetentionSweeper, SweepResult
from .status import RunPhase, RunStatus, StatusHolder
from .workspace import LocalWorkspace


class RunInProgressError(Exception):
    """A run was requested while another one is still running"""

    def __init__(self, status: RunStatus):
        super().__init__("Backup already in progress")
        self.status = status


class RepositoryBackupError(Exception):
    """A single repository failed while fail-fast mode is on"""


@dataclass
class RepositoryResult:
    name: str
    success: bool
    strategy: Optional[str] = None
    remote_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RunResult:
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[RepositoryResult] = field(default_factory=list)
    sweep: Optional[SweepResult] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def errors(self) -> Dict[str, str]:
        return {r.name: r.error or "" for r in self.results if not r.success}

    def error_summary(self) -> Optional[str]:
        if not self.failed:
            return None
        details = "; ".join(f"{name}: {error}" for name, error in self.errors.items())
        return f"{self.failed} of {len(self.results)} repositories failed: {details}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reposProcessed": self.succeeded,
            "reposFailed": self.failed,
            "errors": self.errors,
            "cleanup": self.sweep.to_dict() if self.sweep else None,
        }


class BackupOrchestrator:
    """
    Runs the whole pipeline once per trigger.

    Repositories are processed one at a time. A repository that fails is
    recorded and skipped unless ``fail_fast`` is set; credential and listing
    failures always end the run.
    """

    def __init__(
        self,
        broker: CredentialBroker,
        lister: RepositoryManager,
        fetcher: RepositoryFetcher,
        archiver: Archiver,
        uploader: DriveUploader,
        sweeper: RetentionSweeper,
        workspace: LocalWorkspace,
        status: Optional[StatusHolder] = None,
        fail_fast: bool = False,
        show_progress: bool = False,
    ):
        self.broker = broker
        self.lister = lister
        self.fetcher = fetcher
        self.archiver = archiver
        self.uploader = uploader
        self.sweeper = sweeper
        self.workspace = workspace
        self.status = status or StatusHolder()
        self.fail_fast = fail_fast
        self.show_progress = show_progress

    def run(self) -> RunResult:
        """
        Execute one backup run.

        Raises:
            RunInProgressError: If a run is already active; status is untouched
            Exception: Whatever ended the run, after ``failed`` is published
        """
        started_at = datetime.now(timezone.utc)
        if not self.status.try_begin(started_at):
            logger.warning("[SKIP] Backup already in progress")
            raise RunInProgressError(self.status.current)

        logger.info("[START] Starting repository backup run...")
        result = RunResult(started_at=started_at)

        try:
            self._execute(result)
        except Exception as e:
            result.finished_at = datetime.now(timezone.utc)
            logger.error(f"[FAIL] Backup run failed: {e}")
            self.status.publish(
                RunStatus(
                    phase=RunPhase.FAILED,
                    last_run_started_at=started_at,
                    last_run_finished_at=result.finished_at,
                    repos_processed=result.succeeded,
                    repos_failed=result.failed,
                    error=str(e),
                )
            )
            raise

        result.finished_at = datetime.now(timezone.utc)
        self.status.publish(
            RunStatus(
                phase=RunPhase.COMPLETED,
                last_run_started_at=started_at,
                last_run_finished_at=result.finished_at,
                repos_processed=result.succeeded,
                repos_failed=result.failed,
                error=result.error_summary(),
            )
        )
        self._log_summary(result)
        return result

    def _execute(self, result: RunResult):
        try:
            self.broker.ensure_valid_access_token(self.uploader.probe)
            self.workspace.prepare()

            logger.info("[DISCOVER] Discovering repositories...")
            repos = self.lister.get_repositories()
            logger.info(f"[TOTAL] Total repositories to backup: {len(repos)}")

            with tqdm(
                repos, desc="Backing up", unit="repo", disable=not self.show_progress
            ) as pbar:
                for repo in pbar:
                    repo_result = self.process_repository(repo)
                    result.results.append(repo_result)
                    pbar.set_postfix({"OK": result.succeeded, "FAIL": result.failed})

                    if not repo_result.success and self.fail_fast:
                        raise RepositoryBackupError(
                            f"{repo_result.name}: {repo_result.error}"
                        )

            result.sweep = self.sweeper.sweep()
        finally:
            logger.info("[CLEANUP] Cleaning up temporary files...")
            self.workspace.clear()

    def process_repository(self, repo: Repository) -> RepositoryResult:
        """Fetch, archive and upload one repository; never leaves its working copy"""
        logger.info(f"[BACKUP] Backing up {repo.full_name}")
        working_copy: Optional[WorkingCopy] = None
        archive: Optional[ArchiveFile] = None

        try:
            working_copy = self.fetcher.fetch(repo, self.workspace.work_dir)
            archive = self.archiver.archive(repo, working_copy.path)
            remote = self.uploader.upload(archive)
        except CredentialError:
            raise
        except Exception as e:
            logger.error(f"[ERROR] Failed to backup {repo.full_name}: {e}")
            if archive is not None:
                logger.warning(
                    f"[UPLOAD] Keeping {archive.name} until the end of this run"
                )
            return RepositoryResult(
                name=repo.full_name,
                success=False,
                strategy=working_copy.strategy if working_copy else None,
                error=str(e),
            )
        finally:
            self.workspace.remove_working_copy(
                working_copy.path if working_copy else self.workspace.work_dir / repo.name
            )

        self.workspace.remove_archive(archive.path)
        logger.info(
            f"[SUCCESS] Backed up {repo.full_name} via {working_copy.strategy} as {remote.name}"
        )
        return RepositoryResult(
            name=repo.full_name,
            success=True,
            strategy=working_copy.strategy,
            remote_id=remote.id,
        )

    def list_repositories(self) -> List[Repository]:
        return self.lister.get_repositories()

    def list_backups(self) -> List[RemoteArchive]:
        return self.uploader.list_backups()

    def _log_summary(self, result: RunResult):
        logger.info("=" * 60)
        logger.info("[SUMMARY] BACKUP SUMMARY")
        logger.info("=" * 60)
        logger.info(f"[SUCCESS] Successful backups: {result.succeeded}")
        logger.info(f"[FAIL] Failed backups: {result.failed}")
        logger.info(f"[TOTAL] Total repositories: {len(result.results)}")
        if result.sweep:
            logger.info(
                f"[RETENTION] Deleted {result.sweep.deleted}, kept {result.sweep.kept}"
            )
        if result.failed:
            logger.error(
                f"[WARN] {result.failed} repositories failed to backup - check logs for details"
            )
        else:
            logger.info("[COMPLETE] All repositories backed up successfully!")
