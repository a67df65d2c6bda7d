"""
Retention sweep for remote archives

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

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .credentials import CredentialError
from .drive_uploader import DriveUploader

RETENTION_WINDOW = timedelta(days=2)


@dataclass
class SweepError:
    name: str
    error: str


@dataclass
class SweepResult:
    deleted: int = 0
    kept: int = 0
    errors: List[SweepError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.deleted + self.kept + len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deleted": self.deleted,
            "kept": self.kept,
            "errors": [{"file": e.name, "error": e.error} for e in self.errors],
        }


class RetentionSweeper:
    def __init__(
        self, uploader: DriveUploader, retention_window: timedelta = RETENTION_WINDOW
    ):
        self.uploader = uploader
        self.retention_window = retention_window
        self.logger = logging.getLogger(self.__class__.__name__)

    def sweep(
        self,
        retention_window: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        """
        Delete every remote archive whose age exceeds the retention window.

        Age comes from the modified time, or the created time when Drive
        reports no modification. A failed deletion is recorded and the sweep
        moves on; a failed listing propagates.
        """
        window = retention_window or self.retention_window
        now = now or datetime.now(timezone.utc)
        result = SweepResult()

        self.logger.info(
            f"[RETENTION] Removing archives older than {window.total_seconds() / 86400:g} days"
        )
        archives = self.uploader.list_backups()
        if not archives:
            self.logger.info("[RETENTION] No backup files found in Google Drive")
            return result

        for archive in archives:
            timestamp = archive.last_modified
            if timestamp is None:
                self.logger.warning(
                    f"[RETENTION] {archive.name} has no timestamp, keeping it"
                )
                result.kept += 1
                continue

            if now - timestamp <= window:
                result.kept += 1
                continue

            try:
                self.uploader.delete(archive.id)
            except CredentialError:
                raise
            except Exception as e:
                self.logger.error(f"[RETENTION] Error deleting {archive.name}: {e}")
                result.errors.append(SweepError(name=archive.name, error=str(e)))
                continue

            result.deleted += 1
            self.logger.info(
                f"[RETENTION] Deleted old backup: {archive.name} ({timestamp.date().isoformat()})"
            )

        self.logger.info(
            f"[RETENTION] Cleanup completed: {result.deleted} deleted, {result.kept} kept"
        )
        if result.errors:
            self.logger.warning(
                f"[RETENTION] Failed to delete {len(result.errors)} files"
            )
        return result
