"""
Local working storage for repository snapshots and archives

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
import shutil
import time
from pathlib import Path
from typing import Optional, Union

DEFAULT_WORK_DIR = "/var/tmp/repo-drive-backup"


def robust_rmtree(path: Path, logger: logging.Logger, max_retries: int = 3) -> bool:
    """
    Robustly remove a directory tree with retries.
    Handles race conditions where files may still be written during removal.

    Args:
        path: Path to remove
        logger: Logger for messages
        max_retries: Maximum number of retry attempts

    Returns:
        True if successfully removed, False otherwise
    """
    if not path.exists() and not path.is_symlink():
        return True

    for attempt in range(max_retries):
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
            return True
        except OSError as e:
            if attempt < max_retries - 1:
                time.sleep(0.5 * (attempt + 1))
                logger.debug(
                    f"[CLEANUP] Retry {attempt + 1}/{max_retries} removing {path}: {e}"
                )
            else:
                logger.warning(
                    f"[CLEANUP] Failed to remove {path} after {max_retries} attempts: {e}"
                )
                return False
    return False


class LocalWorkspace:
    """
    Owns the two local directories a run works in:

    - ``temp/``: one working copy per repository, removed before the next starts
    - ``zips/``: archives waiting for upload
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        self.base_dir = Path(base_dir or DEFAULT_WORK_DIR)
        self.work_dir = self.base_dir / "temp"
        self.archive_dir = self.base_dir / "zips"
        self.logger = logging.getLogger(self.__class__.__name__)

    def prepare(self):
        """Create the working directories if they don't exist"""
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            self.archive_dir.mkdir(parents=True, exist_ok=True)
            self.logger.debug(f"[CONFIG] Working directory: {self.base_dir}")
        except OSError as e:
            self.logger.error(
                f"[ERROR] Failed to create working directory {self.base_dir}: {e}"
            )
            raise

    def remove_working_copy(self, path: Path) -> bool:
        return robust_rmtree(Path(path), self.logger)

    def remove_archive(self, path: Path) -> bool:
        return robust_rmtree(Path(path), self.logger)

    def clear(self) -> bool:
        """Empty both directories, keeping the directories themselves"""
        cleared = True
        for directory in (self.work_dir, self.archive_dir):
            if not directory.exists():
                continue
            for entry in directory.iterdir():
                cleared = robust_rmtree(entry, self.logger) and cleared
        if cleared:
            self.logger.info(f"[CLEANUP] Cleared working storage: {self.base_dir}")
        return cleared

    def is_empty(self) -> bool:
        return not any(
            any(directory.iterdir())
            for directory in (self.work_dir, self.archive_dir)
            if directory.exists()
        )
