"""
Zip archive creation for materialized repositories

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
import zipfile
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .base import Repository

ARCHIVE_EXTENSION = "zip"
COMPRESSION_LEVEL = 9


class CompressionError(Exception):
    """Raised when archive creation fails"""


@dataclass
class ArchiveFile:
    repository: Repository
    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size


def archive_filename(repo_name: str, on: Optional[date] = None) -> str:
    """``<repo>-<YYYY-MM-DD>.zip`` using today's UTC date by default"""
    on = on or datetime.now(timezone.utc).date()
    return f"{repo_name}-{on.isoformat()}.{ARCHIVE_EXTENSION}"


class Archiver:
    """
    Packs a working copy into one deflate-compressed zip.

    Archive names carry only the date, so a second run on the same day
    overwrites the earlier local file.
    """

    def __init__(
        self, output_dir: Union[str, Path], compresslevel: int = COMPRESSION_LEVEL
    ):
        self.output_dir = Path(output_dir)
        self.compresslevel = compresslevel
        self.logger = logging.getLogger(self.__class__.__name__)

    def archive(
        self, repo: Repository, working_copy: Union[str, Path]
    ) -> ArchiveFile:
        source = Path(working_copy)
        if not source.is_dir():
            raise CompressionError(f"Working copy not found: {source}")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        archive_path = self.output_dir / archive_filename(repo.name)
        if archive_path.exists():
            self.logger.debug(f"[ARCHIVE] Overwriting {archive_path.name}")
            archive_path.unlink()

        self.logger.info(f"[ARCHIVE] Archiving {repo.full_name} -> {archive_path.name}")
        try:
            with zipfile.ZipFile(
                archive_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compresslevel,
            ) as zipf:
                self._add_directory(zipf, source)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            archive_path.unlink(missing_ok=True)
            raise CompressionError(
                f"Failed to archive {repo.full_name}: {e}"
            ) from e

        archive = ArchiveFile(repository=repo, path=archive_path)
        self.logger.debug(
            f"[ARCHIVE] {archive.name}: {archive.size_bytes / 1024 / 1024:.2f} MB"
        )
        return archive

    @staticmethod
    def _add_directory(zipf: zipfile.ZipFile, directory: Path):
        # Entries are relative to the working copy root, no wrapping folder
        for item in sorted(directory.rglob("*")):
            arcname = item.relative_to(directory).as_posix()
            if item.is_file():
                zipf.write(item, arcname)
            elif item.is_dir() and not any(item.iterdir()):
                zipf.write(item, f"{arcname}/")
