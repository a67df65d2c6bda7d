"""
Repository content acquisition: shallow clone with archive-download fallback

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
import subprocess
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import urljoin, urlparse

import requests

from .base import Repository
from .workspace import robust_rmtree

GITHUB_WEB_URL = "https://github.com"
USER_AGENT = "repo-drive-backup"
REDIRECT_STATUSES = (301, 302)
MAX_REDIRECTS = 5
CLONE_TIMEOUT = 1800
DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 1024 * 1024


class FetchError(Exception):
    """Raised when a repository could not be materialized locally"""


@dataclass
class WorkingCopy:
    repository: Repository
    path: Path
    strategy: str


class FetchStrategy(ABC):
    name = "base"

    def __init__(self, token: str):
        self.token = token
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def fetch(self, repo: Repository, destination: Path) -> Path:
        """Materialize ``repo`` at ``destination`` and return the path"""

    def redact(self, text: str) -> str:
        return text.replace(self.token, "[REDACTED]") if self.token else text


class ShallowCloneStrategy(FetchStrategy):
    name = "clone"

    def __init__(self, token: str, timeout: int = CLONE_TIMEOUT):
        super().__init__(token)
        self.timeout = timeout

    def clone_url(self, repo: Repository) -> str:
        if repo.is_private and self.token:
            return repo.clone_url.replace("https://", f"https://{self.token}@", 1)
        return repo.clone_url

    def fetch(self, repo: Repository, destination: Path) -> Path:
        self.logger.info(f"[BACKUP] Cloning {repo.full_name} (depth 1)...")
        clone_cmd = [
            "git",
            "clone",
            "--depth",
            "1",
            self.clone_url(repo),
            str(destination),
        ]

        try:
            result = subprocess.run(
                clone_cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise FetchError(f"git clone could not run: {self.redact(str(e))}") from e

        if result.returncode != 0:
            stderr_truncated = self.redact(result.stderr or "")[:500]
            raise FetchError(
                f"git clone exited with {result.returncode}: {stderr_truncated}"
            )

        # Working copies hold the tree only
        if not robust_rmtree(destination / ".git", self.logger):
            raise FetchError(f"Could not remove .git from {destination}")
        return destination


class ArchiveDownloadStrategy(FetchStrategy):
    """Download the default branch source archive and unpack it"""

    name = "archive"

    def __init__(
        self,
        token: str,
        username: Optional[str] = None,
        base_url: str = GITHUB_WEB_URL,
        max_redirects: int = MAX_REDIRECTS,
        timeout: int = DOWNLOAD_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(token)
        self.username = username
        self.base_url = base_url.rstrip("/")
        self.max_redirects = max_redirects
        self.timeout = timeout
        self.session = session or requests.Session()

    def archive_url(self, repo: Repository) -> str:
        owner = repo.owner or self.username
        return f"{self.base_url}/{owner}/{repo.name}/archive/refs/heads/{repo.branch}.zip"

    def fetch(self, repo: Repository, destination: Path) -> Path:
        root = destination.parent
        zip_path = root / f"{repo.name}.zip"
        staging = root / f".{repo.name}.extract"
        url = self.archive_url(repo)
        self.logger.info(f"[BACKUP] Downloading source archive for {repo.full_name}")

        robust_rmtree(staging, self.logger)
        try:
            self.download_file(url, zip_path)
            try:
                with zipfile.ZipFile(zip_path) as archive:
                    extracted_name = self._archive_root(archive, repo)
                    archive.extractall(staging)
            except zipfile.BadZipFile as e:
                raise FetchError(f"Downloaded archive is not a zip file: {e}") from e

            extracted = staging / extracted_name
            if not extracted.is_dir():
                raise FetchError(
                    f"Archive for {repo.full_name} did not contain {extracted_name}/"
                )
            shutil.move(str(extracted), str(destination))
        finally:
            zip_path.unlink(missing_ok=True)
            robust_rmtree(staging, self.logger)

        return destination

    @staticmethod
    def _archive_root(archive: zipfile.ZipFile, repo: Repository) -> str:
        roots = {name.split("/", 1)[0] for name in archive.namelist() if name}
        if len(roots) == 1:
            return roots.pop()
        return f"{repo.name}-{repo.branch.replace('/', '-')}"

    def download_file(self, url: str, file_path: Path) -> Path:
        """
        Stream ``url`` to ``file_path``, following at most ``max_redirects``
        301/302 hops. The bearer token is only sent to the starting host.
        """
        origin = urlparse(url).netloc
        for _ in range(self.max_redirects + 1):
            headers = {"User-Agent": USER_AGENT}
            if self.token and urlparse(url).netloc == origin:
                headers["Authorization"] = f"Bearer {self.token}"

            try:
                with self.session.get(
                    url,
                    headers=headers,
                    stream=True,
                    allow_redirects=False,
                    timeout=self.timeout,
                ) as response:
                    if response.status_code in REDIRECT_STATUSES:
                        location = response.headers.get("Location")
                        if not location:
                            raise FetchError(
                                f"Redirect {response.status_code} without Location header"
                            )
                        url = urljoin(url, location)
                        self.logger.debug(f"[BACKUP] Following redirect to {urlparse(url).netloc}")
                        continue

                    response.raise_for_status()
                    with open(file_path, "wb") as f:
                        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                            if chunk:
                                f.write(chunk)
                    return file_path
            except requests.RequestException as e:
                raise FetchError(f"Archive download failed: {self.redact(str(e))}") from e

        raise FetchError(f"Too many redirects (more than {self.max_redirects})")


class RepositoryFetcher:
    """
    Tries each strategy in order; the first to produce a working copy wins.
    The destination is wiped before every attempt.
    """

    def __init__(
        self,
        token: str,
        username: Optional[str] = None,
        strategies: Optional[List[FetchStrategy]] = None,
    ):
        self.strategies = strategies or [
            ShallowCloneStrategy(token),
            ArchiveDownloadStrategy(token, username=username),
        ]
        self.logger = logging.getLogger(self.__class__.__name__)

    def fetch(
        self, repo: Repository, destination_root: Union[str, Path]
    ) -> WorkingCopy:
        destination = Path(destination_root) / repo.name
        last_error: Optional[Exception] = None

        for strategy in self.strategies:
            robust_rmtree(destination, self.logger)
            try:
                path = strategy.fetch(repo, destination)
            except Exception as e:
                last_error = e
                self.logger.warning(
                    f"[FALLBACK] {strategy.name} failed for {repo.full_name}: {e}"
                )
                continue

            self.logger.info(
                f"[OK] Materialized {repo.full_name} via {strategy.name}"
            )
            return WorkingCopy(repository=repo, path=path, strategy=strategy.name)

        robust_rmtree(destination, self.logger)
        raise FetchError(
            f"All acquisition strategies failed for {repo.full_name}: {last_error}"
        ) from last_error
