"""
GitHub repository manager

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

from typing import Any, List, Optional

from github import Auth, Github, GithubException

from .base import Repository, RepositoryManager

PAGE_SIZE = 100


class RepositoryListingError(Exception):
    """Raised when any page of the repository listing cannot be fetched"""


class GitHubManager(RepositoryManager):
    def __init__(
        self,
        token: str,
        username: Optional[str] = None,
        page_size: int = PAGE_SIZE,
        client: Optional[Github] = None,
    ):
        super().__init__(token)
        self.username = username
        self.page_size = page_size
        self.client = client or Github(auth=Auth.Token(token), per_page=page_size)

    def check_connection(self) -> str:
        try:
            login = self.client.get_user().login
        except GithubException as e:
            if e.status == 401:
                self.logger.error(
                    "GitHub authentication failed: Invalid or expired token"
                )
                self.logger.error("Please check your GITHUB_TOKEN in the .env file")
            raise ValueError(f"Invalid GitHub token: {e}") from e
        self.logger.debug(f"GitHub authentication successful for user: {login}")
        return login

    def get_repositories(self) -> List[Repository]:
        """
        Fetch every repository owned by the authenticated account.

        Pages are requested one by one; a page shorter than the page size is
        the last one. Provider order (most recently updated first) is kept.

        Raises:
            RepositoryListingError: If any page request fails
        """
        self.logger.info("[DISCOVER] Fetching owned GitHub repositories")
        repos: List[Repository] = []
        page = 0

        try:
            paginated = self.client.get_user().get_repos(
                affiliation="owner", sort="updated"
            )
            while True:
                batch = paginated.get_page(page)
                repos.extend(self._to_repository(repo) for repo in batch)
                self.logger.debug(
                    f"[DISCOVER] Page {page + 1}: {len(batch)} repositories"
                )
                if len(batch) < self.page_size:
                    break
                page += 1
        except GithubException as e:
            self.logger.error(
                f"[ERROR] Repository listing failed on page {page + 1}: {e}"
            )
            raise RepositoryListingError(
                f"Failed to list repositories (page {page + 1}): {e}"
            ) from e

        self.logger.info(f"[OK] Found {len(repos)} GitHub repositories")
        return repos

    def _to_repository(self, repo: Any) -> Repository:
        owner = repo.owner.login if repo.owner else self.username
        return Repository(
            name=repo.name,
            owner=owner,
            clone_url=repo.clone_url,
            is_private=repo.private,
            default_branch=repo.default_branch,
            updated_at=repo.updated_at,
            description=repo.description,
            html_url=repo.html_url,
        )
