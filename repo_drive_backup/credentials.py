"""
OAuth2 access-token management for the Google Drive API

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
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar, Union

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError

TOKEN_URI = "https://oauth2.googleapis.com/token"
AUTH_ERROR_STATUSES = (401, 403)
DEFAULT_TOKEN_FILE = "access_token.txt"

T = TypeVar("T")


class CredentialError(Exception):
    """The refresh token was rejected; an operator has to issue a new one"""


@dataclass(frozen=True)
class AccessCredential:
    refresh_token: str
    access_token: Optional[str]


def http_status(error: BaseException) -> Optional[int]:
    if isinstance(error, HttpError):
        try:
            return int(error.resp.status)
        except (AttributeError, TypeError, ValueError):
            return None
    return None


def is_auth_error(error: BaseException) -> bool:
    return http_status(error) in AUTH_ERROR_STATUSES


class TokenStore:
    """Plain-text access token file, overwritten on every refresh"""

    def __init__(self, path: Union[str, Path] = DEFAULT_TOKEN_FILE):
        self.path = Path(path)
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self) -> Optional[str]:
        try:
            if self.path.exists():
                token = self.path.read_text(encoding="utf-8").strip()
                return token or None
        except OSError as e:
            self.logger.error(f"[AUTH] Error reading access token from {self.path}: {e}")
        return None

    def save(self, access_token: str) -> bool:
        try:
            self.path.write_text(access_token, encoding="utf-8")
            self.path.chmod(0o600)
        except OSError as e:
            self.logger.error(f"[AUTH] Error saving access token to {self.path}: {e}")
            return False
        self.logger.debug(f"[AUTH] Access token saved to {self.path}")
        return True


class CredentialBroker:
    """
    Holds the Drive refresh/access token pair.

    The refresh token is fixed for the life of the process; only the access
    token rotates, and every new one is written to the token store.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_store: Optional[TokenStore] = None,
        token_uri: str = TOKEN_URI,
        request: Optional[Request] = None,
    ):
        self.refresh_token = refresh_token
        self.token_store = token_store or TokenStore()
        self.logger = logging.getLogger(self.__class__.__name__)
        self._request = request or Request()
        self._lock = threading.Lock()

        saved_token = self.token_store.load()
        self._persisted_token = saved_token
        self.credentials = Credentials(
            token=saved_token,
            refresh_token=refresh_token,
            token_uri=token_uri,
            client_id=client_id,
            client_secret=client_secret,
        )

    @property
    def access_token(self) -> Optional[str]:
        return self.credentials.token

    def current(self) -> AccessCredential:
        return AccessCredential(
            refresh_token=self.refresh_token, access_token=self.access_token
        )

    def refresh(self) -> str:
        """
        Exchange the refresh token for a new access token and persist it.

        Raises:
            CredentialError: If the token endpoint rejects the refresh token
        """
        with self._lock:
            self.logger.info("[AUTH] Refreshing Google Drive access token...")
            try:
                self.credentials.refresh(self._request)
            except RefreshError as e:
                self.logger.error(f"[AUTH] Error refreshing access token: {e}")
                raise CredentialError(f"Failed to refresh access token: {e}") from e

            token = self.credentials.token
            self._persist(token)
            self.logger.info("[AUTH] Access token refreshed successfully")
            return token

    def ensure_valid_access_token(self, probe: Callable[[], Any]) -> AccessCredential:
        """
        Run a cheap read-only ``probe``; refresh only if it is refused with
        401/403. Any other probe failure is treated as a transient problem and
        the current token is kept.
        """
        if not self.access_token:
            self.logger.info("[AUTH] No saved access token")
            self.refresh()
            return self.current()

        try:
            probe()
        except RefreshError as e:
            raise CredentialError(f"Failed to refresh access token: {e}") from e
        except Exception as e:
            if not is_auth_error(e):
                self.logger.warning(
                    f"[AUTH] Token probe failed ({e}); assuming access token is valid"
                )
                return self.current()
            self.logger.info("[AUTH] Access token is invalid, refreshing...")
            self.refresh()
            return self.current()

        self.logger.info("[AUTH] Access token is valid")
        self._persist_if_rotated()
        return self.current()

    def call_with_auth_retry(self, fn: Callable[[], T]) -> T:
        """
        Call ``fn``; on a 401/403 force one refresh and call it exactly once
        more. A second failure propagates unchanged.
        """
        if self.credentials.token and self.credentials.expired:
            # Refresh here so the HTTP transport never does it on its own
            self.refresh()

        try:
            result = fn()
        except RefreshError as e:
            raise CredentialError(f"Failed to refresh access token: {e}") from e
        except HttpError as e:
            if not is_auth_error(e):
                raise
            self.logger.warning(
                f"[AUTH] Drive call refused with {http_status(e)}, retrying after refresh"
            )
            self.refresh()
            try:
                result = fn()
            except RefreshError as retry_error:
                raise CredentialError(
                    f"Failed to refresh access token: {retry_error}"
                ) from retry_error

        self._persist_if_rotated()
        return result

    def _persist_if_rotated(self):
        # A token set from outside the broker is still written to the store
        token = self.credentials.token
        if token and token != self._persisted_token:
            self._persist(token)

    def _persist(self, token: Optional[str]):
        if token and self.token_store.save(token):
            self._persisted_token = token
