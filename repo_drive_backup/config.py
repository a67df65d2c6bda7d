"""
Runtime configuration loaded from the environment and .env

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

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from dotenv import load_dotenv

from .credentials import DEFAULT_TOKEN_FILE
from .token_discovery import get_github_token, get_google_drive_credentials
from .workspace import DEFAULT_WORK_DIR

DEFAULT_REDIRECT_URI = "https://developers.google.com/oauthplayground"
DEFAULT_PORT = 5000
DEFAULT_RETENTION_DAYS = 2
DEFAULT_SCHEDULE = "0 * * * *"
DEFAULT_LOG_FILE = "repo-drive-backup.log"


class ConfigurationError(Exception):
    """Raised when required settings are missing or invalid"""


def get_env_default(env_var: str, fallback=None):
    """Get value from environment or .env file"""
    return os.getenv(env_var, fallback)


def get_env_bool(env_var: str, fallback: bool = False) -> bool:
    value = os.getenv(env_var)
    if value is None or value == "":
        return fallback
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_env_int(env_var: str, fallback: int) -> int:
    value = os.getenv(env_var)
    if value is None or value == "":
        return fallback
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{env_var} must be an integer, got {value!r}") from e


@dataclass
class Settings:
    github_token: Optional[str]
    google_client_id: Optional[str]
    google_client_secret: Optional[str]
    google_refresh_token: Optional[str]
    github_username: Optional[str] = None
    google_redirect_uri: str = DEFAULT_REDIRECT_URI
    google_drive_folder_id: Optional[str] = None
    access_token_file: str = DEFAULT_TOKEN_FILE
    work_dir: str = DEFAULT_WORK_DIR
    port: int = DEFAULT_PORT
    retention_days: int = DEFAULT_RETENTION_DAYS
    schedule: str = DEFAULT_SCHEDULE
    fail_fast: bool = False
    log_file: str = DEFAULT_LOG_FILE

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv()

        client_id, client_secret, refresh_token = get_google_drive_credentials()
        return cls(
            github_token=get_github_token(),
            google_client_id=client_id,
            google_client_secret=client_secret,
            google_refresh_token=refresh_token,
            github_username=get_env_default("GITHUB_USERNAME") or None,
            google_redirect_uri=get_env_default(
                "GOOGLE_DRIVE_REDIRECT_URI", DEFAULT_REDIRECT_URI
            )
            or DEFAULT_REDIRECT_URI,
            google_drive_folder_id=get_env_default("GOOGLE_DRIVE_FOLDER_ID") or None,
            access_token_file=get_env_default("ACCESS_TOKEN_FILE", DEFAULT_TOKEN_FILE),
            work_dir=get_env_default("WORK_DIR", DEFAULT_WORK_DIR),
            port=get_env_int("PORT", DEFAULT_PORT),
            retention_days=get_env_int("RETENTION_DAYS", DEFAULT_RETENTION_DAYS),
            schedule=get_env_default("BACKUP_SCHEDULE", DEFAULT_SCHEDULE),
            fail_fast=get_env_bool("FAIL_FAST"),
            log_file=get_env_default("LOG_FILE", DEFAULT_LOG_FILE),
        )

    @property
    def retention_window(self) -> timedelta:
        return timedelta(days=self.retention_days)

    def missing(self) -> List[str]:
        required = {
            "GITHUB_TOKEN": self.github_token,
            "GOOGLE_DRIVE_CLIENT_ID": self.google_client_id,
            "GOOGLE_DRIVE_CLIENT_SECRET": self.google_client_secret,
            "GOOGLE_DRIVE_REFRESH_TOKEN": self.google_refresh_token,
        }
        return [name for name, value in required.items() if not value]

    def validate(self):
        missing = self.missing()
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )
        if self.retention_days <= 0:
            raise ConfigurationError("RETENTION_DAYS must be positive")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"PORT out of range: {self.port}")
