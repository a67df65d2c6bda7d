"""
Auto-discovery of authentication tokens from standard locations

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
import os
import subprocess
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"


def get_github_token() -> Optional[str]:
    """
    Discover GitHub token from standard locations.

    Priority:
    1. GITHUB_TOKEN environment variable
    2. GH_TOKEN environment variable
    3. gh CLI auth token (via `gh auth token` command)
    4. ~/.config/gh/hosts.yml (older gh CLI releases store the token there)

    Returns:
        GitHub token or None if not found
    """
    token = os.getenv("GITHUB_TOKEN")
    if token:
        logger.debug("[TOKEN] GitHub token found in GITHUB_TOKEN env var")
        return token

    token = os.getenv("GH_TOKEN")
    if token:
        logger.debug("[TOKEN] GitHub token found in GH_TOKEN env var")
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("[TOKEN] GitHub token discovered from gh CLI")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass

    return get_gh_hosts_token()


def get_gh_hosts_token(hosts_path: Optional[Path] = None) -> Optional[str]:
    """Read the github.com oauth_token from the gh CLI hosts file"""
    config_home = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
    hosts_path = hosts_path or config_home / "gh" / "hosts.yml"
    if not hosts_path.exists():
        return None

    try:
        with open(hosts_path) as f:
            hosts = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.debug(f"[TOKEN] Failed to read gh hosts file: {e}")
        return None

    token = (hosts.get(GITHUB_HOST) or {}).get("oauth_token")
    if token:
        logger.info(f"[TOKEN] GitHub token discovered from {hosts_path}")
    return token


def get_google_drive_credentials() -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Discover Google Drive OAuth2 client credentials.

    Returns:
        Tuple of (client_id, client_secret, refresh_token); missing values are None
    """
    client_id = os.getenv("GOOGLE_DRIVE_CLIENT_ID") or None
    client_secret = os.getenv("GOOGLE_DRIVE_CLIENT_SECRET") or None
    refresh_token = os.getenv("GOOGLE_DRIVE_REFRESH_TOKEN") or None
    if client_id and client_secret and refresh_token:
        logger.debug("[TOKEN] Google Drive OAuth2 credentials found in environment")
    return client_id, client_secret, refresh_token


def discover_all_tokens() -> dict:
    """
    Discover all available tokens from standard locations.

    Returns:
        Dictionary with discovered credentials
    """
    discovered = {}

    github_token = get_github_token()
    if github_token:
        discovered["github_token"] = github_token

    client_id, client_secret, refresh_token = get_google_drive_credentials()
    if client_id:
        discovered["google_drive_client_id"] = client_id
    if client_secret:
        discovered["google_drive_client_secret"] = client_secret
    if refresh_token:
        discovered["google_drive_refresh_token"] = refresh_token

    return discovered
