"""
Base classes for repository management

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
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

DEFAULT_BRANCH = "main"


@dataclass
class Repository:
    name: str
    owner: str
    clone_url: str
    is_private: bool
    default_branch: Optional[str] = None
    updated_at: Optional[datetime] = None
    description: Optional[str] = None
    html_url: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def branch(self) -> str:
        """Default branch, assuming ``main`` when the provider reports none"""
        return self.default_branch or DEFAULT_BRANCH

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "fullName": self.full_name,
            "description": self.description,
            "url": self.html_url,
            "private": self.is_private,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "defaultBranch": self.default_branch,
        }


class RepositoryManager(ABC):
    def __init__(self, token: str):
        self.token = token
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def get_repositories(self) -> List[Repository]:
        pass

    @abstractmethod
    def check_connection(self) -> str:
        """Return the authenticated account name, raising on bad credentials"""
