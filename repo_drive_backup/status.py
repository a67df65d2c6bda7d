"""
Process-wide run status

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

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class RunPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RunStatus:
    phase: RunPhase = RunPhase.IDLE
    last_run_started_at: Optional[datetime] = None
    last_run_finished_at: Optional[datetime] = None
    repos_processed: int = 0
    repos_failed: int = 0
    error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.phase is RunPhase.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.phase.value,
            "lastRun": self.last_run_started_at.isoformat()
            if self.last_run_started_at
            else None,
            "finishedAt": self.last_run_finished_at.isoformat()
            if self.last_run_finished_at
            else None,
            "reposProcessed": self.repos_processed,
            "reposFailed": self.repos_failed,
            "error": self.error,
        }


class StatusHolder:
    """
    Single owner of the current ``RunStatus``.

    Statuses are immutable and replaced whole, so readers always see a
    consistent snapshot. ``try_begin`` is the run lock: it moves to
    ``running`` only from a non-running phase.
    """

    def __init__(self, initial: Optional[RunStatus] = None):
        self._status = initial or RunStatus()
        self._lock = threading.Lock()

    @property
    def current(self) -> RunStatus:
        with self._lock:
            return self._status

    def try_begin(self, started_at: datetime) -> bool:
        with self._lock:
            if self._status.is_running:
                return False
            self._status = RunStatus(
                phase=RunPhase.RUNNING, last_run_started_at=started_at
            )
            return True

    def publish(self, status: RunStatus):
        with self._lock:
            self._status = status
