"""
HTTP control surface: status, manual trigger and listings

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
from datetime import datetime, timezone

from flask import Blueprint, Flask, current_app, jsonify

from .orchestrator import BackupOrchestrator, RunInProgressError

logger = logging.getLogger(__name__)

bp = Blueprint("backup", __name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _orchestrator() -> BackupOrchestrator:
    return current_app.config["ORCHESTRATOR"]


@bp.route("/", methods=["GET"])
def index():
    return jsonify(
        {
            "message": "GitHub Repository Backup Service",
            "status": "running",
            "endpoints": {
                "health": "/health",
                "status": "/status",
                "trigger": "/trigger",
                "repos": "/repos",
                "backups": "/backups",
            },
        }
    )


@bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "healthy", "timestamp": _now()})


@bp.route("/status", methods=["GET"])
def status():
    snapshot = _orchestrator().status.current
    return jsonify({**snapshot.to_dict(), "timestamp": _now()})


@bp.route("/trigger", methods=["POST"])
def trigger():
    """
    Run a backup now and answer when it finishes.

    Returns:
        200 with the completed status, 409 if a run is active, 500 on failure
    """
    orchestrator = _orchestrator()
    try:
        result = orchestrator.run()
    except RunInProgressError as e:
        return (
            jsonify({"error": "Backup already in progress", "status": e.status.to_dict()}),
            409,
        )
    except Exception:
        logger.exception("[TRIGGER] Manual backup failed")
        return (
            jsonify(
                {
                    "success": False,
                    "message": "Backup failed",
                    **orchestrator.status.current.to_dict(),
                }
            ),
            500,
        )

    return jsonify(
        {
            "success": True,
            "message": "Backup completed successfully",
            **orchestrator.status.current.to_dict(),
            "cleanup": result.sweep.to_dict() if result.sweep else None,
        }
    )


@bp.route("/repos", methods=["GET"])
def repos():
    try:
        repositories = _orchestrator().list_repositories()
    except Exception as e:
        logger.error(f"[REPOS] Listing failed: {e}")
        return jsonify({"success": False, "error": str(e)}), 500

    return jsonify(
        {
            "success": True,
            "count": len(repositories),
            "repositories": [repo.to_dict() for repo in repositories],
        }
    )


@bp.route("/backups", methods=["GET"])
def backups():
    try:
        archives = _orchestrator().list_backups()
    except Exception as e:
        logger.error(f"[BACKUPS] Listing failed: {e}")
        return jsonify({"success": False, "error": str(e)}), 500

    return jsonify(
        {
            "success": True,
            "count": len(archives),
            "backups": [archive.to_dict() for archive in archives],
        }
    )


def create_app(orchestrator: BackupOrchestrator) -> Flask:
    """Flask application factory"""
    app = Flask(__name__)
    app.config["ORCHESTRATOR"] = orchestrator
    app.register_blueprint(bp)
    return app
