#!/usr/bin/env python3
"""
Scheduled GitHub repository backup to Google Drive
"""

import argparse
import atexit
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.table import Table
from rich_argparse import ArgumentDefaultsRichHelpFormatter

from .archiver import Archiver
from .config import ConfigurationError, Settings, get_env_default
from .credentials import CredentialBroker, TokenStore
from .drive_uploader import DriveUploader
from .fetcher import RepositoryFetcher
from .github_manager import GitHubManager
from .orchestrator import BackupOrchestrator, RunInProgressError
from .retention import RetentionSweeper
from .scheduler import init_scheduler, start_scheduler, stop_scheduler
from .server import create_app
from .workspace import LocalWorkspace

# Load environment variables from .env file
load_dotenv()


class InterceptHandler(logging.Handler):
    """Route standard logging records from the component loggers into loguru"""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(verbose: bool = False, log_file: str = "repo-drive-backup.log"):
    """Setup console and file logging with loguru"""

    # Remove default loguru handler
    logger.remove()

    # Create logs directory
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file_path = log_dir / log_file

    log_level = "DEBUG" if verbose else "INFO"

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<level>{message}</level>"
    )

    logger.add(sys.stdout, format=console_format, level=log_level, colorize=True)

    file_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

    logger.add(
        log_file_path,
        format=file_format,
        level=log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # Quiet the chattiest third-party loggers unless debugging
    for name in ("googleapiclient.discovery_cache", "urllib3", "werkzeug"):
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    logger.info("[CONFIG] Logging configured")
    logger.debug(f"Log file: {log_file_path}")

    return logger


def create_orchestrator(
    settings: Settings, show_progress: bool = False
) -> BackupOrchestrator:
    """Wire every pipeline component from settings"""
    broker = CredentialBroker(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        refresh_token=settings.google_refresh_token,
        token_store=TokenStore(settings.access_token_file),
    )
    workspace = LocalWorkspace(settings.work_dir)
    uploader = DriveUploader(broker, folder_id=settings.google_drive_folder_id)

    return BackupOrchestrator(
        broker=broker,
        lister=GitHubManager(settings.github_token, username=settings.github_username),
        fetcher=RepositoryFetcher(
            settings.github_token, username=settings.github_username
        ),
        archiver=Archiver(workspace.archive_dir),
        uploader=uploader,
        sweeper=RetentionSweeper(uploader, settings.retention_window),
        workspace=workspace,
        fail_fast=settings.fail_fast,
        show_progress=show_progress,
    )


def run_health_check(orchestrator: BackupOrchestrator) -> bool:
    """Check GitHub and Google Drive connectivity"""
    logger.info("[HEALTH] Running connectivity checks...")
    healthy = True

    try:
        login = orchestrator.lister.check_connection()
        logger.info(f"[HEALTH] GitHub: authenticated as {login}")
    except Exception as e:
        logger.error(f"[HEALTH] GitHub: {e}")
        healthy = False

    try:
        orchestrator.broker.ensure_valid_access_token(orchestrator.uploader.probe)
        if orchestrator.uploader.test_connection():
            logger.info("[HEALTH] Google Drive: connection OK")
        else:
            healthy = False
    except Exception as e:
        logger.error(f"[HEALTH] Google Drive: {e}")
        healthy = False

    return healthy


def serve(orchestrator: BackupOrchestrator, settings: Settings):
    """Run the scheduler and the HTTP control surface until interrupted"""
    init_scheduler(orchestrator, settings.schedule)
    start_scheduler()
    atexit.register(stop_scheduler)

    app = create_app(orchestrator)
    logger.info(f"[SERVER] Listening on port {settings.port}")
    app.run(host="0.0.0.0", port=settings.port, threaded=True, use_reloader=False)


def list_repositories(orchestrator: BackupOrchestrator, console: Optional[Console] = None):
    console = console or Console()
    repos = orchestrator.list_repositories()

    table = Table(title=f"GitHub repositories ({len(repos)})")
    table.add_column("Repository", style="cyan")
    table.add_column("Visibility")
    table.add_column("Branch", style="magenta")
    table.add_column("Updated", style="dim")
    for repo in repos:
        table.add_row(
            repo.full_name,
            "private" if repo.is_private else "public",
            repo.branch,
            repo.updated_at.isoformat() if repo.updated_at else "",
        )
    console.print(table)


def list_backups(orchestrator: BackupOrchestrator, console: Optional[Console] = None):
    console = console or Console()
    backups = orchestrator.list_backups()

    if not backups:
        logger.info("No backups found")
        return

    table = Table(title=f"Google Drive backups ({len(backups)})")
    table.add_column("Name", style="cyan")
    table.add_column("File ID", style="dim")
    table.add_column("Last modified")
    for backup in backups:
        modified = backup.last_modified.isoformat() if backup.last_modified else "unknown"
        table.add_row(backup.name, backup.id, modified)
    console.print(table)


def main():
    parser = argparse.ArgumentParser(
        description="[bold blue]Repository Drive Backup[/bold blue] - Zip every GitHub repository you own and keep a rolling copy in Google Drive",
        epilog="""
[bold green]Examples:[/bold green]
  [dim]# Run the hourly scheduler and HTTP status endpoints[/dim]
  [yellow]%(prog)s[/yellow] [cyan]serve[/cyan] [magenta]--port[/magenta] 5000

  [dim]# Run one backup now[/dim]
  [yellow]%(prog)s[/yellow] [cyan]run[/cyan]

  [dim]# Inspect what would be backed up and what is stored[/dim]
  [yellow]%(prog)s[/yellow] [cyan]repos[/cyan]
  [yellow]%(prog)s[/yellow] [cyan]backups[/cyan]
        """,
        formatter_class=ArgumentDefaultsRichHelpFormatter,
        add_help=False,
    )

    parser.add_argument(
        "-h", "--help", action="help", help="Show this help message and exit"
    )

    parser.add_argument(
        "mode",
        nargs="?",
        default="serve",
        choices=["serve", "run", "repos", "backups", "sweep", "health"],
        help="serve: scheduler + HTTP; run: one backup; repos/backups: listings; sweep: retention only; health: connectivity checks",
    )

    ops_group = parser.add_argument_group("Backup Operations")
    ops_group.add_argument(
        "--port",
        type=int,
        default=None,
        help="HTTP port for serve mode (env: PORT)",
    )
    ops_group.add_argument(
        "--work-dir",
        default=None,
        metavar="DIR",
        help="Scratch directory for working copies and archives (env: WORK_DIR)",
    )
    ops_group.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Delete Drive archives older than this many days (env: RETENTION_DAYS)",
    )
    ops_group.add_argument(
        "--schedule",
        default=None,
        help="Crontab expression for scheduled runs, UTC (env: BACKUP_SCHEDULE)",
    )
    ops_group.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort the run on the first repository failure (env: FAIL_FAST)",
    )
    ops_group.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar",
    )

    log_group = parser.add_argument_group("Logging Options")
    log_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    log_group.add_argument(
        "--log-file",
        default=get_env_default("LOG_FILE", "repo-drive-backup.log"),
        metavar="FILE",
        help="Log file name (env: LOG_FILE)",
    )

    args = parser.parse_args()

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        settings = Settings.from_env(load_env_file=False)
        if args.port is not None:
            settings.port = args.port
        if args.work_dir:
            settings.work_dir = args.work_dir
        if args.retention_days is not None:
            settings.retention_days = args.retention_days
        if args.schedule:
            settings.schedule = args.schedule
        if args.fail_fast:
            settings.fail_fast = True
        settings.validate()
    except ConfigurationError as e:
        logger.error(f"[CONFIG] {e}")
        sys.exit(1)

    show_progress = args.mode == "run" and not args.no_progress
    orchestrator = create_orchestrator(settings, show_progress=show_progress)

    if args.mode == "serve":
        try:
            serve(orchestrator, settings)
        except KeyboardInterrupt:
            logger.info("[SERVER] Shutting down")
        return

    try:
        if args.mode == "run":
            result = orchestrator.run()
            if result.failed:
                sys.exit(1)
        elif args.mode == "repos":
            list_repositories(orchestrator)
        elif args.mode == "backups":
            list_backups(orchestrator)
        elif args.mode == "sweep":
            orchestrator.broker.ensure_valid_access_token(orchestrator.uploader.probe)
            result = orchestrator.sweeper.sweep()
            if result.errors:
                sys.exit(1)
        elif args.mode == "health":
            if not run_health_check(orchestrator):
                sys.exit(1)
    except RunInProgressError:
        logger.error("Backup already in progress")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
