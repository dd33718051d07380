# region Docstring
"""
gitops_cli.logger
Logging setup for the gitops command line.
Overview:
- configure_logging() is called once per command. It archives the logs of the previous
    run, prunes old archives, and installs three handlers through dictConfig:
    - console: plain text on stderr at the requested level,
    - output log: every record as a JSON line (gitops_output.jsonl),
    - error log: ERROR and above as JSON lines (gitops_error.jsonl).
- Services never configure logging; they get the "gitops" logger (or a child of it).
"""

# endregion
# region Imports
import logging
from logging import Logger as T_Logger
from logging.config import dictConfig
from pathlib import Path
from typing import Optional

from pythonjsonlogger.json import JsonFormatter  # type: ignore # noqa F401

from gitops_core.config import LoggingSettings
from gitops_core.models.results import get_time

# endregion
# region Paths

LOGGER_NAME = "gitops"
OUTPUT_LOG_NAME = "gitops_output"
ERROR_LOG_NAME = "gitops_error"


def log_file_paths(log_dir: Path) -> dict[str, Path]:
    return {
        "output": log_dir / f"{OUTPUT_LOG_NAME}.jsonl",
        "error": log_dir / f"{ERROR_LOG_NAME}.jsonl",
    }


# endregion
# region Archives


def _archive_log_file(log_file: Path) -> Optional[Path]:
    """Archive the log file of the previous run by renaming it with a timestamp."""
    if not log_file.exists() or log_file.stat().st_size == 0:
        return None
    timestamp = get_time().strftime("%Y%m%d_%H%M%S_%f")
    archive_path = log_file.with_name(f"{log_file.stem}_{timestamp}.jsonl")
    log_file.rename(archive_path)
    return archive_path


def _manage_logfile_archives(log_file: Path, archives_to_keep: int = 10) -> list[Path]:
    """Keep only the most recent archives of *log_file*; return the deleted ones."""
    archive_files = sorted(
        log_file.parent.glob(f"{log_file.stem}_*.jsonl"),
        key=lambda f: f.name,
        reverse=True,
    )
    deleted = []
    for archive_file in archive_files[archives_to_keep:]:
        archive_file.unlink()
        deleted.append(archive_file)
    return deleted


# endregion
# region Configuration


def build_config(log_dir: Path, level: str) -> dict:
    paths = log_file_paths(log_dir)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
            },
            "standard": {"format": "%(asctime)s - %(levelname)s - %(message)s"},
        },
        "handlers": {
            "output_file": {
                "class": "logging.FileHandler",
                "filename": str(paths["output"]),
                "formatter": "json",
                "level": "DEBUG",
                "encoding": "utf-8",
            },
            "error_file": {
                "class": "logging.FileHandler",
                "filename": str(paths["error"]),
                "formatter": "json",
                "level": "ERROR",
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
            },
        },
        "loggers": {
            LOGGER_NAME: {
                "handlers": ["output_file", "error_file", "console"],
                "level": "DEBUG" if level == "DEBUG" else "INFO",
                "propagate": False,
            },
        },
    }


def configure_logging(
    settings: LoggingSettings, level: Optional[str] = None
) -> T_Logger:
    """
    Configure the gitops logger and return it.

    Arguments:
        settings (LoggingSettings): Log directory, default level and archive count.
        level (Optional[str]): Console level overriding settings.log_level.
    """
    level = (level or settings.log_level).upper()
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    archived = []
    for log_file in log_file_paths(log_dir).values():
        archive = _archive_log_file(log_file)
        if archive:
            archived.append(archive)
        _manage_logfile_archives(log_file, settings.archives_to_keep)

    dictConfig(build_config(log_dir, level))
    logger: T_Logger = logging.getLogger(LOGGER_NAME)
    system_logger = logger.getChild("SYSTEM")
    system_logger.debug(
        "Logger for gitops initialized.",
        extra={"archived": [str(a) for a in archived]},
    )
    return logger


# endregion
