"""Logging setup for the exporter and per-run export progress reporting."""

import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'jira_markdown_exporter'

LEVEL_NAMES = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)

LOG_FORMAT = '%(asctime)s %(levelname)-8s %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def resolve_level(verbosity: int = 0, level: Optional[str] = None) -> int:
    """
    Map a ``-v`` count or an explicit level name to a logging level.

    Raises:
        ValueError: If ``level`` is not a standard level name
    """
    if level:
        name = level.upper()
        if name not in LEVEL_NAMES:
            raise ValueError(f"Invalid log level '{level}'. Must be one of: {', '.join(LEVEL_NAMES)}")
        return getattr(logging, name)

    return VERBOSITY_LEVELS[min(max(verbosity, 0), len(VERBOSITY_LEVELS) - 1)]


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the exporter's logger, replacing handlers from earlier calls.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
        log_file: Optional path of a rotating log file
        level: Explicit level name, wins over verbosity

    Returns:
        The configured ``jira_markdown_exporter`` logger
    """
    log_level = resolve_level(verbosity, level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + LOG_FORMAT,
        datefmt=DATE_FORMAT,
        log_colors=LOG_COLORS
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding='utf-8'
            )
        except OSError as e:
            logger.warning(f"Cannot write log file {log_file}: {e}")
        else:
            file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
            logger.addHandler(file_handler)

    destination = f"console and {log_file}" if log_file else "console"
    logger.debug(f"Logging at {logging.getLevelName(log_level)} to {destination}")

    return logger


class ExportProgress:
    """
    Counts the issues of one export run and logs how it went.

    A progress line is logged every ``report_every`` issues and after each
    failure; leaving the context logs the open/closed/failed totals.
    """

    def __init__(self, total_issues: int, report_every: int = 50):
        self.total_issues = total_issues
        self.report_every = report_every
        self.open_issues = 0
        self.closed_issues = 0
        self.failed_issues = 0
        self.started_at: Optional[float] = None
        self.logger = logging.getLogger(f'{LOGGER_NAME}.progress')

    @property
    def exported_issues(self) -> int:
        return self.open_issues + self.closed_issues

    @property
    def handled_issues(self) -> int:
        return self.exported_issues + self.failed_issues

    def __enter__(self) -> 'ExportProgress':
        self.started_at = time.monotonic()
        self.logger.info(f"Exporting {self.total_issues} issues")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.monotonic() - self.started_at if self.started_at is not None else 0.0

        if self.failed_issues and not self.exported_issues:
            log = self.logger.error
        elif self.failed_issues:
            log = self.logger.warning
        else:
            log = self.logger.info

        log(
            f"Exported {self.exported_issues}/{self.total_issues} issues "
            f"({self.open_issues} open, {self.closed_issues} closed), "
            f"{self.failed_issues} failed in {elapsed:.1f}s"
        )

    def issue_exported(self, closed: bool) -> None:
        """Count an issue whose note was written."""
        if closed:
            self.closed_issues += 1
        else:
            self.open_issues += 1

        if self.handled_issues % self.report_every == 0:
            self._report()

    def issue_failed(self, issue_nr: str) -> None:
        """Count an issue whose note could not be written."""
        self.failed_issues += 1
        self._report(f" - last failed: {issue_nr}")

    def _report(self, detail: str = '') -> None:
        remaining = self.total_issues - self.handled_issues
        self.logger.info(f"Handled {self.handled_issues}/{self.total_issues} issues ({remaining} remaining){detail}")


def log_config(config: Dict[str, Any]) -> None:
    """Log the effective configuration as ``section.key = value`` lines."""
    logger = logging.getLogger(f'{LOGGER_NAME}.config')

    logger.info("Effective configuration:")
    for section in ('backup', 'export', 'migration', 'logging'):
        for key, value in config.get(section, {}).items():
            logger.info(f"  {section}.{key} = {value}")


__all__ = [
    'LOGGER_NAME',
    'ExportProgress',
    'log_config',
    'resolve_level',
    'setup_logging'
]
