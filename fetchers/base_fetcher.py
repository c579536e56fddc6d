"""Abstract base fetcher interface and common functionality."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from dateutil import parser as date_parser

from models import JiraBackup


class FetcherError(Exception):
    """Base exception for fetcher-related errors."""
    pass


class MissingAttributeError(FetcherError):
    """Raised when a record lacks a required attribute."""

    def __init__(self, element: str, attribute: str, record_id: Optional[str] = None):
        self.element = element
        self.attribute = attribute
        self.record_id = record_id
        where = f"{element} (id={record_id})" if record_id else element
        super().__init__(f"{where} is missing required attribute '{attribute}'")


class UnknownReferenceError(FetcherError):
    """Raised when a required reference to another record cannot be resolved."""
    pass


class BaseFetcher(ABC):
    """Abstract base class for backup fetchers."""

    def __init__(self, config: Dict[str, Any], logger: Optional[logging.Logger] = None):
        """
        Initialize base fetcher with configuration and logger.

        Args:
            config: Configuration dictionary
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.config = config
        self.logger = logger or logging.getLogger('jira_markdown_exporter.fetcher')

    @abstractmethod
    def load(self) -> JiraBackup:
        """
        Load the complete entity graph.

        Returns:
            Populated JiraBackup
        """
        pass


def parse_timestamp(value: str) -> datetime:
    """
    Parse a backup timestamp such as ``2024-01-15 10:30:45.0``.

    Raises:
        FetcherError: If the value is not a recognisable date
    """
    try:
        return date_parser.parse(value)
    except (ValueError, OverflowError) as e:
        raise FetcherError(f"Invalid timestamp '{value}': {e}") from e
