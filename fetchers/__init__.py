"""Fetchers package for loading Jira entities from a backup export."""

from .base_fetcher import (
    BaseFetcher,
    FetcherError,
    MissingAttributeError,
    UnknownReferenceError,
    parse_timestamp
)
from .backup_fetcher import BackupFetcher, sanitize_xml

__all__ = [
    'BaseFetcher',
    'FetcherError',
    'MissingAttributeError',
    'UnknownReferenceError',
    'BackupFetcher',
    'parse_timestamp',
    'sanitize_xml'
]
