"""Backup fetcher implementation for parsing Jira ``entities.xml`` exports."""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup, Tag

from models import (
    JiraAction,
    JiraBackup,
    JiraFileAttachment,
    JiraIssue,
    JiraStatus,
    JiraUser
)
from .base_fetcher import (
    BaseFetcher,
    FetcherError,
    MissingAttributeError,
    UnknownReferenceError,
    parse_timestamp
)

logger = logging.getLogger('jira_markdown_exporter.fetcher.backup')

# Characters XML 1.0 does not allow, raw or as numeric character references
INVALID_XML_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]')
INVALID_XML_CHAR_REFS = re.compile(
    r'&#(?:x0*(?:[0-8bcef]|1[0-9a-f])|0*(?:[0-8]|1[124-9]|2[0-9]|3[01]));',
    re.IGNORECASE
)


def sanitize_xml(text: str) -> str:
    """Strip control characters that make Jira exports unparseable."""
    text = INVALID_XML_CHAR_REFS.sub('', text)
    return INVALID_XML_CHARS.sub('', text)


def _require(element: Tag, attribute: str) -> str:
    value = element.get(attribute)
    if value is None:
        raise MissingAttributeError(element.name, attribute, element.get('id'))
    return value


def _nested_text(element: Tag, child_name: str) -> Optional[str]:
    child = element.find(child_name)
    if child is None:
        return None
    return child.get_text()


class BackupFetcher(BaseFetcher):
    """Loads statuses, users, issues, actions and attachments from a backup folder."""

    def __init__(self, config: Dict[str, Any], logger: Optional[logging.Logger] = None):
        """
        Initialize backup fetcher with configuration.

        Args:
            config: Configuration dictionary with backup.source_directory
            logger: Logger instance (optional)
        """
        super().__init__(config, logger)

        backup_config = config.get('backup', {})
        source_directory = backup_config.get('source_directory')

        if not source_directory:
            raise ValueError("backup.source_directory is required for the backup fetcher")

        self.source_directory = Path(source_directory)
        self.entities_path = self.source_directory / backup_config.get('entities_file', 'entities.xml')

        self.stats = {
            'statuses': 0,
            'users': 0,
            'issues': 0,
            'actions': 0,
            'attachments': 0,
            'orphaned_actions': 0,
            'orphaned_attachments': 0
        }

    def load(self) -> JiraBackup:
        """
        Parse the entities file into a JiraBackup.

        Returns:
            Populated JiraBackup

        Raises:
            FetcherError: If the file cannot be read or a record is invalid
        """
        self.logger.info(f"Loading Jira backup from {self.entities_path}")

        try:
            raw = self.entities_path.read_bytes()
        except OSError as e:
            raise FetcherError(f"Cannot read entities file {self.entities_path}: {e}") from e

        try:
            xml_text = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            self.logger.warning(f"{self.entities_path} is not valid UTF-8 ({e}), replacing undecodable bytes")
            xml_text = raw.decode('utf-8', errors='replace')

        return self.parse(xml_text)

    def parse(self, xml_text: str) -> JiraBackup:
        """
        Build the entity graph from entities XML text.

        Args:
            xml_text: Raw XML content (control characters allowed)

        Returns:
            Populated JiraBackup
        """
        soup = BeautifulSoup(sanitize_xml(xml_text).encode('utf-8'), 'xml')
        if soup.find() is None:
            raise FetcherError(f"No XML content found in {self.entities_path}")

        backup = JiraBackup()

        for element in soup.find_all('Status'):
            status = JiraStatus(id=_require(element, 'id'), name=_require(element, 'name'))
            backup.statuses[status.id] = status

        for element in soup.find_all('User'):
            user = JiraUser(
                user_name=_require(element, 'userName'),
                display_name=_require(element, 'displayName'),
                email_address=_require(element, 'emailAddress'),
                external_id=_require(element, 'externalId')
            )
            backup.users[_require(element, 'lowerUserName')] = user

        for element in soup.find_all('Issue'):
            issue = self._build_issue(element, backup)
            backup.issues[issue.id] = issue

        self.stats['statuses'] = len(backup.statuses)
        self.stats['users'] = len(backup.users)
        self.stats['issues'] = len(backup.issues)

        self._link_actions(soup, backup)
        self._link_attachments(soup, backup)

        self.logger.info(
            f"Loaded {self.stats['issues']} issues, {self.stats['users']} users, "
            f"{self.stats['statuses']} statuses, {self.stats['actions']} actions, "
            f"{self.stats['attachments']} attachments"
        )
        if self.stats['orphaned_actions'] or self.stats['orphaned_attachments']:
            self.logger.info(
                f"Dropped {self.stats['orphaned_actions']} actions and "
                f"{self.stats['orphaned_attachments']} attachments without a known issue"
            )

        return backup

    def _build_issue(self, element: Tag, backup: JiraBackup) -> JiraIssue:
        issue_id = _require(element, 'id')
        status_id = _require(element, 'status')

        status = backup.statuses.get(status_id)
        if status is None:
            raise UnknownReferenceError(f"Issue {issue_id} references unknown status '{status_id}'")

        description = _nested_text(element, 'description')
        if description is None:
            description = element.get('description')

        return JiraIssue(
            id=issue_id,
            project_key=_require(element, 'projectKey'),
            number=_require(element, 'number'),
            summary=_require(element, 'summary'),
            created=parse_timestamp(_require(element, 'created')),
            status=status,
            description=description,
            epic_name=element.get('epicName', '')
        )

    def _link_actions(self, soup: BeautifulSoup, backup: JiraBackup) -> None:
        for element in soup.find_all('Action'):
            issue = backup.issues.get(element.get('issue', ''))
            if issue is None:
                self.logger.debug(f"Dropping action {element.get('id')} - issue not found")
                self.stats['orphaned_actions'] += 1
                continue

            body = _nested_text(element, 'body')
            if body is None:
                body = element.get('body')

            issue.add_action(JiraAction(
                type=_require(element, 'type'),
                created=parse_timestamp(_require(element, 'created')),
                author=self._resolve_author(element, backup),
                body=body
            ))
            self.stats['actions'] += 1

    def _link_attachments(self, soup: BeautifulSoup, backup: JiraBackup) -> None:
        for element in soup.find_all('FileAttachment'):
            issue = backup.issues.get(element.get('issue', ''))
            if issue is None:
                self.logger.debug(f"Dropping attachment {element.get('id')} - issue not found")
                self.stats['orphaned_attachments'] += 1
                continue

            issue.add_attachment(JiraFileAttachment(
                id=_require(element, 'id'),
                created=parse_timestamp(_require(element, 'created')),
                mimetype=_require(element, 'mimetype'),
                filename=_require(element, 'filename'),
                author=self._resolve_author(element, backup)
            ))
            self.stats['attachments'] += 1

    def _resolve_author(self, element: Tag, backup: JiraBackup) -> JiraUser:
        author_key = _require(element, 'author')

        user = backup.users.get(author_key.lower())
        if user is None:
            user = backup.find_user_by_external_id(author_key)
        if user is None:
            raise UnknownReferenceError(
                f"{element.name} {element.get('id')} references unknown author '{author_key}'"
            )
        return user

    def get_stats(self) -> Dict[str, int]:
        """Get loading statistics."""
        return self.stats.copy()
