"""Data models for the Jira backup to Markdown export pipeline."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

logger = logging.getLogger('jira_markdown_exporter')


CLOSED_STATUS_NAMES: FrozenSet[str] = frozenset({'Closed', 'Resolved', 'Obsolete', 'Done'})


@dataclass
class JiraStatus:
    """Workflow status referenced by issues."""

    id: str
    name: str

    @property
    def is_closed(self) -> bool:
        return self.name in CLOSED_STATUS_NAMES


@dataclass
class JiraUser:
    """Jira account as found in the backup."""

    user_name: str
    display_name: str
    email_address: str
    external_id: str

    @property
    def mention(self) -> str:
        """Wiki-link style mention used in exported notes."""
        return f"[[@{self.display_name}]]"

    def __str__(self) -> str:
        return self.mention


@dataclass
class JiraFileAttachment:
    """File attached to an issue. Never mutated once loaded."""

    id: str
    created: datetime
    mimetype: str
    filename: str
    author: JiraUser


@dataclass
class JiraAction:
    """Comment or history event recorded on an issue."""

    type: str
    created: datetime
    author: JiraUser
    body: Optional[str] = None

    @property
    def is_comment(self) -> bool:
        return self.type == 'comment'


@dataclass
class JiraIssue:
    """
    Jira issue with its status, actions and attachments.

    Actions and attachments are appended by the loader's linking pass and
    are kept in document order; use sorted_actions() for rendering order.
    """

    id: str
    project_key: str
    number: str
    summary: str
    created: datetime
    status: JiraStatus
    description: Optional[str] = None
    epic_name: str = ''
    actions: List[JiraAction] = field(default_factory=list)
    file_attachments: List[JiraFileAttachment] = field(default_factory=list)

    @property
    def issue_nr(self) -> str:
        """Human readable issue key, e.g. ``TG-42``."""
        return f"{self.project_key}-{self.number}"

    @property
    def is_closed(self) -> bool:
        return self.status.is_closed

    def add_action(self, action: JiraAction) -> None:
        """Add an action."""
        self.actions.append(action)

    def add_attachment(self, attachment: JiraFileAttachment) -> None:
        """Add a file attachment."""
        self.file_attachments.append(attachment)

    def sorted_actions(self) -> List[JiraAction]:
        """Actions ordered by creation time, oldest first."""
        return sorted(self.actions, key=lambda action: action.created)

    def find_attachment(self, filename: str) -> Optional[JiraFileAttachment]:
        """Return the first attachment with exactly this filename."""
        for attachment in self.file_attachments:
            if attachment.filename == filename:
                return attachment
        return None

    def is_match(self, keyword: str) -> bool:
        """
        Check whether the issue mentions a keyword (case-insensitive).

        The summary is only searched when the issue has no description at
        all; an empty description still counts as present.

        Args:
            keyword: Text to look for

        Returns:
            True if found in the description (or summary), or any action body
        """
        needle = keyword.casefold()

        if self.description is not None:
            if needle in self.description.casefold():
                return True
        elif needle in self.summary.casefold():
            return True

        return any(
            action.body is not None and needle in action.body.casefold()
            for action in self.actions
        )


@dataclass
class JiraBackup:
    """Entity graph loaded from a backup. Read-only once loading completes."""

    statuses: Dict[str, JiraStatus] = field(default_factory=dict)
    users: Dict[str, JiraUser] = field(default_factory=dict)
    issues: Dict[str, JiraIssue] = field(default_factory=dict)

    def find_user_by_external_id(self, external_id: str) -> Optional[JiraUser]:
        """Look up a user by account id."""
        return find_user_by_external_id(self.users, external_id)

    def status_names(self) -> List[str]:
        """Distinct status names in use by issues, in first-seen order."""
        names: List[str] = []
        for issue in self.issues.values():
            if issue.status.name not in names:
                names.append(issue.status.name)
        return names

    def filter_issues(
        self,
        keyword: Optional[str] = None,
        require_description: bool = False
    ) -> List[JiraIssue]:
        """
        Select issues for export.

        Args:
            keyword: Only keep issues matching this keyword
            require_description: Drop issues without a description element

        Returns:
            Matching issues in document order
        """
        selected = []
        for issue in self.issues.values():
            if require_description and issue.description is None:
                continue
            if keyword and not issue.is_match(keyword):
                continue
            selected.append(issue)

        logger.debug(f"Selected {len(selected)}/{len(self.issues)} issues for export")
        return selected


def find_user_by_external_id(users: Dict[str, JiraUser], external_id: str) -> Optional[JiraUser]:
    """Search a user map by external (account) id."""
    for user in users.values():
        if user.external_id == external_id:
            return user
    return None


__all__ = [
    'CLOSED_STATUS_NAMES',
    'JiraStatus',
    'JiraUser',
    'JiraFileAttachment',
    'JiraAction',
    'JiraIssue',
    'JiraBackup',
    'find_user_by_external_id',
]
