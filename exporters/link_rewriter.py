"""Link rewriter for turning Jira attachment markers and mentions into Markdown."""

import logging
import re
from typing import Dict, Optional

from models import JiraIssue, JiraUser, find_user_by_external_id
from .attachment_manager import AttachmentManager

# Relative link from open/ or closed/ notes to the shared attachments folder
ATTACHMENT_LINK_PREFIX = './../attachments/'

ATTACHMENT_MARKER_PATTERN = re.compile(r'!([^|!]+)(?:\|[^!]+)?!')
MENTION_PATTERN = re.compile(r'\[~accountid:([^\]]+)\]')


class LinkRewriter:
    """
    Rewrites Jira wiki markup in descriptions and comments.

    This rewriter:
    1. Replaces ``#`` so Jira markup does not turn into Markdown headings
    2. Turns ``!file.png!`` / ``!file.png|thumbnail!`` into image links,
       copying the attachment on the way
    3. Turns ``[~accountid:...]`` into the user's mention
    """

    def __init__(
        self,
        attachment_manager: AttachmentManager,
        users: Dict[str, JiraUser],
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the link rewriter.

        Args:
            attachment_manager: AttachmentManager shared by the export run
            users: User map loaded from the backup
            logger: Logger instance
        """
        self.attachment_manager = attachment_manager
        self.users = users
        self.logger = logger or logging.getLogger('jira_markdown_exporter.exporters.link_rewriter')

    def rewrite(self, text: Optional[str], issue: JiraIssue) -> str:
        """
        Rewrite a description or comment body of an issue.

        Args:
            text: Jira markup text (may be None)
            issue: Issue owning the text; only its attachments are resolved

        Returns:
            Markdown-friendly text
        """
        if not text:
            return ''

        text = text.replace('#', '-')
        result = self._rewrite_attachment_markers(text, issue)
        return self._rewrite_mentions(result, text)

    def _rewrite_attachment_markers(self, text: str, issue: JiraIssue) -> str:
        pieces = []
        unresolved = []
        copied_up_to = 0
        position = 0

        while True:
            match = ATTACHMENT_MARKER_PATTERN.search(text, position)
            if match is None:
                break

            filename = match.group(1).strip()
            attachment = issue.find_attachment(filename)
            if attachment is None:
                unresolved.append(filename)
                # A prose '!' may have opened this match; the next '!' can still start a marker
                position = match.start() + 1
                continue

            destination = self.attachment_manager.copy_attachment(attachment, issue.project_key, issue.issue_nr)
            pieces.append(text[copied_up_to:match.start()])
            pieces.append(f"![{filename}]({ATTACHMENT_LINK_PREFIX}{destination.name})")
            copied_up_to = position = match.end()

        pieces.append(text[copied_up_to:])

        if unresolved:
            self.logger.debug(f"{issue.issue_nr}: no attachment for markers {unresolved}")

        return ''.join(pieces)

    def _rewrite_mentions(self, text: str, original: str) -> str:
        # Only the first mention's account id is resolved
        match = MENTION_PATTERN.search(original)
        if not match:
            return text

        external_id = match.group(1)
        user = find_user_by_external_id(self.users, external_id)
        if user is None:
            self.logger.debug(f"No user with account id '{external_id}'")
            return text

        return text.replace(f"[~accountid:{external_id}]", user.mention)
