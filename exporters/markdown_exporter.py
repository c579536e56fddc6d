"""Main markdown exporter writing one note per Jira issue."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from tqdm import tqdm

from logger import ExportProgress
from models import JiraBackup, JiraIssue, JiraUser
from .attachment_manager import AttachmentManager, sanitize_filename
from .link_rewriter import ATTACHMENT_LINK_PREFIX, LinkRewriter

NOTE_TIME_FORMAT = '%Y-%m-%d %H:%M'
FULL_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'


class FrontmatterDumper(yaml.SafeDumper):
    """YAML dumper that writes None as an empty value (``resource:``)."""
    pass


def _represent_none(dumper: yaml.SafeDumper, _data: None) -> yaml.ScalarNode:
    return dumper.represent_scalar('tag:yaml.org,2002:null', '')


FrontmatterDumper.add_representer(type(None), _represent_none)


class MarkdownExporter:
    """
    Exports Jira issues to Markdown notes.

    This exporter:
    1. Creates the open/, closed/ and attachments/ directories
    2. Copies attachments through the AttachmentManager
    3. Rewrites attachment markers and mentions in descriptions and comments
    4. Writes one markdown file with frontmatter per issue
    """

    def __init__(
        self,
        config: Dict[str, Any],
        attachment_manager: Optional[AttachmentManager] = None,
        logger: Optional[logging.Logger] = None,
        output_dir: Optional[str] = None
    ):
        """
        Initialize the markdown exporter.

        Args:
            config: Configuration dictionary with backup/export settings
            attachment_manager: Optional AttachmentManager override
            logger: Logger instance
            output_dir: Optional output directory override (takes precedence over config)
        """
        self.config = config
        self.logger = logger or logging.getLogger('jira_markdown_exporter.exporters.markdown_exporter')

        export_config = config.get('export', {})
        self.output_directory = Path(output_dir) if output_dir else Path(export_config.get('output_directory', './jira-markdown'))
        self.project_tag = export_config.get('project_tag')
        self.show_progress = export_config.get('progress_bars', True)

        self.attachments_dir = self.output_directory / 'attachments'
        self.open_dir = self.output_directory / 'open'
        self.closed_dir = self.output_directory / 'closed'

        source_dir = Path(config.get('backup', {}).get('source_directory', '.'))
        self.attachment_manager = attachment_manager or AttachmentManager(
            source_dir=source_dir,
            attachments_dir=self.attachments_dir,
            logger=self.logger
        )

        self.stats = {
            'total_issues_exported': 0,
            'open_issues': 0,
            'closed_issues': 0,
            'total_errors': 0
        }

        # Track exported files
        self.exported_files: List[Path] = []

    def ensure_directories(self) -> None:
        """Create the output directory layout."""
        for directory in (self.output_directory, self.attachments_dir, self.open_dir, self.closed_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def get_issue_path(self, issue: JiraIssue) -> Path:
        """Output file of an issue, under open/ or closed/."""
        folder = self.closed_dir if issue.is_closed else self.open_dir
        return folder / f"{issue.issue_nr} {sanitize_filename(issue.summary)}.md"

    def export_issue(self, issue: JiraIssue, users: Dict[str, JiraUser]) -> Path:
        """
        Write the note for a single issue, overwriting earlier output.

        Args:
            issue: JiraIssue to export
            users: User map used to resolve mentions

        Returns:
            Path of the written markdown file
        """
        self.ensure_directories()

        issue_file = self.get_issue_path(issue)
        content = self.render_issue(issue, users)
        issue_file.write_text(content, encoding='utf-8')

        self.logger.debug(f"Wrote {len(content)} characters to {issue_file}")
        self.exported_files.append(issue_file)
        return issue_file

    def render_issue(self, issue: JiraIssue, users: Dict[str, JiraUser]) -> str:
        """
        Build the markdown document of an issue.

        Copies every referenced attachment as a side effect.

        Args:
            issue: JiraIssue to render
            users: User map used to resolve mentions

        Returns:
            Markdown document
        """
        rewriter = LinkRewriter(self.attachment_manager, users, logger=self.logger)
        lines = [self._generate_frontmatter(issue)]

        lines.append(f"# {issue.summary}")
        lines.append('')
        lines.append(f"**Issue**: {issue.issue_nr}")
        lines.append(f"**Created**: {issue.created.strftime(FULL_TIME_FORMAT)}")
        lines.append('')

        if issue.description:
            lines.append('## Description')
            lines.append('')
            lines.append(rewriter.rewrite(issue.description, issue))
            lines.append('')

        if issue.file_attachments:
            lines.append('## Attachments')
            lines.append('')
            for attachment in issue.file_attachments:
                destination = self.attachment_manager.copy_attachment(attachment, issue.project_key, issue.issue_nr)
                lines.append(
                    f"- [{attachment.filename}]({ATTACHMENT_LINK_PREFIX}{destination.name}) - "
                    f"*{attachment.created.strftime(NOTE_TIME_FORMAT)}* by {attachment.author}"
                )
            lines.append('')

        if issue.actions:
            lines.append('## Comments')
            lines.append('')
            for action in issue.sorted_actions():
                created = action.created.strftime(FULL_TIME_FORMAT)
                if action.is_comment:
                    lines.append(f"### {action.author} - {created}")
                else:
                    lines.append(f"### {action.type} by {action.author} - {created}")
                lines.append('')

                if action.body:
                    lines.append(rewriter.rewrite(action.body, issue))
                    lines.append('')

        return '\n'.join(lines) + '\n'

    def export_backup(self, backup: JiraBackup, issues: Optional[List[JiraIssue]] = None) -> Dict[str, Any]:
        """
        Export issues of a backup, continuing past per-issue failures.

        Args:
            backup: Loaded JiraBackup
            issues: Issues to export (defaults to every issue in the backup)

        Returns:
            Statistics dictionary with export results
        """
        if issues is None:
            issues = list(backup.issues.values())

        self.logger.info(f"Starting markdown export of {len(issues)} issues to {self.output_directory}")

        try:
            self.ensure_directories()
        except OSError as e:
            self.logger.error(f"Failed to create output directory: {e}")
            raise

        issues_iter = issues
        if self._should_show_progress():
            issues_iter = tqdm(issues, desc="Issues", unit="issue", leave=False)

        with ExportProgress(total_issues=len(issues)) as progress:
            for issue in issues_iter:
                try:
                    self.export_issue(issue, backup.users)
                except Exception as e:
                    self.logger.error(f"Failed to export issue {issue.issue_nr}: {e}", exc_info=True)
                    progress.issue_failed(issue.issue_nr)
                    continue

                progress.issue_exported(closed=issue.is_closed)

        self.stats['total_issues_exported'] += progress.exported_issues
        self.stats['open_issues'] += progress.open_issues
        self.stats['closed_issues'] += progress.closed_issues
        self.stats['total_errors'] += progress.failed_issues

        self._log_export_summary()

        stats = self.stats.copy()
        stats['attachments'] = self.attachment_manager.get_stats()
        return stats

    def _generate_frontmatter(self, issue: JiraIssue) -> str:
        """
        Generate the YAML frontmatter block of a note.

        Args:
            issue: JiraIssue instance

        Returns:
            YAML frontmatter string including the ``---`` fences
        """
        frontmatter = {
            'time': issue.created.strftime(NOTE_TIME_FORMAT),
            'type': 'note',
            'tags': [
                self.project_tag or issue.project_key,
                'issue',
                'closed' if issue.is_closed else 'open'
            ],
            'resource': None
        }

        yaml_str = yaml.dump(
            frontmatter,
            Dumper=FrontmatterDumper,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
            width=1000
        )

        return f"---\n{yaml_str}---"

    def _should_show_progress(self) -> bool:
        """Check if progress bars should be displayed."""
        if not self.show_progress:
            return False
        return sys.stdout.isatty()

    def _log_export_summary(self) -> None:
        """Log where the notes went and what happened to the attachments."""
        attachment_stats = self.attachment_manager.get_stats()

        self.logger.info(f"Wrote {len(self.exported_files)} notes to {self.output_directory}")
        self.logger.info(
            f"Attachments: {attachment_stats['copied']} copied, "
            f"{attachment_stats['renamed']} renamed to avoid collisions"
        )
        if attachment_stats['missing'] > 0:
            self.logger.warning(f"Attachments missing from backup: {attachment_stats['missing']}")
