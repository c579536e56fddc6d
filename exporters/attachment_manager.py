"""Attachment manager for locating backup attachment files and copying them for export."""

import logging
import re
import shutil
from pathlib import Path
from typing import Dict, Optional, Set

from models import JiraFileAttachment

# Fixed bucket directory used by Jira attachment storage
ATTACHMENT_BUCKET = '10000'

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(filename: str) -> str:
    """
    Replace every character that is not allowed in a file name with ``_``.

    Empty and dot-only names (``''``, ``.``, ``..``) would point at a
    directory, so they become ``_``.
    """
    filename = INVALID_FILENAME_CHARS.sub('_', filename)
    if not filename.strip('.'):
        return '_'
    return filename


class AttachmentManager:
    """
    Resolves and copies issue attachments into a single flat directory.

    This manager:
    1. Finds the attachment file in the backup, tolerating moved files
    2. Allocates a unique destination name (image.png, image_1.png, ...)
    3. Copies the file, or skips the copy when the source is missing
    4. Reuses the destination of an attachment that was already copied
    """

    def __init__(
        self,
        source_dir: Path,
        attachments_dir: Path,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the attachment manager.

        Args:
            source_dir: Root of the Jira backup
            attachments_dir: Output directory receiving the attachment files
            logger: Logger instance
        """
        self.source_dir = Path(source_dir)
        self.attachments_dir = Path(attachments_dir)
        self.logger = logger or logging.getLogger('jira_markdown_exporter.exporters.attachment_manager')

        self.allocated_names: Set[str] = set()
        self.copied_attachments: Dict[str, Path] = {}

        self.stats = {
            'total_attachments': 0,
            'copied': 0,
            'missing': 0,
            'renamed': 0
        }

    def canonical_path(self, attachment: JiraFileAttachment, project_key: str, issue_nr: str) -> Path:
        """Expected location of an attachment inside the backup."""
        return (
            self.source_dir / 'data' / 'attachments' / project_key
            / ATTACHMENT_BUCKET / issue_nr / attachment.id
        )

    def resolve_source_path(
        self,
        attachment: JiraFileAttachment,
        project_key: str,
        issue_nr: str
    ) -> Optional[Path]:
        """
        Locate the physical file of an attachment.

        Falls back to searching the tree two levels above the expected
        location, since exports sometimes file attachments under another
        issue directory. The first match in sorted order wins.

        Args:
            attachment: JiraFileAttachment instance
            project_key: Owning issue's project key
            issue_nr: Owning issue's key (e.g. TG-42)

        Returns:
            Path to the source file or None if it cannot be found
        """
        source_path = self.canonical_path(attachment, project_key, issue_nr)
        if source_path.is_file():
            return source_path

        search_root = source_path.parent.parent
        if search_root.is_dir():
            for candidate in sorted(search_root.rglob(attachment.id)):
                if candidate.is_file():
                    self.logger.debug(f"Found attachment {attachment.id} at fallback location {candidate}")
                    return candidate

        self.logger.debug(f"Attachment {attachment.id} ('{attachment.filename}') not found in backup")
        return None

    def allocate_destination(self, desired_filename: str) -> Path:
        """
        Reserve a destination path that no earlier call in this run has used.

        Names are compared case-insensitively, so ``Image.png`` after
        ``image.png`` becomes ``Image_1.png`` and copies never overwrite
        each other on case-insensitive filesystems.

        Args:
            desired_filename: Attachment filename as recorded in the backup

        Returns:
            Destination path inside the attachments directory
        """
        filename = sanitize_filename(desired_filename)

        if filename.casefold() in self.allocated_names:
            name = Path(filename).stem
            suffix = Path(filename).suffix
            counter = 1
            while f"{name}_{counter}{suffix}".casefold() in self.allocated_names:
                counter += 1
            filename = f"{name}_{counter}{suffix}"
            self.stats['renamed'] += 1

        self.allocated_names.add(filename.casefold())
        return self.attachments_dir / filename

    def copy_file(self, source_path: Optional[Path], desired_filename: str) -> Path:
        """
        Copy a file under a unique name into the attachments directory.

        A missing source is not an error: the destination path is still
        returned so links to it stay well-formed.

        Args:
            source_path: File to copy, or None if it could not be located
            desired_filename: Name the copy should carry

        Returns:
            Destination path
        """
        destination = self.allocate_destination(desired_filename)

        if source_path is not None and Path(source_path).is_file():
            self.attachments_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source_path, destination)
            self.stats['copied'] += 1
            self.logger.debug(f"Copied attachment {source_path} -> {destination}")
        else:
            self.stats['missing'] += 1
            self.logger.warning(f"Attachment source for '{desired_filename}' is missing, link will be broken")

        return destination

    def copy_attachment(self, attachment: JiraFileAttachment, project_key: str, issue_nr: str) -> Path:
        """
        Resolve and copy an attachment, once per attachment id.

        Args:
            attachment: JiraFileAttachment instance
            project_key: Owning issue's project key
            issue_nr: Owning issue's key

        Returns:
            Destination path of the copied attachment
        """
        if attachment.id in self.copied_attachments:
            return self.copied_attachments[attachment.id]

        self.stats['total_attachments'] += 1
        source_path = self.resolve_source_path(attachment, project_key, issue_nr)
        destination = self.copy_file(source_path, attachment.filename)

        self.copied_attachments[attachment.id] = destination
        return destination

    def get_stats(self) -> Dict[str, int]:
        """Get attachment processing statistics."""
        return self.stats.copy()
