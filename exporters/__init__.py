"""Markdown export package for the Jira backup to Markdown pipeline.

Package Structure:
- markdown_exporter: Writes one note per issue into open/ or closed/
- attachment_manager: Locates attachment files in the backup and copies them
  under collision-free names
- link_rewriter: Rewrites attachment markers and account mentions in
  descriptions and comments
"""

from .attachment_manager import ATTACHMENT_BUCKET, AttachmentManager, sanitize_filename
from .link_rewriter import LinkRewriter
from .markdown_exporter import MarkdownExporter

__all__ = [
    'ATTACHMENT_BUCKET',
    'AttachmentManager',
    'LinkRewriter',
    'MarkdownExporter',
    'sanitize_filename'
]
