"""Tests for rewriting attachment markers and mentions."""

import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

from exporters import LinkRewriter
from models import JiraFileAttachment, JiraIssue, JiraStatus, JiraUser

JANE = JiraUser(user_name='Jane', display_name='Jane', email_address='jane@example.com', external_id='abc123')
BOB = JiraUser(user_name='Bob', display_name='Bob Smith', email_address='bob@example.com', external_id='def456')


class TestLinkRewriter(unittest.TestCase):

    def setUp(self):
        self.attachment_manager = MagicMock()
        self.attachment_manager.copy_attachment.side_effect = (
            lambda attachment, project_key, issue_nr: Path('/out/attachments') / attachment.filename
        )
        self.rewriter = LinkRewriter(self.attachment_manager, {'jane': JANE, 'bob': BOB})

        self.issue = JiraIssue(
            id='100',
            project_key='TG',
            number='42',
            summary='Fix login bug',
            created=datetime(2024, 1, 15, 10, 30),
            status=JiraStatus(id='1', name='Open')
        )
        self.diagram = JiraFileAttachment(
            id='300', created=datetime(2024, 1, 15), mimetype='image/png',
            filename='diagram.png', author=JANE
        )
        self.issue.add_attachment(self.diagram)

    def test_empty_text(self):
        self.assertEqual(self.rewriter.rewrite(None, self.issue), '')
        self.assertEqual(self.rewriter.rewrite('', self.issue), '')

    def test_plain_text_passes_through(self):
        self.assertEqual(self.rewriter.rewrite('Hello world', self.issue), 'Hello world')

    def test_hash_replaced(self):
        self.assertEqual(self.rewriter.rewrite('# Title\nitem #2', self.issue), '- Title\nitem -2')

    def test_attachment_marker(self):
        result = self.rewriter.rewrite('See !diagram.png!', self.issue)

        self.assertEqual(result, 'See ![diagram.png](./../attachments/diagram.png)')
        self.attachment_manager.copy_attachment.assert_called_once_with(self.diagram, 'TG', 'TG-42')

    def test_attachment_marker_with_modifiers(self):
        result = self.rewriter.rewrite('!diagram.png|width=300,thumbnail!', self.issue)
        self.assertEqual(result, '![diagram.png](./../attachments/diagram.png)')

    def test_marker_uses_allocated_name(self):
        self.attachment_manager.copy_attachment.side_effect = None
        self.attachment_manager.copy_attachment.return_value = Path('/out/attachments/diagram_1.png')

        result = self.rewriter.rewrite('!diagram.png!', self.issue)
        self.assertEqual(result, '![diagram.png](./../attachments/diagram_1.png)')

    def test_unknown_attachment_left_unchanged(self):
        result = self.rewriter.rewrite('Wow!other.png! and !unknown!', self.issue)

        self.assertEqual(result, 'Wow!other.png! and !unknown!')
        self.attachment_manager.copy_attachment.assert_not_called()

    def test_exclamation_before_marker(self):
        result = self.rewriter.rewrite('Great! see !diagram.png!', self.issue)
        self.assertEqual(result, 'Great! see ![diagram.png](./../attachments/diagram.png)')

    def test_exclamations_around_markers(self):
        result = self.rewriter.rewrite('Wow! !diagram.png! works!\n!diagram.png|thumbnail! done!', self.issue)
        self.assertEqual(
            result,
            'Wow! ![diagram.png](./../attachments/diagram.png) works!\n'
            '![diagram.png](./../attachments/diagram.png) done!'
        )

    def test_mention_replaced_everywhere(self):
        result = self.rewriter.rewrite('[~accountid:abc123] and again [~accountid:abc123]', self.issue)
        self.assertEqual(result, '[[@Jane]] and again [[@Jane]]')

    def test_unknown_mention_left_unchanged(self):
        text = 'ping [~accountid:zzz999]'
        self.assertEqual(self.rewriter.rewrite(text, self.issue), text)

    def test_only_first_mentioned_account_is_resolved(self):
        result = self.rewriter.rewrite('[~accountid:abc123] cc [~accountid:def456]', self.issue)
        self.assertEqual(result, '[[@Jane]] cc [~accountid:def456]')

    def test_marker_and_mention_together(self):
        result = self.rewriter.rewrite('# Steps\n!diagram.png|thumbnail! by [~accountid:def456]', self.issue)
        self.assertEqual(
            result,
            '- Steps\n![diagram.png](./../attachments/diagram.png) by [[@Bob Smith]]'
        )
