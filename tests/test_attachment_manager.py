"""Tests for attachment lookup and copying."""

from datetime import datetime

import pytest

from exporters import AttachmentManager, sanitize_filename
from models import JiraFileAttachment, JiraUser

BOB = JiraUser(user_name='Bob', display_name='Bob Smith', email_address='bob@example.com', external_id='def456')


def make_attachment(attachment_id, filename):
    return JiraFileAttachment(
        id=attachment_id,
        created=datetime(2024, 1, 16, 8, 1),
        mimetype='application/octet-stream',
        filename=filename,
        author=BOB
    )


class TestResolveSourcePath:
    def test_canonical_location(self, backup_dir, output_dir):
        manager = AttachmentManager(backup_dir, output_dir / 'attachments')
        path = manager.resolve_source_path(make_attachment('300', 'screenshot.png'), 'TG', 'TG-42')

        assert path == backup_dir / 'data' / 'attachments' / 'TG' / '10000' / 'TG-42' / '300'

    def test_fallback_search_under_project(self, backup_dir, output_dir):
        manager = AttachmentManager(backup_dir, output_dir / 'attachments')
        path = manager.resolve_source_path(make_attachment('301', 'error.log'), 'TG', 'TG-42')

        assert path == backup_dir / 'data' / 'attachments' / 'TG' / '10000' / 'TG-41' / '301'

    def test_missing_file(self, backup_dir, output_dir):
        manager = AttachmentManager(backup_dir, output_dir / 'attachments')
        assert manager.resolve_source_path(make_attachment('999', 'gone.txt'), 'TG', 'TG-42') is None

    def test_missing_project_directory(self, tmp_path):
        manager = AttachmentManager(tmp_path, tmp_path / 'out')
        assert manager.resolve_source_path(make_attachment('1', 'a.txt'), 'XX', 'XX-1') is None


class TestCopyFile:
    def test_copies_content(self, tmp_path):
        source = tmp_path / 'src.bin'
        source.write_bytes(b'payload')
        manager = AttachmentManager(tmp_path, tmp_path / 'attachments')

        destination = manager.copy_file(source, 'report.pdf')

        assert destination == tmp_path / 'attachments' / 'report.pdf'
        assert destination.read_bytes() == b'payload'
        assert manager.get_stats()['copied'] == 1

    def test_name_collisions_get_numbered(self, tmp_path):
        source = tmp_path / 'src.bin'
        source.write_bytes(b'payload')
        manager = AttachmentManager(tmp_path, tmp_path / 'attachments')

        names = [manager.copy_file(source, 'image.png').name for _ in range(3)]

        assert names == ['image.png', 'image_1.png', 'image_2.png']
        assert manager.get_stats()['renamed'] == 2

    def test_collision_without_extension(self, tmp_path):
        manager = AttachmentManager(tmp_path, tmp_path / 'attachments')
        manager.allocate_destination('README')
        assert manager.allocate_destination('README').name == 'README_1'

    def test_missing_source_still_reserves_name(self, tmp_path):
        manager = AttachmentManager(tmp_path, tmp_path / 'attachments')

        destination = manager.copy_file(tmp_path / 'nope', 'image.png')

        assert destination.name == 'image.png'
        assert not destination.exists()
        assert manager.get_stats()['missing'] == 1
        assert manager.allocate_destination('image.png').name == 'image_1.png'

    def test_names_differing_only_in_case_collide(self, tmp_path):
        manager = AttachmentManager(tmp_path, tmp_path / 'attachments')

        names = [manager.allocate_destination(n).name for n in ('Image.png', 'image.png', 'IMAGE_1.PNG')]

        assert names == ['Image.png', 'image_1.png', 'IMAGE_1_1.PNG']
        assert manager.get_stats()['renamed'] == 2

    def test_case_variants_keep_both_files(self, tmp_path):
        upper = tmp_path / 'upper.bin'
        upper.write_bytes(b'upper')
        lower = tmp_path / 'lower.bin'
        lower.write_bytes(b'lower')
        manager = AttachmentManager(tmp_path, tmp_path / 'attachments')

        first = manager.copy_file(upper, 'Image.png')
        second = manager.copy_file(lower, 'image.png')

        assert first.read_bytes() == b'upper'
        assert second.read_bytes() == b'lower'

    @pytest.mark.parametrize('filename', ['', '.', '..'])
    def test_directory_like_names_are_replaced(self, tmp_path, filename):
        source = tmp_path / 'src.bin'
        source.write_bytes(b'payload')
        manager = AttachmentManager(tmp_path, tmp_path / 'attachments')

        destination = manager.copy_file(source, filename)

        assert destination == tmp_path / 'attachments' / '_'
        assert destination.read_bytes() == b'payload'

    def test_invalid_characters_are_replaced(self, tmp_path):
        manager = AttachmentManager(tmp_path, tmp_path / 'attachments')
        assert manager.allocate_destination('a:b?.png').name == 'a_b_.png'


class TestCopyAttachment:
    def test_same_attachment_copied_once(self, backup_dir, output_dir):
        manager = AttachmentManager(backup_dir, output_dir / 'attachments')
        attachment = make_attachment('300', 'screenshot.png')

        first = manager.copy_attachment(attachment, 'TG', 'TG-42')
        second = manager.copy_attachment(attachment, 'TG', 'TG-42')

        assert first == second == output_dir / 'attachments' / 'screenshot.png'
        assert first.read_bytes() == b'PNG screenshot bytes'
        assert manager.get_stats()['total_attachments'] == 1
        assert manager.get_stats()['copied'] == 1

    def test_distinct_attachments_with_same_name(self, backup_dir, output_dir):
        manager = AttachmentManager(backup_dir, output_dir / 'attachments')

        first = manager.copy_attachment(make_attachment('300', 'image.png'), 'TG', 'TG-42')
        second = manager.copy_attachment(make_attachment('301', 'image.png'), 'TG', 'TG-42')

        assert first.name == 'image.png'
        assert second.name == 'image_1.png'
        assert second.read_bytes() == b'stack trace'


class TestSanitizeFilename:
    def test_replaces_each_invalid_character(self):
        assert sanitize_filename('a<b>c:d"e/f\\g|h?i*j') == 'a_b_c_d_e_f_g_h_i_j'

    def test_control_characters(self):
        assert sanitize_filename('tab\there') == 'tab_here'

    @pytest.mark.parametrize('filename', ['', '.', '..', '...'])
    def test_dot_only_names(self, filename):
        assert sanitize_filename(filename) == '_'

    def test_dotted_names_are_kept(self):
        assert sanitize_filename('.hidden') == '.hidden'
        assert sanitize_filename('archive.tar.gz') == 'archive.tar.gz'

    def test_keeps_spaces_and_unicode(self):
        assert sanitize_filename('Ünïcode name.txt') == 'Ünïcode name.txt'
