"""Shared fixtures building a small Jira backup on disk."""

import copy
import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config_loader import DEFAULT_CONFIG  # noqa: E402
from logger import LOGGER_NAME  # noqa: E402

ENTITIES_XML = """<?xml version="1.0" encoding="UTF-8"?>
<entity-engine-xml>
    <Status id="1" name="Open"/>
    <Status id="6" name="Done"/>
    <User id="10" lowerUserName="jane" userName="Jane" displayName="Jane Doe" emailAddress="jane@example.com" externalId="abc123"/>
    <User id="11" lowerUserName="bob" userName="Bob" displayName="Bob Smith" emailAddress="bob@example.com" externalId="def456"/>
    <Issue id="100" projectKey="TG" number="42" summary="Fix login bug" created="2024-01-15 10:30:00.0" status="6">
        <description><![CDATA[Login fails.
See !screenshot.png|thumbnail! and ask [~accountid:abc123].
# step one]]></description>
    </Issue>
    <Issue id="101" projectKey="TG" number="43" summary="Add dark mode" created="2024-02-01 09:00:00.0" status="1"/>
    <Action id="200" issue="100" type="comment" author="bob" created="2024-01-16 08:00:00.0">
        <body><![CDATA[Reproduced, log is in !error.log!]]></body>
    </Action>
    <Action id="201" issue="100" type="comment" author="jane" created="2024-01-15 12:00:00.0" body="First!"/>
    <Action id="202" issue="999" type="comment" author="jane" created="2024-01-15 12:00:00.0" body="orphan"/>
    <FileAttachment id="300" issue="100" author="jane" created="2024-01-15 10:35:00.0" mimetype="image/png" filename="screenshot.png" thumbnailable="true"/>
    <FileAttachment id="301" issue="100" author="bob" created="2024-01-16 08:01:00.0" mimetype="text/plain" filename="error.log"/>
    <FileAttachment id="302" issue="999" author="bob" created="2024-01-16 08:01:00.0" mimetype="text/plain" filename="lost.txt"/>
</entity-engine-xml>
"""


@pytest.fixture
def backup_dir(tmp_path):
    """Backup folder with entities.xml and two attachment files.

    Attachment 300 sits at its canonical location, 301 was filed under
    another issue directory and is only found by the fallback search.
    """
    source = tmp_path / 'jira-backup'
    source.mkdir()
    (source / 'entities.xml').write_text(ENTITIES_XML, encoding='utf-8')

    canonical = source / 'data' / 'attachments' / 'TG' / '10000' / 'TG-42'
    canonical.mkdir(parents=True)
    (canonical / '300').write_bytes(b'PNG screenshot bytes')

    drifted = source / 'data' / 'attachments' / 'TG' / '10000' / 'TG-41'
    drifted.mkdir(parents=True)
    (drifted / '301').write_bytes(b'stack trace')

    return source


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / 'notes'


@pytest.fixture
def config(backup_dir, output_dir):
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['backup']['source_directory'] = str(backup_dir)
    config['export']['output_directory'] = str(output_dir)
    config['export']['progress_bars'] = False
    return config


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging so later tests never write to closed streams."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
