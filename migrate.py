#!/usr/bin/env python3
"""
Jira Backup to Markdown Exporter - Main CLI Entry Point

Converts a Jira backup (entities.xml plus the attachments tree) into one
Markdown note per issue, sorted into open/ and closed/ folders, with
attachments copied into a shared attachments/ folder.
"""

import argparse
import logging
import sys
from typing import List, Optional

import yaml

from config_loader import ConfigLoader, get_nested
from exporters import MarkdownExporter
from fetchers import BackupFetcher, FetcherError
from logger import log_config, setup_logging
from models import JiraBackup, JiraIssue

__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Convert a Jira backup into Markdown notes, one per issue",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export using paths from a config file
  jira-to-markdown --config config.yaml

  # Export without a config file
  jira-to-markdown --source-dir ./jira-backup --output-dir ./notes

  # Only issues mentioning a keyword
  jira-to-markdown --source-dir ./jira-backup --output-dir ./notes --keyword login

  # Preview without writing anything
  jira-to-markdown --config config.yaml --dry-run -v
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration YAML file'
    )

    parser.add_argument(
        '--source-dir',
        type=str,
        help='Jira backup directory containing entities.xml'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Directory receiving the markdown notes'
    )

    parser.add_argument(
        '--keyword',
        type=str,
        help='Only export issues whose description, summary or comments contain this text'
    )

    parser.add_argument(
        '--project-tag',
        type=str,
        help='Tag written into every note (default: the issue project key)'
    )

    parser.add_argument(
        '--skip-empty-description',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Skip issues that have no description'
    )

    parser.add_argument(
        '--dry-run',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='List the notes that would be written without writing them'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def run_export(config: dict, logger: logging.Logger) -> int:
    """Execute the load and export pipeline."""
    fetcher = BackupFetcher(config, logger)
    backup = fetcher.load()

    _print_backup_summary(backup)

    issues = backup.filter_issues(
        keyword=get_nested(config, 'migration.keyword'),
        require_description=get_nested(config, 'export.skip_issues_without_description', False)
    )
    logger.info(f"{len(issues)} of {len(backup.issues)} issues selected for export")

    exporter = MarkdownExporter(config, logger=logger)

    if get_nested(config, 'migration.dry_run', False):
        logger.info("Dry-run mode: displaying export preview")
        _print_export_preview(exporter, issues)
        logger.info("Dry-run complete. No changes made.")
        return 0

    stats = exporter.export_backup(backup, issues)

    print(f"Exported {stats['total_issues_exported']} issues "
          f"({stats['open_issues']} open, {stats['closed_issues']} closed) "
          f"to {exporter.output_directory}")

    if stats['total_errors'] > 0:
        logger.warning(f"Export completed with {stats['total_errors']} errors")
        return 1

    logger.info("Export completed successfully")
    return 0


def _print_backup_summary(backup: JiraBackup) -> None:
    """Print issue/user counts and the statuses in use."""
    print(f"Issues: {len(backup.issues)}")
    print(f"Users: {len(backup.users)}")
    print(f"All issue statuses: {', '.join(backup.status_names())}")


def _print_export_preview(exporter: MarkdownExporter, issues: List[JiraIssue]) -> None:
    """Print the files an export would write."""
    print("\n" + "=" * 60)
    print("EXPORT PREVIEW (DRY RUN)")
    print("=" * 60)
    for issue in issues:
        attachments = len(issue.file_attachments)
        print(f"  {exporter.get_issue_path(issue)} ({attachments} attachments, {len(issue.actions)} actions)")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(verbosity=args.verbose, log_file=args.log_file)
        logger = logging.getLogger('jira_markdown_exporter.cli')

        logger.info(f"Jira backup to Markdown export {__version__}")

        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        config_level = get_nested(config, 'logging.level')
        log_file = get_nested(config, 'logging.file')
        if log_file != args.log_file or (config_level and not args.verbose):
            setup_logging(
                verbosity=args.verbose,
                log_file=log_file,
                level=None if args.verbose else config_level
            )

        log_config(config)

        return run_export(config, logger)

    except FetcherError as e:
        print(f"ERROR: Invalid backup: {e}", file=sys.stderr)
        return 2
    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except (ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logging.getLogger('jira_markdown_exporter.cli').error(f"Export failed: {e}", exc_info=True)
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
