#!/usr/bin/env python3
"""
Drive Content Importer - Main CLI Entry Point

This script imports an exported folder/document tree into Google Drive,
recreating the folder structure under a single "MigratedContent" folder and
uploading each document's cached content.
"""

import argparse
import logging
import sys
import uuid
from typing import List, Optional

import yaml

from config_loader import ConfigLoader, get_nested
from importers import DriveCredentialFactory, DriveImporter
from jobstore import LocalJobStore
from logger import setup_logging, log_section, log_config
from models import ContainerResource, ImportStatus, TokensAndUrlAuthData
from orchestrator import ImportOrchestrator, ImportReport, load_manifest, stage_content

__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Import an exported content tree into Google Drive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import a manifest with settings from config.yaml
  python migrate.py --manifest export/manifest.json

  # Resume an interrupted job (already created folders are reused)
  python migrate.py --manifest export/manifest.json --job-id 3f6c...

  # Upload files in parallel and keep going past failed files
  python migrate.py --manifest export/manifest.yaml --workers 4 --continue-on-file-error

  # Preview the tree without touching Drive
  python migrate.py --manifest export/manifest.json --dry-run
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
        default='config.yaml',
        help='Path to configuration YAML file (default: config.yaml)'
    )

    parser.add_argument(
        '--manifest',
        type=str,
        required=True,
        help='Export manifest (JSON or YAML) describing the tree to import'
    )

    parser.add_argument(
        '--job-id',
        type=str,
        help='Job identifier; reuse it to resume a job (default: new UUID)'
    )

    parser.add_argument(
        '--access-token',
        type=str,
        help='Drive access token (overrides auth.access_token)'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write the JSON import report to this path'
    )

    parser.add_argument(
        '--workers',
        type=int,
        help='Parallel file uploads per folder (overrides import.max_workers)'
    )

    parser.add_argument(
        '--continue-on-file-error',
        action='store_true',
        help='Keep uploading sibling files after one fails'
    )

    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable the progress bar'
    )

    parser.add_argument(
        '--cleanup',
        action='store_true',
        help='Remove job state from the job store after a successful import'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print the tree that would be imported and exit'
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


def run_import(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute the import of one manifest."""
    tree, sources = load_manifest(args.manifest)
    logger.info(
        f"Loaded manifest: {tree.count_folders()} folders, {tree.count_files()} files"
    )

    if args.dry_run:
        _print_tree_preview(tree)
        return 0

    job_id = args.job_id or str(uuid.uuid4())
    logger.info(f"Job id: {job_id}")

    job_store = LocalJobStore.from_config(config)
    staged = stage_content(job_store, job_id, sources)
    if staged:
        logger.info(f"Staged {staged} content files into the job store")

    auth_data = TokensAndUrlAuthData(
        access_token=get_nested(config, 'auth.access_token'),
        refresh_token=get_nested(config, 'auth.refresh_token'),
        token_url=get_nested(config, 'auth.token_url')
    )

    importer = DriveImporter(config, job_store, DriveCredentialFactory(config), logger=logger)
    orchestrator = ImportOrchestrator(config, importer, logger)
    report = orchestrator.run(job_id, auth_data, tree)

    report_generator = ImportReport(logger)
    print("\n" + report_generator.format_console(report))

    if args.report:
        report_generator.save_json(report, args.report)

    if report['summary']['status'] != ImportStatus.OK.value:
        logger.warning(f"Import of job {job_id} failed; re-run with --job-id {job_id} to resume")
        return 1

    if args.cleanup:
        job_store.remove_job(job_id)

    logger.info("Import completed successfully")
    return 0


def _print_tree_preview(tree: ContainerResource, indent: int = 0) -> None:
    """Print the folder/file structure of the tree."""
    if indent == 0:
        print("\n" + "=" * 60)
        print("IMPORT PREVIEW (DRY RUN)")
        print("=" * 60)
        print(f"Folders: {tree.count_folders()}  Files: {tree.count_files()}\n")
        print("MigratedContent/")
        indent = 1

    pad = "  " * indent
    for folder in tree.folders:
        print(f"{pad}{folder.name}/")
        _print_tree_preview(folder, indent + 1)
    for wrapper in tree.files:
        print(f"{pad}{wrapper.name}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        logger = setup_logging(verbosity=args.verbose)

        log_section("Drive Content Importer")
        logger.info(f"Version: {__version__}")

        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.with_defaults(ConfigLoader.load(args.config))
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Re-apply logging now that the config file may set level, file and format
        logger = setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=None if args.verbose else get_nested(config, 'logging.level'),
            settings=config.get('logging')
        )

        log_config(config)

        return run_import(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except (ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nImport interrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
