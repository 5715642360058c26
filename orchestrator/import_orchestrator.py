"""
Import orchestrator for walking a whole exported tree.

The per-container DriveImporter only knows its direct children; this module
feeds it every container of the tree, parents before children, and gathers
the per-call results into one report.
"""

import json
import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple

import yaml
from tqdm import tqdm

from importers import DriveImporter
from jobstore.base import JobStore
from logger import ProgressTracker, log_section
from models import ContainerResource, ImportResult, TokensAndUrlAuthData
from orchestrator.import_report import ImportReport

logger = logging.getLogger('drive_content_importer.orchestrator')


def load_manifest(manifest_path: str) -> Tuple[ContainerResource, Dict[str, str]]:
    """
    Load an export manifest (JSON or YAML).

    The manifest's 'root' key holds the tree. A file entry may carry a
    'source_path' pointing at its content on disk, relative to the manifest.

    Args:
        manifest_path: Path to the manifest file

    Returns:
        Tuple of (tree root, mapping of cached_content_id -> absolute source path)

    Raises:
        FileNotFoundError: If the manifest doesn't exist
        ValueError: If the manifest structure is invalid
    """
    if not os.path.exists(manifest_path):
        raise FileNotFoundError(f"Manifest not found: {manifest_path}")

    with open(manifest_path, 'r', encoding='utf-8') as f:
        if manifest_path.endswith(('.yaml', '.yml')):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    if not isinstance(data, dict) or not isinstance(data.get('root'), dict):
        raise ValueError("Manifest must contain a 'root' container")

    tree = ContainerResource.from_dict(data['root'])

    base_dir = os.path.dirname(os.path.abspath(manifest_path))
    sources: Dict[str, str] = {}
    pending = [data['root']]
    while pending:
        node = pending.pop()
        pending.extend(node.get('folders') or [])
        for file_data in node.get('files') or []:
            if file_data.get('source_path'):
                sources[file_data['cached_content_id']] = os.path.join(base_dir, file_data['source_path'])

    return tree, sources


def stage_content(job_store: JobStore, job_id: str, sources: Dict[str, str]) -> int:
    """Copy local content files into the job store. Returns the count staged."""
    for content_id, path in sources.items():
        with open(path, 'rb') as f:
            job_store.create_stream(job_id, content_id, f)
        logger.debug(f"Staged {path} as '{content_id}'")

    return len(sources)


class ImportOrchestrator:
    """Runs a DriveImporter over every container of an exported tree."""

    def __init__(
        self,
        config: Dict[str, Any],
        importer: DriveImporter,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize import orchestrator.

        Args:
            config: Configuration dictionary
            importer: Per-container importer
            logger: Optional logger instance
        """
        self.config = config
        self.importer = importer
        self.logger = logger or logging.getLogger('drive_content_importer.orchestrator')
        self.report_generator = ImportReport(self.logger)
        self.show_progress = config.get('import', {}).get('show_progress', True)

    def run(
        self,
        job_id: str,
        auth_data: TokensAndUrlAuthData,
        tree: ContainerResource
    ) -> Dict[str, Any]:
        """
        Import the whole tree, breadth first.

        Each container is imported only after the call that created its
        folder mapping. The walk stops at the first failed container.

        Args:
            job_id: Import job identifier
            auth_data: Destination credentials
            tree: Root of the exported tree

        Returns:
            Report dictionary (see ImportReport.generate_report)
        """
        log_section(f"Importing job {job_id}")
        start_time = time.time()

        containers = list(tree.iter_tree())
        results: List[Tuple[ContainerResource, ImportResult]] = []

        iterable = containers
        if self.show_progress:
            iterable = tqdm(containers, desc="Importing folders", unit="folder")

        with ProgressTracker(len(containers), "containers") as tracker:
            for container in iterable:
                result = self.importer.import_item(job_id, auth_data, container)
                results.append((container, result))
                tracker.record(result.counts, success=result.is_ok)

                if not result.is_ok:
                    self.logger.error(
                        f"Stopping import: container '{container.name or container.id}' failed "
                        f"({result.failure_kind.value if result.failure_kind else 'unknown'}): {result.error}"
                    )
                    break

        duration = time.time() - start_time
        report = self.report_generator.generate_report(job_id, tree, results, duration)

        self.logger.info(f"Import of job {job_id} finished with status {report['summary']['status']}")
        return report


__all__ = ['ImportOrchestrator', 'load_manifest', 'stage_content']
