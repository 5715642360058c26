"""
Import report generator for aggregating per-container results.

This module builds the job-level report from the ImportResults of every
container, and formats it for console display and JSON export.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from logger import format_elapsed
from models import ContainerResource, ImportResult, ImportStatus, new_counts


class ImportReport:
    """Generates import reports from per-container results."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('drive_content_importer.orchestrator.report')

    def generate_report(
        self,
        job_id: str,
        tree: ContainerResource,
        results: List[Tuple[ContainerResource, ImportResult]],
        duration: float
    ) -> Dict[str, Any]:
        """
        Generate the import report.

        Args:
            job_id: Import job identifier
            tree: Root of the imported tree
            results: (container, result) pairs in processing order
            duration: Total import duration in seconds

        Returns:
            Report dictionary with 'summary', 'errors' and 'containers'
        """
        totals = new_counts()
        for _, result in results:
            for key, value in result.counts.items():
                totals[key] = totals.get(key, 0) + value

        failed = [(container, result) for container, result in results if not result.is_ok]
        status = ImportStatus.ERROR if failed else ImportStatus.OK

        summary = {
            'job_id': job_id,
            'status': status.value,
            'containers_total': tree.count_folders() + 1,
            'containers_processed': len(results),
            'files_total': tree.count_files(),
            'duration_seconds': duration,
            'duration_formatted': format_elapsed(duration),
            'retryable': any(result.retryable for _, result in failed)
        }
        summary.update(totals)

        report = {
            'summary': summary,
            'errors': self._build_error_summary(failed),
            'containers': [
                {
                    'id': container.id,
                    'name': container.name,
                    'result': result.to_dict()
                }
                for container, result in results
            ],
            'timestamp': datetime.now().isoformat()
        }

        self.logger.info(
            f"Report generated: {summary['containers_processed']}/{summary['containers_total']} containers, "
            f"{len(report['errors'])} errors"
        )
        return report

    def _build_error_summary(
        self,
        failed: List[Tuple[ContainerResource, ImportResult]]
    ) -> List[Dict[str, Any]]:
        errors = []
        for container, result in failed:
            errors.append({
                'container_id': container.id,
                'container_name': container.name,
                'kind': result.failure_kind.value if result.failure_kind else None,
                'error': str(result.error),
                'retryable': result.retryable,
                'failed_items': list(result.failed_items)
            })
        return errors

    def save_json(self, report: Dict[str, Any], output_path: str) -> None:
        """Write the report as JSON."""
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False)
        self.logger.info(f"Report saved to {output_path}")

    def format_console(self, report: Dict[str, Any]) -> str:
        """Format the report for terminal output."""
        summary = report['summary']
        lines = [
            "=" * 60,
            f"  IMPORT REPORT - job {summary['job_id']}",
            "=" * 60,
            f"Status:            {summary['status'].upper()}",
            f"Containers:        {summary['containers_processed']}/{summary['containers_total']}",
            f"Folders created:   {summary['folders_created']}",
            f"Folders reused:    {summary['folders_reused']}",
            f"Files uploaded:    {summary['files_uploaded']}/{summary['files_total']}",
            f"Files failed:      {summary['files_failed']}",
            f"Duration:          {summary['duration_formatted']}",
        ]

        if report['errors']:
            lines.append("")
            lines.append("Errors:")
            for error in report['errors']:
                lines.append(
                    f"  - {error['container_name'] or error['container_id']} "
                    f"[{error['kind']}] {error['error']}"
                )
                for item in error['failed_items']:
                    lines.append(f"      * {item['name']}: {item['error']}")
            if summary['retryable']:
                lines.append("")
                lines.append("The failure looks transient; re-run with the same --job-id to resume.")

        return "\n".join(lines)


__all__ = ['ImportReport']
