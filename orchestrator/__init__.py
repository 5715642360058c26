"""
Orchestration package for importing whole exported trees.

This package drives the per-container importer over every node of an
exported tree and turns the collected results into a job report.
"""

from .import_orchestrator import ImportOrchestrator, load_manifest, stage_content
from .import_report import ImportReport

__all__ = [
    'ImportOrchestrator',
    'ImportReport',
    'load_manifest',
    'stage_content'
]
