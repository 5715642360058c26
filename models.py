"""Data models for the Drive content import pipeline."""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

# Source id the export stage uses for the top of the tree
ROOT_ID = "root"


class ImportStatus(Enum):
    """Terminal outcome of a single import call."""
    OK = "ok"
    ERROR = "error"


class FailureKind(Enum):
    """Closed set of failure classes an import call can end with."""
    PRECONDITION = "precondition"
    TRANSPORT = "transport"
    TRANSLATION = "translation"
    CONTENT = "content"


@dataclass
class DigitalDocument:
    """Metadata payload of an exported document."""

    name: str
    date_modified: Optional[str] = None
    encoding_format: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize document to dictionary."""
        return {
            'name': self.name,
            'date_modified': self.date_modified,
            'encoding_format': self.encoding_format
        }


@dataclass
class DocumentWrapper:
    """One file to upload: its cached content handle plus metadata."""

    cached_content_id: str
    document: DigitalDocument
    original_encoding_format: Optional[str] = None

    @property
    def name(self) -> str:
        return self.document.name

    def to_dict(self) -> Dict[str, Any]:
        """Serialize wrapper to dictionary."""
        return {
            'cached_content_id': self.cached_content_id,
            'document': self.document.to_dict(),
            'original_encoding_format': self.original_encoding_format
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DocumentWrapper':
        """Deserialize wrapper from dictionary."""
        document_data = data.get('document') or {}
        if not data.get('cached_content_id'):
            raise ValueError(
                f"File '{document_data.get('name', '?')}' has no cached_content_id"
            )
        if not document_data.get('name'):
            raise ValueError(
                f"File with content '{data['cached_content_id']}' has no name"
            )

        return cls(
            cached_content_id=data['cached_content_id'],
            document=DigitalDocument(
                name=document_data['name'],
                date_modified=document_data.get('date_modified'),
                encoding_format=document_data.get('encoding_format')
            ),
            original_encoding_format=data.get('original_encoding_format')
        )


@dataclass
class ContainerResource:
    """A folder node of the exported tree with its direct children."""

    id: str
    name: str
    folders: List['ContainerResource'] = field(default_factory=list)
    files: List[DocumentWrapper] = field(default_factory=list)

    def is_root(self) -> bool:
        """Check if this node stands for the top of the exported tree."""
        return not self.id or self.id == ROOT_ID

    def add_folder(self, folder: 'ContainerResource') -> None:
        """Add a child folder."""
        self.folders.append(folder)

    def add_file(self, wrapper: DocumentWrapper) -> None:
        """Add a file."""
        self.files.append(wrapper)

    def iter_tree(self) -> Iterator['ContainerResource']:
        """Yield this node and every descendant folder, parents first."""
        queue = deque([self])
        while queue:
            node = queue.popleft()
            yield node
            queue.extend(node.folders)

    def count_folders(self) -> int:
        """Count descendant folders (excluding this node)."""
        return sum(1 for _ in self.iter_tree()) - 1

    def count_files(self) -> int:
        """Count files in this node and all descendants."""
        return sum(len(node.files) for node in self.iter_tree())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize node to dictionary."""
        return {
            'id': self.id,
            'name': self.name,
            'folders': [folder.to_dict() for folder in self.folders],
            'files': [wrapper.to_dict() for wrapper in self.files]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], is_child: bool = False) -> 'ContainerResource':
        """
        Recursively reconstruct a node from an export manifest dictionary.

        Args:
            data: Node dictionary with 'id', 'name', 'folders', 'files'
            is_child: True when the node sits below another node

        Returns:
            ContainerResource tree

        Raises:
            ValueError: If a child folder has an empty or root id
        """
        node_id = data.get('id') or ''
        if is_child and (not node_id or node_id == ROOT_ID):
            raise ValueError(
                f"Child folder '{data.get('name', '?')}' must have a non-root id"
            )

        node = cls(id=node_id, name=data.get('name') or '')

        for folder_data in data.get('folders') or []:
            node.add_folder(cls.from_dict(folder_data, is_child=True))

        for file_data in data.get('files') or []:
            node.add_file(DocumentWrapper.from_dict(file_data))

        return node


@dataclass
class FolderMapping:
    """Durable association of a source folder id with its destination id."""

    old_id: str
    new_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {'old_id': self.old_id, 'new_id': self.new_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FolderMapping':
        return cls(old_id=data['old_id'], new_id=data['new_id'])


@dataclass
class TokensAndUrlAuthData:
    """Destination credentials handed over by the job framework."""

    access_token: str
    refresh_token: Optional[str] = None
    token_url: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"TokensAndUrlAuthData(access_token='***', "
            f"refresh_token={'***' if self.refresh_token else None}, "
            f"token_url={self.token_url!r})"
        )


def new_counts() -> Dict[str, int]:
    """Zeroed per-call counters carried by ImportResult."""
    return {
        'folders_created': 0,
        'folders_reused': 0,
        'files_uploaded': 0,
        'files_failed': 0
    }


@dataclass
class ImportResult:
    """Outcome of one import call, with counts of what was done."""

    status: ImportStatus
    failure_kind: Optional[FailureKind] = None
    error: Optional[BaseException] = None
    counts: Dict[str, int] = field(default_factory=dict)
    failed_items: List[Dict[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Initialize default counts if empty."""
        if not self.counts:
            self.counts = new_counts()

    @classmethod
    def ok(cls, counts: Optional[Dict[str, int]] = None) -> 'ImportResult':
        return cls(status=ImportStatus.OK, counts=dict(counts or {}))

    @classmethod
    def from_error(
        cls,
        error: BaseException,
        counts: Optional[Dict[str, int]] = None,
        failed_items: Optional[List[Dict[str, str]]] = None
    ) -> 'ImportResult':
        """Build an ERROR result classified by the failure's kind."""
        return cls(
            status=ImportStatus.ERROR,
            failure_kind=getattr(error, 'kind', None),
            error=error,
            counts=dict(counts or {}),
            failed_items=list(failed_items or [])
        )

    @property
    def is_ok(self) -> bool:
        return self.status == ImportStatus.OK

    @property
    def retryable(self) -> bool:
        """Whether re-running the same import may succeed."""
        if self.is_ok or self.error is None:
            return False
        return bool(getattr(self.error, 'retryable', False))

    def raise_for_status(self) -> None:
        """Re-raise the carried error if the import failed."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        """Serialize result to dictionary."""
        return {
            'status': self.status.value,
            'failure_kind': self.failure_kind.value if self.failure_kind else None,
            'error': str(self.error) if self.error else None,
            'retryable': self.retryable,
            'counts': dict(self.counts),
            'failed_items': list(self.failed_items)
        }


__all__ = [
    'ROOT_ID',
    'ImportStatus',
    'FailureKind',
    'DigitalDocument',
    'DocumentWrapper',
    'ContainerResource',
    'FolderMapping',
    'TokensAndUrlAuthData',
    'ImportResult',
    'new_counts'
]
