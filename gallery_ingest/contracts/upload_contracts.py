"""
Upload Pipeline Contracts
Result shapes returned to callers of the upload service
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Dict, Any, List


class UploadState(str, Enum):
    """Lifecycle of one upload through the pipeline"""
    RECEIVED = 'received'
    DEDUPED = 'deduped'
    SKIPPED = 'skipped'
    ANALYZING = 'analyzing'
    DERIVING = 'deriving'
    STORING = 'storing'
    PERSISTING = 'persisting'
    DONE = 'done'
    ERRORED = 'errored'


@dataclass
class CleanupFailure:
    path: str
    error: str


@dataclass
class CleanupResult:
    """Outcome of a best-effort delete of stored objects"""
    attempted: int = 0
    succeeded: int = 0
    failures: List[CleanupFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures

    def merge(self, other: 'CleanupResult') -> 'CleanupResult':
        return CleanupResult(
            attempted=self.attempted + other.attempted,
            succeeded=self.succeeded + other.succeeded,
            failures=self.failures + other.failures
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DuplicateCheckResult:
    """
    Answer of the duplicate detector

    ``existing_record`` is the matching Photo when ``exists`` is true.
    ``reason`` names the matching rule, or the lookup failure when the check failed open.
    """
    exists: bool
    existing_record: Optional[Any] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        existing = self.existing_record
        return {
            'exists': self.exists,
            'existing_photo_id': getattr(existing, 'photo_id', None),
            'reason': self.reason
        }


@dataclass
class UploadResult:
    """Uniform result of UploadService.upload"""
    success: bool
    state: UploadState
    photo: Optional[Dict[str, Any]] = None
    thumbnails: Dict[str, str] = field(default_factory=dict)
    thumbnail_path: Optional[str] = None
    blur_data_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    cleanup: Optional[CleanupResult] = None
    skipped: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None
    replaced: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        result = asdict(self)
        result['state'] = self.state.value
        return result


@dataclass
class FolderImportReport:
    """Summary of UploadService.upload_from_folder"""
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    successes: List[Dict[str, Any]] = field(default_factory=list)
    skipped_items: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
