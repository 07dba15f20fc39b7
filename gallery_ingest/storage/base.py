"""
Storage provider interface
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Iterable
from ..contracts import CleanupResult, CleanupFailure
from ..logger import storage_logger
from ..utils import build_serve_url, CancellationToken


@dataclass
class StoredObject:
    """Where a stored byte buffer ended up"""
    provider: str
    file_id: str
    url: str
    path: str
    size: int
    mime_type: str
    bucket: Optional[str] = None
    folder_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class StorageProvider(ABC):
    """
    Durable byte storage keyed by path

    Hierarchical providers (local disk, Drive) need folders to exist before
    files can be placed in them; flat providers (S3) treat the path as a key.
    """

    is_hierarchical = False

    def __init__(self, provider_id: str, serve_url_prefix: str = '/api/storage/serve'):
        self.provider_id = provider_id
        self.serve_url_prefix = serve_url_prefix

    @abstractmethod
    def upload_file(self, data: bytes, filename: str, mime_type: str, folder_path: str = '',
                    metadata: Optional[Dict[str, str]] = None,
                    cancel_token: Optional[CancellationToken] = None) -> StoredObject:
        """
        Store a buffer as folder_path/filename

        Raises:
            StorageOperationError: If the write fails
            UploadCancelledError: If the token fired before the write started
        """

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Delete the object at path; deleting something that is not there succeeds"""

    @abstractmethod
    def folder_exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def create_folder(self, path: str) -> None:
        ...

    def serve_url(self, path: str) -> str:
        return build_serve_url(self.serve_url_prefix, self.provider_id, path)

    def delete_files(self, paths: Iterable[str]) -> CleanupResult:
        """
        Best-effort delete of several objects; failures are collected, never raised
        """
        result = CleanupResult()
        for path in paths:
            if not path:
                continue
            result.attempted += 1
            try:
                self.delete_file(path)
                result.succeeded += 1
            except Exception as e:
                storage_logger.log_storage_operation(
                    self.provider_id, 'delete', path, success=False, error=str(e)
                )
                result.failures.append(CleanupFailure(path=path, error=str(e)))
        return result
