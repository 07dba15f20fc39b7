"""
Local filesystem storage provider
"""
import os
from typing import Optional, Dict
from ..constants import StorageConstants
from ..exceptions import StorageOperationError
from ..logger import storage_logger
from ..utils import join_storage_path, check_cancelled, CancellationToken
from .base import StorageProvider, StoredObject


class LocalStorageProvider(StorageProvider):
    """Stores files under a base directory; folders are real directories"""

    is_hierarchical = True

    def __init__(self, base_path: str, serve_url_prefix: str = '/api/storage/serve',
                 provider_id: str = StorageConstants.LOCAL):
        super().__init__(provider_id, serve_url_prefix)
        self.base_path = os.path.abspath(base_path)

    def _full_path(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.base_path, join_storage_path(path)))
        # Keep every path inside base_path
        if os.path.commonpath([full_path, self.base_path]) != self.base_path:
            raise StorageOperationError(
                "Path escapes storage root",
                provider=self.provider_id,
                path=path
            )
        return full_path

    def upload_file(self, data: bytes, filename: str, mime_type: str, folder_path: str = '',
                    metadata: Optional[Dict[str, str]] = None,
                    cancel_token: Optional[CancellationToken] = None) -> StoredObject:
        check_cancelled(cancel_token, 'upload_file')
        path = join_storage_path(folder_path, filename)
        full_path = self._full_path(path)

        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            with open(full_path, 'wb') as f:
                f.write(data)
        except OSError as e:
            storage_logger.log_storage_operation(self.provider_id, 'upload', path, success=False, error=str(e))
            raise StorageOperationError(
                f"Failed to write {path}",
                provider=self.provider_id,
                operation='upload',
                path=path,
                original_error=str(e)
            )

        storage_logger.log_storage_operation(self.provider_id, 'upload', path, size=len(data))
        return StoredObject(
            provider=self.provider_id,
            file_id=path,
            url=self.serve_url(path),
            path=path,
            size=len(data),
            mime_type=mime_type
        )

    def delete_file(self, path: str) -> None:
        full_path = self._full_path(path)
        try:
            os.remove(full_path)
        except FileNotFoundError:
            storage_logger.debug("File already absent", provider=self.provider_id, path=path)
            return
        except OSError as e:
            raise StorageOperationError(
                f"Failed to delete {path}",
                provider=self.provider_id,
                operation='delete',
                path=path,
                original_error=str(e)
            )
        storage_logger.log_storage_operation(self.provider_id, 'delete', path)

    def folder_exists(self, path: str) -> bool:
        return os.path.isdir(self._full_path(path))

    def create_folder(self, path: str) -> None:
        try:
            os.makedirs(self._full_path(path), exist_ok=True)
        except OSError as e:
            raise StorageOperationError(
                f"Failed to create folder {path}",
                provider=self.provider_id,
                operation='create_folder',
                path=path,
                original_error=str(e)
            )
