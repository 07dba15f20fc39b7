"""
Google Drive storage provider
Paths map onto nested Drive folders below a configured root folder
"""
import io
import threading
from typing import Optional, Dict, List
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from ..constants import StorageConstants
from ..exceptions import StorageOperationError, ConfigurationError
from ..error_handler import error_handler
from ..logger import storage_logger
from ..utils import join_storage_path, check_cancelled, CancellationToken
from .base import StorageProvider, StoredObject

SCOPES = ['https://www.googleapis.com/auth/drive.file']


def _escape_query_value(value: str) -> str:
    return value.replace('\\', '\\\\').replace("'", "\\'")


class GoogleDriveStorageProvider(StorageProvider):
    """
    Hierarchical storage on Google Drive v3

    Each worker thread gets its own Drive service object (they are not
    thread-safe). Resolved folder ids are cached; only folder creation is
    serialized, so two threads never create the same folder twice.
    """

    is_hierarchical = True

    def __init__(self, root_folder_id: str = 'root', credentials: Optional[Credentials] = None,
                 serve_url_prefix: str = '/api/storage/serve', service=None,
                 provider_id: str = StorageConstants.GOOGLE_DRIVE):
        super().__init__(provider_id, serve_url_prefix)
        if service is None and credentials is None:
            raise ConfigurationError(
                "Google Drive provider needs credentials",
                config_key=f'storage-{provider_id}'
            )
        self.root_folder_id = root_folder_id or 'root'
        self.credentials = credentials
        self._service = service
        self._thread_local = threading.local()
        self._folder_ids: Dict[str, str] = {'': self.root_folder_id}
        self._folder_lock = threading.Lock()

    @classmethod
    def from_config(cls, settings: dict, serve_url_prefix: str) -> 'GoogleDriveStorageProvider':
        """
        Build from the storage-google-drive settings block:
        {"root_folder_id": "...", "credentials": {authorized user info}}
        """
        info = settings.get('credentials')
        if not info:
            raise ConfigurationError(
                "Missing credentials for google-drive",
                config_key='storage-google-drive'
            )
        credentials = Credentials.from_authorized_user_info(info, SCOPES)
        return cls(
            root_folder_id=settings.get('root_folder_id', 'root'),
            credentials=credentials,
            serve_url_prefix=serve_url_prefix
        )

    @property
    def service(self):
        """Thread-local Drive service, created on first access"""
        if self._service is not None:
            return self._service
        if not hasattr(self._thread_local, 'drive'):
            self._thread_local.drive = build('drive', 'v3', credentials=self.credentials, cache_discovery=False)
        return self._thread_local.drive

    def _find_child(self, parent_id: str, name: str, folders_only: bool) -> Optional[str]:
        query = f"'{parent_id}' in parents and name='{_escape_query_value(name)}' and trashed=false"
        if folders_only:
            query += f" and mimeType='{StorageConstants.DRIVE_FOLDER_MIME_TYPE}'"
        response = self.service.files().list(
            q=query,
            spaces='drive',
            fields='files(id, name)',
            pageSize=1
        ).execute()
        files = response.get('files', [])
        return files[0]['id'] if files else None

    def _create_folder_in(self, parent_id: str, name: str) -> str:
        folder = self.service.files().create(
            body={
                'name': name,
                'mimeType': StorageConstants.DRIVE_FOLDER_MIME_TYPE,
                'parents': [parent_id]
            },
            fields='id'
        ).execute()
        storage_logger.info("Drive folder created", provider=self.provider_id, name=name, parent_id=parent_id)
        return folder['id']

    def _resolve_folder(self, path: str, create: bool) -> Optional[str]:
        """
        Walk path one segment at a time from the root folder

        Returns:
            Folder id, or None when a segment is missing and create is false
        """
        segments: List[str] = [s for s in join_storage_path(path).split('/') if s]
        parent_id = self.root_folder_id
        walked = ''
        for segment in segments:
            walked = join_storage_path(walked, segment)
            cached = self._folder_ids.get(walked)
            if cached:
                parent_id = cached
                continue

            folder_id = self._find_child(parent_id, segment, folders_only=True)
            if folder_id is None:
                if not create:
                    return None
                folder_id = self._create_missing_folder(walked, parent_id, segment)

            self._folder_ids[walked] = folder_id
            parent_id = folder_id
        return parent_id

    def _create_missing_folder(self, walked: str, parent_id: str, name: str) -> str:
        """Create one folder; concurrent callers for the same path share the first result"""
        with self._folder_lock:
            folder_id = self._folder_ids.get(walked)
            if folder_id is None:
                folder_id = self._create_folder_in(parent_id, name)
                self._folder_ids[walked] = folder_id
            return folder_id

    def upload_file(self, data: bytes, filename: str, mime_type: str, folder_path: str = '',
                    metadata: Optional[Dict[str, str]] = None,
                    cancel_token: Optional[CancellationToken] = None) -> StoredObject:
        check_cancelled(cancel_token, 'upload_file')
        path = join_storage_path(folder_path, filename)

        try:
            folder_id = self._resolve_folder(folder_path, create=True)
            check_cancelled(cancel_token, 'upload_file')

            body = {'name': filename, 'parents': [folder_id]}
            if metadata:
                body['appProperties'] = {str(k): str(v) for k, v in metadata.items() if v is not None}

            media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
            created = self.service.files().create(
                body=body,
                media_body=media,
                fields='id, name, size'
            ).execute()
        except HttpError as e:
            error_response = error_handler.handle_drive_error(e, 'upload', path)
            storage_logger.log_storage_operation(self.provider_id, 'upload', path, success=False, **error_response)
            raise StorageOperationError(
                error_response['error_message'],
                provider=self.provider_id,
                operation='upload',
                path=path,
                original_error=str(e)
            )

        storage_logger.log_storage_operation(
            self.provider_id, 'upload', path, file_id=created['id'], size=len(data)
        )
        return StoredObject(
            provider=self.provider_id,
            file_id=created['id'],
            url=self.serve_url(path),
            path=path,
            size=len(data),
            mime_type=mime_type,
            folder_id=folder_id
        )

    def delete_file(self, path: str) -> None:
        path = join_storage_path(path)
        folder_path, _, filename = path.rpartition('/')

        try:
            folder_id = self._resolve_folder(folder_path, create=False)
            if folder_id is None:
                storage_logger.debug("Drive folder absent, nothing to delete", provider=self.provider_id, path=path)
                return

            file_id = self._find_child(folder_id, filename, folders_only=False)
            if file_id is None:
                storage_logger.debug("Drive file absent, nothing to delete", provider=self.provider_id, path=path)
                return

            self.service.files().delete(fileId=file_id).execute()
        except HttpError as e:
            if error_handler.is_not_found(e):
                return
            error_response = error_handler.handle_drive_error(e, 'delete', path)
            raise StorageOperationError(
                error_response['error_message'],
                provider=self.provider_id,
                operation='delete',
                path=path,
                original_error=str(e)
            )

        storage_logger.log_storage_operation(self.provider_id, 'delete', path, file_id=file_id)

    def folder_exists(self, path: str) -> bool:
        try:
            return self._resolve_folder(path, create=False) is not None
        except HttpError as e:
            error_response = error_handler.handle_drive_error(e, 'folder_exists', path)
            raise StorageOperationError(
                error_response['error_message'],
                provider=self.provider_id,
                operation='folder_exists',
                path=path,
                original_error=str(e)
            )

    def create_folder(self, path: str) -> None:
        try:
            self._resolve_folder(path, create=True)
        except HttpError as e:
            error_response = error_handler.handle_drive_error(e, 'create_folder', path)
            raise StorageOperationError(
                error_response['error_message'],
                provider=self.provider_id,
                operation='create_folder',
                path=path,
                original_error=str(e)
            )
