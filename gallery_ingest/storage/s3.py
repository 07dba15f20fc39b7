"""
S3-compatible object storage provider (AWS S3, Wasabi, Backblaze B2)
"""
from typing import Optional, Dict, Any
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError, BotoCoreError
from ..constants import StorageConstants
from ..exceptions import StorageOperationError, ConfigurationError
from ..error_handler import error_handler
from ..logger import storage_logger
from ..utils import join_storage_path, check_cancelled, CancellationToken
from .base import StorageProvider, StoredObject


def _ascii_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """S3 user metadata must be ASCII strings"""
    result = {}
    for key, value in (metadata or {}).items():
        if value is None:
            continue
        result[str(key)] = str(value).encode('ascii', errors='replace').decode('ascii')
    return result


class S3StorageProvider(StorageProvider):
    """
    Flat key-value storage over the S3 API

    Folders do not exist as such: folder_exists is always true and
    create_folder does nothing.
    """

    is_hierarchical = False

    def __init__(self, bucket_name: str, provider_id: str = StorageConstants.AWS_S3,
                 serve_url_prefix: str = '/api/storage/serve', region: str = None,
                 endpoint_url: str = None, access_key_id: str = None,
                 secret_access_key: str = None, force_path_style: bool = False,
                 client=None):
        super().__init__(provider_id, serve_url_prefix)
        if not bucket_name:
            raise ConfigurationError(
                f"Storage provider {provider_id} has no bucket configured",
                config_key=f'storage-{provider_id}'
            )
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.force_path_style = force_path_style
        self._client = client

    @property
    def client(self):
        """Lazy initialization of the S3 client"""
        if self._client is None:
            boto_config = BotoConfig(s3={'addressing_style': 'path'}) if self.force_path_style else None
            self._client = boto3.client(
                's3',
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                config=boto_config
            )
        return self._client

    def upload_file(self, data: bytes, filename: str, mime_type: str, folder_path: str = '',
                    metadata: Optional[Dict[str, str]] = None,
                    cancel_token: Optional[CancellationToken] = None) -> StoredObject:
        check_cancelled(cancel_token, 'upload_file')
        key = join_storage_path(folder_path, filename)

        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=mime_type,
                Metadata=_ascii_metadata(metadata)
            )
        except (ClientError, BotoCoreError) as e:
            error_response = error_handler.handle_s3_error(e, 'upload', self.bucket_name, key)
            storage_logger.log_storage_operation(
                self.provider_id, 'upload', key, success=False,
                bucket=self.bucket_name, **error_response
            )
            raise StorageOperationError(
                error_response['error_message'],
                provider=self.provider_id,
                operation='upload',
                path=key,
                original_error=str(e)
            )

        storage_logger.log_storage_operation(
            self.provider_id, 'upload', key, bucket=self.bucket_name, size=len(data)
        )
        return StoredObject(
            provider=self.provider_id,
            file_id=key,
            url=self.serve_url(key),
            path=key,
            size=len(data),
            mime_type=mime_type,
            bucket=self.bucket_name
        )

    def delete_file(self, path: str) -> None:
        key = join_storage_path(path)
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            if error_handler.is_not_found(e):
                return
            error_response = error_handler.handle_s3_error(e, 'delete', self.bucket_name, key)
            raise StorageOperationError(
                error_response['error_message'],
                provider=self.provider_id,
                operation='delete',
                path=key,
                original_error=str(e)
            )
        storage_logger.log_storage_operation(self.provider_id, 'delete', key, bucket=self.bucket_name)

    def folder_exists(self, path: str) -> bool:
        return True

    def create_folder(self, path: str) -> None:
        pass
