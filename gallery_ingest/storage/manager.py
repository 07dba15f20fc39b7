"""
Builds and caches storage providers from configuration
"""
import threading
from typing import Dict, Optional
from ..config import Config
from ..constants import StorageConstants
from ..exceptions import ConfigurationError
from ..logger import storage_logger
from .base import StorageProvider
from .local import LocalStorageProvider
from .s3 import S3StorageProvider
from .google_drive import GoogleDriveStorageProvider

DEFAULT_ENDPOINTS = {
    StorageConstants.WASABI: 'https://s3.{region}.wasabisys.com',
    StorageConstants.BACKBLAZE: 'https://s3.{region}.backblazeb2.com',
}


class StorageManager:
    """
    One provider instance per provider id, created on first use
    """

    def __init__(self, config: Config):
        self.config = config
        self._providers: Dict[str, StorageProvider] = {}
        self._lock = threading.Lock()

    def resolve_provider_id(self, album_provider: Optional[str] = None, requested: Optional[str] = None) -> str:
        """Album setting wins over the caller's choice, which wins over the configured default"""
        return album_provider or requested or self.config.default_storage_provider

    def get_provider(self, provider_id: Optional[str] = None) -> StorageProvider:
        """
        Get (and cache) the provider for an id

        Raises:
            ConfigurationError: For unknown ids or incomplete provider settings
        """
        provider_id = provider_id or self.config.default_storage_provider
        with self._lock:
            provider = self._providers.get(provider_id)
            if provider is None:
                provider = self._create_provider(provider_id)
                self._providers[provider_id] = provider
                storage_logger.info("Storage provider initialized", provider=provider_id)
            return provider

    def _create_provider(self, provider_id: str) -> StorageProvider:
        settings = self.config.get_storage_config(provider_id)
        prefix = self.config.serve_url_prefix

        if provider_id == StorageConstants.LOCAL:
            return LocalStorageProvider(
                base_path=settings.get('base_path') or self.config.local_storage_path,
                serve_url_prefix=prefix
            )

        if provider_id in StorageConstants.S3_COMPATIBLE_PROVIDERS:
            region = settings.get('region') or self.config.aws_region
            endpoint = settings.get('endpoint')
            if not endpoint and provider_id in DEFAULT_ENDPOINTS:
                endpoint = DEFAULT_ENDPOINTS[provider_id].format(region=region)
            return S3StorageProvider(
                bucket_name=settings.get('bucket'),
                provider_id=provider_id,
                serve_url_prefix=prefix,
                region=region,
                endpoint_url=endpoint,
                access_key_id=settings.get('access_key_id'),
                secret_access_key=settings.get('secret_access_key'),
                force_path_style=settings.get('force_path_style', provider_id != StorageConstants.AWS_S3)
            )

        if provider_id == StorageConstants.GOOGLE_DRIVE:
            return GoogleDriveStorageProvider.from_config(settings, prefix)

        raise ConfigurationError(f"Unknown storage provider: {provider_id}", config_key='storage-provider')
