"""
Configuration management for gallery-ingest
Supports environment variables, SSM Parameter Store, and built-in defaults
"""
import os
import json
import time
import threading
from typing import Optional, Any, Dict
import boto3
from botocore.exceptions import ClientError, NoCredentialsError, BotoCoreError


class Config:
    """
    Configuration manager with hybrid approach:
    1. Environment Variables (highest priority)
    2. AWS Parameter Store (environment-specific, cached with a TTL)
    3. Local defaults (development fallback)

    Instances are constructed explicitly and handed to the services that
    need them; ``refresh()`` drops the Parameter Store cache.
    """

    ENV_PREFIX = 'GALLERY_INGEST_'

    def __init__(self, environment: str = None, cache_ttl_seconds: int = None, use_ssm: bool = None):
        self.environment = environment or os.environ.get('ENVIRONMENT', 'dev')
        self.parameter_store_prefix = os.environ.get(
            'PARAMETER_STORE_PREFIX',
            f'/gallery/{self.environment}/ingest'
        )
        if cache_ttl_seconds is None:
            cache_ttl_seconds = int(os.environ.get('CONFIG_CACHE_TTL_SECONDS', '300'))
        self.cache_ttl_seconds = cache_ttl_seconds
        self.last_refreshed = time.time()
        if use_ssm is None:
            use_ssm = os.environ.get('CONFIG_USE_SSM', 'true').lower() in ('true', '1', 'yes', 'on')
        self.use_ssm = use_ssm
        self._ssm_client = None
        self._parameter_cache: Dict[str, Optional[str]] = {}
        self._cache_lock = threading.Lock()

    @property
    def ssm_client(self):
        """Lazy initialization of SSM client"""
        if self._ssm_client is None and self.use_ssm:
            try:
                self._ssm_client = boto3.client('ssm', region_name=self.aws_region)
            except (NoCredentialsError, BotoCoreError):
                # Local development without AWS credentials
                self._ssm_client = None
        return self._ssm_client

    def refresh(self):
        """Drop cached Parameter Store values so the next read hits SSM again"""
        with self._cache_lock:
            self._parameter_cache.clear()
            self.last_refreshed = time.time()

    def _cache_expired(self) -> bool:
        return time.time() - self.last_refreshed >= self.cache_ttl_seconds

    def get_parameter(self, key: str, default: Any = None) -> Any:
        """
        Get configuration parameter with fallback hierarchy:
        1. Environment variable (prefixed, then plain)
        2. SSM Parameter Store
        3. Default value
        """
        env_name = key.upper().replace('-', '_')

        env_value = os.environ.get(f"{self.ENV_PREFIX}{env_name}")
        if env_value is not None:
            return env_value

        env_value = os.environ.get(env_name)
        if env_value is not None:
            return env_value

        ssm_value = self.get_ssm_parameter(key)
        if ssm_value is not None:
            return ssm_value

        return default

    def get_ssm_parameter(self, key: str) -> Optional[str]:
        """
        Get parameter from AWS SSM Parameter Store, cached for cache_ttl_seconds
        """
        if self._cache_expired():
            self.refresh()

        with self._cache_lock:
            if key in self._parameter_cache:
                return self._parameter_cache[key]

        value = self._fetch_ssm_parameter(key)

        with self._cache_lock:
            self._parameter_cache[key] = value
        return value

    def _fetch_ssm_parameter(self, key: str) -> Optional[str]:
        if not self.ssm_client:
            return None

        parameter_name = f"{self.parameter_store_prefix}/{key}"

        try:
            response = self.ssm_client.get_parameter(Name=parameter_name, WithDecryption=True)
            return response['Parameter']['Value']
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != 'ParameterNotFound':
                _config_warning(f"Error getting SSM parameter {parameter_name}: {e}")
            return None
        except (BotoCoreError, KeyError) as e:
            _config_warning(f"Unexpected error getting SSM parameter {parameter_name}: {e}")
            return None

    def get_int_parameter(self, key: str, default: int = 0) -> int:
        """Get integer parameter"""
        value = self.get_parameter(key, default)
        try:
            return int(value)
        except (ValueError, TypeError):
            return default

    def get_bool_parameter(self, key: str, default: bool = False) -> bool:
        """Get boolean parameter"""
        value = self.get_parameter(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ('true', '1', 'yes', 'on')
        return default

    def get_json_parameter(self, key: str, default: dict = None) -> dict:
        """Get JSON parameter"""
        value = self.get_parameter(key)
        if value is None:
            return default or {}

        try:
            if isinstance(value, str):
                return json.loads(value)
            return value
        except (json.JSONDecodeError, TypeError):
            return default or {}

    def get_list_parameter(self, key: str, default: list = None, separator: str = ',') -> list:
        """Get list parameter (comma-separated string)"""
        value = self.get_parameter(key)
        if value is None:
            return default or []

        if isinstance(value, list):
            return value

        if isinstance(value, str):
            return [item.strip() for item in value.split(separator) if item.strip()]

        return default or []

    # Common configuration getters
    @property
    def aws_region(self) -> str:
        return os.environ.get('AWS_DEFAULT_REGION', 'us-east-1')

    @property
    def photo_table_name(self) -> str:
        """Get photo table name"""
        return self.get_parameter('photo-table-name', f'Photos-{self.environment}')

    @property
    def album_table_name(self) -> str:
        """Get album table name"""
        return self.get_parameter('album-table-name', f'Albums-{self.environment}')

    @property
    def user_table_name(self) -> str:
        """Get user table name"""
        return self.get_parameter('user-table-name', f'Users-{self.environment}')

    @property
    def default_storage_provider(self) -> str:
        return self.get_parameter('default-storage-provider', 'local')

    @property
    def local_storage_path(self) -> str:
        return self.get_parameter('local-storage-path', './uploads')

    @property
    def serve_url_prefix(self) -> str:
        """Prefix of the URLs that serve stored bytes back to clients"""
        return self.get_parameter('serve-url-prefix', '/api/storage/serve').rstrip('/')

    @property
    def max_image_size(self) -> int:
        """Get maximum upload size in bytes"""
        return self.get_int_parameter('max-image-size', 100 * 1024 * 1024)  # 100MB

    @property
    def derivative_concurrency(self) -> int:
        """Number of thumbnail sizes rendered at the same time"""
        return max(1, self.get_int_parameter('derivative-concurrency', 2))

    @property
    def storage_concurrency(self) -> int:
        """Number of derivative uploads in flight at the same time"""
        return max(1, self.get_int_parameter('storage-concurrency', 4))

    @property
    def blur_placeholder_size(self) -> int:
        return self.get_int_parameter('blur-placeholder-size', 20)

    @property
    def compress_originals(self) -> bool:
        """Re-encode the stored original when that makes it smaller"""
        return self.get_bool_parameter('compress-originals', True)

    @property
    def system_username(self) -> str:
        return self.get_parameter('system-username', 'system')

    @property
    def enable_debug_logging(self) -> bool:
        """Get debug logging flag"""
        return self.get_bool_parameter('enable-debug-logging', False)

    def get_storage_config(self, provider_id: str) -> dict:
        """Get JSON settings block for one storage provider (storage-aws-s3, storage-google-drive, ...)"""
        return self.get_json_parameter(f'storage-{provider_id}', {})


def _config_warning(message: str):
    # The structured logger depends on Config, so config problems go straight to stdout
    print(json.dumps({'level': 'WARNING', 'service': 'config', 'message': message}))


# Default configuration, used to name DynamoDB tables at model definition time
config = Config()


def get_config() -> Config:
    """Get default configuration instance"""
    return config
