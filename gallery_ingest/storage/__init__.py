"""
Storage back-ends for original images and derivatives
"""
from .base import StorageProvider, StoredObject
from .local import LocalStorageProvider
from .s3 import S3StorageProvider
from .google_drive import GoogleDriveStorageProvider
from .manager import StorageManager

__all__ = [
    'StorageProvider',
    'StoredObject',
    'LocalStorageProvider',
    'S3StorageProvider',
    'GoogleDriveStorageProvider',
    'StorageManager',
]
