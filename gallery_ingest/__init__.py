"""
gallery-ingest: media ingestion and derivative generation for a photo gallery
"""
from .config import Config, get_config
from .contracts import UploadResult, UploadState, FolderImportReport
from .services import UploadService, get_service
from .utils import CancellationToken

__version__ = '1.0.0'

__all__ = [
    'Config',
    'get_config',
    'UploadResult',
    'UploadState',
    'FolderImportReport',
    'UploadService',
    'get_service',
    'CancellationToken',
]
