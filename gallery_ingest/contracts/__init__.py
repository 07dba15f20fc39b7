from .upload_contracts import (
    UploadState,
    CleanupFailure,
    CleanupResult,
    DuplicateCheckResult,
    UploadResult,
    FolderImportReport,
)

__all__ = [
    'UploadState',
    'CleanupFailure',
    'CleanupResult',
    'DuplicateCheckResult',
    'UploadResult',
    'FolderImportReport',
]
