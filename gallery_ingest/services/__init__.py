from .dedup_service import DuplicateDetector
from .upload_service import UploadService
from .service_container import ServiceContainer, get_service, register_service, clear_services

__all__ = [
    'DuplicateDetector',
    'UploadService',
    'ServiceContainer',
    'get_service',
    'register_service',
    'clear_services',
]
