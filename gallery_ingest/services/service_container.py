"""
Service container for dependency injection
"""
from typing import Dict, Any
from ..config import Config, get_config
from ..logger import logger
from ..repositories import DynamoPhotoRepository
from ..storage import StorageManager
from .upload_service import UploadService


class ServiceContainer:
    """
    Simple service container for dependency injection
    Builds every service from one Config, lazily
    """

    def __init__(self, config: Config = None):
        self.config = config or get_config()
        self._services: Dict[str, Any] = {}

    def get_service(self, service_name: str):
        """
        Get service instance with lazy initialization

        Raises:
            ValueError: If service is unknown
        """
        if service_name not in self._services:
            self._services[service_name] = self._create_service(service_name)

        return self._services[service_name]

    def _create_service(self, service_name: str):
        logger.debug("Creating service", service=service_name)
        if service_name == 'photo_repository':
            return DynamoPhotoRepository(self.config.system_username)
        elif service_name == 'storage_manager':
            return StorageManager(self.config)
        elif service_name == 'upload_service':
            return UploadService(
                self.config,
                repository=self.get_service('photo_repository'),
                storage_manager=self.get_service('storage_manager')
            )
        else:
            raise ValueError(f"Unknown service: {service_name}")

    def register_service(self, service_name: str, service_instance):
        """
        Register a service instance

        Args:
            service_name: Name of the service
            service_instance: Service instance to register
        """
        self._services[service_name] = service_instance

    def clear_services(self):
        """Clear all cached services (useful for testing)"""
        self._services.clear()


# Global service container instance
_service_container = ServiceContainer()


def get_service(service_name: str):
    """
    Get service from global container
    """
    return _service_container.get_service(service_name)


def register_service(service_name: str, service_instance):
    _service_container.register_service(service_name, service_instance)


def clear_services():
    """Clear all services (useful for testing)"""
    _service_container.clear_services()
