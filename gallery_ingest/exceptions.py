"""
Gallery Ingest Exceptions
Custom exception classes for the upload pipeline
"""


class IngestServiceError(Exception):
    """Base exception for all ingestion errors"""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for result payloads"""
        result = {
            'error': self.__class__.__name__,
            'message': self.message
        }
        if self.error_code:
            result['error_code'] = self.error_code
        if self.details:
            result['details'] = self.details
        return result


class ValidationError(IngestServiceError):
    """Raised when upload input is unusable"""

    def __init__(self, message: str, field: str = None, value: str = None):
        self.field = field
        self.value = value

        details = {}
        if field:
            details['field'] = field
        if value:
            details['value'] = value

        super().__init__(message, 'VALIDATION_ERROR', details)


class EntityNotFoundError(IngestServiceError):
    """Raised when a referenced entity (album, photo) does not exist"""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id

        message = f"{entity_type.capitalize()} '{entity_id}' not found"
        details = {
            'entity_type': entity_type,
            'entity_id': entity_id
        }

        super().__init__(message, 'ENTITY_NOT_FOUND', details)


class UnsupportedFormatError(IngestServiceError):
    """Raised when the image codec cannot decode the uploaded buffer"""

    def __init__(self, message: str, operation: str = None, original_error: str = None):
        self.operation = operation
        self.original_error = original_error

        details = {}
        if operation:
            details['operation'] = operation
        if original_error:
            details['original_error'] = original_error

        super().__init__(message, 'UNSUPPORTED_FORMAT', details)


class StorageOperationError(IngestServiceError):
    """Raised when a storage provider operation fails"""

    def __init__(self, message: str, provider: str = None, operation: str = None, path: str = None,
                 original_error: str = None):
        self.provider = provider
        self.operation = operation
        self.path = path
        self.original_error = original_error

        details = {}
        if provider:
            details['provider'] = provider
        if operation:
            details['operation'] = operation
        if path:
            details['path'] = path
        if original_error:
            details['original_error'] = original_error

        super().__init__(message, 'STORAGE_OPERATION_ERROR', details)


class PersistenceError(IngestServiceError):
    """Raised when a record store write or read fails"""

    def __init__(self, message: str, operation: str = None, table: str = None, original_error: str = None):
        self.operation = operation
        self.table = table
        self.original_error = original_error

        details = {}
        if operation:
            details['operation'] = operation
        if table:
            details['table'] = table
        if original_error:
            details['original_error'] = original_error

        super().__init__(message, 'PERSISTENCE_ERROR', details)


class ConfigurationError(IngestServiceError):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_source: str = None):
        self.config_key = config_key
        self.config_source = config_source

        details = {}
        if config_key:
            details['config_key'] = config_key
        if config_source:
            details['config_source'] = config_source

        super().__init__(message, 'CONFIGURATION_ERROR', details)


class UploadCancelledError(IngestServiceError):
    """Raised when the caller cancels an upload or its deadline passes"""

    def __init__(self, message: str = "Upload cancelled", operation: str = None):
        self.operation = operation

        details = {}
        if operation:
            details['operation'] = operation

        super().__init__(message, 'UPLOAD_CANCELLED', details)
