"""
Structured JSON logging for gallery-ingest
"""
import json
import traceback
from datetime import datetime, timezone
from typing import Optional
from .config import config


class IngestLogger:
    """
    Structured logger emitting one JSON object per line on stdout
    """

    def __init__(self, service_name: str = "gallery-ingest"):
        self.service_name = service_name
        self.environment = config.environment
        self.debug_enabled = config.enable_debug_logging

    def _log(self, level: str, message: str, **kwargs):
        """Internal log method with structured format"""
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level.upper(),
            'service': self.service_name,
            'environment': self.environment,
            'message': message
        }

        if kwargs:
            log_entry.update(kwargs)

        print(json.dumps(log_entry, default=str))

    def debug(self, message: str, **kwargs):
        """Log debug message (only if debug enabled)"""
        if self.debug_enabled:
            self._log('debug', message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log('info', message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log('warning', message, **kwargs)

    def error(self, message: str, error: Exception = None, **kwargs):
        """Log error message with optional exception details"""
        log_data = kwargs.copy()

        if error:
            log_data['error_type'] = type(error).__name__
            log_data['error_message'] = str(error)
            log_data['traceback'] = ''.join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        self._log('error', message, **log_data)

    def log_service_operation(self, operation: str, entity_type: str = None, entity_id: str = None, **kwargs):
        """Log service operation"""
        log_data = {
            'operation': operation
        }

        if entity_type:
            log_data['entity_type'] = entity_type

        if entity_id:
            log_data['entity_id'] = entity_id

        log_data.update(kwargs)

        self._log('info', f"Service operation: {operation}", **log_data)

    def log_state_transition(self, upload_id: str, from_state: str, to_state: str, **kwargs):
        """Log an upload pipeline state change"""
        self._log(
            'info',
            f"Upload {from_state} -> {to_state}",
            upload_id=upload_id,
            from_state=from_state,
            to_state=to_state,
            **kwargs
        )

    def log_database_operation(self, table_name: str, operation: str, success: bool = True, **kwargs):
        """Log database operation"""
        log_data = {
            'table_name': table_name,
            'operation': operation,
            'success': success
        }

        log_data.update(kwargs)

        level = 'info' if success else 'error'
        message = f"Database {operation} on {table_name} {'succeeded' if success else 'failed'}"

        self._log(level, message, **log_data)

    def log_storage_operation(self, provider: str, operation: str, path: Optional[str] = None,
                              success: bool = True, **kwargs):
        """Log storage provider operation"""
        log_data = {
            'provider': provider,
            'operation': operation,
            'success': success
        }

        if path:
            log_data['path'] = path

        log_data.update(kwargs)

        level = 'info' if success else 'error'
        message = f"Storage {operation} on {provider} {'succeeded' if success else 'failed'}"

        self._log(level, message, **log_data)


# Global logger instances
logger = IngestLogger("gallery-ingest")
pipeline_logger = IngestLogger("upload-pipeline")
storage_logger = IngestLogger("storage")
repository_logger = IngestLogger("photo-repository")
