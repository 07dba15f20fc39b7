"""
Error classification for storage back-ends and the record store
"""
from typing import Dict, Any
from botocore.exceptions import ClientError, BotoCoreError
from googleapiclient.errors import HttpError
from pynamodb.exceptions import (
    PynamoDBException, DoesNotExist, QueryError,
    UpdateError, DeleteError, PutError, GetError
)


class StorageErrorHandler:
    """
    Turns library exceptions into a uniform ``{error_type, error_message, retryable}`` dict
    """

    @staticmethod
    def handle_dynamodb_error(error: Exception, operation: str, table_name: str = None) -> Dict[str, Any]:
        """
        Classify a DynamoDB / PynamoDB error

        Args:
            error: The exception that occurred
            operation: The operation being performed
            table_name: Optional table name for context

        Returns:
            Classified error dict
        """
        table = table_name or 'unknown'

        if isinstance(error, DoesNotExist):
            return {
                'error_type': 'NotFound',
                'error_message': f'Item not found in {table}',
                'retryable': False
            }

        if isinstance(error, (QueryError, UpdateError, DeleteError, PutError, GetError)):
            cause = getattr(error, 'cause', None)
            if isinstance(cause, ClientError):
                return StorageErrorHandler._classify_dynamodb_client_error(cause, operation, table)
            return {
                'error_type': 'DatabaseError',
                'error_message': f'Database operation failed: {operation} on {table}',
                'retryable': True
            }

        if isinstance(error, PynamoDBException):
            return {
                'error_type': 'DatabaseError',
                'error_message': f'Database operation failed on {table}',
                'retryable': True
            }

        if isinstance(error, ClientError):
            return StorageErrorHandler._classify_dynamodb_client_error(error, operation, table)

        return {
            'error_type': 'DatabaseError',
            'error_message': f'Unexpected database error during {operation}: {error}',
            'retryable': False
        }

    @staticmethod
    def _classify_dynamodb_client_error(error: ClientError, operation: str, table: str) -> Dict[str, Any]:
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')

        if error_code in ['ThrottlingException', 'ProvisionedThroughputExceededException']:
            return {
                'error_type': 'ThrottlingError',
                'error_message': f'Database is temporarily busy ({operation} on {table})',
                'retryable': True
            }
        if error_code == 'ResourceNotFoundException':
            return {
                'error_type': 'ResourceNotFound',
                'error_message': f'Database table {table} not found',
                'retryable': False
            }
        if error_code == 'ConditionalCheckFailedException':
            return {
                'error_type': 'ConditionFailed',
                'error_message': f'Conditional check failed during {operation} on {table}',
                'retryable': False
            }
        return {
            'error_type': 'AWSError',
            'error_message': f'AWS error during {operation}: {error_code}',
            'retryable': True
        }

    @staticmethod
    def handle_s3_error(error: Exception, operation: str, bucket_name: str = None, key: str = None) -> Dict[str, Any]:
        """
        Classify an S3 (or S3-compatible) error

        Args:
            error: The exception that occurred
            operation: The operation being performed
            bucket_name: Optional bucket name for context
            key: Optional object key for context

        Returns:
            Classified error dict
        """
        if isinstance(error, ClientError):
            error_code = error.response.get('Error', {}).get('Code', 'Unknown')

            if error_code == 'NoSuchBucket':
                return {
                    'error_type': 'BucketNotFound',
                    'error_message': f'Storage bucket {bucket_name} not found',
                    'retryable': False
                }
            if error_code in ['NoSuchKey', '404']:
                return {
                    'error_type': 'FileNotFound',
                    'error_message': f'Object {key} not found in storage',
                    'retryable': False
                }
            if error_code == 'AccessDenied':
                return {
                    'error_type': 'AccessDenied',
                    'error_message': f'Access denied during {operation}',
                    'retryable': False
                }
            if error_code in ['SlowDown', 'RequestLimitExceeded', 'ServiceUnavailable']:
                return {
                    'error_type': 'ThrottlingError',
                    'error_message': 'Storage service is busy',
                    'retryable': True
                }
            return {
                'error_type': 'StorageError',
                'error_message': f'Storage error during {operation}: {error_code}',
                'retryable': True
            }

        if isinstance(error, BotoCoreError):
            return {
                'error_type': 'StorageConnectionError',
                'error_message': f'Storage connection failed during {operation}: {error}',
                'retryable': True
            }

        return {
            'error_type': 'StorageError',
            'error_message': f'Unexpected storage error during {operation}: {error}',
            'retryable': False
        }

    @staticmethod
    def handle_drive_error(error: Exception, operation: str, path: str = None) -> Dict[str, Any]:
        """
        Classify a Google Drive API error
        """
        if isinstance(error, HttpError):
            status = getattr(error.resp, 'status', None)
            try:
                status = int(status)
            except (TypeError, ValueError):
                status = None

            if status == 404:
                return {
                    'error_type': 'FileNotFound',
                    'error_message': f'Drive item {path} not found',
                    'retryable': False
                }
            if status in (401, 403):
                return {
                    'error_type': 'AccessDenied',
                    'error_message': f'Drive access denied during {operation}',
                    'retryable': status == 403
                }
            if status == 429 or (status is not None and status >= 500):
                return {
                    'error_type': 'ThrottlingError',
                    'error_message': f'Drive service is busy ({status})',
                    'retryable': True
                }
            return {
                'error_type': 'StorageError',
                'error_message': f'Drive error during {operation}: HTTP {status}',
                'retryable': False
            }

        return {
            'error_type': 'StorageError',
            'error_message': f'Unexpected drive error during {operation}: {error}',
            'retryable': False
        }

    @staticmethod
    def is_not_found(error: Exception) -> bool:
        """True when an S3 or Drive error means the target is already gone"""
        if isinstance(error, ClientError):
            code = error.response.get('Error', {}).get('Code', '')
            return code in ('NoSuchKey', '404', 'NotFound')
        if isinstance(error, HttpError):
            return getattr(error.resp, 'status', None) in (404, '404')
        return isinstance(error, FileNotFoundError)


# Global error handler instance
error_handler = StorageErrorHandler()
