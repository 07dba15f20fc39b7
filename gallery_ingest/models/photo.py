"""
PynamoDB model for Photo records
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any
from pynamodb.models import Model
from pynamodb.attributes import (
    UnicodeAttribute, UTCDateTimeAttribute, JSONAttribute,
    NumberAttribute, BooleanAttribute
)
from pynamodb.indexes import GlobalSecondaryIndex, AllProjection
from pynamodb.exceptions import DoesNotExist
from ..config import config
from ..constants import RecordConstants
from ..exceptions import PersistenceError, ValidationError
from ..logger import repository_logger as logger
from ..error_handler import error_handler
from ..utils import path_from_serve_url


def build_name_size_key(original_filename: str, size: int) -> str:
    """Composite lookup key for the (original filename, byte size) index"""
    return f"{original_filename}#{int(size)}"


class ContentHashIndex(GlobalSecondaryIndex):
    """GSI for looking up photos by content fingerprint"""
    class Meta:
        index_name = RecordConstants.CONTENT_HASH_INDEX
        projection = AllProjection()

    content_hash = UnicodeAttribute(hash_key=True)


class NameSizeIndex(GlobalSecondaryIndex):
    """GSI for looking up photos by original filename and byte size"""
    class Meta:
        index_name = RecordConstants.NAME_SIZE_INDEX
        projection = AllProjection()

    name_size_key = UnicodeAttribute(hash_key=True)


class Photo(Model):
    """
    Photo record: one logical photo, its stored original and its derivatives
    """

    class Meta:
        table_name = config.photo_table_name
        region = config.aws_region
        billing_mode = 'PAY_PER_REQUEST'

    # Primary key
    photo_id = UnicodeAttribute(hash_key=True)

    # Caller-owned fields, kept on replace
    title = JSONAttribute(default=dict)        # {language: text}
    description = JSONAttribute(default=dict)  # {language: text}
    album_id = UnicodeAttribute(null=True)
    tags = JSONAttribute(default=list)
    is_published = BooleanAttribute(default=True)
    is_leading = BooleanAttribute(default=False)
    uploaded_by = UnicodeAttribute()
    uploaded_at = UTCDateTimeAttribute(default=lambda: datetime.now(timezone.utc))

    # File-derived fields, overwritten on replace
    filename = UnicodeAttribute()
    original_filename = UnicodeAttribute()
    mime_type = UnicodeAttribute()
    size = NumberAttribute()             # raw upload bytes, used for dedup
    stored_size = NumberAttribute(null=True)
    compression_ratio = NumberAttribute(null=True)   # stored_size / size
    content_hash = UnicodeAttribute()
    name_size_key = UnicodeAttribute()
    geometry = JSONAttribute()   # ImageGeometry as dict
    storage = JSONAttribute()    # provider, path, url, thumbnails, thumbnail_paths, blur_data_url, ...
    metadata = JSONAttribute(null=True)

    updated_at = UTCDateTimeAttribute(default=lambda: datetime.now(timezone.utc))

    # Global Secondary Indexes
    content_hash_index = ContentHashIndex()
    name_size_index = NameSizeIndex()

    # Fields a replace upload may overwrite
    FILE_FIELDS = (
        'filename', 'original_filename', 'mime_type', 'size', 'stored_size',
        'compression_ratio', 'content_hash', 'geometry', 'storage', 'metadata'
    )

    def save(self, **kwargs):
        """Override save to update timestamp"""
        self.updated_at = datetime.now(timezone.utc)
        return super().save(**kwargs)

    @classmethod
    def create_photo(cls, photo_data: Dict[str, Any]) -> 'Photo':
        """
        Create new photo record

        Args:
            photo_data: Dictionary containing photo information

        Returns:
            Created Photo instance

        Raises:
            ValidationError: If required fields are missing
            PersistenceError: If the database write fails
        """
        required_fields = [
            'photo_id', 'filename', 'original_filename', 'mime_type',
            'size', 'content_hash', 'geometry', 'storage', 'uploaded_by'
        ]
        missing_fields = [field for field in required_fields if photo_data.get(field) is None]

        if missing_fields:
            raise ValidationError(f"Missing required fields: {missing_fields}", field=missing_fields[0])

        photo = cls(
            photo_id=photo_data['photo_id'],
            title=photo_data.get('title') or {},
            description=photo_data.get('description') or {},
            album_id=photo_data.get('album_id'),
            tags=photo_data.get('tags') or [],
            is_published=photo_data.get('is_published', True),
            is_leading=photo_data.get('is_leading', False),
            uploaded_by=photo_data['uploaded_by'],
            filename=photo_data['filename'],
            original_filename=photo_data['original_filename'],
            mime_type=photo_data['mime_type'],
            size=photo_data['size'],
            stored_size=photo_data.get('stored_size'),
            compression_ratio=photo_data.get('compression_ratio'),
            content_hash=photo_data['content_hash'],
            name_size_key=build_name_size_key(photo_data['original_filename'], photo_data['size']),
            geometry=photo_data['geometry'],
            storage=photo_data['storage'],
            metadata=photo_data.get('metadata'),
        )
        if photo_data.get('uploaded_at'):
            photo.uploaded_at = photo_data['uploaded_at']

        try:
            # Never overwrite an existing identity
            photo.save(condition=cls.photo_id.does_not_exist())
        except Exception as e:
            logger.log_database_operation(
                table_name=cls.Meta.table_name,
                operation='create',
                success=False,
                photo_id=photo.photo_id,
                error=str(e)
            )
            error_response = error_handler.handle_dynamodb_error(e, 'create_photo', cls.Meta.table_name)
            raise PersistenceError(
                error_response['error_message'],
                operation='create_photo',
                table=cls.Meta.table_name,
                original_error=str(e)
            )

        logger.log_database_operation(
            table_name=cls.Meta.table_name,
            operation='create',
            success=True,
            photo_id=photo.photo_id,
            album_id=photo.album_id
        )
        return photo

    @classmethod
    def get_photo(cls, photo_id: str) -> Optional['Photo']:
        """
        Get photo by ID

        Returns:
            Photo instance or None if not found
        """
        try:
            return cls.get(photo_id)
        except DoesNotExist:
            return None
        except Exception as e:
            logger.log_database_operation(
                table_name=cls.Meta.table_name,
                operation='get',
                success=False,
                photo_id=photo_id,
                error=str(e)
            )
            error_response = error_handler.handle_dynamodb_error(e, 'get_photo', cls.Meta.table_name)
            raise PersistenceError(
                error_response['error_message'],
                operation='get_photo',
                table=cls.Meta.table_name,
                original_error=str(e)
            )

    @classmethod
    def find_by_content_hash(cls, content_hash: str) -> Optional['Photo']:
        """First photo whose stored fingerprint equals content_hash"""
        return cls._first_from_index(cls.content_hash_index, content_hash, 'find_by_content_hash')

    @classmethod
    def find_by_name_and_size(cls, original_filename: str, size: int, album_id: str = None) -> Optional['Photo']:
        """
        First photo with this original filename and byte size

        Args:
            original_filename: Filename as uploaded
            size: Byte size of the original
            album_id: Restrict the match to one album when given
        """
        key = build_name_size_key(original_filename, size)
        condition = (cls.album_id == album_id) if album_id else None
        return cls._first_from_index(cls.name_size_index, key, 'find_by_name_and_size', condition)

    @classmethod
    def _first_from_index(cls, index, hash_key: str, operation: str, filter_condition=None) -> Optional['Photo']:
        try:
            for photo in index.query(hash_key, filter_condition=filter_condition):
                logger.log_database_operation(
                    table_name=cls.Meta.table_name,
                    operation='query',
                    success=True,
                    index=index.Meta.index_name,
                    photo_id=photo.photo_id
                )
                return photo
            return None
        except Exception as e:
            logger.log_database_operation(
                table_name=cls.Meta.table_name,
                operation='query',
                success=False,
                index=index.Meta.index_name,
                error=str(e)
            )
            error_response = error_handler.handle_dynamodb_error(e, operation, cls.Meta.table_name)
            raise PersistenceError(
                error_response['error_message'],
                operation=operation,
                table=cls.Meta.table_name,
                original_error=str(e)
            )

    def update_file_fields(self, fields: Dict[str, Any]) -> 'Photo':
        """
        Overwrite the file-derived fields, leaving identity and caller-owned fields untouched

        Args:
            fields: Subset of FILE_FIELDS with their new values

        Returns:
            Updated Photo instance
        """
        unknown = [key for key in fields if key not in self.FILE_FIELDS]
        if unknown:
            raise ValidationError(f"Not a file field: {unknown}", field=unknown[0])

        for key, value in fields.items():
            setattr(self, key, value)
        self.name_size_key = build_name_size_key(self.original_filename, self.size)

        try:
            self.save(condition=Photo.photo_id.exists())
        except Exception as e:
            logger.log_database_operation(
                table_name=self.Meta.table_name,
                operation='update',
                success=False,
                photo_id=self.photo_id,
                error=str(e)
            )
            error_response = error_handler.handle_dynamodb_error(e, 'update_file_fields', self.Meta.table_name)
            raise PersistenceError(
                error_response['error_message'],
                operation='update_file_fields',
                table=self.Meta.table_name,
                original_error=str(e)
            )

        logger.log_database_operation(
            table_name=self.Meta.table_name,
            operation='update',
            success=True,
            photo_id=self.photo_id,
            updates=list(fields.keys())
        )
        return self

    def stored_paths(self) -> List[str]:
        """Storage paths of the original and every derivative"""
        storage = self.storage or {}
        paths = []
        if storage.get('path'):
            paths.append(storage['path'])
        thumbnail_paths = storage.get('thumbnail_paths')
        if thumbnail_paths:
            paths.extend(path for path in thumbnail_paths.values() if path)
        else:
            # Older records only carry serve URLs
            paths.extend(path_from_serve_url(url) for url in (storage.get('thumbnails') or {}).values() if url)
        return paths

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert photo to dictionary representation
        """
        return {
            'photo_id': self.photo_id,
            'title': self.title,
            'description': self.description,
            'album_id': self.album_id,
            'tags': self.tags,
            'is_published': self.is_published,
            'is_leading': self.is_leading,
            'uploaded_by': self.uploaded_by,
            'uploaded_at': self.uploaded_at.isoformat() if self.uploaded_at else None,
            'filename': self.filename,
            'original_filename': self.original_filename,
            'mime_type': self.mime_type,
            'size': self.size,
            'stored_size': self.stored_size,
            'compression_ratio': self.compression_ratio,
            'content_hash': self.content_hash,
            'geometry': self.geometry,
            'storage': self.storage,
            'metadata': self.metadata,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
