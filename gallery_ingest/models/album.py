"""
PynamoDB model for Album records
"""
from datetime import datetime, timezone
from typing import Optional
from pynamodb.models import Model
from pynamodb.attributes import UnicodeAttribute, UTCDateTimeAttribute, NumberAttribute
from pynamodb.exceptions import DoesNotExist
from ..config import config
from ..exceptions import PersistenceError
from ..logger import repository_logger as logger
from ..error_handler import error_handler


class Album(Model):
    """
    Album record; only the fields the upload pipeline reads or maintains
    """

    class Meta:
        table_name = config.album_table_name
        region = config.aws_region
        billing_mode = 'PAY_PER_REQUEST'

    album_id = UnicodeAttribute(hash_key=True)
    name = UnicodeAttribute(null=True)
    alias = UnicodeAttribute(null=True)
    storage_provider = UnicodeAttribute(null=True)
    storage_path = UnicodeAttribute(null=True)
    photo_count = NumberAttribute(default=0)

    created_at = UTCDateTimeAttribute(default=lambda: datetime.now(timezone.utc))
    updated_at = UTCDateTimeAttribute(default=lambda: datetime.now(timezone.utc))

    @property
    def base_path(self) -> str:
        """Folder the album's photos are stored under"""
        return (self.storage_path or self.alias or self.album_id).strip('/')

    @classmethod
    def get_album(cls, album_id: str) -> Optional['Album']:
        try:
            return cls.get(album_id)
        except DoesNotExist:
            return None
        except Exception as e:
            logger.log_database_operation(
                table_name=cls.Meta.table_name,
                operation='get',
                success=False,
                album_id=album_id,
                error=str(e)
            )
            error_response = error_handler.handle_dynamodb_error(e, 'get_album', cls.Meta.table_name)
            raise PersistenceError(
                error_response['error_message'],
                operation='get_album',
                table=cls.Meta.table_name,
                original_error=str(e)
            )

    @classmethod
    def increment_photo_count(cls, album_id: str, amount: int = 1) -> int:
        """
        Atomically add to photo_count with an ADD update expression

        Returns:
            The counter value after the update
        """
        try:
            album = cls(album_id)
            album.update(
                actions=[
                    cls.photo_count.add(amount),
                    cls.updated_at.set(datetime.now(timezone.utc))
                ],
                condition=cls.album_id.exists()
            )
        except Exception as e:
            logger.log_database_operation(
                table_name=cls.Meta.table_name,
                operation='increment_photo_count',
                success=False,
                album_id=album_id,
                error=str(e)
            )
            error_response = error_handler.handle_dynamodb_error(e, 'increment_photo_count', cls.Meta.table_name)
            raise PersistenceError(
                error_response['error_message'],
                operation='increment_photo_count',
                table=cls.Meta.table_name,
                original_error=str(e)
            )

        new_count = int(album.photo_count)
        logger.log_database_operation(
            table_name=cls.Meta.table_name,
            operation='increment_photo_count',
            success=True,
            album_id=album_id,
            photo_count=new_count
        )
        return new_count
