"""
PynamoDB model for User records (read-only from the pipeline's side)
"""
from typing import Optional
from pynamodb.models import Model
from pynamodb.attributes import UnicodeAttribute
from pynamodb.indexes import GlobalSecondaryIndex, AllProjection
from ..config import config
from ..constants import RecordConstants
from ..exceptions import PersistenceError
from ..logger import repository_logger as logger
from ..error_handler import error_handler


class UsernameIndex(GlobalSecondaryIndex):
    """GSI for looking up users by username"""
    class Meta:
        index_name = RecordConstants.USERNAME_INDEX
        projection = AllProjection()

    username = UnicodeAttribute(hash_key=True)


class User(Model):

    class Meta:
        table_name = config.user_table_name
        region = config.aws_region
        billing_mode = 'PAY_PER_REQUEST'

    user_id = UnicodeAttribute(hash_key=True)
    username = UnicodeAttribute()
    role = UnicodeAttribute(null=True)

    username_index = UsernameIndex()

    @classmethod
    def find_by_username(cls, username: str) -> Optional['User']:
        try:
            for user in cls.username_index.query(username, limit=1):
                return user
            return None
        except Exception as e:
            logger.log_database_operation(
                table_name=cls.Meta.table_name,
                operation='query',
                success=False,
                username=username,
                error=str(e)
            )
            error_response = error_handler.handle_dynamodb_error(e, 'find_by_username', cls.Meta.table_name)
            raise PersistenceError(
                error_response['error_message'],
                operation='find_by_username',
                table=cls.Meta.table_name,
                original_error=str(e)
            )
