"""
Record store boundary for the upload pipeline
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from ..exceptions import EntityNotFoundError
from ..logger import repository_logger as logger
from ..models import Photo, Album, User
from ..utils import normalize_id


class PhotoRepository(ABC):
    """
    Everything the pipeline needs from the record store

    Identifiers are plain strings on both sides of this interface.
    """

    @abstractmethod
    def get_album_by_id(self, album_id: str) -> Optional[Album]:
        ...

    @abstractmethod
    def find_by_fingerprint(self, content_hash: str) -> Optional[Photo]:
        ...

    @abstractmethod
    def find_by_name_and_size(self, original_filename: str, size: int,
                              album_id: Optional[str] = None) -> Optional[Photo]:
        ...

    @abstractmethod
    def insert(self, record_data: Dict[str, Any]) -> Photo:
        ...

    @abstractmethod
    def update_file_fields(self, photo_id: str, fields: Dict[str, Any]) -> Photo:
        ...

    @abstractmethod
    def increment_album_photo_count(self, album_id: str) -> int:
        ...

    @abstractmethod
    def resolve_system_user_id(self) -> Optional[str]:
        ...


class DynamoPhotoRepository(PhotoRepository):
    """PhotoRepository backed by the PynamoDB models"""

    def __init__(self, system_username: str = 'system'):
        self.system_username = system_username

    def get_album_by_id(self, album_id: str) -> Optional[Album]:
        album_id = normalize_id(album_id)
        if not album_id:
            return None
        return Album.get_album(album_id)

    def find_by_fingerprint(self, content_hash: str) -> Optional[Photo]:
        return Photo.find_by_content_hash(content_hash)

    def find_by_name_and_size(self, original_filename: str, size: int,
                              album_id: Optional[str] = None) -> Optional[Photo]:
        return Photo.find_by_name_and_size(original_filename, size, normalize_id(album_id))

    def insert(self, record_data: Dict[str, Any]) -> Photo:
        data = dict(record_data)
        data['photo_id'] = normalize_id(data.get('photo_id'))
        data['album_id'] = normalize_id(data.get('album_id'))
        data['uploaded_by'] = normalize_id(data.get('uploaded_by'))
        return Photo.create_photo(data)

    def update_file_fields(self, photo_id: str, fields: Dict[str, Any]) -> Photo:
        photo = Photo.get_photo(normalize_id(photo_id))
        if photo is None:
            raise EntityNotFoundError('photo', photo_id)
        return photo.update_file_fields(fields)

    def increment_album_photo_count(self, album_id: str) -> int:
        return Album.increment_photo_count(normalize_id(album_id))

    def resolve_system_user_id(self) -> Optional[str]:
        user = User.find_by_username(self.system_username)
        if user is None:
            logger.warning("System user not found", username=self.system_username)
            return None
        return normalize_id(user.user_id)
