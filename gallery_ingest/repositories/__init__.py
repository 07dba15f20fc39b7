from .photo_repository import PhotoRepository, DynamoPhotoRepository

__all__ = ['PhotoRepository', 'DynamoPhotoRepository']
