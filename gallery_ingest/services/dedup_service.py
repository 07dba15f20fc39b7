"""
Duplicate detection for incoming uploads
"""
from typing import Optional
from ..contracts import DuplicateCheckResult
from ..logger import pipeline_logger as logger
from ..processors.hasher import ContentHasher
from ..repositories import PhotoRepository


class DuplicateDetector:
    """
    Looks for an existing photo matching an upload, strongest signal first:

    1. content fingerprint
    2. original filename and byte size
    3. original filename and byte size within the target album

    Lookup failures fail open: the upload is treated as new and the
    failure is reported in ``reason``.
    """

    REASON_FINGERPRINT = 'fingerprint'
    REASON_NAME_SIZE = 'name_size'
    REASON_ALBUM_NAME_SIZE = 'album_name_size'

    def __init__(self, repository: PhotoRepository, hasher: ContentHasher = None):
        self.repository = repository
        self.hasher = hasher or ContentHasher()

    def check(self, image_data: bytes, original_filename: str, album_id: Optional[str] = None,
              content_hash: Optional[str] = None) -> DuplicateCheckResult:
        """
        Check whether an upload duplicates an existing photo

        Args:
            image_data: Raw upload bytes
            original_filename: Filename as uploaded
            album_id: Target album, enables the album-scoped check
            content_hash: Precomputed fingerprint of image_data

        Returns:
            DuplicateCheckResult; exists is false when any lookup failed
        """
        content_hash = content_hash or self.hasher.hash(image_data)
        size = len(image_data)

        try:
            existing = self.repository.find_by_fingerprint(content_hash)
            if existing is not None:
                return self._found(existing, self.REASON_FINGERPRINT, original_filename)

            existing = self.repository.find_by_name_and_size(original_filename, size)
            if existing is not None:
                return self._found(existing, self.REASON_NAME_SIZE, original_filename)

            if album_id:
                existing = self.repository.find_by_name_and_size(original_filename, size, album_id)
                if existing is not None:
                    return self._found(existing, self.REASON_ALBUM_NAME_SIZE, original_filename)

        except Exception as e:
            logger.warning(
                "Duplicate check failed, treating upload as new",
                original_filename=original_filename,
                album_id=album_id,
                error_type=type(e).__name__,
                error_message=str(e)
            )
            return DuplicateCheckResult(exists=False, reason=f"lookup_failed: {e}")

        return DuplicateCheckResult(exists=False)

    @staticmethod
    def _found(existing, reason: str, original_filename: str) -> DuplicateCheckResult:
        logger.info(
            "Duplicate photo found",
            original_filename=original_filename,
            existing_photo_id=getattr(existing, 'photo_id', None),
            match=reason
        )
        return DuplicateCheckResult(exists=True, existing_record=existing, reason=reason)
