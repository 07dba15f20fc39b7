"""
Gallery Ingest Constants
"""
from collections import namedtuple


SizeSpec = namedtuple('SizeSpec', ['name', 'width', 'height', 'quality', 'folder'])


class ImageConstants:
    """Image processing constants"""

    # Derivative sizes, smallest first
    MICRO = SizeSpec('micro', 80, 80, 60, 'micro')
    SMALL = SizeSpec('small', 200, 200, 70, 'small')
    MEDIUM = SizeSpec('medium', 400, 400, 80, 'medium')
    LARGE = SizeSpec('large', 800, 800, 85, 'large')
    HERO = SizeSpec('hero', 1200, 800, 90, 'hero')

    THUMBNAIL_SIZES = [MICRO, SMALL, MEDIUM, LARGE, HERO]

    # Single-thumbnail fallback order for legacy consumers
    LEGACY_THUMBNAIL_PREFERENCE = ['medium', 'small']

    # Blur placeholder
    BLUR_SIZE = 20
    BLUR_QUALITY = 20
    BLUR_GRADIENT_COLORS = ['#f3f4f6', '#e5e7eb', '#d1d5db']

    # EXIF
    ORIENTATION_TAG = 0x0112
    QUARTER_TURN_ORIENTATIONS = (5, 6, 7, 8)

    # Base64 prefixes
    BASE64_JPEG_PREFIX = 'data:image/jpeg;base64,'

    OUTPUT_MIME_TYPE = 'image/jpeg'
    OUTPUT_EXTENSION = '.jpg'

    # Stored original: re-encoded inside this box, EXIF kept
    ORIGINAL_COMPRESSION = SizeSpec('original', 1200, 800, 85, '')

    # Extensions picked up by folder imports
    IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp', '.gif', '.tif', '.tiff', '.bmp')


class StorageConstants:
    """Storage provider identifiers and conventions"""

    LOCAL = 'local'
    AWS_S3 = 'aws-s3'
    WASABI = 'wasabi'
    BACKBLAZE = 'backblaze'
    GOOGLE_DRIVE = 'google-drive'

    S3_COMPATIBLE_PROVIDERS = [AWS_S3, WASABI, BACKBLAZE]
    ALL_PROVIDERS = [LOCAL, AWS_S3, WASABI, BACKBLAZE, GOOGLE_DRIVE]

    DRIVE_FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'

    # Characters encodeURIComponent leaves alone besides alphanumerics and -_.
    URI_COMPONENT_SAFE = "!~*'()"


class RecordConstants:
    """Record store conventions"""

    DEFAULT_LANGUAGE = 'en'
    ZERO_USER_ID = '000000000000000000000000'

    CONTENT_HASH_INDEX = 'content-hash-index'
    NAME_SIZE_INDEX = 'name-size-index'
    USERNAME_INDEX = 'username-index'
