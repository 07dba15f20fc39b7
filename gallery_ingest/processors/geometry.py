"""
Image geometry analysis: native size, EXIF orientation and display size
"""
import io
from dataclasses import dataclass, asdict
from typing import Dict, Any
from PIL import Image, UnidentifiedImageError
from ..constants import ImageConstants
from ..exceptions import UnsupportedFormatError
from ..logger import pipeline_logger


@dataclass(frozen=True)
class ImageGeometry:
    """Stored and as-displayed dimensions of one image"""
    native_width: int
    native_height: int
    display_width: int
    display_height: int
    orientation: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dimensions(cls, width: int, height: int, orientation: int = 1) -> 'ImageGeometry':
        """Build geometry from native dimensions, swapping for quarter-turn orientations"""
        if orientation in ImageConstants.QUARTER_TURN_ORIENTATIONS:
            return cls(width, height, height, width, orientation)
        return cls(width, height, width, height, orientation)


class GeometryAnalyzer:
    """
    Reads dimensions and orientation from the image header without decoding pixels
    """

    def analyze(self, data: bytes) -> ImageGeometry:
        """
        Analyze an image buffer

        Args:
            data: Raw image bytes

        Returns:
            ImageGeometry with display dimensions corrected for EXIF orientation

        Raises:
            UnsupportedFormatError: If the buffer is not a decodable image
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                width, height = image.size
                orientation = self._read_orientation(image)
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            raise UnsupportedFormatError(
                "Unsupported or corrupt image data",
                operation='analyze_geometry',
                original_error=str(e)
            )

        if not width or not height:
            raise UnsupportedFormatError("Image has no dimensions", operation='analyze_geometry')

        geometry = ImageGeometry.from_dimensions(width, height, orientation)
        pipeline_logger.debug("Image geometry analyzed", **geometry.to_dict())
        return geometry

    @staticmethod
    def _read_orientation(image: Image.Image) -> int:
        try:
            orientation = image.getexif().get(ImageConstants.ORIENTATION_TAG, 1)
        except (AttributeError, OSError, ValueError, SyntaxError):
            # Unreadable EXIF block
            return 1

        try:
            orientation = int(orientation)
        except (TypeError, ValueError):
            return 1
        return orientation if 1 <= orientation <= 8 else 1
