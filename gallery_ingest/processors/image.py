"""
Derivative generation using Pillow
Renders the thumbnail family and the blur placeholder for an uploaded image
"""
import io
import base64
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Tuple, Optional, List
from PIL import Image, ImageOps, UnidentifiedImageError
from ..constants import ImageConstants, SizeSpec
from ..exceptions import UnsupportedFormatError
from ..logger import pipeline_logger
from .geometry import ImageGeometry


@dataclass
class Derivative:
    """One rendered thumbnail size"""
    name: str
    data: bytes
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)


DerivativeSet = Dict[str, Derivative]


def target_dimensions(geometry: ImageGeometry, size_spec: SizeSpec) -> Tuple[int, int]:
    """
    Fit the display dimensions inside the size box without enlarging

    Args:
        geometry: Geometry of the source image
        size_spec: Target size box

    Returns:
        (width, height) of the derivative, each at least 1
    """
    width, height = geometry.display_width, geometry.display_height
    scale = min(size_spec.width / width, size_spec.height / height, 1.0)
    return max(1, round(width * scale)), max(1, round(height * scale))


def _hex_to_rgb(color: str) -> Tuple[int, int, int]:
    color = color.lstrip('#')
    return tuple(int(color[i:i + 2], 16) for i in (0, 2, 4))


class DerivativeGenerator:
    """
    Produces aspect-preserving JPEG derivatives with orientation baked into the pixels
    """

    def __init__(self, sizes: List[SizeSpec] = None, max_workers: int = 2, blur_size: int = None):
        self.sizes = sizes or ImageConstants.THUMBNAIL_SIZES
        self.max_workers = max(1, max_workers)
        self.blur_size = blur_size or ImageConstants.BLUR_SIZE
        self.output_format = 'JPEG'

    def generate_all(self, data: bytes, geometry: ImageGeometry) -> DerivativeSet:
        """
        Render every configured size

        Args:
            data: Raw image bytes
            geometry: Geometry from GeometryAnalyzer for the same bytes

        Returns:
            Mapping of size name to Derivative; sizes that fail are absent

        Raises:
            UnsupportedFormatError: If the source cannot be decoded at all
        """
        self._open(data).close()

        derivatives: DerivativeSet = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                spec.name: executor.submit(self._render_size, data, geometry, spec)
                for spec in self.sizes
            }
            for spec in self.sizes:
                try:
                    derivatives[spec.name] = futures[spec.name].result()
                except Exception as e:
                    pipeline_logger.error(
                        f"Failed to render derivative {spec.name}",
                        error=e,
                        size=spec.name,
                        box=(spec.width, spec.height)
                    )
                    # Continue with the remaining sizes
                    continue

        pipeline_logger.info(
            "Derivatives generated",
            requested=len(self.sizes),
            generated=len(derivatives),
            sizes=list(derivatives.keys())
        )
        return derivatives

    def generate_blur_placeholder(self, data: bytes, geometry: Optional[ImageGeometry] = None) -> str:
        """
        Build a tiny, heavily compressed JPEG data URL for progressive loading

        Never raises: on any failure a fixed gray gradient placeholder is returned.
        """
        try:
            image = self._prepare(data)
            if geometry is None or (image.width, image.height) != (geometry.display_width, geometry.display_height):
                geometry = ImageGeometry.from_dimensions(image.width, image.height)
            box = SizeSpec('blur', self.blur_size, self.blur_size, ImageConstants.BLUR_QUALITY, '')
            image = image.resize(target_dimensions(geometry, box), Image.Resampling.LANCZOS)
            encoded = self._encode(image, ImageConstants.BLUR_QUALITY, progressive=False)
        except Exception as e:
            pipeline_logger.warning("Blur placeholder generation failed, using gradient", error_message=str(e))
            return self.fallback_placeholder()

        return ImageConstants.BASE64_JPEG_PREFIX + base64.b64encode(encoded).decode('ascii')

    def compress_original(self, data: bytes, geometry: ImageGeometry,
                          spec: SizeSpec = None) -> Optional[Derivative]:
        """
        Re-encode the original as a progressive JPEG that fits inside the
        gallery box, keeping its EXIF block minus the orientation tag

        Args:
            data: Raw image bytes
            geometry: Geometry from GeometryAnalyzer for the same bytes
            spec: Target box and quality; defaults to ORIGINAL_COMPRESSION

        Returns:
            The compressed image, or None when it fails or is not smaller than data
        """
        spec = spec or ImageConstants.ORIGINAL_COMPRESSION
        try:
            image = self._prepare(data)
            exif = image.info.get('exif')
            if (image.width, image.height) != (geometry.display_width, geometry.display_height):
                geometry = ImageGeometry.from_dimensions(image.width, image.height)

            width, height = target_dimensions(geometry, spec)
            if (width, height) != image.size:
                image = image.resize((width, height), Image.Resampling.LANCZOS)
            encoded = self._encode(image, spec.quality, progressive=True, exif=exif)
        except Exception as e:
            pipeline_logger.warning("Original compression failed, storing raw bytes", error_message=str(e))
            return None

        if len(encoded) >= len(data):
            pipeline_logger.debug("Compressed original not smaller, storing raw bytes",
                                  original_size=len(data), compressed_size=len(encoded))
            return None

        pipeline_logger.info(
            "Original compressed",
            original_size=len(data),
            compressed_size=len(encoded),
            width=width,
            height=height
        )
        return Derivative(name=spec.name, data=encoded, width=width, height=height)

    def fallback_placeholder(self) -> str:
        """Diagonal light-gray gradient placeholder, identical on every call"""
        size = self.blur_size
        stops = [_hex_to_rgb(c) for c in ImageConstants.BLUR_GRADIENT_COLORS]
        image = Image.new('RGB', (size, size))
        pixels = image.load()
        span = max(1, 2 * (size - 1))

        for y in range(size):
            for x in range(size):
                position = (x + y) / span
                if position <= 0.5:
                    start, end, t = stops[0], stops[1], position * 2
                else:
                    start, end, t = stops[1], stops[2], (position - 0.5) * 2
                pixels[x, y] = tuple(round(a + (b - a) * t) for a, b in zip(start, end))

        encoded = self._encode(image, ImageConstants.BLUR_QUALITY, progressive=False)
        return ImageConstants.BASE64_JPEG_PREFIX + base64.b64encode(encoded).decode('ascii')

    def _render_size(self, data: bytes, geometry: ImageGeometry, spec: SizeSpec) -> Derivative:
        image = self._prepare(data)

        if (image.width, image.height) != (geometry.display_width, geometry.display_height):
            pipeline_logger.warning(
                "Decoded size disagrees with analyzed geometry",
                size=spec.name,
                decoded=(image.width, image.height),
                expected=(geometry.display_width, geometry.display_height)
            )
            geometry = ImageGeometry.from_dimensions(image.width, image.height)

        width, height = target_dimensions(geometry, spec)
        if (width, height) != image.size:
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        encoded = self._encode(image, spec.quality, progressive=True)

        pipeline_logger.debug(
            f"Derivative {spec.name} rendered",
            size=spec.name,
            width=width,
            height=height,
            file_size=len(encoded)
        )
        return Derivative(name=spec.name, data=encoded, width=width, height=height)

    def _open(self, data: bytes) -> Image.Image:
        try:
            return Image.open(io.BytesIO(data))
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise UnsupportedFormatError(
                "Unsupported or corrupt image data",
                operation='generate_derivatives',
                original_error=str(e)
            )

    def _prepare(self, data: bytes) -> Image.Image:
        """Decode, apply EXIF orientation, and flatten to RGB"""
        image = self._open(data)
        image = ImageOps.exif_transpose(image)

        if image.mode in ('RGBA', 'P', 'LA', 'PA'):
            # Handle transparency by adding white background
            if image.mode in ('P', 'PA'):
                image = image.convert('RGBA')
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[-1])
            image = background
        elif image.mode != 'RGB':
            image = image.convert('RGB')

        return image

    def _encode(self, image: Image.Image, quality: int, progressive: bool, exif: bytes = None) -> bytes:
        # Only exif passed in explicitly is written; _prepare has already dropped its orientation tag
        output_buffer = io.BytesIO()
        options = {'exif': exif} if exif else {}
        image.save(
            output_buffer,
            format=self.output_format,
            quality=quality,
            optimize=True,
            progressive=progressive,
            **options
        )
        return output_buffer.getvalue()
