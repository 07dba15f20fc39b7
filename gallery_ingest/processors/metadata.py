"""
Descriptive EXIF metadata extraction
"""
import io
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any
from PIL import Image, ExifTags
from ..logger import pipeline_logger


@dataclass
class GpsPosition:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None

    def is_empty(self) -> bool:
        return self.latitude is None and self.longitude is None and self.altitude is None


@dataclass
class MetadataBlock:
    """Camera and capture details read from EXIF; every field is optional"""
    make: Optional[str] = None
    model: Optional[str] = None
    date_time: Optional[str] = None
    exposure_time: Optional[str] = None
    f_number: Optional[float] = None
    iso: Optional[int] = None
    focal_length: Optional[float] = None
    gps: Optional[GpsPosition] = None
    software: Optional[str] = None
    copyright: Optional[str] = None

    def is_empty(self) -> bool:
        return all(value is None for value in asdict(self).values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, dropping absent fields"""
        result = {key: value for key, value in asdict(self).items() if value is not None}
        if 'gps' in result:
            result['gps'] = {key: value for key, value in result['gps'].items() if value is not None}
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['MetadataBlock']:
        if not data:
            return None
        fields = dict(data)
        gps = fields.pop('gps', None)
        block = cls(**{key: value for key, value in fields.items() if key in cls.__dataclass_fields__})
        if gps:
            block.gps = GpsPosition(**gps)
        return block


def _rational_to_float(value) -> Optional[float]:
    """IFDRational, (num, den) tuple or plain number to float"""
    if value is None:
        return None
    if isinstance(value, tuple) and len(value) == 2:
        numerator, denominator = value
        return numerator / denominator if denominator else None
    try:
        result = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    # IFDRational with a zero denominator reports nan
    return None if result != result else result


def _dms_to_decimal(dms) -> Optional[float]:
    """Convert degrees/minutes/seconds to decimal degrees"""
    try:
        degrees, minutes, seconds = (_rational_to_float(part) or 0.0 for part in dms)
    except (TypeError, ValueError):
        return None
    return degrees + (minutes / 60) + (seconds / 3600)


def _clean_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='ignore')
    value = str(value).replace('\x00', '').strip()
    return value or None


class MetadataExtractor:
    """
    Reads camera, exposure, capture date and GPS fields from EXIF
    """

    def extract(self, data: bytes) -> Optional[MetadataBlock]:
        """
        Extract descriptive metadata

        Args:
            data: Raw image bytes

        Returns:
            MetadataBlock, or None when nothing useful is present or parsing fails
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                exif = image.getexif()
                block = self._build_block(exif)
        except Exception as e:
            pipeline_logger.warning("Metadata extraction failed", error_message=str(e))
            return None

        if block.is_empty():
            return None
        return block

    def _build_block(self, exif: Image.Exif) -> MetadataBlock:
        base = ExifTags.Base
        exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
        gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)

        block = MetadataBlock(
            make=_clean_text(exif.get(base.Make)),
            model=_clean_text(exif.get(base.Model)),
            software=_clean_text(exif.get(base.Software)),
            copyright=_clean_text(exif.get(base.Copyright)),
            date_time=self._parse_datetime(
                exif_ifd.get(base.DateTimeOriginal) or exif.get(base.DateTime)
            ),
            exposure_time=self._format_exposure(exif_ifd.get(base.ExposureTime)),
            f_number=_rational_to_float(exif_ifd.get(base.FNumber)),
            focal_length=_rational_to_float(exif_ifd.get(base.FocalLength)),
            iso=self._parse_iso(exif_ifd.get(base.ISOSpeedRatings)),
        )

        if gps_ifd:
            gps = self._parse_gps(gps_ifd)
            if not gps.is_empty():
                block.gps = gps

        return block

    @staticmethod
    def _parse_datetime(value) -> Optional[str]:
        """EXIF 'YYYY:MM:DD HH:MM:SS' to ISO-8601"""
        value = _clean_text(value)
        if not value:
            return None
        try:
            return datetime.strptime(value[:19], '%Y:%m:%d %H:%M:%S').isoformat()
        except ValueError:
            return None

    @staticmethod
    def _format_exposure(value) -> Optional[str]:
        seconds = _rational_to_float(value)
        if not seconds or seconds <= 0:
            return None
        if seconds < 1:
            return f"1/{round(1 / seconds)}"
        return f"{seconds:g}"

    @staticmethod
    def _parse_iso(value) -> Optional[int]:
        if isinstance(value, (tuple, list)):
            value = value[0] if value else None
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _parse_gps(gps_ifd) -> GpsPosition:
        GPS = ExifTags.GPS
        gps = GpsPosition()

        latitude = gps_ifd.get(GPS.GPSLatitude)
        if latitude:
            gps.latitude = _dms_to_decimal(latitude)
            if gps.latitude is not None and _clean_text(gps_ifd.get(GPS.GPSLatitudeRef)) == 'S':
                gps.latitude = -gps.latitude

        longitude = gps_ifd.get(GPS.GPSLongitude)
        if longitude:
            gps.longitude = _dms_to_decimal(longitude)
            if gps.longitude is not None and _clean_text(gps_ifd.get(GPS.GPSLongitudeRef)) == 'W':
                gps.longitude = -gps.longitude

        altitude = _rational_to_float(gps_ifd.get(GPS.GPSAltitude))
        if altitude is not None:
            altitude_ref = gps_ifd.get(GPS.GPSAltitudeRef, 0)
            if isinstance(altitude_ref, bytes):
                altitude_ref = altitude_ref[0] if altitude_ref else 0
            # Below sea level
            if altitude_ref == 1:
                altitude = -altitude
            gps.altitude = altitude

        return gps
