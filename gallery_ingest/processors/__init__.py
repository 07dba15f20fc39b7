"""
Image processors: fingerprinting, geometry, derivatives and metadata
"""
from .hasher import ContentHasher, hash_content
from .geometry import GeometryAnalyzer, ImageGeometry
from .image import Derivative, DerivativeGenerator, DerivativeSet, target_dimensions
from .metadata import GpsPosition, MetadataBlock, MetadataExtractor

__all__ = [
    'ContentHasher',
    'hash_content',
    'GeometryAnalyzer',
    'ImageGeometry',
    'Derivative',
    'DerivativeGenerator',
    'DerivativeSet',
    'target_dimensions',
    'GpsPosition',
    'MetadataBlock',
    'MetadataExtractor',
]
