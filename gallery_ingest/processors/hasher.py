"""
Content fingerprinting
"""
import hashlib


class ContentHasher:
    """SHA-256 fingerprint of raw upload bytes"""

    algorithm = 'sha256'

    def hash(self, data: bytes) -> str:
        """
        Fingerprint a byte buffer

        Args:
            data: Raw bytes, hashed as-is (no decoding or normalization)

        Returns:
            Lowercase hex digest, 64 characters
        """
        return hashlib.new(self.algorithm, data).hexdigest()


content_hasher = ContentHasher()


def hash_content(data: bytes) -> str:
    return content_hasher.hash(data)
