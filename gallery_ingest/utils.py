"""
Shared helpers for naming, paths and cancellation
"""
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Any
from urllib.parse import quote, unquote
from .constants import StorageConstants
from .exceptions import UploadCancelledError


def build_serve_url(prefix: str, provider: str, path: str) -> str:
    """
    Build the URL that serves a stored object back to clients

    Args:
        prefix: Serve URL prefix (e.g. '/api/storage/serve')
        provider: Storage provider id
        path: Provider-relative storage path

    Returns:
        '{prefix}/{provider}/{encoded path}', path encoded like encodeURIComponent
    """
    encoded = quote(path, safe=StorageConstants.URI_COMPONENT_SAFE)
    return f"{prefix.rstrip('/')}/{provider}/{encoded}"


def path_from_serve_url(url: str) -> str:
    """Recover the storage path from a serve URL built by build_serve_url"""
    encoded = url.rsplit('/', 1)[-1]
    return unquote(encoded)


def join_storage_path(*parts: str) -> str:
    """Join path segments with '/', skipping empty ones and stray slashes"""
    segments = []
    for part in parts:
        if not part:
            continue
        segments.extend(s for s in str(part).split('/') if s)
    return '/'.join(segments)


def generate_storage_filename(original_filename: str, now: Optional[datetime] = None) -> str:
    """
    Build the stored filename: '{epoch millis}-{original filename}'

    Path separators in the original name are replaced so the result stays one segment.
    """
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    safe_name = original_filename.replace('/', '_').replace('\\', '_')
    return f"{millis}-{safe_name}"


def generate_photo_id() -> str:
    """Generate a unique photo identifier"""
    return uuid.uuid4().hex


def normalize_id(value: Any) -> Optional[str]:
    """Identifiers cross the repository boundary as plain strings"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class CancellationToken:
    """
    Cooperative cancellation flag with an optional deadline

    The pipeline calls ``raise_if_cancelled`` between steps; providers receive
    the token and may check it before doing network work.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self.deadline = time.monotonic() + timeout_seconds if timeout_seconds is not None else None

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_cancelled(self, operation: str = None):
        if self.cancelled:
            reason = 'deadline exceeded' if not self._event.is_set() else 'cancelled by caller'
            raise UploadCancelledError(f"Upload cancelled: {reason}", operation=operation)


def check_cancelled(token: Optional[CancellationToken], operation: str = None):
    """raise_if_cancelled for an optional token"""
    if token is not None:
        token.raise_if_cancelled(operation)
