import threading
from typing import Dict, Optional, Tuple
import logging

log = logging.getLogger(__name__)

# -------------------------
# Blob Store
# -------------------------
class BlobStore:
    """In-memory file payloads, keyed by media item id.

    Backs both the preview endpoint and the payload sent for generation.
    """

    def __init__(self):
        self._blobs: Dict[str, Tuple[bytes, str]] = {}
        self._lock = threading.Lock()
        log.info("Initialized blob store")

    def upload(self, data: bytes, key: str, content_type: str):
        with self._lock:
            self._blobs[key] = (data, content_type)
        log.debug("Stored %d bytes under %s", len(data), key)

    def get(self, key: str) -> Optional[Tuple[bytes, str]]:
        with self._lock:
            return self._blobs.get(key)

    def read(self, key: str) -> bytes:
        blob = self.get(key)
        if blob is None:
            raise KeyError(key)
        return blob[0]

    def delete(self, key: str) -> bool:
        with self._lock:
            removed = self._blobs.pop(key, None)
        if removed is not None:
            log.debug("Released %s", key)
        return removed is not None

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._blobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)

    def close(self):
        with self._lock:
            self._blobs.clear()
        log.info("Closed blob store")
