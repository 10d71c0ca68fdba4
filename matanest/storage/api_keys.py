import threading
from typing import List, Optional
import logging

from matanest.media_service.models import ApiKey

log = logging.getLogger(__name__)

MASK = "•" * 20

def mask_key(key: str) -> str:
    return f"{MASK}{key[-4:]}"

# -------------------------
# API Key Ring
# -------------------------
# Display-only list. Generation always uses the configured credential.
class ApiKeyRing:
    def __init__(self):
        self._keys: List[ApiKey] = []
        self._lock = threading.Lock()

    def add(self, key: str) -> ApiKey:
        with self._lock:
            api_key = ApiKey(key=key, is_active=not self._keys)
            self._keys.append(api_key)
        log.info("Added API key %s", api_key.id)
        return api_key

    def list(self) -> List[ApiKey]:
        with self._lock:
            return list(self._keys)

    def remove(self, key_id: str) -> Optional[ApiKey]:
        with self._lock:
            for i, api_key in enumerate(self._keys):
                if api_key.id == key_id:
                    return self._keys.pop(i)
        return None
