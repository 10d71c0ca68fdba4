import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from matanest.media_service.models import MediaItem, MediaStatus, Metadata

log = logging.getLogger(__name__)

# -------------------------
# Media Store
# -------------------------
class MediaStore:
    """Owns the ordered media collection.

    Every mutation replaces whole items under one lock, so readers always see
    a consistent snapshot. Lookups of unknown ids return None.
    """

    def __init__(self):
        self._items: "OrderedDict[str, MediaItem]" = OrderedDict()
        self._lock = threading.Lock()
        log.info("Initialized media store")

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._items

    def add_items(self, items: List[MediaItem]) -> List[MediaItem]:
        with self._lock:
            for item in items:
                if item.id in self._items:
                    raise ValueError(f"Duplicate media item id {item.id}")
            for item in items:
                self._items[item.id] = item
        log.debug("Added %d media items", len(items))
        return items

    def list_items(self, status: Optional[MediaStatus] = None) -> List[MediaItem]:
        with self._lock:
            items = list(self._items.values())
        if status is not None:
            items = [it for it in items if it.status == status]
        return items

    def get_item(self, item_id: str) -> Optional[MediaItem]:
        with self._lock:
            return self._items.get(item_id)

    def update_item(self, item_id: str, fn: Callable[[MediaItem], MediaItem]) -> Optional[MediaItem]:
        """Applies fn to the current item and stores its result."""
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            updated = fn(item)
            self._items[item_id] = updated
            return updated

    def map_items(self, fn: Callable[[MediaItem], MediaItem]) -> List[MediaItem]:
        """Replaces the whole collection with fn applied to each item, in order."""
        with self._lock:
            self._items = OrderedDict((item_id, fn(item)) for item_id, item in self._items.items())
            return list(self._items.values())

    def delete_item(self, item_id: str) -> Optional[MediaItem]:
        with self._lock:
            return self._items.pop(item_id, None)

    def count_by_status(self) -> Dict[MediaStatus, int]:
        counts = {status: 0 for status in MediaStatus}
        for item in self.list_items():
            counts[item.status] += 1
        return counts

    # Generation lifecycle transitions

    def set_processing(self, item_id: str) -> Optional[MediaItem]:
        return self.update_item(
            item_id, lambda it: it.replace(status=MediaStatus.PROCESSING, metadata=None, error=None)
        )

    def set_completed(self, item_id: str, metadata: Metadata) -> Optional[MediaItem]:
        return self.update_item(
            item_id, lambda it: it.replace(status=MediaStatus.COMPLETED, metadata=metadata, error=None)
        )

    def set_error(self, item_id: str, message: str) -> Optional[MediaItem]:
        return self.update_item(
            item_id, lambda it: it.replace(status=MediaStatus.ERROR, metadata=None, error=message)
        )

    def close(self):
        with self._lock:
            self._items.clear()
        log.info("Closed media store")
