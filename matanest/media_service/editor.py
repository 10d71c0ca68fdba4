from typing import Callable, Dict, Optional, Tuple
import logging
import threading
import time

from matanest.storage.blobs import BlobStore
from matanest.storage.media_store import MediaStore
from matanest.media_service.models import CopyField, MediaItem, MediaStatus, Metadata
from matanest.exceptions import (
    InvalidMediaException,
    KeywordNotFoundException,
    MediaItemNotFoundException,
    MediaStateConflictException,
)

log = logging.getLogger(__name__)


class CopyTracker:
    """Remembers which field of an item was copied last, for a short window."""

    def __init__(self, window_seconds: float = 2.0, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._copied: Dict[str, Tuple[CopyField, float]] = {}
        self._lock = threading.Lock()

    def mark(self, item_id: str, field: CopyField):
        with self._lock:
            self._copied[item_id] = (field, self._clock() + self.window_seconds)

    def active(self, item_id: str) -> Optional[CopyField]:
        with self._lock:
            entry = self._copied.get(item_id)
            if entry is None:
                return None
            field, expires_at = entry
            if self._clock() >= expires_at:
                del self._copied[item_id]
                return None
            return field

    def forget(self, item_id: str):
        with self._lock:
            self._copied.pop(item_id, None)


def get_media_item(store: MediaStore, item_id: str) -> MediaItem:
    """Gets a media item or raises."""
    item = store.get_item(item_id)
    if item is None:
        raise MediaItemNotFoundException(item_id)
    return item


def _edit_metadata(store: MediaStore, item_id: str, fn: Callable[[Metadata], Metadata]) -> MediaItem:
    def apply(item: MediaItem) -> MediaItem:
        if item.status != MediaStatus.COMPLETED or item.metadata is None:
            raise MediaStateConflictException(
                f"Media item '{item_id}' has no metadata to edit (status {item.status.value})."
            )
        return item.replace(metadata=fn(item.metadata))

    updated = store.update_item(item_id, apply)
    if updated is None:
        raise MediaItemNotFoundException(item_id)
    return updated


def update_metadata(
    store: MediaStore,
    item_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> MediaItem:
    """Commits edited title and/or description."""
    changes = {}
    if title is not None:
        changes["title"] = title
    if description is not None:
        changes["description"] = description
    return _edit_metadata(store, item_id, lambda md: md.model_copy(update=changes))


def add_keyword(store: MediaStore, item_id: str, keyword: str) -> MediaItem:
    keyword = keyword.strip()
    if not keyword:
        raise InvalidMediaException("Keyword must not be empty.")
    return _edit_metadata(
        store, item_id, lambda md: md.model_copy(update={"keywords": [*md.keywords, keyword]})
    )


def remove_keyword(store: MediaStore, item_id: str, index: int) -> MediaItem:
    def drop(md: Metadata) -> Metadata:
        if index < 0 or index >= len(md.keywords):
            raise KeywordNotFoundException(item_id, index)
        return md.model_copy(update={"keywords": [kw for i, kw in enumerate(md.keywords) if i != index]})

    return _edit_metadata(store, item_id, drop)


def copy_field(store: MediaStore, tracker: CopyTracker, item_id: str, field: CopyField) -> str:
    """Returns the text of one metadata field and marks it as copied."""
    item = get_media_item(store, item_id)
    if item.metadata is None:
        raise MediaStateConflictException(f"Media item '{item_id}' has no metadata to copy.")
    if field == CopyField.KEYWORDS:
        text = ", ".join(item.metadata.keywords)
    else:
        text = getattr(item.metadata, field.value)
    tracker.mark(item_id, field)
    return text


def apply_to_all_titles(store: MediaStore, prefix: str, suffix: str) -> int:
    """Wraps the title of every completed item with prefix and suffix."""
    updated = 0

    def rewrite(item: MediaItem) -> MediaItem:
        nonlocal updated
        if item.status != MediaStatus.COMPLETED or item.metadata is None:
            return item
        updated += 1
        title = f"{prefix}{item.metadata.title}{suffix}"
        return item.replace(metadata=item.metadata.model_copy(update={"title": title}))

    store.map_items(rewrite)
    log.info("Rewrote %d titles", updated)
    return updated


def delete_item(store: MediaStore, blobs: BlobStore, tracker: CopyTracker, item_id: str) -> MediaItem:
    """Removes the item and releases its stored payload."""
    item = store.delete_item(item_id)
    if item is None:
        raise MediaItemNotFoundException(item_id)
    blobs.delete(item_id)
    tracker.forget(item_id)
    log.info("Deleted media item %s", item_id)
    return item
