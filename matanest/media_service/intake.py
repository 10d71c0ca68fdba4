from datetime import datetime, timezone
from io import BytesIO
from typing import List, NamedTuple, Optional
import logging
import re
import xml.etree.ElementTree as ET

from PIL import Image

from matanest.storage.blobs import BlobStore
from matanest.storage.media_store import MediaStore
from matanest.media_service.models import MediaItem, MediaStatus
from matanest.exceptions import InvalidMediaException
from matanest.settings import Settings

log = logging.getLogger(__name__)

# Allowed content types
RASTER_IMAGE_TYPES = {
    "image/png",
    "image/jpeg",
    "image/gif",
}
ALLOWED_MEDIA_TYPES = RASTER_IMAGE_TYPES | {
    "image/svg+xml",
    "video/mp4",
    "video/quicktime",
}

UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class Upload(NamedTuple):
    filename: str
    content_type: str
    data: bytes


def validate_media_bytes(file_bytes: bytes, content_type: str) -> str:
    """Validate that the uploaded file is really of its declared type."""
    if content_type in RASTER_IMAGE_TYPES:
        try:
            img = Image.open(BytesIO(file_bytes))
            img.load()
            MIME_MAP = {
                "JPEG": "image/jpeg",
                "PNG": "image/png",
                "GIF": "image/gif",
            }
            mime_type = MIME_MAP.get((img.format or "").upper())
        except Exception:
            raise InvalidMediaException("Invalid image file")
        if mime_type not in RASTER_IMAGE_TYPES:
            raise InvalidMediaException(f"Unsupported image type: {img.format}")
        return mime_type
    elif content_type == "image/svg+xml":
        try:
            root = ET.fromstring(file_bytes.decode("utf-8"))
        except Exception:
            raise InvalidMediaException("Invalid SVG file")
        # Check if root tag is svg (with or without namespace)
        tag_name = root.tag.split("}")[-1].lower()
        if tag_name != "svg":
            raise InvalidMediaException("Invalid SVG root element")
        return "image/svg+xml"
    elif content_type in ALLOWED_MEDIA_TYPES:
        # videos are accepted on their declared type
        return content_type
    else:
        raise InvalidMediaException(f"Unsupported content type: {content_type}")


def validate_uploads(store: MediaStore, uploads: List[Upload], settings: Settings) -> List[Upload]:
    """Checks the whole batch before anything is stored."""
    if len(store) + len(uploads) > settings.max_files:
        raise InvalidMediaException(f"Too many files: at most {settings.max_files} can be uploaded.")
    validated = []
    for upload in uploads:
        if len(upload.data) > settings.max_upload_bytes:
            raise InvalidMediaException(
                f"File '{upload.filename}' exceeds the {settings.max_upload_bytes} byte limit."
            )
        content_type = validate_media_bytes(upload.data, upload.content_type)
        validated.append(upload._replace(content_type=content_type))
    return validated


def media_item_id(filename: str, created_at: datetime, taken) -> str:
    """Derives a URL-safe item id from the filename and creation time."""
    base = f"{UNSAFE_ID_CHARS.sub('_', filename).strip('_') or 'file'}-{created_at.strftime('%Y%m%dT%H%M%S%fZ')}"
    item_id = base
    n = 1
    while item_id in taken:
        item_id = f"{base}-{n}"
        n += 1
    return item_id


def ingest_files(
    store: MediaStore,
    blobs: BlobStore,
    uploads: List[Upload],
    settings: Settings,
    now: Optional[datetime] = None,
) -> List[MediaItem]:
    """Creates one pending MediaItem per upload, preserving order."""
    if settings.enforce_upload_limits:
        uploads = validate_uploads(store, uploads, settings)

    created_at = now or datetime.now(timezone.utc)
    taken = {it.id for it in store.list_items()}
    items = []
    for upload in uploads:
        item_id = media_item_id(upload.filename, created_at, taken)
        taken.add(item_id)
        items.append(MediaItem(
            id = item_id,
            filename = upload.filename,
            content_type = upload.content_type,
            size = len(upload.data),
            created_at = created_at,
            preview_url = f"/media/{item_id}/preview",
            status = MediaStatus.PENDING,
        ))

    for upload, item in zip(uploads, items):
        blobs.upload(upload.data, key=item.id, content_type=item.content_type)
    try:
        store.add_items(items)
    except ValueError:
        for item in items:
            blobs.delete(item.id)
        raise
    log.info("Ingested %d media items", len(items))
    return items
