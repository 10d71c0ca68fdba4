import asyncio
import base64
import logging
import threading
from typing import List, Optional, Protocol

from matanest.exceptions import GenerationError, MediaStateConflictException
from matanest.media_service.models import GenerationSettings, MediaStatus, Metadata
from matanest.storage.blobs import BlobStore
from matanest.storage.media_store import MediaStore

log = logging.getLogger(__name__)


class MetadataGenerator(Protocol):
    async def generate_metadata(self, encoded: str, mime_type: str, settings: GenerationSettings) -> Metadata:
        ...


class GenerationOrchestrator:
    """Drives pending items through generation one at a time.

    A run is started with begin(), which claims the single generating flag,
    and executed with run(). Items are consumed from a queue by one worker,
    so call i+1 starts only after call i has resolved.
    """

    def __init__(self, store: MediaStore, blobs: BlobStore, generator: MetadataGenerator):
        self.store = store
        self.blobs = blobs
        self.generator = generator
        self._generating = False
        self._flag_lock = threading.Lock()

    @property
    def is_generating(self) -> bool:
        return self._generating

    def begin(self) -> List[str]:
        """Claims the generating flag and returns the ids of pending items."""
        with self._flag_lock:
            if self._generating:
                raise MediaStateConflictException("Generation is already running.")
            self._generating = True
        return [it.id for it in self.store.list_items(MediaStatus.PENDING)]

    async def run(self, item_ids: List[str], settings: GenerationSettings):
        queue: "asyncio.Queue[str]" = asyncio.Queue()
        for item_id in item_ids:
            queue.put_nowait(item_id)
        log.info("Generating metadata for %d items", len(item_ids))
        try:
            await self._worker(queue, settings)
        finally:
            self._generating = False
        log.info("Generation run finished")

    async def generate(self, settings: GenerationSettings) -> int:
        """begin() and run() in one call."""
        item_ids = self.begin()
        await self.run(item_ids, settings)
        return len(item_ids)

    async def _worker(self, queue: "asyncio.Queue[str]", settings: GenerationSettings):
        while not queue.empty():
            item_id = queue.get_nowait()
            try:
                await self.process_item(item_id, settings)
            finally:
                queue.task_done()

    async def process_item(self, item_id: str, settings: GenerationSettings) -> Optional[Metadata]:
        item = self.store.get_item(item_id)
        if item is None or item.status != MediaStatus.PENDING:
            log.debug("Skipping %s, no longer pending", item_id)
            return None
        item = self.store.set_processing(item_id)
        if item is None:
            return None

        try:
            encoded = base64.b64encode(self.blobs.read(item_id)).decode("ascii")
            metadata = await self.generator.generate_metadata(encoded, item.content_type, settings)
        except GenerationError as e:
            log.warning("Generation failed for %s: %s", item_id, e)
            self.store.set_error(item_id, str(e))
            return None
        except Exception as e:
            log.error("Error generating metadata for %s", item_id, exc_info=e)
            self.store.set_error(item_id, str(e) or "An unknown error occurred")
            return None

        self.store.set_completed(item_id, metadata)
        log.info("Generated metadata for %s", item_id)
        return metadata
