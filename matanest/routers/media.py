from fastapi import APIRouter, BackgroundTasks, Body, Depends, UploadFile, File, Response
from fastapi.concurrency import run_in_threadpool
from typing import List, Optional
import logging

from matanest.storage.blobs import BlobStore
from matanest.storage.media_store import MediaStore
from matanest.dependencies.dependencies import (
    get_blob_store,
    get_copy_tracker,
    get_media_store,
    get_orchestrator,
)
from matanest.media_service import editor
from matanest.media_service.editor import CopyTracker
from matanest.media_service.export import EXPORT_FILENAME, build_csv
from matanest.media_service.intake import Upload, ingest_files
from matanest.media_service.orchestrator import GenerationOrchestrator
from matanest.media_service.models import (
    CopyField,
    CopyResponse,
    GenerateResponse,
    GenerationSettings,
    GenerationStatusResponse,
    KeywordCreate,
    ListMediaResponse,
    MediaItem,
    MediaItemResponse,
    MediaStatus,
    MetadataUpdate,
    TitleAffixes,
    TitleRewriteResponse,
)
from matanest.exceptions import InvalidMediaException, MediaItemNotFoundException
from matanest.settings import settings

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/media",
    tags=["media"]
)

PREVIEW_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": "sandbox",
}

def to_response(item: MediaItem, tracker: CopyTracker) -> MediaItemResponse:
    return MediaItemResponse(**item.model_dump(), copied=tracker.active(item.id))

def default_generation_settings() -> GenerationSettings:
    return GenerationSettings(
        title_length=settings.title_length,
        keyword_count=settings.keyword_count,
    )

@router.post("", response_model=List[MediaItemResponse], status_code=201)
async def upload_media(
    files: List[UploadFile] = File(...),
    store: MediaStore = Depends(get_media_store),
    blobs: BlobStore = Depends(get_blob_store),
    tracker: CopyTracker = Depends(get_copy_tracker),
):
    """Uploads media files; each becomes a pending item."""
    if not files:
        raise InvalidMediaException("No files uploaded")

    uploads = []
    for file in files:
        contents = await file.read()
        uploads.append(Upload(
            filename=file.filename or "file",
            content_type=file.content_type or "application/octet-stream",
            data=contents,
        ))

    # Pillow decoding must not block the generation worker on the event loop
    items = await run_in_threadpool(ingest_files, store, blobs, uploads, settings)
    return [to_response(it, tracker) for it in items]

@router.get("", response_model=ListMediaResponse)
def list_media(
    status: Optional[MediaStatus] = None,
    store: MediaStore = Depends(get_media_store),
    tracker: CopyTracker = Depends(get_copy_tracker),
):
    """Lists media items in upload order."""
    return ListMediaResponse(items=[to_response(it, tracker) for it in store.list_items(status)])

@router.post("/generate", response_model=GenerateResponse, status_code=202)
def generate_metadata(
    background_tasks: BackgroundTasks,
    generation_settings: Optional[GenerationSettings] = Body(None),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Starts metadata generation for every pending item.

    Items are processed one after another in the background; poll
    /media/generate/status or the item list for progress.
    """
    run_settings = default_generation_settings()
    if generation_settings is not None:
        run_settings = run_settings.model_copy(update=generation_settings.model_dump(exclude_unset=True))
    item_ids = orchestrator.begin()
    background_tasks.add_task(orchestrator.run, item_ids, run_settings)
    return GenerateResponse(queued=len(item_ids))

@router.get("/generate/status", response_model=GenerationStatusResponse)
def generation_status(
    store: MediaStore = Depends(get_media_store),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    counts = store.count_by_status()
    return GenerationStatusResponse(
        generating=orchestrator.is_generating,
        **{status.value: n for status, n in counts.items()},
    )

@router.post("/titles", response_model=TitleRewriteResponse)
def apply_to_all_titles(
    affixes: TitleAffixes,
    store: MediaStore = Depends(get_media_store),
):
    """Adds text to the start and end of every completed title."""
    return TitleRewriteResponse(updated=editor.apply_to_all_titles(store, affixes.prefix, affixes.suffix))

@router.get("/export")
def export_csv(store: MediaStore = Depends(get_media_store)):
    """Downloads completed items as a CSV file."""
    content = build_csv(store.list_items())
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )

@router.get("/{item_id}", response_model=MediaItemResponse)
def get_media(
    item_id: str,
    store: MediaStore = Depends(get_media_store),
    tracker: CopyTracker = Depends(get_copy_tracker),
):
    return to_response(editor.get_media_item(store, item_id), tracker)

@router.get("/{item_id}/preview")
def get_preview(
    item_id: str,
    blobs: BlobStore = Depends(get_blob_store),
):
    """Serves the uploaded file for previews."""
    blob = blobs.get(item_id)
    if blob is None:
        raise MediaItemNotFoundException(item_id)
    data, content_type = blob
    # Uploaded SVGs may carry scripts; never let them run on this origin
    return Response(content=data, media_type=content_type, headers=PREVIEW_HEADERS)

@router.patch("/{item_id}/metadata", response_model=MediaItemResponse)
def update_metadata(
    item_id: str,
    update: MetadataUpdate,
    store: MediaStore = Depends(get_media_store),
    tracker: CopyTracker = Depends(get_copy_tracker),
):
    """Commits edits to the title and/or description."""
    item = editor.update_metadata(store, item_id, title=update.title, description=update.description)
    return to_response(item, tracker)

@router.post("/{item_id}/keywords", response_model=MediaItemResponse)
def add_keyword(
    item_id: str,
    body: KeywordCreate,
    store: MediaStore = Depends(get_media_store),
    tracker: CopyTracker = Depends(get_copy_tracker),
):
    return to_response(editor.add_keyword(store, item_id, body.keyword), tracker)

@router.delete("/{item_id}/keywords/{index}", response_model=MediaItemResponse)
def remove_keyword(
    item_id: str,
    index: int,
    store: MediaStore = Depends(get_media_store),
    tracker: CopyTracker = Depends(get_copy_tracker),
):
    return to_response(editor.remove_keyword(store, item_id, index), tracker)

@router.post("/{item_id}/copy/{field}", response_model=CopyResponse)
def copy_field(
    item_id: str,
    field: CopyField,
    store: MediaStore = Depends(get_media_store),
    tracker: CopyTracker = Depends(get_copy_tracker),
):
    """Returns a field's text for the clipboard and flags it as copied."""
    text = editor.copy_field(store, tracker, item_id, field)
    return CopyResponse(field=field, text=text)

@router.delete("/{item_id}", status_code=204)
def delete_media(
    item_id: str,
    store: MediaStore = Depends(get_media_store),
    blobs: BlobStore = Depends(get_blob_store),
    tracker: CopyTracker = Depends(get_copy_tracker),
):
    """Deletes a media item and its stored file."""
    editor.delete_item(store, blobs, tracker, item_id)
    return Response(status_code=204)
