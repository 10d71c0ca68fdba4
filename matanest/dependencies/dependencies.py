from fastapi import Request
from matanest.storage.api_keys import ApiKeyRing
from matanest.storage.blobs import BlobStore
from matanest.storage.media_store import MediaStore
from matanest.media_service.editor import CopyTracker
from matanest.media_service.orchestrator import GenerationOrchestrator

def get_media_store(request: Request) -> MediaStore:
    """Dependency provider for MediaStore"""
    return request.app.state.store

def get_blob_store(request: Request) -> BlobStore:
    """Dependency provider for BlobStore"""
    return request.app.state.blobs

def get_copy_tracker(request: Request) -> CopyTracker:
    return request.app.state.copy_tracker

def get_orchestrator(request: Request) -> GenerationOrchestrator:
    """Dependency provider for GenerationOrchestrator"""
    return request.app.state.orchestrator

def get_api_key_ring(request: Request) -> ApiKeyRing:
    return request.app.state.api_keys
