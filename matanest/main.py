from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging

from matanest.storage.api_keys import ApiKeyRing
from matanest.storage.blobs import BlobStore
from matanest.storage.media_store import MediaStore
from matanest.generation.client import GeminiClient
from matanest.media_service.editor import CopyTracker
from matanest.media_service.orchestrator import GenerationOrchestrator
from matanest.settings import settings
from matanest.routers.media import router as media_router
from matanest.routers.api_keys import router as api_keys_router
from matanest.exceptions import add_exception_handlers

logging.basicConfig(level=settings.log_level.upper())
log = logging.getLogger("matanest")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Creates the in-memory stores and the generation pipeline, and
        releases stored files on shutdown.
    """
    # Initialize resources
    app.state.store = MediaStore()
    app.state.blobs = BlobStore()
    app.state.api_keys = ApiKeyRing()
    app.state.copy_tracker = CopyTracker(window_seconds=settings.copy_indicator_seconds)
    generator = GeminiClient(
        api_key=settings.api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.generation_timeout_seconds,
    )
    app.state.orchestrator = GenerationOrchestrator(app.state.store, app.state.blobs, generator)
    yield
    # Cleanup resources
    app.state.store.close()
    app.state.blobs.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Stock media metadata generator",
)

# Add exception handlers
add_exception_handlers(app)

# CORS - Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Add the routers
app.include_router(media_router)
app.include_router(api_keys_router)

# Check Health
@app.get("/")
def read_root():
    """
        Default end point

    """
    return "MataNest metadata service is running."

if __name__ == "__main__":
    uvicorn.run("matanest.main:app", host="0.0.0.0", port=8000, reload=True)
