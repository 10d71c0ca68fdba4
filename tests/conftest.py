import asyncio
import io
import os
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Generation must never reach the real API from tests
os.environ.pop("API_KEY", None)

from matanest.main import app
from matanest.media_service.models import Metadata
from matanest.media_service.orchestrator import GenerationOrchestrator
from matanest.exceptions import GenerationError


def make_png_bytes(color="red"):
    """Generate a simple valid PNG in-memory."""
    img = Image.new("RGB", (10, 10), color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class FakeGenerator:
    """Records calls and checks that no two calls overlap."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_metadata(self, encoded, mime_type, settings):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.calls.append((encoded, mime_type, settings))
            await asyncio.sleep(0)
            n = len(self.calls)
            if n in self.fail_on:
                raise GenerationError(f"call {n} failed")
            return Metadata(
                title=f"Title {n}",
                description=f"Description {n}",
                keywords=[f"kw{n}a", f"kw{n}b"],
            )
        finally:
            self.in_flight -= 1


@pytest.fixture(scope="function")
def png_bytes():
    return make_png_bytes()


@pytest.fixture(scope="function")
def fake_generator():
    return FakeGenerator()


@pytest.fixture(scope="function")
def test_client(fake_generator):
    with TestClient(app) as client:
        # Replace the Gemini client with the fake
        app.state.orchestrator = GenerationOrchestrator(app.state.store, app.state.blobs, fake_generator)
        yield client
