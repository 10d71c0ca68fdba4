import json
import logging
from typing import Any, Dict, Optional

import httpx

from matanest.exceptions import (
    GenerationError,
    GenerationFailedError,
    InvalidMetadataFormatError,
    MissingCredentialError,
)
from matanest.media_service.models import GenerationSettings, Metadata

log = logging.getLogger(__name__)

PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"

METADATA_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {
            "type": "STRING",
            "description": "A compelling and descriptive title for the image.",
        },
        "description": {
            "type": "STRING",
            "description": "A detailed description of the image, suitable for stock photo sites. Around 2-3 sentences.",
        },
        "keywords": {
            "type": "ARRAY",
            "items": {"type": "STRING", "description": "A relevant keyword."},
            "description": "An array of relevant keywords for the image.",
        },
    },
    "required": ["title", "description", "keywords"],
}


def build_prompt(settings: GenerationSettings) -> str:
    return (
        "Generate metadata for this image. "
        f"The title should be a maximum of {settings.title_length} characters. "
        "Generate a detailed description of 2-3 sentences. "
        f"Generate exactly {settings.keyword_count} relevant keywords. "
        "The overall style should be descriptive and optimized for search."
    )


def parse_metadata(payload: Any) -> Metadata:
    """Validates the decoded model output and converts it to Metadata."""
    if not isinstance(payload, dict):
        raise InvalidMetadataFormatError()
    title = payload.get("title")
    description = payload.get("description")
    keywords = payload.get("keywords")
    if not isinstance(title, str) or not isinstance(description, str) or not isinstance(keywords, list):
        raise InvalidMetadataFormatError()
    if not all(isinstance(k, str) for k in keywords):
        raise InvalidMetadataFormatError()
    return Metadata(title=title, description=description, keywords=keywords)


class GeminiClient:
    """Issues one generateContent call per media payload."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        if not self.has_credential:
            log.warning("API key not set. Metadata generation will fail until one is configured.")

    @property
    def has_credential(self) -> bool:
        return bool(self._api_key) and self._api_key != PLACEHOLDER_API_KEY

    def build_request(self, encoded: str, mime_type: str, settings: GenerationSettings) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"inline_data": {"mime_type": mime_type, "data": encoded}},
                        {"text": build_prompt(settings)},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": METADATA_SCHEMA,
            },
        }

    async def generate_metadata(self, encoded: str, mime_type: str, settings: GenerationSettings) -> Metadata:
        """Generates title, description and keywords for a base64 payload.

        Raises MissingCredentialError when no key is configured,
        InvalidMetadataFormatError when the model returns the wrong shape and
        GenerationFailedError for any other failure.
        """
        if not self.has_credential:
            raise MissingCredentialError()

        body = self.build_request(encoded, mime_type, settings)
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers={"x-goog-api-key": self._api_key},
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(f"/v1beta/models/{self._model}:generateContent", json=body)
                response.raise_for_status()
                data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
            if not isinstance(text, str):
                raise TypeError(f"candidate text is {type(text).__name__}, not str")
            payload = json.loads(text.strip())
            return parse_metadata(payload)
        except GenerationError:
            raise
        except Exception as e:
            log.error("Error calling Gemini API: %s", e, exc_info=e)
            raise GenerationFailedError() from e
