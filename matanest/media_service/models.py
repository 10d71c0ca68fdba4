from typing import List, Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator
from uuid import uuid4

def new_key_id() -> str:
    """Generates a new unique API key ID."""
    return str(uuid4())

class MediaStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

class CopyField(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"
    KEYWORDS = "keywords"

class Metadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    keywords: List[str] = []

class GenerationSettings(BaseModel):
    """Settings for one generation run.

    Only title_length and keyword_count reach the prompt; the remaining
    fields are accepted for compatibility with existing clients.
    """
    model_config = ConfigDict(frozen=True)

    title_length: int = Field(150, ge=1)
    keyword_count: int = Field(20, ge=1)
    custom_prompt: str = ""
    prohibited_words: str = ""
    transparent_background: bool = False

class MediaItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    content_type: str
    size: int
    created_at: datetime
    preview_url: str
    status: MediaStatus = MediaStatus.PENDING
    metadata: Optional[Metadata] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def check_status_fields(self):
        if self.metadata is not None and self.status != MediaStatus.COMPLETED:
            raise ValueError(f"metadata is only valid for completed items, not {self.status.value}")
        if self.error is not None and self.status != MediaStatus.ERROR:
            raise ValueError(f"error is only valid for failed items, not {self.status.value}")
        return self

    def replace(self, **changes) -> "MediaItem":
        """Returns a validated copy with the given fields changed."""
        data = self.model_dump()
        data.update(changes)
        return MediaItem(**data)

class MediaItemResponse(MediaItem):
    copied: Optional[CopyField] = None

class ListMediaResponse(BaseModel):
    items: List[MediaItemResponse]

class MetadataUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None

class KeywordCreate(BaseModel):
    keyword: str

class TitleAffixes(BaseModel):
    prefix: str = ""
    suffix: str = ""

class TitleRewriteResponse(BaseModel):
    updated: int

class GenerateResponse(BaseModel):
    queued: int

class GenerationStatusResponse(BaseModel):
    generating: bool
    pending: int
    processing: int
    completed: int
    error: int

class CopyResponse(BaseModel):
    field: CopyField
    text: str
    copied: bool = True

class ApiKey(BaseModel):
    id: str = Field(default_factory=new_key_id)
    key: str
    is_active: bool = False
    usage: int = 0

class ApiKeyCreate(BaseModel):
    key: str

class ApiKeyItem(BaseModel):
    id: str
    masked_key: str
    is_active: bool
    usage: int
