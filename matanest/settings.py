from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    # Gemini credential; absence is reported when a generation call is made
    api_key: Optional[str] = Field(None)
    gemini_model: str = Field("gemini-2.5-flash")
    gemini_base_url: str = Field("https://generativelanguage.googleapis.com")
    generation_timeout_seconds: Optional[float] = Field(None)

    # Defaults for GenerationSettings
    title_length: int = Field(150, ge=1)
    keyword_count: int = Field(20, ge=1)

    # Upload limits
    enforce_upload_limits: bool = Field(True)
    max_files: int = Field(500, ge=1)
    max_upload_bytes: int = Field(50 * 1024 * 1024, ge=1)

    copy_indicator_seconds: float = Field(2.0, ge=0)

    app_title: str = Field("MataNest")
    log_level: str = Field("INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",  # tolerate unknown vars if needed
    )

settings = Settings()
