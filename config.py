import os
from functools import lru_cache

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Runtime configuration for the reconciliation service."""

    database_path: str = Field(default_factory=lambda: os.getenv("CONTACTS_DB", "contacts.db"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    service_name: str = Field(default_factory=lambda: os.getenv("SERVICE_NAME", "identity-reconciliation"))
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    enable_reset: bool = Field(default_factory=lambda: os.getenv("ENABLE_RESET", "true").lower() == "true")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
