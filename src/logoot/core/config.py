from __future__ import annotations

import os
import uuid
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    app_name: str = Field(default_factory=lambda: os.getenv("APP_NAME", "logoot"))
    app_version: str = Field(default_factory=lambda: os.getenv("APP_VERSION", "0.1.0"))

    allowed_origins: List[str] = Field(
        default_factory=lambda: os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    )
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Site id this process generates positions as; must be unique per replica.
    site_id: str = Field(default_factory=lambda: os.getenv("SITE_ID") or uuid.uuid4().hex)

    snapshot_interval: int = Field(default_factory=lambda: int(os.getenv("SNAPSHOT_INTERVAL", "100")))


@lru_cache
def get_settings() -> Settings:
    return Settings()
