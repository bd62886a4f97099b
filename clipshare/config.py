"""Runtime settings loaded from the environment."""

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables
load_dotenv()


class Settings(BaseModel):
    """ClipShare settings with defaults suitable for local use."""

    backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "clipshare:"
    feed_capacity: int = Field(default=50, ge=1)
    max_id_attempts: int = Field(default=1000, ge=1)
    max_text_length: int = Field(default=10000, ge=1)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CLIPSHARE_* environment variables."""
        env_map = {
            "backend": "CLIPSHARE_BACKEND",
            "redis_url": "CLIPSHARE_REDIS_URL",
            "key_prefix": "CLIPSHARE_KEY_PREFIX",
            "feed_capacity": "CLIPSHARE_FEED_CAPACITY",
            "max_id_attempts": "CLIPSHARE_MAX_ID_ATTEMPTS",
            "max_text_length": "CLIPSHARE_MAX_TEXT_LENGTH",
            "log_level": "CLIPSHARE_LOG_LEVEL",
        }

        values = {}
        for field, var in env_map.items():
            value = os.getenv(var)
            if value:
                values[field] = value.strip()

        if "backend" in values:
            values["backend"] = values["backend"].lower()

        return cls(**values)
