import os
from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field

DEFAULT_WORKFLOW_NAME = "My Workflow"

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:3001"


def _env_flag(name: str, default: str) -> bool:
    raw = os.getenv(name, default)
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=list)
    workflow_default_name: str = DEFAULT_WORKFLOW_NAME
    workflow_api_enabled: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        cors_origins_raw = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in cors_origins_raw.split(",") if o.strip()],
            workflow_default_name=os.getenv("WORKFLOW_DEFAULT_NAME", DEFAULT_WORKFLOW_NAME),
            workflow_api_enabled=_env_flag("WORKFLOW_API_ENABLED", "1"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
