"""
Service configuration.

Values come from environment variables; a `.env` file at the project root
is loaded first when present.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

ENV_PATH = Path(__file__).parent.parent / ".env"

DEFAULT_INDEX_NAME = "usa4_new_v2"
DEFAULT_COUNTRY_LITERAL = "united states"

#semantic role -> index column holding its canonical values
DEFAULT_ROLE_COLUMNS: Dict[str, str] = {
    "title": "Job title",
    "industry": "Industry",
    "location": "Location",
    "category": "category",
}


@dataclass(frozen=True)
class Settings:
    elastic_url: str = "http://localhost:9200"
    elastic_api_key: Optional[str] = None
    es_username: Optional[str] = None
    es_password: Optional[str] = None
    index_name: str = DEFAULT_INDEX_NAME
    index_timeout: float = 5.0

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4.1-2025-04-14"
    llm_timeout: float = 20.0

    country_literal: str = DEFAULT_COUNTRY_LITERAL
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = ("http://localhost:3000",)
    role_columns: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ROLE_COLUMNS))

    def __post_init__(self):
        #location values are compared lower-cased against it
        object.__setattr__(self, "country_literal", self.country_literal.strip().lower())

    def column_for(self, role: str) -> str:
        return self.role_columns[role]


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def load_settings() -> Settings:
    """Build settings from the environment (and `.env`, if present)."""
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)

    origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    return Settings(
        elastic_url=os.getenv("ELASTIC_URL", "http://localhost:9200"),
        elastic_api_key=os.getenv("ELASTIC_API_KEY") or None,
        es_username=os.getenv("ES_USERNAME") or None,
        es_password=os.getenv("ES_PASSWORD") or None,
        index_name=os.getenv("INDEX_NAME", DEFAULT_INDEX_NAME),
        index_timeout=_float_env("INDEX_TIMEOUT", 5.0),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4.1-2025-04-14"),
        llm_timeout=_float_env("LLM_TIMEOUT", 20.0),
        country_literal=os.getenv("COUNTRY_LITERAL", DEFAULT_COUNTRY_LITERAL),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
