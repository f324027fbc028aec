"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings

# Highest priority first. The order reproduces which source has always been
# treated as the primary (canonical) side of each source pair.
DEFAULT_SOURCE_PRIORITY = [
    "fargolibrary.org",
    "westfargoevents.com",
    "fargounderground.com",
    "downtownfargo.com",
    "fargomoorhead.org",
]


class Settings(BaseSettings):
    """All configuration is loaded from environment variables prefixed with EL_."""

    # Database
    database_url: str = ""

    # Matching
    min_match_score: float = 0.65
    dedup_strategy: str = "pairwise"
    source_priority: list[str] = DEFAULT_SOURCE_PRIORITY

    model_config = {"env_file": ".env", "env_prefix": "EL_"}


def get_settings() -> Settings:
    """Return a Settings instance built from the current environment."""
    return Settings()
