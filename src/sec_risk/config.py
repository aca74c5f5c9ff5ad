"""Configuration management via environment variables.

Reads from .env file (via pydantic-settings) with sensible defaults.
All values can be overridden via environment variables.

Required:
    EDGAR_IDENTITY  — Your name + email for SEC EDGAR API User-Agent header

Optional:
    DEFAULT_QUARTERS        — Periods fetched per company (default 12)
    ZERO_AS_MISSING         — Treat zero-valued figures as absent in risk checks
    COMPARISON_OFFSET       — Index of the "prior" period for leverage checks
    USE_SYNTHETIC_FALLBACK  — Serve placeholder figures when SEC fetches fail
    PORT                    — HTTP server port
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # SEC EDGAR API identity (name + email, required by SEC)
    edgar_identity: str = "SEC-Risk sec-risk@example.com"
    request_timeout: int = 30

    # Financial period feed
    default_quarters: int = 12
    use_synthetic_fallback: bool = True

    # Risk engine
    zero_as_missing: bool = False
    comparison_offset: int = 3

    # Server
    port: int = 8877
    log_level: str = "INFO"

    # .env files often carry quotes or trailing spaces around values
    @field_validator("edgar_identity", "log_level", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().strip('"').strip("'").strip()
        return v

    @field_validator("comparison_offset")
    @classmethod
    def positive_offset(cls, v: int) -> int:
        if v < 1:
            raise ValueError("comparison_offset must be >= 1")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


_config: Settings | None = None


def get_config() -> Settings:
    """Get or create the shared Settings singleton."""
    global _config
    if _config is None:
        _config = Settings()
    return _config
