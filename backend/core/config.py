"""
core/config.py
──────────────
Centralised application settings via ``pydantic-settings``.

All configuration is driven by environment variables (or a ``.env`` file
in the ``backend/`` directory).  ``pydantic-settings`` validates types at
startup, so a malformed timeout or TTL fails fast with a clear message.

The market data core never reads these settings itself — the application
factory resolves them once and passes plain values into the constructors.

Usage
-----
    from core.config import get_settings

    settings = get_settings()
    print(settings.STOCK_DATA_CACHE_TTL)
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the backend/ directory so relative .env paths work from any cwd.
_BACKEND_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables / ``.env`` file.

    Attributes:
        APP_TITLE:               Human-readable API name shown in OpenAPI docs.
        APP_VERSION:             Semantic version string.
        DEBUG:                   Enable verbose logging.
        LOG_LEVEL:               Root log level when ``DEBUG`` is off.
        FRONTEND_URL:            Optional deployed dashboard origin for CORS.
        PRICE_SOURCE_TIMEOUT:    Deadline (seconds) for one price request.
        METRICS_SOURCE_TIMEOUT:  Deadline for the structured metrics API.
        SCRAPE_SOURCE_TIMEOUT:   Deadline for the scraped quote page.
        STOCK_DATA_CACHE_TTL:    Seconds a successful quote stays cached.
        STOCK_ERROR_CACHE_TTL:   Seconds a failed quote stays cached.
        HOLDINGS_CACHE_TTL:      Seconds the holdings list stays cached.
        MAX_RETRIES:             Retries after the first failed attempt.
        RETRY_BACKOFF_BASE:      Base delay; attempt ``n`` waits ``base * 2**n``.
        SUPABASE_URL:            Optional — enables the persistent holdings store.
        SUPABASE_KEY:            Supabase anon or service-role key.
    """

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        # Extra env vars are ignored; don't raise on unexpected keys.
        extra="ignore",
    )

    # ── API metadata ──────────────────────────────────────────────────────
    APP_TITLE: str = "Portfolio Market Data API"
    APP_VERSION: str = "0.3.0"
    APP_DESCRIPTION: str = (
        "Backend for the portfolio dashboard. "
        "Provides holdings, live stock quotes, and portfolio valuations."
    )

    # ── Feature flags / logging ───────────────────────────────────────────
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── CORS ──────────────────────────────────────────────────────────────
    FRONTEND_URL: str = ""

    # ── Upstream sources ──────────────────────────────────────────────────
    PRICE_SOURCE_URL: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    METRICS_SOURCE_URL: str = (
        "https://api.bseindia.com/BseIndiaAPI/api/StockSearchapi"
    )
    SCRAPE_SOURCE_URL: str = "https://www.google.com/finance/quote"
    EXCHANGE_SUFFIX: str = ".NS"
    SCRAPE_EXCHANGE: str = "NSE"

    PRICE_SOURCE_TIMEOUT: float = Field(default=10.0, gt=0)
    METRICS_SOURCE_TIMEOUT: float = Field(default=10.0, gt=0)
    SCRAPE_SOURCE_TIMEOUT: float = Field(default=5.0, gt=0)

    # ── Cache / retry policy ──────────────────────────────────────────────
    STOCK_DATA_CACHE_TTL: float = Field(default=60.0, gt=0)
    STOCK_ERROR_CACHE_TTL: float = Field(default=10.0, gt=0)
    HOLDINGS_CACHE_TTL: float = Field(default=300.0, gt=0)
    MAX_RETRIES: int = Field(default=3, ge=0, le=10)
    RETRY_BACKOFF_BASE: float = Field(default=1.0, ge=0)
    MAX_SYMBOLS_PER_REQUEST: int = Field(default=50, ge=1)

    # ── Supabase (optional) ───────────────────────────────────────────────
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    HOLDINGS_TABLE: str = "holdings"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """
        Build the full CORS allow-list.

        Hard-coded dev origins plus the optional ``FRONTEND_URL`` env var.

        Returns:
            List of allowed origin strings.
        """
        origins: List[str] = [
            "http://localhost:5173",   # Vite / React dev server
            "http://127.0.0.1:5173",
        ]
        if self.FRONTEND_URL:
            origins.append(self.FRONTEND_URL)
        return origins

    @property
    def USE_SUPABASE(self) -> bool:
        """True when both Supabase credentials are present."""
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_level(cls, v: str) -> str:
        """Normalise and reject unknown logging level names."""
        level = v.upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown LOG_LEVEL '{v}'")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return a cached ``Settings`` singleton.

    The instance is created (and the ``.env`` file parsed) only once per
    process lifetime, courtesy of ``functools.lru_cache``.

    Returns:
        Settings: Validated application configuration.
    """
    return Settings()
