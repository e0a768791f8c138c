from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG, DATA_DIR,
    DB_FILENAME, RATES_CACHE_TTL_SECONDS, DEFAULT_CURRENCY_CODE).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "PocketLedger"
    debug: bool = False
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "ledger.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided

    # Currency conversion
    pivot_currency: str = "USD"
    fiat_api_base_url: str = "https://api.exchangerate-api.com/v4"
    crypto_api_base_url: str = "https://api.coingecko.com/api/v3"
    http_timeout_seconds: float = 10.0
    rates_cache_ttl_seconds: int = 6 * 3600
    refresh_rates_on_startup: bool = True

    # First-run defaults; detected from the process locale when unset
    default_currency_code: Optional[str] = None

    def init_post_load(self) -> None:
        """Finalize derived fields and ensure directories exist."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
        self.db_path = Path(self.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pivot_currency = self.pivot_currency.upper()
        if self.default_currency_code:
            self.default_currency_code = self.default_currency_code.upper()
        if self.rates_cache_ttl_seconds <= 0:
            raise ValueError("rates_cache_ttl_seconds must be positive")


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
