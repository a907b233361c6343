# pricewatch/config/settings.py

"""Central configuration for the pricewatch monitoring engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the pricewatch monitoring engine."""

    # --- Catalog source (Rainforest product API) ---
    CATALOG_API_URL: str = "https://api.rainforestapi.com/request"
    CATALOG_API_KEY: str = os.getenv("RAINFOREST_API_KEY", "")
    AMAZON_DOMAIN: str = "amazon.com"
    REQUEST_TIMEOUT: int = 15           # Seconds per HTTP call
    FETCH_TIMEOUT: float = 45.0         # Overall limit per product fetch
    MAX_IMMEDIATE_RETRIES: int = 1      # Transient errors only
    RETRY_DELAY: float = 2.0            # Seconds before the retry

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
    }

    # --- Monitoring cycle ---
    SCHEDULE: str = os.getenv("PRICEWATCH_SCHEDULE", "0 0 * * *")
    TIMEZONE: str = os.getenv("PRICEWATCH_TIMEZONE", "UTC")
    MAX_WORKERS: int = int(os.getenv("PRICEWATCH_MAX_WORKERS", "4"))

    # --- Alerts ---
    DEFAULT_ALERT_THRESHOLD: float = 10.0   # Percent drop
    DEFAULT_CURRENCY: str = "USD"
    DISCORD_WEBHOOK_URL: str = os.getenv("DISCORD_WEBHOOK_URL", "")

    # --- Reporting ---
    HISTORY_PERIODS: dict[str, int] = {
        "7d": 7,
        "30d": 30,
        "90d": 90,
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    DB_PATH: Path = Path(
        os.getenv("PRICEWATCH_DB_PATH", str(DATA_DIR / "pricewatch.db"))
    )
    DB_BUSY_TIMEOUT: float = 30.0       # Seconds to wait on a locked DB
    LOGS_DIR: Path = BASE_DIR / "logs"
    LOG_LEVEL: str = os.getenv("PRICEWATCH_LOG_LEVEL", "WARNING")  # stderr only
