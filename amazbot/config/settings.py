# amazbot/config/settings.py

"""Central configuration for the amazbot price tracker."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int_list(name: str) -> list[int]:
    """Parse a comma-separated list of integers from the environment."""
    raw = os.getenv(name, "")
    return [int(v) for v in raw.split(",") if v.strip()]


class Settings:
    """Central configuration for the amazbot price tracker."""

    # --- Scraping ---
    REQUEST_DELAY: float = 5.0          # Pause held after every request
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    MAX_CAPTCHA_DEPTH: int = 2          # Captcha revalidations per fetch
    MAX_OFFER_PAGES: int = 11           # Hard bound on offer pagination
    MAX_RESET_RETRIES: int = 1          # Session resets before giving up

    # --- Resilience ---
    TIMEOUT_BACKOFF_BASE: float = 1.0   # First wait after a timeout
    TIMEOUT_BACKOFF_MAX: float = 60.0   # Cap for timeout backoff
    CAPTCHA_TIMEOUT: int = 10           # Seconds for the solver service
    CAPTCHA_SELF_TEST_IMAGE: str = (
        "https://images-na.ssl-images-amazon.com/"
        "captcha/usvmgloq/Captcha_kwrrnqwkph.jpg"
    )
    CAPTCHA_SELF_TEST_SOLUTION: str = "AAFXMX"

    # --- Scheduling ---
    POLL_INTERVAL: float = 5.0          # Seconds between polling cycles
    DEDUP_TTL: float = 6 * 60 * 60      # Notification fingerprint lifetime

    # --- Notifications ---
    MESSAGE_DELAY: float = 0.1          # Pause after each Telegram send
    TELEGRAM_API_URL: str = "https://api.telegram.org"
    TELEGRAM_POLL_TIMEOUT: int = 60     # Long-poll window for getUpdates

    # --- Delivery location ---
    POSTAL_CODE: str = os.getenv("AMAZBOT_POSTAL_CODE", "44001")
    COUNTRY_CODE: str = os.getenv("AMAZBOT_COUNTRY_CODE", "ES")

    # --- Runtime (environment, overridable from the CLI) ---
    TELEGRAM_TOKEN: str = os.getenv("AMAZBOT_TOKEN", "")
    CAPTCHA_URL: str = os.getenv(
        "AMAZBOT_CAPTCHA_URL", "http://localhost:8080"
    )
    PROXY_URL: str = os.getenv("AMAZBOT_PROXY", "")
    ADMIN_ID: int = int(os.getenv("AMAZBOT_ADMIN", "0") or 0)
    USER_IDS: list[int] = _env_int_list("AMAZBOT_USERS")

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    FINGERPRINT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8,"
            "application/signed-exchange;v=b3;q=0.9"
        ),
        "Accept-Language": (
            "es-ES,es;q=0.9,en-US;q=0.8,en;q=0.7,"
            "eu;q=0.6,fr;q=0.5"
        ),
        "Cache-Control": "max-age=0",
        "rtt": "150",
        "downlink": "10",
        "ect": "4g",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }
    USER_AGENTS: list[str] = [
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (X11; Linux x86_64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/130.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/130.0.0.0 Safari/537.36 Edg/130.0.0.0"
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.5 Safari/605.1.15"
        ),
    ]

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DB_PATH: Path = Path(
        os.getenv("AMAZBOT_DB", str(BASE_DIR / "amazbot.db"))
    )
    DUMPS_DIR: Path = BASE_DIR / "dumps"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Persistence buckets ---
    SEARCH_BUCKET: str = "db"
    CONFIG_BUCKET: str = "config"
