"""
Runtime settings for the Meta Ads Dashboard API.

Values come from the environment (or a .env file next to the backend or in
the connectors directory).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).parent.parent
PROJECT_DIR = BACKEND_DIR.parent

load_dotenv(PROJECT_DIR / "connectors" / ".env")
load_dotenv(BACKEND_DIR / ".env")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


# Meta Graph API
META_API_VERSION = os.getenv("META_API_VERSION", "v24.0")
META_API_TIMEOUT = _int_env("META_API_TIMEOUT", 30)

# Local JSON storage for credentials and the response cache
DATA_DIR = Path(os.getenv("META_ADS_DATA_DIR", str(PROJECT_DIR / "connectors" / "data")))
CREDENTIALS_FILE = DATA_DIR / "meta_ads_credentials.json"
CACHE_FILE = DATA_DIR / "meta_ads_cache.json"

# Cache TTLs (in minutes)
CACHE_TTL_SHORT_MINUTES = _int_env("CACHE_TTL_SHORT_MINUTES", 30)     # insights, metrics, rankings
CACHE_TTL_LONG_MINUTES = _int_env("CACHE_TTL_LONG_MINUTES", 1440)     # creatives rarely change

# AI assistant
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
AI_MAX_TOKENS = _int_env("AI_MAX_TOKENS", 1024)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
