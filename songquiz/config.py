import logging
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / '.env'

DEFAULT_ENV = {
    # Curation service (OpenAI)
    'OPENAI_API_KEY': '',
    'OPENAI_MODEL': 'gpt-4o-mini',
    'CURATION_TIMEOUT_SECONDS': '20',
    'QUERY_TIMEOUT_SECONDS': '15',
    # Fallback search API; empty key disables that tier
    'SERPAPI_API_KEY': '',
    # Round defaults
    'DEFAULT_CLIP_SECONDS': '30',
    'MAX_CLIP_SECONDS': '300',
    # Single-track duration window
    'MIN_SONG_SECONDS': '20',
    'MAX_SONG_SECONDS': '480',
    # Search and metadata
    'SEARCH_TIMEOUT_SECONDS': '15',
    'METADATA_TIMEOUT_SECONDS': '8',
    'GENERIC_SEARCH_RESULTS': '5',
    # Clip preparation
    'PREPARE_TIMEOUT_SECONDS': '180',
    'PREPARE_WORKERS': '4',
    'CLIP_DIR': '',
    'LOG_LEVEL': 'INFO',
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def load_env() -> None:
    """Load .env into os.environ with defaults.

    For OPENAI_API_KEY, checks in order:
    1. Already in os.environ (from shell export)
    2. .env file
    3. Default (empty string)
    """
    existing_openai_key = os.environ.get('OPENAI_API_KEY')

    if ENV_PATH.exists():
        for line in ENV_PATH.read_text().splitlines():
            if not line or line.startswith('#') or '=' not in line:
                continue
            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            if key == 'OPENAI_API_KEY' and existing_openai_key:
                continue

            os.environ.setdefault(key, value)

    for key, value in DEFAULT_ENV.items():
        os.environ.setdefault(key, value)


def get_config() -> dict:
    load_env()
    return {k: os.environ[k] for k in DEFAULT_ENV}


def configure_logging(level: str | None = None) -> None:
    """Install the root handler used by the server and manage.py."""
    level_name = (level or os.environ.get('LOG_LEVEL') or 'INFO').upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
