import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationMissing

DEFAULT_POOL_SIZE = 10
DEFAULT_SUBMIT_DELAY = 1.0
DEFAULT_MAX_FORM_SESSIONS = 1000


@dataclass
class Settings:
    database_url: str
    pool_size: int = DEFAULT_POOL_SIZE
    submit_delay: float = DEFAULT_SUBMIT_DELAY
    log_level: str = "INFO"
    max_form_sessions: int = DEFAULT_MAX_FORM_SESSIONS


def get_settings() -> Settings:
    """Read settings from the environment and a `.env` file in the working
    directory (or above it). Real environment variables win. DATABASE_URL is
    mandatory."""
    load_dotenv(find_dotenv(usecwd=True))

    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        raise ConfigurationMissing("Please define DATABASE_URL in the environment")

    return Settings(
        database_url=database_url,
        pool_size=int(os.getenv("DB_POOL_SIZE", DEFAULT_POOL_SIZE)),
        submit_delay=float(os.getenv("SUBMIT_DELAY_SECONDS", DEFAULT_SUBMIT_DELAY)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        max_form_sessions=int(
            os.getenv("FORM_SESSION_LIMIT", DEFAULT_MAX_FORM_SESSIONS)
        ),
    )
