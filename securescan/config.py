import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Load .env file from the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Also try loading from current directory
load_dotenv()


class Settings(BaseSettings):
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    # Where the session's assessment client sends URLs
    assessment_api_url: str = "http://127.0.0.1:8000/api/analyze"
    # None means the transport never times out
    assessment_timeout: Optional[float] = None

    # Empty string keeps scan history in memory only
    database_url: str = "sqlite:///./securescan.db"
    history_limit: int = 50

    camera_index: int = 0
    capture_interval: float = 1 / 30
    capture_max_read_failures: int = 30

    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()

if settings.openai_api_key:
    logger.info("OpenAI API key loaded: %s...", settings.openai_api_key[:6])
else:
    logger.warning("OpenAI API key not found. Set OPENAI_API_KEY in .env file")
