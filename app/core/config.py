import logging
from typing import Optional
from pydantic_settings import BaseSettings

from dotenv import load_dotenv

load_dotenv()  # load .env file

class Settings(BaseSettings):
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_KEY: Optional[str] = None
    API_BASE_URL: str = "http://localhost:8000"
    SAVE_DEBOUNCE_SECONDS: float = 0.5
    GRADING_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Plain console logging at the configured level."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
