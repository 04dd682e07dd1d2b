# src/nanit_proxy/config.py

import logging
from pathlib import Path
from typing import Any, List, Union

from dotenv import load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# .env is at the service root, two levels up from src/nanit_proxy/
CONFIG_FILE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT_DIR = CONFIG_FILE_DIR.parent.parent
ENV_FILE_PATH = PROJECT_ROOT_DIR / ".env"

if ENV_FILE_PATH.exists():
    load_dotenv(dotenv_path=ENV_FILE_PATH, override=True)
    logger.info("NanitProxy: Loaded .env file from: %s", ENV_FILE_PATH)
else:
    logger.debug("NanitProxy: No .env file at %s. Relying on environment variables.", ENV_FILE_PATH)


class Settings(BaseSettings):
    PROXY_TITLE: str = "Nanit Dashboard Proxy"
    PROXY_HOST: str = "127.0.0.1"
    PROXY_PORT: int = 8000
    PROXY_LOG_LEVEL: str = "INFO"
    # Comma-separated in the environment, a list after validation
    PROXY_CORS_ORIGINS: Union[str, List[str]] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    @field_validator("PROXY_CORS_ORIGINS", mode='before')
    @classmethod
    def parse_comma_separated_origins(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        if isinstance(v, list):
            return v
        raise TypeError('PROXY_CORS_ORIGINS: Expected a comma-separated string or a list.')

    @model_validator(mode='after')
    def check_origins_type(self) -> 'Settings':
        if not isinstance(self.PROXY_CORS_ORIGINS, list):
            raise ValueError(f"PROXY_CORS_ORIGINS ended up as {type(self.PROXY_CORS_ORIGINS)}, expected list.")
        if not all(isinstance(item, str) for item in self.PROXY_CORS_ORIGINS):
            raise ValueError("All items in PROXY_CORS_ORIGINS must be strings.")
        return self


try:
    settings = Settings()
except Exception as e:
    logger.error("NanitProxy: Error instantiating Settings: %s", e)
    raise
