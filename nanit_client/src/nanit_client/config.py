# src/nanit_client/config.py

import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# .env is at the service root, two levels up from src/nanit_client/
CONFIG_FILE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT_DIR = CONFIG_FILE_DIR.parent.parent
ENV_FILE_PATH = PROJECT_ROOT_DIR / ".env"

if ENV_FILE_PATH.exists():
    load_dotenv(dotenv_path=ENV_FILE_PATH, override=True)
    logger.info("NanitClient: Loaded .env file from: %s", ENV_FILE_PATH)
else:
    logger.debug("NanitClient: No .env file at %s. Relying on environment variables.", ENV_FILE_PATH)

CLIENT_MODES = ("upstream", "proxy")


class Settings(BaseSettings):
    # === Nanit vendor API ===
    NANIT_API_BASE_URL: AnyHttpUrl = "https://api.nanit.com"
    NANIT_API_VERSION: str = "1"
    NANIT_USER_AGENT: str = "Nanit/6.0.0 (iOS; iPhone; Scale/2.00)"

    # Certificate checks stay on unless explicitly disabled for a broken upstream chain.
    NANIT_VERIFY_TLS: bool = True
    NANIT_TIMEOUT_SECONDS: float = 10.0

    # === Session persistence ===
    NANIT_TOKEN_STORE_PATH: Path = Path.home() / ".nanit" / "session.json"

    # === Deployment: talk to the vendor directly or through the local proxy ===
    NANIT_CLIENT_MODE: str = "upstream"
    NANIT_PROXY_BASE_URL: AnyHttpUrl = "http://localhost:8000"

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    @property
    def api_base_url(self) -> str:
        return str(self.NANIT_API_BASE_URL).rstrip("/")

    @property
    def proxy_base_url(self) -> str:
        return str(self.NANIT_PROXY_BASE_URL).rstrip("/")

    @field_validator("NANIT_CLIENT_MODE", mode='before')
    @classmethod
    def normalize_client_mode(cls, v: Any) -> str:
        mode = str(v).strip().lower()
        if mode not in CLIENT_MODES:
            raise ValueError(f"NANIT_CLIENT_MODE must be one of {CLIENT_MODES}, got {v!r}.")
        return mode

    @field_validator("NANIT_TIMEOUT_SECONDS")
    @classmethod
    def check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("NANIT_TIMEOUT_SECONDS must be positive.")
        return v


try:
    settings = Settings()
except Exception as e:
    logger.error("NanitClient: Error instantiating Settings: %s", e)
    raise
