"""Application configuration using pydantic-settings."""

from typing import Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    DATABASE_URL: str = "sqlite:///./radius.db"
    APP_NAME: str = "RADIUS Accounting Report Service"
    LOG_LEVEL: str = "INFO"

    # Connection pool
    DB_POOL_SIZE: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_CONNECT_TIMEOUT: int = 10

    # Reports
    PAGE_SIZE: int = 10
    HISTORY_LIMIT: int = 10
    CONSUMPTION_WINDOW_DAYS: int = 30
    # nasname -> address its accounting records are reported under
    NAS_ADDRESS_ALIASES: Dict[str, str] = {}

    # Managed backend (agenda mirror)
    BACKEND_URL: Optional[str] = None
    BACKEND_ANON_KEY: Optional[str] = None
    BACKEND_TIMEOUT: float = 10.0
    AGENDA_FETCH_LIMIT: int = 100
    AGENDA_LOOKBACK_MONTHS: int = 3

    # Payment gateway (Asaas)
    ASAAS_API_URL: str = "https://api.asaas.com/v3"
    ASAAS_API_KEY: Optional[str] = None
    ASAAS_TIMEOUT: float = 10.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
