# fastapi_querykit/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class QueryKitSettings(BaseSettings):
    """
    Pagination defaults and bounds, overridable with QUERYKIT_* variables.
    """
    model_config = SettingsConfigDict(
        env_prefix="QUERYKIT_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    DEFAULT_PAGE: int = 1
    DEFAULT_PER_PAGE: int = 20

    MIN_PAGE: int = 1
    MAX_PAGE: int = 100
    MIN_PER_PAGE: int = 1
    MAX_PER_PAGE: int = 100


settings = QueryKitSettings()
