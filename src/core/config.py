from enum import StrEnum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    development = "development"
    production = "production"


class Settings(BaseSettings):
    """Process-wide settings, read from the environment."""

    model_config = SettingsConfigDict(env_prefix="WSL_", extra="ignore")

    ENV: Environment = Environment.development
    LOG_LEVEL: str = "INFO"
    WEBSOCKETS_LOG_LEVEL: str = "WARNING"

    @property
    def is_production(self) -> bool:
        return self.ENV == Environment.production


settings = Settings()
