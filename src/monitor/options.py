from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReconnectOptions(BaseSettings):
    """
    Reconnection policy consumed by ConnectionMonitor.

    Values can be supplied directly or through RECONNECT_* environment
    variables, e.g. RECONNECT_RECONNECTION_DELAY_MAX=60.
    """

    model_config = SettingsConfigDict(
        env_prefix="RECONNECT_",
        frozen=True,
        extra="ignore",
    )

    reconnection: bool = True
    reconnection_delay: float = Field(default=3.0, gt=0.0)
    reconnection_delay_max: float = Field(default=30.0, ge=0.0)
    reconnection_max_attempts: int = Field(default=30, ge=0)

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> Self:
        if self.reconnection_delay_max < self.reconnection_delay:
            raise ValueError(
                f"reconnection_delay_max ({self.reconnection_delay_max}) must be "
                f">= reconnection_delay ({self.reconnection_delay})"
            )
        return self
