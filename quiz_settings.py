from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from quiz_insights_api import EngineConfig


class Settings(BaseSettings):
    # Rank model calibration
    max_rank: int = Field(default=50000, gt=0)
    confidence_z: float = Field(default=1.96, gt=0)
    # Speed is divided by this before weighting (caller-fixed unit)
    speed_scale: float = Field(default=100.0, gt=0)
    moving_average_window: int = Field(default=3, ge=1)
    weak_accuracy_threshold: float = Field(default=70.0, ge=0, le=100)
    weak_mistake_rate_threshold: float = Field(default=0.3, ge=0, le=1)
    default_prediction_accuracy: float = 0.7

    # Source records
    quiz_url: str = "https://www.jsonkeeper.com/b/LLQT"
    submission_url: str = "https://api.jsonserve.com/rJvd7g"
    history_url: str = "https://api.jsonserve.com/XgAgFJ"
    request_timeout: float = Field(default=10.0, gt=0)

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="QUIZ_", env_file=".env", extra="ignore")

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            max_rank=self.max_rank,
            confidence_z=self.confidence_z,
            speed_scale=self.speed_scale,
            moving_average_window=self.moving_average_window,
            weak_accuracy_threshold=self.weak_accuracy_threshold,
            weak_mistake_rate_threshold=self.weak_mistake_rate_threshold,
            default_prediction_accuracy=self.default_prediction_accuracy,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
