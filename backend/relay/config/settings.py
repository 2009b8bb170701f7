from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # App
    API_HOST: str = Field("0.0.0.0")
    API_PORT: int = Field(8000)
    DEBUG: bool = Field(False)
    LOG_LEVEL: str = Field("INFO")
    CORS_ORIGIN_REGEX: str = Field(r"http://(localhost|127\.0\.0\.1)(:\d+)?")

    # Signaling
    SIGNALING_PATH: str = Field("/ws")
    HEARTBEAT_INTERVAL: float = Field(30.0)
    HEARTBEAT_TIMEOUT: float = Field(30.0)

    # Metrics
    METRICS_ENABLED: bool = Field(False)
    METRICS_PORT: int = Field(8001)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8"
    )


settings = Settings()
