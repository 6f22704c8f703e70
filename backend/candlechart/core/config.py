from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_name: str = Field(default="Candlechart", alias="APP_NAME")
    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        alias="CORS_ORIGINS",
    )
    cors_allow_origin_regex: str = Field(
        default=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        alias="CORS_ALLOW_ORIGIN_REGEX",
    )

    # Default chart geometry for new sessions.
    chart_width: int = Field(default=800, alias="CHART_WIDTH")
    chart_height: int = Field(default=600, alias="CHART_HEIGHT")
    chart_margin_top: int = Field(default=20, alias="CHART_MARGIN_TOP")
    chart_margin_bottom: int = Field(default=60, alias="CHART_MARGIN_BOTTOM")
    chart_margin_left: int = Field(default=60, alias="CHART_MARGIN_LEFT")
    chart_margin_right: int = Field(default=80, alias="CHART_MARGIN_RIGHT")
    device_pixel_ratio: float = Field(default=1.0, alias="DEVICE_PIXEL_RATIO")

    candle_width: float = Field(default=8.0, alias="CANDLE_WIDTH")
    candle_spacing: float = Field(default=2.0, alias="CANDLE_SPACING")
    chart_theme: Literal["light", "dark"] = Field(default="dark", alias="CHART_THEME")
    grid_lines: bool = Field(default=True, alias="CHART_GRID_LINES")
    show_volume: bool = Field(default=True, alias="CHART_SHOW_VOLUME")

    frame_rate: float = Field(default=30.0, alias="FRAME_RATE")
    max_sessions: int = Field(default=32, alias="MAX_SESSIONS")

    bar_source: Literal["mock", "yfinance"] = Field(default="mock", alias="BAR_SOURCE")
    mock_bar_count: int = Field(default=1000, alias="MOCK_BAR_COUNT")
    live_feed_enabled: bool = Field(default=False, alias="LIVE_FEED_ENABLED")
    live_feed_seconds: int = Field(default=1, alias="LIVE_FEED_SECONDS")

    @property
    def cors_origins_list(self) -> list[str]:
        raw = self.cors_origins.strip()
        if raw == "*":
            return ["*"]
        return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
