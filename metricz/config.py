import logging
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .models import SCRAPE_INTERVAL_METRIC


class Settings(BaseSettings):
    app_name: str = "MetricZ Dashboard"
    status_url: str = Field(
        "http://127.0.0.1:8098/api/v1/status",
        description="Public status endpoint; instance ids are appended as a path segment.",
    )
    server_ids: List[str] = Field(
        default_factory=list,
        description="Instances to poll individually. Empty polls every instance at once.",
    )
    interval_seconds: float = Field(
        15.0, description="Polling interval until the server advertises its own."
    )
    scrape_interval_metric: str = Field(
        SCRAPE_INTERVAL_METRIC, description="Metric whose value overrides the polling interval."
    )
    chart_metric: str = Field("dayz_metricz_fps", description="Metric plotted by the chart.")
    chart_instance: Optional[str] = Field(
        None, description="Instance plotted by the chart; first instance with the metric if unset."
    )
    chart_max_points: int = Field(40, ge=2, description="Samples kept in the chart.")
    chart_width: float = Field(320.0, gt=0)
    chart_height: float = Field(80.0, gt=0)
    color_high: str = "#5cb85c"
    color_medium: str = "#f0ad4e"
    color_low: str = "#d9534f"
    threshold_low: float = 20.0
    threshold_medium: float = 40.0
    request_timeout_seconds: Optional[float] = Field(
        None, description="Total timeout per status request; unset leaves it to aiohttp."
    )
    log_level: str = Field("INFO", description="Root log level for the widget host.")

    @field_validator("status_url")
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("interval_seconds")
    def ensure_positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        return value

    class Config:
        env_prefix = "METRICZ_"


def setup_logging(level: str = "INFO") -> None:
    """Configure console logging for the widget host."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


settings = Settings()
