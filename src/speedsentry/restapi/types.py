"""Request models for SpeedSentry REST API endpoints.

Pydantic models for the endpoints that take structured settings. Fields
left unset are dropped from the request so the server applies its own
defaults. Plain dicts are accepted everywhere these models are.
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

HttpMethod = Literal["get", "head", "post", "put", "delete", "options", "patch"]

ContentCheckMode = Literal["no_check", "content_match", "all_keywords", "any_keywords"]

PostContentType = Literal["text", "json", "xml"]

MonitorOrder = Literal["monitor_id", "user_ordering", "url"]


class MonitorEntry(BaseModel):
    """One monitor in a monitors/update request.

    ``uri`` is either a full URL or a path; a bare path reuses the
    host/scheme of the previous monitor in user ordering. Keywords and
    post content are base64 encoded as per RFC 4648.
    """

    uri: str = Field(min_length=1)
    method: HttpMethod | None = None
    content_check_mode: ContentCheckMode | None = None
    keywords: list[str] | None = None
    post_content_type: PostContentType | None = None
    post_user_agent: str | None = None
    post_content: str | None = None


class LatencyPlotSettings(BaseModel):
    """Settings for a latency/plot request.

    ``host_scheme_id`` and ``monitor_id`` are mutually exclusive. Times
    are Unix timestamps, latencies are in seconds.
    """

    plot_type: Literal["history", "histogram"] | None = None
    host_scheme_id: int | None = None
    monitor_id: int | None = None
    region_id: int | None = None
    start_timestamp: int | None = None
    end_timestamp: int | None = None
    title: str | None = None
    x_axis_label: str | None = None
    y_axis_label: str | None = None
    date_format: str | None = None
    title_font: str | None = None
    axis_title_font: str | None = None
    axis_label_font: str | None = None
    minimum_latency: float | None = None
    maximum_latency: float | None = None
    log_scale: bool | None = None
    width: int | None = Field(None, gt=0)
    height: int | None = Field(None, gt=0)
    format: Literal["PNG", "JPG"] | None = None

    @model_validator(mode="after")
    def check_plot_scope(self) -> "LatencyPlotSettings":
        """Reject settings that limit the plot to both a host and a monitor."""
        if self.host_scheme_id is not None and self.monitor_id is not None:
            msg = "host_scheme_id and monitor_id are mutually exclusive"
            raise ValueError(msg)
        return self
