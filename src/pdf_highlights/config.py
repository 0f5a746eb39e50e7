"""Runtime configuration for pdf_highlights."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HighlightConfig(BaseSettings):
    """
    Settings shared by the store, sync and overlay layers.

    Every field can be set from a ``PDF_HIGHLIGHTS_<FIELD>`` environment
    variable, e.g. ``PDF_HIGHLIGHTS_API_BASE_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PDF_HIGHLIGHTS_",
        env_ignore_empty=True,
        extra="forbid",
    )

    # Local store
    db_path: str = Field(default="data/highlights.db", description="SQLite database file")

    # Remote annotation service; None disables remote calls (everything queues)
    api_base_url: Optional[str] = None
    auth_token: str = ""
    request_timeout: float = Field(default=10.0, gt=0)

    # Seconds between automatic sync queue drains
    poll_interval: float = Field(default=5.0, gt=0)

    # Overlay behaviour
    min_area_size: float = 10.0
    legacy_ratio_threshold: float = 1.2

    # PDF export
    default_opacity: float = Field(default=0.3, ge=0, le=1)
    annotation_title: str = "pdf-highlights"

    @classmethod
    def from_env(cls, **overrides) -> "HighlightConfig":
        """
        Build a config from the environment.

        Keyword overrides that are not None win over the environment;
        unknown keywords raise ``pydantic.ValidationError``.
        """
        return cls(**{name: value for name, value in overrides.items() if value is not None})


# Global configuration instance
CONFIG = HighlightConfig()
