"""Application configuration using Pydantic v2 Settings.

Centralized configuration that loads from environment variables
and provides type-safe access throughout the application.
"""

import logging
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults and can be overridden via
    environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Notion
    notion_api_token: str = Field(
        default="",
        validation_alias=AliasChoices("notion_api_token", "notion_api_key"),
        description="Notion integration token (NOTION_API_TOKEN or NOTION_API_KEY).",
    )
    notion_base_url: str = Field(
        default="https://api.notion.com/v1",
        description="Notion REST API base URL.",
    )
    notion_version: str = Field(
        default="2022-06-28",
        description="Value sent in the Notion-Version header.",
    )
    notion_timeout: float = Field(
        default=30.0,
        description="Per-request timeout in seconds.",
    )
    notion_max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries for rate-limited (HTTP 429) requests.",
    )

    # Databases
    product_workflows_db_id: str | None = Field(
        default=None,
        description="Database holding the workflow template pages.",
    )
    stories_db_id: str | None = Field(
        default=None,
        description="Destination database for replicated pages.",
    )

    # Property names
    template_date_property: str = Field(
        default="Date",
        description="Date property on template and destination pages.",
    )
    template_filter_property: str = Field(
        default="Workflow",
        description="Multi-select property used only to filter templates.",
    )
    destination_title_property: str = Field(
        default="Title",
        description="Title property of the destination database.",
    )
    epic_relation_property: str = Field(
        default="Epic",
        description="Relation from a replica to its owning epic.",
    )
    blocking_property: str = Field(
        default="Blocking",
        description="Destination relation written with resolved blocking ids.",
    )
    blocked_by_property: str = Field(
        default="Blocked by",
        description="Destination relation written with resolved blocked-by ids.",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Interface the API server binds to.")
    port: int = Field(default=3000, description="Port the API server listens on.")

    # Strategy Selection
    record_store_type: str = Field(
        default="notion",
        description="Record store strategy to use: 'notion' or 'memory'.",
    )

    # Content copy
    content_copy_max_depth: int = Field(
        default=3,
        ge=1,
        description="Maximum nesting depth followed when copying page content.",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR.",
    )
    log_dir: Path = Field(
        default=Path("./logs"),
        description="Directory for info.log and error.log.",
    )
    debug_buffer_size: int = Field(
        default=50,
        ge=1,
        description="Number of recent log messages kept for the debug endpoint.",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        return v.upper()

    @property
    def api_key_format(self) -> str:
        """Describe the shape of the configured Notion token."""
        if not self.notion_api_token:
            return "No key"
        if self.notion_api_token.startswith("secret_"):
            return "secret_ format"
        if self.notion_api_token.startswith("ntn_"):
            return "ntn_ format"
        return "Invalid format"

    def configure_logging(self) -> None:
        """Configure global logging based on settings."""
        import structlog

        level = getattr(logging, self.log_level, logging.INFO)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        logging.basicConfig(
            format="%(message)s",
            level=level,
        )

        logger.setLevel(level)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global Settings instance.

    Returns:
        The singleton Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.configure_logging()
    return _settings
