"""Configuration for the ticket workflow CLI.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OutputFormat = Literal["text", "summary", "json"]


class WorkflowSettings(BaseSettings):
    """Settings for the ticket workflow.

    Environment variables:
    - LOG_LEVEL                       (optional)
    - TICKET_WORKFLOW_LOG_JSON        (optional)
    - TICKET_WORKFLOW_OUTPUT_FORMAT   (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `WorkflowSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    log_json: bool = Field(
        default=True,
        validation_alias="TICKET_WORKFLOW_LOG_JSON",
        description="Emit JSON log lines (false falls back to a plain text format)",
    )

    output_format: OutputFormat = Field(
        default="text",
        validation_alias="TICKET_WORKFLOW_OUTPUT_FORMAT",
        description="Default renderer used when printing applied events",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unsupported log level: {value!r}")
        return level
