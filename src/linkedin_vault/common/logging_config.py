"""Logging section of the configuration."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["simple", "detailed", "json"]


class LoggingConfig(BaseModel):
    """Where and how the service writes its log.

    Logs always go to stderr; ``file`` adds a rotating file handler so
    stdout stays free for CLI JSON output.
    """

    model_config = ConfigDict(extra='forbid')

    level: LogLevel = "INFO"
    format: LogFormat = Field(default="json", description="simple, detailed or json")
    file: Optional[str] = Field(default=None, description="Rotating log file path")
    max_file_size_mb: int = Field(default=10, ge=1)
    backup_count: int = Field(default=5, ge=0, description="Rotated files kept")

    @field_validator('level', 'format', mode='before')
    @classmethod
    def _fold_case(cls, value, info):
        if not isinstance(value, str):
            return value
        return value.upper() if info.field_name == 'level' else value.lower()
