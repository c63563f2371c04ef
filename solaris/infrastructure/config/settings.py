"""
Runtime settings, read from ``SOLARIS_*`` environment variables.
"""

from typing import Mapping, Optional
import os

from pydantic import BaseModel, Field


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Settings for the agent core"""
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")
    service_name: str = Field(default="solaris-agent")

    compaction_threshold: int = Field(default=50_000, ge=0, description="Estimated tokens above which history is compacted")
    recent_messages: int = Field(default=10, ge=1, description="Messages kept verbatim after compaction")
    digest_lines: int = Field(default=20, ge=0, description="Max tool digest lines in a checkpoint")
    max_tool_steps: int = Field(default=25, ge=1, description="Max model/tool round trips per turn")
    max_sessions: int = Field(default=1000, ge=1, description="Conversation histories kept in memory")

    stream_buffer: int = Field(default=256, ge=1, description="Per-subscriber queue size")
    stream_grace_seconds: float = Field(default=30.0, ge=0)
    stream_durable: bool = Field(default=False, description="Keep finished streams for resumption")
    stream_ttl_seconds: int = Field(default=3600, ge=1)

    uniform_access_errors: bool = Field(default=False, description="Report not-found and forbidden alike to callers")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables"""

        environ = os.environ if environ is None else environ
        values = {}

        for name, field in cls.model_fields.items():
            raw = environ.get(f"SOLARIS_{name.upper()}")
            if raw is None:
                continue
            if field.annotation is bool:
                values[name] = _env_bool(raw)
            else:
                values[name] = raw

        return cls.model_validate(values)
