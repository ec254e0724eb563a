"""Connection configuration."""

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ConnectionConfig(BaseModel):
    """Reconnection, heartbeat and queue configuration.

    Durations are in seconds. ``max_queue_bytes=None`` leaves the queue
    bounded by ``max_queue_count`` only.
    """

    model_config = ConfigDict(extra="forbid")

    connect_timeout: float = Field(
        default=10.0, gt=0, description="Seconds allowed per connect attempt"
    )
    max_reconnect_attempts: int = Field(
        default=5, ge=0, description="Backoff attempts before giving up"
    )
    reconnect_backoff_factor: float = Field(
        default=1.5, gt=0, description="Exponential multiplier per attempt"
    )
    max_reconnect_delay: Optional[float] = Field(
        default=None, gt=0, description="Upper bound on a single backoff delay"
    )
    fallback_delay: float = Field(
        default=0.1, ge=0, description="Settle delay before trying the next URL"
    )
    heartbeat_interval: float = Field(
        default=30.0, gt=0, description="Probe interval in seconds"
    )
    heartbeat_timeout: float = Field(
        default=5.0, gt=0, description="Max silence after a probe in seconds"
    )
    enable_heartbeat: bool = Field(
        default=False, description="Send periodic liveness probes"
    )
    heartbeat_message: Union[str, bytes] = Field(
        default="ping", description="Probe payload"
    )
    max_queue_count: int = Field(
        default=100, gt=0, description="Maximum queued messages while offline"
    )
    max_queue_bytes: Optional[int] = Field(
        default=None, gt=0, description="Maximum queued bytes while offline"
    )
    protocols: Optional[List[str]] = Field(
        default=None, description="Sub-protocols offered during the handshake"
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionConfig":
        """Load configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            ConnectionConfig instance
        """
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: str) -> "ConnectionConfig":
        """Load configuration from a JSON file.

        Args:
            path: Path to configuration file

        Returns:
            ConnectionConfig instance
        """
        with open(path, "r") as f:
            data = json.load(f)
        return cls.model_validate(data)

    def with_overrides(self, **options: Any) -> "ConnectionConfig":
        """Return a validated copy with the given fields replaced."""
        if not options:
            return self
        return self.model_validate({**self.model_dump(), **options})
