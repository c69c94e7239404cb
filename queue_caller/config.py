"""Viewer configuration.

Defaults follow the two viewer roles: the display board reconnects after 5 s and
polls every 2 s; a counter screen reconnects after 3 s and polls every 3 s.
Command-line flags (see app.py) override any field.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .channels import DEFAULT_NAMESPACE, DISPLAY_STREAM

TRANSPORTS = ("sse", "mqtt")


@dataclass(frozen=True)
class CallerConfig:
    server_url: str = "http://127.0.0.1:8080"
    counter_id: int | None = None  # None = display board

    # push channel
    transport: str = "sse"
    mqtt_host: str = "127.0.0.1"
    mqtt_port: int = 1883
    namespace: str = DEFAULT_NAMESPACE
    reconnect_delay: float = 5.0

    # timers (seconds)
    poll_interval: float = 2.0
    pull_interval: float = 10.0
    render_interval: float = 30.0
    highlight_seconds: float = 5.0

    # board
    recent_capacity: int = 5
    history_capacity: int = 20

    # audio
    audio_enabled: bool | None = None  # None = use the saved preference
    bell_delay: float = 0.5
    inter_job_pause: float = 0.3
    disabled_delay: float = 0.7
    preferences_path: Path | None = None

    def __post_init__(self) -> None:
        if self.transport not in TRANSPORTS:
            raise ValueError(f"transport must be one of {TRANSPORTS}, got {self.transport!r}")
        if self.recent_capacity < 1 or self.history_capacity < 1:
            raise ValueError("recent/history capacity must be positive")
        for name in ("reconnect_delay", "poll_interval", "pull_interval", "render_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    @property
    def is_display(self) -> bool:
        return self.counter_id is None

    @property
    def stream_id(self) -> str | int:
        return DISPLAY_STREAM if self.counter_id is None else self.counter_id

    @property
    def role(self) -> str:
        return "display" if self.is_display else "counter"

    @classmethod
    def for_display(cls, **overrides: Any) -> CallerConfig:
        return replace(cls(), **overrides)

    @classmethod
    def for_counter(cls, counter_id: int, **overrides: Any) -> CallerConfig:
        base = cls(counter_id=counter_id, reconnect_delay=3.0, poll_interval=3.0, pull_interval=5.0)
        return replace(base, **overrides)
