import os
import logging
from typing import List
from pydantic import BaseModel, model_validator

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class SyncSettings(BaseModel):
    backend_url: str = "http://localhost:4000"
    allowed_origins: List[str] = ["*"]
    resolve_metadata: bool = True
    request_timeout_s: float = 10.0

    # Reconciler
    sync_buffer_s: float = 0.25 # Dispatch latency of our own seek
    force_drift_threshold_s: float = 0.2
    ambient_playing_threshold_s: float = 1.0
    ambient_paused_threshold_s: float = 0.35

    # Suppression windows after a corrective action
    ambient_settle_ms: float = 350
    event_settle_ms: float = 500 # sync-play / sync-pause / sync-seek
    room_state_settle_ms: float = 700
    video_change_settle_ms: float = 500
    bootstrap_delay_ms: float = 200 # Time for the video to load after room-state

    # Local observer
    observer_interval_ms: float = 250
    seek_jump_threshold_s: float = 1.2
    seek_emit_cooldown_ms: float = 900

    @model_validator(mode="after")
    def _check_settle_order(self):
        # Authoritative events must keep the observer quiet at least as long as ambient ones
        ambient = self.ambient_settle_ms
        for name in ("event_settle_ms", "room_state_settle_ms", "video_change_settle_ms"):
            if getattr(self, name) < ambient:
                raise ValueError(f"{name} must not be shorter than ambient_settle_ms")
        return self

    @classmethod
    def from_env(cls) -> "SyncSettings":
        defaults = cls()
        return cls(
            backend_url=os.getenv("BACKEND_URL", defaults.backend_url).strip().rstrip("/"),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
            resolve_metadata=_env_bool("RESOLVE_METADATA", defaults.resolve_metadata),
            request_timeout_s=_env_float("REQUEST_TIMEOUT_S", defaults.request_timeout_s),
            sync_buffer_s=_env_float("SYNC_BUFFER_S", defaults.sync_buffer_s),
            force_drift_threshold_s=_env_float("FORCE_DRIFT_THRESHOLD_S", defaults.force_drift_threshold_s),
            ambient_playing_threshold_s=_env_float("AMBIENT_PLAYING_THRESHOLD_S", defaults.ambient_playing_threshold_s),
            ambient_paused_threshold_s=_env_float("AMBIENT_PAUSED_THRESHOLD_S", defaults.ambient_paused_threshold_s),
            ambient_settle_ms=_env_float("AMBIENT_SETTLE_MS", defaults.ambient_settle_ms),
            event_settle_ms=_env_float("EVENT_SETTLE_MS", defaults.event_settle_ms),
            room_state_settle_ms=_env_float("ROOM_STATE_SETTLE_MS", defaults.room_state_settle_ms),
            video_change_settle_ms=_env_float("VIDEO_CHANGE_SETTLE_MS", defaults.video_change_settle_ms),
            bootstrap_delay_ms=_env_float("BOOTSTRAP_DELAY_MS", defaults.bootstrap_delay_ms),
            observer_interval_ms=_env_float("OBSERVER_INTERVAL_MS", defaults.observer_interval_ms),
            seek_jump_threshold_s=_env_float("SEEK_JUMP_THRESHOLD_S", defaults.seek_jump_threshold_s),
            seek_emit_cooldown_ms=_env_float("SEEK_EMIT_COOLDOWN_MS", defaults.seek_emit_cooldown_ms),
        )
