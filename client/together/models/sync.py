import math
import time
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_ms() -> float:
    return time.time() * 1000


def as_seconds(value: Any) -> float:
    """Playback position from an untrusted payload; anything unusable becomes 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return 0.0
    return seconds


def as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


class PlayerState(str, Enum):
    UNKNOWN = "unknown"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_playing: bool = Field(False, alias="isPlaying")
    current_time: float = Field(0.0, alias="currentTime")
    server_now: float = Field(0.0, alias="serverNow") # Epoch ms when the server sent it

    @field_validator("is_playing", mode="before")
    @classmethod
    def _flag(cls, value):
        return as_flag(value)

    @field_validator("current_time", "server_now", mode="before")
    @classmethod
    def _non_negative(cls, value):
        return as_seconds(value)


class LocalSample(BaseModel):
    time: float
    captured_at: float # Epoch ms
    state: PlayerState = PlayerState.UNKNOWN


class SuppressionWindow:
    """Keeps the local observer quiet while the player settles after a corrective action.

    Each engagement moves the single deadline instead of stacking timers: a fresh
    snapshot restarts the settle period, and a short window opened during a longer
    one never ends the longer one early.
    """

    def __init__(self):
        self.active = False
        self.deadline_ms = 0.0

    def engage(self, now: float, settle_ms: float):
        deadline = now + settle_ms
        if self.active and now < self.deadline_ms:
            deadline = max(self.deadline_ms, deadline)
        self.active = True
        self.deadline_ms = deadline

    def release(self):
        self.active = False
        self.deadline_ms = 0.0

    def is_active(self, now: float) -> bool:
        if self.active and now >= self.deadline_ms:
            self.release()
        return self.active


class SharedSyncState:
    """State both directions of the engine read and write.

    Only touched from the event loop thread, so plain attribute writes are enough.
    """

    def __init__(self):
        self.suppression = SuppressionWindow()
        self.last_sample: Optional[LocalSample] = None
        self.last_seek_emit_ms = 0.0

    def reset(self):
        self.suppression.release()
        self.last_sample = None
        self.last_seek_emit_ms = 0.0


class VideoRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field("", alias="videoId")
    channel_id: str = Field("", alias="channelId")
    title: str = "Untitled"
    channel_title: str = Field("Unknown channel", alias="channelTitle")
    thumbnail: str = ""

    @classmethod
    def from_item(cls, item: Optional[dict]) -> "VideoRef":
        item = item or {}
        return cls(
            video_id=item.get("videoId") or "",
            channel_id=item.get("channelId") or "",
            title=item.get("title") or "Untitled",
            channel_title=item.get("channelTitle") or "Unknown channel",
            thumbnail=item.get("thumbnail") or "",
        )


DEFAULT_VIDEO = VideoRef(
    video_id="dQw4w9WgXcQ",
    title="Starter Video",
    channel_title="Together",
)


class RoomSession(BaseModel):
    room_code: str
    is_host: bool = False
    joined: bool = False


class ChatMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Any = None # Server ids may be numeric
    username: Optional[str] = None
    text: str = ""
    kind: str = "chat" # chat, system
