from typing import ClassVar, Dict, List, Optional, Type, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from together.models.sync import ChatMessage, PlaybackSnapshot, as_flag, as_seconds


class Outbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event: ClassVar[str]

    def payload(self) -> dict:
        return self.model_dump(by_alias=True)


class JoinRoom(Outbound):
    event: ClassVar[str] = "join-room"
    room_code: str = Field(alias="roomCode")
    username: str


class SetVideo(Outbound):
    event: ClassVar[str] = "set-video"
    video_id: str = Field(alias="videoId")


class SendChat(Outbound):
    event: ClassVar[str] = "chat-message"
    text: str


class SyncPlay(Outbound):
    event: ClassVar[str] = "sync-play"
    current_time: float = Field(alias="currentTime")


class SyncPause(Outbound):
    event: ClassVar[str] = "sync-pause"
    current_time: float = Field(alias="currentTime")


class SyncSeek(Outbound):
    event: ClassVar[str] = "sync-seek"
    current_time: float = Field(alias="currentTime")


class ExitRoom(Outbound):
    event: ClassVar[str] = "exit-room"


class TerminateRoom(Outbound):
    event: ClassVar[str] = "terminate-room"


class Inbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event: ClassVar[str]


class PlaybackMessage(Inbound):
    is_playing: bool = Field(False, alias="isPlaying")
    current_time: float = Field(0.0, alias="currentTime")
    server_now: float = Field(0.0, alias="serverNow")

    @field_validator("is_playing", mode="before")
    @classmethod
    def _flag(cls, value):
        return as_flag(value)

    @field_validator("current_time", "server_now", mode="before")
    @classmethod
    def _non_negative(cls, value):
        return as_seconds(value)

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            is_playing=self.is_playing,
            current_time=self.current_time,
            server_now=self.server_now,
        )


class RoomState(PlaybackMessage):
    event: ClassVar[str] = "room-state"
    room_code: str = Field("", alias="roomCode")
    is_host: bool = Field(False, alias="isHost")
    video_id: str = Field("", alias="videoId")
    chat: List[ChatMessage] = []

    @field_validator("room_code", "video_id", mode="before")
    @classmethod
    def _text(cls, value):
        return str(value) if value is not None else ""

    @field_validator("is_host", mode="before")
    @classmethod
    def _host(cls, value):
        return as_flag(value)

    @field_validator("chat", mode="before")
    @classmethod
    def _chat(cls, value):
        return [m for m in (value or []) if isinstance(m, dict)]


class RemotePlay(PlaybackMessage):
    event: ClassVar[str] = "sync-play"


class RemotePause(PlaybackMessage):
    event: ClassVar[str] = "sync-pause"


class RemoteSeek(PlaybackMessage):
    event: ClassVar[str] = "sync-seek"


class SyncState(PlaybackMessage):
    event: ClassVar[str] = "sync-state"


class VideoChanged(Inbound):
    event: ClassVar[str] = "video-changed"
    video_id: str = Field("", alias="videoId")
    by: Optional[str] = None

    @field_validator("video_id", mode="before")
    @classmethod
    def _text(cls, value):
        return str(value) if value is not None else ""


class RoomOwnerChanged(Inbound):
    event: ClassVar[str] = "room-owner-changed"
    owner_socket_id: Optional[str] = Field(None, alias="ownerSocketId")


class RoomExited(Inbound):
    event: ClassVar[str] = "room-exited"
    by: Optional[str] = None


class RoomTerminated(Inbound):
    event: ClassVar[str] = "room-terminated"
    by: Optional[str] = None


class JoinError(Inbound):
    event: ClassVar[str] = "join-error"
    message: Optional[str] = None


class ActionError(Inbound):
    event: ClassVar[str] = "action-error"
    message: Optional[str] = None


class ChatReceived(ChatMessage):
    event: ClassVar[str] = "chat-message"


class SystemMessage(Inbound):
    event: ClassVar[str] = "system-message"
    text: str = ""


InboundMessage = Union[
    RoomState, RemotePlay, RemotePause, RemoteSeek, SyncState, VideoChanged,
    RoomOwnerChanged, RoomExited, RoomTerminated, JoinError, ActionError,
    ChatReceived, SystemMessage,
]

INBOUND_MESSAGES: Dict[str, Type[BaseModel]] = {
    cls.event: cls for cls in InboundMessage.__args__
}


def parse_inbound(event: str, data) -> BaseModel:
    """Build the typed message for a channel event.

    Raises KeyError for an event we do not handle and pydantic's ValidationError
    for a payload that cannot be coerced.
    """
    model = INBOUND_MESSAGES[event]
    if not isinstance(data, dict):
        data = {}
    return model.model_validate(data)
