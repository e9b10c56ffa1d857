# tests/_fakes.py

from __future__ import annotations

from typing import List, Optional

from together.models.sync import PlayerState, VideoRef
from together.services.api import RoomRequestError


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakePlayer:
    """Records every command; position only changes when a test sets it."""

    def __init__(self, time: float = 0.0, state: PlayerState = PlayerState.UNKNOWN):
        self.time = time
        self.state = state
        self.calls: list = []
        self.loaded: List[str] = []

    def get_time(self) -> float:
        return self.time

    def get_state(self) -> PlayerState:
        return self.state

    def play(self):
        self.calls.append(("play",))
        self.state = PlayerState.PLAYING

    def pause(self):
        self.calls.append(("pause",))
        self.state = PlayerState.PAUSED

    def seek(self, seconds: float):
        self.calls.append(("seek", seconds))
        self.time = seconds

    def load_video(self, video_id: str):
        self.loaded.append(video_id)
        self.time = 0.0

    def seeks(self) -> List[float]:
        return [c[1] for c in self.calls if c[0] == "seek"]


class FakeChannel:
    instances: List["FakeChannel"] = []

    def __init__(self, url, on_message, on_disconnect=None):
        self.url = url
        self.on_message = on_message
        self.on_disconnect = on_disconnect
        self.connected = False
        self.sid = "sid-me"
        self.emitted: list = []
        FakeChannel.instances.append(self)

    async def connect(self):
        self.connected = True

    async def emit(self, message):
        self.emitted.append((message.event, message.payload()))

    async def close(self):
        self.connected = False

    def events(self) -> List[str]:
        return [event for event, _ in self.emitted]


class FakeApi:
    def __init__(self, rooms=("AB12C3",), created_code: str = "QWE123", error: Optional[str] = None):
        self.rooms = set(rooms)
        self.created_code = created_code
        self.error = error
        self.calls: list = []
        self.search_results: List[VideoRef] = []

    async def create_room(self, video_id: str) -> str:
        self.calls.append(("create", video_id))
        if self.error:
            raise RoomRequestError(self.error)
        return self.created_code

    async def room_exists(self, code: str) -> bool:
        self.calls.append(("exists", code))
        if self.error:
            raise RoomRequestError(self.error)
        return code in self.rooms

    async def search(self, query: str) -> List[VideoRef]:
        self.calls.append(("search", query))
        if self.error:
            raise RoomRequestError(self.error)
        return list(self.search_results)

    async def related(self, video_id: str, channel_id: str = "") -> List[VideoRef]:
        return []

    async def aclose(self):
        pass
