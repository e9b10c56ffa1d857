import logging
from typing import Callable, Optional, Protocol
from together.models.sync import PlayerState, now_ms

logger = logging.getLogger(__name__)


class PlayerAdapter(Protocol):
    """Capability surface of an embedded video player."""

    def get_time(self) -> float: ...

    def get_state(self) -> PlayerState: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def load_video(self, video_id: str) -> None: ...


class ClockPlayer:
    """Headless player whose position advances with the wall clock while playing.

    Used when no real widget is attached, so a client can follow a room (and be
    driven like a user through the local app) without rendering video.
    """

    def __init__(self, clock: Callable[[], float] = now_ms, duration: Optional[float] = None):
        self.clock = clock
        self.duration = duration
        self.video_id: Optional[str] = None
        self._state = PlayerState.UNKNOWN
        self._position = 0.0
        self._anchor_ms = clock()

    def get_time(self) -> float:
        if self._state != PlayerState.PLAYING:
            return self._position
        position = self._position + (self.clock() - self._anchor_ms) / 1000
        if self.duration is not None:
            position = min(position, self.duration)
        return position

    def get_state(self) -> PlayerState:
        return self._state

    def play(self):
        if self._state == PlayerState.PLAYING:
            return
        self._position = self.get_time()
        self._anchor_ms = self.clock()
        self._state = PlayerState.PLAYING

    def pause(self):
        self._position = self.get_time()
        self._anchor_ms = self.clock()
        self._state = PlayerState.PAUSED

    def seek(self, seconds: float):
        self._position = max(0.0, float(seconds))
        self._anchor_ms = self.clock()

    def load_video(self, video_id: str):
        logger.info(f"Loading video {video_id}")
        self.video_id = video_id
        self._position = 0.0
        self._anchor_ms = self.clock()
        self._state = PlayerState.UNKNOWN # Cued, like a freshly loaded embed
