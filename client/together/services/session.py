import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional
from pydantic import ValidationError
from together.config import SyncSettings
from together.models import messages as m
from together.models.sync import (
    DEFAULT_VIDEO, ChatMessage, PlaybackSnapshot, RoomSession, SharedSyncState, VideoRef, now_ms,
)
from together.services.api import RoomApi, RoomRequestError, normalize_room_code
from together.services.channel import RoomChannel
from together.services.observer import LocalObserver
from together.services.player import PlayerAdapter
from together.services.reconciler import Reconciler

logger = logging.getLogger(__name__)

ChannelFactory = Callable[..., RoomChannel]
VideoResolver = Callable[[str], Awaitable[Optional[VideoRef]]]


class SessionState(str, Enum):
    IDLE = "idle"
    CREATING = "creating"
    JOINING = "joining"
    JOINED = "joined"


class SessionController:
    """
    Room lifecycle for one client: create/join, the joined session, exit/termination.

    Owns the channel, the reconciler and the local observer; both engine halves are
    only active while joined.
    """

    def __init__(
        self,
        settings: SyncSettings,
        api: RoomApi,
        channel_factory: ChannelFactory = RoomChannel,
        player: Optional[PlayerAdapter] = None,
        resolver: Optional[VideoResolver] = None,
        clock: Callable[[], float] = now_ms,
    ):
        self.settings = settings
        self.api = api
        self.channel_factory = channel_factory
        self.resolver = resolver
        self.clock = clock

        self.sync = SharedSyncState()
        self.reconciler = Reconciler(self.sync, settings, player, clock)
        self.observer = LocalObserver(self.sync, settings, player, clock)
        self.channel: Optional[RoomChannel] = None

        self.state = SessionState.IDLE
        self.session: Optional[RoomSession] = None
        self.status = "Search and select a video"
        self.messages: List[ChatMessage] = []
        self.current_video: VideoRef = DEFAULT_VIDEO
        self.search_results: List[VideoRef] = []
        self.related_results: List[VideoRef] = []
        self._bootstrap: Optional[asyncio.Task] = None
        self._background: set = set()

        self._handlers: Dict[type, Callable] = {
            m.RoomState: self._on_room_state,
            m.RemotePlay: self._on_remote_event,
            m.RemotePause: self._on_remote_event,
            m.RemoteSeek: self._on_remote_event,
            m.SyncState: self._on_sync_state,
            m.VideoChanged: self._on_video_changed,
            m.RoomOwnerChanged: self._on_owner_changed,
            m.RoomExited: self._on_room_exited,
            m.RoomTerminated: self._on_room_terminated,
            m.JoinError: self._on_error,
            m.ActionError: self._on_error,
            m.ChatReceived: self._on_chat,
            m.SystemMessage: self._on_system_message,
        }
        missing = set(m.INBOUND_MESSAGES.values()) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for inbound messages: {sorted(c.__name__ for c in missing)}")

    # Player

    @property
    def player(self) -> Optional[PlayerAdapter]:
        return self.reconciler.player

    def attach_player(self, player: Optional[PlayerAdapter]):
        self.reconciler.player = player
        self.observer.player = player
        self.sync.last_sample = None
        if player is not None and self.current_video.video_id:
            player.load_video(self.current_video.video_id)

    @property
    def joined(self) -> bool:
        return self.state == SessionState.JOINED and self.session is not None

    @property
    def is_host(self) -> bool:
        return self.joined and self.session.is_host

    @property
    def can_terminate(self) -> bool:
        return self.is_host

    # Channel

    async def _open_channel(self) -> RoomChannel:
        if self.channel is None:
            self.channel = self.channel_factory(
                self.settings.backend_url, self.handle_message, self._on_disconnect
            )
        await self.channel.connect()
        return self.channel

    async def _emit(self, message: m.Outbound):
        if self.channel is None or not self.channel.connected:
            logger.warning(f"Dropping {message.event}, channel not connected")
            return
        await self.channel.emit(message)

    # Local actions

    async def create_room(self, username: str) -> bool:
        name = (username or "").strip()
        video_id = self.current_video.video_id
        if not name:
            self.status = "Enter username"
            return False
        if not video_id:
            self.status = "Select a video first"
            return False
        if self.joined:
            self.status = "Exit the current room first"
            return False

        self.state = SessionState.CREATING
        self.status = "Creating room..."
        try:
            code = await self.api.create_room(video_id)
            await self._open_channel()
        except RoomRequestError as e:
            self.state = SessionState.IDLE
            self.status = str(e) or "Failed to create room"
            return False
        except Exception as e:
            logger.error(f"Room creation failed: {e}", exc_info=True)
            self.state = SessionState.IDLE
            self.status = "Failed to create room"
            return False

        self.session = RoomSession(room_code=code, is_host=True)
        await self._emit(m.JoinRoom(room_code=code, username=name))
        return True

    async def join_room(self, username: str, code: str) -> bool:
        name = (username or "").strip()
        if not name:
            self.status = "Enter username"
            return False
        room_code = normalize_room_code(code)
        if not room_code:
            self.status = "Room code must be 6 letters/numbers"
            return False
        if self.joined:
            self.status = "Exit the current room first"
            return False

        self.state = SessionState.JOINING
        self.status = "Joining room..."
        try:
            if not await self.api.room_exists(room_code):
                raise RoomRequestError("Room not found")
            await self._open_channel()
        except RoomRequestError as e:
            self.state = SessionState.IDLE
            self.status = str(e) or "Failed to join room"
            return False
        except Exception as e:
            logger.error(f"Joining room {room_code} failed: {e}", exc_info=True)
            self.state = SessionState.IDLE
            self.status = "Failed to join room"
            return False

        self.session = RoomSession(room_code=room_code)
        await self._emit(m.JoinRoom(room_code=room_code, username=name))
        return True

    async def exit_room(self) -> bool:
        if not self.joined:
            self.status = "Not in a room"
            return False
        await self._emit(m.ExitRoom())
        self._reset("Left room")
        return True

    async def terminate_room(self) -> bool:
        if not self.can_terminate:
            self.status = "Only the host can terminate the room"
            return False
        # The server confirms with room-terminated, which resets the session
        await self._emit(m.TerminateRoom())
        self.status = "Terminating room..."
        return True

    async def send_chat(self, text: str) -> bool:
        text = (text or "").strip()
        if not self.joined or not text:
            return False
        await self._emit(m.SendChat(text=text))
        return True

    async def select_video(self, video: VideoRef, broadcast: bool = True) -> bool:
        if not video or not video.video_id:
            return False
        self.current_video = video
        self._load_in_player(video.video_id)
        # The room must hear about the new video before any playback event for it
        if broadcast and self.joined:
            await self._emit(m.SetVideo(video_id=video.video_id))
            self.status = "Video synced to room"
        self._spawn(self.fetch_related(video))
        return True

    async def search_videos(self, term: str) -> List[VideoRef]:
        query = str(term or "").strip()
        if not query:
            return self.search_results
        self.status = "Searching YouTube..."
        try:
            results = await self.api.search(query)
        except RoomRequestError as e:
            self.status = str(e) or "Search failed"
            return self.search_results
        self.search_results = results
        if not self.current_video.video_id and results:
            await self.select_video(results[0], broadcast=False)
        self.status = f"Found {len(results)} videos"
        return results

    async def fetch_related(self, video: VideoRef) -> List[VideoRef]:
        try:
            self.related_results = await self.api.related(video.video_id, video.channel_id)
        except RoomRequestError as e:
            logger.info(f"Related videos unavailable for {video.video_id}: {e}")
            self.related_results = []
        return self.related_results

    # Inbound

    async def handle_message(self, event: str, data: dict):
        try:
            message = m.parse_inbound(event, data)
        except KeyError:
            logger.warning(f"Ignoring unknown event {event}")
            return
        except ValidationError as e:
            logger.warning(f"Dropping malformed {event}: {e}")
            return

        try:
            await self._handlers[type(message)](message)
        except Exception as e:
            logger.error(f"Error handling {event}: {e}", exc_info=True)

    async def _on_room_state(self, msg: m.RoomState):
        code = msg.room_code or (self.session.room_code if self.session else "")
        self.session = RoomSession(room_code=code, is_host=msg.is_host, joined=True)
        self.state = SessionState.JOINED
        logger.info(f"Joined room {code} as {'host' if msg.is_host else 'guest'}")

        now = self.clock()
        if msg.video_id:
            self._show_video(msg.video_id)
        self.sync.suppression.engage(now, self.settings.room_state_settle_ms)

        self._cancel_bootstrap()
        self._bootstrap = asyncio.get_running_loop().create_task(self._bootstrap_playback(msg.snapshot()))

        self.messages = [ChatMessage(**{**c.model_dump(), "kind": "chat"}) for c in msg.chat]
        self.status = "Joined room"

        self.observer.reset()
        if self.channel is not None:
            self.observer.start(self._emit)

    async def _bootstrap_playback(self, snapshot: PlaybackSnapshot):
        # Give the freshly loaded video time to become seekable
        await asyncio.sleep(self.settings.bootstrap_delay_ms / 1000)
        if not self.joined:
            return
        self.reconciler.apply_snapshot(snapshot, force_seek=True, settle_ms=self.settings.room_state_settle_ms)

    async def _on_remote_event(self, msg: m.PlaybackMessage):
        if not self.joined:
            return
        self.reconciler.apply_snapshot(msg.snapshot(), force_seek=True, settle_ms=self.settings.event_settle_ms)

    async def _on_sync_state(self, msg: m.SyncState):
        if not self.joined:
            return
        self.reconciler.apply_snapshot(msg.snapshot(), force_seek=False)

    async def _on_video_changed(self, msg: m.VideoChanged):
        if msg.video_id:
            # A pending join snapshot belongs to the previous video
            self._cancel_bootstrap()
            self._show_video(msg.video_id)
            if self.player is not None:
                self.sync.suppression.engage(self.clock(), self.settings.video_change_settle_ms)
        self._append_system(f"Video changed by {msg.by}")

    async def _on_owner_changed(self, msg: m.RoomOwnerChanged):
        if self.session is None:
            return
        own_sid = self.channel.sid if self.channel is not None else None
        self.session.is_host = bool(own_sid) and msg.owner_socket_id == own_sid
        logger.info(f"Room owner changed, host={self.session.is_host}")

    async def _on_room_exited(self, msg: m.RoomExited):
        self._reset("Left room")

    async def _on_room_terminated(self, msg: m.RoomTerminated):
        self._reset(f"Room terminated by {msg.by}" if msg.by else "Room terminated")

    async def _on_error(self, msg):
        default = "Join failed" if isinstance(msg, m.JoinError) else "Action failed"
        self.status = msg.message or default

    async def _on_chat(self, msg: m.ChatReceived):
        self.messages.append(ChatMessage(**{**msg.model_dump(), "kind": "chat"}))

    async def _on_system_message(self, msg: m.SystemMessage):
        self._append_system(msg.text)

    async def _on_disconnect(self):
        if self.session is not None or self.state != SessionState.IDLE:
            self._reset("Disconnected")

    # Helpers

    def _append_system(self, text: str):
        self.messages.append(ChatMessage(id=f"sys-{int(self.clock())}", text=text, kind="system"))

    def _known_video(self, video_id: str) -> Optional[VideoRef]:
        for video in (*self.search_results, *self.related_results, self.current_video):
            if video.video_id == video_id:
                return video
        return None

    def _show_video(self, video_id: str):
        video = self._known_video(video_id)
        if video is None:
            video = DEFAULT_VIDEO.model_copy(update={"video_id": video_id})
            self._spawn(self._resolve_metadata(video_id))
        self.current_video = video
        self._load_in_player(video_id)
        self._spawn(self.fetch_related(video))

    def _load_in_player(self, video_id: str):
        if self.player is None:
            return
        self.player.load_video(video_id)
        # A new video starts from 0, which is not a user seek
        self.sync.last_sample = None

    async def _resolve_metadata(self, video_id: str):
        if self.resolver is None:
            return
        video = await self.resolver(video_id)
        if video is not None and self.current_video.video_id == video_id:
            self.current_video = video

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(self._guarded(coro))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _guarded(self, coro):
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Background task failed: {e}", exc_info=True)

    def _cancel_bootstrap(self):
        if self._bootstrap is not None:
            self._bootstrap.cancel()
            self._bootstrap = None

    def _reset(self, status: str):
        self.observer.stop()
        self.observer.reset()
        self._cancel_bootstrap()
        self.sync.reset()
        self.session = None
        self.messages = []
        self.state = SessionState.IDLE
        self.status = status
        logger.info(f"Session reset: {status}")

    async def close(self):
        self._reset("Closed")
        for task in list(self._background):
            task.cancel()
        if self.channel is not None:
            self.channel.on_disconnect = None
            await self.channel.close()
        await self.api.aclose()
