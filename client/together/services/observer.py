import asyncio
import logging
from typing import Awaitable, Callable, List, Optional
from together.config import SyncSettings
from together.models.messages import Outbound, SyncPause, SyncPlay, SyncSeek
from together.models.sync import LocalSample, PlayerState, SharedSyncState, as_seconds, now_ms
from together.services.player import PlayerAdapter

logger = logging.getLogger(__name__)

REPORTABLE = (PlayerState.PLAYING, PlayerState.PAUSED)


class LocalObserver:
    """
    Samples the local player and decides which user actions to broadcast.

    Two separate memories are kept: the drift sample in SharedSyncState (refreshed
    every tick, used for seek detection) and the last reported play/pause state
    (an edge trigger, so each transition is reported exactly once).
    """

    def __init__(
        self,
        state: SharedSyncState,
        settings: SyncSettings,
        player: Optional[PlayerAdapter] = None,
        clock: Callable[[], float] = now_ms,
    ):
        self.state = state
        self.settings = settings
        self.player = player
        self.clock = clock
        self.last_reported = PlayerState.UNKNOWN
        self._task: Optional[asyncio.Task] = None

    def reset(self):
        self.last_reported = PlayerState.UNKNOWN

    def sample(self) -> List[Outbound]:
        player = self.player
        if player is None:
            return []

        now = self.clock()
        current = as_seconds(player.get_time())
        state = player.get_state()

        if self.state.suppression.is_active(now):
            # Reconciler-driven transitions are not user actions
            if state in REPORTABLE:
                self.last_reported = state
            return []

        events: List[Outbound] = []
        if state in REPORTABLE:
            previous = self.state.last_sample
            if previous is not None and previous.state in REPORTABLE:
                elapsed = (now - previous.captured_at) / 1000
                expected = previous.time + (elapsed if previous.state == PlayerState.PLAYING else 0)
                jump = abs(current - expected)
                cooled_down = now - self.state.last_seek_emit_ms >= self.settings.seek_emit_cooldown_ms
                if jump > self.settings.seek_jump_threshold_s and cooled_down:
                    logger.info(f"Local seek detected ({jump:.2f}s jump), broadcasting {current:.2f}")
                    events.append(SyncSeek(current_time=current))
                    self.state.last_seek_emit_ms = now
            self.state.last_sample = LocalSample(time=current, captured_at=now, state=state)

            if state != self.last_reported:
                self.last_reported = state
                if state == PlayerState.PLAYING:
                    events.append(SyncPlay(current_time=current))
                else:
                    events.append(SyncPause(current_time=current))
        return events

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, emit: Callable[[Outbound], Awaitable[None]]):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(emit))

    def stop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, emit: Callable[[Outbound], Awaitable[None]]):
        interval = self.settings.observer_interval_ms / 1000
        logger.info(f"Local observer started ({self.settings.observer_interval_ms:.0f}ms)")
        try:
            while True:
                try:
                    for message in self.sample():
                        await emit(message)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Observer tick failed: {e}", exc_info=True)
                await asyncio.sleep(interval)
        finally:
            logger.info("Local observer stopped")
