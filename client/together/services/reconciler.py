import logging
from typing import Callable, Optional
from together.config import SyncSettings
from together.models.sync import LocalSample, PlaybackSnapshot, PlayerState, SharedSyncState, as_seconds, now_ms
from together.services.player import PlayerAdapter

logger = logging.getLogger(__name__)


class Reconciler:
    """Turns remote playback snapshots into local player commands."""

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

    def transit_seconds(self, snapshot: PlaybackSnapshot, now: float) -> float:
        if snapshot.server_now <= 0:
            return 0.0
        return max(0.0, (now - snapshot.server_now) / 1000)

    def target_time(self, snapshot: PlaybackSnapshot, now: float) -> float:
        if not snapshot.is_playing:
            return snapshot.current_time
        return snapshot.current_time + self.transit_seconds(snapshot, now) + self.settings.sync_buffer_s

    def threshold(self, snapshot: PlaybackSnapshot, force_seek: bool) -> float:
        if force_seek:
            return self.settings.force_drift_threshold_s
        if snapshot.is_playing:
            return self.settings.ambient_playing_threshold_s
        return self.settings.ambient_paused_threshold_s

    def apply_snapshot(self, snapshot: PlaybackSnapshot, force_seek: bool = False, settle_ms: Optional[float] = None):
        """
        Bring the local player in line with a remote snapshot.

        force_seek is for authoritative events (join, explicit play/pause/seek) and
        uses the tight drift threshold; ambient snapshots tolerate more drift.
        """
        player = self.player
        if player is None:
            return

        now = self.clock()
        target = self.target_time(snapshot, now)
        local_time = as_seconds(player.get_time())
        local_state = player.get_state()
        drift = abs(local_time - target)

        if drift > self.threshold(snapshot, force_seek):
            logger.debug(f"Drift {drift:.3f}s, seeking to {target:.3f}")
            player.seek(target)

        if snapshot.is_playing and local_state != PlayerState.PLAYING:
            player.play()
        elif not snapshot.is_playing and local_state == PlayerState.PLAYING:
            player.pause()

        if settle_ms is None:
            settle_ms = self.settings.event_settle_ms if force_seek else self.settings.ambient_settle_ms
        self.state.suppression.engage(now, settle_ms)

        # Extrapolate from the commanded position, not a mid-seek reading
        self.state.last_sample = LocalSample(
            time=target,
            captured_at=now,
            state=PlayerState.PLAYING if snapshot.is_playing else PlayerState.PAUSED,
        )
