import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from auraluxe.domain.entities import PlaybackStatus, RepeatMode, Track
from auraluxe.domain.errors import PlaybackInterrupted
from auraluxe.domain.ports import LibraryStore, MediaHandle
from auraluxe.domain.queue import PlayQueue


logger = logging.getLogger(__name__)

RESTART_THRESHOLD_SEC = 3.0
DEFAULT_VOLUME = 0.7


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _known_duration(duration: Optional[float]) -> float:
    """Media reports NaN or Infinity until metadata is loaded; treat those as 0."""
    try:
        value = float(duration or 0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


@dataclass(frozen=True)
class UserSession:
    """Explicit identity handed to the controller instead of an ambient token lookup."""

    user_id: str
    library: LibraryStore


class PlaybackController:
    """Owns the current track, the play queue and the state of one media handle.

    All calls are expected on a single event loop: UI actions and media
    events are applied in order, so no locking is done here. Side effects on
    the user's library (recently played, volume preference) are
    fire-and-forget and never roll back local state.
    """

    def __init__(self,
                 media: Optional[MediaHandle] = None,
                 session: Optional[UserSession] = None,
                 rng: Optional[random.Random] = None):
        self.media = media
        self.session = session
        self.queue = PlayQueue(rng=rng)

        self.current_track: Optional[Track] = None
        self.is_playing = False
        self.volume = DEFAULT_VOLUME
        self.progress = 0.0
        self.duration = 0.0
        self.is_loading = False
        self.is_shuffled = False
        self.repeat_mode = RepeatMode.OFF

        if session is not None:
            self._load_session_preferences()

    # -- derived state -------------------------------------------------

    @property
    def current_index(self) -> int:
        return self.queue.current_index

    @property
    def tracks(self) -> List[Track]:
        return list(self.queue.tracks)

    @property
    def status(self) -> PlaybackStatus:
        if self.current_track is None:
            return PlaybackStatus.IDLE
        if self.is_loading:
            return PlaybackStatus.LOADING
        return PlaybackStatus.PLAYING if self.is_playing else PlaybackStatus.PAUSED

    def snapshot(self) -> Dict[str, Any]:
        """State as the UI renders it."""
        return {
            "currentTrack": self.current_track.to_json() if self.current_track else None,
            "isPlaying": self.is_playing,
            "volume": self.volume,
            "progress": self.progress,
            "duration": self.duration,
            "queue": [t.to_json() for t in self.queue.tracks],
            "currentIndex": self.queue.current_index,
            "isShuffled": self.is_shuffled,
            "repeatMode": self.repeat_mode.value,
            "isLoading": self.is_loading,
            "status": self.status.value,
        }

    # -- session -------------------------------------------------------

    def attach_session(self, session: UserSession) -> None:
        self.session = session
        self._load_session_preferences()

    def detach_session(self) -> None:
        self.session = None

    def _load_session_preferences(self) -> None:
        try:
            preferences = self.session.library.get_preferences(self.session.user_id)
        except Exception as e:
            logger.warning(f"Failed to load preferences for user {self.session.user_id}: {e}")
            return
        self.volume = _clamp(preferences.volume, 0.0, 1.0)
        self._apply_volume()

    def _record_recently_played(self, track: Track) -> None:
        if self.session is None:
            return
        try:
            self.session.library.record_recently_played(self.session.user_id, track)
        except Exception as e:
            logger.warning(f"Failed to add {track.id} to recently played: {e}")

    def _persist_volume(self, volume: float) -> None:
        if self.session is None:
            return
        try:
            self.session.library.update_preferences(self.session.user_id, {"volume": volume})
        except Exception as e:
            logger.warning(f"Failed to persist volume preference: {e}")

    # -- operations ----------------------------------------------------

    def play_track(self, track: Track, queue: Optional[List[Track]] = None) -> None:
        """Start playing ``track``, optionally replacing the queue with ``queue``."""
        self.current_track = track
        self.is_playing = True
        self.progress = 0.0

        if queue is not None:
            self.queue.replace(queue, current=track)
        elif self.queue.is_empty:
            self.queue.replace([track], current=track)

        self._sync_media()
        self._record_recently_played(track)

    def toggle_play(self) -> None:
        if self.current_track is None:
            return
        self.is_playing = not self.is_playing
        self._sync_media()

    def next_track(self) -> None:
        if self.queue.is_empty:
            return

        if self.is_shuffled:
            next_index = self.queue.random_other_index()
        elif self.queue.is_last:
            if self.repeat_mode == RepeatMode.ALL:
                next_index = 0
            else:
                self.is_playing = False
                self._sync_media()
                return
        else:
            next_index = self.queue.current_index + 1

        self._change_track(next_index)

    def previous_track(self) -> None:
        if self.queue.is_empty:
            return

        if self.media is not None and self.media.current_time > RESTART_THRESHOLD_SEC:
            self.media.current_time = 0
            self.progress = 0.0
            return

        prev_index = self.queue.current_index - 1
        if prev_index < 0:
            if self.repeat_mode != RepeatMode.ALL:
                return
            prev_index = len(self.queue) - 1

        self._change_track(prev_index)

    def set_volume(self, volume: float) -> None:
        self.volume = _clamp(float(volume), 0.0, 1.0)
        self._apply_volume()
        self._persist_volume(self.volume)

    def set_progress(self, progress: float) -> None:
        """Seek to ``progress`` percent of the known duration."""
        if not _known_duration(self.duration):
            return
        progress = _clamp(float(progress), 0.0, 100.0)
        if self.media is not None:
            self.media.current_time = (progress / 100.0) * self.duration
        self.progress = progress

    def toggle_shuffle(self) -> None:
        self.is_shuffled = not self.is_shuffled
        if self.queue.is_empty:
            return
        if self.is_shuffled:
            self.queue.shuffle_pinned(self.queue.current)
        else:
            self.queue.restore_original(self.current_track)

    def toggle_repeat(self) -> None:
        self.repeat_mode = self.repeat_mode.next()

    def add_to_queue(self, track: Track) -> None:
        # TODO: decide whether tracks added while shuffled belong in the restored order.
        self.queue.append(track, keep_original=not self.is_shuffled)

    def remove_from_queue(self, index: int) -> None:
        was_current = index == self.queue.current_index
        new_current = self.queue.remove(index, keep_original=not self.is_shuffled)

        if new_current is None:
            self.current_track = None
            self.is_playing = False
            self._sync_media()
        elif was_current:
            self.current_track = new_current
            self._sync_media()

    def clear_queue(self) -> None:
        self.queue.clear()
        self.current_track = None
        self.is_playing = False
        self.progress = 0.0
        self._sync_media()

    def shuffle_queue(self) -> None:
        if len(self.queue) <= 1:
            return
        self.queue.shuffle_pinned(self.current_track)

    def _change_track(self, index: int) -> None:
        self.current_track = self.queue.move_to(index)
        self.is_playing = True
        self.progress = 0.0
        self._sync_media()

    # -- media events --------------------------------------------------

    def _is_stale(self, src: Optional[str]) -> bool:
        if src is None:
            return False
        current_src = self.current_track.preview_url if self.current_track else None
        if src != current_src:
            logger.debug(f"Ignoring media event for stale source {src}")
            return True
        return False

    def handle_load_start(self, src: Optional[str] = None) -> None:
        if self._is_stale(src):
            return
        self.is_loading = True

    def handle_loaded_metadata(self, duration: float, src: Optional[str] = None) -> None:
        if self._is_stale(src):
            return
        self.duration = _known_duration(duration)
        self.is_loading = False

    def handle_can_play(self, src: Optional[str] = None) -> None:
        if self._is_stale(src):
            return
        self.is_loading = False

    def handle_time_update(self, current_time: float, duration: float, src: Optional[str] = None) -> None:
        if self._is_stale(src):
            return
        duration = _known_duration(duration)
        if duration:
            self.progress = _clamp((float(current_time) / duration) * 100.0, 0.0, 100.0)

    def handle_play(self, src: Optional[str] = None) -> None:
        if self._is_stale(src):
            return
        self.is_playing = True

    def handle_pause(self, src: Optional[str] = None) -> None:
        if self._is_stale(src):
            return
        self.is_playing = False

    def handle_waiting(self, src: Optional[str] = None) -> None:
        if self._is_stale(src):
            return
        self.is_loading = True

    def handle_playing(self, src: Optional[str] = None) -> None:
        if self._is_stale(src):
            return
        self.is_loading = False

    def handle_ended(self, src: Optional[str] = None) -> None:
        """Apply the end-of-track policy."""
        if self._is_stale(src):
            return

        if self.repeat_mode == RepeatMode.ONE:
            self.progress = 0.0
            if self.media is not None:
                self.media.current_time = 0
                self._start_media()
            return

        if self.repeat_mode == RepeatMode.ALL or not self.queue.is_last:
            self.next_track()
        else:
            self.is_playing = False
            self.progress = 0.0

    def handle_error(self, error: Optional[Exception] = None, src: Optional[str] = None) -> None:
        """Stop on a media failure and skip ahead when there is somewhere to go."""
        if self._is_stale(src):
            return
        track_id = self.current_track.id if self.current_track else None
        logger.error(f"Audio error on track {track_id}: {error}")
        self.is_playing = False
        self.is_loading = False
        # A single-entry queue would loop on the same failing source.
        if len(self.queue) > 1:
            self.next_track()

    # -- media synchronization -----------------------------------------

    def _apply_volume(self) -> None:
        if self.media is not None:
            self.media.volume = self.volume

    def _sync_media(self) -> None:
        """Bring the media handle in line with current_track and is_playing."""
        media = self.media
        if media is None:
            return
        if self.current_track is None or not self.current_track.preview_url:
            if not media.paused:
                media.pause()
            return

        if not media.paused:
            media.pause()

        if media.src != self.current_track.preview_url:
            media.load(self.current_track.preview_url)
            self.duration = 0.0

        self._apply_volume()

        if self.is_playing:
            self._start_media()

    def _start_media(self) -> None:
        try:
            self.media.play()
        except PlaybackInterrupted:
            logger.debug("Play request interrupted by a newer load")
        except Exception as e:
            logger.error(f"Audio playback error: {e}")
            self.is_playing = False
            self.is_loading = False
