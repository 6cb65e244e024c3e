from __future__ import annotations

import random
from typing import List, Optional

from .entities import Track
from .errors import InvalidArgument


def _index_of(tracks: List[Track], track: Optional[Track]) -> int:
    if track is None:
        return -1
    for i, candidate in enumerate(tracks):
        if candidate.id == track.id:
            return i
    return -1


def fisher_yates(tracks: List[Track], rng: random.Random) -> List[Track]:
    """Return a shuffled copy of ``tracks``."""
    shuffled = list(tracks)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class PlayQueue:
    """Ordered play queue with a restorable original order.

    ``tracks`` is the live order; ``original_order`` is the sequence captured
    when the queue was set, restored when shuffle mode is turned off.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.tracks: List[Track] = []
        self.original_order: List[Track] = []
        self.current_index = 0
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self.tracks)

    @property
    def is_empty(self) -> bool:
        return not self.tracks

    @property
    def current(self) -> Optional[Track]:
        if not self.tracks:
            return None
        return self.tracks[self.current_index]

    @property
    def is_last(self) -> bool:
        return self.current_index >= len(self.tracks) - 1

    def replace(self, tracks: List[Track], current: Optional[Track] = None) -> None:
        """Set a new queue and original order, pointing at ``current`` (index 0 if absent)."""
        self.tracks = list(tracks)
        self.original_order = list(tracks)
        index = _index_of(self.tracks, current)
        self.current_index = index if index >= 0 else 0

    def move_to(self, index: int) -> Track:
        if not 0 <= index < len(self.tracks):
            raise InvalidArgument(f"Queue index {index} out of range")
        self.current_index = index
        return self.tracks[index]

    def random_other_index(self) -> int:
        """Uniformly pick an index other than the current one (the current one if it is alone)."""
        available = [i for i in range(len(self.tracks)) if i != self.current_index]
        if not available:
            return self.current_index
        return self._rng.choice(available)

    def append(self, track: Track, keep_original: bool = True) -> None:
        self.tracks.append(track)
        if keep_original:
            self.original_order.append(track)

    def remove(self, index: int, keep_original: bool = True) -> Optional[Track]:
        """Remove the entry at ``index`` and return the track now current.

        Returns None when the queue became empty.
        """
        if not 0 <= index < len(self.tracks):
            raise InvalidArgument(f"Queue index {index} out of range")
        removed = self.tracks.pop(index)
        if keep_original:
            self.original_order = [t for t in self.original_order if t.id != removed.id]

        if not self.tracks:
            self.current_index = 0
            return None
        if index < self.current_index:
            self.current_index -= 1
        elif index == self.current_index:
            self.current_index = min(self.current_index, len(self.tracks) - 1)
        return self.tracks[self.current_index]

    def clear(self) -> None:
        self.tracks = []
        self.original_order = []
        self.current_index = 0

    def shuffle_pinned(self, pinned: Optional[Track]) -> None:
        """Shuffle every entry except ``pinned``, which moves to the front. Index resets to 0."""
        rest = list(self.tracks)
        index = _index_of(rest, pinned)
        if index >= 0:
            pinned = rest.pop(index)
        shuffled = fisher_yates(rest, self._rng)
        if index >= 0:
            shuffled.insert(0, pinned)
        self.tracks = shuffled
        self.current_index = 0

    def restore_original(self, current: Optional[Track]) -> None:
        """Return to the original order, pointing at ``current`` (index 0 if absent)."""
        self.tracks = list(self.original_order)
        index = _index_of(self.tracks, current)
        self.current_index = index if index >= 0 else 0
