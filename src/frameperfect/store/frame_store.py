"""
Frame Store
===========

Authoritative in-memory collection of frame records.

Every other component reads and mutates frames through this class.

Design Rules:
    - Insertion order is the iteration order
    - Writes replace a whole record (copy-on-write), never a field in place
    - Updates for unknown ids are silently ignored (stale async results)
    - Listeners run synchronously after every successful mutation

Concurrency:
    The store is used from a single asyncio event loop. No lock is needed
    because no await happens between reading the old record and storing
    the new one.

Example:
    store = FrameStore()
    store.add_frame(Frame.pending(timestamp=0.0, image_b64=b64))
    store.update_frame(frame.id, {"is_selected": True})
    store.update_frame(frame.id, lambda f: {"is_selected": not f.is_selected})
"""

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

from frameperfect.models.frame import Frame


logger = logging.getLogger(__name__)


FramePatch = Union[Mapping[str, object], Callable[[Frame], Mapping[str, object]]]
StoreListener = Callable[[List[Frame]], None]


class DuplicateFrameError(ValueError):
    """Raised when adding a frame whose id is already stored."""
    pass


class FrameStore:
    """
    Ordered, id-keyed collection of frames.

    Attributes:
        revision: Incremented on every successful mutation
    """

    def __init__(self, frames: Optional[Iterable[Frame]] = None) -> None:
        self._frames: Dict[str, Frame] = {}
        self._listeners: List[StoreListener] = []
        self.revision: int = 0

        if frames is not None:
            self._replace(frames)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_all(self) -> List[Frame]:
        """Snapshot of every frame in insertion order."""
        return list(self._frames.values())

    def get(self, frame_id: str) -> Optional[Frame]:
        """Current record for an id, or None."""
        return self._frames.get(frame_id)

    def selected(self) -> List[Frame]:
        """Keepers in insertion order."""
        return [f for f in self._frames.values() if f.is_selected]

    def __len__(self) -> int:
        return len(self._frames)

    def __contains__(self, frame_id: object) -> bool:
        return frame_id in self._frames

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add_frame(self, frame: Frame) -> None:
        """Append a frame to the end of the collection."""
        if frame.id in self._frames:
            raise DuplicateFrameError(f"Frame id already stored: {frame.id}")
        self._frames[frame.id] = frame
        self._changed()

    def insert_first(self, frame: Frame) -> None:
        """Insert a frame at the head of the collection."""
        if frame.id in self._frames:
            raise DuplicateFrameError(f"Frame id already stored: {frame.id}")
        self._frames = {frame.id: frame, **self._frames}
        self._changed()

    def set_all(self, frames: Iterable[Frame]) -> None:
        """Replace the whole collection."""
        self._replace(frames)
        self._changed()

    def clear(self) -> None:
        """Drop every frame."""
        self.set_all([])

    def update_frame(self, frame_id: str, patch: FramePatch) -> Optional[Frame]:
        """
        Replace one frame with a patched copy.

        Args:
            frame_id: Frame to update
            patch: Field values, or a callable computing them from the
                current record

        Returns:
            The new record, or None if the id is not in the store
        """
        current = self._frames.get(frame_id)
        if current is None:
            logger.debug(f"Ignoring update for unknown frame {frame_id}")
            return None

        values = patch(current) if callable(patch) else patch
        updated = current.model_copy(update=dict(values))
        self._frames[frame_id] = updated
        self._changed()
        return updated

    def update_many(self, frame_ids: Iterable[str], patch: FramePatch) -> int:
        """
        Apply the same patch to several frames, notifying listeners once.

        Returns:
            Number of frames updated
        """
        count = 0
        for frame_id in frame_ids:
            current = self._frames.get(frame_id)
            if current is None:
                continue
            values = patch(current) if callable(patch) else patch
            self._frames[frame_id] = current.model_copy(update=dict(values))
            count += 1
        if count:
            self._changed()
        return count

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _replace(self, frames: Iterable[Frame]) -> None:
        replaced: Dict[str, Frame] = {}
        for frame in frames:
            if frame.id in replaced:
                raise DuplicateFrameError(f"Duplicate frame id: {frame.id}")
            replaced[frame.id] = frame
        self._frames = replaced

    def _changed(self) -> None:
        self.revision += 1
        snapshot = self.get_all()
        for listener in list(self._listeners):
            listener(snapshot)
