"""
Project Persistence
===================

Load/save/clear of the full frame collection.

Components:
    - PersistenceGateway: Protocol consumed by the session
    - JsonFilePersistence: Single-project JSON document on disk
    - InMemoryPersistence: Process-local store for tests and ephemeral runs
    - PersistenceScheduler: Turns FrameStore change notifications into
      coalesced background saves

Document Layout:
    {
        "id": "current_project",
        "updated_at": 1707321234.567,
        "frames": [ <Frame.model_dump(mode="json")>, ... ]
    }

Design Rules:
    - Missing fields in loaded records take the Frame/Analysis defaults
    - A failed save never mutates in-memory state
    - An empty collection is not saved (clear() removes the project)
"""

import asyncio
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError

from frameperfect.errors import PersistenceError
from frameperfect.models.frame import Frame


logger = logging.getLogger(__name__)


PROJECT_KEY = "current_project"


class PersistenceGateway(Protocol):
    """Storage backend for the current project."""

    async def save(self, frames: List[Frame]) -> None:
        ...

    async def load(self) -> List[Frame]:
        ...

    async def clear(self) -> None:
        ...


def serialize_frames(frames: List[Frame]) -> Dict[str, Any]:
    """Build the persisted project document."""
    return {
        "id": PROJECT_KEY,
        "updated_at": time.time(),
        "frames": [frame.model_dump(mode="json") for frame in frames],
    }


def deserialize_frames(document: Optional[Dict[str, Any]]) -> List[Frame]:
    """
    Rebuild frames from a project document.

    Missing optional fields fall back to their documented defaults.
    Records that cannot be repaired are skipped with a warning.
    """
    if not document:
        return []

    frames: List[Frame] = []
    for raw in document.get("frames") or []:
        try:
            frames.append(Frame.model_validate(raw))
        except ValidationError as e:
            logger.warning(
                f"Skipping unreadable stored frame {raw.get('id', '?')}: "
                f"{e.error_count()} errors"
            )
    return frames


class JsonFilePersistence:
    """
    Project persistence in a JSON file.

    File I/O runs in a worker thread so the event loop keeps serving
    analysis results while a save is in progress.

    Attributes:
        path: Location of the project document
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    async def save(self, frames: List[Frame]) -> None:
        document = serialize_frames(frames)
        try:
            await asyncio.to_thread(self._write, document)
        except OSError as e:
            raise PersistenceError(f"Failed to save project to {self.path}: {e}") from e
        logger.debug(f"Saved {len(frames)} frames to {self.path}")

    async def load(self) -> List[Frame]:
        if not self.path.exists():
            return []
        try:
            document = await asyncio.to_thread(self._read)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to load project from {self.path}: {e}") from e
        frames = deserialize_frames(document)
        logger.info(f"Loaded {len(frames)} frames from {self.path}")
        return frames

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self._remove)
        except OSError as e:
            raise PersistenceError(f"Failed to clear project at {self.path}: {e}") from e
        logger.info(f"Cleared project at {self.path}")

    def _write(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f)
        os.replace(tmp_path, self.path)

    def _read(self) -> Dict[str, Any]:
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _remove(self) -> None:
        if self.path.exists():
            self.path.unlink()


class InMemoryPersistence:
    """Persistence that keeps the serialized document in memory."""

    def __init__(self) -> None:
        self.document: Optional[Dict[str, Any]] = None
        self.save_count: int = 0

    async def save(self, frames: List[Frame]) -> None:
        # Round-trip through JSON text so the same defaults apply on load
        self.document = json.loads(json.dumps(serialize_frames(frames)))
        self.save_count += 1

    async def load(self) -> List[Frame]:
        return deserialize_frames(self.document)

    async def clear(self) -> None:
        self.document = None


class PersistenceScheduler:
    """
    Schedules a save after every successful FrameStore mutation.

    Bursts of mutations are coalesced: while a save is pending or running,
    further changes only mark the project dirty and the latest snapshot is
    written once the current save finishes.

    Attributes:
        gateway: Backend to write to
        error_count: Failed saves so far
        last_error: Message of the most recent failed save
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway
        self.error_count: int = 0
        self.last_error: Optional[str] = None
        self._latest: Optional[List[Frame]] = None
        self._task: Optional[asyncio.Task] = None
        self._paused: bool = False

    def __call__(self, frames: List[Frame]) -> None:
        """FrameStore listener entry point."""
        if self._paused or not frames:
            return
        self._latest = frames
        if self._task is None or self._task.done():
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # No loop (synchronous caller); the next async mutation saves
                return
            self._task = loop.create_task(self._flush(), name="project_save")

    def pause(self) -> None:
        """Stop scheduling saves (used while restoring or clearing)."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    async def flush(self) -> None:
        """Wait for any pending save to complete."""
        if self._task is not None:
            await self._task

    async def _flush(self) -> None:
        while self._latest is not None:
            frames, self._latest = self._latest, None
            try:
                await self.gateway.save(frames)
            except PersistenceError as e:
                self.error_count += 1
                self.last_error = str(e)
                logger.error(f"Project save failed: {e}")
