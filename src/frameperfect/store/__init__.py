"""
Store Module
============

The in-memory frame collection and its persistence backends.

    - FrameStore: Ordered, id-keyed, copy-on-write frame collection
    - PersistenceGateway: Protocol for project load/save/clear
    - JsonFilePersistence / InMemoryPersistence: Gateway implementations
    - PersistenceScheduler: Saves the project after every store change
"""

from frameperfect.store.frame_store import DuplicateFrameError, FrameStore
from frameperfect.store.persistence import (
    InMemoryPersistence,
    JsonFilePersistence,
    PersistenceGateway,
    PersistenceScheduler,
)


__all__ = [
    "FrameStore",
    "DuplicateFrameError",
    "PersistenceGateway",
    "JsonFilePersistence",
    "InMemoryPersistence",
    "PersistenceScheduler",
]
