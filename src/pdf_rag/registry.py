"""Single process-wide slot holding the collection that serves queries.

Ingestion writes a complete new collection first and only then calls
:meth:`IndexRegistry.swap`; queries call :meth:`IndexRegistry.active` once
and keep using that handle for the whole request. A query therefore never
observes a half-written collection, and concurrent ingestions resolve to
whichever swap happens last.
"""
from __future__ import annotations

import itertools
import logging
import threading
import time

from .errors import NoActiveCollectionError
from .schema import CollectionHandle

logger = logging.getLogger(__name__)


class IndexRegistry:
    """Owns the active collection handle behind an atomic swap."""

    def __init__(self, collection_prefix: str = "pdf_vectors") -> None:
        self.collection_prefix = collection_prefix
        self._lock = threading.Lock()
        self._active: CollectionHandle | None = None
        self._sequence = itertools.count(1)

    def new_collection_name(self) -> str:
        """Return a name no earlier call on this registry has produced."""
        with self._lock:
            sequence = next(self._sequence)
        return f"{self.collection_prefix}_{time.time_ns() // 1_000_000}_{sequence}"

    def active(self) -> CollectionHandle:
        """Return the handle currently serving queries.

        Raises:
            NoActiveCollectionError: If nothing has been ingested yet.
        """
        with self._lock:
            handle = self._active
        if handle is None:
            raise NoActiveCollectionError()
        return handle

    def peek(self) -> CollectionHandle | None:
        with self._lock:
            return self._active

    def swap(self, handle: CollectionHandle) -> CollectionHandle | None:
        """Make ``handle`` active and return the handle it supersedes."""
        with self._lock:
            previous, self._active = self._active, handle
        if previous is not None:
            logger.info("Collection %s superseded by %s", previous.name, handle.name)
        else:
            logger.info("Collection %s is now active", handle.name)
        return previous
