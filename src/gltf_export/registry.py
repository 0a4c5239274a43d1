"""
Resource Registry

Deduplicates host resources (materials, meshes, textures, ...) per export
session and assigns stable document indices in order of first use.
"""

import logging
from typing import Any, Callable, Dict, Hashable, List, Optional, Set, TypeVar

from .errors import ExportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceRegistry:
    """Identity keyed handle -> index map over one document list

    ``register`` appends a placeholder to ``entries`` before calling the
    factory, so indices allocated while the factory runs (in other
    registries) never collide. A factory must not register into the same
    registry it is being called from.
    """

    def __init__(self, entries: List[Any], kind: str = "resource"):
        self.entries = entries
        self.kind = kind
        self._index: Dict[Hashable, int] = {}
        self._failed: Set[Hashable] = set()
        # Keeps handles alive so id() keys stay unique for the session
        self._handles: List[Any] = []

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, handle) -> bool:
        return id(handle) in self._index

    def find(self, handle, key: Optional[Hashable] = None) -> Optional[int]:
        if handle is None:
            return None
        return self._index.get(id(handle) if key is None else key)

    def register(self, handle, factory: Callable[[Any], T],
                 key: Optional[Hashable] = None) -> Optional[int]:
        """Return the index for ``handle``, building the entry on first use

        None handles yield None and create nothing. Exceptions raised by the
        factory propagate; the placeholder is removed and later registrations
        of the same handle fail fast without calling the factory again.
        """
        if handle is None:
            return None
        if key is None:
            key = id(handle)

        existing = self._index.get(key)
        if existing is not None:
            return existing
        if key in self._failed:
            raise ExportError(f"{self.kind} {handle!r} failed to convert earlier in this session")

        index = len(self.entries)
        self.entries.append(None)
        try:
            entry = factory(handle)
        except Exception:
            del self.entries[index]
            self._failed.add(key)
            raise

        self.entries[index] = entry
        self._index[key] = index
        self._handles.append(handle)
        logger.debug("Registered %s #%d", self.kind, index)
        return index
