"""Bounded in-memory cache of entity graphs keyed by Turtle file path.

Graphs are loaded lazily from disk, mutated in place by merges and written back
only when they leave the cache: on TTL expiry, on count overflow, or on an
explicit flush. A graph whose write fails stays cached and dirty so the next
tick or flush retries it.
"""
from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from rdflib import Graph

from forumgraph.db.turtle_store import (
    GraphParseError,
    GraphWriteError,
    new_graph,
    read_graph,
    write_graph,
)

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Outcome of reading one entity file: the graph, or the parse failure."""

    graph: Optional[Graph] = None
    error: Optional[GraphParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GraphCacheEntry:
    path: str
    seq: int
    graph: Optional[Graph] = None
    last_access: float = 0.0
    access_count: int = 0
    dirty: bool = False


@dataclass
class EvictionSummary:
    expired: int = 0
    overflow: int = 0
    written: int = 0
    failed: List[Exception] = field(default_factory=list)

    def to_dict(self) -> Dict[str, int]:
        return {
            "expired": self.expired,
            "overflow": self.overflow,
            "written": self.written,
            "failed": len(self.failed),
        }


class GraphCache:
    def __init__(
        self,
        max_entries: int = 1000,
        max_ttl_seconds: float = 1800,
        *,
        clock: Callable[[], float] = time.time,
        reader: Callable[[str], Optional[Graph]] = read_graph,
        writer: Callable[[str, Graph], None] = write_graph,
    ) -> None:
        self.max_entries = int(max_entries)
        self.max_ttl_seconds = float(max_ttl_seconds)
        self._clock = clock
        self._reader = reader
        self._writer = writer
        self._entries: Dict[str, GraphCacheEntry] = {}
        self._seq = itertools.count()
        self.errors: List[GraphParseError] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def entry(self, path: str) -> Optional[GraphCacheEntry]:
        return self._entries.get(path)

    # --- Public API ---
    def read(self, path: str) -> LoadResult:
        """Read ``path`` from disk without touching the cache.

        A missing file is a successful read of an empty graph.
        """
        try:
            graph = self._reader(path)
        except GraphParseError as exc:
            return LoadResult(error=exc)
        return LoadResult(graph=graph if graph is not None else new_graph())

    def load(self, path: str) -> Graph:
        entry = self._get_or_create(path)
        if entry.graph is None:
            result = self.read(path)
            if result.ok:
                entry.graph = result.graph
            else:
                logger.warning("%s; continuing with an empty graph", result.error)
                self.errors.append(result.error)
                entry.graph = new_graph()
        self._touch(entry)
        return entry.graph

    def save(self, path: str, graph: Graph) -> None:
        entry = self._get_or_create(path)
        entry.graph = graph
        entry.dirty = True
        self._touch(entry)

    def tick(self) -> EvictionSummary:
        """Evict entries past their TTL, then the least recently used ones over the limit."""
        summary = EvictionSummary()
        if not self._entries:
            return summary

        threshold = self._clock() - self.max_ttl_seconds
        for entry in [e for e in self._entries.values() if e.last_access < threshold]:
            summary.expired += 1
            self._evict(entry, summary)

        if len(self._entries) > self.max_entries:
            logger.debug("cache_max_files (%d) reached (%d)", self.max_entries, len(self._entries))
            candidates = sorted(self._entries.values(), key=lambda e: (e.last_access, e.seq))
            for entry in candidates:
                if len(self._entries) <= self.max_entries:
                    break
                summary.overflow += 1
                self._evict(entry, summary)
        return summary

    def flush(self) -> EvictionSummary:
        """Write every dirty graph and empty the cache; failed writes stay cached."""
        summary = EvictionSummary()
        for entry in list(self._entries.values()):
            self._evict(entry, summary)
        return summary

    def stats(self) -> Dict[str, int]:
        return {
            "entries": len(self._entries),
            "dirty": sum(1 for e in self._entries.values() if e.dirty),
            "parse_errors": len(self.errors),
        }

    # --- Internals ---
    def _get_or_create(self, path: str) -> GraphCacheEntry:
        entry = self._entries.get(path)
        if entry is None:
            entry = GraphCacheEntry(path=path, seq=next(self._seq))
            self._entries[path] = entry
        return entry

    def _touch(self, entry: GraphCacheEntry) -> None:
        entry.access_count += 1
        entry.last_access = self._clock()

    def _evict(self, entry: GraphCacheEntry, summary: EvictionSummary) -> None:
        if entry.dirty and entry.graph is not None:
            try:
                self._writer(entry.path, entry.graph)
            except (GraphWriteError, OSError) as exc:
                logger.error("%s; keeping it cached for retry", exc)
                summary.failed.append(exc)
                return
            summary.written += 1
        del self._entries[entry.path]
