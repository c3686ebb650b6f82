from __future__ import annotations

import json
import logging
import os
import tempfile
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


class CrawlFrontier:
    """Pending FIFO of URLs plus the set of URLs already processed.

    A URL is never pending twice and never pending once finished. ``pending``
    is shadowed by a set so ``discover`` stays a hash lookup at any size.
    """

    def __init__(self, seed: Optional[str] = None) -> None:
        self.seed = seed
        self._queue: Deque[str] = deque()
        self._pending: Set[str] = set()
        self._finished: Set[str] = set()
        if seed:
            self.bootstrap(seed)

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def pending(self) -> List[str]:
        return list(self._queue)

    @property
    def finished(self) -> Set[str]:
        return set(self._finished)

    def is_empty(self) -> bool:
        return not self._queue

    def bootstrap(self, seed: str) -> bool:
        """Queue ``seed`` when the frontier has never seen any URL."""
        if self._queue or self._finished:
            return False
        self._push(seed)
        return True

    def next(self) -> Optional[str]:
        if not self._queue:
            return None
        url = self._queue.popleft()
        self._pending.discard(url)
        return url

    def complete(self, url: str) -> None:
        if url in self._pending:
            self._queue.remove(url)
            self._pending.discard(url)
        self._finished.add(url)

    def discover(self, url: str) -> bool:
        """Queue ``url`` unless it is already pending or finished."""
        if url in self._pending or url in self._finished:
            return False
        logger.debug("queueing: %s", url)
        self._push(url)
        return True

    def requeue(self, url: str) -> bool:
        """Put a popped but unprocessed URL back at the end of the queue."""
        return self.discover(url)

    def snapshot(self, inflight: Optional[str] = None) -> Dict[str, List[str]]:
        """State as a JSON-ready dict.

        ``inflight`` is a popped URL whose processing has not finished; it is
        put back at the front so a restart fetches it again.
        """
        queue = list(self._queue)
        if inflight and inflight not in self._finished and inflight not in self._pending:
            queue.insert(0, inflight)
        return {"queue": queue, "finished": sorted(self._finished)}

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self._queue.clear()
        self._pending.clear()
        self._finished = set(snapshot.get("finished") or [])
        for url in snapshot.get("queue") or []:
            self.discover(url)
        if self.seed:
            self.bootstrap(self.seed)

    def stats(self) -> Dict[str, int]:
        return {"queue": len(self._queue), "finished": len(self._finished)}

    # --- Persistence ---
    def save(self, path: str, inflight: Optional[str] = None) -> None:
        """Rewrite the JSON snapshot at ``path`` wholesale."""
        directory = os.path.dirname(path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".queue-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.snapshot(inflight), f, ensure_ascii=False, indent=1)
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    @classmethod
    def load(cls, path: str, seed: Optional[str] = None) -> "CrawlFrontier":
        """Restore from the snapshot at ``path``, or start from ``seed`` when there is none."""
        frontier = cls()
        frontier.seed = seed
        data: Dict[str, Any] = {}
        if os.path.isfile(path):
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f) or {}
        frontier.restore(data)
        logger.info("Frontier loaded: %s", frontier.stats())
        return frontier

    def _push(self, url: str) -> None:
        self._queue.append(url)
        self._pending.add(url)
