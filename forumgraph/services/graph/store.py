from __future__ import annotations

import logging
import os
from typing import Optional

from rdflib import Graph

from .cache import EvictionSummary, GraphCache
from .paths import resolve, site_root

logger = logging.getLogger(__name__)

PARTITIONS = ("site", "users", "groups", "forums", "threads")


class GraphPartition:
    """One logical namespace of entity graphs (users, forums, ...)."""

    def __init__(self, name: str, root: str, base_url: str, cache: GraphCache) -> None:
        self.name = name
        self.root = root
        self.base_url = base_url
        self.cache = cache

    def path_for(self, url: str) -> str:
        return resolve(self.root, self.base_url, url)

    def get(self, url: str) -> Graph:
        logger.debug("%s.get(%s)", self.name, url)
        return self.cache.load(self.path_for(url))

    def put(self, url: str, graph: Graph) -> None:
        logger.debug("%s.put(%s)", self.name, url)
        self.cache.save(self.path_for(url), graph)


class GraphStore:
    """Entity graphs of one forum, stored as ``<out_dir>/<hostname>/...ttl``.

    All partitions share the same directory; the store itself keeps no graphs,
    everything lives in the injected GraphCache.
    """

    def __init__(self, base_url: str, out_dir: str = "./out/", cache: Optional[GraphCache] = None) -> None:
        self.base_url = base_url
        self.out_dir = out_dir
        self.cache = cache if cache is not None else GraphCache(1000, 1800)
        self.root = site_root(out_dir, base_url)
        os.makedirs(self.root, exist_ok=True)
        self.site = GraphPartition("site", self.root, base_url, self.cache)
        self.users = GraphPartition("users", self.root, base_url, self.cache)
        self.groups = GraphPartition("groups", self.root, base_url, self.cache)
        self.forums = GraphPartition("forums", self.root, base_url, self.cache)
        self.threads = GraphPartition("threads", self.root, base_url, self.cache)

    def partition(self, name: str) -> GraphPartition:
        if name not in PARTITIONS:
            raise KeyError(f"Unknown partition '{name}', expected one of {', '.join(PARTITIONS)}")
        return getattr(self, name)

    def tick(self) -> EvictionSummary:
        return self.cache.tick()

    def flush(self) -> EvictionSummary:
        return self.cache.flush()
