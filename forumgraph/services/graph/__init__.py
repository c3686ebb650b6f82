"""Entity graph storage and merging.

- paths.py: entity URL -> Turtle file path
- cache.py: bounded, TTL-aware cache of loaded graphs with deferred writes
- store.py: per-partition get/put facade over the cache
- merge.py: applies scraped page records to the entity graphs
- vocab.py: RDF namespaces (SIOC, FOAF, DC, VCARD, ActivityStreams)
"""
from .cache import GraphCache, GraphCacheEntry, LoadResult
from .merge import GraphMerger
from .paths import resolve, site_root
from .store import GraphPartition, GraphStore

__all__ = [
    'GraphCache', 'GraphCacheEntry', 'LoadResult',
    'GraphMerger',
    'resolve', 'site_root',
    'GraphPartition', 'GraphStore',
]
