import os

import pytest

from forumgraph.services.graph.cache import GraphCache
from forumgraph.services.graph.store import GraphStore

BASE = "https://forum.example/"


def test_partitions_share_the_site_directory(tmp_path):
    store = GraphStore(BASE, str(tmp_path), GraphCache(10, 60))
    root = os.path.join(str(tmp_path), "forum.example", "")
    assert os.path.isdir(root)
    assert store.users.path_for(BASE + "member/alice-u1/") == root + "member/alice-u1.ttl"
    assert store.forums.path_for(BASE + "general-f2/") == root + "general-f2.ttl"
    assert store.site.path_for(BASE) == root + "index.ttl"


def test_get_put_delegate_to_cache(tmp_path):
    cache = GraphCache(10, 60)
    store = GraphStore(BASE, str(tmp_path), cache)
    graph = store.threads.get(BASE + "hello-t5.html")
    path = store.threads.path_for(BASE + "hello-t5.html")
    assert path in cache
    store.threads.put(BASE + "hello-t5.html", graph)
    assert cache.entry(path).dirty


def test_unknown_partition(tmp_path):
    store = GraphStore(BASE, str(tmp_path))
    assert store.partition("groups") is store.groups
    with pytest.raises(KeyError):
        store.partition("posts")
