from forumgraph.services.graph.paths import resolve, site_root

BASE = "https://forum.example/"
ROOT = "/data/out/forum.example/"


def test_site_root_uses_hostname():
    assert site_root("/data/out", BASE) == ROOT
    assert site_root("/data/out/", "https://forum.example:8443/") == ROOT


def test_base_url_maps_to_index():
    assert resolve(ROOT, BASE, BASE) == ROOT + "index.ttl"


def test_html_and_slash_suffixes_become_ttl():
    assert resolve(ROOT, BASE, BASE + "hello-t5.html") == ROOT + "hello-t5.ttl"
    assert resolve(ROOT, BASE, BASE + "general-f2/") == ROOT + "general-f2.ttl"
    assert resolve(ROOT, BASE, BASE + "member/alice-u1/") == ROOT + "member/alice-u1.ttl"
    assert resolve(ROOT, BASE, BASE + "czech-pirates-g7.html") == ROOT + "czech-pirates-g7.ttl"


def test_resolution_is_stable():
    url = BASE + "general-f2/hello-t5.html"
    first = resolve(ROOT, BASE, url)
    resolve(ROOT, BASE, BASE + "other-t6.html")
    assert resolve(ROOT, BASE, url) == first == ROOT + "general-f2/hello-t5.ttl"
