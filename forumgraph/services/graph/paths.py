import os
import re
from urllib.parse import urlparse

INDEX_FILE = "index.ttl"

_TRAILING = re.compile(r"(\.html|/)$")


def site_root(out_dir: str, base_url: str) -> str:
    """Directory holding the entity files of one site: ``<out_dir>/<hostname>/``."""
    hostname = urlparse(base_url).hostname or ""
    return os.path.join(out_dir, hostname, "")


def resolve(partition_root: str, base_url: str, entity_url: str) -> str:
    """Map an entity URL to its Turtle file under ``partition_root``.

    The base URL itself maps to ``index.ttl``. Any other URL loses the base URL
    prefix, and a trailing ``.html`` or ``/`` becomes ``.ttl``. The result is a
    browsable mirror of the site, so nothing else is rewritten.
    """
    if entity_url == base_url:
        return partition_root + INDEX_FILE
    relative = entity_url[len(base_url):] if entity_url.startswith(base_url) else entity_url
    return partition_root + _TRAILING.sub(".ttl", relative)
