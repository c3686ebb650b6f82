import logging
import os
import tempfile
from typing import Optional

from rdflib import Graph

logger = logging.getLogger(__name__)

TURTLE = "turtle"


class GraphParseError(Exception):
    """A Turtle file exists but could not be read or parsed into a graph."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"Loading graph from file '{path}' failed: {cause}")
        self.path = path
        self.cause = cause


class GraphWriteError(Exception):
    """Serializing or writing a graph to its Turtle file failed."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"Saving graph to file '{path}' failed: {cause}")
        self.path = path
        self.cause = cause


def new_graph() -> Graph:
    return Graph()


def read_graph(path: str) -> Optional[Graph]:
    """Parse the Turtle file at ``path``.

    Returns None when no file exists. Raises GraphParseError when the file is
    present but unreadable or malformed.
    """
    if not os.path.isfile(path):
        return None
    logger.debug("read_graph(%s)", path)
    graph = new_graph()
    try:
        graph.parse(path, format=TURTLE)
    except Exception as exc:
        raise GraphParseError(path, exc) from exc
    return graph


def write_graph(path: str, graph: Graph) -> None:
    """Serialize ``graph`` as Turtle to ``path``.

    The file is written next to its target and moved into place, so a crash
    mid-write never leaves a truncated entity file behind.
    """
    logger.debug("write_graph(%s)", path)
    directory = os.path.dirname(path) or "."
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        data = graph.serialize(format=TURTLE, encoding="utf-8")
        fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".ttl", dir=directory)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
        tmp_path = None
    except Exception as exc:
        raise GraphWriteError(path, exc) from exc
    finally:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
