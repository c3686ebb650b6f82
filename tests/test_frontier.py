import json

from forumgraph.services.crawl.frontier import CrawlFrontier

SEED = "https://forum.example/"
A = SEED + "general-f2/"
B = SEED + "hello-t5.html"


def test_seed_is_not_rediscovered_once_finished():
    frontier = CrawlFrontier(SEED)
    assert frontier.next() == SEED
    frontier.complete(SEED)
    assert frontier.discover(SEED) is False
    assert frontier.next() is None
    assert frontier.is_empty()


def test_discover_deduplicates_pending_and_finished():
    frontier = CrawlFrontier()
    for url in [A, B, A, A, B]:
        frontier.discover(url)
    assert frontier.pending == [A, B]

    frontier.complete(A)
    assert frontier.pending == [B]
    assert frontier.discover(A) is False
    assert A in frontier.finished


def test_fifo_order():
    frontier = CrawlFrontier(SEED)
    frontier.discover(A)
    frontier.discover(B)
    assert [frontier.next(), frontier.next(), frontier.next(), frontier.next()] == [SEED, A, B, None]


def test_bootstrap_only_on_empty_state():
    frontier = CrawlFrontier()
    frontier.complete(A)
    assert frontier.bootstrap(SEED) is False
    assert frontier.pending == []


def test_requeue_puts_popped_url_at_the_back():
    frontier = CrawlFrontier(SEED)
    frontier.discover(A)
    url = frontier.next()
    assert frontier.requeue(url)
    assert frontier.pending == [A, SEED]


def test_restore_rebootstraps_and_cleans_up():
    frontier = CrawlFrontier()
    frontier.seed = SEED
    frontier.restore({"queue": [], "finished": []})
    assert frontier.pending == [SEED]

    frontier.restore({"queue": [A, A, B], "finished": [B]})
    assert frontier.pending == [A]
    assert frontier.finished == {B}


def test_save_and_load_snapshot(tmp_path):
    path = str(tmp_path / "state" / "queue.json")
    frontier = CrawlFrontier(SEED)
    frontier.next()
    frontier.complete(SEED)
    frontier.discover(A)
    inflight = frontier.next()
    frontier.discover(B)

    frontier.save(path, inflight=inflight)

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    assert data == {"queue": [A, B], "finished": [SEED]}

    restored = CrawlFrontier.load(path, seed=SEED)
    assert restored.pending == [A, B]
    assert restored.finished == {SEED}


def test_load_without_snapshot_starts_from_seed(tmp_path):
    frontier = CrawlFrontier.load(str(tmp_path / "queue.json"), seed=SEED)
    assert frontier.pending == [SEED]
    assert frontier.stats() == {"queue": 1, "finished": 0}
