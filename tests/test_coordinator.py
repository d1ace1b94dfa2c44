"""
Tests for the crawl coordinator: dedup, depth bound, ordering and failure handling.
"""

import asyncio

import pytest

from minicrawl.crawler.coordinator import CrawlCoordinator, crawl
from minicrawl.crawler.fetcher import FetchResult
from minicrawl.crawler.visit_state import VisitState, VisitStatus
from minicrawl.utils.monitoring import CrawlerMonitor
from tests.conftest import SEED, A, B, C, RaisingFetcher, StubFetcher


@pytest.mark.asyncio
async def test_example_graph_depth_two_never_fetches_c(stub_fetcher):
    # seed runs at depth 2, a and b at 1, so a's children land on depth 0 and are pruned.
    coordinator = CrawlCoordinator(stub_fetcher)
    state = await coordinator.run(SEED, 2)

    assert set(state) == {SEED, A, B}
    assert all(r.status is VisitStatus.SUCCESS for r in state.records())
    assert stub_fetcher.call_counts == {SEED: 1, A: 1, B: 1}
    assert C not in stub_fetcher.calls
    assert C not in state


@pytest.mark.asyncio
async def test_example_graph_depth_three_reaches_c(stub_fetcher):
    state = await CrawlCoordinator(stub_fetcher).run(SEED, 3)

    assert set(state) == {SEED, A, B, C}
    assert all(count == 1 for count in stub_fetcher.call_counts.values())


@pytest.mark.asyncio
async def test_depth_one_fetches_only_the_start_url(stub_fetcher):
    coordinator = CrawlCoordinator(stub_fetcher)
    state = await coordinator.run(SEED, 1)

    assert stub_fetcher.calls == [SEED]
    assert set(state) == {SEED}
    assert coordinator.stats.depth_pruned == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("depth", [0, -1])
async def test_non_positive_depth_fetches_nothing(stub_fetcher, depth):
    state = VisitState()
    await CrawlCoordinator(stub_fetcher, state=state).crawl(SEED, depth)

    assert stub_fetcher.calls == []
    assert len(state) == 0


@pytest.mark.asyncio
async def test_shared_link_is_fetched_once_under_fan_in():
    shared = "https://x.test/shared"
    pages = [f"https://x.test/p{i}" for i in range(20)]
    graph = {SEED: pages, shared: [SEED]}
    for page in pages:
        graph[page] = [shared, SEED, shared]

    fetcher = StubFetcher(graph, delay=0.01)
    state = await CrawlCoordinator(fetcher).run(SEED, 4)

    assert set(state) == {SEED, shared, *pages}
    assert all(count == 1 for count in fetcher.call_counts.values())
    assert fetcher.max_in_flight > 1


@pytest.mark.asyncio
async def test_duplicate_children_each_get_a_task():
    fetcher = StubFetcher({SEED: [A, A, A], A: []})
    coordinator = CrawlCoordinator(fetcher)
    await coordinator.run(SEED, 2)

    assert fetcher.call_counts[A] == 1
    assert coordinator.stats.tasks_spawned == 3
    assert coordinator.stats.already_visited == 2


@pytest.mark.asyncio
async def test_cycle_terminates_and_fetches_each_page_once():
    fetcher = StubFetcher({A: [B], B: [A]})
    state = await CrawlCoordinator(fetcher).run(A, 10)

    assert fetcher.call_counts == {A: 1, B: 1}
    assert set(state) == {A, B}


@pytest.mark.asyncio
async def test_failed_sibling_does_not_affect_other_branches():
    d = "https://x.test/d"
    fetcher = StubFetcher({SEED: [A, B], B: [d], d: []}, failures={A: f"not found: {A}"})
    coordinator = CrawlCoordinator(fetcher)
    state = await coordinator.run(SEED, 3)

    record_a = await state.get(A)
    assert record_a.status is VisitStatus.FAILURE
    assert record_a.error == f"not found: {A}"
    assert (await state.get(B)).status is VisitStatus.SUCCESS
    assert (await state.get(d)).status is VisitStatus.SUCCESS
    assert coordinator.stats.failed == 1
    assert coordinator.stats.fetched == 3


@pytest.mark.asyncio
async def test_failed_url_is_not_retried():
    fetcher = StubFetcher({SEED: [A, B], B: [A]}, failures={A: "boom"})
    await CrawlCoordinator(fetcher).run(SEED, 5)

    assert fetcher.call_counts[A] == 1


@pytest.mark.asyncio
async def test_failed_start_url_returns_normally():
    fetcher = StubFetcher({})
    state = await CrawlCoordinator(fetcher).run("not a url", 3)

    record = await state.get("not a url")
    assert record.status is VisitStatus.FAILURE
    assert record.error == "not found: not a url"


@pytest.mark.asyncio
async def test_exception_from_fetcher_is_recorded_as_failure():
    fetcher = RaisingFetcher({SEED: [A, B], B: []}, failures={A: "connection reset"})
    state = await CrawlCoordinator(fetcher).run(SEED, 2)

    record_a = await state.get(A)
    assert record_a.status is VisitStatus.FAILURE
    assert record_a.error == "connection reset"
    assert (await state.get(B)).status is VisitStatus.SUCCESS


@pytest.mark.asyncio
async def test_crawl_returns_only_after_whole_subtree_finished():
    leaf = "https://x.test/leaf"
    fetcher = StubFetcher({SEED: [A], A: [leaf], leaf: []}, delays={leaf: 0.2})
    coordinator = CrawlCoordinator(fetcher)

    task = asyncio.create_task(coordinator.crawl(SEED, 3))
    await asyncio.sleep(0.05)
    assert not task.done()
    assert leaf not in fetcher.completed

    await task
    assert fetcher.completed == [SEED, A, leaf]
    assert all(r.is_resolved for r in coordinator.state.records())


@pytest.mark.asyncio
async def test_parent_finishes_after_children_finish():
    finished = []

    class RecordingCoordinator(CrawlCoordinator):
        async def crawl(self, url, depth):
            await super().crawl(url, depth)
            if depth > 0:
                finished.append((url, depth))

    fetcher = StubFetcher({SEED: [A, B], A: [C], B: [], C: []}, delays={C: 0.05})
    await RecordingCoordinator(fetcher).crawl(SEED, 3)

    order = [url for url, _ in finished]
    assert order.index(C) < order.index(A) < order.index(SEED)
    assert order.index(B) < order.index(SEED)
    assert order[-1] == SEED


@pytest.mark.asyncio
async def test_lock_is_free_while_fetching():
    state = VisitState()
    observed = []

    class LockProbeFetcher(StubFetcher):
        async def fetch(self, url):
            observed.append(state.lock.locked())
            return await super().fetch(url)

    fetcher = LockProbeFetcher({SEED: [A, B], A: [B], B: [SEED]}, delay=0.01)
    await CrawlCoordinator(fetcher, state=state).crawl(SEED, 3)

    assert observed
    assert not any(observed)


@pytest.mark.asyncio
async def test_max_concurrency_bounds_fetches_in_flight():
    pages = [f"https://x.test/p{i}" for i in range(15)]
    graph = {SEED: pages}
    graph.update({page: [] for page in pages})
    fetcher = StubFetcher(graph, delay=0.01)

    coordinator = CrawlCoordinator(fetcher, max_concurrency=3)
    state = await coordinator.run(SEED, 2)

    assert len(state) == 16
    assert fetcher.max_in_flight <= 3
    assert coordinator.stats.max_in_flight <= 3


@pytest.mark.asyncio
async def test_single_fetch_slot_does_not_deadlock_deep_chain():
    chain = [f"https://x.test/{i}" for i in range(6)]
    graph = {url: [nxt] for url, nxt in zip(chain, chain[1:])}
    graph[chain[-1]] = []
    fetcher = StubFetcher(graph)

    state = await asyncio.wait_for(
        CrawlCoordinator(fetcher, max_concurrency=1).run(chain[0], 10),
        timeout=5
    )

    assert set(state) == set(chain)


def test_invalid_max_concurrency_is_rejected(stub_fetcher):
    with pytest.raises(ValueError):
        CrawlCoordinator(stub_fetcher, max_concurrency=0)


@pytest.mark.asyncio
async def test_state_shared_between_runs_prevents_refetch(stub_fetcher):
    state = VisitState()
    await CrawlCoordinator(stub_fetcher, state=state).run(SEED, 2)
    await CrawlCoordinator(stub_fetcher, state=state).run(A, 2)
    assert stub_fetcher.call_counts[A] == 1
    assert C not in state

    # c links back to a, which the first run already resolved
    await CrawlCoordinator(stub_fetcher, state=state).run(C, 2)
    assert stub_fetcher.call_counts[A] == 1
    assert stub_fetcher.call_counts[C] == 1
    assert (await state.get(C)).status is VisitStatus.SUCCESS


@pytest.mark.asyncio
async def test_monitor_counts_fetches_failures_and_skips():
    monitor = CrawlerMonitor()
    fetcher = StubFetcher({SEED: [A, B, SEED], A: []}, failures={B: "gone"})
    await CrawlCoordinator(fetcher, monitor=monitor).run(SEED, 2)

    values = monitor.metrics.get_current_values()
    assert values['urls_fetched_total'] == 2
    assert values['fetch_failures_total'] == 1
    assert values['urls_skipped_total'] == 1
    assert values['tasks_in_flight'] == 0


def test_sync_crawl_wrapper_returns_completed_state(stub_fetcher):
    state = crawl(SEED, 2, stub_fetcher)

    assert set(state) == {SEED, A, B}
    assert state.counts() == {'in_progress': 0, 'success': 3, 'failure': 0}


def test_sync_crawl_accepts_any_fetcher_object():
    class EmptyFetcher:
        async def fetch(self, url):
            return FetchResult(url=url)

    state = crawl(SEED, 3, EmptyFetcher(), max_concurrency=2)

    assert set(state) == {SEED}
