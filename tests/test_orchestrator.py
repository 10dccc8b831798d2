import asyncio

from fuelboard.errors import TransportError
from fuelboard.filters import Selection
from fuelboard.orchestrator import FetchConsumer, FetchStatus

A = Selection("7", (10,), (2025,))
B = Selection("7", (11,), (2025,))


class GatedFetcher:
    """Async fetcher whose responses are released by the test."""

    def __init__(self, results):
        self.results = results
        self.calls = []
        self.gates = {}

    async def __call__(self, selection):
        self.calls.append(selection)
        gate = self.gates.setdefault(selection, asyncio.Event())
        await gate.wait()
        result = self.results.get(selection)
        if isinstance(result, Exception):
            raise result
        return result

    def release(self, selection):
        self.gates.setdefault(selection, asyncio.Event()).set()


def test_late_stale_result_is_discarded():
    async def scenario():
        fetcher = GatedFetcher({A: "data-A", B: "data-B"})
        seen = []
        consumer = FetchConsumer(fetcher, name="metrics", on_change=lambda s: seen.append(s.status))

        task_a = consumer.select(A)
        await asyncio.sleep(0)
        task_b = consumer.select(B)
        await asyncio.sleep(0)

        fetcher.release(B)
        await task_b
        assert consumer.snapshot.status is FetchStatus.SUCCESS
        assert consumer.snapshot.data == "data-B"

        fetcher.release(A)
        await task_a
        assert consumer.snapshot.data == "data-B"
        assert consumer.snapshot.selection == B
        return seen

    seen = asyncio.run(scenario())
    assert seen == [FetchStatus.LOADING, FetchStatus.LOADING, FetchStatus.SUCCESS]


def test_stale_result_arriving_first_is_discarded():
    async def scenario():
        fetcher = GatedFetcher({A: "data-A", B: "data-B"})
        consumer = FetchConsumer(fetcher)
        task_a = consumer.select(A)
        task_b = consumer.select(B)

        fetcher.release(A)
        await task_a
        assert consumer.snapshot.status is FetchStatus.LOADING
        assert consumer.snapshot.data is None

        fetcher.release(B)
        await task_b
        assert consumer.snapshot.data == "data-B"

    asyncio.run(scenario())


def test_non_queryable_selection_goes_idle_without_request():
    async def scenario():
        calls = []

        async def fetcher(selection):
            calls.append(selection)
            return {"netSales": 1}

        consumer = FetchConsumer(fetcher)
        await consumer.select(A)
        assert consumer.snapshot.status is FetchStatus.SUCCESS

        assert consumer.select(Selection("7", (), (2025,))) is None
        assert consumer.snapshot.status is FetchStatus.IDLE
        assert consumer.snapshot.data is None
        return calls

    assert asyncio.run(scenario()) == [A]


def test_failure_is_surfaced_without_retry():
    async def scenario():
        calls = []

        async def fetcher(selection):
            calls.append(selection)
            raise TransportError("API Error: 503 Service Unavailable", status=503)

        consumer = FetchConsumer(fetcher)
        await consumer.select(A)
        snap = consumer.snapshot
        assert snap.status is FetchStatus.FAILURE
        assert snap.data is None
        assert snap.message == "API Error: 503 Service Unavailable"

        assert consumer.select(A) is None
        await consumer.refresh()
        return calls

    assert len(asyncio.run(scenario())) == 2


def test_same_selection_while_loaded_is_noop():
    async def scenario():
        calls = []

        async def fetcher(selection):
            calls.append(selection)
            return "ok"

        consumer = FetchConsumer(fetcher)
        await consumer.select(A)
        assert consumer.select(A) is None
        return calls

    assert asyncio.run(scenario()) == [A]


def test_dispose_makes_in_flight_request_inert():
    async def scenario():
        fetcher = GatedFetcher({A: "data-A"})
        seen = []
        consumer = FetchConsumer(fetcher, on_change=lambda s: seen.append(s.status))
        consumer.select(A)
        await asyncio.sleep(0)
        consumer.dispose()
        fetcher.release(A)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert consumer.select(B) is None
        return consumer, seen

    consumer, seen = asyncio.run(scenario())
    assert seen == [FetchStatus.LOADING]
    assert consumer.snapshot.status is FetchStatus.LOADING
    assert consumer.snapshot.data is None


def test_sync_fetcher_runs_off_loop():
    async def scenario():
        consumer = FetchConsumer(lambda selection: {"months": selection.months})
        await consumer.select(B)
        return consumer.snapshot

    snap = asyncio.run(scenario())
    assert snap.status is FetchStatus.SUCCESS
    assert snap.data == {"months": (11,)}
