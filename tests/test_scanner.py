import asyncio
from datetime import timedelta

from alphascan.services.cache import ResultCache
from alphascan.services.fanout import Broadcaster
from alphascan.services.scanner import ScanState, Scanner
from alphascan.services.twitter import SourceReader

from conftest import BONK, NOW, RAY, USDC, USDT, WIF, FakeEnricher, FakeInspector, FakeTwitter, chain_info, tweet


class Recorder:
    def __init__(self):
        self.messages = []

    async def send_json(self, data):
        self.messages.append(data)

    def events(self, name):
        return [m["data"] for m in self.messages if m["event"] == name]


async def no_sleep(seconds):
    no_sleep.calls.append(seconds)


def build(timelines, infos, markets=None, failing=(), hunters=None):
    no_sleep.calls = []
    client = FakeTwitter(timelines=timelines, failing=failing)
    reader = SourceReader(client, hunters or list(timelines) + list(failing))
    cache = ResultCache()
    broadcaster = Broadcaster()
    recorder = Recorder()
    broadcaster.subscribe(recorder)
    scanner = Scanner(
        reader,
        FakeInspector(infos),
        FakeEnricher(markets),
        cache,
        broadcaster,
        source_delay=1.2,
        address_delay=0.3,
        sleep=no_sleep,
        clock=lambda: NOW,
    )
    return scanner, cache, recorder


def test_full_cycle_publishes_ranked_results(market):
    timelines = {
        "alice": [tweet(3, f"CA: {USDC} fresh gem", likes=30), tweet(2, f"also {BONK} token")],
        "bob": [tweet(11, f"{USDC} is the alpha", likes=20)],
        "carol": [tweet(21, f"mint {USDC}")],
    }
    infos = {
        USDC: chain_info(USDC, age=timedelta(minutes=20), signatures=1500),
        BONK: chain_info(BONK, age=timedelta(hours=3)),
    }
    scanner, cache, recorder = build(timelines, infos, markets={USDC: market})

    assert asyncio.run(scanner.run()) is True

    contracts = cache.snapshot.contracts
    assert [c.address for c in contracts] == [USDC, BONK]
    assert contracts[0].mentioned_by == ["alice", "bob", "carol"]
    assert "POPULAR" in contracts[0].tags
    assert cache.snapshot.last_update == NOW
    assert not cache.scan_in_progress
    assert scanner.state == ScanState.IDLE

    update = recorder.events("contracts-update")[-1]
    assert [c["address"] for c in update["contracts"]] == [USDC, BONK]
    assert update["stats"]["total"] == 2
    assert update["stats"]["totalTweets"] == 4
    assert update["stats"]["huntersScanned"] == 3
    assert update["stats"]["fresh"] == 1

    statuses = recorder.events("scan-status")
    assert statuses[0] == {"inProgress": True, "stage": "Fetching tweets..."}
    assert statuses[1]["stage"] == "Scanning alice (1/3)..."
    assert statuses[-1]["inProgress"] is False
    assert statuses[-1]["lastScan"] is not None

    assert no_sleep.calls == [1.2, 1.2, 1.2, 0.3, 0.3]


def test_same_source_counts_once():
    timelines = {"alice": [tweet(3, f"{USDC} gem"), tweet(2, f"again {USDC} token")]}
    scanner, cache, _ = build(timelines, {USDC: chain_info(USDC)})
    asyncio.run(scanner.run())

    contract = cache.snapshot.contracts[0]
    assert contract.mentioned_by == ["alice"]
    assert [t.id for t in contract.tweets] == ["3", "2"]


def test_stale_contracts_need_three_sources():
    old = timedelta(days=10)
    timelines = {
        "a": [tweet(1, f"{USDC} and {BONK} alpha")],
        "b": [tweet(2, f"{USDC} and {BONK} alpha")],
        "c": [tweet(3, f"{USDC} gem")],
    }
    infos = {USDC: chain_info(USDC, age=old), BONK: chain_info(BONK, age=old)}
    scanner, cache, _ = build(timelines, infos)
    asyncio.run(scanner.run())

    assert [c.address for c in cache.snapshot.contracts] == [USDC]


def test_failing_source_does_not_abort_scan():
    timelines = {"good": [tweet(5, f"{RAY} launch")]}
    scanner, cache, recorder = build(
        timelines, {RAY: chain_info(RAY)}, failing=["bad"], hunters=["bad", "good"]
    )
    asyncio.run(scanner.run())

    assert [c.address for c in cache.snapshot.contracts] == [RAY]
    assert recorder.events("scan-error") == []


def test_addresses_without_account_are_skipped():
    timelines = {"a": [tweet(1, f"{USDT} and {WIF} token")]}
    scanner, cache, _ = build(timelines, {WIF: chain_info(WIF)})
    asyncio.run(scanner.run())

    assert [c.address for c in cache.snapshot.contracts] == [WIF]
    assert scanner.inspector.calls == [USDT, WIF]


def test_cycle_failure_emits_error_and_clears_flag(monkeypatch):
    scanner, cache, recorder = build({"a": [tweet(1, f"{USDC} token")]}, {USDC: chain_info(USDC)})
    previous = cache.publish([], NOW - timedelta(minutes=10))

    def explode(contracts):
        raise RuntimeError("boom")

    monkeypatch.setattr("alphascan.services.scanner.rank", explode)
    asyncio.run(scanner.run())

    assert recorder.events("scan-error") == [{"error": "boom"}]
    assert not cache.scan_in_progress
    assert cache.snapshot is previous
    assert recorder.events("scan-status")[-1]["inProgress"] is False


def test_single_flight_rejects_concurrent_scans():
    scanner, cache, _ = build({"a": [tweet(1, f"{USDC} token")]}, {USDC: chain_info(USDC)})

    async def scenario():
        assert cache.try_begin()
        before = cache.snapshot
        assert await scanner.run() is False
        assert scanner.trigger() is False
        assert cache.snapshot is before
        cache.finish()

        assert scanner.trigger() is True
        assert scanner.trigger() is False
        await scanner._task
        return cache.snapshot

    snapshot = asyncio.run(scenario())
    assert [c.address for c in snapshot.contracts] == [USDC]


def test_readers_see_previous_snapshot_until_publish():
    seen = []
    scanner, cache, _ = build({"a": [tweet(1, f"{USDC} token")]}, {USDC: chain_info(USDC)})
    first = cache.publish([], NOW - timedelta(minutes=10))

    async def watching_sleep(seconds):
        seen.append(cache.snapshot)

    scanner.sleep = watching_sleep
    asyncio.run(scanner.run())

    assert all(s is first for s in seen)
    assert cache.snapshot is not first
    assert len(cache.snapshot.contracts) == 1


def test_stop_cancels_running_scan_and_clears_flag():
    scanner, cache, recorder = build({"a": [tweet(1, f"{USDC} token")]}, {USDC: chain_info(USDC)})
    previous = cache.snapshot

    async def scenario():
        blocked = asyncio.Event()

        async def hanging_sleep(seconds):
            await blocked.wait()

        scanner.sleep = hanging_sleep
        assert scanner.trigger() is True
        task = scanner._task
        for _ in range(5):
            await asyncio.sleep(0)
        await scanner.stop()
        await scanner.stop()
        return task

    task = asyncio.run(scenario())

    assert task.cancelled()
    assert scanner._task is None
    assert not cache.scan_in_progress
    assert cache.snapshot is previous
    assert scanner.state == ScanState.IDLE
    assert recorder.events("scan-status")[-1]["inProgress"] is False
