"""
Scan orchestrator.

One cycle walks Idle -> SourcesScanning -> AddressesProcessing -> Publishing
-> Idle. Sources and addresses are handled strictly one at a time with a
pacing sleep after each, since every upstream API rate-limits. Only one
cycle runs at a time; a request while busy is dropped.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from alphascan.schemas import CandidateAddress, Mention, ScoredContract, UpdateStats
from alphascan.services.cache import ResultCache
from alphascan.services.chain import ChainInspector
from alphascan.services.extractor import extract_addresses
from alphascan.services.fanout import CONTRACTS_UPDATE, SCAN_ERROR, SCAN_STATUS, Broadcaster
from alphascan.services.market import MarketEnricher
from alphascan.services.scoring import WEEK, age_minutes, rank, score_contract
from alphascan.services.twitter import SourceReader

log = logging.getLogger(__name__)

POPULAR_MIN_SOURCES = 3
PROGRESS_EVERY = 5


class ScanState(str, enum.Enum):
    IDLE = "idle"
    SOURCES_SCANNING = "sources_scanning"
    ADDRESSES_PROCESSING = "addresses_processing"
    PUBLISHING = "publishing"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_stale(age: float, mention_count: int) -> bool:
    """Older than a week and not mentioned by enough distinct sources."""
    return age > WEEK and mention_count < POPULAR_MIN_SOURCES


class Scanner:
    def __init__(
        self,
        reader: SourceReader,
        inspector: ChainInspector,
        enricher: MarketEnricher,
        cache: ResultCache,
        broadcaster: Broadcaster,
        top_hunters: Iterable[str] = (),
        max_posts: int = 20,
        source_delay: float = 1.2,
        address_delay: float = 0.3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.reader = reader
        self.inspector = inspector
        self.enricher = enricher
        self.cache = cache
        self.broadcaster = broadcaster
        self.top_hunters = list(top_hunters)
        self.max_posts = max_posts
        self.source_delay = source_delay
        self.address_delay = address_delay
        self.sleep = sleep
        self.clock = clock
        self.state = ScanState.IDLE
        self._task: Optional[asyncio.Task] = None

    async def _status(self, stage: str) -> None:
        await self.broadcaster.publish(SCAN_STATUS, {"inProgress": True, "stage": stage})

    def trigger(self) -> bool:
        """Start a scan in the background. False if one is already running."""
        if not self.cache.try_begin():
            log.info("Scan already in progress, skipping...")
            return False
        self._task = asyncio.get_running_loop().create_task(self._cycle())
        return True

    async def stop(self) -> None:
        """Cancel a background scan still running at shutdown."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def run(self) -> bool:
        """Run one full cycle. Returns False without side effects if another cycle is active."""
        if not self.cache.try_begin():
            log.info("Scan already in progress, skipping...")
            return False
        await self._cycle()
        return True

    async def _cycle(self) -> None:
        log.info("Starting contract scan")
        try:
            self.state = ScanState.SOURCES_SCANNING
            await self._status("Fetching tweets...")
            candidates, total_tweets = await self._scan_sources()

            self.state = ScanState.ADDRESSES_PROCESSING
            log.info("Found %d unique contract addresses", len(candidates))
            await self._status(f"Processing {len(candidates)} contracts...")
            contracts = await self._process_addresses(candidates)

            self.state = ScanState.PUBLISHING
            await self._publish(contracts, total_tweets)
        except Exception as e:
            log.exception("Scan error")
            await self.broadcaster.publish(SCAN_ERROR, {"error": str(e)})
        finally:
            self.state = ScanState.IDLE
            self.cache.finish()
            await self.broadcaster.publish(
                SCAN_STATUS, {"inProgress": False, "lastScan": self.cache.snapshot.last_update}
            )

    async def _scan_sources(self):
        candidates: Dict[str, CandidateAddress] = {}
        total_tweets = 0
        hunters = self.reader.hunters()

        for index, source in enumerate(hunters, start=1):
            await self._status(f"Scanning {source.username} ({index}/{len(hunters)})...")
            try:
                posts = await self.reader.fetch_recent(source.username, self.max_posts)
            except Exception as e:
                log.error("Failed to fetch tweets for %s: %s", source.username, e)
                posts = []

            total_tweets += len(posts)
            for post in posts:
                for address in extract_addresses(post.text):
                    entry = candidates.setdefault(address, CandidateAddress(address=address))
                    entry.add(Mention(address=address, source=source.username, post=post))

            await self.sleep(self.source_delay)

        return candidates, total_tweets

    async def _process_addresses(self, candidates: Dict[str, CandidateAddress]) -> List[ScoredContract]:
        contracts: List[ScoredContract] = []
        total = len(candidates)

        for processed, candidate in enumerate(candidates.values(), start=1):
            if processed % PROGRESS_EVERY == 0:
                await self._status(f"Processing contracts... ({processed}/{total})")
            try:
                scored = await self.score_address(candidate)
            except Exception as e:
                log.error("Error processing contract %s: %s", candidate.address, e)
                scored = None
            if scored is not None:
                contracts.append(scored)
            await self.sleep(self.address_delay)

        return contracts

    async def score_address(self, candidate: CandidateAddress) -> Optional[ScoredContract]:
        chain = await self.inspector.inspect(candidate.address)
        if chain is None:
            return None

        now = self.clock()
        if is_stale(age_minutes(chain.deployed_at, now), candidate.mention_count):
            log.debug("Skipping stale contract %s", candidate.address)
            return None

        market = await self.enricher.market_data(candidate.address)
        meta = await self.enricher.token_metadata(candidate.address)
        return score_contract(candidate, chain, market, meta, now, self.top_hunters)

    async def _publish(self, contracts: List[ScoredContract], total_tweets: int) -> None:
        snapshot = self.cache.publish(rank(contracts), self.clock())
        log.info("Scan completed: %d contracts processed", len(snapshot.contracts))

        stats = UpdateStats(
            total=len(snapshot.contracts),
            hunters_scanned=len(self.reader.hunters()),
            total_tweets=total_tweets,
            **snapshot.stats.model_dump(),
        )
        await self.broadcaster.publish(
            CONTRACTS_UPDATE,
            {"contracts": list(snapshot.contracts), "lastUpdate": snapshot.last_update, "stats": stats},
        )
