from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from alphascan.schemas import ScanStats, ScoredContract
from alphascan.services.scoring import summarize


@dataclass(frozen=True)
class Snapshot:
    contracts: Tuple[ScoredContract, ...] = ()
    last_update: Optional[datetime] = None
    stats: ScanStats = field(default_factory=ScanStats)


class ResultCache:
    """
    The published ranked result set.

    The snapshot is replaced whole by ``publish``; readers grab ``snapshot``
    once and never see a half-written result. ``scan_in_progress`` is the
    single-flight flag; ``try_begin`` is check-and-set with no await in
    between, so it is atomic on the event loop.
    """

    def __init__(self):
        self._snapshot = Snapshot()
        self._in_progress = False

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def scan_in_progress(self) -> bool:
        return self._in_progress

    @property
    def empty(self) -> bool:
        return not self._snapshot.contracts

    def try_begin(self) -> bool:
        if self._in_progress:
            return False
        self._in_progress = True
        return True

    def finish(self) -> None:
        self._in_progress = False

    def publish(self, contracts, when: datetime) -> Snapshot:
        ranked = tuple(contracts)
        self._snapshot = Snapshot(contracts=ranked, last_update=when, stats=summarize(ranked))
        return self._snapshot

    def find(self, address: str) -> Optional[ScoredContract]:
        for c in self._snapshot.contracts:
            if c.address == address:
                return c
        return None
