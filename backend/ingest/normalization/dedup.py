"""
Merge heterogeneous fixture lists into one list unique by fixture id.

Source priority is live > league > date. A later entry for an id already
seen replaces it only when its source ranks strictly higher; on a tie the
first-seen entry wins. Output order is first-appearance order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from shared.models.domain import Fixture
from shared.models.enums import FixtureSource

DEFAULT_PRIORITY: Mapping[FixtureSource, int] = {
    FixtureSource.LIVE: 0,
    FixtureSource.LEAGUE: 1,
    FixtureSource.DATE: 2,
}


@dataclass
class SourcedBatch:
    source: FixtureSource
    fixtures: list[Fixture] = field(default_factory=list)
    label: str = ""


class Deduplicator:
    def __init__(self, priority: Optional[Mapping[FixtureSource, int]] = None) -> None:
        self._priority = dict(priority or DEFAULT_PRIORITY)

    def rank(self, source: FixtureSource) -> int:
        return self._priority.get(source, len(self._priority))

    def merge(self, batches: Iterable[SourcedBatch]) -> list[Fixture]:
        chosen: dict[int, tuple[int, Fixture]] = {}
        order: list[int] = []
        for batch in batches:
            rank = self.rank(batch.source)
            for fixture in batch.fixtures:
                current = chosen.get(fixture.id)
                if current is None:
                    order.append(fixture.id)
                    chosen[fixture.id] = (rank, fixture)
                elif rank < current[0]:
                    chosen[fixture.id] = (rank, fixture)
        return [chosen[fid][1] for fid in order]
