"""
Fixture classification into live / upcoming / past buckets.

Every fixture involving the team lands in exactly one bucket:
- live:     status "live", source order
- upcoming: not yet played and dated strictly after now, soonest first
- past:     completed, cancelled, or not played but dated at/before now
            (overdue scheduled fixtures), most recent first

Postponed fixtures and unknown statuses are treated like scheduled ones
(bucketed by date). Sorting is stable, so equal dates keep input order.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from cifastats.store.base import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_LIVE,
    Fixture,
)
from cifastats.utils.dates import as_utc, normalize_date_checked, utc_now


@dataclass
class ClassifiedFixtures:
    """Disjoint, ordered fixture buckets for one team."""

    live: list[Fixture] = field(default_factory=list)
    upcoming: list[Fixture] = field(default_factory=list)
    past: list[Fixture] = field(default_factory=list)
    # Ids of fixtures whose date could not be parsed (classified as "now")
    malformed_dates: list[str] = field(default_factory=list)

    @property
    def next_fixture(self) -> Optional[Fixture]:
        if self.live:
            return self.live[0]
        if self.upcoming:
            return self.upcoming[0]
        return None

    @property
    def last_result(self) -> Optional[Fixture]:
        return self.past[0] if self.past else None

    def __len__(self) -> int:
        return len(self.live) + len(self.upcoming) + len(self.past)


def classify_fixtures(
    team_id: str,
    fixtures: Iterable[Fixture],
    now: Optional[datetime] = None,
) -> ClassifiedFixtures:
    """
    Partition a team's fixtures by temporal status.

    Args:
        team_id: Team whose fixtures are classified; others are ignored.
        fixtures: Any fixture set (need not belong to the team only).
        now: Reference instant (default: current UTC time).

    Returns:
        ClassifiedFixtures with live, upcoming and past buckets.
    """
    now = utc_now() if now is None else as_utc(now)
    result = ClassifiedFixtures()

    upcoming: list[tuple[datetime, Fixture]] = []
    past: list[tuple[datetime, Fixture]] = []

    for fixture in fixtures:
        if not fixture.involves(team_id):
            continue

        if fixture.status == STATUS_LIVE:
            result.live.append(fixture)
            continue

        instant, malformed = normalize_date_checked(fixture.date, now)
        if malformed:
            result.malformed_dates.append(fixture.id)

        if fixture.status in (STATUS_COMPLETED, STATUS_CANCELLED):
            past.append((instant, fixture))
        elif instant > now:
            upcoming.append((instant, fixture))
        else:
            past.append((instant, fixture))

    # sorted() is stable; reverse=True keeps equal keys in input order too
    result.upcoming = [f for _, f in sorted(upcoming, key=lambda pair: pair[0])]
    result.past = [f for _, f in sorted(past, key=lambda pair: pair[0], reverse=True)]
    return result
