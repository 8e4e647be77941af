"""
Team Rankings Module.

Canonical function for ranking a league's teams by one statistic.

Source selection:
1. Aggregated team stats rows for the league, when any exist
2. Otherwise the league standings, which only carry goals for/against and
   points. Statistics missing from the standings are never fabricated: the
   fallback returns no entries for them.

Ordering: goals_against ascending (fewer conceded is better), every other
statistic descending. Equal values are ordered by team id.

Also ranks a league's top scorers and slices the league table from either
end.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from cifastats.store.base import StandingsRow, Team, TeamSeasonStats, TopScorer

logger = logging.getLogger(__name__)

SOURCE_AGGREGATES = "aggregates"
SOURCE_STANDINGS = "standings"
SOURCE_EMPTY = "empty"


class UnknownStatistic(ValueError):
    """Raised when a ranking is requested for a statistic we don't rank by."""

    def __init__(self, requested: str, available: list[str]):
        self.requested = requested
        self.available = available
        super().__init__(f"Statistic '{requested}' is not rankable. Available: {available}")


@dataclass(frozen=True)
class StatisticSpec:
    """How a statistic is read and ordered."""

    name: str
    ascending: bool
    standings_field: Optional[str]  # None: not available from standings


STATISTICS = {
    "goals_for": StatisticSpec("goals_for", ascending=False, standings_field="goals_for"),
    "goals_against": StatisticSpec("goals_against", ascending=True, standings_field="goals_against"),
    "clean_sheets": StatisticSpec("clean_sheets", ascending=False, standings_field=None),
    "avg_possession": StatisticSpec("avg_possession", ascending=False, standings_field=None),
    "points": StatisticSpec("points", ascending=False, standings_field="points"),
}

# Category names used by the stats screens
STATISTIC_ALIASES = {
    "goals": "goals_for",
    "goalsFor": "goals_for",
    "defense": "goals_against",
    "goalsAgainst": "goals_against",
    "cleanSheets": "clean_sheets",
    "possession": "avg_possession",
    "avgPossession": "avg_possession",
}


@dataclass
class RankingEntry:
    team_id: str
    team_name: str
    value: float
    color_primary: Optional[str] = None  # Display hint, only when the team resolved


@dataclass
class RankingResult:
    """Result of ranking a league by one statistic."""

    statistic: str
    source: str  # "aggregates", "standings" or "empty"
    entries: list[RankingEntry]


def resolve_statistic(name: str) -> StatisticSpec:
    """Map a statistic or category name to its spec. Raises UnknownStatistic."""
    canonical = STATISTIC_ALIASES.get(name, name)
    spec = STATISTICS.get(canonical)
    if spec is None:
        raise UnknownStatistic(
            requested=name,
            available=sorted(STATISTICS) + sorted(STATISTIC_ALIASES),
        )
    return spec


def _numeric(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _order(candidates: list[tuple[float, RankingEntry]], ascending: bool) -> list[RankingEntry]:
    if ascending:
        candidates.sort(key=lambda c: (c[0], c[1].team_id))
    else:
        candidates.sort(key=lambda c: (-c[0], c[1].team_id))
    return [entry for _, entry in candidates]


def rank_teams(
    statistic: str,
    stats_rows: Iterable[TeamSeasonStats],
    standings_rows: Iterable[StandingsRow],
    teams: Iterable[Team],
    limit: int,
) -> RankingResult:
    """
    CANONICAL function for ranking teams by a statistic.

    Args:
        statistic: Statistic or category name (see STATISTICS, STATISTIC_ALIASES)
        stats_rows: Aggregated stats rows for the league (may be empty)
        standings_rows: Standings rows for the league, used only when
            stats_rows is empty
        teams: Known team records, used for names and colors
        limit: Maximum entries to return

    Returns:
        RankingResult with at most `limit` entries

    Raises:
        UnknownStatistic: If statistic is not rankable
    """
    spec = resolve_statistic(statistic)
    teams_by_id = {t.id: t for t in teams}
    stats_rows = list(stats_rows)

    if limit <= 0:
        return RankingResult(statistic=spec.name, source=SOURCE_EMPTY, entries=[])

    if stats_rows:
        source = SOURCE_AGGREGATES
        rows = [(r.team_id, r.team_name, getattr(r, spec.name, None)) for r in stats_rows]
    else:
        standings_rows = list(standings_rows)
        if not standings_rows:
            return RankingResult(statistic=spec.name, source=SOURCE_EMPTY, entries=[])
        source = SOURCE_STANDINGS
        if spec.standings_field is None:
            logger.info(
                f"[RANKINGS] '{spec.name}' not available from standings fallback, "
                f"returning no entries"
            )
            return RankingResult(statistic=spec.name, source=source, entries=[])
        rows = [(r.team_id, r.team_name, getattr(r, spec.standings_field, None)) for r in standings_rows]

    candidates: list[tuple[float, RankingEntry]] = []
    for team_id, team_name, value in rows:
        number = _numeric(value)
        if number is None:
            continue
        team = teams_by_id.get(team_id)
        candidates.append((number, RankingEntry(
            team_id=team_id,
            team_name=team_name or (team.name if team else team_id),
            value=value,
            color_primary=team.color_primary if team else None,
        )))

    entries = _order(candidates, spec.ascending)[:limit]
    return RankingResult(statistic=spec.name, source=source, entries=entries)


POSITION_TOP = "top"
POSITION_BOTTOM = "bottom"


def check_position_end(end: str) -> str:
    """Return end if it names a table end, else raise ValueError."""
    if end not in (POSITION_TOP, POSITION_BOTTOM):
        raise ValueError(f"end must be '{POSITION_TOP}' or '{POSITION_BOTTOM}', got '{end}'")
    return end


def rank_top_scorers(scorers: Iterable[TopScorer], limit: int) -> list[TopScorer]:
    """
    Order a league's scorers by goals, then assists, and number them 1..n.

    Equal goals and assists are ordered by player id. Returns new records;
    the inputs are left untouched.
    """
    if limit <= 0:
        return []
    ordered = sorted(scorers, key=lambda s: (-s.goals, -s.assists, s.player_id))[:limit]
    return [replace(s, position=i) for i, s in enumerate(ordered, start=1)]


def select_standings_positions(
    standings_rows: Iterable[StandingsRow],
    end: str,
    count: int,
) -> list[StandingsRow]:
    """
    First or last `count` rows of a league table.

    Args:
        standings_rows: Standings rows for one league, any order
        end: "top" (leaders first) or "bottom" (last place first)
        count: Maximum rows to return

    Raises:
        ValueError: If end is neither "top" nor "bottom"
    """
    check_position_end(end)
    if count <= 0:
        return []

    standings_rows = list(standings_rows)
    # Rows without a position sort after the table either way
    placed = sorted(
        (r for r in standings_rows if r.position is not None),
        key=lambda r: r.position,
        reverse=end == POSITION_BOTTOM,
    )
    unplaced = [r for r in standings_rows if r.position is None]
    return (placed + unplaced)[:count]
