"""Dict-backed record store.

Used for seeding, local demos and tests. Mirrors the ordering guarantees of
the SQL store: teams by name, players by shirt number, standings by position.
"""

import logging
from collections import Counter
from typing import Iterable, Optional

from cifastats.store.base import (
    Fixture,
    League,
    Player,
    RecordStore,
    SourceUnavailable,
    StandingsRow,
    Team,
    TeamSeasonStats,
    TopScorer,
)

logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStore):
    """In-process store. Set `available = False` to simulate an outage."""

    def __init__(
        self,
        teams: Iterable[Team] = (),
        players: Iterable[Player] = (),
        fixtures: Iterable[Fixture] = (),
        stats: Iterable[TeamSeasonStats] = (),
        standings: Iterable[StandingsRow] = (),
        leagues: Iterable[League] = (),
        scorers: Iterable[TopScorer] = (),
    ):
        self.teams: dict[str, Team] = {t.id: t for t in teams}
        self.players: dict[str, Player] = {p.id: p for p in players}
        self.fixtures: dict[str, Fixture] = {f.id: f for f in fixtures}
        self.stats: list[TeamSeasonStats] = list(stats)
        self.standings: list[StandingsRow] = list(standings)
        self.leagues: dict[str, League] = {lg.id: lg for lg in leagues}
        self.scorers: list[TopScorer] = list(scorers)
        self.available = True
        # Per-operation call counts, handy for asserting cache behaviour
        self.calls: Counter = Counter()

    def _check(self, operation: str) -> None:
        self.calls[operation] += 1
        if not self.available:
            raise SourceUnavailable(operation, "in-memory store marked unavailable")

    async def fetch_teams(
        self,
        team_type: Optional[str] = None,
        division: Optional[str] = None,
    ) -> list[Team]:
        self._check("fetch_teams")
        teams = [
            t for t in self.teams.values()
            if (team_type is None or t.type == team_type)
            and (division is None or t.division == division)
        ]
        return sorted(teams, key=lambda t: t.name)

    async def fetch_team_by_id(self, team_id: str) -> Optional[Team]:
        self._check("fetch_team_by_id")
        return self.teams.get(team_id)

    async def fetch_team_players(self, team_id: str) -> list[Player]:
        self._check("fetch_team_players")
        players = [p for p in self.players.values() if p.team_id == team_id]
        return sorted(players, key=lambda p: p.number)

    async def fetch_player_by_id(self, player_id: str) -> Optional[Player]:
        self._check("fetch_player_by_id")
        return self.players.get(player_id)

    async def fetch_team_fixtures(self, team_id: str) -> list[Fixture]:
        self._check("fetch_team_fixtures")
        return [f for f in self.fixtures.values() if f.involves(team_id)]

    async def fetch_aggregated_stats(
        self,
        team_id: str,
        league_id: Optional[str] = None,
    ) -> Optional[TeamSeasonStats]:
        self._check("fetch_aggregated_stats")
        matching = [
            s for s in self.stats
            if s.team_id == team_id and (league_id is None or s.league_id == league_id)
        ]
        if not matching:
            return None
        # Latest inserted record stands in for "most recently updated"
        return matching[-1]

    async def fetch_league_stats(self, league_id: str) -> list[TeamSeasonStats]:
        self._check("fetch_league_stats")
        return [s for s in self.stats if s.league_id == league_id]

    async def fetch_standings_fallback(self, league_id: str) -> list[StandingsRow]:
        self._check("fetch_standings_fallback")
        rows = [r for r in self.standings if r.league_id == league_id]
        return sorted(rows, key=lambda r: (r.position is None, r.position or 0))

    async def fetch_league_by_id(self, league_id: str) -> Optional[League]:
        self._check("fetch_league_by_id")
        return self.leagues.get(league_id)

    async def fetch_top_scorers(self, league_id: str) -> list[TopScorer]:
        self._check("fetch_top_scorers")
        return [s for s in self.scorers if s.league_id == league_id]
