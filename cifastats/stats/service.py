"""
Team statistics service.

Async facade used by the HTTP layer and screens. Every store read goes
through the RequestCache, so concurrent identical requests share one fetch.
Classification, aggregation, comparison and ranking run synchronously on
the fetched records.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from cifastats.config import Settings, get_settings
from cifastats.stats.aggregator import aggregate_team_stats
from cifastats.stats.comparison import ComparisonResult, compare_team_stats
from cifastats.stats.fixtures import ClassifiedFixtures, classify_fixtures
from cifastats.stats.rankings import (
    RankingEntry,
    RankingResult,
    check_position_end,
    rank_teams,
    rank_top_scorers,
    resolve_statistic,
    select_standings_positions,
)
from cifastats.store.base import (
    STATUS_COMPLETED,
    Fixture,
    League,
    Player,
    RecordStore,
    StandingsRow,
    Team,
    TeamSeasonStats,
    TopScorer,
)
from cifastats.telemetry.metrics import record_rankings_fallback
from cifastats.utils.cache import RequestCache, make_cache_key

logger = logging.getLogger(__name__)


# Cache key builders (one namespace per store operation)
def teams_key(team_type: Optional[str] = None, division: Optional[str] = None) -> str:
    return make_cache_key("teams", team_type, division)


def team_key(team_id: str) -> str:
    return make_cache_key("team", team_id)


def team_players_key(team_id: str) -> str:
    return make_cache_key("team_players", team_id)


def player_key(player_id: str) -> str:
    return make_cache_key("player", player_id)


def team_fixtures_key(team_id: str) -> str:
    return make_cache_key("team_fixtures", team_id)


def team_stats_key(team_id: str, league_id: Optional[str] = None) -> str:
    return make_cache_key("team_stats", team_id, league_id)


def league_stats_key(league_id: str) -> str:
    return make_cache_key("league_stats", league_id)


def standings_key(league_id: str) -> str:
    return make_cache_key("standings", league_id)


def league_key(league_id: str) -> str:
    return make_cache_key("league", league_id)


def top_scorers_key(league_id: str) -> str:
    return make_cache_key("top_scorers", league_id)


@dataclass
class TeamOverview:
    """Everything the team screen needs in one call."""

    team: Team
    players: list[Player]
    fixtures: ClassifiedFixtures
    stats: Optional[TeamSeasonStats]
    league: Optional[League] = None
    standing: Optional[StandingsRow] = None  # The team's own table row


class TeamStatsService:
    """Cached access to teams, fixtures and derived statistics."""

    def __init__(
        self,
        store: RecordStore,
        cache: Optional[RequestCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.cache = cache or RequestCache(
            name="stats",
            ttl=self.settings.cache_ttl,
            max_entries=self.settings.cache_max_entries,
        )

    # ------------------------------------------------------------------
    # Cached store reads
    # ------------------------------------------------------------------

    async def get_teams(
        self,
        team_type: Optional[str] = None,
        division: Optional[str] = None,
        force_refresh: bool = False,
    ) -> list[Team]:
        return await self.cache.get_or_fetch(
            teams_key(team_type, division),
            lambda: self.store.fetch_teams(team_type, division),
            force_refresh=force_refresh,
        )

    async def get_national_teams(self, force_refresh: bool = False) -> list[Team]:
        return await self.get_teams("national", force_refresh=force_refresh)

    async def get_team(self, team_id: str, force_refresh: bool = False) -> Optional[Team]:
        """Team record, or None if it does not exist."""
        return await self.cache.get_or_fetch(
            team_key(team_id),
            lambda: self.store.fetch_team_by_id(team_id),
            force_refresh=force_refresh,
        )

    async def get_team_players(self, team_id: str, force_refresh: bool = False) -> list[Player]:
        return await self.cache.get_or_fetch(
            team_players_key(team_id),
            lambda: self.store.fetch_team_players(team_id),
            force_refresh=force_refresh,
        )

    async def get_player(self, player_id: str, force_refresh: bool = False) -> Optional[Player]:
        return await self.cache.get_or_fetch(
            player_key(player_id),
            lambda: self.store.fetch_player_by_id(player_id),
            force_refresh=force_refresh,
        )

    async def get_team_fixtures(self, team_id: str, force_refresh: bool = False) -> list[Fixture]:
        return await self.cache.get_or_fetch(
            team_fixtures_key(team_id),
            lambda: self.store.fetch_team_fixtures(team_id),
            force_refresh=force_refresh,
        )

    async def get_aggregated_stats(
        self,
        team_id: str,
        league_id: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Optional[TeamSeasonStats]:
        """Precomputed stats record from the store, if one exists."""
        return await self.cache.get_or_fetch(
            team_stats_key(team_id, league_id),
            lambda: self.store.fetch_aggregated_stats(team_id, league_id),
            force_refresh=force_refresh,
        )

    async def _get_league_stats(self, league_id: str, force_refresh: bool) -> list[TeamSeasonStats]:
        return await self.cache.get_or_fetch(
            league_stats_key(league_id),
            lambda: self.store.fetch_league_stats(league_id),
            force_refresh=force_refresh,
        )

    async def _get_standings(self, league_id: str, force_refresh: bool) -> list[StandingsRow]:
        return await self.cache.get_or_fetch(
            standings_key(league_id),
            lambda: self.store.fetch_standings_fallback(league_id),
            force_refresh=force_refresh,
        )

    async def get_league(self, league_id: str, force_refresh: bool = False) -> Optional[League]:
        return await self.cache.get_or_fetch(
            league_key(league_id),
            lambda: self.store.fetch_league_by_id(league_id),
            force_refresh=force_refresh,
        )

    async def _get_top_scorers(self, league_id: str, force_refresh: bool) -> list[TopScorer]:
        return await self.cache.get_or_fetch(
            top_scorers_key(league_id),
            lambda: self.store.fetch_top_scorers(league_id),
            force_refresh=force_refresh,
        )

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    async def classify(
        self,
        team_id: str,
        now: Optional[datetime] = None,
        force_refresh: bool = False,
    ) -> ClassifiedFixtures:
        """Team fixtures split into live / upcoming / past."""
        fixtures = await self.get_team_fixtures(team_id, force_refresh=force_refresh)
        return self._classify(team_id, fixtures, now)

    def _classify(
        self,
        team_id: str,
        fixtures: list[Fixture],
        now: Optional[datetime] = None,
    ) -> ClassifiedFixtures:
        classified = classify_fixtures(team_id, fixtures, now=now)
        if classified.malformed_dates:
            logger.warning(
                f"[STATS] team={team_id}: {len(classified.malformed_dates)} fixtures with "
                f"unparseable dates classified as now: {classified.malformed_dates}"
            )
        return classified

    def _league_fixtures(self, fixtures: list[Fixture], league_id: Optional[str]) -> list[Fixture]:
        if league_id is None:
            return fixtures
        return [f for f in fixtures if f.league_id == league_id]

    def _aggregate(
        self,
        team_id: str,
        fixtures: list[Fixture],
        team: Optional[Team],
        league_id: Optional[str],
    ) -> TeamSeasonStats:
        return aggregate_team_stats(
            team_id,
            self._league_fixtures(fixtures, league_id),
            skip_unscored=self.settings.STATS_SKIP_UNSCORED_FIXTURES,
            team_name=team.name if team else None,
            league_id=league_id,
        )

    async def aggregate(
        self,
        team_id: str,
        league_id: Optional[str] = None,
        force_refresh: bool = False,
    ) -> TeamSeasonStats:
        """Season record computed from the team's fixtures (ignores stored aggregates)."""
        fixtures, team = await asyncio.gather(
            self.get_team_fixtures(team_id, force_refresh=force_refresh),
            self.get_team(team_id, force_refresh=force_refresh),
        )
        return self._aggregate(team_id, fixtures, team, league_id)

    async def get_team_stats(
        self,
        team_id: str,
        league_id: Optional[str] = None,
        force_refresh: bool = False,
        fixtures: Optional[list[Fixture]] = None,
    ) -> Optional[TeamSeasonStats]:
        """
        Season record for a team.

        Prefers the store's precomputed record; falls back to aggregating the
        team's fixtures.

        Args:
            fixtures: The team's fixtures when the caller already holds them
                (already refreshed if force_refresh); skips the fixtures read.

        Returns:
            TeamSeasonStats, or None when there is neither a stored record
            nor any completed fixture to compute one from.
        """
        stored = await self.get_aggregated_stats(team_id, league_id, force_refresh=force_refresh)
        if stored is not None:
            return stored

        if fixtures is None:
            fixtures = await self.get_team_fixtures(team_id, force_refresh=force_refresh)
        relevant = self._league_fixtures(fixtures, league_id)
        if not any(f.status == STATUS_COMPLETED and f.involves(team_id) for f in relevant):
            logger.info(f"[STATS] team={team_id} league={league_id}: no stored or computable stats")
            return None

        logger.info(f"[STATS] team={team_id} league={league_id}: no stored stats, computing from fixtures")
        team = await self.get_team(team_id)
        return self._aggregate(team_id, fixtures, team, league_id)

    async def compare(
        self,
        team_a_id: str,
        team_b_id: str,
        league_id: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Optional[ComparisonResult]:
        """
        Head-to-head comparison of two teams.

        Returns:
            ComparisonResult, or None if either team has no stats.
        """
        # Team A's fixtures serve both its stats and the head-to-head: one read
        fixtures = await self.get_team_fixtures(team_a_id, force_refresh=force_refresh)
        stats_a, stats_b = await asyncio.gather(
            self.get_team_stats(team_a_id, league_id, force_refresh=force_refresh, fixtures=fixtures),
            self.get_team_stats(team_b_id, league_id, force_refresh=force_refresh),
        )
        if stats_a is None or stats_b is None:
            missing = [t for t, s in ((team_a_id, stats_a), (team_b_id, stats_b)) if s is None]
            logger.info(f"[STATS] compare {team_a_id} vs {team_b_id}: insufficient data for {missing}")
            return None
        return compare_team_stats(stats_a, stats_b, fixtures)

    async def rank_result(
        self,
        league_id: str,
        statistic: str,
        limit: Optional[int] = None,
        force_refresh: bool = False,
    ) -> RankingResult:
        """
        Top teams of a league by statistic, with the source used.

        Raises:
            UnknownStatistic: Before any fetch, if statistic is not rankable.
        """
        spec = resolve_statistic(statistic)
        limit = self._clamp_limit(limit, self.settings.RANKING_DEFAULT_LIMIT)

        stats_rows, teams = await asyncio.gather(
            self._get_league_stats(league_id, force_refresh),
            self.get_teams(force_refresh=force_refresh),
        )
        standings: list[StandingsRow] = []
        if not stats_rows:
            standings = await self._get_standings(league_id, force_refresh)
            if standings:
                record_rankings_fallback(spec.name)
                logger.info(
                    f"[RANKINGS] league={league_id}: no aggregated stats, "
                    f"ranking '{spec.name}' from {len(standings)} standings rows"
                )

        return rank_teams(spec.name, stats_rows, standings, teams, limit)

    async def rank(
        self,
        league_id: str,
        statistic: str,
        limit: Optional[int] = None,
        force_refresh: bool = False,
    ) -> list[RankingEntry]:
        result = await self.rank_result(league_id, statistic, limit, force_refresh)
        return result.entries

    def _clamp_limit(self, limit: Optional[int], default: int) -> int:
        if limit is None:
            limit = default
        return min(limit, self.settings.RANKING_MAX_LIMIT)

    async def get_top_scorers(
        self,
        league_id: str,
        limit: Optional[int] = None,
        force_refresh: bool = False,
    ) -> list[TopScorer]:
        """League top scorers by goals then assists, numbered from 1."""
        limit = self._clamp_limit(limit, self.settings.TOP_SCORERS_DEFAULT_LIMIT)
        scorers = await self._get_top_scorers(league_id, force_refresh)
        return rank_top_scorers(scorers, limit)

    async def get_position_count(
        self,
        league_id: str,
        end: str,
        count: Optional[int] = None,
        force_refresh: bool = False,
    ) -> list[StandingsRow]:
        """
        Leaders ("top") or strugglers ("bottom") of a league table.

        Raises:
            ValueError: Before any fetch, if end is not "top" or "bottom".
        """
        check_position_end(end)
        count = self._clamp_limit(count, self.settings.RANKING_DEFAULT_LIMIT)
        standings = await self._get_standings(league_id, force_refresh)
        return select_standings_positions(standings, end, count)

    async def get_team_overview(self, team_id: str, force_refresh: bool = False) -> Optional[TeamOverview]:
        """
        Team, roster, classified fixtures, stats, league and table row.

        Returns None if the team doesn't exist. League and standing are None
        for teams outside a league.
        """
        team = await self.get_team(team_id, force_refresh=force_refresh)
        if team is None:
            return None

        fixtures = await self.get_team_fixtures(team_id, force_refresh=force_refresh)
        players, stats, (league, standing) = await asyncio.gather(
            self.get_team_players(team_id, force_refresh=force_refresh),
            self.get_team_stats(team_id, team.league_id, force_refresh=force_refresh, fixtures=fixtures),
            self._team_league(team, force_refresh),
        )
        return TeamOverview(
            team=team,
            players=players,
            fixtures=self._classify(team_id, fixtures),
            stats=stats,
            league=league,
            standing=standing,
        )

    async def _team_league(
        self,
        team: Team,
        force_refresh: bool,
    ) -> tuple[Optional[League], Optional[StandingsRow]]:
        if team.league_id is None:
            return None, None
        league, standings = await asyncio.gather(
            self.get_league(team.league_id, force_refresh=force_refresh),
            self._get_standings(team.league_id, force_refresh),
        )
        standing = next((r for r in standings if r.team_id == team.id), None)
        return league, standing

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate_team(self, team_id: str) -> None:
        """Drop every cached read for one team, plus the team lists."""
        self.cache.invalidate(team_key(team_id))
        self.cache.invalidate(team_players_key(team_id))
        self.cache.invalidate(team_fixtures_key(team_id))
        # team_stats:{id}:{league} for every league
        self.cache.invalidate_prefix(make_cache_key("team_stats", team_id) + ":")
        self.cache.invalidate_prefix("teams:")
        logger.info(f"[STATS] invalidated cache for team={team_id}")

    def invalidate_all(self) -> None:
        self.cache.invalidate_all()
