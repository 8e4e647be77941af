"""SQL record store backed by the SQLModel tables in cifastats.models."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from cifastats import models
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


def _team(row: models.Team) -> Team:
    return Team(
        id=row.id,
        name=row.name,
        division=row.division,
        type=row.team_type,
        color_primary=row.color_primary,
        league_id=row.league_id,
        short_name=row.short_name,
    )


def _player(row: models.Player) -> Player:
    return Player(
        id=row.id,
        team_id=row.team_id,
        name=row.name,
        position=row.position,
        number=row.number,
    )


def _fixture(row: models.Fixture) -> Fixture:
    return Fixture(
        id=row.id,
        home_team_id=row.home_team_id,
        away_team_id=row.away_team_id,
        date=row.date,
        status=row.status,
        home_score=row.home_score,
        away_score=row.away_score,
        venue=row.venue,
        competition=row.competition,
        league_id=row.league_id,
    )


def _stats(row: models.TeamStats) -> TeamSeasonStats:
    return TeamSeasonStats(
        team_id=row.team_id,
        matches=row.matches,
        wins=row.wins,
        draws=row.draws,
        losses=row.losses,
        goals_for=row.goals_for,
        goals_against=row.goals_against,
        goal_difference=row.goal_difference,
        clean_sheets=row.clean_sheets,
        win_percentage=row.win_percentage,
        form=list(row.form or []),
        points=row.points,
        team_name=row.team_name,
        league_id=row.league_id,
        season=row.season,
        position=row.position,
        avg_possession=row.avg_possession,
    )


def _standing(row: models.LeagueStanding) -> StandingsRow:
    return StandingsRow(
        team_id=row.team_id,
        team_name=row.team_name,
        league_id=row.league_id,
        position=row.position,
        played=row.played,
        won=row.won,
        drawn=row.drawn,
        lost=row.lost,
        goals_for=row.goals_for,
        goals_against=row.goals_against,
        points=row.points,
    )


def _league(row: models.League) -> League:
    return League(
        id=row.id,
        name=row.name,
        season=row.season,
        type=row.league_type,
        division=row.division,
        short_name=row.short_name,
        age_group=row.age_group,
        is_active=row.is_active,
    )


def _scorer(row: models.TopScorer) -> TopScorer:
    return TopScorer(
        player_id=row.player_id,
        player_name=row.player_name,
        team_id=row.team_id,
        league_id=row.league_id,
        goals=row.goals,
        assists=row.assists,
        games_played=row.games_played,
        team_name=row.team_name,
        team_color=row.team_color,
        season=row.season,
    )


class SqlRecordStore(RecordStore):
    """
    RecordStore over an async SQLAlchemy session factory.

    Connection-level failures (OperationalError, InterfaceError, other
    DBAPIError) surface as SourceUnavailable; "not found" is None or [].
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str):
        try:
            async with self.session_factory() as session:
                yield session
        except (OperationalError, InterfaceError, DBAPIError) as e:
            logger.error(f"[STORE] {operation} failed: {e}")
            raise SourceUnavailable(operation, str(e)) from e

    async def _all(self, operation: str, stmt) -> list:
        async with self._session(operation) as session:
            session: AsyncSession
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _first(self, operation: str, stmt):
        async with self._session(operation) as session:
            result = await session.execute(stmt.limit(1))
            return result.scalars().first()

    async def fetch_teams(
        self,
        team_type: Optional[str] = None,
        division: Optional[str] = None,
    ) -> list[Team]:
        stmt = select(models.Team)
        if team_type is not None:
            stmt = stmt.where(models.Team.team_type == team_type)
        if division is not None:
            stmt = stmt.where(models.Team.division == division)
        rows = await self._all("fetch_teams", stmt.order_by(models.Team.name))
        return [_team(r) for r in rows]

    async def fetch_team_by_id(self, team_id: str) -> Optional[Team]:
        row = await self._first(
            "fetch_team_by_id",
            select(models.Team).where(models.Team.id == team_id),
        )
        return _team(row) if row else None

    async def fetch_team_players(self, team_id: str) -> list[Player]:
        rows = await self._all(
            "fetch_team_players",
            select(models.Player)
            .where(models.Player.team_id == team_id)
            .order_by(models.Player.number),
        )
        return [_player(r) for r in rows]

    async def fetch_player_by_id(self, player_id: str) -> Optional[Player]:
        row = await self._first(
            "fetch_player_by_id",
            select(models.Player).where(models.Player.id == player_id),
        )
        return _player(row) if row else None

    async def fetch_team_fixtures(self, team_id: str) -> list[Fixture]:
        rows = await self._all(
            "fetch_team_fixtures",
            select(models.Fixture).where(
                or_(
                    models.Fixture.home_team_id == team_id,
                    models.Fixture.away_team_id == team_id,
                )
            ),
        )
        return [_fixture(r) for r in rows]

    async def fetch_aggregated_stats(
        self,
        team_id: str,
        league_id: Optional[str] = None,
    ) -> Optional[TeamSeasonStats]:
        stmt = select(models.TeamStats).where(models.TeamStats.team_id == team_id)
        if league_id is not None:
            stmt = stmt.where(models.TeamStats.league_id == league_id)
        row = await self._first(
            "fetch_aggregated_stats",
            stmt.order_by(models.TeamStats.last_updated.desc()),
        )
        return _stats(row) if row else None

    async def fetch_league_stats(self, league_id: str) -> list[TeamSeasonStats]:
        rows = await self._all(
            "fetch_league_stats",
            select(models.TeamStats).where(models.TeamStats.league_id == league_id),
        )
        return [_stats(r) for r in rows]

    async def fetch_standings_fallback(self, league_id: str) -> list[StandingsRow]:
        rows = await self._all(
            "fetch_standings_fallback",
            select(models.LeagueStanding)
            .where(models.LeagueStanding.league_id == league_id)
            .order_by(models.LeagueStanding.position),
        )
        return [_standing(r) for r in rows]

    async def fetch_league_by_id(self, league_id: str) -> Optional[League]:
        row = await self._first(
            "fetch_league_by_id",
            select(models.League).where(models.League.id == league_id),
        )
        return _league(row) if row else None

    async def fetch_top_scorers(self, league_id: str) -> list[TopScorer]:
        rows = await self._all(
            "fetch_top_scorers",
            select(models.TopScorer).where(models.TopScorer.league_id == league_id),
        )
        return [_scorer(r) for r in rows]
