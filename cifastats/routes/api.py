"""Public API endpoints: teams, players, fixtures, stats, comparison, leagues.

Read-only JSON over TeamStatsService. The service instance lives on
app.state.stats_service (set by the lifespan handler, or directly in tests).

Error mapping:
- absent team / player / insufficient data -> 404
- unknown ranking statistic or table end -> 400
- SourceUnavailable -> 503 (see register_exception_handlers)
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from cifastats.stats.comparison import ComparisonResult
from cifastats.stats.fixtures import ClassifiedFixtures
from cifastats.stats.rankings import RankingResult, UnknownStatistic
from cifastats.stats.service import TeamOverview, TeamStatsService
from cifastats.store.base import (
    Fixture,
    League,
    Player,
    SourceUnavailable,
    StandingsRow,
    Team,
    TeamSeasonStats,
    TopScorer,
)
from cifastats.telemetry import get_metrics_text
from cifastats.utils.dates import parse_date

router = APIRouter(tags=["api"])

logger = logging.getLogger(__name__)


def get_stats_service(request: Request) -> TeamStatsService:
    return request.app.state.stats_service


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class HealthResponse(BaseModel):
    status: str
    cache_entries: int
    cache_pending: int


class TeamResponse(BaseModel):
    id: str
    name: str
    short_name: Optional[str] = None
    division: str
    type: str
    color_primary: Optional[str] = None
    league_id: Optional[str] = None


class PlayerResponse(BaseModel):
    id: str
    team_id: str
    name: str
    position: str
    number: int


class FixtureResponse(BaseModel):
    id: str
    home_team_id: str
    away_team_id: str
    date: Optional[str] = None  # ISO-8601 UTC, None when unparseable
    status: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    venue: Optional[str] = None
    competition: Optional[str] = None
    league_id: Optional[str] = None


class ClassifiedFixturesResponse(BaseModel):
    live: list[FixtureResponse]
    upcoming: list[FixtureResponse]
    past: list[FixtureResponse]
    malformed_dates: list[str]


class TeamStatsResponse(BaseModel):
    team_id: str
    team_name: Optional[str] = None
    league_id: Optional[str] = None
    season: Optional[str] = None
    position: Optional[int] = None
    matches: int
    wins: int
    draws: int
    losses: int
    goals_for: int
    goals_against: int
    goal_difference: int
    clean_sheets: int
    win_percentage: int
    points: int
    form: list[str]
    avg_possession: Optional[float] = None


class HeadToHeadResponse(BaseModel):
    matches: int
    team_a_wins: int
    team_b_wins: int
    draws: int
    team_a_goals: int
    team_b_goals: int


class MetricResponse(BaseModel):
    label: str
    value_a: Any = None
    value_b: Any = None
    higher_is_better: str
    winner: Optional[str] = None


class ComparisonResponse(BaseModel):
    team_a: TeamStatsResponse
    team_b: TeamStatsResponse
    head_to_head: HeadToHeadResponse
    metrics: list[MetricResponse]


class RankingEntryResponse(BaseModel):
    rank: int
    team_id: str
    team_name: str
    value: float
    color_primary: Optional[str] = None


class RankingResponse(BaseModel):
    league_id: str
    statistic: str
    source: str
    entries: list[RankingEntryResponse]


class LeagueResponse(BaseModel):
    id: str
    name: str
    short_name: Optional[str] = None
    season: Optional[str] = None
    type: Optional[str] = None
    division: Optional[str] = None
    age_group: Optional[str] = None
    is_active: bool


class StandingResponse(BaseModel):
    team_id: str
    team_name: str
    league_id: str
    position: Optional[int] = None
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    points: int


class TopScorerResponse(BaseModel):
    position: int
    player_id: str
    player_name: str
    team_id: str
    team_name: Optional[str] = None
    team_color: Optional[str] = None
    goals: int
    assists: int
    games_played: int


class TeamOverviewResponse(BaseModel):
    team: TeamResponse
    players: list[PlayerResponse]
    fixtures: ClassifiedFixturesResponse
    next_fixture: Optional[FixtureResponse] = None
    last_result: Optional[FixtureResponse] = None
    stats: Optional[TeamStatsResponse] = None
    league: Optional[LeagueResponse] = None
    standing: Optional[StandingResponse] = None


# =============================================================================
# SERIALIZERS
# =============================================================================


def _team(team: Team) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        short_name=team.short_name,
        division=team.division,
        type=team.type,
        color_primary=team.color_primary,
        league_id=team.league_id,
    )


def _player(player: Player) -> PlayerResponse:
    return PlayerResponse(
        id=player.id,
        team_id=player.team_id,
        name=player.name,
        position=player.position,
        number=player.number,
    )


def _fixture(fixture: Fixture) -> FixtureResponse:
    parsed = parse_date(fixture.date)
    return FixtureResponse(
        id=fixture.id,
        home_team_id=fixture.home_team_id,
        away_team_id=fixture.away_team_id,
        date=parsed.isoformat() if parsed else None,
        status=fixture.status,
        home_score=fixture.home_score,
        away_score=fixture.away_score,
        venue=fixture.venue,
        competition=fixture.competition,
        league_id=fixture.league_id,
    )


def _classified(classified: ClassifiedFixtures) -> ClassifiedFixturesResponse:
    return ClassifiedFixturesResponse(
        live=[_fixture(f) for f in classified.live],
        upcoming=[_fixture(f) for f in classified.upcoming],
        past=[_fixture(f) for f in classified.past],
        malformed_dates=classified.malformed_dates,
    )


def _stats(stats: TeamSeasonStats) -> TeamStatsResponse:
    return TeamStatsResponse(
        team_id=stats.team_id,
        team_name=stats.team_name,
        league_id=stats.league_id,
        season=stats.season,
        position=stats.position,
        matches=stats.matches,
        wins=stats.wins,
        draws=stats.draws,
        losses=stats.losses,
        goals_for=stats.goals_for,
        goals_against=stats.goals_against,
        goal_difference=stats.goal_difference,
        clean_sheets=stats.clean_sheets,
        win_percentage=stats.win_percentage,
        points=stats.points,
        form=list(stats.form),
        avg_possession=stats.avg_possession,
    )


def _comparison(result: ComparisonResult) -> ComparisonResponse:
    h2h = result.head_to_head
    return ComparisonResponse(
        team_a=_stats(result.team_a),
        team_b=_stats(result.team_b),
        head_to_head=HeadToHeadResponse(
            matches=h2h.matches,
            team_a_wins=h2h.team_a_wins,
            team_b_wins=h2h.team_b_wins,
            draws=h2h.draws,
            team_a_goals=h2h.team_a_goals,
            team_b_goals=h2h.team_b_goals,
        ),
        metrics=[
            MetricResponse(
                label=m.label,
                value_a=m.value_a,
                value_b=m.value_b,
                higher_is_better=m.higher_is_better,
                winner=m.winner,
            )
            for m in result.metrics
        ],
    )


def _ranking(league_id: str, result: RankingResult) -> RankingResponse:
    return RankingResponse(
        league_id=league_id,
        statistic=result.statistic,
        source=result.source,
        entries=[
            RankingEntryResponse(
                rank=i,
                team_id=e.team_id,
                team_name=e.team_name,
                value=e.value,
                color_primary=e.color_primary,
            )
            for i, e in enumerate(result.entries, start=1)
        ],
    )


def _league(league: League) -> LeagueResponse:
    return LeagueResponse(
        id=league.id,
        name=league.name,
        short_name=league.short_name,
        season=league.season,
        type=league.type,
        division=league.division,
        age_group=league.age_group,
        is_active=league.is_active,
    )


def _standing(row: StandingsRow) -> StandingResponse:
    return StandingResponse(
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


def _scorer(scorer: TopScorer) -> TopScorerResponse:
    return TopScorerResponse(
        position=scorer.position,
        player_id=scorer.player_id,
        player_name=scorer.player_name,
        team_id=scorer.team_id,
        team_name=scorer.team_name,
        team_color=scorer.team_color,
        goals=scorer.goals,
        assists=scorer.assists,
        games_played=scorer.games_played,
    )


def _overview(overview: TeamOverview) -> TeamOverviewResponse:
    fixtures = overview.fixtures
    return TeamOverviewResponse(
        team=_team(overview.team),
        players=[_player(p) for p in overview.players],
        fixtures=_classified(fixtures),
        next_fixture=_fixture(fixtures.next_fixture) if fixtures.next_fixture else None,
        last_result=_fixture(fixtures.last_result) if fixtures.last_result else None,
        stats=_stats(overview.stats) if overview.stats else None,
        league=_league(overview.league) if overview.league else None,
        standing=_standing(overview.standing) if overview.standing else None,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(service: TeamStatsService = Depends(get_stats_service)):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        cache_entries=len(service.cache),
        cache_pending=service.cache.pending_count,
    )


@router.get("/teams", response_model=list[TeamResponse])
async def list_teams(
    team_type: Optional[str] = Query(None, alias="type", description="'club' or 'national'"),
    division: Optional[str] = None,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    """List teams ordered by name."""
    teams = await service.get_teams(team_type, division, force_refresh=refresh)
    return [_team(t) for t in teams]


@router.get("/teams/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: str,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    team = await service.get_team(team_id, force_refresh=refresh)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return _team(team)


@router.get("/teams/{team_id}/players", response_model=list[PlayerResponse])
async def get_team_players(
    team_id: str,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    """Squad ordered by shirt number."""
    players = await service.get_team_players(team_id, force_refresh=refresh)
    return [_player(p) for p in players]


@router.get("/players/{player_id}", response_model=PlayerResponse)
async def get_player(
    player_id: str,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    player = await service.get_player(player_id, force_refresh=refresh)
    if player is None:
        raise HTTPException(status_code=404, detail="Player not found")
    return _player(player)


@router.get("/teams/{team_id}/fixtures", response_model=ClassifiedFixturesResponse)
async def get_team_fixtures(
    team_id: str,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    """Team fixtures split into live, upcoming (soonest first) and past (latest first)."""
    classified = await service.classify(team_id, force_refresh=refresh)
    return _classified(classified)


@router.get("/teams/{team_id}/stats", response_model=TeamStatsResponse)
async def get_team_stats(
    team_id: str,
    league_id: Optional[str] = None,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    """Stored season record, or one computed from completed fixtures."""
    stats = await service.get_team_stats(team_id, league_id, force_refresh=refresh)
    if stats is None:
        raise HTTPException(status_code=404, detail="No statistics available for team")
    return _stats(stats)


@router.get("/teams/{team_id}/overview", response_model=TeamOverviewResponse)
async def get_team_overview(
    team_id: str,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    overview = await service.get_team_overview(team_id, force_refresh=refresh)
    if overview is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return _overview(overview)


@router.get("/compare", response_model=ComparisonResponse)
async def compare_teams(
    team_a: str,
    team_b: str,
    league_id: Optional[str] = None,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    """Metric-by-metric comparison plus head-to-head record."""
    result = await service.compare(team_a, team_b, league_id, force_refresh=refresh)
    if result is None:
        raise HTTPException(
            status_code=404,
            detail="Insufficient data to compare teams",
        )
    return _comparison(result)


@router.get("/leagues/{league_id}/rankings/{statistic}", response_model=RankingResponse)
async def get_rankings(
    league_id: str,
    statistic: str,
    limit: Optional[int] = Query(None, ge=0),
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    """Top teams of a league by statistic (aggregated stats, else standings)."""
    try:
        result = await service.rank_result(league_id, statistic, limit, force_refresh=refresh)
    except UnknownStatistic as e:
        raise HTTPException(
            status_code=400,
            detail={
                "message": f"Statistic '{e.requested}' is not rankable",
                "available": e.available,
            },
        )
    return _ranking(league_id, result)


@router.get("/leagues/{league_id}", response_model=LeagueResponse)
async def get_league(
    league_id: str,
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    league = await service.get_league(league_id, force_refresh=refresh)
    if league is None:
        raise HTTPException(status_code=404, detail="League not found")
    return _league(league)


@router.get("/leagues/{league_id}/top-scorers", response_model=list[TopScorerResponse])
async def get_top_scorers(
    league_id: str,
    limit: Optional[int] = Query(None, ge=0),
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    """Players by goals, then assists."""
    scorers = await service.get_top_scorers(league_id, limit, force_refresh=refresh)
    return [_scorer(s) for s in scorers]


@router.get("/leagues/{league_id}/standings/{end}", response_model=list[StandingResponse])
async def get_standings_positions(
    league_id: str,
    end: str,
    count: Optional[int] = Query(None, ge=0),
    refresh: bool = False,
    service: TeamStatsService = Depends(get_stats_service),
):
    """Leaders ("top") or the last places ("bottom") of the league table."""
    try:
        rows = await service.get_position_count(league_id, end, count, force_refresh=refresh)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [_standing(r) for r in rows]


@router.post("/cache/invalidate")
async def invalidate_cache(
    team_id: Optional[str] = None,
    service: TeamStatsService = Depends(get_stats_service),
):
    """Drop cached reads for one team, or everything when team_id is omitted."""
    if team_id:
        service.invalidate_team(team_id)
        return {"status": "ok", "scope": "team", "team_id": team_id}
    service.invalidate_all()
    return {"status": "ok", "scope": "all"}


@router.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint (cache and data quality counters)."""
    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================


async def source_unavailable_handler(request: Request, exc: SourceUnavailable):
    logger.error(f"[API] {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Record store unavailable", "operation": exc.operation},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SourceUnavailable, source_unavailable_handler)
