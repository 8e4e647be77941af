"""Tests for TeamStatsService over the in-memory record store."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import REGISTRY

from cifastats.config import Settings
from cifastats.stats.rankings import SOURCE_AGGREGATES, SOURCE_STANDINGS, UnknownStatistic
from cifastats.stats.service import TeamStatsService, team_key, team_stats_key
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
from cifastats.store.memory import InMemoryRecordStore

NOW = datetime.now(timezone.utc)
LEAGUE = "premier"


def make_store():
    teams = [
        Team(id="elite", name="Elite SC", division="Premier", type="club", color_primary="#003399", league_id=LEAGUE),
        Team(id="bodden", name="Bodden Town FC", division="Premier", type="club", color_primary="#ffcc00", league_id=LEAGUE),
        Team(id="roma", name="Roma United", division="Premier", type="club", league_id=LEAGUE),
        Team(id="cayman", name="Cayman Islands", division="CONCACAF", type="national"),
    ]
    players = [
        Player(id="p2", team_id="elite", name="Mark Ebanks", position="Defender", number=4),
        Player(id="p1", team_id="elite", name="Jordan Bodden", position="Goalkeeper", number=1),
        Player(id="p3", team_id="bodden", name="Wesley Robinson", position="Forward", number=9),
    ]
    fixtures = [
        Fixture(id="f1", home_team_id="elite", away_team_id="bodden", date=NOW - timedelta(days=21),
                status="completed", home_score=2, away_score=1, league_id=LEAGUE),
        Fixture(id="f2", home_team_id="roma", away_team_id="elite", date=NOW - timedelta(days=14),
                status="completed", home_score=0, away_score=0, league_id=LEAGUE),
        Fixture(id="f3", home_team_id="elite", away_team_id="roma", date=NOW - timedelta(days=7),
                status="completed", home_score=1, away_score=3, league_id="cup"),
        Fixture(id="f4", home_team_id="bodden", away_team_id="elite", date=NOW + timedelta(days=7),
                status="scheduled", league_id=LEAGUE),
    ]
    standings = [
        StandingsRow(team_id="elite", team_name="Elite SC", league_id=LEAGUE, position=1, goals_for=30, points=20),
        StandingsRow(team_id="bodden", team_name="Bodden Town FC", league_id=LEAGUE, position=2, goals_for=25, points=18),
        StandingsRow(team_id="ghost", team_name="Unlisted FC", league_id=LEAGUE, position=3, goals_for=40, points=10),
    ]
    leagues = [
        League(id=LEAGUE, name="CIFA Men's Premier League", season="2024-25", type="mens", division="Premier"),
    ]
    scorers = [
        TopScorer(player_id="p3", player_name="Wesley Robinson", team_id="bodden", league_id=LEAGUE, goals=9, assists=1),
        TopScorer(player_id="p2", player_name="Mark Ebanks", team_id="elite", league_id=LEAGUE, goals=9, assists=3),
        TopScorer(player_id="p7", player_name="Dwayne Wright", team_id="roma", league_id=LEAGUE, goals=4),
        TopScorer(player_id="p8", player_name="Cup Only", team_id="roma", league_id="cup", goals=20),
    ]
    return InMemoryRecordStore(
        teams=teams,
        players=players,
        fixtures=fixtures,
        standings=standings,
        leagues=leagues,
        scorers=scorers,
    )


@pytest.fixture
def store():
    return make_store()


@pytest.fixture
def settings():
    return Settings(RANKING_DEFAULT_LIMIT=5, RANKING_MAX_LIMIT=50, STATS_SKIP_UNSCORED_FIXTURES=False)


@pytest.fixture
def service(store, settings):
    return TeamStatsService(store, settings=settings)


class TestCachedReads:
    @pytest.mark.asyncio
    async def test_concurrent_reads_hit_store_once(self, service, store):
        results = await asyncio.gather(*[service.get_team("elite") for _ in range(5)])

        assert store.calls["fetch_team_by_id"] == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_missing_team_is_none_and_cached(self, service, store):
        assert await service.get_team("nobody") is None
        assert await service.get_team("nobody") is None
        assert store.calls["fetch_team_by_id"] == 1

    @pytest.mark.asyncio
    async def test_team_lists_keyed_by_filters(self, service, store):
        clubs = await service.get_teams("club")
        national = await service.get_national_teams()
        everyone = await service.get_teams()

        assert [t.name for t in clubs] == ["Bodden Town FC", "Elite SC", "Roma United"]
        assert [t.id for t in national] == ["cayman"]
        assert len(everyone) == 4
        assert store.calls["fetch_teams"] == 3

    @pytest.mark.asyncio
    async def test_players_ordered_by_number(self, service):
        players = await service.get_team_players("elite")
        assert [p.number for p in players] == [1, 4]
        assert (await service.get_player("p3")).name == "Wesley Robinson"

    @pytest.mark.asyncio
    async def test_force_refresh_refetches(self, service, store):
        await service.get_team("elite")
        store.teams["elite"].name = "Elite Sports Club"
        assert (await service.get_team("elite")).name == "Elite Sports Club"  # same object, mutated

        store.teams["elite"] = Team(id="elite", name="Renamed", division="Premier", type="club")
        assert (await service.get_team("elite")).name == "Elite Sports Club"
        assert (await service.get_team("elite", force_refresh=True)).name == "Renamed"
        assert store.calls["fetch_team_by_id"] == 2

    @pytest.mark.asyncio
    async def test_source_unavailable_propagates_and_is_not_cached(self, service, store):
        store.available = False
        with pytest.raises(SourceUnavailable) as exc_info:
            await service.get_team("elite")
        assert exc_info.value.operation == "fetch_team_by_id"
        assert team_key("elite") not in service.cache

        store.available = True
        assert (await service.get_team("elite")).id == "elite"


class TestTeamStats:
    @pytest.mark.asyncio
    async def test_stored_aggregate_preferred(self, service, store):
        store.stats.append(TeamSeasonStats(team_id="elite", league_id=LEAGUE, matches=12, wins=9, points=28))

        stats = await service.get_team_stats("elite", LEAGUE)

        assert stats.matches == 12
        assert store.calls["fetch_team_fixtures"] == 0

    @pytest.mark.asyncio
    async def test_computed_from_fixtures_when_no_aggregate(self, service):
        stats = await service.get_team_stats("elite")

        assert stats.matches == 3
        assert (stats.wins, stats.draws, stats.losses) == (1, 1, 1)
        assert stats.form == ["L", "D", "W"]
        assert stats.team_name == "Elite SC"

    @pytest.mark.asyncio
    async def test_league_filter(self, service):
        stats = await service.get_team_stats("elite", LEAGUE)

        assert stats.matches == 2
        assert stats.league_id == LEAGUE
        assert stats.form == ["D", "W"]

    @pytest.mark.asyncio
    async def test_no_data_is_none(self, service):
        assert await service.get_team_stats("cayman") is None

    @pytest.mark.asyncio
    async def test_aggregate_ignores_stored_record(self, service, store):
        store.stats.append(TeamSeasonStats(team_id="elite", matches=99))
        stats = await service.aggregate("elite")
        assert stats.matches == 3


class TestCompare:
    @pytest.mark.asyncio
    async def test_compare_with_head_to_head(self, service):
        result = await service.compare("elite", "bodden")

        assert result.team_a.team_id == "elite"
        assert result.head_to_head.matches == 1
        assert result.head_to_head.team_a_wins == 1
        points = next(m for m in result.metrics if m.label == "Points")
        assert points.winner == "A"

    @pytest.mark.asyncio
    async def test_insufficient_data_is_none(self, service):
        assert await service.compare("elite", "cayman") is None

    @pytest.mark.asyncio
    async def test_refresh_reads_each_teams_fixtures_once(self, service, store):
        result = await service.compare("elite", "bodden", force_refresh=True)

        assert result.head_to_head.matches == 1
        assert store.calls["fetch_team_fixtures"] == 2
        assert store.calls["fetch_aggregated_stats"] == 2


class TestRank:
    @pytest.mark.asyncio
    async def test_fallback_to_standings(self, service, store):
        result = await service.rank_result(LEAGUE, "goals_for", limit=3)

        assert result.source == SOURCE_STANDINGS
        assert [e.team_id for e in result.entries] == ["ghost", "elite", "bodden"]
        assert [e.color_primary for e in result.entries] == [None, "#003399", "#ffcc00"]
        assert store.calls["fetch_standings_fallback"] == 1

    @pytest.mark.asyncio
    async def test_aggregates_skip_standings(self, service, store):
        store.stats.extend([
            TeamSeasonStats(team_id="elite", team_name="Elite SC", league_id=LEAGUE, clean_sheets=4),
            TeamSeasonStats(team_id="roma", team_name="Roma United", league_id=LEAGUE, clean_sheets=6),
        ])

        result = await service.rank_result(LEAGUE, "cleanSheets")

        assert result.source == SOURCE_AGGREGATES
        assert [e.team_id for e in result.entries] == ["roma", "elite"]
        assert store.calls["fetch_standings_fallback"] == 0

    @pytest.mark.asyncio
    async def test_limit_clamped(self, store):
        service = TeamStatsService(store, settings=Settings(RANKING_DEFAULT_LIMIT=1, RANKING_MAX_LIMIT=2))

        assert len(await service.rank(LEAGUE, "points")) == 1
        assert len(await service.rank(LEAGUE, "points", limit=10)) == 2

    @pytest.mark.asyncio
    async def test_unknown_statistic_raises_before_fetch(self, service, store):
        with pytest.raises(UnknownStatistic):
            await service.rank(LEAGUE, "corners")
        assert sum(store.calls.values()) == 0


class TestOverview:
    @pytest.mark.asyncio
    async def test_overview(self, service):
        overview = await service.get_team_overview("elite")

        assert overview.team.name == "Elite SC"
        assert [p.id for p in overview.players] == ["p1", "p2"]
        assert [f.id for f in overview.fixtures.upcoming] == ["f4"]
        assert [f.id for f in overview.fixtures.past] == ["f3", "f2", "f1"]
        # Stats scoped to the team's league
        assert overview.stats.matches == 2

    @pytest.mark.asyncio
    async def test_league_and_table_row(self, service):
        overview = await service.get_team_overview("elite")

        assert overview.league.name == "CIFA Men's Premier League"
        assert overview.standing.position == 1
        assert overview.standing.points == 20

    @pytest.mark.asyncio
    async def test_team_outside_a_league(self, service, store):
        overview = await service.get_team_overview("cayman")

        assert overview.league is None
        assert overview.standing is None
        assert store.calls["fetch_league_by_id"] == 0

    @pytest.mark.asyncio
    async def test_refresh_reads_fixtures_once(self, service, store):
        await service.get_team_overview("elite")
        await service.get_team_overview("elite", force_refresh=True)

        assert store.calls["fetch_team_fixtures"] == 2
        assert store.calls["fetch_team_by_id"] == 2

    @pytest.mark.asyncio
    async def test_unreadable_date_counted_once(self, service, store):
        store.fixtures["f5"] = Fixture(
            id="f5", home_team_id="elite", away_team_id="roma", date="31/02/2025",
            status="completed", home_score=1, away_score=0, league_id=LEAGUE,
        )
        before = REGISTRY.get_sample_value("dq_malformed_dates_total")

        overview = await service.get_team_overview("elite")

        assert overview.fixtures.malformed_dates == ["f5"]
        assert overview.stats.matches == 3
        assert REGISTRY.get_sample_value("dq_malformed_dates_total") - before == 1

    @pytest.mark.asyncio
    async def test_unknown_team(self, service):
        assert await service.get_team_overview("nobody") is None


class TestLeagues:
    @pytest.mark.asyncio
    async def test_top_scorers(self, service, store):
        scorers = await service.get_top_scorers(LEAGUE)
        await service.get_top_scorers(LEAGUE)

        assert [(s.position, s.player_id) for s in scorers] == [(1, "p2"), (2, "p3"), (3, "p7")]
        assert store.calls["fetch_top_scorers"] == 1

    @pytest.mark.asyncio
    async def test_top_scorers_limit(self, store):
        service = TeamStatsService(store, settings=Settings(TOP_SCORERS_DEFAULT_LIMIT=2, RANKING_MAX_LIMIT=50))

        assert len(await service.get_top_scorers(LEAGUE)) == 2
        assert [s.player_id for s in await service.get_top_scorers(LEAGUE, limit=1)] == ["p2"]

    @pytest.mark.asyncio
    async def test_position_count(self, service, store):
        bottom = await service.get_position_count(LEAGUE, "bottom", 2)
        top = await service.get_position_count(LEAGUE, "top")

        assert [r.team_id for r in bottom] == ["ghost", "bodden"]
        assert [r.team_id for r in top] == ["elite", "bodden", "ghost"]
        assert store.calls["fetch_standings_fallback"] == 1

    @pytest.mark.asyncio
    async def test_position_count_bad_end_raises_before_fetch(self, service, store):
        with pytest.raises(ValueError):
            await service.get_position_count(LEAGUE, "middle", 3)
        assert sum(store.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_league(self, service):
        assert (await service.get_league(LEAGUE)).type == "mens"
        assert await service.get_league("cup") is None


class TestInvalidation:
    @pytest.mark.asyncio
    async def test_invalidate_team_refetches_only_that_team(self, service, store):
        await service.get_team_stats("elite", LEAGUE)
        await service.get_team_stats("elite")
        await service.get_team("bodden")

        service.invalidate_team("elite")

        assert team_stats_key("elite", LEAGUE) not in service.cache
        assert team_stats_key("elite") not in service.cache
        assert team_key("bodden") in service.cache

        store.stats.append(TeamSeasonStats(team_id="elite", league_id=LEAGUE, matches=40))
        assert (await service.get_team_stats("elite", LEAGUE)).matches == 40

    @pytest.mark.asyncio
    async def test_invalidate_all(self, service, store):
        await service.get_team("elite")
        service.invalidate_all()
        assert len(service.cache) == 0

        await service.get_team("elite")
        assert store.calls["fetch_team_by_id"] == 2
