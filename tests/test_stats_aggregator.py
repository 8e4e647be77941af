"""Tests for season aggregation from completed fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import REGISTRY

from cifastats.stats.aggregator import aggregate_team_stats, win_percentage
from cifastats.store.base import Fixture

BASE = datetime(2025, 1, 10, 19, 0, tzinfo=timezone.utc)
TEAM = "elite"


def result(fixture_id, days, home, away, home_score, away_score, status="completed"):
    return Fixture(
        id=fixture_id,
        home_team_id=home,
        away_team_id=away,
        date=BASE + timedelta(days=days),
        status=status,
        home_score=home_score,
        away_score=away_score,
    )


class TestAggregationScenario:
    """2-1 home win, 0-0 away draw, 1-3 home loss, oldest to newest."""

    @pytest.fixture
    def fixtures(self):
        return [
            result("f1", 0, TEAM, "bodden", 2, 1),
            result("f2", 7, "roma", TEAM, 0, 0),
            result("f3", 14, TEAM, "scholars", 1, 3),
        ]

    def test_totals(self, fixtures):
        stats = aggregate_team_stats(TEAM, fixtures)

        assert stats.matches == 3
        assert (stats.wins, stats.draws, stats.losses) == (1, 1, 1)
        assert stats.goals_for == 3
        assert stats.goals_against == 4
        assert stats.goal_difference == -1
        assert stats.win_percentage == 33
        assert stats.points == 4

    def test_clean_sheet_counts_opponent_zero(self, fixtures):
        """The 0-0 draw is a clean sheet."""
        stats = aggregate_team_stats(TEAM, fixtures)
        assert stats.clean_sheets == 1

    def test_form_most_recent_first(self, fixtures):
        stats = aggregate_team_stats(TEAM, fixtures)
        assert stats.form == ["L", "D", "W"]

    def test_form_independent_of_input_order(self, fixtures):
        stats = aggregate_team_stats(TEAM, list(reversed(fixtures)))
        assert stats.form == ["L", "D", "W"]


class TestAggregationRules:
    def test_no_fixtures_all_zero(self):
        stats = aggregate_team_stats(TEAM, [])

        assert stats.matches == 0
        assert stats.win_percentage == 0
        assert stats.form == []
        assert stats.points == 0

    def test_only_completed_fixtures_counted(self):
        fixtures = [
            result("done", 0, TEAM, "roma", 1, 0),
            result("live", 1, TEAM, "roma", 5, 0, status="live"),
            result("soon", 2, TEAM, "roma", None, None, status="scheduled"),
            result("off", 3, TEAM, "roma", None, None, status="cancelled"),
        ]
        stats = aggregate_team_stats(TEAM, fixtures)
        assert stats.matches == 1
        assert stats.goals_for == 1

    def test_other_teams_fixtures_ignored(self):
        fixtures = [
            result("mine", 0, TEAM, "roma", 1, 0),
            result("theirs", 1, "roma", "bodden", 4, 4),
        ]
        assert aggregate_team_stats(TEAM, fixtures).matches == 1

    def test_form_capped_at_five(self):
        fixtures = [result(f"f{i}", i, TEAM, "roma", i % 3, 1) for i in range(8)]
        stats = aggregate_team_stats(TEAM, fixtures)

        assert stats.matches == 8
        assert len(stats.form) == 5
        # f7 (1-1), f6 (0-1), f5 (2-1), f4 (1-1), f3 (0-1)
        assert stats.form == ["D", "L", "W", "D", "L"]

    def test_missing_score_counts_as_zero(self):
        stats = aggregate_team_stats(TEAM, [result("f1", 0, TEAM, "roma", 2, None)])

        assert stats.matches == 1
        assert stats.wins == 1
        assert stats.goals_against == 0
        assert stats.clean_sheets == 1

    def test_skip_unscored(self):
        fixtures = [
            result("f1", 0, TEAM, "roma", 2, None),
            result("f2", 1, TEAM, "roma", 1, 1),
        ]
        stats = aggregate_team_stats(TEAM, fixtures, skip_unscored=True)

        assert stats.matches == 1
        assert stats.draws == 1

    def test_descriptive_fields_copied(self):
        stats = aggregate_team_stats(TEAM, [], team_name="Elite SC", league_id="premier")
        assert stats.team_name == "Elite SC"
        assert stats.league_id == "premier"

    def test_invariants_hold(self):
        fixtures = [
            result(f"f{i}", i, TEAM if i % 2 else "roma", "roma" if i % 2 else TEAM, i % 4, (i * 3) % 5)
            for i in range(20)
        ]
        stats = aggregate_team_stats(TEAM, fixtures)

        assert stats.matches == stats.wins + stats.draws + stats.losses
        assert stats.goal_difference == stats.goals_for - stats.goals_against
        assert 0 <= stats.win_percentage <= 100
        assert stats.clean_sheets <= stats.matches
        assert len(stats.form) == min(5, stats.matches)


class TestWinPercentage:
    @pytest.mark.parametrize("wins,matches,expected", [
        (0, 0, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 2, 50),
        (1, 8, 13),  # 12.5 rounds half up
        (3, 8, 38),  # 37.5 rounds half up
        (5, 5, 100),
    ])
    def test_rounding(self, wins, matches, expected):
        assert win_percentage(wins, matches) == expected


class TestUnreadableDates:
    def test_sorted_as_now_without_reporting(self, caplog):
        fixtures = [
            result("bad", 0, TEAM, "bodden", 0, 1),
            result("old", -3, TEAM, "roma", 2, 0),
        ]
        fixtures[0].date = "not a date"
        before = REGISTRY.get_sample_value("dq_malformed_dates_total")

        with caplog.at_level("WARNING", logger="cifastats.utils.dates"):
            stats = aggregate_team_stats(TEAM, fixtures)

        # Unreadable date folds as the most recent result
        assert stats.form == ["L", "W"]
        assert "[DATES]" not in caplog.text
        assert REGISTRY.get_sample_value("dq_malformed_dates_total") == before
