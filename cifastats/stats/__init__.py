"""
Team statistics module.

Fixture classification, season aggregation, comparison and rankings, plus
the cached async service that ties them to a record store.
"""

from cifastats.stats.aggregator import aggregate_team_stats, win_percentage
from cifastats.stats.comparison import (
    ComparisonResult,
    HeadToHead,
    MetricComparison,
    compare_team_stats,
    compute_head_to_head,
    metric_winner,
)
from cifastats.stats.fixtures import ClassifiedFixtures, classify_fixtures
from cifastats.stats.rankings import (
    RankingEntry,
    RankingResult,
    UnknownStatistic,
    rank_teams,
    rank_top_scorers,
    select_standings_positions,
)
from cifastats.stats.service import TeamOverview, TeamStatsService

__all__ = [
    "aggregate_team_stats",
    "win_percentage",
    "ComparisonResult",
    "HeadToHead",
    "MetricComparison",
    "compare_team_stats",
    "compute_head_to_head",
    "metric_winner",
    "ClassifiedFixtures",
    "classify_fixtures",
    "RankingEntry",
    "RankingResult",
    "UnknownStatistic",
    "rank_teams",
    "rank_top_scorers",
    "select_standings_positions",
    "TeamOverview",
    "TeamStatsService",
]
