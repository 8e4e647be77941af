"""
Head-to-head team comparison.

Builds a metric-by-metric comparison of two season records plus the
head-to-head record between the teams. The comparison is symmetric:
swapping the teams swaps every "A"/"B" winner and both head-to-head sides.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from cifastats.stats.aggregator import team_perspective
from cifastats.store.base import STATUS_COMPLETED, Fixture, TeamSeasonStats

HIGHER_BETTER = "better"
HIGHER_WORSE = "worse"

WINNER_A = "A"
WINNER_B = "B"
WINNER_TIE = "tie"

# (label, TeamSeasonStats attribute, higher_is_better), in display order
COMPARISON_METRICS = [
    ("League Position", "position", HIGHER_WORSE),
    ("Points", "points", HIGHER_BETTER),
    ("Matches Played", "matches", HIGHER_BETTER),
    ("Wins", "wins", HIGHER_BETTER),
    ("Draws", "draws", HIGHER_BETTER),
    ("Losses", "losses", HIGHER_WORSE),
    ("Goals Scored", "goals_for", HIGHER_BETTER),
    ("Goals Conceded", "goals_against", HIGHER_WORSE),
    ("Goal Difference", "goal_difference", HIGHER_BETTER),
    ("Clean Sheets", "clean_sheets", HIGHER_BETTER),
    ("Win %", "win_percentage", HIGHER_BETTER),
]


@dataclass
class HeadToHead:
    """Completed meetings between A and B, from A's perspective."""

    matches: int = 0
    team_a_wins: int = 0
    team_b_wins: int = 0
    draws: int = 0
    team_a_goals: int = 0
    team_b_goals: int = 0


@dataclass
class MetricComparison:
    label: str
    value_a: Any
    value_b: Any
    higher_is_better: str
    winner: Optional[str]  # "A", "B", "tie" or None when not comparable


@dataclass
class ComparisonResult:
    team_a: TeamSeasonStats
    team_b: TeamSeasonStats
    head_to_head: HeadToHead
    metrics: list[MetricComparison] = field(default_factory=list)


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def metric_winner(value_a: Any, value_b: Any, higher_is_better: str = HIGHER_BETTER) -> Optional[str]:
    """
    Decide which side wins a metric.

    Args:
        value_a: Team A's value (number or numeric string).
        value_b: Team B's value.
        higher_is_better: "better" if a higher value wins, "worse" if lower wins.

    Returns:
        "A", "B", "tie", or None when either value is absent or non-numeric.
    """
    num_a = _as_number(value_a)
    num_b = _as_number(value_b)
    if num_a is None or num_b is None:
        return None
    if num_a == num_b:
        return WINNER_TIE
    if higher_is_better == HIGHER_BETTER:
        return WINNER_A if num_a > num_b else WINNER_B
    return WINNER_A if num_a < num_b else WINNER_B


def compute_head_to_head(team_a_id: str, team_b_id: str, fixtures: Iterable[Fixture]) -> HeadToHead:
    """Tally completed fixtures played between exactly team A and team B."""
    h2h = HeadToHead()
    pair = {team_a_id, team_b_id}
    seen: set[str] = set()

    for fixture in fixtures:
        if fixture.status != STATUS_COMPLETED:
            continue
        if {fixture.home_team_id, fixture.away_team_id} != pair or team_a_id == team_b_id:
            continue
        # Both teams' fixture lists may be merged by the caller
        if fixture.id in seen:
            continue
        seen.add(fixture.id)

        a_score, b_score = team_perspective(fixture, team_a_id)
        h2h.matches += 1
        h2h.team_a_goals += a_score
        h2h.team_b_goals += b_score
        if a_score > b_score:
            h2h.team_a_wins += 1
        elif a_score < b_score:
            h2h.team_b_wins += 1
        else:
            h2h.draws += 1

    return h2h


def compare_team_stats(
    stats_a: TeamSeasonStats,
    stats_b: TeamSeasonStats,
    fixtures: Iterable[Fixture] = (),
) -> ComparisonResult:
    """
    Compare two season records metric by metric.

    Args:
        stats_a: Team A's season record.
        stats_b: Team B's season record.
        fixtures: Fixture history containing their meetings (other fixtures
            are ignored).

    Returns:
        ComparisonResult with head-to-head and COMPARISON_METRICS in order.
    """
    metrics = []
    for label, attr, higher in COMPARISON_METRICS:
        value_a = getattr(stats_a, attr, None)
        value_b = getattr(stats_b, attr, None)
        metrics.append(MetricComparison(
            label=label,
            value_a=value_a,
            value_b=value_b,
            higher_is_better=higher,
            winner=metric_winner(value_a, value_b, higher),
        ))

    return ComparisonResult(
        team_a=stats_a,
        team_b=stats_b,
        head_to_head=compute_head_to_head(stats_a.team_id, stats_b.team_id, fixtures),
        metrics=metrics,
    )
