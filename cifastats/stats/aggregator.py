"""
Season statistics aggregation from raw match results.

Pure functions: no store access, no side effects. The derived record
satisfies matches == wins + draws + losses and 0 <= win_percentage <= 100.
"""

import logging
import math
from typing import Iterable, Optional

from cifastats.store.base import STATUS_COMPLETED, Fixture, TeamSeasonStats
from cifastats.utils.dates import parse_date, utc_now

logger = logging.getLogger(__name__)

FORM_LENGTH = 5
POINTS_PER_WIN = 3
POINTS_PER_DRAW = 1


def win_percentage(wins: int, matches: int) -> int:
    """Wins as an integer percentage, rounded half up. 0 when no matches."""
    if matches <= 0:
        return 0
    return int(math.floor(100 * wins / matches + 0.5))


def team_perspective(fixture: Fixture, team_id: str) -> tuple[int, int]:
    """
    Return (team_score, opponent_score) for a fixture the team played.

    A missing score counts as 0.
    """
    if fixture.home_team_id == team_id:
        return fixture.home_score or 0, fixture.away_score or 0
    return fixture.away_score or 0, fixture.home_score or 0


def result_letter(team_score: int, opponent_score: int) -> str:
    if team_score > opponent_score:
        return "W"
    if team_score == opponent_score:
        return "D"
    return "L"


def aggregate_team_stats(
    team_id: str,
    fixtures: Iterable[Fixture],
    *,
    skip_unscored: bool = False,
    team_name: Optional[str] = None,
    league_id: Optional[str] = None,
) -> TeamSeasonStats:
    """
    Fold a team's completed fixtures into a season record.

    Fixtures are folded oldest to newest (stable sort on the normalized
    date, input order breaks ties) and each result is prepended to the form,
    so form ends up most recent first regardless of input order.

    Args:
        team_id: Team to aggregate for; fixtures not involving it are ignored.
        fixtures: Any fixture set.
        skip_unscored: Exclude completed fixtures missing either score instead
            of counting the missing side as 0.
        team_name: Copied onto the result for display.
        league_id: Copied onto the result for display.

    Returns:
        TeamSeasonStats (all zero, empty form, when nothing qualifies).
    """
    completed = [
        f for f in fixtures
        if f.involves(team_id) and f.status == STATUS_COMPLETED
    ]
    if skip_unscored:
        scored = [f for f in completed if f.home_score is not None and f.away_score is not None]
        if len(scored) != len(completed):
            logger.info(
                f"[AGGREGATOR] team={team_id}: skipping {len(completed) - len(scored)} "
                f"completed fixtures without a score"
            )
        completed = scored

    now = utc_now()
    # Unreadable dates sort as now; the classifier reports them, not this fold
    completed.sort(key=lambda f: parse_date(f.date) or now)

    stats = TeamSeasonStats(team_id=team_id, team_name=team_name, league_id=league_id)
    form: list[str] = []

    for fixture in completed:
        team_score, opponent_score = team_perspective(fixture, team_id)

        stats.matches += 1
        stats.goals_for += team_score
        stats.goals_against += opponent_score

        letter = result_letter(team_score, opponent_score)
        if letter == "W":
            stats.wins += 1
        elif letter == "D":
            stats.draws += 1
        else:
            stats.losses += 1
        form.insert(0, letter)

        if opponent_score == 0:
            stats.clean_sheets += 1

    stats.goal_difference = stats.goals_for - stats.goals_against
    stats.win_percentage = win_percentage(stats.wins, stats.matches)
    stats.form = form[:FORM_LENGTH]
    stats.points = stats.wins * POINTS_PER_WIN + stats.draws * POINTS_PER_DRAW
    return stats
