"""Abstract base class for record stores and the record types they return."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


class SourceUnavailable(RuntimeError):
    """Raised when the backing store cannot be reached or fails at transport level."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"Record store unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# Fixture statuses with special handling; any other value (scheduled,
# postponed) is bucketed by date
STATUS_LIVE = "live"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"


@dataclass
class Team:
    """Team record for both clubs and national teams."""

    id: str
    name: str
    division: str
    type: str  # "club" or "national"
    color_primary: Optional[str] = None  # Display hint only
    league_id: Optional[str] = None
    short_name: Optional[str] = None


@dataclass
class Player:
    """Player record. team_id is a back-reference, not ownership."""

    id: str
    team_id: str
    name: str
    position: str
    number: int


@dataclass
class Fixture:
    """Match snapshot. `date` is kept in whatever shape the store returned."""

    id: str
    home_team_id: str
    away_team_id: str
    date: Any
    status: str
    home_score: Optional[int] = None  # Only once live or completed
    away_score: Optional[int] = None
    venue: Optional[str] = None
    competition: Optional[str] = None
    league_id: Optional[str] = None

    def involves(self, team_id: str) -> bool:
        return self.home_team_id == team_id or self.away_team_id == team_id


@dataclass
class StandingsRow:
    """League table row, the coarse fallback source for rankings."""

    team_id: str
    team_name: str
    league_id: str
    position: Optional[int] = None
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0


@dataclass
class TeamSeasonStats:
    """Season record for one team, either precomputed by the store or derived."""

    team_id: str
    matches: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    clean_sheets: int = 0
    win_percentage: int = 0
    form: list[str] = field(default_factory=list)  # Most recent first, max 5
    points: int = 0
    # Descriptive fields, present on stored aggregates
    team_name: Optional[str] = None
    league_id: Optional[str] = None
    season: Optional[str] = None
    position: Optional[int] = None
    avg_possession: Optional[float] = None


@dataclass
class League:
    """League or competition a team plays in."""

    id: str
    name: str
    season: Optional[str] = None
    type: Optional[str] = None  # mens, womens, boys, girls
    division: Optional[str] = None
    short_name: Optional[str] = None
    age_group: Optional[str] = None
    is_active: bool = True


@dataclass
class TopScorer:
    """Goal tally for one player in one league."""

    player_id: str
    player_name: str
    team_id: str
    league_id: str
    goals: int = 0
    assists: int = 0
    games_played: int = 0
    team_name: Optional[str] = None
    team_color: Optional[str] = None
    season: Optional[str] = None
    # Assigned when ranked, 1-based
    position: Optional[int] = None


class RecordStore(ABC):
    """Read-only async interface to the document store.

    Implementations raise SourceUnavailable on transport failures and return
    None (single entity) or an empty list (collections) when nothing matches.
    """

    @abstractmethod
    async def fetch_teams(
        self,
        team_type: Optional[str] = None,
        division: Optional[str] = None,
    ) -> list[Team]:
        """
        Fetch teams ordered by name, optionally filtered.

        Args:
            team_type: "club" or "national".
            division: Division name.

        Returns:
            List of Team records.
        """
        pass

    @abstractmethod
    async def fetch_team_by_id(self, team_id: str) -> Optional[Team]:
        """Fetch a single team, or None if it does not exist."""
        pass

    @abstractmethod
    async def fetch_team_players(self, team_id: str) -> list[Player]:
        """Fetch a team's players ordered by shirt number."""
        pass

    @abstractmethod
    async def fetch_player_by_id(self, player_id: str) -> Optional[Player]:
        """Fetch a single player, or None if it does not exist."""
        pass

    @abstractmethod
    async def fetch_team_fixtures(self, team_id: str) -> list[Fixture]:
        """Fetch fixtures where the team is home or away, any status."""
        pass

    @abstractmethod
    async def fetch_aggregated_stats(
        self,
        team_id: str,
        league_id: Optional[str] = None,
    ) -> Optional[TeamSeasonStats]:
        """
        Fetch a precomputed stats record.

        Without league_id the most recently updated record for the team is
        returned. None when the store holds no aggregate for the team.
        """
        pass

    @abstractmethod
    async def fetch_league_stats(self, league_id: str) -> list[TeamSeasonStats]:
        """Fetch every precomputed stats record for a league."""
        pass

    @abstractmethod
    async def fetch_standings_fallback(self, league_id: str) -> list[StandingsRow]:
        """Fetch league standings rows ordered by position."""
        pass

    @abstractmethod
    async def fetch_league_by_id(self, league_id: str) -> Optional[League]:
        """Fetch a single league, or None if it does not exist."""
        pass

    @abstractmethod
    async def fetch_top_scorers(self, league_id: str) -> list[TopScorer]:
        """Fetch every player's goal tally for a league, unordered."""
        pass
