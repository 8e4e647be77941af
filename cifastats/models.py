"""Database models using SQLModel."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


class Team(SQLModel, table=True):
    """Team model for both national teams and clubs."""

    __tablename__ = "teams"

    id: str = Field(primary_key=True, max_length=64, description="Document ID")
    name: str = Field(max_length=255, index=True, description="Team name")
    short_name: Optional[str] = Field(default=None, max_length=50)
    division: str = Field(max_length=100, index=True, description="Division name")
    team_type: str = Field(max_length=20, index=True, description="'club' or 'national'")
    color_primary: Optional[str] = Field(default=None, max_length=20, description="Hex color, display only")
    league_id: Optional[str] = Field(default=None, max_length=64, index=True)


class Player(SQLModel, table=True):
    """Player model. team_id is a back-reference."""

    __tablename__ = "players"

    id: str = Field(primary_key=True, max_length=64)
    team_id: str = Field(max_length=64, index=True)
    name: str = Field(max_length=255)
    position: str = Field(max_length=20, description="Goalkeeper, Defender, Midfielder, Forward")
    number: int = Field(default=0, description="Shirt number")


class Fixture(SQLModel, table=True):
    """Fixture model for scheduled, live and completed matches."""

    __tablename__ = "fixtures"

    id: str = Field(primary_key=True, max_length=64)
    home_team_id: str = Field(max_length=64, index=True)
    away_team_id: str = Field(max_length=64, index=True)
    # NULL when the admin app saved an unparseable date
    date: Optional[datetime] = Field(default=None, index=True, description="Kickoff (UTC)")
    status: str = Field(
        max_length=20, default="scheduled",
        description="scheduled, live, completed, postponed, cancelled",
    )
    home_score: Optional[int] = Field(default=None, description="NULL if not played")
    away_score: Optional[int] = Field(default=None, description="NULL if not played")
    venue: Optional[str] = Field(default=None, max_length=255)
    competition: Optional[str] = Field(default=None, max_length=100)
    league_id: Optional[str] = Field(default=None, max_length=64, index=True)


class TeamStats(SQLModel, table=True):
    """Precomputed season record, written by the stats generation job."""

    __tablename__ = "team_stats"
    __table_args__ = (
        UniqueConstraint("team_id", "league_id", "season", name="uq_team_league_season"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: str = Field(max_length=64, index=True)
    team_name: Optional[str] = Field(default=None, max_length=255)
    league_id: Optional[str] = Field(default=None, max_length=64, index=True)
    season: Optional[str] = Field(default=None, max_length=20)
    position: Optional[int] = Field(default=None, description="League position")

    matches: int = Field(default=0)
    wins: int = Field(default=0)
    draws: int = Field(default=0)
    losses: int = Field(default=0)
    goals_for: int = Field(default=0)
    goals_against: int = Field(default=0)
    goal_difference: int = Field(default=0)
    clean_sheets: int = Field(default=0)
    win_percentage: int = Field(default=0)
    points: int = Field(default=0)
    avg_possession: Optional[float] = Field(default=None)
    form: Optional[list] = Field(
        default=None, sa_column=Column(JSON), description="Most recent first, e.g. ['W', 'D', 'L']"
    )

    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)


class LeagueStanding(SQLModel, table=True):
    """League table row."""

    __tablename__ = "league_standings"
    __table_args__ = (
        UniqueConstraint("league_id", "team_id", name="uq_league_team"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(max_length=64, index=True)
    team_id: str = Field(max_length=64, index=True)
    team_name: str = Field(max_length=255)
    position: Optional[int] = Field(default=None)
    played: int = Field(default=0)
    won: int = Field(default=0)
    drawn: int = Field(default=0)
    lost: int = Field(default=0)
    goals_for: int = Field(default=0)
    goals_against: int = Field(default=0)
    points: int = Field(default=0)


class League(SQLModel, table=True):
    """League or competition, one row per season."""

    __tablename__ = "leagues"

    id: str = Field(primary_key=True, max_length=64)
    name: str = Field(max_length=255)
    short_name: Optional[str] = Field(default=None, max_length=50)
    season: Optional[str] = Field(default=None, max_length=20)
    league_type: Optional[str] = Field(default=None, max_length=20, description="mens, womens, boys, girls")
    division: Optional[str] = Field(default=None, max_length=100)
    age_group: Optional[str] = Field(default=None, max_length=20, description="e.g. U17")
    is_active: bool = Field(default=True)


class TopScorer(SQLModel, table=True):
    """Per-league goal tally for a player, written by the stats generation job."""

    __tablename__ = "top_scorers"
    __table_args__ = (
        UniqueConstraint("league_id", "player_id", name="uq_league_player"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(max_length=64, index=True)
    player_id: str = Field(max_length=64, index=True)
    player_name: str = Field(max_length=255)
    team_id: str = Field(max_length=64)
    team_name: Optional[str] = Field(default=None, max_length=255)
    team_color: Optional[str] = Field(default=None, max_length=20)
    season: Optional[str] = Field(default=None, max_length=20)
    goals: int = Field(default=0)
    assists: int = Field(default=0)
    games_played: int = Field(default=0)
