"""
Record store module.

Read-only access to teams, players, fixtures, stored aggregates,
standings, leagues and top scorers. Two backends: SQL (SQLModel over
async SQLAlchemy) and in-memory.
"""

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
from cifastats.store.memory import InMemoryRecordStore
from cifastats.store.sql import SqlRecordStore

__all__ = [
    "Fixture",
    "League",
    "Player",
    "RecordStore",
    "SourceUnavailable",
    "StandingsRow",
    "Team",
    "TeamSeasonStats",
    "TopScorer",
    "InMemoryRecordStore",
    "SqlRecordStore",
]
