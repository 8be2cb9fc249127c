"""Database package public API."""

from .connection import SQLitePool, init_db_pool
from .migrations import run_migrations
from .repositories import (
    Account,
    AccountRepository,
    AccountStats,
    NewAccount,
    StatsRepository,
    SyncStateRepository,
)

__all__ = [
    "SQLitePool",
    "init_db_pool",
    "run_migrations",
    "Account",
    "AccountRepository",
    "AccountStats",
    "NewAccount",
    "StatsRepository",
    "SyncStateRepository",
]
