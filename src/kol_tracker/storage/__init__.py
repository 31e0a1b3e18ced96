"""Storage layer - Persistence interface, database schemas and repositories."""

from kol_tracker.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from kol_tracker.storage.gateway import (
    PersistenceGateway,
    PersistenceSession,
    SqlPersistenceGateway,
    SqlPersistenceSession,
    build_gateway,
)
from kol_tracker.storage.models import (
    BalanceModel,
    Base,
    BehaviorPatternModel,
    LeaderboardEntryModel,
    PerformanceSnapshotModel,
    TransactionModel,
)
from kol_tracker.storage.repos import (
    BalanceRepository,
    BehaviorPatternRepository,
    LeaderboardRepository,
    PerformanceSnapshotRepository,
    TransactionRepository,
)

__all__ = [
    "BalanceModel",
    "BalanceRepository",
    "Base",
    "BehaviorPatternModel",
    "BehaviorPatternRepository",
    "DatabaseManager",
    "LeaderboardEntryModel",
    "LeaderboardRepository",
    "PerformanceSnapshotModel",
    "PerformanceSnapshotRepository",
    "PersistenceGateway",
    "PersistenceSession",
    "SqlPersistenceGateway",
    "SqlPersistenceSession",
    "TransactionModel",
    "TransactionRepository",
    "build_gateway",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
