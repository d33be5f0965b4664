"""Storage layer - Database schemas and repositories."""

from insider_scorer.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from insider_scorer.storage.models import (
    AccountActivityModel,
    AccountModel,
    AccountTradeModel,
    AlertModel,
    Base,
    MarketModel,
)
from insider_scorer.storage.repos import (
    AccountDTO,
    AccountRepository,
    ActivityRepository,
    AlertRepository,
    MarketRepository,
    StorageError,
    TradeRepository,
)

__all__ = [
    "AccountActivityModel",
    "AccountDTO",
    "AccountModel",
    "AccountRepository",
    "AccountTradeModel",
    "ActivityRepository",
    "AlertModel",
    "AlertRepository",
    "Base",
    "DatabaseManager",
    "MarketModel",
    "MarketRepository",
    "StorageError",
    "TradeRepository",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
