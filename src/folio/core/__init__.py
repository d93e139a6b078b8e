"""
Folio core - database facade, statement translation and configuration.

Modules
-------
database        Database facade, Transaction handle, connect_database()
dialect         SQLite → PostgreSQL statement translation
pool            asyncpg pool behind the Pool protocol
protocols       Pool / PooledConnection / QueryResult contracts
schema          Idempotent catalog DDL
settings        Pydantic settings (DATABASE_URL, POSTGRES_*, DB_AUTO_BOOTSTRAP)
errors          FolioError hierarchy
logging         structlog configuration
"""

from folio.core.database import (
    Database,
    RunResult,
    Transaction,
    TransactionState,
    bootstrap_database,
    close_database,
    connect_database,
    reset_database,
)
from folio.core.dialect import (
    SqlTranslator,
    Statement,
    StatementKind,
    TranslatedStatement,
    classify,
    translate_placeholders,
)
from folio.core.errors import ConfigError, DatabaseError, FolioError, TransactionError
from folio.core.protocols import Pool, PooledConnection, QueryResult
from folio.core.settings import FolioSettings, get_settings

__all__ = [
    # Facade
    "Database",
    "Transaction",
    "TransactionState",
    "RunResult",
    "connect_database",
    "bootstrap_database",
    "close_database",
    "reset_database",
    # Translation
    "SqlTranslator",
    "Statement",
    "StatementKind",
    "TranslatedStatement",
    "classify",
    "translate_placeholders",
    # Protocols
    "Pool",
    "PooledConnection",
    "QueryResult",
    # Errors
    "FolioError",
    "ConfigError",
    "DatabaseError",
    "TransactionError",
    # Settings
    "FolioSettings",
    "get_settings",
]
