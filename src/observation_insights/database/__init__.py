"""
Data access for observation records.

- connection: asyncpg pool lifecycle
- queries: scoped PostgreSQL query and row mapping
- sources: the ObservationSource interface and an in-memory implementation
"""

from .connection import DatabaseConnectionError, DatabasePool, close_database_pool, get_database_pool
from .queries import PostgresObservationSource, QueryError, build_observation_query, row_to_record
from .sources import InMemoryObservationSource, ObservationSource

__all__ = [
    "DatabaseConnectionError",
    "DatabasePool",
    "close_database_pool",
    "get_database_pool",
    "PostgresObservationSource",
    "QueryError",
    "build_observation_query",
    "row_to_record",
    "InMemoryObservationSource",
    "ObservationSource",
]
