"""
Storage layer: PostgreSQL for tasks and signals, MongoDB for snapshots.
"""
from levelup.db.postgres import get_db_session, execute_raw_sql, test_postgres_connection
from levelup.db.mongodb import GITHUB_SNAPSHOTS, get_collection, init_mongo_indexes, test_mongo_connection

__all__ = [
    "get_db_session",
    "execute_raw_sql",
    "test_postgres_connection",
    "GITHUB_SNAPSHOTS",
    "get_collection",
    "init_mongo_indexes",
    "test_mongo_connection"
]
