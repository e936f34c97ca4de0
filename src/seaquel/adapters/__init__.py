"""Client adapters: the connection source behind tables and transactions."""

from .base import DatabaseClient, FetchMode, format_query_error
from .postgresql import PostgresClient, parse_row_count
from .types import ConnectionConfig, parse_connection_url

__all__ = [
    "ConnectionConfig",
    "DatabaseClient",
    "FetchMode",
    "PostgresClient",
    "format_query_error",
    "parse_connection_url",
    "parse_row_count",
]
