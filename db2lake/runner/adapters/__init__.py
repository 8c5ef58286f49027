from __future__ import annotations

from .es import ElasticsearchDestination, ESConfig
from .postgres import PostgresDestination, PostgresSource
from .redshift import RedshiftDestination
from .sql import SqlAlchemyDestination, SqlAlchemySource

__all__ = [
    "ESConfig",
    "ElasticsearchDestination",
    "PostgresDestination",
    "PostgresSource",
    "RedshiftDestination",
    "SqlAlchemyDestination",
    "SqlAlchemySource",
]
