from __future__ import annotations

from typing import Literal

from db2lake.core.schemas import Column, TableOptions

# generic: plain CREATE TABLE that SQLite, Postgres, Oracle ... all accept
Dialect = Literal["postgres", "redshift", "mysql", "warehouse", "generic"]

_COLUMN_COMMENT_DIALECTS = frozenset({"mysql", "warehouse"})

_SQLALCHEMY_DIALECTS: dict[str, Dialect] = {
    "postgresql": "postgres",
    "redshift": "redshift",
    "mysql": "mysql",
    "mariadb": "mysql",
    "snowflake": "warehouse",
    "databricks": "warehouse",
}


def dialect_for(sqlalchemy_name: str) -> Dialect:
    """DDL dialect for a SQLAlchemy ``engine.dialect.name``."""
    return _SQLALCHEMY_DIALECTS.get(sqlalchemy_name.lower(), "generic")


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def column_sql(col: Column, *, dialect: Dialect = "postgres", inline_pk: bool = True) -> str:
    parts = [col.name, col.type]
    if not col.nullable:
        parts.append("NOT NULL")
    if col.default is not None:
        parts.append(f"DEFAULT {col.default}")
    if col.unique:
        parts.append("UNIQUE")
    if col.primary_key and inline_pk:
        parts.append("PRIMARY KEY")
    if dialect == "redshift" and col.encoding:
        parts.append(f"ENCODE {col.encoding}")
    if dialect in _COLUMN_COMMENT_DIALECTS and col.comment:
        parts.append(f"COMMENT {_quote_literal(col.comment)}")
    return " ".join(parts)


def create_table_sql(table: str, options: TableOptions, *, dialect: Dialect = "postgres") -> str:
    """
    Build an idempotent ``CREATE TABLE IF NOT EXISTS`` statement.

    A single primary key column is declared inline; several become a table
    level ``PRIMARY KEY (...)`` constraint. Backend hints are emitted only
    where the dialect understands them and are dropped otherwise:
    Redshift gets DISTSTYLE / DISTKEY / SORTKEY and ENCODE, MySQL gets column
    COMMENT, Snowflake/Databricks ("warehouse") get COMMENT and ``CLUSTER BY``.
    ``table`` must already be validated/qualified by the caller.
    """
    pk_cols = [c.name for c in options.columns if c.primary_key]
    inline_pk = len(pk_cols) == 1

    defs = [column_sql(c, dialect=dialect, inline_pk=inline_pk) for c in options.columns]
    if len(pk_cols) > 1:
        defs.append(f"PRIMARY KEY ({', '.join(pk_cols)})")

    body = ",\n    ".join(defs)
    sql = f"CREATE TABLE IF NOT EXISTS {table} (\n    {body}\n)"

    suffix: list[str] = []
    if dialect == "redshift":
        if options.dist_style:
            suffix.append(f"DISTSTYLE {options.dist_style}")
        if options.dist_key:
            suffix.append(f"DISTKEY({options.dist_key})")
        if options.sort_key:
            suffix.append(f"SORTKEY({', '.join(options.sort_key)})")
    elif dialect == "warehouse" and options.cluster_by:
        suffix.append(f"CLUSTER BY ({', '.join(options.cluster_by)})")

    if suffix:
        sql += "\n" + "\n".join(suffix)
    return sql
