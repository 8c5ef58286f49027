import pytest
from pydantic import ValidationError

from db2lake.core.schemas import Column, TableOptions
from db2lake.runner.services.ddl import column_sql, create_table_sql, dialect_for
from db2lake.runner.services.sql_ident import qualified_name


def test_column_sql_renders_all_constraints():
    col = Column(name="email", type="VARCHAR(255)", nullable=False, default="''", unique=True)

    assert column_sql(col) == "email VARCHAR(255) NOT NULL DEFAULT '' UNIQUE"


def test_single_primary_key_is_inline():
    opts = TableOptions(
        columns=(
            Column(name="id", type="BIGINT", primary_key=True),
            Column(name="name", type="TEXT"),
        )
    )

    sql = create_table_sql("public.users", opts)

    assert sql.startswith("CREATE TABLE IF NOT EXISTS public.users (")
    assert "id BIGINT PRIMARY KEY" in sql
    assert "name TEXT" in sql


def test_composite_primary_key_becomes_table_constraint():
    opts = TableOptions(
        columns=(
            Column(name="tenant", type="TEXT", primary_key=True),
            Column(name="id", type="BIGINT", primary_key=True),
        )
    )

    sql = create_table_sql("t", opts)

    assert "PRIMARY KEY (tenant, id)" in sql
    assert "tenant TEXT PRIMARY KEY" not in sql


def test_redshift_hints_and_encoding():
    opts = TableOptions(
        columns=(
            Column(name="id", type="INTEGER", nullable=False),
            Column(name="created_at", type="TIMESTAMP", encoding="az64"),
        ),
        dist_style="KEY",
        dist_key="id",
        sort_key=("created_at", "id"),
    )

    sql = create_table_sql("public.events", opts, dialect="redshift")

    assert "created_at TIMESTAMP ENCODE az64" in sql
    assert "DISTSTYLE KEY" in sql
    assert "DISTKEY(id)" in sql
    assert sql.endswith("SORTKEY(created_at, id)")


def test_redshift_hints_are_ignored_by_postgres_dialect():
    opts = TableOptions(
        columns=(Column(name="id", type="INTEGER", encoding="raw"),),
        dist_style="EVEN",
    )

    sql = create_table_sql("t", opts)

    assert "ENCODE" not in sql
    assert "DISTSTYLE" not in sql


_COMMENTED = TableOptions(
    columns=(Column(name="id", type="BIGINT", comment="user's id"),),
    cluster_by=("id",),
)


def test_warehouse_dialect_cluster_by_and_comment():
    sql = create_table_sql("lake.users", _COMMENTED, dialect="warehouse")

    assert "id BIGINT COMMENT 'user''s id'" in sql
    assert sql.endswith("CLUSTER BY (id)")


def test_mysql_dialect_keeps_comment_drops_cluster_by():
    sql = create_table_sql("users", _COMMENTED, dialect="mysql")

    assert "COMMENT 'user''s id'" in sql
    assert "CLUSTER BY" not in sql


@pytest.mark.parametrize("dialect", ["generic", "postgres"])
def test_plain_dialects_drop_comment_and_cluster_by(dialect):
    sql = create_table_sql("users", _COMMENTED, dialect=dialect)

    assert sql == "CREATE TABLE IF NOT EXISTS users (\n    id BIGINT\n)"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("postgresql", "postgres"),
        ("redshift", "redshift"),
        ("mysql", "mysql"),
        ("mariadb", "mysql"),
        ("snowflake", "warehouse"),
        ("databricks", "warehouse"),
        ("sqlite", "generic"),
        ("oracle", "generic"),
    ],
)
def test_dialect_for_sqlalchemy_name(name, expected):
    assert dialect_for(name) == expected


def test_table_options_reject_unknown_key_columns():
    with pytest.raises(ValidationError):
        TableOptions(columns=(Column(name="id", type="INT"),), sort_key=("missing",))


def test_table_options_key_style_requires_dist_key():
    with pytest.raises(ValidationError):
        TableOptions(columns=(Column(name="id", type="INT"),), dist_style="KEY")


def test_table_options_require_columns():
    with pytest.raises(ValidationError):
        TableOptions(columns=())


@pytest.mark.parametrize("bad_name", ["", "1id", "drop table", "a;b"])
def test_column_name_must_be_identifier(bad_name):
    with pytest.raises(ValidationError):
        Column(name=bad_name, type="INT")


def test_qualified_name_splits_and_validates():
    assert qualified_name("users") == "users"
    assert qualified_name("users", "public") == "public.users"
    assert qualified_name("analytics.film_dim") == "analytics.film_dim"
    with pytest.raises(ValueError):
        qualified_name("users; DROP TABLE x")
