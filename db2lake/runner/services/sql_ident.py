import re

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_sql_ident(name: str, *, what: str) -> str:
    n = (name or "").strip()
    if not _IDENT_RE.fullmatch(n):
        raise ValueError(
            f"Invalid {what}: {n!r}. " "Expected SQL identifier, e.g. 'updated_at'"
        )
    return n


def qualified_name(table: str, schema: str | None = None) -> str:
    """``schema.table`` with both parts validated; a dotted ``table`` is split."""
    if schema is None and "." in (table or ""):
        schema, table = table.split(".", 1)
    t = validate_sql_ident(table, what="table name")
    if schema:
        return f"{validate_sql_ident(schema, what='schema name')}.{t}"
    return t
