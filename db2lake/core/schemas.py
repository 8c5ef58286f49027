from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from db2lake.runner.services.sql_ident import validate_sql_ident


class QuerySpec(BaseModel):
    """Parameterized query that drives source pagination.

    When ``cursor_field`` is set, the value of that field in the last row of a
    page is bound at ``params[cursor_params_index]`` for the next page, so the
    query must use that parameter as a lower bound (``WHERE id > $1``) and
    order by the cursor field.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    query: str
    params: tuple[Any, ...] = ()
    cursor_field: str | None = None
    cursor_params_index: int | None = None

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("query must not be empty")
        return v

    @model_validator(mode="after")
    def _cursor_index_in_params(self) -> QuerySpec:
        if self.cursor_field is None:
            return self
        idx = self.cursor_params_index
        if idx is None:
            raise ValueError("cursor_params_index is required when cursor_field is set")
        if not 0 <= idx < len(self.params):
            raise ValueError(
                f"cursor_params_index={idx} is out of range for {len(self.params)} params"
            )
        return self


class Column(BaseModel):
    """One column of a table created by a destination adapter."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    type: str
    nullable: bool = True
    default: str | None = None
    unique: bool = False
    primary_key: bool = False

    # backend specific
    encoding: str | None = None
    comment: str | None = None

    @field_validator("name")
    @classmethod
    def _name_is_ident(cls, v: str) -> str:
        return validate_sql_ident(v, what="column name")

    @field_validator("type")
    @classmethod
    def _type_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("column type must not be empty")
        return v.strip()


class TableOptions(BaseModel):
    """Declarative ``CREATE TABLE IF NOT EXISTS`` description."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    columns: tuple[Column, ...] = Field(min_length=1)

    cluster_by: tuple[str, ...] = ()

    # Redshift
    dist_key: str | None = None
    sort_key: tuple[str, ...] = ()
    dist_style: Literal["AUTO", "EVEN", "ALL", "KEY"] | None = None

    @model_validator(mode="after")
    def _keys_reference_columns(self) -> TableOptions:
        names = {c.name for c in self.columns}
        referenced = [*self.cluster_by, *self.sort_key]
        if self.dist_key:
            referenced.append(self.dist_key)
        unknown = sorted(set(referenced) - names)
        if unknown:
            raise ValueError(f"keys reference unknown columns: {unknown}")
        if self.dist_style == "KEY" and not self.dist_key:
            raise ValueError("dist_style='KEY' requires dist_key")
        return self
