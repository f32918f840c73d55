# File: entitygen/migrations.py
"""
entitygen - Migration DDL Generator
=====================================
Emits paired Postgres migrations for one entity:

    up   → CREATE TABLE IF NOT EXISTS, then one CREATE INDEX per indexed
           column, then the composite indexes
    down → DROP TABLE IF EXISTS ... CASCADE

Column clause order is fixed: name, type, PRIMARY KEY (identifier) or
NOT NULL (non-nullable), UNIQUE, DEFAULT, CHECK, REFERENCES ... ON DELETE.
Index names are derived from table and column names, so the same model
always yields byte-identical text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from entitygen.models import CompositeIndexDef, EntityModel, FieldModel, GenerationConfig, IndexKind
from entitygen.repository import require_backend
from entitygen.typemap import SqlType, sql_type
from entitygen.utils import pluralize, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.migrations")


# ---------------------------------------------------------------------------
# Migration pair
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MigrationPair:
    """Up / down DDL of one table."""

    name: str
    up: str
    down: str

    @property
    def up_filename(self) -> str:
        return f"{self.name}.up.sql"

    @property
    def down_filename(self) -> str:
        return f"{self.name}.down.sql"


# ---------------------------------------------------------------------------
# DDL fragments
# ---------------------------------------------------------------------------


def referenced_table(entity: EntityModel, parent: str) -> str:
    """Parent table, in the owning entity's schema."""
    return f"{entity.schema_name}.{pluralize(to_snake_case(parent))}"


def column_definition(entity: EntityModel, f: FieldModel) -> str:
    """
    One column line of the CREATE TABLE body (without indentation).

    Example:
        ``quantity INTEGER NOT NULL DEFAULT 0``
    """
    resolved: SqlType = sql_type(f)
    parts: List[str] = [f.column_name, resolved.to_sql()]

    if f.is_id:
        parts.append("PRIMARY KEY")
    elif not resolved.nullable:
        parts.append("NOT NULL")
    if f.column.unique:
        parts.append("UNIQUE")
    if f.column.default is not None:
        parts.append(f"DEFAULT {f.column.default}")
    if f.column.check is not None:
        parts.append(f"CHECK ({f.column.check})")
    if f.storage.belongs_to:
        ref: str = f"REFERENCES {referenced_table(entity, f.storage.belongs_to)}(id)"
        if f.storage.on_delete is not None:
            ref += f" ON DELETE {f.storage.on_delete.value}"
        parts.append(ref)
    return " ".join(parts)


def create_table(entity: EntityModel) -> str:
    columns: str = ",\n".join(f"    {column_definition(entity, f)}" for f in entity.all_fields())
    return f"CREATE TABLE IF NOT EXISTS {entity.full_table_name} (\n{columns}\n);\n"


def single_index(entity: EntityModel, f: FieldModel) -> str:
    kind: IndexKind = f.column.index or IndexKind.BTREE
    name: str = f"idx_{entity.table}_{f.column_name}"
    return (
        f"CREATE INDEX IF NOT EXISTS {name} ON {entity.full_table_name}"
        f"{kind.using_clause} ({f.column_name});\n"
    )


def composite_index(entity: EntityModel, idx: CompositeIndexDef) -> str:
    unique: str = "UNIQUE " if idx.unique else ""
    sql: str = (
        f"CREATE {unique}INDEX IF NOT EXISTS {idx.name_or_default(entity.table)} "
        f"ON {entity.full_table_name}{idx.index_type.using_clause} ({', '.join(idx.columns)})"
    )
    if idx.where_clause:
        sql += f" WHERE {idx.where_clause}"
    return sql + ";\n"


# ---------------------------------------------------------------------------
# MigrationGenerator
# ---------------------------------------------------------------------------


class MigrationGenerator:
    """Stateless generator for ``<schema>_<table>.up.sql`` / ``.down.sql``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate_up(self, entity: EntityModel) -> str:
        parts: List[str] = [create_table(entity)]
        parts.extend(single_index(entity, f) for f in entity.indexed_fields())
        parts.extend(composite_index(entity, idx) for idx in entity.indexes)
        return "".join(parts)

    def generate_down(self, entity: EntityModel) -> str:
        return f"DROP TABLE IF EXISTS {entity.full_table_name} CASCADE;\n"

    def generate(self, entity: EntityModel) -> MigrationPair:
        """
        Raises:
            UnimplementedDialectError: If the entity's dialect has no DDL backend.
        """
        require_backend(entity)
        pair: MigrationPair = MigrationPair(
            name=f"{entity.schema_name}_{entity.table}",
            up=self.generate_up(entity),
            down=self.generate_down(entity),
        )
        logger.debug(
            "Generated migration %s: %d index(es).",
            pair.name,
            len(entity.indexed_fields()) + len(entity.indexes),
        )
        return pair


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "MigrationPair",
    "referenced_table",
    "column_definition",
    "create_table",
    "single_index",
    "composite_index",
    "MigrationGenerator",
]

logger.debug("entitygen.migrations loaded — %d public symbols.", len(__all__))
