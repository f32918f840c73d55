# File: entitygen/postgres.py
"""
entitygen - Postgres Backend Generator
========================================
Primary relational backend.  Two layers:

    ``postgres_statements(entity)``  → ``PostgresStatements``: every static
                                       SQL statement as exact text.
    ``PostgresGenerator.generate``   → ``postgres.py``: the
                                       ``Postgres<Entity>Repository`` class
                                       executing those statements through an
                                       asyncpg-style executor.

Statements that depend on call-time input (partial updates, filtered
queries) are assembled by ``entitygen.runtime`` from the same table and
column names, so the generated module carries no SQL string building of
its own.

Write-return modes:

    full  → ``RETURNING *``; the stored row is returned
    id    → ``RETURNING <id>``; the pre-built entity is returned
    none  → plain ``execute``; the pre-built entity is returned

Updates in ``id`` / ``none`` mode re-read the row with ``find_by_id``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from entitygen.dto import projection_fields
from entitygen.events import event_union_name
from entitygen.models import EntityModel, GenerationConfig, ReturningMode
from entitygen.query import query_function_name
from entitygen.repository import (
    RepositoryMethod,
    child_lookup_name,
    parent_lookup_name,
    projection_lookup_name,
    repository_methods,
    require_backend,
)
from entitygen.utils import (
    add_import,
    import_dotted,
    make_docstring,
    pluralize,
    py_literal,
    render_module,
    to_snake_case,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.postgres")

_I: str = " " * 4

_LIVE: str = "deleted_at IS NULL"


# ---------------------------------------------------------------------------
# Static SQL
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PostgresStatements:
    """
    Static SQL of one entity.

    Lookup mappings are keyed by repository method name.  Soft-delete-only
    statements are ``None`` for entities without soft delete.
    """

    table: str
    columns: str
    id_column: str
    insert: str
    find_by_id: str
    delete: str
    list: str
    hard_delete: Optional[str] = None
    restore: Optional[str] = None
    find_by_id_with_deleted: Optional[str] = None
    list_with_deleted: Optional[str] = None
    parents: Dict[str, str] = field(default_factory=dict)
    children: Dict[str, str] = field(default_factory=dict)
    projections: Dict[str, str] = field(default_factory=dict)


def insert_sql(entity: EntityModel) -> str:
    table: str = entity.full_table_name
    columns: List[str] = entity.column_names()
    placeholders: str = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    sql: str = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
    if entity.returning == ReturningMode.FULL:
        sql += " RETURNING *"
    elif entity.returning == ReturningMode.ID:
        sql += f" RETURNING {entity.id_field().column_name}"
    return sql


def postgres_statements(entity: EntityModel) -> PostgresStatements:
    """
    Build every static statement for *entity*.

    Raises:
        UnimplementedDialectError: If the entity is not a Postgres entity.
    """
    require_backend(entity)

    table: str = entity.full_table_name
    columns: str = ", ".join(entity.column_names())
    id_col: str = entity.id_field().column_name
    by_id: str = f"WHERE {id_col} = $1"
    select: str = f"SELECT {columns} FROM {table}"
    page: str = f"ORDER BY {id_col} DESC LIMIT $1 OFFSET $2"
    guard: str = f" AND {_LIVE}" if entity.soft_delete else ""

    parents: Dict[str, str] = {}
    for f in entity.relation_fields():
        parent: str = f.storage.belongs_to or ""
        if parent_lookup_name(parent) in parents:
            continue
        parent_table: str = f"{entity.schema_name}.{pluralize(to_snake_case(parent))}"
        parents[parent_lookup_name(parent)] = f"SELECT * FROM {parent_table} WHERE id = $1"

    children: Dict[str, str] = {}
    for child in entity.has_many:
        child_table: str = f"{entity.schema_name}.{pluralize(to_snake_case(child))}"
        children[child_lookup_name(child)] = (
            f"SELECT * FROM {child_table} WHERE {entity.snake_name}_id = $1"
        )

    projections: Dict[str, str] = {}
    for projection in entity.projections:
        fields = projection_fields(entity, projection)
        if not fields:
            continue
        proj_columns: str = ", ".join(f.column_name for f in fields)
        projections[projection_lookup_name(projection.name)] = (
            f"SELECT {proj_columns} FROM {table} {by_id}{guard}"
        )

    if entity.soft_delete:
        return PostgresStatements(
            table=table,
            columns=columns,
            id_column=id_col,
            insert=insert_sql(entity),
            find_by_id=f"{select} {by_id}{guard}",
            delete=f"UPDATE {table} SET deleted_at = NOW() {by_id}{guard}",
            list=f"{select} WHERE {_LIVE} {page}",
            hard_delete=f"DELETE FROM {table} {by_id}",
            restore=f"UPDATE {table} SET deleted_at = NULL {by_id} AND deleted_at IS NOT NULL",
            find_by_id_with_deleted=f"{select} {by_id}",
            list_with_deleted=f"{select} {page}",
            parents=parents,
            children=children,
            projections=projections,
        )
    return PostgresStatements(
        table=table,
        columns=columns,
        id_column=id_col,
        insert=insert_sql(entity),
        find_by_id=f"{select} {by_id}",
        delete=f"DELETE FROM {table} {by_id}",
        list=f"{select} {page}",
        parents=parents,
        children=children,
        projections=projections,
    )


def _constant_name(method_name: str) -> str:
    return f"{method_name.upper()}_SQL"


# ---------------------------------------------------------------------------
# PostgresGenerator
# ---------------------------------------------------------------------------


class PostgresGenerator:
    """
    Stateless generator for ``postgres.py``.

    Method bodies are emitted per ``RepositoryMethod`` so the backend always
    matches the abstract contract.
    """

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        """
        Raises:
            UnimplementedDialectError: If the entity's dialect has no backend.
        """
        stmts: PostgresStatements = postgres_statements(entity)
        runtime: str = self._config.runtime_module
        imports: Dict[str, Set[str]] = {
            "typing": {"Any", "List"},
            runtime: {"Executor", "affected_rows"},
            ".repository": {entity.ident_with("", "Repository")},
        }
        methods: List[RepositoryMethod] = repository_methods(entity, imports)
        if entity.update_fields():
            add_import(imports, "typing", "Dict")
        streams: bool = entity.features.streams
        if streams:
            add_import(imports, runtime, "channel_name", "publish")
            add_import(imports, ".events", event_union_name(entity))

        lines: List[str] = self._constants(entity, stmts)
        lines.extend(["", ""])
        lines.extend(self._class_header(entity, imports))
        for method in methods:
            lines.append("")
            lines.extend(self._method(entity, method, imports))

        logger.debug(
            "Generated Postgres backend for %s: %d method(s), returning=%s.",
            entity.name,
            len(methods),
            entity.returning.value,
        )
        return render_module(
            f"Postgres implementation of {entity.ident_with('', 'Repository')}.\n\n"
            f"Generated by entitygen; do not edit.",
            imports,
            lines,
        )

    # -----------------------------------------------------------------
    # Module constants
    # -----------------------------------------------------------------

    def _constants(self, entity: EntityModel, stmts: PostgresStatements) -> List[str]:
        lines: List[str] = [
            f"TABLE = {py_literal(stmts.table)}",
            f"ID_COLUMN = {py_literal(stmts.id_column)}",
            "",
            f"INSERT_SQL = {py_literal(stmts.insert)}",
            f"FIND_BY_ID_SQL = {py_literal(stmts.find_by_id)}",
            f"DELETE_SQL = {py_literal(stmts.delete)}",
            f"LIST_SQL = {py_literal(stmts.list)}",
        ]
        optional = (
            ("HARD_DELETE_SQL", stmts.hard_delete),
            ("RESTORE_SQL", stmts.restore),
            ("FIND_BY_ID_WITH_DELETED_SQL", stmts.find_by_id_with_deleted),
            ("LIST_WITH_DELETED_SQL", stmts.list_with_deleted),
        )
        for const, sql in optional:
            if sql is not None:
                lines.append(f"{const} = {py_literal(sql)}")
        for lookups in (stmts.parents, stmts.children, stmts.projections):
            for method_name, sql in lookups.items():
                lines.append(f"{_constant_name(method_name)} = {py_literal(sql)}")

        update_fields = entity.update_fields()
        if update_fields:
            lines.append("")
            lines.append("UPDATE_COLUMNS: Dict[str, str] = {")
            for f in update_fields:
                lines.append(f'{_I}"{f.name}": "{f.column_name}",')
            lines.append("}")
        return lines

    # -----------------------------------------------------------------
    # Class scaffolding
    # -----------------------------------------------------------------

    def _class_header(self, entity: EntityModel, imports: Dict[str, Set[str]]) -> List[str]:
        class_name: str = f"Postgres{entity.ident_with('', 'Repository')}"
        doc: str = (
            f"{entity.ident_with('', 'Repository')} over an asyncpg connection or pool."
        )
        if entity.error_type:
            doc += f"\n\nDatabase errors are re-raised as ``{entity.error_type}``."
        if entity.features.streams:
            doc += "\n\nEvery successful write publishes an event with ``pg_notify``."

        lines: List[str] = [f"class {class_name}({entity.ident_with('', 'Repository')}):"]
        lines.extend(make_docstring(doc, 1))
        lines.extend([
            "",
            f"{_I}def __init__(self, executor: Executor) -> None:",
            f"{_I * 2}self._executor: Executor = executor",
        ])

        error_cls: Optional[str] = None
        if entity.error_type:
            add_import(imports, "asyncpg", "PostgresError")
            error_cls = import_dotted(imports, entity.error_type)

        for method, returns in (("fetch", "List[Any]"), ("fetchrow", "Any"), ("execute", "str")):
            lines.append("")
            lines.append(f"{_I}async def _{method}(self, sql: str, *args: Any) -> {returns}:")
            call: str = f"await self._executor.{method}(sql, *args)"
            if error_cls is None:
                lines.append(f"{_I * 2}return {call}")
                continue
            lines.extend([
                f"{_I * 2}try:",
                f"{_I * 3}return {call}",
                f"{_I * 2}except PostgresError as exc:",
                f"{_I * 3}raise {error_cls}(str(exc)) from exc",
            ])

        if entity.features.streams:
            union: str = event_union_name(entity)
            lines.extend([
                "",
                f"{_I}async def _publish(self, event: {union}) -> None:",
                f"{_I * 2}await publish(self._executor, channel_name({py_literal(entity.table)}), "
                f"event.to_payload())",
            ])
        return lines

    # -----------------------------------------------------------------
    # Method bodies
    # -----------------------------------------------------------------

    def _method(
        self, entity: EntityModel, method: RepositoryMethod, imports: Dict[str, Set[str]]
    ) -> List[str]:
        name: str = method.name
        if name == "create":
            body: List[str] = self._create_body(entity, imports)
        elif name == "update":
            body = self._update_body(entity, imports)
        elif name in ("find_by_id", "find_by_id_with_deleted"):
            body = _fetch_one(_constant_name(name), entity.name, "id")
        elif name in ("list", "list_with_deleted"):
            body = _fetch_many(_constant_name(name), entity.name, "limit, offset")
        elif name in ("delete", "hard_delete", "restore"):
            body = self._delete_body(entity, name, imports)
        elif name == "query":
            fn: str = query_function_name(entity)
            add_import(imports, ".query", fn)
            body = [f"{_I * 2}sql, params = {fn}(query)"]
            body.extend(_fetch_many("sql", entity.name, "*params"))
        elif method.lookup == "parent":
            body = self._parent_body(entity, method)
        elif method.lookup == "child":
            body = _fetch_many(_constant_name(name), method.target or "", method.args[0])
        else:
            body = _fetch_one(_constant_name(name), method.target or "", "id")
        return [_I + method.signature(), *body]

    def _create_body(self, entity: EntityModel, imports: Dict[str, Set[str]]) -> List[str]:
        values: str = ", ".join(f"entity.{f.name}" for f in entity.all_fields())
        lines: List[str] = [f"{_I * 2}entity = dto.to_entity()"]
        if entity.returning == ReturningMode.FULL:
            lines.append(f"{_I * 2}row = await self._fetchrow(INSERT_SQL, {values})")
            lines.append(f"{_I * 2}entity = {entity.name}.from_row(row)")
        elif entity.returning == ReturningMode.ID:
            lines.append(f"{_I * 2}await self._fetchrow(INSERT_SQL, {values})")
        else:
            lines.append(f"{_I * 2}await self._execute(INSERT_SQL, {values})")
        if entity.features.streams:
            event: str = f"{entity.name}Created"
            add_import(imports, ".events", event)
            lines.append(f"{_I * 2}await self._publish({event}(entity=entity))")
        lines.append(f"{_I * 2}return entity")
        return lines

    def _update_body(self, entity: EntityModel, imports: Dict[str, Set[str]]) -> List[str]:
        add_import(imports, self._config.runtime_module, "build_update")
        full: bool = entity.returning == ReturningMode.FULL
        streams: bool = entity.features.streams
        lines: List[str] = [
            f"{_I * 2}changes = {{UPDATE_COLUMNS[k]: v for k, v in dto.changes().items()}}",
            f"{_I * 2}if not changes:",
            f"{_I * 3}return await self.find_by_id(id)",
        ]
        if streams:
            lines.extend([
                f"{_I * 2}before = await self.find_by_id(id)",
                f"{_I * 2}if before is None:",
                f"{_I * 3}return None",
            ])
        lines.extend([
            f"{_I * 2}sql, params = build_update(",
            f"{_I * 3}TABLE, ID_COLUMN, id, changes,",
            f"{_I * 3}soft_delete={entity.soft_delete}, returning={full},",
            f"{_I * 2})",
        ])
        if full:
            lines.extend([
                f"{_I * 2}row = await self._fetchrow(sql, *params)",
                f"{_I * 2}if row is None:",
                f"{_I * 3}return None",
                f"{_I * 2}updated = {entity.name}.from_row(row)",
            ])
        else:
            lines.extend([
                f"{_I * 2}if affected_rows(await self._execute(sql, *params)) == 0:",
                f"{_I * 3}return None",
                f"{_I * 2}updated = await self.find_by_id(id)",
            ])
        if streams:
            event: str = f"{entity.name}Updated"
            add_import(imports, ".events", event)
            if full:
                lines.append(f"{_I * 2}await self._publish({event}(before=before, after=updated))")
            else:
                lines.extend([
                    f"{_I * 2}if updated is not None:",
                    f"{_I * 3}await self._publish({event}(before=before, after=updated))",
                ])
        lines.append(f"{_I * 2}return updated")
        return lines

    def _delete_body(
        self, entity: EntityModel, name: str, imports: Dict[str, Set[str]]
    ) -> List[str]:
        lines: List[str] = [
            f"{_I * 2}done = affected_rows(await self._execute({_constant_name(name)}, id)) > 0",
        ]
        if entity.features.streams:
            if name == "restore":
                event: str = f"{entity.name}Restored"
            elif name == "delete" and entity.soft_delete:
                event = f"{entity.name}SoftDeleted"
            else:
                event = f"{entity.name}HardDeleted"
            add_import(imports, ".events", event)
            lines.extend([
                f"{_I * 2}if done:",
                f"{_I * 3}await self._publish({event}(id=id))",
            ])
        lines.append(f"{_I * 2}return done")
        return lines

    def _parent_body(self, entity: EntityModel, method: RepositoryMethod) -> List[str]:
        fk: str = next(
            f.name for f in entity.relation_fields()
            if parent_lookup_name(f.storage.belongs_to or "") == method.name
        )
        lines: List[str] = [
            f"{_I * 2}entity = await self.find_by_id(id)",
            f"{_I * 2}if entity is None or entity.{fk} is None:",
            f"{_I * 3}return None",
        ]
        lines.extend(_fetch_one(_constant_name(method.name), method.target or "", f"entity.{fk}"))
        return lines


def _fetch_one(sql: str, cls: str, args: str) -> List[str]:
    return [
        f"{_I * 2}row = await self._fetchrow({sql}, {args})",
        f"{_I * 2}return None if row is None else {cls}.from_row(row)",
    ]


def _fetch_many(sql: str, cls: str, args: str) -> List[str]:
    return [
        f"{_I * 2}rows = await self._fetch({sql}, {args})",
        f"{_I * 2}return [{cls}.from_row(row) for row in rows]",
    ]


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "PostgresStatements",
    "insert_sql",
    "postgres_statements",
    "PostgresGenerator",
]

logger.debug("entitygen.postgres loaded — %d public symbols.", len(__all__))
