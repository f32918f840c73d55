# File: entitygen/repository.py
"""
entitygen - Repository Interface Generator
============================================
Emits ``repository.py``: the abstract ``<Entity>Repository`` contract that
every dialect backend implements.

The method list is computed once by ``repository_methods`` and shared with
the Postgres backend, the policy wrapper and the transaction repository, so
signatures cannot drift between the contract and its implementations.

Dialect dispatch is a closed variant: ``PrimaryRelational`` (Postgres) or
``Unimplemented(name)``.  Asking for a backend of an unimplemented dialect
raises ``UnimplementedDialectError``; there is no stub backend.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple, Union

from entitygen.dto import projection_fields
from entitygen.models import Dialect, EntityModel, GenerationConfig
from entitygen.query import query_function_name
from entitygen.runtime import DEFAULT_LIMIT, DEFAULT_OFFSET
from entitygen.typemap import python_type
from entitygen.utils import add_import, make_docstring, pluralize, render_module, to_snake_case
from entitygen.validators import UnimplementedDialectError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.repository")

_I: str = " " * 4


# ---------------------------------------------------------------------------
# Dialect dispatch
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PrimaryRelational:
    """The fully implemented backend (Postgres)."""

    name: str = Dialect.POSTGRES.value


@dataclass(frozen=True, slots=True)
class Unimplemented:
    """A dialect that is accepted in input but has no backend."""

    name: str


DialectBackend = Union[PrimaryRelational, Unimplemented]


def resolve_dialect(dialect: Dialect) -> DialectBackend:
    if dialect == Dialect.POSTGRES:
        return PrimaryRelational()
    return Unimplemented(dialect.value)


def require_backend(entity: EntityModel) -> PrimaryRelational:
    """
    Backend for *entity*, failing fast on dialects without one.

    Raises:
        UnimplementedDialectError: If the entity's dialect has no backend.
    """
    backend: DialectBackend = resolve_dialect(entity.dialect)
    if isinstance(backend, Unimplemented):
        raise UnimplementedDialectError(entity.name, backend.name)
    return backend


# ---------------------------------------------------------------------------
# Method descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RepositoryMethod:
    """
    One repository operation.

    ``params`` are rendered parameter declarations (without ``self``),
    ``args`` the matching call arguments, ``operation`` the
    ``PolicyOperation`` member guarding the call.  Lookups set ``lookup``
    to ``"parent"``, ``"child"`` or ``"projection"`` and ``target`` to the
    class they return.
    """

    name: str
    params: Tuple[str, ...]
    args: Tuple[str, ...]
    returns: str
    doc: str
    operation: str
    target: Optional[str] = None
    lookup: Optional[str] = None

    def signature(self) -> str:
        params: str = ", ".join(("self",) + self.params)
        return f"async def {self.name}({params}) -> {self.returns}:"

    def call(self, receiver: str) -> str:
        return f"{receiver}.{self.name}({', '.join(self.args)})"


def id_annotation(entity: EntityModel, imports: Dict[str, Set[str]]) -> str:
    return python_type(entity.id_field().type.model_copy(update={"nullable": False}), imports)


def relation_import(entity: EntityModel, target: str) -> str:
    """Relative module holding *target*'s class, seen from *entity*'s package."""
    if target == entity.name:
        return ".entity"
    return f"..{to_snake_case(target)}.entity"


def parent_lookup_name(parent: str) -> str:
    return f"find_{to_snake_case(parent)}"


def child_lookup_name(child: str) -> str:
    return f"find_{pluralize(to_snake_case(child))}"


def projection_lookup_name(projection_name: str) -> str:
    return f"find_by_id_{to_snake_case(projection_name)}"


def repository_methods(
    entity: EntityModel, imports: Dict[str, Set[str]]
) -> List[RepositoryMethod]:
    """
    Every operation of the entity's repository, in contract order.

    Registers the imports the signatures need in *imports*.
    """
    name: str = entity.name
    id_t: str = id_annotation(entity, imports)
    add_import(imports, "typing", "List", "Optional")
    add_import(imports, ".entity", name)

    id_param: Tuple[str, ...] = (f"id: {id_t}",)
    page: Tuple[str, ...] = (
        f"limit: int = {DEFAULT_LIMIT}",
        f"offset: int = {DEFAULT_OFFSET}",
    )
    methods: List[RepositoryMethod] = []

    if entity.create_fields():
        dto: str = entity.ident_with("Create", "Request")
        add_import(imports, ".dto", dto)
        methods.append(RepositoryMethod(
            "create", (f"dto: {dto}",), ("dto",), name,
            f"Insert a new {name} built from *dto* and return it.", "CREATE",
        ))

    methods.append(RepositoryMethod(
        "find_by_id", id_param, ("id",), f"Optional[{name}]",
        f"The {name} with identifier *id*, or ``None``.", "READ",
    ))

    if entity.update_fields():
        dto = entity.ident_with("Update", "Request")
        add_import(imports, ".dto", dto)
        methods.append(RepositoryMethod(
            "update", id_param + (f"dto: {dto}",), ("id", "dto"), f"Optional[{name}]",
            "Write the fields set on *dto*; ``None`` when no row matches.", "UPDATE",
        ))

    delete_doc: str = (
        "Mark the row deleted; ``True`` when a live row was affected."
        if entity.soft_delete
        else "Delete the row; ``True`` when a row was affected."
    )
    methods.append(RepositoryMethod("delete", id_param, ("id",), "bool", delete_doc, "DELETE"))

    methods.append(RepositoryMethod(
        "list", page, ("limit", "offset"), f"List[{name}]",
        "One page of rows, newest identifier first.", "LIST",
    ))

    if entity.has_filters():
        query_cls: str = entity.ident_with("", "Query")
        add_import(imports, ".query", query_cls)
        methods.append(RepositoryMethod(
            "query", (f"query: {query_cls}",), ("query",), f"List[{name}]",
            f"Rows matching *query*; see ``{query_function_name(entity)}``.", "LIST",
        ))

    seen: Set[str] = set()
    for f in entity.relation_fields():
        parent: str = f.storage.belongs_to or ""
        if parent in seen:
            continue
        seen.add(parent)
        add_import(imports, relation_import(entity, parent), parent)
        methods.append(RepositoryMethod(
            parent_lookup_name(parent), id_param, ("id",), f"Optional[{parent}]",
            f"The {parent} referenced by ``{f.name}`` of the {name} *id*.", "READ",
            target=parent, lookup="parent",
        ))

    fk_param: str = f"{entity.snake_name}_id"
    for child in entity.has_many:
        add_import(imports, relation_import(entity, child), child)
        methods.append(RepositoryMethod(
            child_lookup_name(child), (f"{fk_param}: {id_t}",), (fk_param,), f"List[{child}]",
            f"Every {child} whose ``{fk_param}`` is *{fk_param}*.", "READ",
            target=child, lookup="child",
        ))

    for projection in entity.projections:
        if not projection_fields(entity, projection):
            continue
        proj_cls: str = projection.struct_name(name)
        add_import(imports, ".dto", proj_cls)
        methods.append(RepositoryMethod(
            projection_lookup_name(projection.name), id_param, ("id",),
            f"Optional[{proj_cls}]",
            f"The {projection.name} projection of the {name} *id*.", "READ",
            target=proj_cls, lookup="projection",
        ))

    if entity.soft_delete:
        methods.extend([
            RepositoryMethod(
                "hard_delete", id_param, ("id",), "bool",
                "Remove the row permanently, deleted or not.", "DELETE",
            ),
            RepositoryMethod(
                "restore", id_param, ("id",), "bool",
                "Undo a soft delete; ``True`` when a deleted row was restored.", "DELETE",
            ),
            RepositoryMethod(
                "find_by_id_with_deleted", id_param, ("id",), f"Optional[{name}]",
                "Like ``find_by_id`` but also returns soft-deleted rows.", "READ",
            ),
            RepositoryMethod(
                "list_with_deleted", page, ("limit", "offset"), f"List[{name}]",
                "Like ``list`` but includes soft-deleted rows.", "LIST",
            ),
        ])
    return methods


# ---------------------------------------------------------------------------
# RepositoryGenerator
# ---------------------------------------------------------------------------


class RepositoryGenerator:
    """Stateless generator for the abstract ``repository.py``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        imports: Dict[str, Set[str]] = {"abc": {"ABC", "abstractmethod"}}
        methods: List[RepositoryMethod] = repository_methods(entity, imports)
        class_name: str = entity.ident_with("", "Repository")

        doc: str = f"Storage contract for {entity.name} (``{entity.full_table_name}``)."
        if entity.soft_delete:
            doc += (
                "\n\nDeletes are soft: reads skip rows whose ``deleted_at`` is set "
                "unless the method name says ``with_deleted``."
            )

        lines: List[str] = [f"class {class_name}(ABC):"]
        lines.extend(make_docstring(doc, 1))
        for method in methods:
            lines.append("")
            lines.append(f"{_I}@abstractmethod")
            lines.append(_I + method.signature())
            lines.extend(make_docstring(method.doc, 2))

        logger.debug("Generated repository contract for %s: %d method(s).", entity.name, len(methods))
        return render_module(
            f"Repository contract for {entity.name}.\n\nGenerated by entitygen; do not edit.",
            imports,
            lines,
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "PrimaryRelational",
    "Unimplemented",
    "DialectBackend",
    "resolve_dialect",
    "require_backend",
    "RepositoryMethod",
    "id_annotation",
    "relation_import",
    "parent_lookup_name",
    "child_lookup_name",
    "projection_lookup_name",
    "repository_methods",
    "RepositoryGenerator",
]

logger.debug("entitygen.repository loaded — %d public symbols.", len(__all__))
