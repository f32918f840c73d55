# File: entitygen/query.py
"""
entitygen - Query/Filter Generator
====================================
Emits ``query.py`` for entities with filter fields:

    * ``<Entity>Query``: one optional parameter per ``eq`` / ``like`` field,
      ``<field>_from`` / ``<field>_to`` per ``range`` field, then ``limit``
      and ``offset``.
    * ``build_<entity>_query(query, *, include_deleted=False)``: returns
      ``(sql, params)``.

Condition text and bind value always travel together as one
``(template, value)`` pair handed to ``runtime.build_select``; the
parameter numbers are assigned there, at the moment a present value is
appended.  Absent parameters produce neither a condition nor a value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Set

from entitygen.dto import field_declaration
from entitygen.models import EntityModel, FieldModel, FilterKind, GenerationConfig
from entitygen.typemap import is_textual, python_type
from entitygen.utils import add_import, make_docstring, render_module, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.query")

_I: str = " " * 4


# ---------------------------------------------------------------------------
# Filter parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class QueryParameter:
    """
    One optional filter parameter.

    ``template`` is the SQL condition with a ``{}`` placeholder for the
    parameter number; ``pattern`` marks values wrapped by ``like_pattern``.
    """

    name: str
    field: FieldModel
    template: str
    pattern: bool = False


def query_parameters(entity: EntityModel) -> List[QueryParameter]:
    """Filter parameters in field declaration order (``_from`` before ``_to``)."""
    params: List[QueryParameter] = []
    for f in entity.filter_fields():
        column: str = f.column_name
        if f.filter == FilterKind.EQ:
            params.append(QueryParameter(f.name, f, f"{column} = ${{}}"))
        elif f.filter == FilterKind.LIKE:
            target: str = column if is_textual(f.type) else f"{column}::text"
            params.append(QueryParameter(f.name, f, f"{target} ILIKE ${{}}", pattern=True))
        elif f.filter == FilterKind.RANGE:
            params.append(QueryParameter(f"{f.name}_from", f, f"{column} >= ${{}}"))
            params.append(QueryParameter(f"{f.name}_to", f, f"{column} <= ${{}}"))
    return params


def query_function_name(entity: EntityModel) -> str:
    return f"build_{to_snake_case(entity.name)}_query"


# ---------------------------------------------------------------------------
# QueryGenerator
# ---------------------------------------------------------------------------


class QueryGenerator:
    """Stateless generator for ``query.py``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        """
        Raises:
            ValueError: If the entity has no filter fields.
        """
        params: List[QueryParameter] = query_parameters(entity)
        if not params:
            raise ValueError(f"Entity '{entity.name}' has no filter fields.")

        imports: Dict[str, Set[str]] = {
            "pydantic": {"BaseModel", "Field"},
            "typing": {"Any", "List", "Optional", "Tuple"},
            self._config.runtime_module: {"build_select"},
        }
        if any(p.pattern for p in params):
            add_import(imports, self._config.runtime_module, "like_pattern")

        lines: List[str] = [
            f'TABLE = "{entity.full_table_name}"',
            f'COLUMNS = "{", ".join(entity.column_names())}"',
            "",
            "",
        ]
        lines.extend(self._query_shape(entity, params, imports))
        lines.extend(["", ""])
        lines.extend(self._build_function(entity, params))

        logger.debug("Generated query module for %s: %d parameter(s).", entity.name, len(params))
        return render_module(
            f"Filter parameters and dynamic query for {entity.name}.\n\n"
            f"Generated by entitygen; do not edit.",
            imports,
            lines,
        )

    def _query_shape(
        self,
        entity: EntityModel,
        params: List[QueryParameter],
        imports: Dict[str, Set[str]],
    ) -> List[str]:
        name: str = entity.ident_with("", "Query")
        lines: List[str] = [f"class {name}(BaseModel):"]
        lines.extend(
            make_docstring(
                f"Filter parameters for listing {entity.name} rows.\n\n"
                f"Unset parameters add no condition.",
                1,
            )
        )
        lines.append("")
        for p in params:
            annotation: str = python_type(p.field.type, imports, optional=True)
            if p.pattern:
                annotation = "Optional[str]"
            lines.append(_I + field_declaration(p.name, annotation, imports, default="None"))
        lines.append(f"{_I}limit: Optional[int] = Field(default=None, ge=0)")
        lines.append(f"{_I}offset: Optional[int] = Field(default=None, ge=0)")
        return lines

    def _build_function(self, entity: EntityModel, params: List[QueryParameter]) -> List[str]:
        query_cls: str = entity.ident_with("", "Query")
        lines: List[str] = [
            f"def {query_function_name(entity)}(",
            f"{_I}query: {query_cls},",
            f"{_I}*,",
            f"{_I}include_deleted: bool = False,",
            ") -> Tuple[str, List[Any]]:",
        ]
        doc: str = (
            "SELECT for *query*: one condition per set parameter, newest first.\n\n"
            "Returns the statement and its positional parameters."
        )
        if entity.soft_delete:
            doc += "  Soft-deleted rows are excluded unless *include_deleted* is set."
        lines.extend(make_docstring(doc, 1))
        lines.append(f"{_I}candidates: List[Tuple[str, Any]] = [")
        for p in params:
            value: str = f"query.{p.name}"
            if p.pattern:
                value = f"None if query.{p.name} is None else like_pattern(query.{p.name})"
            lines.append(f'{_I * 2}("{p.template}", {value}),')
        lines.append(f"{_I}]")

        if entity.soft_delete:
            lines.append(
                f'{_I}static: List[str] = [] if include_deleted else ["deleted_at IS NULL"]'
            )
        else:
            lines.append(f"{_I}static: List[str] = []")

        lines.extend(
            [
                f"{_I}return build_select(",
                f"{_I * 2}COLUMNS,",
                f"{_I * 2}TABLE,",
                f"{_I * 2}candidates,",
                f'{_I * 2}order_by="{entity.id_field().column_name}",',
                f"{_I * 2}limit=query.limit,",
                f"{_I * 2}offset=query.offset,",
                f"{_I * 2}static_conditions=static,",
                f"{_I})",
            ]
        )
        return lines


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "QueryParameter",
    "query_parameters",
    "query_function_name",
    "QueryGenerator",
]

logger.debug("entitygen.query loaded — %d public symbols.", len(__all__))
