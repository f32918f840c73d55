# File: entitygen/dto.py
"""
entitygen - Entity & DTO Generator
====================================
Emits the data shapes of one entity as pydantic V2 models:

    entity.py → ``User`` (every field, declaration order, ``from_row``)
    dto.py    → ``CreateUserRequest``  (create fields, ``to_entity``)
                ``UpdateUserRequest``  (update fields, all optional,
                                        ``changes``)
                ``UserResponse``       (response fields, ``from_entity``)
                ``User<Projection>``   (one per projection, projection order,
                                        ``from_entity`` / ``from_row``)

Shapes without fields are not emitted, and ``dto.py`` itself is skipped
when no shape survives.

All string assembly uses the ``List[str]`` + ``"\\n".join()`` pattern.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set

from entitygen.models import (
    EntityModel,
    FieldModel,
    GenerationConfig,
    ProjectionDef,
    UuidVersion,
)
from entitygen.typemap import python_default, python_type
from entitygen.utils import add_import, make_docstring, py_literal, render_module

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.dto")

_I: str = " " * 4


# ---------------------------------------------------------------------------
# Shared field rendering (also used by the query and command generators)
# ---------------------------------------------------------------------------


def field_declaration(
    name: str,
    annotation: str,
    imports: Dict[str, Set[str]],
    *,
    default: Optional[str] = None,
    doc: Optional[str] = None,
) -> str:
    """
    One pydantic field line.  *default* is a Python expression, ``None``
    meaning the field is required.
    """
    if doc:
        add_import(imports, "pydantic", "Field")
        args: str = "..." if default is None else f"default={default}"
        return f"{name}: {annotation} = Field({args}, description={py_literal(doc.strip())})"
    if default is None:
        return f"{name}: {annotation}"
    return f"{name}: {annotation} = {default}"


def entity_field_lines(
    fields: Sequence[FieldModel],
    imports: Dict[str, Set[str]],
    *,
    all_optional: bool = False,
) -> List[str]:
    """
    Class-body lines for *fields*.  Nullable fields default to ``None``;
    *all_optional* makes every field ``Optional[...] = None``.
    """
    lines: List[str] = []
    for f in fields:
        annotation: str = python_type(f.type, imports, optional=all_optional)
        default: Optional[str] = "None" if (all_optional or f.type.nullable) else None
        lines.append(_I + field_declaration(f.name, annotation, imports, default=default, doc=f.doc))
    return lines


def projection_fields(entity: EntityModel, projection: ProjectionDef) -> List[FieldModel]:
    """Fields of *projection* in the order the projection lists them."""
    fields: List[FieldModel] = []
    for name in projection.fields:
        f: Optional[FieldModel] = entity.get_field(name)
        if f is not None:
            fields.append(f)
    return fields


def _from_row_method(class_name: str, fields: Sequence[FieldModel]) -> List[str]:
    lines: List[str] = [
        f"{_I}@classmethod",
        f"{_I}def from_row(cls, row: Mapping[str, Any]) -> {class_name}:",
    ]
    lines.extend(make_docstring("Build from a database record keyed by column name.", 2))
    lines.append(f"{_I * 2}return cls(")
    for f in fields:
        lines.append(f'{_I * 3}{f.name}=row["{f.column_name}"],')
    lines.append(f"{_I * 2})")
    return lines


def _from_entity_method(
    class_name: str, entity_name: str, fields: Sequence[FieldModel]
) -> List[str]:
    lines: List[str] = [
        f"{_I}@classmethod",
        f"{_I}def from_entity(cls, entity: {entity_name}) -> {class_name}:",
        f"{_I * 2}return cls(",
    ]
    for f in fields:
        lines.append(f"{_I * 3}{f.name}=entity.{f.name},")
    lines.append(f"{_I * 2})")
    return lines


# ---------------------------------------------------------------------------
# DtoGenerator
# ---------------------------------------------------------------------------


class DtoGenerator:
    """
    Stateless generator for ``entity.py`` and ``dto.py``.

    Each ``generate_*`` method returns a complete module source string.
    """

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    # ===================================================================
    # entity.py
    # ===================================================================

    def generate_entity_module(self, entity: EntityModel) -> str:
        imports: Dict[str, Set[str]] = {
            "pydantic": {"BaseModel", "ConfigDict"},
            "typing": {"Any", "Mapping"},
        }
        lines: List[str] = [f"class {entity.name}(BaseModel):"]
        lines.extend(
            make_docstring(entity.doc or f"Row of ``{entity.full_table_name}``.", 1)
        )
        lines.append("")
        lines.append(f"{_I}model_config = ConfigDict(from_attributes=True)")
        lines.append("")
        lines.extend(entity_field_lines(entity.all_fields(), imports))
        lines.append("")
        lines.extend(_from_row_method(entity.name, entity.all_fields()))

        return render_module(
            f"{entity.name} entity stored in ``{entity.full_table_name}``.\n\n"
            f"Generated by entitygen; do not edit.",
            imports,
            lines,
        )

    # ===================================================================
    # dto.py
    # ===================================================================

    def generate_dto_module(self, entity: EntityModel) -> Optional[str]:
        """``None`` when the entity has no create, update, response or projection shape."""
        imports: Dict[str, Set[str]] = {
            "pydantic": {"BaseModel"},
            ".entity": {entity.name},
        }
        blocks: List[List[str]] = []

        if entity.create_fields():
            blocks.append(self._create_shape(entity, imports))
        if entity.update_fields():
            blocks.append(self._update_shape(entity, imports))
        if entity.response_fields():
            blocks.append(self._response_shape(entity, imports))
        for projection in entity.projections:
            block: Optional[List[str]] = self._projection_shape(entity, projection, imports)
            if block is not None:
                blocks.append(block)

        if not blocks:
            logger.debug("No DTO shapes for %s; dto.py skipped.", entity.name)
            return None

        body: List[str] = []
        for block in blocks:
            body.extend(block)
            body.extend(["", ""])

        return render_module(
            f"Data-transfer shapes for {entity.name}.\n\n"
            f"Generated by entitygen; do not edit.",
            imports,
            body,
        )

    def _create_shape(self, entity: EntityModel, imports: Dict[str, Set[str]]) -> List[str]:
        name: str = entity.ident_with("Create", "Request")
        create_names: Set[str] = {f.name for f in entity.create_fields()}
        lines: List[str] = [f"class {name}(BaseModel):"]
        lines.extend(make_docstring(f"Payload for creating a {entity.name}.", 1))
        lines.append("")
        lines.extend(entity_field_lines(entity.create_fields(), imports))
        lines.append("")
        lines.append(f"{_I}def to_entity(self) -> {entity.name}:")
        lines.extend(
            make_docstring(
                "Complete entity with a fresh identifier; fields the request "
                "does not carry get their type's default.",
                2,
            )
        )
        lines.append(f"{_I * 2}return {entity.name}(")
        for f in entity.all_fields():
            if f.is_id:
                value: str = self._new_identifier(entity, f, imports)
            elif f.name in create_names:
                value = f"self.{f.name}"
            else:
                value = python_default(f.type, imports)
            lines.append(f"{_I * 3}{f.name}={value},")
        lines.append(f"{_I * 2})")
        return lines

    def _new_identifier(
        self, entity: EntityModel, id_field: FieldModel, imports: Dict[str, Set[str]]
    ) -> str:
        """UUID identifiers follow the entity's strategy; others get a zero value."""
        if id_field.type.known and id_field.type.base == "uuid" and not id_field.type.array_dim:
            func: str = "uuid7" if entity.uuid_version == UuidVersion.V7 else "uuid4"
            add_import(imports, self._config.runtime_module, func)
            return f"{func}()"
        return python_default(id_field.type, imports)

    def _update_shape(self, entity: EntityModel, imports: Dict[str, Set[str]]) -> List[str]:
        name: str = entity.ident_with("Update", "Request")
        fields: List[FieldModel] = entity.update_fields()
        not_null: List[str] = [f.name for f in fields if not f.is_nullable]
        add_import(imports, "typing", "Any", "Dict")

        lines: List[str] = [f"class {name}(BaseModel):"]
        lines.extend(
            make_docstring(
                f"Partial update of a {entity.name}.\n\n"
                f"Only fields set explicitly are written.",
                1,
            )
        )
        lines.append("")
        lines.extend(entity_field_lines(fields, imports, all_optional=True))
        lines.append("")
        lines.append(f"{_I}def changes(self) -> Dict[str, Any]:")
        lines.extend(make_docstring("Explicitly set fields, keyed by field name.", 2))
        lines.append(f"{_I * 2}data: Dict[str, Any] = self.model_dump(exclude_unset=True)")
        if not_null:
            # NOT NULL columns treat an explicit None as "leave unchanged"
            members: str = ", ".join(f'"{n}"' for n in not_null)
            lines.append(f"{_I * 2}required = {{{members}}}")
            lines.append(
                f"{_I * 2}return {{k: v for k, v in data.items() "
                f"if v is not None or k not in required}}"
            )
        else:
            lines.append(f"{_I * 2}return data")
        return lines

    def _response_shape(self, entity: EntityModel, imports: Dict[str, Set[str]]) -> List[str]:
        name: str = entity.ident_with("", "Response")
        fields: List[FieldModel] = entity.response_fields()
        imports.setdefault("pydantic", set()).add("ConfigDict")
        lines: List[str] = [f"class {name}(BaseModel):"]
        lines.extend(make_docstring(f"{entity.name} as returned to callers.", 1))
        lines.append("")
        lines.append(f"{_I}model_config = ConfigDict(from_attributes=True)")
        lines.append("")
        lines.extend(entity_field_lines(fields, imports))
        lines.append("")
        lines.extend(_from_entity_method(name, entity.name, fields))
        return lines

    def _projection_shape(
        self,
        entity: EntityModel,
        projection: ProjectionDef,
        imports: Dict[str, Set[str]],
    ) -> Optional[List[str]]:
        fields: List[FieldModel] = projection_fields(entity, projection)
        if not fields:
            return None
        name: str = projection.struct_name(entity.name)
        add_import(imports, "typing", "Any", "Mapping")

        lines: List[str] = [f"class {name}(BaseModel):"]
        lines.extend(
            make_docstring(
                f"{projection.name} projection of {entity.name}: "
                f"{', '.join(projection.fields)}.",
                1,
            )
        )
        lines.append("")
        lines.extend(entity_field_lines(fields, imports))
        lines.append("")
        lines.extend(_from_entity_method(name, entity.name, fields))
        lines.append("")
        lines.extend(_from_row_method(name, fields))
        return lines

    # ===================================================================
    # Entry point
    # ===================================================================

    def generate(self, entity: EntityModel) -> Dict[str, str]:
        """``entity.py`` and, when any shape exists, ``dto.py``."""
        files: Dict[str, str] = {"entity.py": self.generate_entity_module(entity)}
        dto: Optional[str] = self.generate_dto_module(entity)
        if dto is not None:
            files["dto.py"] = dto
        return files


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DtoGenerator",
    "field_declaration",
    "entity_field_lines",
    "projection_fields",
]

logger.debug("entitygen.dto loaded — %d public symbols.", len(__all__))
