# File: entitygen/builder.py
"""
entitygen - Semantic Model Builder
====================================
Assembles the typed fragments produced by ``entitygen.attributes`` into one
canonical, frozen ``EntityModel``.

Build order for one entity:

    1. Shape checks: the declaration must be a struct with named fields.
       These fail immediately; nothing else can be said about such input.
    2. Attribute extraction for the entity and every field.  Faults are
       aggregated, not raised one by one.
    3. Required configuration: a table name and exactly one identifier.
    4. Reference resolution: projection fields, index columns and command
       field lists naming absent fields are dropped with a warning (an
       error when ``strict_references`` is on).
    5. Model construction plus the post-build validators.

Any error after step 5 raises ``EntityDefinitionError`` carrying the whole
``ValidationResult``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, NoReturn, Optional, Sequence, Set, Tuple

from pydantic import ValidationError as PydanticValidationError

from entitygen.attributes import (
    EntityAttributes,
    FieldAttributes,
    extract_entity_attributes,
    extract_field_attributes,
)
from entitygen.models import (
    CommandDef,
    CompositeIndexDef,
    EntityModel,
    FieldModel,
    ProjectionDef,
    RawEntity,
    RawField,
    TypeRef,
)
from entitygen.typemap import parse_type
from entitygen.validators import EntityDefinitionError, ValidationResult, validate_entity

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.builder")


# ---------------------------------------------------------------------------
# Shape checks
# ---------------------------------------------------------------------------


def _check_shape(raw: RawEntity) -> None:
    """Reject sum types, positional fields and field-less declarations."""
    result: ValidationResult = ValidationResult()
    ctx: Dict[str, Any] = {"entity": raw.name, "kind": raw.kind, "shape": raw.shape}

    if raw.kind != "struct":
        result.add_error(
            "NOT_A_STRUCT",
            f"Entity '{raw.name}' must be a struct with named fields; "
            f"'{raw.kind}' declarations are not supported.",
            ctx,
        )
    elif raw.shape != "named" or raw.fields is None:
        result.add_error(
            "UNNAMED_FIELDS",
            f"Entity '{raw.name}' requires named fields; "
            f"{raw.shape} structs are not supported.",
            ctx,
        )
    elif not raw.fields:
        result.add_error(
            "NO_FIELDS",
            f"Entity '{raw.name}' declares no fields.",
            ctx,
        )
    else:
        for position, raw_field in enumerate(raw.fields):
            if not raw_field.name:
                result.add_error(
                    "UNNAMED_FIELDS",
                    f"Entity '{raw.name}': field #{position + 1} has no name; "
                    f"entity fields must be named.",
                    {**ctx, "position": position},
                )

    if result.has_errors:
        raise EntityDefinitionError(raw.name, result)


# ---------------------------------------------------------------------------
# Reference resolution
# ---------------------------------------------------------------------------


def _resolve_projections(
    entity_name: str,
    projections: Sequence[ProjectionDef],
    known: Set[str],
    strict: bool,
    result: ValidationResult,
) -> Tuple[ProjectionDef, ...]:
    resolved: List[ProjectionDef] = []
    for proj in projections:
        kept: List[str] = []
        for name in proj.fields:
            if name in known:
                kept.append(name)
                continue
            result.add_reference_issue(
                strict,
                "PROJECTION_FIELD_UNKNOWN",
                f"Projection '{proj.name}' of '{entity_name}' names unknown "
                f"field '{name}'; it is dropped.",
                {"entity": entity_name, "projection": proj.name, "field": name},
            )
        if not kept:
            result.add_warning(
                "PROJECTION_EMPTY",
                f"Projection '{proj.name}' of '{entity_name}' has no known "
                f"fields and will not be generated.",
                {"entity": entity_name, "projection": proj.name},
            )
            continue
        resolved.append(ProjectionDef(name=proj.name, fields=tuple(kept)))
    return tuple(resolved)


def _resolve_indexes(
    entity_name: str,
    indexes: Sequence[CompositeIndexDef],
    columns: Dict[str, str],
    strict: bool,
    result: ValidationResult,
) -> Tuple[CompositeIndexDef, ...]:
    """Index columns may be given as field names or column names."""
    resolved: List[CompositeIndexDef] = []
    for idx in indexes:
        kept: List[str] = []
        for name in idx.columns:
            if name in columns:
                kept.append(columns[name])
                continue
            result.add_reference_issue(
                strict,
                "INDEX_COLUMN_UNKNOWN",
                f"Index on '{entity_name}' ({', '.join(idx.columns)}) names "
                f"unknown column '{name}'; it is dropped.",
                {"entity": entity_name, "column": name},
            )
        if kept:
            resolved.append(idx.model_copy(update={"columns": tuple(kept)}))
    return tuple(resolved)


def _resolve_commands(
    entity_name: str,
    commands: Sequence[CommandDef],
    known: Set[str],
    strict: bool,
    result: ValidationResult,
) -> Tuple[CommandDef, ...]:
    resolved: List[CommandDef] = []
    for cmd in commands:
        missing: List[str] = [name for name in cmd.fields if name not in known]
        for name in missing:
            result.add_reference_issue(
                strict,
                "COMMAND_FIELD_UNKNOWN",
                f"Command '{cmd.name}' of '{entity_name}' names unknown field "
                f"'{name}'; it is dropped.",
                {"entity": entity_name, "command": cmd.name, "field": name},
            )
        if missing:
            cmd = cmd.model_copy(
                update={"fields": tuple(n for n in cmd.fields if n in known)}
            )
        resolved.append(cmd)
    return tuple(resolved)


# ---------------------------------------------------------------------------
# ModelBuilder
# ---------------------------------------------------------------------------


class ModelBuilder:
    """
    Builds ``EntityModel`` instances from raw declarations.

    Usage::

        builder = ModelBuilder(strict_references=False)
        entity, diagnostics = builder.build_with_diagnostics(raw_entity)

    The builder holds no per-entity state and can be reused.
    """

    def __init__(self, *, strict_references: bool = False) -> None:
        self._strict_references: bool = strict_references

    def build(self, raw: RawEntity) -> EntityModel:
        """Build *raw* and discard non-fatal diagnostics."""
        entity, _ = self.build_with_diagnostics(raw)
        return entity

    def build_with_diagnostics(
        self, raw: RawEntity
    ) -> Tuple[EntityModel, ValidationResult]:
        """
        Build *raw* and return the model with every warning gathered.

        Raises:
            EntityDefinitionError: On any error-level diagnostic.
        """
        _check_shape(raw)

        result: ValidationResult = ValidationResult()
        attrs: EntityAttributes = extract_entity_attributes(raw.name, raw.attributes, result)
        fields: List[FieldModel] = self._build_fields(raw, result)

        if attrs.table is None and "table" not in raw.attributes:
            result.add_error(
                "MISSING_TABLE",
                f"Entity '{raw.name}' requires a 'table' attribute.",
                {"entity": raw.name},
            )

        id_index: Optional[int] = self._find_identifier(raw, fields, result)

        known_fields: Set[str] = {f.name for f in fields}
        columns: Dict[str, str] = {f.name: f.column_name for f in fields}
        columns.update({f.column_name: f.column_name for f in fields})
        strict: bool = self._strict_references

        projections = _resolve_projections(
            raw.name, attrs.projections, known_fields, strict, result
        )
        indexes = _resolve_indexes(raw.name, attrs.indexes, columns, strict, result)
        commands = _resolve_commands(raw.name, attrs.commands, known_fields, strict, result)

        if result.has_errors or id_index is None or attrs.table is None:
            self._fail(raw.name, result)

        try:
            entity: EntityModel = EntityModel(
                name=raw.name,
                visibility=raw.visibility,
                doc=raw.doc,
                table=attrs.table,
                schema_name=attrs.schema_name,
                dialect=attrs.dialect,
                uuid_version=attrs.uuid_version,
                error_type=attrs.error_type,
                fields=tuple(fields),
                id_index=id_index,
                soft_delete=attrs.soft_delete,
                returning=attrs.returning,
                sql_level=attrs.sql_level,
                has_many=attrs.has_many,
                projections=projections,
                indexes=indexes,
                commands=commands,
                features=attrs.features,
                api=attrs.api,
            )
        except PydanticValidationError as exc:
            result.add_error(
                "MODEL_INVALID",
                f"Entity '{raw.name}' could not be assembled: {exc}",
                {"entity": raw.name},
            )
            self._fail(raw.name, result)

        result.merge(validate_entity(entity))
        if result.has_errors:
            self._fail(raw.name, result)

        for warning in result.warnings:
            logger.warning("  ⚠ %s", warning)
        logger.info(
            "Built %r: %d create / %d update / %d response / %d filter field(s).",
            entity,
            len(entity.create_fields()),
            len(entity.update_fields()),
            len(entity.response_fields()),
            len(entity.filter_fields()),
        )
        return entity, result

    # -----------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------

    def _build_fields(self, raw: RawEntity, result: ValidationResult) -> List[FieldModel]:
        fields: List[FieldModel] = []
        for raw_field in raw.fields or []:
            model: Optional[FieldModel] = self._build_field(raw.name, raw_field, result)
            if model is not None:
                fields.append(model)
        return fields

    @staticmethod
    def _build_field(
        entity_name: str, raw_field: RawField, result: ValidationResult
    ) -> Optional[FieldModel]:
        name: str = raw_field.name or ""
        frags: FieldAttributes = extract_field_attributes(
            entity_name, name, raw_field.attributes or {}, result
        )
        try:
            type_ref: TypeRef = parse_type(raw_field.type)
        except ValueError as exc:
            result.add_error(
                "INVALID_TYPE",
                f"Field '{entity_name}.{name}': {exc}",
                {"entity": entity_name, "field": name, "type": raw_field.type},
            )
            return None

        return FieldModel(
            name=name,
            type=type_ref,
            doc=raw_field.doc,
            expose=frags.expose,
            storage=frags.storage,
            filter=frags.filter,
            column=frags.column,
        )

    @staticmethod
    def _find_identifier(
        raw: RawEntity, fields: Sequence[FieldModel], result: ValidationResult
    ) -> Optional[int]:
        """Exactly one identifier; zero or several is always an error."""
        ids: List[int] = [i for i, f in enumerate(fields) if f.is_id]
        if len(ids) == 1:
            return ids[0]

        if not ids:
            result.add_error(
                "MISSING_ID",
                f"Entity '{raw.name}' has no identifier field; mark exactly "
                f"one field with 'id: true'.",
                {"entity": raw.name},
            )
        else:
            names: str = ", ".join(fields[i].name for i in ids)
            result.add_error(
                "MULTIPLE_IDS",
                f"Entity '{raw.name}' has {len(ids)} identifier fields ({names}); "
                f"exactly one is allowed.",
                {"entity": raw.name, "fields": names},
            )
        return None

    @staticmethod
    def _fail(entity_name: str, result: ValidationResult) -> NoReturn:
        for error in result.errors:
            logger.error("  ✗ %s", error)
        raise EntityDefinitionError(entity_name, result)


def build_entity(raw: RawEntity, *, strict_references: bool = False) -> EntityModel:
    """Convenience wrapper around ``ModelBuilder.build``."""
    return ModelBuilder(strict_references=strict_references).build(raw)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ModelBuilder",
    "build_entity",
]

logger.debug("entitygen.builder loaded — %d public symbols.", len(__all__))
