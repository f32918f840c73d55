# File: entitygen/validators.py
"""
entitygen - Diagnostics & Entity Validators
=============================================
Diagnostic containers, the fatal error taxonomy and a **pure-function
validation pipeline** over built ``EntityModel`` instances.

The attribute extractor and the model builder report every fault into a
``ValidationResult`` so that all problems of one entity are shown at once.
The functions below add semantic checks that need the finished model
(duplicate names, filter kinds that do not suit a type, soft-delete
columns) and cross-entity checks over a whole document (relation targets,
duplicate tables).

Usage by downstream modules:
    from entitygen.validators import validate_entity, validate_document
    result = validate_entity(entity)
    result.merge(validate_document(entities, config))
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from entitygen.models import (
    EntityModel,
    FilterKind,
    GenerationConfig,
)
from entitygen.typemap import is_orderable, is_textual
from entitygen.utils import is_identifier, pluralize, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight diagnostic descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """
    Accumulates ``ValidationError`` instances produced by the extractor,
    the builder and the validators below.
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("info", code, message, context))

    def add_reference_issue(
        self,
        strict: bool,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Dangling references are warnings unless strict references are on."""
        if strict:
            self.add_error(code, message, context)
        else:
            self.add_warning(code, message, context)

    def merge(self, other: "ValidationResult") -> None:
        """Merge another result into this one."""
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def has_warnings(self) -> bool:
        return any(e.is_warning for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {
                "error": "❌",
                "warning": "⚠️",
                "info": "ℹ️",
            }.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            if item.context:
                for k, v in item.context.items():
                    lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------


class EntityDefinitionError(ValueError):
    """
    An entity declaration cannot be turned into a model.

    Carries every diagnostic gathered for the entity, so the message lists
    all faults rather than the first one found.
    """

    def __init__(self, entity_name: str, result: ValidationResult) -> None:
        self.entity_name: str = entity_name
        self.result: ValidationResult = result
        details: str = "; ".join(e.message for e in result.errors) or "unknown error"
        super().__init__(f"Entity '{entity_name}' is invalid: {details}")


class UnimplementedDialectError(NotImplementedError):
    """A dialect is declared but has no backend; raised at generation time."""

    def __init__(self, entity_name: str, dialect: str) -> None:
        self.entity_name: str = entity_name
        self.dialect: str = dialect
        super().__init__(
            f"Entity '{entity_name}': the '{dialect}' dialect has no backend. "
            f"Use dialect 'postgres' or set 'sql: trait' and disable migrations."
        )


# ---------------------------------------------------------------------------
# Reserved words
# ---------------------------------------------------------------------------

# SQL reserved words that need quoting when used as column names
_SQL_RESERVED_WORDS: FrozenSet[str] = frozenset(
    {
        "select", "insert", "update", "delete", "drop", "create", "alter",
        "table", "column", "index", "from", "where", "join", "inner",
        "outer", "left", "right", "on", "and", "or", "not", "null",
        "true", "false", "in", "between", "like", "is", "as", "order",
        "by", "group", "having", "limit", "offset", "union", "all",
        "distinct", "case", "when", "then", "else", "end", "exists",
        "primary", "foreign", "key", "references", "constraint", "check",
        "default", "unique", "cascade", "set", "values", "into",
        "grant", "revoke", "user", "role", "schema", "with",
    }
)

# Names the generated pydantic models cannot use as fields
_MODEL_RESERVED_NAMES: FrozenSet[str] = frozenset(
    {"model_config", "model_fields", "model_computed_fields", "model_extra"}
)


# ---------------------------------------------------------------------------
# Entity validators
# ---------------------------------------------------------------------------


def validate_field_names(entity: EntityModel) -> ValidationResult:
    """
    Validate every field name and column name of one entity:
    - Valid Python identifier
    - No duplicates (field names and resolved column names)
    - No clash with pydantic's reserved attribute names
    - SQL reserved words reported as warnings
    """
    result: ValidationResult = ValidationResult()
    seen_fields: Set[str] = set()
    seen_columns: Set[str] = set()

    for field in entity.fields:
        ctx: Dict[str, Any] = {"entity": entity.name, "field": field.name}

        if field.name in seen_fields:
            result.add_error(
                "DUPLICATE_FIELD_NAME",
                f"Field '{field.name}' is declared more than once on '{entity.name}'.",
                ctx,
            )
        seen_fields.add(field.name)

        if field.column_name in seen_columns:
            result.add_error(
                "DUPLICATE_COLUMN_NAME",
                f"Column '{field.column_name}' is used by more than one field "
                f"of '{entity.name}'.",
                ctx,
            )
        seen_columns.add(field.column_name)

        if not is_identifier(field.name):
            result.add_error(
                "INVALID_FIELD_NAME",
                f"Field '{field.name}' of '{entity.name}' is not a valid identifier.",
                ctx,
            )
            continue

        if field.name in _MODEL_RESERVED_NAMES or field.name.startswith("model_"):
            result.add_error(
                "FIELD_NAME_RESERVED",
                f"Field '{field.name}' of '{entity.name}' clashes with a "
                f"pydantic model attribute.",
                ctx,
            )

        if field.column_name.lower() in _SQL_RESERVED_WORDS:
            result.add_warning(
                "COLUMN_NAME_SQL_RESERVED",
                f"Column '{field.column_name}' of '{entity.name}' is a SQL "
                f"reserved word; statements will need quoting.",
                ctx,
            )

    return result


def validate_filters(entity: EntityModel) -> ValidationResult:
    """Pattern filters need text columns, range filters need ordered ones."""
    result: ValidationResult = ValidationResult()

    for field in entity.filter_fields():
        ctx: Dict[str, Any] = {
            "entity": entity.name,
            "field": field.name,
            "filter": field.filter.value,
        }
        if field.filter == FilterKind.LIKE and not is_textual(field.type):
            result.add_warning(
                "LIKE_FILTER_ON_NON_TEXT",
                f"Field '{field.name}' of '{entity.name}' uses a 'like' filter "
                f"but its type '{field.type.raw}' is not text.",
                ctx,
            )
        if field.filter == FilterKind.RANGE and not is_orderable(field.type):
            result.add_warning(
                "RANGE_FILTER_ON_UNORDERED",
                f"Field '{field.name}' of '{entity.name}' uses a 'range' filter "
                f"but its type '{field.type.raw}' has no natural ordering.",
                ctx,
            )

    return result


def validate_soft_delete(entity: EntityModel) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    if entity.soft_delete and "deleted_at" not in entity.column_names():
        result.add_warning(
            "SOFT_DELETE_COLUMN_MISSING",
            f"Entity '{entity.name}' enables soft_delete but has no 'deleted_at' "
            f"field; generated statements expect that column to exist.",
            {"entity": entity.name},
        )
    return result


def validate_commands(entity: EntityModel) -> ValidationResult:
    """Command names must be unique identifiers."""
    result: ValidationResult = ValidationResult()
    seen: Set[str] = set()

    for cmd in entity.commands:
        ctx: Dict[str, Any] = {"entity": entity.name, "command": cmd.name}
        if cmd.name in seen:
            result.add_error(
                "DUPLICATE_COMMAND",
                f"Command '{cmd.name}' is declared more than once on '{entity.name}'.",
                ctx,
            )
        seen.add(cmd.name)
        if not is_identifier(cmd.name):
            result.add_error(
                "INVALID_COMMAND_NAME",
                f"Command name '{cmd.name}' of '{entity.name}' is not a valid identifier.",
                ctx,
            )

    if entity.features.commands and not entity.commands:
        result.add_info(
            "COMMANDS_EMPTY",
            f"Entity '{entity.name}' enables commands but declares none.",
            {"entity": entity.name},
        )

    return result


def validate_indexes(entity: EntityModel) -> ValidationResult:
    """Index names (explicit or derived) must not collide within one table."""
    result: ValidationResult = ValidationResult()
    seen: Set[str] = set()

    names: List[str] = [f"idx_{entity.table}_{f.column_name}" for f in entity.indexed_fields()]
    names.extend(idx.name_or_default(entity.table) for idx in entity.indexes)

    for name in names:
        if name in seen:
            result.add_error(
                "DUPLICATE_INDEX_NAME",
                f"Index name '{name}' is produced more than once for "
                f"table '{entity.table}'.",
                {"entity": entity.name, "index": name},
            )
        seen.add(name)

    return result


def validate_projections(entity: EntityModel) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    seen: Set[str] = set()
    for proj in entity.projections:
        if proj.name in seen:
            result.add_error(
                "DUPLICATE_PROJECTION",
                f"Projection '{proj.name}' is declared more than once on "
                f"'{entity.name}'.",
                {"entity": entity.name, "projection": proj.name},
            )
        seen.add(proj.name)
    return result


# ---------------------------------------------------------------------------
# Cross-entity validators
# ---------------------------------------------------------------------------


def validate_relation_targets(
    entities: Sequence[EntityModel],
    strict: bool = False,
) -> ValidationResult:
    """
    Relation targets are type names of other entities.  A single entity
    cannot check them, so the check runs over the whole document:

    - Target absent from the document → ``RELATION_TARGET_UNKNOWN``
      (warning, error under strict references)
    - Target present but its table is not the pluralised snake name the
      generated lookups query → ``RELATION_TABLE_MISMATCH`` warning
    """
    result: ValidationResult = ValidationResult()
    by_name: Dict[str, EntityModel] = {e.name: e for e in entities}

    for entity in entities:
        targets: List[Tuple[str, str]] = [
            (f.storage.belongs_to or "", f.name) for f in entity.relation_fields()
        ]
        targets.extend((child, "has_many") for child in entity.has_many)

        for target, via in targets:
            ctx: Dict[str, Any] = {"entity": entity.name, "target": target, "via": via}
            other: Optional[EntityModel] = by_name.get(target)
            if other is None:
                result.add_reference_issue(
                    strict,
                    "RELATION_TARGET_UNKNOWN",
                    f"Entity '{entity.name}' refers to '{target}' (via {via}), "
                    f"which is not declared in this document.",
                    ctx,
                )
                continue
            expected_table: str = pluralize(to_snake_case(target))
            if other.table != expected_table:
                result.add_warning(
                    "RELATION_TABLE_MISMATCH",
                    f"Relation lookups from '{entity.name}' query table "
                    f"'{expected_table}', but '{target}' is stored in "
                    f"'{other.table}'.",
                    ctx,
                )

    return result


def validate_unique_entities(entities: Sequence[EntityModel]) -> ValidationResult:
    """Entity names and qualified table names must be unique per document."""
    result: ValidationResult = ValidationResult()
    seen_names: Set[str] = set()
    seen_tables: Set[str] = set()

    for entity in entities:
        if entity.name in seen_names:
            result.add_error(
                "DUPLICATE_ENTITY_NAME",
                f"Entity '{entity.name}' is declared more than once.",
                {"entity": entity.name},
            )
        seen_names.add(entity.name)

        if entity.full_table_name in seen_tables:
            result.add_error(
                "DUPLICATE_TABLE_NAME",
                f"Table '{entity.full_table_name}' is used by more than one entity.",
                {"entity": entity.name, "table": entity.full_table_name},
            )
        seen_tables.add(entity.full_table_name)

    return result


# ---------------------------------------------------------------------------
# Composite pipelines
# ---------------------------------------------------------------------------


def validate_entity(entity: EntityModel) -> ValidationResult:
    """Run all single-entity validators and merge their results."""
    result: ValidationResult = ValidationResult()

    validators: List[Callable[[EntityModel], ValidationResult]] = [
        validate_field_names,
        validate_filters,
        validate_soft_delete,
        validate_commands,
        validate_indexes,
        validate_projections,
    ]

    for validator_fn in validators:
        logger.debug("Running validator: %s on %s", validator_fn.__name__, entity.name)
        result.merge(validator_fn(entity))

    return result


def validate_document(
    entities: Sequence[EntityModel],
    config: GenerationConfig,
) -> ValidationResult:
    """
    **Cross-entity validation entry point.**

    Runs after every entity of a document has been built; the per-entity
    checks have already been merged by the builder.
    """
    logger.info("Validating %d entities as a document.", len(entities))

    result: ValidationResult = ValidationResult()
    result.merge(validate_unique_entities(entities))
    result.merge(validate_relation_targets(entities, strict=config.strict_references))

    if result.has_errors:
        logger.error(
            "Document validation FAILED with %d error(s). %s",
            result.error_count,
            result.summary(),
        )
    else:
        logger.info("Document validation PASSED. %s", result.summary())

    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "EntityDefinitionError",
    "UnimplementedDialectError",
    "validate_field_names",
    "validate_filters",
    "validate_soft_delete",
    "validate_commands",
    "validate_indexes",
    "validate_projections",
    "validate_relation_targets",
    "validate_unique_entities",
    "validate_entity",
    "validate_document",
]

logger.debug("entitygen.validators loaded — %d public symbols.", len(__all__))
