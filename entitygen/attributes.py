# File: entitygen/attributes.py
"""
entitygen - Attribute Extractor
=================================
Turns the raw annotation mappings attached to an entity and to each of its
fields into typed configuration fragments:

    entity level → table / schema / dialect / uuid / error / soft_delete /
                   returning / sql / feature flags / has_many /
                   projections / indexes / commands / api
    field level  → storage (id, auto, belongs_to), exposure, filter, column

Extraction never stops at the first problem.  Every malformed value is
recorded as an error in the caller's ``ValidationResult`` (attributed to the
entity, field or command it came from) and extraction carries on, so a
single build reports every fault of an entity at once.  Unknown keys are
ignored: they are logged at DEBUG and recorded as info-level diagnostics.

Relation targets (``belongs_to``, ``has_many``) are kept as plain type
names.  Whether they exist is a document-level question answered by
``entitygen.validators.validate_relation_targets``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from entitygen.models import (
    ApiConfig,
    ColumnConfig,
    CommandDef,
    CommandKind,
    CommandSource,
    CompositeIndexDef,
    Dialect,
    ExposeConfig,
    FeatureFlags,
    FilterKind,
    IndexKind,
    ProjectionDef,
    ReferentialAction,
    ReturningMode,
    SqlLevel,
    StorageConfig,
    UuidVersion,
)
from entitygen.validators import ValidationResult

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.attributes")

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

_FEATURE_KEYS: Tuple[str, ...] = (
    "events",
    "hooks",
    "commands",
    "policy",
    "streams",
    "transactions",
    "migrations",
)

_ENTITY_KEYS: Tuple[str, ...] = (
    "table",
    "schema",
    "dialect",
    "uuid",
    "error",
    "soft_delete",
    "returning",
    "sql",
    "has_many",
    "projections",
    "indexes",
    "api",
)

_FIELD_KEYS: Tuple[str, ...] = ("id", "auto", "field", "filter", "belongs_to", "column")

_EXPOSURE_NAMES: Tuple[str, ...] = ("create", "update", "response", "skip")

_COMMAND_OPTIONS: Tuple[str, ...] = (
    "name",
    "fields",
    "requires_id",
    "source",
    "payload",
    "result",
    "kind",
    "security",
)

_INDEX_KEYS: Tuple[str, ...] = ("columns", "name", "type", "unique", "where")

_COLUMN_KEYS: Tuple[str, ...] = (
    "unique",
    "index",
    "default",
    "check",
    "varchar",
    "sql_type",
    "nullable",
    "name",
)

_API_KEYS: Tuple[str, ...] = ("tag", "path_prefix", "security", "handlers", "title", "version")

_DOTTED_PATH_RE: re.Pattern[str] = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$"
)
_NAME_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_E = TypeVar("_E", bound=Enum)


# ---------------------------------------------------------------------------
# Fragment containers
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class EntityAttributes:
    """Typed entity-level fragments, defaults already applied."""

    table: Optional[str] = None
    schema_name: str = "public"
    dialect: Dialect = Dialect.POSTGRES
    uuid_version: UuidVersion = UuidVersion.V7
    error_type: Optional[str] = None
    soft_delete: bool = False
    returning: ReturningMode = ReturningMode.FULL
    sql_level: SqlLevel = SqlLevel.FULL
    has_many: Tuple[str, ...] = ()
    projections: Tuple[ProjectionDef, ...] = ()
    indexes: Tuple[CompositeIndexDef, ...] = ()
    commands: Tuple[CommandDef, ...] = ()
    features: FeatureFlags = field(default_factory=FeatureFlags)
    api: ApiConfig = field(default_factory=ApiConfig)


@dataclass(frozen=False, slots=True)
class FieldAttributes:
    """Typed field-level fragments."""

    expose: ExposeConfig = field(default_factory=ExposeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    filter: FilterKind = FilterKind.NONE
    column: ColumnConfig = field(default_factory=ColumnConfig)


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------


class _Site:
    """Where a value came from, for diagnostics."""

    __slots__ = ("label", "context")

    def __init__(self, label: str, context: Dict[str, Any]) -> None:
        self.label: str = label
        self.context: Dict[str, Any] = context

    def at(self, key: str) -> Dict[str, Any]:
        return {**self.context, "attribute": key}


def _parse_flag(
    value: Any, key: str, site: _Site, result: ValidationResult
) -> Optional[bool]:
    """A bare key (``soft_delete:`` with no value) counts as ``true``."""
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    result.add_error(
        "INVALID_FLAG",
        f"{site.label}: '{key}' must be a boolean, got {value!r}.",
        site.at(key),
    )
    return None


def _parse_text(
    value: Any, key: str, site: _Site, result: ValidationResult
) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    result.add_error(
        "INVALID_ATTRIBUTE_VALUE",
        f"{site.label}: '{key}' must be a non-empty string, got {value!r}.",
        site.at(key),
    )
    return None


def _parse_name(
    value: Any, key: str, site: _Site, result: ValidationResult
) -> Optional[str]:
    text: Optional[str] = _parse_text(value, key, site, result)
    if text is None:
        return None
    if not _NAME_RE.match(text):
        result.add_error(
            "INVALID_ATTRIBUTE_VALUE",
            f"{site.label}: '{key}' value '{text}' is not a valid identifier.",
            site.at(key),
        )
        return None
    return text


def _parse_name_list(
    value: Any, key: str, site: _Site, result: ValidationResult
) -> Optional[Tuple[str, ...]]:
    """A single name or a list of names."""
    items: List[Any] = [value] if isinstance(value, str) else value
    if not isinstance(items, list):
        result.add_error(
            "INVALID_ATTRIBUTE_VALUE",
            f"{site.label}: '{key}' must be a name or a list of names, got {value!r}.",
            site.at(key),
        )
        return None
    names: List[str] = []
    for item in items:
        name: Optional[str] = _parse_name(item, key, site, result)
        if name is None:
            return None
        names.append(name)
    return tuple(names)


def _parse_choice(
    enum_cls: Type[_E],
    value: Any,
    key: str,
    code: str,
    site: _Site,
    result: ValidationResult,
) -> Optional[_E]:
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    choices: str = ", ".join(str(m.value) for m in enum_cls)
    result.add_error(
        code,
        f"{site.label}: invalid {key} {value!r}, expected one of: {choices}.",
        site.at(key),
    )
    return None


def _note_unknown(
    mapping: Mapping[str, Any],
    known: Tuple[str, ...],
    site: _Site,
    result: ValidationResult,
) -> None:
    for key in mapping:
        if key not in known:
            logger.debug("%s: ignoring unknown attribute '%s'.", site.label, key)
            result.add_info(
                "UNKNOWN_ATTRIBUTE",
                f"{site.label}: unknown attribute '{key}' ignored.",
                site.at(str(key)),
            )


# ---------------------------------------------------------------------------
# Entity-level extraction
# ---------------------------------------------------------------------------


def _extract_projections(
    value: Any, site: _Site, result: ValidationResult
) -> Tuple[ProjectionDef, ...]:
    if not isinstance(value, Mapping):
        result.add_error(
            "INVALID_PROJECTION",
            f"{site.label}: 'projections' must map projection names to field lists.",
            site.at("projections"),
        )
        return ()

    projections: List[ProjectionDef] = []
    for name, fields in value.items():
        proj_site: _Site = _Site(
            f"{site.label} projection '{name}'", {**site.context, "projection": name}
        )
        if not isinstance(name, str) or not _NAME_RE.match(name):
            result.add_error(
                "INVALID_PROJECTION",
                f"{site.label}: projection name {name!r} is not a valid identifier.",
                site.at("projections"),
            )
            continue
        names: Optional[Tuple[str, ...]] = _parse_name_list(
            fields, "fields", proj_site, result
        )
        if names is not None:
            projections.append(ProjectionDef(name=name, fields=names))
    return tuple(projections)


def _extract_index(
    value: Any, position: int, site: _Site, result: ValidationResult
) -> Optional[CompositeIndexDef]:
    idx_site: _Site = _Site(
        f"{site.label} index #{position + 1}", {**site.context, "index": position}
    )
    if not isinstance(value, Mapping):
        result.add_error(
            "INVALID_INDEX",
            f"{idx_site.label}: must be a mapping with at least 'columns'.",
            idx_site.context,
        )
        return None
    _note_unknown(value, _INDEX_KEYS, idx_site, result)

    columns: Optional[Tuple[str, ...]] = None
    if "columns" not in value:
        result.add_error(
            "INVALID_INDEX",
            f"{idx_site.label}: 'columns' is required.",
            idx_site.context,
        )
    else:
        columns = _parse_name_list(value["columns"], "columns", idx_site, result)
        if columns is not None and not columns:
            result.add_error(
                "INVALID_INDEX",
                f"{idx_site.label}: 'columns' must not be empty.",
                idx_site.context,
            )
            columns = None

    index_type: Optional[IndexKind] = IndexKind.BTREE
    if "type" in value:
        index_type = _parse_choice(
            IndexKind, value["type"], "type", "INVALID_INDEX_TYPE", idx_site, result
        )
    unique: Optional[bool] = False
    if "unique" in value:
        unique = _parse_flag(value["unique"], "unique", idx_site, result)
    name: Optional[str] = None
    if value.get("name") is not None:
        name = _parse_name(value["name"], "name", idx_site, result)
    where: Optional[str] = None
    if value.get("where") is not None:
        where = _parse_text(value["where"], "where", idx_site, result)

    if columns is None or index_type is None or unique is None:
        return None
    return CompositeIndexDef(
        name=name,
        columns=columns,
        index_type=index_type,
        unique=unique,
        where_clause=where,
    )


def extract_command(
    value: Any,
    site_label: str,
    context: Dict[str, Any],
    result: ValidationResult,
) -> Optional[CommandDef]:
    """
    Parse one command declaration.

    A bare name is a create command fed by the create fields.  Mapping
    options are applied in this order: ``fields``, ``source``, ``payload``,
    ``requires_id``, ``kind``, ``result``, ``security``, so an explicit
    ``kind`` always overrides the inferred one.
    """
    if isinstance(value, str):
        value = {"name": value}
    if not isinstance(value, Mapping):
        result.add_error(
            "INVALID_COMMAND",
            f"{site_label}: a command must be a name or a mapping, got {value!r}.",
            context,
        )
        return None

    faults_before: int = result.error_count
    raw_name: Any = value.get("name")
    cmd_label: str = f"{site_label} command '{raw_name}'"
    site: _Site = _Site(cmd_label, {**context, "command": raw_name})
    name: Optional[str] = _parse_name(raw_name, "name", site, result)

    for key in value:
        if key not in _COMMAND_OPTIONS:
            result.add_error(
                "INVALID_COMMAND_OPTION",
                f"{cmd_label}: unknown command option '{key}', expected: "
                f"{', '.join(_COMMAND_OPTIONS[1:])}.",
                site.at(str(key)),
            )

    source: CommandSource = CommandSource.CREATE
    kind: CommandKind = CommandKind.CREATE
    requires_id: bool = False
    fields: Tuple[str, ...] = ()
    payload: Optional[str] = None

    if "fields" in value:
        parsed: Optional[Tuple[str, ...]] = _parse_name_list(
            value["fields"], "fields", site, result
        )
        if parsed is not None and not parsed:
            result.add_error(
                "INVALID_COMMAND",
                f"{cmd_label}: 'fields' must name at least one field.",
                site.at("fields"),
            )
        elif parsed is not None:
            fields = parsed
            source = CommandSource.FIELDS
            requires_id = True
            kind = CommandKind.UPDATE

    if "source" in value:
        raw_source: Any = value["source"]
        if source == CommandSource.FIELDS:
            result.add_error(
                "INVALID_COMMAND",
                f"{cmd_label}: 'source' cannot be combined with 'fields'.",
                site.at("source"),
            )
        elif raw_source == "create":
            source = CommandSource.CREATE
        elif raw_source == "update":
            source = CommandSource.UPDATE
            requires_id = True
            kind = CommandKind.UPDATE
        elif raw_source == "none":
            source = CommandSource.NONE
        else:
            result.add_error(
                "INVALID_COMMAND_OPTION",
                f"{cmd_label}: source must be \"create\", \"update\", or \"none\", "
                f"got {raw_source!r}.",
                site.at("source"),
            )

    if "payload" in value:
        payload = _parse_text(value["payload"], "payload", site, result)
        if payload is not None and fields:
            result.add_error(
                "INVALID_COMMAND",
                f"{cmd_label}: 'payload' cannot be combined with 'fields'.",
                site.at("payload"),
            )
        elif payload is not None:
            source = CommandSource.CUSTOM
            kind = CommandKind.CUSTOM

    if "requires_id" in value:
        flag: Optional[bool] = _parse_flag(value["requires_id"], "requires_id", site, result)
        if flag:
            requires_id = True
            if source == CommandSource.CREATE:
                source = CommandSource.NONE
                kind = CommandKind.UPDATE

    if "kind" in value:
        parsed_kind: Optional[CommandKind] = _parse_choice(
            CommandKind, value["kind"], "kind", "INVALID_COMMAND_OPTION", site, result
        )
        if parsed_kind is not None:
            kind = parsed_kind

    result_type: Optional[str] = None
    if value.get("result") is not None:
        result_type = _parse_text(value["result"], "result", site, result)
    security: Optional[str] = None
    if value.get("security") is not None:
        security = _parse_text(value["security"], "security", site, result)

    if name is None or result.error_count > faults_before:
        return None

    return CommandDef(
        name=name,
        source=source,
        fields=fields,
        payload_type=payload,
        requires_id=requires_id,
        kind=kind,
        result_type=result_type,
        security=security,
    )


def _extract_api(value: Any, site: _Site, result: ValidationResult) -> ApiConfig:
    if not isinstance(value, Mapping):
        result.add_error(
            "INVALID_API",
            f"{site.label}: 'api' must be a mapping.",
            site.at("api"),
        )
        return ApiConfig()
    api_site: _Site = _Site(f"{site.label} api", site.context)
    _note_unknown(value, _API_KEYS, api_site, result)

    data: Dict[str, Any] = {}
    for key in ("tag", "path_prefix", "security", "title", "version"):
        if value.get(key) is not None:
            data[key] = _parse_text(str(value[key]), key, api_site, result)

    handlers: Any = value.get("handlers", False)
    if isinstance(handlers, bool):
        data["handlers"] = handlers
    elif handlers is None:
        data["handlers"] = True
    else:
        names: Optional[Tuple[str, ...]] = _parse_name_list(
            handlers, "handlers", api_site, result
        )
        data["handlers"] = names if names is not None else False

    return ApiConfig(**{k: v for k, v in data.items() if v is not None})


def extract_entity_attributes(
    entity_name: str,
    attrs: Mapping[str, Any],
    result: ValidationResult,
) -> EntityAttributes:
    """
    Extract every entity-level fragment from *attrs*.

    Faults are appended to *result*; the returned container holds defaults
    wherever a value was malformed.  A missing ``table`` is left as
    ``None`` for the builder to report.
    """
    site: _Site = _Site(f"Entity '{entity_name}'", {"entity": entity_name})
    out: EntityAttributes = EntityAttributes()
    _note_unknown(attrs, _ENTITY_KEYS + _FEATURE_KEYS, site, result)

    if "table" in attrs:
        out.table = _parse_name(attrs["table"], "table", site, result)
    if "schema" in attrs:
        out.schema_name = _parse_name(attrs["schema"], "schema", site, result) or "public"

    if "dialect" in attrs:
        dialect = _parse_choice(
            Dialect, attrs["dialect"], "dialect", "INVALID_DIALECT", site, result
        )
        out.dialect = dialect or Dialect.POSTGRES
    if "uuid" in attrs:
        version = _parse_choice(
            UuidVersion, attrs["uuid"], "uuid", "INVALID_UUID_VERSION", site, result
        )
        out.uuid_version = version or UuidVersion.V7
    if "returning" in attrs:
        mode = _parse_choice(
            ReturningMode, attrs["returning"], "returning", "INVALID_RETURNING", site, result
        )
        out.returning = mode or ReturningMode.FULL
    if "sql" in attrs:
        level = _parse_choice(
            SqlLevel, attrs["sql"], "sql", "INVALID_SQL_LEVEL", site, result
        )
        out.sql_level = level or SqlLevel.FULL

    if attrs.get("error") is not None:
        error_path: Optional[str] = _parse_text(attrs["error"], "error", site, result)
        if error_path is not None and not _DOTTED_PATH_RE.match(error_path):
            result.add_error(
                "INVALID_ERROR_TYPE",
                f"{site.label}: 'error' must be a dotted path such as "
                f"'app.errors.AppError', got '{error_path}'.",
                site.at("error"),
            )
        elif error_path is not None:
            out.error_type = error_path

    if "soft_delete" in attrs:
        out.soft_delete = bool(_parse_flag(attrs["soft_delete"], "soft_delete", site, result))

    # ``commands`` is either the flag itself or the list of declarations
    raw_commands: Any = attrs.get("commands")
    if isinstance(raw_commands, list):
        parsed_commands = (
            extract_command(v, site.label, site.at("commands"), result)
            for v in raw_commands
        )
        out.commands = tuple(c for c in parsed_commands if c is not None)

    flags: Dict[str, bool] = {}
    for key in _FEATURE_KEYS:
        if key == "commands" and isinstance(raw_commands, list):
            flags[key] = True
        elif key in attrs:
            flags[key] = bool(_parse_flag(attrs[key], key, site, result))
    out.features = FeatureFlags(**flags)

    if attrs.get("has_many") is not None:
        out.has_many = _parse_name_list(attrs["has_many"], "has_many", site, result) or ()

    if attrs.get("projections") is not None:
        out.projections = _extract_projections(attrs["projections"], site, result)

    if attrs.get("indexes") is not None:
        raw_indexes: Any = attrs["indexes"]
        if not isinstance(raw_indexes, list):
            result.add_error(
                "INVALID_INDEX",
                f"{site.label}: 'indexes' must be a list of index mappings.",
                site.at("indexes"),
            )
        else:
            parsed = (_extract_index(v, i, site, result) for i, v in enumerate(raw_indexes))
            out.indexes = tuple(idx for idx in parsed if idx is not None)

    if attrs.get("api") is not None:
        out.api = _extract_api(attrs["api"], site, result)

    logger.debug(
        "Extracted entity attributes for %s: table=%s dialect=%s features=%s",
        entity_name,
        out.table,
        out.dialect.value,
        out.features.model_dump(),
    )
    return out


# ---------------------------------------------------------------------------
# Field-level extraction
# ---------------------------------------------------------------------------


def _extract_exposure(
    value: Any, site: _Site, result: ValidationResult
) -> ExposeConfig:
    selected: Dict[str, bool] = {}

    if isinstance(value, str):
        value = [value]
    if isinstance(value, list):
        for item in value:
            if item not in _EXPOSURE_NAMES:
                result.add_error(
                    "INVALID_EXPOSURE",
                    f"{site.label}: unknown exposure {item!r}, expected one of: "
                    f"{', '.join(_EXPOSURE_NAMES)}.",
                    site.at("field"),
                )
                continue
            selected[item] = True
    elif isinstance(value, Mapping):
        for key, flag in value.items():
            if key not in _EXPOSURE_NAMES:
                result.add_error(
                    "INVALID_EXPOSURE",
                    f"{site.label}: unknown exposure {key!r}, expected one of: "
                    f"{', '.join(_EXPOSURE_NAMES)}.",
                    site.at("field"),
                )
                continue
            parsed: Optional[bool] = _parse_flag(flag, f"field.{key}", site, result)
            if parsed is not None:
                selected[key] = parsed
    else:
        result.add_error(
            "INVALID_EXPOSURE",
            f"{site.label}: 'field' must be a name, a list or a mapping, got {value!r}.",
            site.at("field"),
        )

    return ExposeConfig(**selected)


def _extract_filter(value: Any, site: _Site, result: ValidationResult) -> FilterKind:
    if value is None or value is True:
        return FilterKind.EQ
    if value is False:
        return FilterKind.NONE
    kind: Optional[FilterKind] = _parse_choice(
        FilterKind, value, "filter", "INVALID_FILTER", site, result
    )
    return kind or FilterKind.NONE


def _extract_relation(
    value: Any, site: _Site, result: ValidationResult
) -> Tuple[Optional[str], Optional[ReferentialAction]]:
    if isinstance(value, str):
        return _parse_name(value, "belongs_to", site, result), None
    if not isinstance(value, Mapping) or "entity" not in value:
        result.add_error(
            "INVALID_RELATION",
            f"{site.label}: 'belongs_to' must be an entity name or a mapping "
            f"with 'entity' and optional 'on_delete'.",
            site.at("belongs_to"),
        )
        return None, None

    target: Optional[str] = _parse_name(value["entity"], "belongs_to", site, result)
    action: Optional[ReferentialAction] = None
    if value.get("on_delete") is not None:
        raw_action: Any = value["on_delete"]
        action = ReferentialAction.from_str(raw_action) if isinstance(raw_action, str) else None
        if action is None:
            choices: str = ", ".join(a.value.lower() for a in ReferentialAction)
            result.add_error(
                "INVALID_ON_DELETE",
                f"{site.label}: invalid on_delete {raw_action!r}, expected one of: "
                f"{choices}.",
                site.at("on_delete"),
            )
    return target, action


def _render_default(value: Any) -> str:
    """YAML scalars → SQL DEFAULT expression text."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def _extract_column(value: Any, site: _Site, result: ValidationResult) -> ColumnConfig:
    if not isinstance(value, Mapping):
        result.add_error(
            "INVALID_COLUMN_HINT",
            f"{site.label}: 'column' must be a mapping of migration hints.",
            site.at("column"),
        )
        return ColumnConfig()
    col_site: _Site = _Site(f"{site.label} column", site.context)
    _note_unknown(value, _COLUMN_KEYS, col_site, result)

    data: Dict[str, Any] = {}
    for key in ("unique", "nullable"):
        if key in value:
            flag: Optional[bool] = _parse_flag(value[key], key, col_site, result)
            if flag is not None:
                data[key] = flag

    if "index" in value:
        raw_index: Any = value["index"]
        if raw_index is None or raw_index is True:
            data["index"] = IndexKind.BTREE
        elif raw_index is not False:
            data["index"] = _parse_choice(
                IndexKind, raw_index, "index", "INVALID_INDEX_TYPE", col_site, result
            )

    if value.get("default") is not None:
        data["default"] = _render_default(value["default"])
    if value.get("check") is not None:
        data["check"] = _parse_text(value["check"], "check", col_site, result)
    if value.get("sql_type") is not None:
        data["sql_type"] = _parse_text(value["sql_type"], "sql_type", col_site, result)
    if value.get("name") is not None:
        data["name"] = _parse_name(value["name"], "name", col_site, result)

    if "varchar" in value:
        width: Any = value["varchar"]
        if isinstance(width, bool) or not isinstance(width, int) or width < 1:
            result.add_error(
                "INVALID_COLUMN_HINT",
                f"{col_site.label}: 'varchar' must be a positive integer, got {width!r}.",
                col_site.at("varchar"),
            )
        else:
            data["varchar"] = width

    return ColumnConfig(**{k: v for k, v in data.items() if v is not None})


def extract_field_attributes(
    entity_name: str,
    field_name: str,
    attrs: Mapping[str, Any],
    result: ValidationResult,
) -> FieldAttributes:
    """Extract storage, exposure, filter and column fragments of one field."""
    site: _Site = _Site(
        f"Field '{entity_name}.{field_name}'",
        {"entity": entity_name, "field": field_name},
    )
    out: FieldAttributes = FieldAttributes()
    _note_unknown(attrs, _FIELD_KEYS, site, result)

    is_id: bool = bool(_parse_flag(attrs["id"], "id", site, result)) if "id" in attrs else False
    is_auto: bool = (
        bool(_parse_flag(attrs["auto"], "auto", site, result)) if "auto" in attrs else False
    )

    target: Optional[str] = None
    action: Optional[ReferentialAction] = None
    if "belongs_to" in attrs:
        target, action = _extract_relation(attrs["belongs_to"], site, result)

    out.storage = StorageConfig(
        is_id=is_id, is_auto=is_auto, belongs_to=target, on_delete=action
    )

    if "field" in attrs:
        out.expose = _extract_exposure(attrs["field"], site, result)
    if "filter" in attrs:
        out.filter = _extract_filter(attrs["filter"], site, result)
    if attrs.get("column") is not None:
        out.column = _extract_column(attrs["column"], site, result)

    return out


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "EntityAttributes",
    "FieldAttributes",
    "extract_entity_attributes",
    "extract_field_attributes",
    "extract_command",
]

logger.debug("entitygen.attributes loaded — %d public symbols.", len(__all__))
