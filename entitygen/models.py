# File: entitygen/models.py
"""
entitygen - Core Data Models
==============================
Pydantic V2 models for the whole pipeline:

    Raw annotation tree → typed fragments → EntityModel → generator backends

``RawEntity`` / ``RawField`` mirror the input document verbatim (annotations
are still an untyped key/value tree).  ``EntityModel`` is the canonical,
validated and frozen representation that every generator reads.  Nothing in
this module mutates a model after construction; all field categorisation
views are pure functions of the frozen state.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.models")

# ---------------------------------------------------------------------------
# Enums: fixed vocabularies of the annotation language
# ---------------------------------------------------------------------------


class Dialect(str, Enum):
    """SQL dialect selector."""

    POSTGRES = "postgres"
    CLICKHOUSE = "clickhouse"
    MONGODB = "mongodb"


class UuidVersion(str, Enum):
    """Identifier generation strategy."""

    V7 = "v7"  # time-ordered
    V4 = "v4"  # random


class ReturningMode(str, Enum):
    """What is read back after an INSERT / UPDATE."""

    FULL = "full"
    ID = "id"
    NONE = "none"


class SqlLevel(str, Enum):
    """How much of the repository layer is generated."""

    FULL = "full"
    TRAIT = "trait"
    NONE = "none"


class FilterKind(str, Enum):
    """Query condition a field may participate in."""

    NONE = "none"
    EQ = "eq"
    LIKE = "like"
    RANGE = "range"


class IndexKind(str, Enum):
    """Postgres index access methods."""

    BTREE = "btree"
    HASH = "hash"
    GIN = "gin"
    GIST = "gist"
    BRIN = "brin"

    @property
    def using_clause(self) -> str:
        """`` USING <method>`` fragment; btree is the server default."""
        if self is IndexKind.BTREE:
            return ""
        return f" USING {self.value}"


class ReferentialAction(str, Enum):
    """Foreign-key ON DELETE behaviour."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"

    @classmethod
    def from_str(cls, value: str) -> Optional["ReferentialAction"]:
        """Case, underscore and whitespace tolerant lookup."""
        normalised: str = " ".join(value.replace("_", " ").split()).upper()
        for member in cls:
            if member.value == normalised:
                return member
        return None


class CommandSource(str, Enum):
    """Where a command payload takes its fields from."""

    CREATE = "create"
    UPDATE = "update"
    FIELDS = "fields"
    CUSTOM = "custom"
    NONE = "none"


class CommandKind(str, Enum):
    """Inferred or explicit nature of a command."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    CUSTOM = "custom"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)

_RAW_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="ignore",
)


# ---------------------------------------------------------------------------
# Field-level fragments
# ---------------------------------------------------------------------------


class TypeRef(BaseModel):
    """
    Parsed semantic type of a field.

    ``base`` is the canonical semantic name (``uuid``, ``string``, ``i32`` …)
    or the verbatim name of an unknown custom type (``known`` is then False).
    """

    model_config = _FROZEN_CONFIG

    raw: str = Field(..., min_length=1, description="Type text as written.")
    base: str = Field(..., min_length=1, description="Canonical base type.")
    nullable: bool = Field(default=False, description="Wrapped in Option<>.")
    array_dim: int = Field(default=0, ge=0, description="Number of Vec<> wrappers.")
    known: bool = Field(default=True, description="Base is a recognised type.")

    def __repr__(self) -> str:
        return f"<TypeRef {self.raw}>"


class ExposeConfig(BaseModel):
    """Which DTOs a field appears in."""

    model_config = _FROZEN_CONFIG

    create: bool = False
    update: bool = False
    response: bool = False
    skip: bool = False


class StorageConfig(BaseModel):
    """Identity, generation and relation markers."""

    model_config = _FROZEN_CONFIG

    is_id: bool = False
    is_auto: bool = False
    belongs_to: Optional[str] = Field(
        default=None, description="Parent entity type name."
    )
    on_delete: Optional[ReferentialAction] = None


class ColumnConfig(BaseModel):
    """Migration hints for a single column."""

    model_config = _FROZEN_CONFIG

    unique: bool = False
    index: Optional[IndexKind] = None
    default: Optional[str] = Field(default=None, description="DEFAULT expression.")
    check: Optional[str] = Field(default=None, description="CHECK expression.")
    varchar: Optional[int] = Field(default=None, ge=1, description="VARCHAR width.")
    sql_type: Optional[str] = Field(default=None, description="Explicit SQL type.")
    nullable: bool = False
    name: Optional[str] = Field(default=None, description="Column name override.")


class FieldModel(BaseModel):
    """One entity attribute with every extracted fragment attached."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1)
    type: TypeRef
    doc: Optional[str] = None
    expose: ExposeConfig = Field(default_factory=ExposeConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    filter: FilterKind = FilterKind.NONE
    column: ColumnConfig = Field(default_factory=ColumnConfig)

    @property
    def is_id(self) -> bool:
        return self.storage.is_id

    @property
    def is_auto(self) -> bool:
        return self.storage.is_auto

    @property
    def is_relation(self) -> bool:
        return self.storage.belongs_to is not None

    @property
    def is_nullable(self) -> bool:
        return self.type.nullable or self.column.nullable

    @property
    def column_name(self) -> str:
        return self.column.name or self.name

    @property
    def in_create(self) -> bool:
        """``skip`` wins over every other exposure flag."""
        return not self.expose.skip and self.expose.create

    @property
    def in_update(self) -> bool:
        return not self.expose.skip and self.expose.update

    @property
    def in_response(self) -> bool:
        return not self.expose.skip and (self.expose.response or self.is_id)

    def __repr__(self) -> str:
        flags: str = " ID" if self.is_id else ""
        return f"<Field {self.name}: {self.type.raw}{flags}>"


# ---------------------------------------------------------------------------
# Entity-level fragments
# ---------------------------------------------------------------------------


class CompositeIndexDef(BaseModel):
    """Multi-column index declared at entity level."""

    model_config = _FROZEN_CONFIG

    name: Optional[str] = None
    columns: Tuple[str, ...] = Field(..., min_length=1)
    index_type: IndexKind = IndexKind.BTREE
    unique: bool = False
    where_clause: Optional[str] = None

    def name_or_default(self, table: str) -> str:
        return self.name or f"idx_{table}_{'_'.join(self.columns)}"


class ProjectionDef(BaseModel):
    """Named partial view over the entity's fields, in declared order."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1)
    fields: Tuple[str, ...] = ()

    def struct_name(self, entity_name: str) -> str:
        return f"{entity_name}{self.name}"


class CommandDef(BaseModel):
    """One CQRS command declaration."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1)
    source: CommandSource = CommandSource.CREATE
    fields: Tuple[str, ...] = ()
    payload_type: Optional[str] = None
    requires_id: bool = False
    kind: CommandKind = CommandKind.CREATE
    result_type: Optional[str] = None
    security: Optional[str] = None

    @model_validator(mode="after")
    def _custom_source_has_payload(self) -> "CommandDef":
        if self.source == CommandSource.CUSTOM and not self.payload_type:
            raise ValueError(
                f"Command '{self.name}' uses a custom source without a payload type."
            )
        return self

    @property
    def uses_custom_payload(self) -> bool:
        return self.source == CommandSource.CUSTOM

    def struct_name(self, entity_name: str) -> str:
        """Payload class name, e.g. ``RegisterUser``."""
        return f"{self.name}{entity_name}"

    def payload_name(self, entity_name: str) -> str:
        """Type carried by the command variant."""
        if self.uses_custom_payload and self.payload_type:
            return self.payload_type
        return self.struct_name(entity_name)

    def handler_method_name(self) -> str:
        from entitygen.utils import to_snake_case

        return f"handle_{to_snake_case(self.name)}"

    def result_type_for(self, entity_name: str) -> Optional[str]:
        """
        Result carried by the result variant; ``None`` means no value.

        An explicit override always wins.  Create/Update yield the entity,
        Delete yields nothing, Custom yields nothing when an external
        payload is used and the entity otherwise.
        """
        if self.result_type:
            return self.result_type
        if self.kind in (CommandKind.CREATE, CommandKind.UPDATE):
            return entity_name
        if self.kind == CommandKind.DELETE:
            return None
        if self.uses_custom_payload:
            return None
        return entity_name


class ApiConfig(BaseModel):
    """HTTP exposure settings; carried on the model for API layers."""

    model_config = _FROZEN_CONFIG

    tag: Optional[str] = None
    path_prefix: Optional[str] = None
    security: Optional[str] = None
    handlers: Union[bool, Tuple[str, ...]] = False
    title: Optional[str] = None
    version: Optional[str] = None


class FeatureFlags(BaseModel):
    """Optional artifact families."""

    model_config = _FROZEN_CONFIG

    events: bool = False
    hooks: bool = False
    commands: bool = False
    policy: bool = False
    streams: bool = False
    transactions: bool = False
    migrations: bool = False


# ---------------------------------------------------------------------------
# EntityModel: canonical model consumed by every backend
# ---------------------------------------------------------------------------


class EntityModel(BaseModel):
    """
    Complete, validated representation of one entity.

    Invariant: exactly one field carries the identifier marker and
    ``id_index`` points at it.  Every categorisation view below is a pure
    function of the frozen state, so backends may call them repeatedly and
    independently.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Entity type name.")
    visibility: str = Field(default="pub")
    doc: Optional[str] = None
    table: str = Field(..., min_length=1)
    schema_name: str = Field(default="public", min_length=1)
    dialect: Dialect = Dialect.POSTGRES
    uuid_version: UuidVersion = UuidVersion.V7
    error_type: Optional[str] = Field(
        default=None, description="Dotted path of a custom exception class."
    )
    fields: Tuple[FieldModel, ...] = Field(..., min_length=1)
    id_index: int = Field(..., ge=0)
    soft_delete: bool = False
    returning: ReturningMode = ReturningMode.FULL
    sql_level: SqlLevel = SqlLevel.FULL
    has_many: Tuple[str, ...] = ()
    projections: Tuple[ProjectionDef, ...] = ()
    indexes: Tuple[CompositeIndexDef, ...] = ()
    commands: Tuple[CommandDef, ...] = ()
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @model_validator(mode="after")
    def _exactly_one_identifier(self) -> "EntityModel":
        ids: List[int] = [i for i, f in enumerate(self.fields) if f.is_id]
        if len(ids) != 1:
            raise ValueError(
                f"Entity '{self.name}' must have exactly one identifier field, "
                f"found {len(ids)}."
            )
        if ids[0] != self.id_index:
            raise ValueError(
                f"Entity '{self.name}': id_index {self.id_index} does not point "
                f"at the identifier field (index {ids[0]})."
            )
        return self

    # -- Naming -------------------------------------------------------------

    @computed_field  # type: ignore[misc]
    @property
    def full_table_name(self) -> str:
        return f"{self.schema_name}.{self.table}"

    @computed_field  # type: ignore[misc]
    @property
    def snake_name(self) -> str:
        from entitygen.utils import to_snake_case

        return to_snake_case(self.name)

    def ident_with(self, prefix: str, suffix: str) -> str:
        """``ident_with("Create", "Request")`` → ``CreateUserRequest``."""
        return f"{prefix}{self.name}{suffix}"

    # -- Field categorisation views ----------------------------------------

    def all_fields(self) -> Tuple[FieldModel, ...]:
        return self.fields

    def id_field(self) -> FieldModel:
        return self.fields[self.id_index]

    def get_field(self, name: str) -> Optional[FieldModel]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def create_fields(self) -> List[FieldModel]:
        """Fields accepted on creation; identifier and auto fields never are."""
        return [f for f in self.fields if f.in_create and not f.is_id and not f.is_auto]

    def update_fields(self) -> List[FieldModel]:
        return [f for f in self.fields if f.in_update and not f.is_id and not f.is_auto]

    def response_fields(self) -> List[FieldModel]:
        """Fields returned to callers; the identifier is always present."""
        return [f for f in self.fields if f.in_response]

    def filter_fields(self) -> List[FieldModel]:
        return [f for f in self.fields if f.filter != FilterKind.NONE]

    def auto_fields(self) -> List[FieldModel]:
        return [f for f in self.fields if f.is_auto]

    def relation_fields(self) -> List[FieldModel]:
        return [f for f in self.fields if f.is_relation]

    def indexed_fields(self) -> List[FieldModel]:
        return [f for f in self.fields if f.column.index is not None]

    def column_names(self) -> List[str]:
        return [f.column_name for f in self.fields]

    # -- Feature predicates -------------------------------------------------

    def has_filters(self) -> bool:
        return bool(self.filter_fields())

    def has_repository(self) -> bool:
        return self.sql_level != SqlLevel.NONE

    def has_backend(self) -> bool:
        return self.sql_level == SqlLevel.FULL

    def has_commands(self) -> bool:
        return self.features.commands and bool(self.commands)

    def __repr__(self) -> str:
        return (
            f"<EntityModel {self.name} → {self.full_table_name} "
            f"({len(self.fields)} fields)>"
        )


# ---------------------------------------------------------------------------
# Raw input: the annotation tree as it arrives from JSON / YAML
# ---------------------------------------------------------------------------


class RawField(BaseModel):
    """A field declaration with its untyped annotation mapping."""

    model_config = _RAW_CONFIG

    name: Optional[str] = None
    type: str = Field(..., min_length=1)
    doc: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("attributes", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class RawEntity(BaseModel):
    """A type declaration with its untyped annotation mapping."""

    model_config = _RAW_CONFIG

    name: str = Field(..., min_length=1)
    kind: str = Field(default="struct", description="struct | enum | union.")
    shape: str = Field(default="named", description="named | tuple | unit.")
    visibility: str = "pub"
    doc: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    fields: Optional[List[RawField]] = None

    @field_validator("attributes", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v


# ---------------------------------------------------------------------------
# Generation configuration
# ---------------------------------------------------------------------------


class GenerationConfig(BaseModel):
    """Settings shared by every entity in one generation run."""

    model_config = ConfigDict(
        strict=False,
        populate_by_name=True,
        validate_assignment=True,
        frozen=False,
        extra="forbid",
    )

    project_name: str = Field(default="entities", min_length=1, max_length=128)
    project_version: str = Field(default="0.1.0")
    package_name: str = Field(
        default="generated", description="Root package of the generated code."
    )
    runtime_module: str = Field(
        default="entitygen.runtime",
        description="Module generated code imports its support types from.",
    )
    migrations_dir: str = Field(default="migrations")
    strict_references: bool = Field(
        default=False,
        description="Fail on dangling field / relation references instead of warning.",
    )
    generate_manifest: bool = Field(default=True)

    @field_validator("package_name")
    @classmethod
    def _package_is_identifier(cls, v: str) -> str:
        from entitygen.utils import is_identifier

        if not is_identifier(v):
            raise ValueError(f"package_name '{v}' is not a valid Python identifier.")
        return v


class EntityDocument(BaseModel):
    """Root of an input file: configuration plus entity declarations."""

    model_config = _RAW_CONFIG

    config: GenerationConfig = Field(default_factory=GenerationConfig)
    entities: List[RawEntity] = Field(..., min_length=1)
    source_file: Optional[str] = None


# ---------------------------------------------------------------------------
# Generated output
# ---------------------------------------------------------------------------


class GeneratedArtifact(BaseModel):
    """A single emitted file, path relative to the output root."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1)
    content: str
    entity: str = Field(..., description="Entity the artifact belongs to.")
    kind: str = Field(..., description="Backend that produced it, e.g. 'dto'.")

    @computed_field  # type: ignore[misc]
    @property
    def line_count(self) -> int:
        return self.content.count("\n") + (
            1 if self.content and not self.content.endswith("\n") else 0
        )

    @computed_field  # type: ignore[misc]
    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))

    def __repr__(self) -> str:
        return f"<Artifact {self.path} ({self.kind})>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Dialect",
    "UuidVersion",
    "ReturningMode",
    "SqlLevel",
    "FilterKind",
    "IndexKind",
    "ReferentialAction",
    "CommandSource",
    "CommandKind",
    "TypeRef",
    "ExposeConfig",
    "StorageConfig",
    "ColumnConfig",
    "FieldModel",
    "CompositeIndexDef",
    "ProjectionDef",
    "CommandDef",
    "ApiConfig",
    "FeatureFlags",
    "EntityModel",
    "RawField",
    "RawEntity",
    "GenerationConfig",
    "EntityDocument",
    "GeneratedArtifact",
]

logger.debug("entitygen.models loaded — %d public symbols.", len(__all__))
