# File: entitygen/typemap.py
"""
entitygen - Semantic Type Mapping
===================================
Parses field type text (``Option<Vec<String>>``, ``DateTime<Utc>``,
``Optional[int]`` …) into a ``TypeRef`` and maps it to:

    * the Postgres column type used in DDL, and
    * the Python annotation (plus imports) used in generated code.

Both mappings are fixed tables; an explicit ``sql_type`` column hint
overrides the SQL side entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from entitygen.models import FieldModel, TypeRef

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.typemap")

# ---------------------------------------------------------------------------
# Type vocabulary
# ---------------------------------------------------------------------------

# Accepted spellings → canonical semantic base type
_TYPE_ALIASES: Dict[str, str] = {
    "uuid": "uuid", "Uuid": "uuid", "UUID": "uuid", "uuid::Uuid": "uuid",
    "string": "string", "String": "string", "str": "string", "text": "string",
    "i8": "i8", "i16": "i16", "i32": "i32", "i64": "i64",
    "u8": "u8", "u16": "u16", "u32": "u32", "u64": "u64",
    "int": "i64",
    "f32": "f32", "f64": "f64", "float": "f64",
    "bool": "bool",
    "datetime": "datetime", "DateTime": "datetime", "chrono::DateTime": "datetime",
    "date": "date", "NaiveDate": "date", "chrono::NaiveDate": "date",
    "time": "time", "NaiveTime": "time", "chrono::NaiveTime": "time",
    "naive_datetime": "naive_datetime", "NaiveDateTime": "naive_datetime",
    "chrono::NaiveDateTime": "naive_datetime",
    "json": "json", "Value": "json", "serde_json::Value": "json", "Json": "json",
    "decimal": "decimal", "Decimal": "decimal", "BigDecimal": "decimal",
    "ip": "ip", "IpAddr": "ip", "Ipv4Addr": "ip", "Ipv6Addr": "ip",
    "mac": "mac", "MacAddr": "mac",
    "bytes": "bytes", "Bytes": "bytes",
}

_NULLABLE_WRAPPERS: Tuple[str, ...] = ("Option", "Optional")
_ARRAY_WRAPPERS: Tuple[str, ...] = ("Vec", "List")

# Canonical base → Postgres type name
_PG_TYPES: Dict[str, str] = {
    "uuid": "UUID",
    "string": "TEXT",
    "i8": "SMALLINT",
    "i16": "SMALLINT",
    "i32": "INTEGER",
    "i64": "BIGINT",
    "u8": "SMALLINT",
    "u16": "INTEGER",
    "u32": "BIGINT",
    "u64": "BIGINT",
    "f32": "REAL",
    "f64": "DOUBLE PRECISION",
    "bool": "BOOLEAN",
    "datetime": "TIMESTAMPTZ",
    "date": "DATE",
    "time": "TIME",
    "naive_datetime": "TIMESTAMP",
    "json": "JSONB",
    "decimal": "DECIMAL",
    "ip": "INET",
    "mac": "MACADDR",
    "bytes": "BYTEA",
}

# Canonical base → (Python annotation, module to import it from)
_PY_TYPES: Dict[str, Tuple[str, Optional[str]]] = {
    "uuid": ("UUID", "uuid"),
    "string": ("str", None),
    "i8": ("int", None),
    "i16": ("int", None),
    "i32": ("int", None),
    "i64": ("int", None),
    "u8": ("int", None),
    "u16": ("int", None),
    "u32": ("int", None),
    "u64": ("int", None),
    "f32": ("float", None),
    "f64": ("float", None),
    "bool": ("bool", None),
    "datetime": ("datetime", "datetime"),
    "date": ("date", "datetime"),
    "time": ("time", "datetime"),
    "naive_datetime": ("datetime", "datetime"),
    "json": ("Any", "typing"),
    "decimal": ("Decimal", "decimal"),
    "ip": ("IPvAnyAddress", "pydantic"),
    "mac": ("str", None),
    "bytes": ("bytes", None),
}

# Canonical base → Python expression for the type's zero value
_PY_DEFAULTS: Dict[str, str] = {
    "uuid": "UUID(int=0)",
    "string": '""',
    "i8": "0", "i16": "0", "i32": "0", "i64": "0",
    "u8": "0", "u16": "0", "u32": "0", "u64": "0",
    "f32": "0.0", "f64": "0.0",
    "bool": "False",
    "datetime": "datetime.now(timezone.utc)",
    "naive_datetime": "datetime.now()",
    "date": "date.today()",
    "time": "time()",
    "json": "None",
    "decimal": 'Decimal("0")',
    "mac": '""',
    "bytes": 'b""',
}


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _split_generic(text: str) -> Tuple[str, Optional[str]]:
    """``Option<Vec<i32>>`` → (``Option``, ``Vec<i32>``); no args → (text, None)."""
    for open_ch, close_ch in (("<", ">"), ("[", "]")):
        start: int = text.find(open_ch)
        if start > 0 and text.endswith(close_ch):
            return text[:start].strip(), text[start + 1:-1].strip()
    return text.strip(), None


def parse_type(raw: str) -> TypeRef:
    """
    Parse a field type string.

    Raises:
        ValueError: If the text is empty or has unbalanced brackets.
    """
    text: str = raw.strip()
    if not text:
        raise ValueError("Field type must not be empty.")
    if text.count("<") != text.count(">") or text.count("[") != text.count("]"):
        raise ValueError(f"Unbalanced brackets in type '{raw}'.")

    nullable: bool = False
    array_dim: int = 0
    current: str = text

    while True:
        head, inner = _split_generic(current)
        last_segment: str = head.split("::")[-1]
        if inner is not None and last_segment in _NULLABLE_WRAPPERS:
            nullable = True
            current = inner
            continue
        if inner is not None and last_segment in _ARRAY_WRAPPERS:
            if _TYPE_ALIASES.get(inner) == "u8":
                current = "bytes"
                continue
            array_dim += 1
            current = inner
            continue
        # Generic arguments on a leaf type (DateTime<Utc>) carry no meaning here
        base_name: str = head
        break

    canonical: Optional[str] = _TYPE_ALIASES.get(base_name)
    if canonical is None:
        canonical = _TYPE_ALIASES.get(base_name.split("::")[-1])

    if canonical is None:
        logger.debug("Type '%s' is not a known semantic type; kept verbatim.", raw)
        return TypeRef(
            raw=text, base=base_name, nullable=nullable, array_dim=array_dim, known=False
        )

    return TypeRef(raw=text, base=canonical, nullable=nullable, array_dim=array_dim)


# ---------------------------------------------------------------------------
# SQL mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SqlType:
    """Resolved column type."""

    name: str
    nullable: bool = False
    array_dim: int = 0

    def to_sql(self) -> str:
        return f"{self.name}{'[]' * self.array_dim}"


def sql_type(field: FieldModel) -> SqlType:
    """
    Map a field to its Postgres column type.

    Unknown custom types fall back to TEXT.  ``column.varchar`` turns a
    string into ``VARCHAR(n)``; ``column.sql_type`` overrides everything
    and drops array dimensions.
    """
    nullable: bool = field.type.nullable or field.column.nullable

    if field.column.sql_type:
        return SqlType(name=field.column.sql_type, nullable=nullable)

    base: str = field.type.base
    if base == "string" and field.column.varchar:
        name: str = f"VARCHAR({field.column.varchar})"
    else:
        name = _PG_TYPES.get(base, "TEXT") if field.type.known else "TEXT"

    return SqlType(name=name, nullable=nullable, array_dim=field.type.array_dim)


# ---------------------------------------------------------------------------
# Python mapping
# ---------------------------------------------------------------------------


def python_type(
    type_ref: TypeRef,
    imports: Dict[str, Set[str]],
    *,
    optional: bool = False,
) -> str:
    """
    Python annotation for *type_ref*, registering required imports.

    Unknown custom types are annotated ``Any``.  *optional* forces an
    ``Optional[...]`` wrapper even when the type itself is not nullable.
    """
    annotation: str
    module: Optional[str]
    if type_ref.known:
        annotation, module = _PY_TYPES[type_ref.base]
    else:
        annotation, module = "Any", "typing"

    if module is not None:
        imports.setdefault(module, set()).add(annotation)

    for _ in range(type_ref.array_dim):
        annotation = f"List[{annotation}]"
        imports.setdefault("typing", set()).add("List")

    if type_ref.nullable or optional:
        annotation = f"Optional[{annotation}]"
        imports.setdefault("typing", set()).add("Optional")

    return annotation


def python_default(type_ref: TypeRef, imports: Dict[str, Set[str]]) -> str:
    """Zero-value expression for fields a constructor does not receive."""
    if type_ref.nullable or not type_ref.known:
        return "None"
    if type_ref.array_dim:
        return "[]"

    expr: str = _PY_DEFAULTS.get(type_ref.base, "None")
    if expr.startswith("datetime.now(timezone"):
        imports.setdefault("datetime", set()).update({"datetime", "timezone"})
    elif expr.startswith("datetime"):
        imports.setdefault("datetime", set()).add("datetime")
    elif expr.startswith("date."):
        imports.setdefault("datetime", set()).add("date")
    elif expr.startswith("time("):
        imports.setdefault("datetime", set()).add("time")
    elif expr.startswith("Decimal"):
        imports.setdefault("decimal", set()).add("Decimal")
    elif expr.startswith("UUID"):
        imports.setdefault("uuid", set()).add("UUID")
    return expr


def is_textual(type_ref: TypeRef) -> bool:
    return type_ref.known and type_ref.base == "string" and type_ref.array_dim == 0


def is_orderable(type_ref: TypeRef) -> bool:
    """Types for which ``>=`` / ``<=`` range filters make sense."""
    return type_ref.known and type_ref.array_dim == 0 and type_ref.base not in {
        "bool", "json", "bytes", "mac", "uuid",
    }


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "SqlType",
    "parse_type",
    "sql_type",
    "python_type",
    "python_default",
    "is_textual",
    "is_orderable",
]

logger.debug("entitygen.typemap loaded — %d public symbols.", len(__all__))
