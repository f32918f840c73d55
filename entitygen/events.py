# File: entitygen/events.py
"""
entitygen - Lifecycle Events Generator
========================================
Emits ``events.py``: one frozen pydantic model per lifecycle transition,
joined into a discriminated union on the ``kind`` field.

    Created      → full entity
    Updated      → before / after pair
    SoftDeleted  → identifier          (soft-delete entities only)
    Restored     → identifier          (soft-delete entities only)
    HardDeleted  → identifier

Every event exposes ``entity_id()`` and ``to_payload()`` (JSON); the module
ends with ``decode_<entity>_event(payload)``, the inverse of
``to_payload()``, used by the stream subscriber.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from entitygen.models import EntityModel, GenerationConfig
from entitygen.repository import id_annotation
from entitygen.utils import make_docstring, render_module, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.events")

_I: str = " " * 4


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EventVariant:
    """``fields`` are ``(name, annotation)`` pairs; ``id_expr`` reads the identifier."""

    suffix: str
    kind: str
    doc: str
    fields: Tuple[Tuple[str, str], ...]
    id_expr: str

    def class_name(self, entity_name: str) -> str:
        return f"{entity_name}{self.suffix}"


def event_variants(entity: EntityModel, id_type: str) -> List[EventVariant]:
    name: str = entity.name
    id_name: str = entity.id_field().name
    variants: List[EventVariant] = [
        EventVariant(
            "Created", "created", f"A {name} was inserted.",
            (("entity", name),), f"self.entity.{id_name}",
        ),
        EventVariant(
            "Updated", "updated", f"A {name} was changed.",
            (("before", name), ("after", name)), f"self.after.{id_name}",
        ),
    ]
    if entity.soft_delete:
        variants.extend([
            EventVariant(
                "SoftDeleted", "soft_deleted", f"A {name} was marked deleted.",
                (("id", id_type),), "self.id",
            ),
            EventVariant(
                "Restored", "restored", f"A soft-deleted {name} was restored.",
                (("id", id_type),), "self.id",
            ),
        ])
    variants.append(
        EventVariant(
            "HardDeleted", "hard_deleted", f"A {name} row was removed.",
            (("id", id_type),), "self.id",
        )
    )
    return variants


def event_union_name(entity: EntityModel) -> str:
    return entity.ident_with("", "Event")


def decode_function_name(entity: EntityModel) -> str:
    return f"decode_{to_snake_case(entity.name)}_event"


# ---------------------------------------------------------------------------
# EventsGenerator
# ---------------------------------------------------------------------------


class EventsGenerator:
    """Stateless generator for ``events.py``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        imports: Dict[str, Set[str]] = {
            "pydantic": {"BaseModel", "ConfigDict", "Field", "TypeAdapter"},
            "typing": {"Annotated", "Literal", "Union"},
            ".entity": {entity.name},
        }
        id_type: str = id_annotation(entity, imports)
        variants: List[EventVariant] = event_variants(entity, id_type)
        base: str = f"_{entity.name}EventBase"
        union: str = event_union_name(entity)

        lines: List[str] = [f"class {base}(BaseModel):"]
        lines.append(f"{_I}model_config = ConfigDict(frozen=True)")
        lines.append("")
        lines.append(f"{_I}def to_payload(self) -> str:")
        lines.extend(make_docstring("JSON text carried by the notification channel.", 2))
        lines.append(f"{_I * 2}return self.model_dump_json()")

        for variant in variants:
            lines.extend(["", ""])
            lines.append(f"class {variant.class_name(entity.name)}({base}):")
            lines.extend(make_docstring(variant.doc, 1))
            lines.append("")
            lines.append(f'{_I}kind: Literal["{variant.kind}"] = "{variant.kind}"')
            for field_name, annotation in variant.fields:
                lines.append(f"{_I}{field_name}: {annotation}")
            lines.append("")
            lines.append(f"{_I}def entity_id(self) -> {id_type}:")
            lines.append(f"{_I * 2}return {variant.id_expr}")

        members: str = ", ".join(v.class_name(entity.name) for v in variants)
        lines.extend(["", ""])
        lines.append(f'{union} = Annotated[Union[{members}], Field(discriminator="kind")]')
        lines.append("")
        lines.append(f"_EVENT_ADAPTER: TypeAdapter[{union}] = TypeAdapter({union})")
        lines.extend(["", ""])
        lines.append(f"def {decode_function_name(entity)}(payload: Union[str, bytes]) -> {union}:")
        lines.extend(
            make_docstring(
                "Inverse of ``to_payload()``.\n\n"
                "Raises ``pydantic.ValidationError`` (a ``ValueError``) when the "
                "payload is not a known event.",
                1,
            )
        )
        lines.append(f"{_I}return _EVENT_ADAPTER.validate_json(payload)")

        logger.debug("Generated %d event variant(s) for %s.", len(variants), entity.name)
        return render_module(
            f"Lifecycle events of {entity.name}.\n\nGenerated by entitygen; do not edit.",
            imports,
            lines,
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "EventVariant",
    "event_variants",
    "event_union_name",
    "decode_function_name",
    "EventsGenerator",
]

logger.debug("entitygen.events loaded — %d public symbols.", len(__all__))
