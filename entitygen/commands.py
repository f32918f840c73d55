# File: entitygen/commands.py
"""
entitygen - CQRS Command Generator
====================================
Emits ``commands.py`` for entities with declared commands:

    * one frozen payload dataclass per command (``<Name><Entity>``), unless
      the command names an external payload type, which is used verbatim
    * the command union: ``<Entity>Command`` base class with one
      ``<Name><Entity>Command`` variant per command carrying its payload
    * the result union: ``<Entity>CommandResult`` base class with one
      ``<Name><Entity>Result`` variant per command; variants whose result
      is "no value" carry no field
    * ``<Entity>CommandHandler``: one abstract ``handle_<name>`` coroutine
      per command, generic over the caller's context type, plus a concrete
      ``handle`` that dispatches a command variant to its handler

Handlers report failure by raising; the caller picks the exception types.

Payload sources:

    create  → create fields (nullable ones default to ``None``)
    update  → update fields, every one ``Optional[...] = None``
    fields  → the listed fields, in entity declaration order
    none    → identifier only (or nothing)
    custom  → external type, no dataclass emitted
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from entitygen.models import CommandDef, CommandSource, EntityModel, FieldModel, GenerationConfig
from entitygen.repository import id_annotation
from entitygen.typemap import python_type
from entitygen.utils import import_dotted, make_docstring, render_module

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.commands")

_I: str = " " * 4


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


def command_union_name(entity: EntityModel) -> str:
    return entity.ident_with("", "Command")


def result_union_name(entity: EntityModel) -> str:
    return entity.ident_with("", "CommandResult")


def handler_name(entity: EntityModel) -> str:
    return entity.ident_with("", "CommandHandler")


def command_variant_name(entity: EntityModel, cmd: CommandDef) -> str:
    return f"{cmd.struct_name(entity.name)}Command"


def result_variant_name(entity: EntityModel, cmd: CommandDef) -> str:
    return f"{cmd.struct_name(entity.name)}Result"


def payload_fields(entity: EntityModel, cmd: CommandDef) -> List[FieldModel]:
    """Entity fields copied into the payload dataclass."""
    if cmd.source == CommandSource.CREATE:
        return entity.create_fields()
    if cmd.source == CommandSource.UPDATE:
        return entity.update_fields()
    if cmd.source == CommandSource.FIELDS:
        return [f for f in entity.all_fields() if f.name in cmd.fields and not f.is_id]
    return []


# ---------------------------------------------------------------------------
# CommandGenerator
# ---------------------------------------------------------------------------


class CommandGenerator:
    """Stateless generator for ``commands.py``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        """
        Raises:
            ValueError: If the entity declares no commands.
        """
        if not entity.commands:
            raise ValueError(f"Entity '{entity.name}' declares no commands.")

        imports: Dict[str, Set[str]] = {
            "abc": {"ABC", "abstractmethod"},
            "dataclasses": {"dataclass"},
            "typing": {"ClassVar", "Generic", "TypeVar"},
            ".entity": {entity.name},
        }
        payload_types: Dict[str, str] = {}
        result_types: Dict[str, Optional[str]] = {}
        for cmd in entity.commands:
            if cmd.uses_custom_payload and cmd.payload_type:
                payload_types[cmd.name] = import_dotted(imports, cmd.payload_type)
            else:
                payload_types[cmd.name] = cmd.struct_name(entity.name)
            declared: Optional[str] = cmd.result_type_for(entity.name)
            result_types[cmd.name] = (
                import_dotted(imports, declared) if declared is not None else None
            )

        lines: List[str] = ['ContextT = TypeVar("ContextT")']
        for cmd in entity.commands:
            if cmd.uses_custom_payload:
                continue
            lines.extend(["", ""])
            lines.extend(self._payload_class(entity, cmd, imports))

        lines.extend(["", ""])
        lines.extend(self._command_union(entity, payload_types))
        lines.extend(["", ""])
        lines.extend(self._result_union(entity, result_types))
        lines.extend(["", ""])
        lines.extend(self._handler(entity, payload_types, result_types))

        logger.debug("Generated %d command(s) for %s.", len(entity.commands), entity.name)
        return render_module(
            f"Commands of {entity.name}.\n\nGenerated by entitygen; do not edit.",
            imports,
            lines,
        )

    # -----------------------------------------------------------------
    # Payloads
    # -----------------------------------------------------------------

    def _payload_class(
        self, entity: EntityModel, cmd: CommandDef, imports: Dict[str, Set[str]]
    ) -> List[str]:
        lines: List[str] = [
            "@dataclass(frozen=True, kw_only=True)",
            f"class {cmd.struct_name(entity.name)}:",
        ]
        lines.extend(make_docstring(f"Payload of the {cmd.name} command on {entity.name}.", 1))
        body: List[str] = []
        if cmd.requires_id:
            body.append(f"{_I}id: {id_annotation(entity, imports)}")
        optional: bool = cmd.source == CommandSource.UPDATE
        for f in payload_fields(entity, cmd):
            annotation: str = python_type(f.type, imports, optional=optional)
            default: str = " = None" if (optional or f.type.nullable) else ""
            body.append(f"{_I}{f.name}: {annotation}{default}")
        if body:
            lines.append("")
            lines.extend(body)
        return lines

    # -----------------------------------------------------------------
    # Unions
    # -----------------------------------------------------------------

    def _command_union(self, entity: EntityModel, payload_types: Dict[str, str]) -> List[str]:
        base: str = command_union_name(entity)
        lines: List[str] = ["@dataclass(frozen=True)", f"class {base}:"]
        lines.extend(
            make_docstring(
                f"Base of every {entity.name} command; ``name`` identifies the variant.", 1
            )
        )
        lines.append("")
        lines.append(f'{_I}name: ClassVar[str] = ""')
        for cmd in entity.commands:
            lines.extend(["", ""])
            lines.extend([
                "@dataclass(frozen=True)",
                f"class {command_variant_name(entity, cmd)}({base}):",
            ])
            lines.append(f'{_I}name: ClassVar[str] = "{cmd.name}"')
            lines.append(f"{_I}payload: {payload_types[cmd.name]}")
        return lines

    def _result_union(
        self, entity: EntityModel, result_types: Dict[str, Optional[str]]
    ) -> List[str]:
        base: str = result_union_name(entity)
        lines: List[str] = ["@dataclass(frozen=True)", f"class {base}:"]
        lines.extend(
            make_docstring(
                f"Base of every {entity.name} command result; ``name`` matches the command.", 1
            )
        )
        lines.append("")
        lines.append(f'{_I}name: ClassVar[str] = ""')
        for cmd in entity.commands:
            lines.extend(["", ""])
            lines.extend([
                "@dataclass(frozen=True)",
                f"class {result_variant_name(entity, cmd)}({base}):",
            ])
            lines.append(f'{_I}name: ClassVar[str] = "{cmd.name}"')
            result_t: Optional[str] = result_types[cmd.name]
            if result_t is not None:
                lines.append(f"{_I}value: {result_t}")
        return lines

    # -----------------------------------------------------------------
    # Handler contract
    # -----------------------------------------------------------------

    def _handler(
        self,
        entity: EntityModel,
        payload_types: Dict[str, str],
        result_types: Dict[str, Optional[str]],
    ) -> List[str]:
        command_base: str = command_union_name(entity)
        result_base: str = result_union_name(entity)
        lines: List[str] = [f"class {handler_name(entity)}(ABC, Generic[ContextT]):"]
        lines.extend(
            make_docstring(
                f"Business logic for {entity.name} commands.\n\n"
                f"Implement one ``handle_*`` coroutine per command; ``handle`` routes a\n"
                f"command variant to it and wraps the return value in the matching\n"
                f"result variant.  Failures are raised.",
                1,
            )
        )
        lines.append("")
        lines.append(
            f"{_I}async def handle(self, command: {command_base}, ctx: ContextT) -> {result_base}:"
        )
        for cmd in entity.commands:
            method: str = cmd.handler_method_name()
            lines.append(f"{_I * 2}if isinstance(command, {command_variant_name(entity, cmd)}):")
            call: str = f"await self.{method}(command.payload, ctx)"
            if result_types[cmd.name] is None:
                lines.append(f"{_I * 3}{call}")
                lines.append(f"{_I * 3}return {result_variant_name(entity, cmd)}()")
            else:
                lines.append(f"{_I * 3}return {result_variant_name(entity, cmd)}({call})")
        lines.append(
            f'{_I * 2}raise TypeError(f"Unknown {entity.name} command: {{command!r}}")'
        )

        for cmd in entity.commands:
            result_t: str = result_types[cmd.name] or "None"
            lines.append("")
            lines.append(f"{_I}@abstractmethod")
            lines.append(
                f"{_I}async def {cmd.handler_method_name()}"
                f"(self, payload: {payload_types[cmd.name]}, ctx: ContextT) -> {result_t}:"
            )
            doc: str = f"Handle the {cmd.name} command."
            if cmd.security:
                doc += f"  Security scheme: ``{cmd.security}``."
            lines.extend(make_docstring(doc, 2))
        return lines


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "command_union_name",
    "result_union_name",
    "handler_name",
    "command_variant_name",
    "result_variant_name",
    "payload_fields",
    "CommandGenerator",
]

logger.debug("entitygen.commands loaded — %d public symbols.", len(__all__))
