# File: entitygen/hooks.py
"""
entitygen - Lifecycle Hooks Generator
=======================================
Emits ``hooks.py``: ``<Entity>Hooks``, a base class of async no-op
lifecycle methods.  Applications subclass it and override what they need;
raising from a ``before_*`` hook is the way to veto an operation.

Which hooks exist follows the entity: create hooks need create fields,
update hooks need update fields, hard-delete and restore hooks need soft
delete, command hooks need commands.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set, Tuple

from entitygen.commands import command_union_name, result_union_name
from entitygen.models import EntityModel, GenerationConfig
from entitygen.repository import id_annotation
from entitygen.utils import add_import, make_docstring, render_module

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.hooks")

_I: str = " " * 4


def hook_methods(
    entity: EntityModel, imports: Dict[str, Set[str]]
) -> List[Tuple[str, Tuple[str, ...]]]:
    """``(method, params)`` of every hook, params without ``self``."""
    id_param: str = f"id: {id_annotation(entity, imports)}"
    name: str = entity.name
    hooks: List[Tuple[str, Tuple[str, ...]]] = []

    if entity.create_fields():
        dto: str = entity.ident_with("Create", "Request")
        add_import(imports, ".dto", dto)
        add_import(imports, ".entity", name)
        hooks.append(("before_create", (f"dto: {dto}",)))
        hooks.append(("after_create", (f"entity: {name}",)))
    if entity.update_fields():
        dto = entity.ident_with("Update", "Request")
        add_import(imports, ".dto", dto)
        add_import(imports, ".entity", name)
        hooks.append(("before_update", (id_param, f"dto: {dto}")))
        hooks.append(("after_update", (f"entity: {name}",)))
    hooks.append(("before_delete", (id_param,)))
    hooks.append(("after_delete", (id_param,)))
    if entity.soft_delete:
        hooks.extend([
            ("before_hard_delete", (id_param,)),
            ("after_hard_delete", (id_param,)),
            ("before_restore", (id_param,)),
            ("after_restore", (id_param,)),
        ])
    if entity.has_commands():
        union: str = command_union_name(entity)
        result: str = result_union_name(entity)
        add_import(imports, ".commands", union, result)
        hooks.append(("before_command", (f"command: {union}",)))
        hooks.append(("after_command", (f"command: {union}", f"result: {result}")))
    return hooks


class HooksGenerator:
    """Stateless generator for ``hooks.py``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        imports: Dict[str, Set[str]] = {}
        hooks = hook_methods(entity, imports)

        lines: List[str] = [f"class {entity.ident_with('', 'Hooks')}:"]
        lines.extend(
            make_docstring(
                f"Lifecycle hooks of {entity.name}.\n\n"
                f"Every hook does nothing by default.  Raise from a ``before_*`` hook\n"
                f"to stop the operation.",
                1,
            )
        )
        for method, params in hooks:
            lines.append("")
            lines.append(f"{_I}async def {method}({', '.join(('self',) + params)}) -> None:")
            lines.append(f"{_I * 2}return None")

        logger.debug("Generated %d hook(s) for %s.", len(hooks), entity.name)
        return render_module(
            f"Lifecycle hooks of {entity.name}.\n\nGenerated by entitygen; do not edit.",
            imports,
            lines,
        )


__all__: List[str] = ["hook_methods", "HooksGenerator"]

logger.debug("entitygen.hooks loaded — %d public symbols.", len(__all__))
