# File: entitygen/policy.py
"""
entitygen - Authorization Policy Generator
============================================
Emits ``policy.py``:

    * ``<Entity>Policy``: abstract check coroutines ``can_create``,
      ``can_read``, ``can_update``, ``can_delete``, ``can_list`` (and
      ``can_command`` with commands), generic over the caller's context.
      A check allows by returning and denies by raising.
    * ``<Entity>AllowAllPolicy``: the explicit permissive implementation.
      Nothing substitutes it implicitly; callers opt in by name.
    * ``<Entity>PolicyRepository``: wraps any ``<Entity>Repository``, runs
      the matching check before every call and wraps failures in
      ``PolicyError`` (``is_policy`` for denials, ``is_repository`` for
      repository failures).  Emitted only when a repository exists.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set, Tuple

from entitygen.commands import command_union_name, handler_name, result_union_name
from entitygen.models import EntityModel, GenerationConfig
from entitygen.repository import RepositoryMethod, id_annotation, repository_methods
from entitygen.utils import add_import, make_docstring, render_module

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.policy")

_I: str = " " * 4


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def policy_checks(
    entity: EntityModel, imports: Dict[str, Set[str]]
) -> List[Tuple[str, Tuple[str, ...], str]]:
    """``(method, params, doc)`` of every check, params without ``self``."""
    id_t: str = id_annotation(entity, imports)
    checks: List[Tuple[str, Tuple[str, ...], str]] = []
    if entity.create_fields():
        dto: str = entity.ident_with("Create", "Request")
        add_import(imports, ".dto", dto)
        checks.append(("can_create", (f"dto: {dto}",), "create"))
    checks.append(("can_read", (f"id: {id_t}",), "read"))
    if entity.update_fields():
        dto = entity.ident_with("Update", "Request")
        add_import(imports, ".dto", dto)
        checks.append(("can_update", (f"id: {id_t}", f"dto: {dto}"), "update"))
    checks.append(("can_delete", (f"id: {id_t}",), "delete"))
    checks.append(("can_list", (), "list"))
    if entity.has_commands():
        union: str = command_union_name(entity)
        add_import(imports, ".commands", union)
        checks.append(("can_command", (f"command: {union}",), "command"))
    return [
        (name, params, f"Allow or refuse a {verb} of {entity.name}; raise to refuse.")
        for name, params, verb in checks
    ]


def _check_call(method: RepositoryMethod) -> str:
    """Policy call guarding *method*, using the method's own arguments."""
    op: str = method.operation
    if op == "CREATE":
        return "self._policy.can_create(dto, ctx)"
    if op == "UPDATE":
        return "self._policy.can_update(id, dto, ctx)"
    if op == "DELETE":
        return "self._policy.can_delete(id, ctx)"
    if op == "LIST":
        return "self._policy.can_list(ctx)"
    return f"self._policy.can_read({method.args[0]}, ctx)"


# ---------------------------------------------------------------------------
# PolicyGenerator
# ---------------------------------------------------------------------------


class PolicyGenerator:
    """Stateless generator for ``policy.py``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        imports: Dict[str, Set[str]] = {
            "abc": {"ABC", "abstractmethod"},
            "typing": {"Any", "Generic", "TypeVar"},
        }
        checks = policy_checks(entity, imports)
        policy: str = entity.ident_with("", "Policy")

        lines: List[str] = ['ContextT = TypeVar("ContextT")']
        lines.extend(["", ""])
        lines.append(f"class {policy}(ABC, Generic[ContextT]):")
        lines.extend(
            make_docstring(
                f"Authorization checks for {entity.name}.\n\n"
                f"A check allows the operation by returning and refuses it by raising\n"
                f"(``PermissionDenied`` or any exception of the caller's choice).",
                1,
            )
        )
        for name, params, doc in checks:
            lines.append("")
            lines.append(f"{_I}@abstractmethod")
            signature: str = ", ".join(("self",) + params + ("ctx: ContextT",))
            lines.append(f"{_I}async def {name}({signature}) -> None:")
            lines.extend(make_docstring(doc, 2))

        lines.extend(["", ""])
        lines.append(f"class {entity.ident_with('', 'AllowAllPolicy')}({policy}[Any]):")
        lines.extend(
            make_docstring(
                f"Policy that allows every {entity.name} operation.\n\n"
                f"For development or when authorization happens elsewhere.",
                1,
            )
        )
        for name, params, _ in checks:
            lines.append("")
            signature = ", ".join(("self",) + params + ("ctx: Any",))
            lines.append(f"{_I}async def {name}({signature}) -> None:")
            lines.append(f"{_I * 2}return None")

        if entity.has_repository():
            lines.extend(["", ""])
            lines.extend(self._wrapper(entity, imports))

        logger.debug("Generated policy for %s: %d check(s).", entity.name, len(checks))
        return render_module(
            f"Authorization policy for {entity.name}.\n\nGenerated by entitygen; do not edit.",
            imports,
            lines,
        )

    def _wrapper(self, entity: EntityModel, imports: Dict[str, Set[str]]) -> List[str]:
        runtime: str = self._config.runtime_module
        add_import(imports, runtime, "PolicyError", "PolicyOperation")
        add_import(imports, "typing", "Awaitable")
        repo: str = entity.ident_with("", "Repository")
        add_import(imports, ".repository", repo)
        policy: str = entity.ident_with("", "Policy")
        methods: List[RepositoryMethod] = repository_methods(entity, imports)

        lines: List[str] = ['T = TypeVar("T")', "", ""]
        lines.append(f"class {entity.ident_with('', 'PolicyRepository')}(Generic[ContextT]):")
        lines.extend(
            make_docstring(
                f"{repo} guarded by a {policy}.\n\n"
                f"Every method takes the caller's context as the keyword argument ``ctx``\n"
                f"and raises ``PolicyError``: ``is_policy`` when the check refused the call,\n"
                f"``is_repository`` when the repository failed.",
                1,
            )
        )
        lines.extend([
            "",
            f"{_I}def __init__(self, repo: {repo}, policy: {policy}[ContextT]) -> None:",
            f"{_I * 2}self._repo: {repo} = repo",
            f"{_I * 2}self._policy: {policy}[ContextT] = policy",
            "",
            f"{_I}@property",
            f"{_I}def inner(self) -> {repo}:",
            f"{_I * 2}return self._repo",
            "",
            f"{_I}@property",
            f"{_I}def policy(self) -> {policy}[ContextT]:",
            f"{_I * 2}return self._policy",
            "",
            f"{_I}async def _authorize(self, operation: PolicyOperation, check: Awaitable[None]) -> None:",
            f"{_I * 2}try:",
            f"{_I * 3}await check",
            f"{_I * 2}except Exception as exc:",
            f"{_I * 3}raise PolicyError.policy(exc, operation) from exc",
            "",
            f"{_I}async def _run(self, operation: PolicyOperation, call: Awaitable[T]) -> T:",
            f"{_I * 2}try:",
            f"{_I * 3}return await call",
            f"{_I * 2}except Exception as exc:",
            f"{_I * 3}raise PolicyError.repository(exc, operation) from exc",
        ])

        for method in methods:
            op: str = f"PolicyOperation.{method.operation}"
            params: str = ", ".join(("self",) + method.params + ("*", "ctx: ContextT"))
            lines.append("")
            lines.append(f"{_I}async def {method.name}({params}) -> {method.returns}:")
            lines.append(f"{_I * 2}await self._authorize({op}, {_check_call(method)})")
            lines.append(f"{_I * 2}return await self._run({op}, {method.call('self._repo')})")

        if entity.has_commands():
            handler: str = handler_name(entity)
            union: str = command_union_name(entity)
            result: str = result_union_name(entity)
            add_import(imports, ".commands", handler, union, result)
            lines.extend([
                "",
                f"{_I}async def execute(",
                f"{_I * 2}self, handler: {handler}[ContextT], command: {union}, *, ctx: ContextT",
                f"{_I}) -> {result}:",
            ])
            lines.extend(make_docstring("Check ``can_command`` and run *command* through *handler*.", 2))
            lines.extend([
                f"{_I * 2}await self._authorize(",
                f"{_I * 3}PolicyOperation.COMMAND, self._policy.can_command(command, ctx)",
                f"{_I * 2})",
                f"{_I * 2}return await self._run(PolicyOperation.COMMAND, handler.handle(command, ctx))",
            ])
        return lines


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "policy_checks",
    "PolicyGenerator",
]

logger.debug("entitygen.policy loaded — %d public symbols.", len(__all__))
