# File: entitygen/transactions.py
"""
entitygen - Transaction Repository Generator
==============================================
Emits ``transactions.py``: ``<Entity>TransactionRepo``, the Postgres
repository bound to a connection that already has a transaction open, plus
a ``begin(pool)`` context manager built on ``runtime.transaction`` so
begin / commit / rollback failures surface as ``TransactionError``.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set

from entitygen.models import EntityModel, GenerationConfig
from entitygen.repository import require_backend
from entitygen.utils import make_docstring, render_module

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.transactions")

_I: str = " " * 4


class TransactionsGenerator:
    """Stateless generator for ``transactions.py``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        """
        Raises:
            UnimplementedDialectError: If the entity's dialect has no backend.
        """
        require_backend(entity)
        backend: str = f"Postgres{entity.ident_with('', 'Repository')}"
        name: str = entity.ident_with("", "TransactionRepo")
        imports: Dict[str, Set[str]] = {
            "contextlib": {"asynccontextmanager"},
            "typing": {"Any", "AsyncIterator"},
            self._config.runtime_module: {"transaction"},
            ".postgres": {backend},
        }

        lines: List[str] = [f"class {name}({backend}):"]
        lines.extend(
            make_docstring(
                f"{backend} running inside an open transaction.\n\n"
                f"Usage::\n\n"
                f"    async with {name}.begin(pool) as repo:\n"
                f"        ...\n\n"
                f"Leaving the block commits; an exception rolls back and is re-raised\n"
                f"as ``TransactionError``.",
                1,
            )
        )
        lines.extend([
            "",
            f"{_I}def __init__(self, connection: Any) -> None:",
            f"{_I * 2}if not connection.is_in_transaction():",
            f'{_I * 3}raise RuntimeError("{name} needs a connection inside a transaction.")',
            f"{_I * 2}super().__init__(connection)",
            "",
            f"{_I}@classmethod",
            f"{_I}@asynccontextmanager",
            f"{_I}async def begin(cls, pool: Any) -> AsyncIterator[{name}]:",
            f"{_I * 2}async with transaction(pool) as connection:",
            f"{_I * 3}yield cls(connection)",
        ])

        logger.debug("Generated transaction repository for %s.", entity.name)
        return render_module(
            f"Transactional repository for {entity.name}.\n\nGenerated by entitygen; do not edit.",
            imports,
            lines,
        )


__all__: List[str] = ["TransactionsGenerator"]

logger.debug("entitygen.transactions loaded — %d public symbols.", len(__all__))
