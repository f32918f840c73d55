# File: entitygen/templates.py
"""
entitygen - Artifact Composer
===============================
``TemplateGenerator`` decides which backends run for an entity and where
their output lands.  Every backend reads the same frozen ``EntityModel``
and none reads another backend's output.

Layout of one run (``package_name`` = ``generated``)::

    generated/__init__.py
    generated/<entity>/__init__.py
    generated/<entity>/entity.py          always
    generated/<entity>/dto.py             when any DTO shape has fields
    generated/<entity>/query.py           filters, sql != none
    generated/<entity>/repository.py      sql != none
    generated/<entity>/postgres.py        sql == full
    generated/<entity>/events.py          events or streams
    generated/<entity>/commands.py        commands flag and declarations
    generated/<entity>/policy.py          policy
    generated/<entity>/streams.py         streams
    generated/<entity>/hooks.py           hooks
    generated/<entity>/transactions.py    transactions, sql == full
    migrations/<schema>_<table>.up.sql    migrations
    migrations/<schema>_<table>.down.sql  migrations

Backends that need a dialect implementation raise
``UnimplementedDialectError`` before anything is produced for the entity.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from entitygen.commands import CommandGenerator
from entitygen.dto import DtoGenerator
from entitygen.events import EventsGenerator
from entitygen.hooks import HooksGenerator
from entitygen.migrations import MigrationGenerator, MigrationPair
from entitygen.models import EntityModel, GeneratedArtifact, GenerationConfig
from entitygen.policy import PolicyGenerator
from entitygen.postgres import PostgresGenerator
from entitygen.query import QueryGenerator
from entitygen.repository import RepositoryGenerator, require_backend
from entitygen.streams import StreamsGenerator
from entitygen.transactions import TransactionsGenerator
from entitygen.utils import count_lines

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.templates")


class TemplateGenerator:
    """
    Composes the artifact set of each entity according to its flags.

    Usage::

        templates = TemplateGenerator(config)
        artifacts = templates.generate_entity(entity)
    """

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config
        self._dto: DtoGenerator = DtoGenerator(config)
        self._query: QueryGenerator = QueryGenerator(config)
        self._repository: RepositoryGenerator = RepositoryGenerator(config)
        self._postgres: PostgresGenerator = PostgresGenerator(config)
        self._migrations: MigrationGenerator = MigrationGenerator(config)
        self._commands: CommandGenerator = CommandGenerator(config)
        self._events: EventsGenerator = EventsGenerator(config)
        self._policy: PolicyGenerator = PolicyGenerator(config)
        self._streams: StreamsGenerator = StreamsGenerator(config)
        self._hooks: HooksGenerator = HooksGenerator(config)
        self._transactions: TransactionsGenerator = TransactionsGenerator(config)

    # ===================================================================
    # Package files
    # ===================================================================

    def generate_init_file(
        self,
        module_name: str,
        imports: Optional[List[str]] = None,
    ) -> str:
        """Generate an __init__.py file with optional re-exports."""
        lines: List[str] = ['"""', f"{module_name} package.", "", "Generated by entitygen; do not edit.", '"""']
        if imports:
            lines.append("")
            lines.extend(imports)
        return "\n".join(lines) + "\n"

    def generate_package_init(self, entities: Sequence[EntityModel]) -> GeneratedArtifact:
        """Root ``__init__.py`` importing every generated entity package."""
        imports: List[str] = [f"from . import {e.snake_name}" for e in entities]
        return GeneratedArtifact(
            path=f"{self._config.package_name}/__init__.py",
            content=self.generate_init_file(self._config.package_name, imports),
            entity="*",
            kind="package",
        )

    # ===================================================================
    # Per-entity composition
    # ===================================================================

    def generate_entity(self, entity: EntityModel) -> List[GeneratedArtifact]:
        """
        Every artifact of *entity*.

        Raises:
            UnimplementedDialectError: If a backend or migration is requested
                for a dialect without an implementation.
        """
        if entity.has_backend() or entity.features.migrations:
            require_backend(entity)

        files: Dict[str, str] = dict(self._dto.generate(entity))
        kinds: Dict[str, str] = {name: name[:-3] for name in files}

        def emit(filename: str, kind: str, content: str) -> None:
            files[filename] = content
            kinds[filename] = kind

        if entity.has_repository():
            if entity.has_filters():
                emit("query.py", "query", self._query.generate(entity))
            emit("repository.py", "repository", self._repository.generate(entity))
        if entity.has_backend():
            emit("postgres.py", "postgres", self._postgres.generate(entity))
        if entity.features.events or entity.features.streams:
            emit("events.py", "events", self._events.generate(entity))
        if entity.has_commands():
            emit("commands.py", "commands", self._commands.generate(entity))
        if entity.features.policy:
            emit("policy.py", "policy", self._policy.generate(entity))
        if entity.features.streams:
            emit("streams.py", "streams", self._streams.generate(entity))
        if entity.features.hooks:
            emit("hooks.py", "hooks", self._hooks.generate(entity))
        if entity.features.transactions and entity.has_backend():
            emit("transactions.py", "transactions", self._transactions.generate(entity))

        package_dir: str = f"{self._config.package_name}/{entity.snake_name}"
        artifacts: List[GeneratedArtifact] = [
            GeneratedArtifact(
                path=f"{package_dir}/__init__.py",
                content=self.generate_init_file(entity.name, self._entity_exports(entity, files)),
                entity=entity.name,
                kind="package",
            )
        ]
        artifacts.extend(
            GeneratedArtifact(
                path=f"{package_dir}/{filename}",
                content=content,
                entity=entity.name,
                kind=kinds[filename],
            )
            for filename, content in files.items()
        )

        if entity.features.migrations:
            pair: MigrationPair = self._migrations.generate(entity)
            directory: str = self._config.migrations_dir.rstrip("/")
            artifacts.append(GeneratedArtifact(
                path=f"{directory}/{pair.up_filename}", content=pair.up,
                entity=entity.name, kind="migration",
            ))
            artifacts.append(GeneratedArtifact(
                path=f"{directory}/{pair.down_filename}", content=pair.down,
                entity=entity.name, kind="migration",
            ))

        logger.debug(
            "Generated %d artifact(s) for %s (~%d lines).",
            len(artifacts),
            entity.name,
            sum(count_lines(a.content) for a in artifacts),
        )
        return artifacts

    @staticmethod
    def _entity_exports(entity: EntityModel, files: Dict[str, str]) -> List[str]:
        exports: List[str] = [f"from .entity import {entity.name}"]
        if "repository.py" in files:
            exports.append(f"from .repository import {entity.ident_with('', 'Repository')}")
        if "postgres.py" in files:
            exports.append(f"from .postgres import Postgres{entity.ident_with('', 'Repository')}")
        return exports

    def generate_all(self, entities: Sequence[EntityModel]) -> List[GeneratedArtifact]:
        """
        Artifacts of every entity plus the root package file.

        Raises on the first failing entity; ``EntityGenerator`` drives the
        per-entity loop itself when failures must be collected.
        """
        artifacts: List[GeneratedArtifact] = []
        for entity in entities:
            artifacts.extend(self.generate_entity(entity))
        artifacts.append(self.generate_package_init(entities))

        logger.info(
            "Full generation complete: %d files, ~%d lines.",
            len(artifacts),
            sum(count_lines(a.content) for a in artifacts),
        )
        return artifacts


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TemplateGenerator",
]

logger.debug("entitygen.templates loaded — %d public symbols.", len(__all__))
