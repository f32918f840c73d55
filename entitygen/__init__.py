# File: entitygen/__init__.py
"""
entitygen — Schema-Driven Entity Code Generator
=================================================

Turns annotated entity declarations (JSON/YAML) into Python persistence
code: pydantic entity and DTO shapes, filter queries, abstract
repositories with a Postgres implementation, SQL migrations, CQRS
commands, domain events, authorization policies and change streams.

Architecture overview::

    ┌──────────────┐     ┌─────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ EntityGenerator │────▶│ TemplateGenerator│
    │   (cli.py)   │     │ (generator.py)  │     │  (templates.py)  │
    └──────────────┘     └────────┬────────┘     └────────┬─────────┘
                                  │                       │
                    ┌─────────────┼──────────┐    dto / query / repository
                    ▼             ▼          ▼    postgres / migrations
             ┌──────────┐  ┌──────────┐ ┌──────────┐  commands / events
             │ builder  │  │validators│ │exporters │  policy / streams
             │ (.py)    │  │ (.py)    │ │ (.py)    │  hooks / transactions
             └──────────┘  └──────────┘ └──────────┘

Usage::

    # As a library
    from entitygen import EntityGenerator
    report = EntityGenerator().generate_from_file(Path("entities.yaml"), Path("./out"))

    # From the command line
    entitygen --entities entities.yaml --output ./out -v

Generated code imports its support types from ``entitygen.runtime``.
"""

from __future__ import annotations

__version__: str = "0.3.0"
__license__: str = "MIT"

from entitygen.models import (
    CommandDef,
    EntityDocument,
    EntityModel,
    FieldModel,
    GeneratedArtifact,
    GenerationConfig,
    ProjectionDef,
    RawEntity,
    RawField,
)
from entitygen.validators import (
    EntityDefinitionError,
    UnimplementedDialectError,
    ValidationResult,
)
from entitygen.builder import ModelBuilder, build_entity
from entitygen.templates import TemplateGenerator
from entitygen.exporters import ArtifactExporter, ExportManifest, ExportResult
from entitygen.generator import EntityGenerator, GenerationReport, load_entity_file, parse_raw_document

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Core orchestrator
    "EntityGenerator",
    "GenerationReport",
    "load_entity_file",
    "parse_raw_document",
    # Models
    "CommandDef",
    "EntityDocument",
    "EntityModel",
    "FieldModel",
    "GeneratedArtifact",
    "GenerationConfig",
    "ProjectionDef",
    "RawEntity",
    "RawField",
    # Building and validation
    "ModelBuilder",
    "build_entity",
    "EntityDefinitionError",
    "UnimplementedDialectError",
    "ValidationResult",
    # Templates
    "TemplateGenerator",
    # Exporters
    "ArtifactExporter",
    "ExportManifest",
    "ExportResult",
]
