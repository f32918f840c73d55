# File: entitygen/generator.py
"""
entitygen - Generation Pipeline (Orchestrator)
================================================

Connects every phase together:

    Entity Document → Model Building → Validation → Generation → Export

The ``EntityGenerator`` class provides both a programmatic API and the
backend for the CLI.

Workflow::

    1. Load the document from a JSON/YAML file (or accept an in-memory one).
    2. Parse it into ``EntityDocument`` (config + raw entities).
    3. Build one ``EntityModel`` per raw entity (builder.py), gathering
       every fault of an entity before failing it.
    4. Run cross-entity validation (validators.py).
    5. Feed each entity to ``TemplateGenerator`` (templates.py).
    6. Hand the artifacts to ``ArtifactExporter`` (exporters.py).
    7. Return a ``GenerationReport`` with metrics and status.

Error handling strategy:
    - A failing entity is recorded under its own name; unrelated entities
      are still built and generated.
    - In strict mode (the default) nothing is exported when any entity
      failed.  Non-strict mode exports what succeeded.
    - The final report gives a clear pass/fail verdict and an exit code.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from pydantic import ValidationError as PydanticValidationError

from entitygen.builder import ModelBuilder
from entitygen.exporters import ArtifactExporter, ExportManifest, ExportResult
from entitygen.models import EntityDocument, EntityModel, GeneratedArtifact
from entitygen.templates import TemplateGenerator
from entitygen.utils import Timer, count_lines
from entitygen.validators import (
    EntityDefinitionError,
    UnimplementedDialectError,
    ValidationResult,
    validate_document,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.generator")

# Exit codes shared with the CLI.
EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by ``EntityGenerator.generate()``.

    Contains timing information, file counts, diagnostics and the
    names of failed entities.
    """

    success: bool = False
    project_name: str = ""
    output_directory: str = ""
    dry_run: bool = False

    # Metrics
    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    total_entities: int = 0
    total_elapsed_seconds: float = 0.0

    # Sub-reports
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    input_errors: List[str] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)
    generated_entities: List[str] = field(default_factory=list)
    failed_entities: List[str] = field(default_factory=list)

    artifacts: List[GeneratedArtifact] = field(default_factory=list)
    manifest: Optional[ExportManifest] = None

    @property
    def exit_code(self) -> int:
        """CLI exit code; the earliest failing phase wins."""
        if self.input_errors:
            return EXIT_INPUT_ERROR
        if self.validation_errors:
            return EXIT_VALIDATION_ERROR
        if self.generation_errors:
            return EXIT_GENERATION_ERROR
        if self.export_errors:
            return EXIT_EXPORT_ERROR
        return EXIT_SUCCESS if self.success else EXIT_VALIDATION_ERROR

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'=' * 60}")
        lines.append("  entitygen — Generation Report")
        lines.append(f"{'=' * 60}")
        lines.append(f"  Status:           {status}{' (dry run)' if self.dry_run else ''}")
        lines.append(f"  Project:          {self.project_name}")
        lines.append(f"  Output:           {self.output_directory}")
        lines.append(f"  Entities:         {len(self.generated_entities)}/{self.total_entities} generated")
        lines.append(f"  Files generated:  {self.total_files}")
        lines.append(f"  Total lines:      {self.total_lines:,}")
        lines.append(f"  Total bytes:      {self.total_bytes:,}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─' * 60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        sections = (
            ("Input Errors", self.input_errors, "✗"),
            ("Validation Errors", self.validation_errors, "✗"),
            ("Validation Warnings", self.validation_warnings, "⚠"),
            ("Generation Errors", self.generation_errors, "✗"),
            ("Export Errors", self.export_errors, "✗"),
            ("Failed Entities", self.failed_entities, "⊘"),
        )
        for title, items, icon in sections:
            if not items:
                continue
            lines.append(f"{'─' * 60}")
            lines.append(f"  {title} ({len(items)}):")
            for item in items:
                lines.append(f"    {icon} {item}")

        lines.append(f"{'=' * 60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Document loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object at top level, got {type(data).__name__}.")
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping at top level, got {type(data).__name__}.")
    return data


def load_entity_file(path: Path) -> Dict[str, Any]:
    """
    Load an entity document (JSON or YAML), dispatching on the extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Entity file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Entity path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    # YAML is a superset of JSON
    logger.info("Unknown extension '%s' — parsing as YAML.", suffix)
    return _load_yaml_file(path)


def parse_raw_document(
    raw: Dict[str, Any],
    *,
    config_overrides: Optional[Dict[str, Any]] = None,
    source_file: Optional[str] = None,
) -> EntityDocument:
    """
    Parse a raw mapping (from JSON/YAML) into an ``EntityDocument``.

    Expected top-level keys: ``entities`` (required) and ``config``.

    Raises:
        ValueError: If required keys are missing or validation fails.
    """
    if "entities" not in raw:
        raise ValueError("Cannot find entity declarations in input. Expected top-level key: 'entities'.")

    config_data: Any = raw.get("config") or {}
    if not isinstance(config_data, dict):
        raise ValueError(f"'config' must be a mapping, got {type(config_data).__name__}.")
    if config_overrides:
        config_data = {**config_data, **config_overrides}

    unknown: List[str] = sorted(k for k in raw if k not in ("entities", "config"))
    if unknown:
        logger.debug("Ignoring unknown top-level key(s): %s", ", ".join(unknown))

    try:
        return EntityDocument.model_validate(
            {"config": config_data, "entities": raw["entities"], "source_file": source_file}
        )
    except PydanticValidationError as exc:
        raise ValueError(f"Entity document validation failed: {exc}") from exc


# ---------------------------------------------------------------------------
# EntityGenerator: Master orchestrator
# ---------------------------------------------------------------------------


class EntityGenerator:
    """
    Pipeline orchestrator for entity code generation.

    Usage::

        generator = EntityGenerator()
        report = generator.generate_from_file(
            Path("entities.yaml"), output_dir=Path("./out")
        )
        print(report.summary())

    The generator is reusable — create once, call generate() many times.
    """

    def __init__(
        self,
        *,
        strict: bool = True,
        fail_on_warnings: bool = False,
        clean_output: bool = False,
        dry_run: bool = False,
        validate_only: bool = False,
    ) -> None:
        """
        Args:
            strict: If True, export nothing when any entity failed.
            fail_on_warnings: If True, treat validation warnings as errors.
            clean_output: If True, wipe the output directory before writing.
            dry_run: If True, generate and report without writing files.
            validate_only: If True, stop after validation.
        """
        self._strict: bool = strict
        self._fail_on_warnings: bool = fail_on_warnings
        self._clean_output: bool = clean_output
        self._dry_run: bool = dry_run
        self._validate_only: bool = validate_only

        logger.debug(
            "EntityGenerator initialised: strict=%s, fail_on_warnings=%s, clean=%s, "
            "dry_run=%s, validate_only=%s.",
            strict,
            fail_on_warnings,
            clean_output,
            dry_run,
            validate_only,
        )

    # -----------------------------------------------------------------
    # Public: generate from file
    # -----------------------------------------------------------------

    def generate_from_file(
        self,
        entity_path: Path,
        output_dir: Path,
        *,
        config_overrides: Optional[Dict[str, Any]] = None,
    ) -> GenerationReport:
        """Full pipeline: load file → build → validate → generate → export."""
        report: GenerationReport = GenerationReport(dry_run=self._dry_run)
        report.output_directory = str(output_dir.resolve())

        with Timer("load_document") as t_load:
            try:
                raw: Dict[str, Any] = load_entity_file(entity_path)
                document: EntityDocument = parse_raw_document(
                    raw,
                    config_overrides=config_overrides,
                    source_file=str(entity_path),
                )
            except (FileNotFoundError, ValueError) as exc:
                logger.error("Could not load %s: %s", entity_path, exc)
                report.input_errors.append(str(exc))
                report.step_metrics.append(GenerationStepMetric(
                    step_name="Load Entity Document",
                    success=False,
                    elapsed_seconds=t_load.elapsed,
                    detail=str(exc),
                ))
                return self._finalise_report(report, t_load.elapsed)

        logger.info(
            "Loaded %s: %d entity declaration(s).", entity_path, len(document.entities)
        )
        report.step_metrics.append(GenerationStepMetric(
            step_name="Load Entity Document",
            success=True,
            elapsed_seconds=t_load.elapsed,
            detail=f"{len(document.entities)} entities from {entity_path.name}",
        ))
        return self._run_pipeline(document, output_dir, report)

    # -----------------------------------------------------------------
    # Public: generate from an in-memory document
    # -----------------------------------------------------------------

    def generate(self, document: EntityDocument, output_dir: Path) -> GenerationReport:
        """Full pipeline from a parsed ``EntityDocument``."""
        report: GenerationReport = GenerationReport(dry_run=self._dry_run)
        report.output_directory = str(output_dir.resolve())
        return self._run_pipeline(document, output_dir, report)

    # -----------------------------------------------------------------
    # Internal: master pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(
        self,
        document: EntityDocument,
        output_dir: Path,
        report: GenerationReport,
    ) -> GenerationReport:
        pipeline_start: float = time.perf_counter()
        report.project_name = document.config.project_name
        report.total_entities = len(document.entities)

        entities: List[EntityModel] = self._step_build(document, report)
        validation_ok: bool = self._step_validate(document, entities, report)

        if not validation_ok and self._strict:
            return self._finalise_report(report, time.perf_counter() - pipeline_start)
        if self._validate_only:
            logger.info("Validation only: generation skipped.")
            return self._finalise_report(report, time.perf_counter() - pipeline_start)

        artifacts: List[GeneratedArtifact] = self._step_generate(document, entities, report)
        if report.generation_errors and self._strict:
            logger.error("Strict mode: export skipped because %d entity(ies) failed.", len(report.failed_entities))
            return self._finalise_report(report, time.perf_counter() - pipeline_start)
        if not report.generated_entities:
            report.generation_errors.append("No entity was generated — aborting export.")
            return self._finalise_report(report, time.perf_counter() - pipeline_start)

        self._step_export(artifacts, document, output_dir, report)
        return self._finalise_report(report, time.perf_counter() - pipeline_start)

    # -----------------------------------------------------------------
    # Pipeline step: Model building
    # -----------------------------------------------------------------

    def _step_build(
        self, document: EntityDocument, report: GenerationReport
    ) -> List[EntityModel]:
        """Build every entity; a failure is recorded under the entity's name."""
        builder: ModelBuilder = ModelBuilder(
            strict_references=document.config.strict_references
        )
        entities: List[EntityModel] = []

        with Timer("build") as t:
            for raw in document.entities:
                try:
                    entity, diagnostics = builder.build_with_diagnostics(raw)
                except EntityDefinitionError as exc:
                    logger.error("Entity %s failed: %s", exc.entity_name, exc)
                    report.failed_entities.append(exc.entity_name)
                    report.validation_errors.extend(
                        f"{exc.entity_name}: {item}" for item in exc.result.errors
                    )
                    report.validation_warnings.extend(
                        f"{exc.entity_name}: {item}" for item in exc.result.warnings
                    )
                    continue
                report.validation_warnings.extend(
                    f"{entity.name}: {item}" for item in diagnostics.warnings
                )
                entities.append(entity)

        report.step_metrics.append(GenerationStepMetric(
            step_name="Build Models",
            success=len(entities) == len(document.entities),
            elapsed_seconds=t.elapsed,
            detail=f"{len(entities)}/{len(document.entities)} entities built",
        ))
        return entities

    # -----------------------------------------------------------------
    # Pipeline step: Validation
    # -----------------------------------------------------------------

    def _step_validate(
        self,
        document: EntityDocument,
        entities: Sequence[EntityModel],
        report: GenerationReport,
    ) -> bool:
        """
        Cross-entity validation.

        Returns True if no entity failed so far and the document checks
        passed (warnings fail only with ``fail_on_warnings``).
        """
        with Timer("validation") as t:
            result: ValidationResult = validate_document(entities, document.config)

        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)

        ok: bool = not report.validation_errors
        if self._fail_on_warnings and report.validation_warnings:
            logger.error(
                "Failing on %d validation warning(s).", len(report.validation_warnings)
            )
            report.validation_errors.extend(
                f"warning treated as error: {w}" for w in report.validation_warnings
            )
            ok = False

        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate Document",
            success=ok,
            elapsed_seconds=t.elapsed,
            detail=(
                f"{len(report.validation_errors)} error(s), "
                f"{len(report.validation_warnings)} warning(s)"
            ),
        ))
        return ok

    # -----------------------------------------------------------------
    # Pipeline step: Code generation
    # -----------------------------------------------------------------

    def _step_generate(
        self,
        document: EntityDocument,
        entities: Sequence[EntityModel],
        report: GenerationReport,
    ) -> List[GeneratedArtifact]:
        """Generate every entity; one entity's failure leaves the others alone."""
        templates: TemplateGenerator = TemplateGenerator(document.config)
        artifacts: List[GeneratedArtifact] = []
        generated: List[EntityModel] = []

        with Timer("code_generation") as t:
            for entity in entities:
                try:
                    artifacts.extend(templates.generate_entity(entity))
                except UnimplementedDialectError as exc:
                    logger.error("%s", exc)
                    report.generation_errors.append(str(exc))
                    report.failed_entities.append(entity.name)
                    continue
                except ValueError as exc:
                    logger.error("Generation of %s failed: %s", entity.name, exc)
                    report.generation_errors.append(f"{entity.name}: {exc}")
                    report.failed_entities.append(entity.name)
                    continue
                generated.append(entity)
                report.generated_entities.append(entity.name)

            if generated:
                artifacts.append(templates.generate_package_init(generated))

        total_lines: int = sum(count_lines(a.content) for a in artifacts)
        detail: str = (
            f"{len(artifacts)} files, ~{total_lines:,} lines, "
            f"{len(generated)} entities"
        )
        report.artifacts = artifacts
        report.step_metrics.append(GenerationStepMetric(
            step_name="Code Generation",
            success=not report.generation_errors,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))
        logger.info("Code generation complete: %s in %.3fs.", detail, t.elapsed)
        return artifacts

    # -----------------------------------------------------------------
    # Pipeline step: Export
    # -----------------------------------------------------------------

    def _step_export(
        self,
        artifacts: Sequence[GeneratedArtifact],
        document: EntityDocument,
        output_dir: Path,
        report: GenerationReport,
    ) -> None:
        """Write all generated files to the filesystem."""
        with Timer("export") as t:
            exporter: ArtifactExporter = ArtifactExporter(
                config=document.config,
                output_dir=output_dir,
                clean_before_export=self._clean_output,
                atomic_writes=True,
                generate_manifest=document.config.generate_manifest,
                dry_run=self._dry_run,
            )
            export_result: ExportResult = exporter.export(artifacts)

        report.total_files = export_result.manifest.total_files
        report.total_bytes = export_result.manifest.total_bytes
        report.total_lines = export_result.manifest.total_lines
        report.export_errors.extend(export_result.errors)
        report.manifest = export_result.manifest

        report.step_metrics.append(GenerationStepMetric(
            step_name="Dry Run" if self._dry_run else "Export to Filesystem",
            success=export_result.success,
            elapsed_seconds=t.elapsed,
            detail=(
                f"{export_result.manifest.total_files} files, "
                f"{export_result.manifest.total_bytes:,} bytes"
            ),
        ))

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(
        self,
        report: GenerationReport,
        total_elapsed: float,
    ) -> GenerationReport:
        """Set final status and timing on the report."""
        report.total_elapsed_seconds = total_elapsed
        report.success = not (
            report.input_errors
            or report.validation_errors
            or report.generation_errors
            or report.export_errors
        )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "EntityGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "load_entity_file",
    "parse_raw_document",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("entitygen.generator loaded — %d public symbols.", len(__all__))
