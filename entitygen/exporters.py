# File: entitygen/exporters.py
"""
entitygen - Artifact Exporter (File-System Manager)
=====================================================

Responsible for:
    1. Writing generated artifacts atomically (write-to-temp then rename).
    2. Optionally cleaning the output directory first.
    3. Producing an export manifest with checksums for reproducibility.

Re-running on the same inputs rewrites every file with identical bytes.
A failed write is recorded and the batch continues; files already written
stay intact because each individual write is atomic.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from entitygen.models import GeneratedArtifact, GenerationConfig
from entitygen.utils import Timer, count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.exporters")

# Entries of the output directory that cleaning leaves alone.
_PRESERVED_NAMES: frozenset = frozenset({".git", ".gitignore", ".gitkeep"})


# ---------------------------------------------------------------------------
# Data classes for export results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single exported file."""

    relative_path: str
    absolute_path: str
    size_bytes: int
    line_count: int
    sha256: str
    entity: str = ""
    kind: str = ""


@dataclass(frozen=False, slots=True)
class ExportManifest:
    """
    Complete manifest of all exported files.

    Serialisable to JSON for build reproducibility verification.
    """

    project_name: str = ""
    project_version: str = ""
    generator_version: str = ""
    export_timestamp: str = ""
    output_directory: str = ""
    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    files: List[FileRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert manifest to a JSON-serialisable dictionary."""
        return {
            "project_name": self.project_name,
            "project_version": self.project_version,
            "generator_version": self.generator_version,
            "export_timestamp": self.export_timestamp,
            "output_directory": self.output_directory,
            "total_files": self.total_files,
            "total_bytes": self.total_bytes,
            "total_lines": self.total_lines,
            "files": [
                {
                    "relative_path": f.relative_path,
                    "entity": f.entity,
                    "kind": f.kind,
                    "size_bytes": f.size_bytes,
                    "line_count": f.line_count,
                    "sha256": f.sha256,
                }
                for f in self.files
            ],
        }

    def to_json(self, indent_size: int = 2) -> str:
        """Serialise manifest to pretty-printed JSON."""
        return json.dumps(self.to_dict(), indent=indent_size, ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class ExportResult:
    """
    Final result returned by ``ArtifactExporter.export()``.

    Includes success flag, manifest, and any errors encountered.
    """

    success: bool
    manifest: ExportManifest
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    elapsed_seconds: float
    dry_run: bool = False


# ---------------------------------------------------------------------------
# ArtifactExporter class
# ---------------------------------------------------------------------------


class ArtifactExporter:
    """
    Writes generated artifacts below an output root.

    Usage::

        exporter = ArtifactExporter(config, output_dir=Path("./out"))
        result = exporter.export(artifacts)
        print(result.manifest.to_json())

    Thread-safety: NOT thread-safe.  Use one exporter per output directory.
    """

    def __init__(
        self,
        config: GenerationConfig,
        output_dir: Path,
        *,
        clean_before_export: bool = False,
        atomic_writes: bool = True,
        generate_manifest: bool = True,
        dry_run: bool = False,
    ) -> None:
        """
        Args:
            config: Generation configuration.
            output_dir: Root directory for output files.
            clean_before_export: If True, wipe the output directory first.
            atomic_writes: If True, use write-to-temp+rename pattern.
            generate_manifest: If True, write a manifest.json file.
            dry_run: If True, compute the manifest without touching disk.
        """
        self._config: GenerationConfig = config
        self._output_dir: Path = output_dir.resolve()
        self._clean_before_export: bool = clean_before_export
        self._atomic_writes: bool = atomic_writes
        self._generate_manifest: bool = generate_manifest
        self._dry_run: bool = dry_run

        self._errors: List[str] = []
        self._warnings: List[str] = []
        self._file_records: List[FileRecord] = []

        logger.debug(
            "ArtifactExporter initialised: output_dir=%s, atomic=%s, dry_run=%s.",
            self._output_dir,
            self._atomic_writes,
            self._dry_run,
        )

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def export(self, artifacts: Sequence[GeneratedArtifact]) -> ExportResult:
        """
        Export *artifacts* to the filesystem.

        Returns:
            ExportResult with success flag, manifest, and error details.
        """
        self._errors = []
        self._warnings = []
        self._file_records = []

        duplicates: List[str] = self._duplicate_paths(artifacts)
        if duplicates:
            self._errors.extend(f"Duplicate artifact path: {p}" for p in duplicates)
            logger.error("Refusing to export: %d duplicate path(s).", len(duplicates))
            return self._result(0.0)

        with Timer("export") as timer:
            if self._dry_run:
                self._file_records = [self._record(a) for a in artifacts]
                logger.info("Dry run: %d file(s) not written.", len(self._file_records))
            else:
                try:
                    self._pre_export_cleanup()
                    self._write_artifacts(artifacts)
                    if self._generate_manifest:
                        self._write_manifest_file()
                except OSError as exc:
                    error_msg: str = f"Fatal export error: {type(exc).__name__}: {exc}"
                    self._errors.append(error_msg)
                    logger.error(error_msg, exc_info=True)

        result: ExportResult = self._result(timer.elapsed)
        if result.success:
            logger.info(
                "Export completed successfully: %d files, %d bytes, %.3fs.",
                result.manifest.total_files,
                result.manifest.total_bytes,
                timer.elapsed,
            )
        else:
            logger.error(
                "Export completed with %d error(s) in %.3fs.",
                len(self._errors),
                timer.elapsed,
            )
        return result

    def _result(self, elapsed: float) -> ExportResult:
        return ExportResult(
            success=not self._errors,
            manifest=self._build_manifest(),
            errors=tuple(self._errors),
            warnings=tuple(self._warnings),
            elapsed_seconds=elapsed,
            dry_run=self._dry_run,
        )

    @staticmethod
    def _duplicate_paths(artifacts: Sequence[GeneratedArtifact]) -> List[str]:
        seen: Dict[str, int] = {}
        for artifact in artifacts:
            seen[artifact.path] = seen.get(artifact.path, 0) + 1
        return sorted(p for p, n in seen.items() if n > 1)

    # -----------------------------------------------------------------
    # Internal: directory management
    # -----------------------------------------------------------------

    def _pre_export_cleanup(self) -> None:
        """Clean output directory if configured to do so."""
        if not self._clean_before_export or not self._output_dir.exists():
            return

        logger.info("Cleaning output directory: %s", self._output_dir)
        for item in self._output_dir.iterdir():
            if item.name in _PRESERVED_NAMES:
                continue
            try:
                if item.is_dir():
                    shutil.rmtree(item)
                else:
                    item.unlink()
            except OSError as exc:
                warning_msg: str = f"Could not remove {item}: {exc}"
                self._warnings.append(warning_msg)
                logger.warning(warning_msg)

    # -----------------------------------------------------------------
    # Internal: file writing
    # -----------------------------------------------------------------

    def _write_artifacts(self, artifacts: Sequence[GeneratedArtifact]) -> None:
        for artifact in artifacts:
            try:
                self._file_records.append(self._write_single_file(artifact))
            except OSError as exc:
                error_msg: str = f"Failed to write {artifact.path}: {type(exc).__name__}: {exc}"
                self._errors.append(error_msg)
                logger.error(error_msg)

        logger.info("Wrote %d generated files to %s.", len(self._file_records), self._output_dir)

    def _record(self, artifact: GeneratedArtifact) -> FileRecord:
        return FileRecord(
            relative_path=artifact.path,
            absolute_path=str(self._output_dir / artifact.path),
            size_bytes=len(artifact.content.encode("utf-8")),
            line_count=count_lines(artifact.content),
            sha256=sha256_hex(artifact.content),
            entity=artifact.entity,
            kind=artifact.kind,
        )

    def _write_single_file(self, artifact: GeneratedArtifact) -> FileRecord:
        """Write one artifact and return its FileRecord."""
        full_path: Path = self._output_dir / artifact.path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        encoded: bytes = artifact.content.encode("utf-8")

        if self._atomic_writes:
            self._atomic_write(full_path, encoded)
        else:
            full_path.write_bytes(encoded)

        record: FileRecord = self._record(artifact)
        logger.debug(
            "Wrote file: %s (%d bytes, %d lines).",
            artifact.path,
            record.size_bytes,
            record.line_count,
        )
        return record

    @staticmethod
    def _atomic_write(target_path: Path, data: bytes) -> None:
        """
        Write data to target_path atomically using a temporary file.

        ``os.replace`` is atomic when source and destination share a
        filesystem, so the temp file is created next to the target.
        """
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target_path.parent),
            prefix=f".{target_path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, str(target_path))
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # -----------------------------------------------------------------
    # Internal: manifest
    # -----------------------------------------------------------------

    def _build_manifest(self) -> ExportManifest:
        """Build the export manifest from collected file records."""
        import entitygen

        return ExportManifest(
            project_name=self._config.project_name,
            project_version=self._config.project_version,
            generator_version=entitygen.__version__,
            export_timestamp=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            output_directory=str(self._output_dir),
            total_files=len(self._file_records),
            total_bytes=sum(r.size_bytes for r in self._file_records),
            total_lines=sum(r.line_count for r in self._file_records),
            files=list(self._file_records),
        )

    def _write_manifest_file(self) -> None:
        """Write manifest.json next to the generated tree."""
        manifest_path: Path = self._output_dir / "manifest.json"
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            self._atomic_write(manifest_path, self._build_manifest().to_json().encode("utf-8"))
            logger.debug("Wrote manifest to %s.", manifest_path)
        except OSError as exc:
            self._warnings.append(f"Could not write manifest: {exc}")
            logger.warning("Failed to write manifest: %s", exc)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ArtifactExporter",
    "ExportManifest",
    "ExportResult",
    "FileRecord",
]

logger.debug("entitygen.exporters loaded — %d public symbols.", len(__all__))
