# File: entitygen/cli.py
"""
entitygen - Command-Line Interface
====================================

Built on the standard-library ``argparse`` module.

Usage examples::

    # Basic generation
    entitygen --entities entities.yaml --output ./out

    # Verbose output with clean directory
    python -m entitygen -s entities.json -o ./out -v --clean

    # Validate only (no file output)
    entitygen -s entities.yaml --validate-only

    # Generate what succeeds even if some entities fail
    entitygen -s entities.yaml -o ./out --no-strict

Exit codes:
    0 — success
    1 — validation error
    2 — generation error (including unimplemented dialects)
    3 — export error
    4 — input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, NoReturn, Optional, Sequence

from entitygen.generator import (
    EXIT_EXPORT_ERROR,
    EXIT_GENERATION_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_SUCCESS,
    EXIT_VALIDATION_ERROR,
    EntityGenerator,
    GenerationReport,
)

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen")


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root entitygen logger based on verbosity level.

    Args:
        verbosity: -1 = ERROR, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    elif verbosity == 0:
        level = logging.WARNING
    else:
        level = logging.ERROR

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
            datefmt="%H:%M:%S",
        )
    )

    root_logger: logging.Logger = logging.getLogger("entitygen")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from entitygen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="entitygen",
        description=(
            "entitygen — schema-driven entity code generator.\n\n"
            "Turns annotated entity declarations (JSON/YAML) into pydantic data "
            "shapes, repository contracts, a Postgres backend, migrations, "
            "commands, events and policies."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s entities.yaml -o ./out\n"
            "  %(prog)s -s entities.json -o ./out -v --clean\n"
            "  %(prog)s -s entities.yaml --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"entitygen v{__version__}",
    )

    parser.add_argument(
        "-s", "--entities",
        type=str,
        required=True,
        metavar="PATH",
        help="Path to the entity document (JSON or YAML).",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help="Output directory. Required unless --validate-only is set.",
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Build and validate entities without generating code.",
    )
    mode_group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Run the full pipeline but don't write files to disk.",
    )

    # --- Config overrides ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "--project-name",
        type=str,
        default=None,
        metavar="NAME",
        help="Override the project name.",
    )
    config_group.add_argument(
        "--package-name",
        type=str,
        default=None,
        metavar="NAME",
        help="Override the root package of the generated code.",
    )
    config_group.add_argument(
        "--strict-references",
        action="store_true",
        default=False,
        help="Fail on dangling field and relation references instead of warning.",
    )

    # --- Behaviour flags ---
    behaviour_group = parser.add_argument_group("behaviour flags")
    behaviour_group.add_argument(
        "--clean",
        action="store_true",
        default=False,
        help="Clean output directory before writing.",
    )
    behaviour_group.add_argument(
        "--no-strict",
        action="store_true",
        default=False,
        help="Export the entities that succeeded even if others failed.",
    )
    behaviour_group.add_argument(
        "--fail-on-warnings",
        action="store_true",
        default=False,
        help="Treat validation warnings as errors.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, object]:
    """Build a config override dictionary from CLI arguments."""
    overrides: Dict[str, object] = {}
    if args.project_name is not None:
        overrides["project_name"] = args.project_name
    if args.package_name is not None:
        overrides["package_name"] = args.package_name
    if args.strict_references:
        overrides["strict_references"] = True
    return overrides


# ---------------------------------------------------------------------------
# Validation report
# ---------------------------------------------------------------------------


def _print_validation_report(entity_path: Path, report: GenerationReport) -> None:
    print(f"\n{'=' * 50}")
    print("  Entity Validation Report")
    print(f"{'=' * 50}")
    print(f"  File:     {entity_path.name}")
    print(f"  Entities: {report.total_entities}")
    print(f"  Time:     {report.total_elapsed_seconds:.3f}s")
    print(f"  Valid:    {'Yes' if report.success else 'No'}")

    for title, items, icon in (
        ("Input errors", report.input_errors, "✗"),
        ("Errors", report.validation_errors, "✗"),
        ("Warnings", report.validation_warnings, "⚠"),
    ):
        if items:
            print(f"\n  {title} ({len(items)}):")
            for item in items:
                print(f"    {icon} {item}")

    if report.success and not report.validation_warnings:
        print("\n  ✅ All validations passed!")
    print(f"{'=' * 50}\n")


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parse *argv*, run the pipeline and return the exit code.

    Argument errors exit through ``argparse`` with status 2.
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    verbosity: int = -1 if args.quiet else args.verbose
    _setup_logging(verbosity)

    entity_path: Path = Path(args.entities).resolve()
    if not entity_path.is_file():
        logger.error("Entity file not found: %s", entity_path)
        return EXIT_INPUT_ERROR

    if not args.validate_only and args.output is None:
        logger.error(
            "Output directory is required for generation. Use -o/--output or --validate-only."
        )
        parser.print_usage(sys.stderr)
        return EXIT_INPUT_ERROR

    output_dir: Path = Path(args.output or ".").resolve()
    overrides: Dict[str, object] = _build_config_overrides(args)

    logger.info("Entities: %s", entity_path)
    logger.info("Output:   %s", output_dir)
    logger.info("Strict:   %s", not args.no_strict)

    generator: EntityGenerator = EntityGenerator(
        strict=not args.no_strict,
        fail_on_warnings=args.fail_on_warnings,
        clean_output=args.clean,
        dry_run=args.dry_run,
        validate_only=args.validate_only,
    )
    report: GenerationReport = generator.generate_from_file(
        entity_path,
        output_dir,
        config_overrides=overrides or None,
    )

    if args.validate_only:
        _print_validation_report(entity_path, report)
    else:
        print(report.summary())

    exit_code: int = report.exit_code
    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)
    return exit_code


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Console-script entry point; exits with the pipeline's exit code."""
    sys.exit(run_cli(argv))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "run_cli",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("entitygen.cli loaded — %d public symbols.", len(__all__))
