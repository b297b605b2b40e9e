# File: crudgen/cli.py
"""
crudgen - Command-Line Interface
==================================

Built on the standard-library ``argparse`` module.

Usage examples::

    # Generate a Rails scaffold (target taken from the schema file)
    python -m crudgen --schema schema.yaml --output ./blog

    # Same schema, different target
    python -m crudgen -s schema.yaml -o ./blog_api --framework fastapi --backend sqlalchemy

    # One controller file per entity instead of a generated/derived pair
    python -m crudgen -s schema.yaml -o ./out --no-controller-inheritance

    # See what would be written
    python -m crudgen -s schema.yaml -o ./out --dry-run -v

    # Validate only (no file output)
    python -m crudgen -s schema.yaml --validate-only

Exit codes:
    0 - success
    1 - schema or target error
    2 - generation error (hooks, unexpected failures)
    3 - write error
    4 - input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from crudgen.errors import (
    ArtifactWriteError,
    InvalidAssociationError,
    SchemaError,
    TargetError,
    UnresolvedReferenceError,
)
from crudgen.models import Framework, PersistenceBackend

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_WRITE_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``crudgen`` logger based on verbosity level.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("crudgen")
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
    from crudgen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="crudgen",
        description=(
            "crudgen - schema-driven CRUD scaffold generator.\n\n"
            "Turns an entity schema (YAML/JSON) into models, controllers, "
            "views and a route table for Rails, Express or FastAPI."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s schema.yaml -o ./blog\n"
            "  %(prog)s -s schema.yaml -o ./api --framework express --backend mongoose\n"
            "  %(prog)s -s schema.yaml -o ./out --dry-run -v\n"
            "  %(prog)s -s schema.yaml --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"crudgen v{__version__}",
    )

    parser.add_argument(
        "-s", "--schema",
        type=str,
        required=True,
        metavar="PATH",
        help="Path to the schema definition file (YAML or JSON).",
    )

    # --- Output ---
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help=(
            "Output directory for the scaffold. Defaults to the schema's "
            "config.output_dir."
        ),
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only validate the schema without generating code.",
    )
    mode_group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Run the full pipeline but leave the output directory untouched.",
    )

    # --- Target / config overrides ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "--framework",
        type=str,
        default=None,
        choices=[f.value for f in Framework],
        help="Override the target framework.",
    )
    config_group.add_argument(
        "--backend",
        type=str,
        default=None,
        choices=[b.value for b in PersistenceBackend],
        help="Override the persistence backend (defaults to the framework's first).",
    )
    config_group.add_argument(
        "--no-controller-inheritance",
        action="store_true",
        default=False,
        help="Emit one controller per entity instead of a generated base plus a derived class.",
    )
    config_group.add_argument(
        "--api-prefix",
        type=str,
        default=None,
        metavar="PREFIX",
        help="Override the API mount prefix for Express/FastAPI (e.g. '/api/v1').",
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
        help="Suppress all log output.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Build a config override dictionary from CLI arguments."""
    overrides: Dict[str, Any] = {}

    if args.framework is not None:
        overrides["framework"] = args.framework

    if args.backend is not None:
        overrides["persistence_backend"] = args.backend

    if args.output is not None:
        overrides["output_dir"] = str(Path(args.output).resolve())

    if args.no_controller_inheritance:
        overrides["controller_inheritance"] = False

    if args.api_prefix is not None:
        overrides["api_prefix"] = args.api_prefix

    if args.dry_run:
        overrides["dry_run"] = True

    return overrides


def _load(schema_path: Path, overrides: Dict[str, Any]) -> Any:
    from crudgen.generator import load_schema_file, parse_raw_schema

    return parse_raw_schema(load_schema_file(schema_path), overrides)


def _report_load_error(exc: Exception) -> int:
    if isinstance(exc, (SchemaError, TargetError)):
        logger.error("%s", exc.message)
        for problem in getattr(exc, "problems", []):
            logger.error("  - %s", problem)
        return EXIT_VALIDATION_ERROR
    logger.error("Failed to load schema: %s", exc)
    return EXIT_INPUT_ERROR


# ---------------------------------------------------------------------------
# Validate-only mode
# ---------------------------------------------------------------------------


def _run_validate_only(schema_path: Path, args: argparse.Namespace) -> int:
    """
    Run validation only (no code generation).

    Returns the appropriate exit code.
    """
    from crudgen.utils import Timer
    from crudgen.validators import validate_full

    logger.info("Running validation-only mode for: %s", schema_path)

    try:
        schema, config = _load(schema_path, _build_config_overrides(args))
    except (OSError, SchemaError, TargetError) as exc:
        return _report_load_error(exc)

    with Timer("validation") as t:
        result = validate_full(schema, config)

    print(f"\n{'=' * 50}")
    print("  Schema Validation Report")
    print(f"{'=' * 50}")
    print(f"  File:     {schema_path.name}")
    print(f"  Target:   {config.target}")
    print(f"  Entities: {schema.entity_count}")
    print(f"  Time:     {t.elapsed:.3f}s")
    print(f"  Valid:    {'Yes' if result.is_valid else 'No'}")

    if result.errors:
        print(f"\n  Errors ({len(result.errors)}):")
        for err in result.errors:
            print(f"    x {err}")

    if result.warnings:
        print(f"\n  Warnings ({len(result.warnings)}):")
        for warn in result.warnings:
            print(f"    ! {warn}")

    if result.is_valid and not result.warnings:
        print("\n  All validations passed!")

    print(f"{'=' * 50}\n")

    return EXIT_SUCCESS if result.is_valid else EXIT_VALIDATION_ERROR


# ---------------------------------------------------------------------------
# Full generation mode
# ---------------------------------------------------------------------------


def _exit_code_for(exc: Optional[Exception]) -> int:
    if exc is None:
        return EXIT_SUCCESS
    if isinstance(exc, (SchemaError, TargetError, InvalidAssociationError, UnresolvedReferenceError)):
        return EXIT_VALIDATION_ERROR
    if isinstance(exc, ArtifactWriteError):
        return EXIT_WRITE_ERROR
    return EXIT_GENERATION_ERROR


def _run_generation(schema_path: Path, args: argparse.Namespace) -> int:
    """
    Run the full generation pipeline.

    Returns the appropriate exit code.
    """
    from crudgen.generator import GenerationReport, ScaffoldGenerator

    try:
        schema, config = _load(schema_path, _build_config_overrides(args))
        generator: ScaffoldGenerator = ScaffoldGenerator(config)
    except (OSError, SchemaError, TargetError) as exc:
        return _report_load_error(exc)

    if config.dry_run:
        logger.info("Dry-run mode: files will not be written to disk.")

    report: GenerationReport = generator.generate(schema)
    print(report.summary())

    return _exit_code_for(report.error)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.CRITICAL)
    else:
        verbosity = args.verbose
        logging.disable(logging.NOTSET)

    _setup_logging(verbosity)

    schema_path: Path = Path(args.schema).resolve()

    if not schema_path.exists():
        logger.error("Schema file not found: %s", schema_path)
        sys.exit(EXIT_INPUT_ERROR)

    if not schema_path.is_file():
        logger.error("Schema path is not a file: %s", schema_path)
        sys.exit(EXIT_INPUT_ERROR)

    if args.validate_only:
        sys.exit(_run_validate_only(schema_path, args))

    logger.info("Schema:  %s", schema_path)
    logger.info("Output:  %s", args.output or "(from schema)")

    exit_code: int = _run_generation(schema_path, args)

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_WRITE_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("crudgen.cli loaded.")
