"""
JSON-LD Schema Directory Validator.

Checks every JSON-LD document in a schema directory against the fixed
Schema.org document shape and reports pass/fail per file. Intended as a
build gate: the exit status is non-zero when any document is unparsable or
fails the shape check.

Rules (from schema/schema_org_document.json):
    - ``@context`` is required and must be ``https://schema.org`` or
      ``http://schema.org``
    - ``@type``, when present, must be a string
    - ``@graph``, when present, must be an array
    - every other key is ignored

All violations in a document are collected; a single result can carry
several errors. A parse failure in one file never stops the scan.

Usage:
    $ validate-schemas
    $ validate-schemas --schemas-dir ./schemas --no-color

    >>> from validator import validate_all
    >>> results = validate_all("schemas")
    >>> [r.filename for r in results if not r.valid]
    []
"""
import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, TextIO, Union

from jsonschema import Draft7Validator, ValidationError

from config import configure_logging, find_config_file, get_validator_config, load_config
from schema import ACCEPTED_CONTEXTS, SCHEMA_ORG_DOCUMENT_SCHEMA


logger = logging.getLogger(__name__)

_DOCUMENT_VALIDATOR = Draft7Validator(SCHEMA_ORG_DOCUMENT_SCHEMA)

_ARTICLES = {"object": "an object", "array": "an array", "string": "a string"}

COLORS = {
    "reset": "\x1b[0m",
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
}


class DocumentParseError(Exception):
    """Raised when a schema file cannot be read or is not valid JSON."""

    def __init__(self, filename: str, detail: str):
        self.filename = filename
        self.detail = detail
        super().__init__(f"Invalid JSON: {detail}")


class SchemaShapeError(Exception):
    """A single violation of the Schema.org document shape.

    Attributes:
        kind: One of MISSING_CONTEXT, BAD_CONTEXT_VALUE, WRONG_TYPE
        field: Offending top-level key, or None for the document root
    """
    MISSING_CONTEXT = "missing-context"
    BAD_CONTEXT_VALUE = "bad-context-value"
    WRONG_TYPE = "wrong-type-for-field"

    def __init__(self, kind: str, message: str, field: Optional[str] = None):
        self.kind = kind
        self.field = field
        super().__init__(message)


@dataclass
class ValidationResult:
    """Outcome of validating a single schema file."""
    filename: str
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class ValidationReport:
    """Aggregate outcome of a validation run."""
    results: List[ValidationResult] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(not result.valid for result in self.results)

    @property
    def exit_code(self) -> int:
        return 1 if self.has_errors else 0


def _classify(error: ValidationError) -> SchemaShapeError:
    """Map a jsonschema error onto the shape error taxonomy."""
    field_name = str(error.path[0]) if error.path else None

    if error.validator == "required":
        return SchemaShapeError(
            SchemaShapeError.MISSING_CONTEXT, "@context is required", field="@context"
        )

    if field_name == "@context":
        accepted = " or ".join(f'"{context}"' for context in ACCEPTED_CONTEXTS)
        return SchemaShapeError(
            SchemaShapeError.BAD_CONTEXT_VALUE,
            f"@context must be {accepted} (got {json.dumps(error.instance)})",
            field=field_name,
        )

    if error.validator == "type":
        expected = _ARTICLES.get(error.validator_value, str(error.validator_value))
        subject = field_name or "document"
        return SchemaShapeError(
            SchemaShapeError.WRONG_TYPE, f"{subject} must be {expected}", field=field_name
        )

    # Only reachable if the shape file grows keywords this mapping doesn't know
    return SchemaShapeError(SchemaShapeError.WRONG_TYPE, error.message, field=field_name)


def check_document(document: Any) -> List[SchemaShapeError]:
    """Check a parsed document against the Schema.org shape.

    Args:
        document: Any parsed JSON value

    Returns:
        Every violation found, in rule order; empty when the document is valid

    Example:
        >>> check_document({"@context": "https://schema.org", "@type": "Thing"})
        []
        >>> [e.kind for e in check_document({"@type": 3})]
        ['missing-context', 'wrong-type-for-field']
    """
    return [_classify(error) for error in _DOCUMENT_VALIDATOR.iter_errors(document)]


def parse_document(path: Path) -> Any:
    """Read and parse one schema file.

    Raises:
        DocumentParseError: If the file can't be read, decoded or parsed
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise DocumentParseError(path.name, str(e)) from e
    except UnicodeDecodeError as e:
        raise DocumentParseError(path.name, f"not UTF-8 encoded ({e.reason})") from e
    except OSError as e:
        raise DocumentParseError(path.name, f"unreadable file ({e.strerror or e})") from e


def validate_file(path: Union[str, Path]) -> ValidationResult:
    """Validate a single schema file; never raises for bad content."""
    path = Path(path)
    try:
        document = parse_document(path)
    except DocumentParseError as e:
        logger.debug(f"Parse failure in {path.name}: {e.detail}")
        return ValidationResult(filename=path.name, valid=False, errors=[str(e)])

    errors = [str(error) for error in check_document(document)]
    return ValidationResult(filename=path.name, valid=not errors, errors=errors)


def list_schema_files(directory: Union[str, Path], extensions: Iterable[str] = (".json",)) -> List[Path]:
    """List schema files directly inside directory, sorted by name.

    Raises:
        FileNotFoundError: If directory doesn't exist
        NotADirectoryError: If directory is a file
    """
    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(f"Schema directory not found: {directory}")
    if not directory.is_dir():
        raise NotADirectoryError(f"Schema path is not a directory: {directory}")

    suffixes = {ext.lower() for ext in extensions}
    return sorted(
        (path for path in directory.iterdir() if path.is_file() and path.suffix.lower() in suffixes),
        key=lambda path: path.name,
    )


def validate_all(
    directory: Union[str, Path],
    extensions: Iterable[str] = (".json", ".jsonld"),
) -> List[ValidationResult]:
    """Validate every schema file in directory (non-recursive).

    Args:
        directory: Schema directory to scan
        extensions: File suffixes treated as schema documents

    Returns:
        One ValidationResult per file, in filename order
    """
    files = list_schema_files(directory, extensions)
    logger.info(f"Validating {len(files)} schema file(s) in {directory}")
    return [validate_file(path) for path in files]


def run_validation(
    directory: Union[str, Path],
    extensions: Iterable[str] = (".json", ".jsonld"),
) -> ValidationReport:
    return ValidationReport(results=validate_all(directory, extensions))


def _paint(text: str, color: str, use_color: bool) -> str:
    if not use_color:
        return text
    return f"{COLORS[color]}{text}{COLORS['reset']}"


def report_result(result: ValidationResult, out: TextIO, use_color: bool = False) -> None:
    """Write the human-readable line(s) for one result."""
    if result.valid:
        print(f"{_paint('✓', 'green', use_color)} {result.filename}", file=out)
        return
    print(f"{_paint('✗', 'red', use_color)} {result.filename}", file=out)
    print(f"  {_paint(', '.join(result.errors), 'yellow', use_color)}", file=out)


def report(validation: ValidationReport, out: TextIO, use_color: bool = False) -> None:
    """Write per-file lines and the final summary."""
    print("🔍 Validating Schema Files...\n", file=out)
    for result in validation.results:
        report_result(result, out, use_color)
    print("\n" + "=" * 50, file=out)
    if validation.has_errors:
        print(_paint("Validation failed!", "red", use_color), file=out)
    else:
        print(_paint("All schemas are valid!", "green", use_color), file=out)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the validate-schemas console script.

    Returns:
        0 when every schema is valid, 1 otherwise
    """
    parser = argparse.ArgumentParser(
        description="Validate JSON-LD schema files against the Schema.org document shape."
    )
    parser.add_argument("--schemas-dir", default=None, help="Directory containing schema files")
    parser.add_argument("--config", default=None, help="Path to config.yml")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    configure_logging(args.debug)

    # A relative schemas_dir in config.yml is relative to that file
    config_path = find_config_file(args.config)
    base_dir = str(Path(config_path).parent) if config_path else None
    validator_config = get_validator_config(load_config(config_path), base_dir=base_dir)
    schemas_dir = args.schemas_dir or validator_config.schemas_dir
    use_color = not args.no_color and sys.stdout.isatty()

    try:
        validation = run_validation(schemas_dir, validator_config.extensions)
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.error(str(e))
        print(_paint(f"Validation failed! {e}", "red", use_color))
        return 1

    report(validation, sys.stdout, use_color)
    return validation.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
