"""
Schema Validator Module.

Build-time check that every JSON-LD document in the schema directory has
the minimal Schema.org shape.

Usage:
    >>> from validator import run_validation
    >>> validation = run_validation("schemas")
    >>> validation.exit_code
    0
"""

from validator.validator import (
    DocumentParseError,
    SchemaShapeError,
    ValidationReport,
    ValidationResult,
    check_document,
    main,
    run_validation,
    validate_all,
    validate_file,
)

__all__ = [
    "DocumentParseError",
    "SchemaShapeError",
    "ValidationReport",
    "ValidationResult",
    "check_document",
    "main",
    "run_validation",
    "validate_all",
    "validate_file",
]
