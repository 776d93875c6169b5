"""
Centralized JSON Schema Loading Module.

Loads the fixed Schema.org document shape from disk once, at import time,
and exposes it as a module-level constant.

File Location:
    Schemas live in the same directory as this module (src/schema/). The
    path is resolved from __file__ so it works from any working directory.

Error Handling:
    - FileNotFoundError: Schema file doesn't exist at expected path
    - json.JSONDecodeError: Schema file contains invalid JSON syntax
"""
import json
from pathlib import Path
from typing import Any, Dict, Tuple

SCHEMA_DIR = Path(__file__).parent


def _load_schema(schema_filename: str) -> Dict[str, Any]:
    """
    Load a JSON schema file from the schema directory.

    Args:
        schema_filename: Name of the JSON schema file (e.g., "schema_org_document.json")

    Returns:
        Parsed JSON schema as a dictionary, ready for use with jsonschema library

    Raises:
        FileNotFoundError: If the schema file doesn't exist at the expected location.
        json.JSONDecodeError: If the schema file exists but contains invalid JSON.

    Example:
        >>> schema = _load_schema("schema_org_document.json")
        >>> schema["required"]
        ['@context']
    """
    schema_path = SCHEMA_DIR / schema_filename

    if not schema_path.exists():
        raise FileNotFoundError(
            f"Schema file not found: {schema_path}. "
            f"Expected location: {SCHEMA_DIR}"
        )

    try:
        with open(schema_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise json.JSONDecodeError(
            f"Invalid JSON in schema file {schema_filename}: {e.msg}",
            e.doc,
            e.pos
        ) from e


# Schema.org document shape (JSON Schema Draft 7)
SCHEMA_ORG_DOCUMENT_SCHEMA = _load_schema("schema_org_document.json")

# The two literal @context values the shape accepts, in declaration order
ACCEPTED_CONTEXTS: Tuple[str, ...] = tuple(
    option["const"] for option in SCHEMA_ORG_DOCUMENT_SCHEMA["properties"]["@context"]["oneOf"]
)


def get_schema_org_document_schema() -> Dict[str, Any]:
    """
    Get the Schema.org document JSON schema.

    Returns the same object as SCHEMA_ORG_DOCUMENT_SCHEMA; useful for
    mocking in tests.
    """
    return SCHEMA_ORG_DOCUMENT_SCHEMA
