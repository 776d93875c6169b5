"""Schema Package - Fixed JSON-LD Document Shape.

This package loads the JSON Schema (Draft 7) describing the minimal
Schema.org shape every JSON-LD document must satisfy, and exposes it as a
module-level constant.

Available Schemas:
    SCHEMA_ORG_DOCUMENT_SCHEMA: requires ``@context`` to be one of the two
        accepted Schema.org namespace URIs, and constrains the optional
        ``@type`` (string) and ``@graph`` (array) keys. Other keys are
        permitted.

Usage Patterns:
    # Direct import (most common):
    from schema import SCHEMA_ORG_DOCUMENT_SCHEMA
    Draft7Validator(SCHEMA_ORG_DOCUMENT_SCHEMA).iter_errors(document)

    # Function-based access (for dynamic use):
    from schema import get_schema_org_document_schema
    schema = get_schema_org_document_schema()

Error Handling:
    If the schema file is missing or contains invalid JSON, the import
    fails with a message pointing to the expected file location.
"""
from .schema import (
    ACCEPTED_CONTEXTS,
    SCHEMA_ORG_DOCUMENT_SCHEMA,
    get_schema_org_document_schema,
)

__all__ = [
    "ACCEPTED_CONTEXTS",
    "SCHEMA_ORG_DOCUMENT_SCHEMA",
    "get_schema_org_document_schema",
]
