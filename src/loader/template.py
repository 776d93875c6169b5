"""
Placeholder substitution for JSON-LD templates.

Schema documents on the CDN carry literal tokens such as ``{{PAGE_TITLE}}``
inside their string values. apply_template() serializes the document,
replaces every occurrence of every known token with the matching page
metadata value, and parses the result back.

Tokens missing from a document are no-ops. Unknown ``{{...}}`` tokens are
left untouched.
"""
import json
from types import MappingProxyType
from typing import Any, Callable, Mapping

from loader.errors import TemplateParseError
from loader.metadata import PageMetadata


PLACEHOLDERS: Mapping[str, Callable[[PageMetadata], str]] = MappingProxyType({
    "{{CURRENT_URL}}": lambda m: m.url,
    "{{PAGE_TITLE}}": lambda m: m.title,
    "{{META_DESCRIPTION}}": lambda m: m.description,
    "{{OG_IMAGE}}": lambda m: m.image,
    "{{PUBLISHED_DATE}}": lambda m: m.published_date or m.modified_date,
    "{{MODIFIED_DATE}}": lambda m: m.modified_date,
    "{{AUTHOR}}": lambda m: m.author,
    "{{LANGUAGE}}": lambda m: m.language,
    "{{YEAR}}": lambda m: m.year,
})


def _escape(value: str) -> str:
    # Body of a JSON string literal, without the surrounding quotes
    return json.dumps(value, ensure_ascii=False)[1:-1]


def apply_template(
    document: Any,
    metadata: PageMetadata,
    placeholders: Mapping[str, Callable[[PageMetadata], str]] = PLACEHOLDERS,
    escape: bool = True,
) -> Any:
    """Return a new document with every placeholder token substituted.

    Args:
        document: Parsed JSON-LD document; not modified
        metadata: Values to substitute
        placeholders: Token to value-getter mapping
        escape: JSON-escape values before substitution. With escape=False
                values go in as raw text, so a quote or backslash in page
                metadata can break the document.

    Returns:
        The substituted document

    Raises:
        TemplateParseError: If the document can't be serialized or the
            substituted text is no longer valid JSON

    Example:
        >>> apply_template({"copyrightYear": "{{YEAR}}"}, PageMetadata(year="2026"))
        {'copyrightYear': '2026'}
    """
    try:
        text = json.dumps(document, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise TemplateParseError(f"Schema document is not serializable: {e}") from e

    for token, value_of in placeholders.items():
        if token not in text:
            continue
        value = value_of(metadata)
        text = text.replace(token, _escape(value) if escape else value)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise TemplateParseError(f"Substituted schema is not valid JSON: {e}") from e
