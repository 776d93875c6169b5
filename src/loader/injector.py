"""
JSON-LD script injection.

Replaces the loader's script element in the page head. Existing elements
carrying the marker attribute are removed before the new one is appended,
so at most one loader-injected document is ever live.
"""
import json
from typing import Any

from loader.page import HtmlPage, LD_JSON_TYPE, ScriptElement


def serialize_schema(document: Any, pretty: bool = False) -> str:
    """Serialize a document for a script element; compact unless pretty."""
    if pretty:
        return json.dumps(document, indent=2, ensure_ascii=False)
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)


def inject_schema(
    page: HtmlPage,
    document: Any,
    attribute: str = "data-schema-loader",
    value: str = "recostseg",
    pretty: bool = False,
) -> ScriptElement:
    """Replace the marked JSON-LD script in page with one holding document.

    Returns:
        The newly appended script element
    """
    script = ScriptElement(
        text=serialize_schema(document, pretty),
        type=LD_JSON_TYPE,
        attributes={attribute: value},
    )
    page.replace_scripts(attribute, value, script)
    return script
