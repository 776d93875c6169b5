"""
Schema Loader Module.

Selects a JSON-LD document for a page URL, fetches it from the CDN,
fills in page metadata placeholders and injects it into the page head,
falling back to a static organization record on any failure.

Components:
    - resolver: path to schema filename
    - metadata: page context to PageMetadata
    - template: placeholder substitution
    - injector: marked script replacement
    - orchestrator: SchemaLoader, tying the above together
    - page: HtmlPage, the in-memory page the loader works on

Usage:
    >>> from config import load_config
    >>> from loader import HtmlPage, SchemaLoader
    >>> page = HtmlPage("https://www.recostseg.com/faq", html_text)
    >>> SchemaLoader.from_config(load_config()).load(page)
    >>> print(page.render())

Configuration (config.yml):
    loader:
      github_repo: "Joao-Aquino/recostseg-schemas"
      branch: "main"
      cache_time: 3600
      routes:
        exact:
          "/faq": "faq.json"
        patterns:
          - pattern: "^/post/"
            schema: "blog-post.json"
        default: "default.json"
"""

from loader.errors import LoaderError, NetworkError, TemplateParseError
from loader.injector import inject_schema
from loader.metadata import PageMetadata, extract_metadata
from loader.orchestrator import LoadResult, SchemaLoader
from loader.page import HtmlPage, PageEnvironment, ScriptElement
from loader.resolver import resolve
from loader.template import PLACEHOLDERS, apply_template

__all__ = [
    "LoaderError",
    "NetworkError",
    "TemplateParseError",
    "inject_schema",
    "PageMetadata",
    "extract_metadata",
    "LoadResult",
    "SchemaLoader",
    "HtmlPage",
    "PageEnvironment",
    "ScriptElement",
    "resolve",
    "PLACEHOLDERS",
    "apply_template",
]
