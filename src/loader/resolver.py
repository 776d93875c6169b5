"""
Path-to-schema resolution.

Maps a page path to the schema filename that describes it. Exact routes
are checked first, then pattern routes in declaration order; the first
match wins and anything unmatched gets the default schema.

Usage:
    >>> from loader.resolver import resolve
    >>> resolve("/services/")
    'services.json'
    >>> resolve("/post/my-article")
    'blog-post.json'
    >>> resolve("/unknown/path")
    'default.json'
"""
from typing import Optional

from config import RouteRules, get_default_config


DEFAULT_ROUTES = RouteRules.from_config(get_default_config()["loader"]["routes"])


def normalize_path(path: str) -> str:
    """Strip exactly one trailing slash; an empty result becomes "/"."""
    if path.endswith("/"):
        path = path[:-1]
    return path or "/"


def resolve(path: str, rules: Optional[RouteRules] = None) -> str:
    """Return the schema filename for a page path.

    Args:
        path: URL path of the page (no scheme, host or query)
        rules: Route tables; defaults to the built-in site routes

    Returns:
        Schema filename, never empty
    """
    rules = rules or DEFAULT_ROUTES
    normalized = normalize_path(path)

    schema = rules.exact.get(normalized)
    if schema:
        return schema

    for pattern, schema in rules.patterns:
        if pattern.search(normalized):
            return schema

    return rules.default
