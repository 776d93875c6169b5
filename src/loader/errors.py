"""Exceptions raised inside the schema loader pipeline.

None of these escape SchemaLoader.load(); every one of them ends in the
fallback organization record being injected instead.
"""
from typing import Optional


class LoaderError(Exception):
    """Base error for the schema loader."""


class NetworkError(LoaderError):
    """Fetching a schema failed: non-2xx status, transport error, or a body
    that isn't JSON.

    Attributes:
        url: The schema URL that was requested
        status_code: HTTP status, or None when no response was received
    """

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class TemplateParseError(LoaderError):
    """The document could not be serialized, or the substituted text no
    longer parses as JSON."""
