"""
Pytest configuration and shared fixtures for all tests.

Provides:
- A fixed clock so timestamps, years and cache buckets are deterministic
- A page factory building HtmlPage objects on that clock
- A response factory building real requests.Response objects for mocked GETs
- The default loader configuration
"""

import json
from datetime import datetime, timezone

import pytest
import requests

from config import get_default_config, get_loader_config
from loader.page import HtmlPage


FIXED_NOW = datetime(2026, 10, 18, 9, 30, 15, 123456, tzinfo=timezone.utc)

ARTICLE_HTML = """<!DOCTYPE html>
<html lang="en-GB">
<head>
  <meta charset="utf-8">
  <title>Cost Segregation 101 | RE Cost Seg</title>
  <meta name="description" content="What cost segregation is and who it helps.">
  <meta property="og:image" content="https://cdn.example.com/og/cost-seg-101.png">
  <meta property="article:published_time" content="2026-03-01T08:00:00Z">
  <meta name="author" content="Jane Analyst">
</head>
<body><h1>Cost Segregation 101</h1></body>
</html>"""


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def make_page():
    """Factory for pages on the fixed clock."""

    def _make(url="https://www.recostseg.com/", source=None, **kwargs):
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        if source is None:
            return HtmlPage(url, **kwargs)
        return HtmlPage(url, source, **kwargs)

    return _make


@pytest.fixture
def make_response():
    """Factory for requests.Response objects with a JSON or raw body."""

    def _make(status=200, body=None, reason="OK", url="https://cdn.jsdelivr.net/gh/test"):
        response = requests.Response()
        response.status_code = status
        response.reason = reason
        response.url = url
        response.encoding = "utf-8"
        if isinstance(body, bytes):
            response._content = body
        else:
            response._content = json.dumps(body if body is not None else {}).encode("utf-8")
        return response

    return _make


@pytest.fixture
def loader_config():
    return get_loader_config(get_default_config())
