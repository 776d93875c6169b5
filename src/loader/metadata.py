"""
Page metadata extraction.

Reads the ambient page context into a flat PageMetadata record. Every field
has a default, so extraction never fails on a sparse page.

Usage:
    >>> from loader.metadata import extract_metadata
    >>> metadata = extract_metadata(page)
    >>> metadata.author
    'RE Cost Seg'
"""
from dataclasses import dataclass
from datetime import datetime, timezone

from loader.page import PageEnvironment


DEFAULT_AUTHOR = "RE Cost Seg"
DEFAULT_LANGUAGE = "en-US"


@dataclass(frozen=True)
class PageMetadata:
    """Page context used for placeholder substitution.

    Attributes:
        url: Full page URL
        title: Document title ("" when absent)
        description: ``meta[name=description]`` content ("" when absent)
        image: ``meta[property=og:image]`` content ("" when absent)
        published_date: ``meta[property=article:published_time]`` content ("" when absent)
        modified_date: Extraction instant, ISO-8601 UTC with milliseconds
        author: ``meta[name=author]`` content, else the default author
        language: ``<html lang>``, else the default language
        year: Four-digit year of the extraction instant
    """
    url: str = ""
    title: str = ""
    description: str = ""
    image: str = ""
    published_date: str = ""
    modified_date: str = ""
    author: str = DEFAULT_AUTHOR
    language: str = DEFAULT_LANGUAGE
    year: str = ""


def format_timestamp(moment: datetime) -> str:
    """Format an instant like ``2026-10-18T09:30:00.000Z``.

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def extract_metadata(
    env: PageEnvironment,
    default_author: str = DEFAULT_AUTHOR,
    default_language: str = DEFAULT_LANGUAGE,
) -> PageMetadata:
    """Read page context from env into a new PageMetadata.

    Empty values fall back the same way as missing ones: an empty
    ``<meta name="author" content="">`` still yields the default author.
    """
    now = env.now()
    return PageMetadata(
        url=env.href or "",
        title=env.title or "",
        description=env.meta(name="description") or "",
        image=env.meta(property="og:image") or "",
        published_date=env.meta(property="article:published_time") or "",
        modified_date=format_timestamp(now),
        author=env.meta(name="author") or default_author,
        language=env.language or default_language,
        year=f"{now.year:04d}",
    )
