#!/usr/bin/env python3
"""Render a page with its JSON-LD schema injected into the head."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from config import configure_logging, load_config
from loader.orchestrator import SchemaLoader
from loader.page import EMPTY_DOCUMENT, HtmlPage


logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("url", help="Page URL; its path selects the schema")
    parser.add_argument("--html", default=None, help="Page HTML file, or - for stdin")
    parser.add_argument("--output", "-o", default=None, help="Write HTML here instead of stdout")
    parser.add_argument("--config", default=None, help="Path to config.yml")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    configure_logging(args.debug)

    if args.html == "-":
        source = sys.stdin.read()
    elif args.html:
        try:
            source = Path(args.html).read_text(encoding="utf-8")
        except OSError as e:
            print(f"Cannot read {args.html}: {e}", file=sys.stderr)
            return 1
    else:
        source = EMPTY_DOCUMENT

    try:
        loader = SchemaLoader.from_config(load_config(args.config))
    except ValueError as e:
        print(f"Invalid loader configuration: {e}", file=sys.stderr)
        return 1

    page = HtmlPage(args.url, source)
    result = loader.load(page)
    if result.used_fallback:
        logger.warning(f"Injected fallback schema for {args.url}: {result.error}")

    rendered = page.render()
    if args.output:
        Path(args.output).write_text(rendered, encoding="utf-8")
    else:
        sys.stdout.write(rendered)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
