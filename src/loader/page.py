"""
In-memory HTML page model.

HtmlPage stands in for the browser side of the schema loader. It parses an
HTML document once and exposes:

- the ambient context the metadata extractor reads (location, title, meta
  elements, ``<html lang>``, the clock), through the PageEnvironment protocol
- the JSON-LD ``<script>`` elements living in ``<head>``, which the injector
  replaces
- a small event bus for ``DOMContentLoaded`` and client-side navigation events
- render(), which writes the page back out as HTML with the current head scripts

Only ``application/ld+json`` scripts in the head are lifted out of the
source; every other element is left exactly where it was.

Usage:
    >>> page = HtmlPage("https://www.example.com/faq", "<html><head></head></html>")
    >>> page.pathname
    '/faq'
"""
import html
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from html.parser import HTMLParser
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple
from urllib.parse import urlparse


logger = logging.getLogger(__name__)

LD_JSON_TYPE = "application/ld+json"

EMPTY_DOCUMENT = "<!DOCTYPE html><html><head></head><body></body></html>"

READY_LOADING = "loading"
READY_COMPLETE = "complete"


class PageEnvironment(Protocol):
    """Read-only view of the ambient page context."""

    @property
    def href(self) -> str: ...

    @property
    def hostname(self) -> str: ...

    @property
    def pathname(self) -> str: ...

    @property
    def title(self) -> str: ...

    @property
    def language(self) -> str: ...

    def meta(self, *, name: Optional[str] = None, property: Optional[str] = None) -> Optional[str]:
        ...

    def now(self) -> datetime:
        ...


@dataclass
class ScriptElement:
    """A ``<script>`` element held in the page head."""
    text: str
    type: str = LD_JSON_TYPE
    attributes: Dict[str, str] = field(default_factory=dict)

    def matches(self, attribute: str, value: str) -> bool:
        return self.attributes.get(attribute) == value

    def to_html(self) -> str:
        attrs = [("type", self.type)] + [
            (name, value) for name, value in self.attributes.items() if name != "type"
        ]
        rendered = " ".join(f'{name}="{html.escape(value, quote=True)}"' for name, value in attrs)
        # "</" can't appear raw inside a script block; "<\/" is the same JSON string
        body = self.text.replace("</", "<\\/")
        return f"<script {rendered}>{body}</script>"


@dataclass
class Event:
    type: str
    target: Any = None
    detail: Any = None


class _PageParser(HTMLParser):
    """Collects page context and the spans of head JSON-LD scripts."""

    def __init__(self, source: str):
        super().__init__(convert_charrefs=True)
        self.source = source
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", source)]

        self.language = ""
        self.metas: List[Dict[str, str]] = []
        self.title_parts: List[str] = []
        self.title_seen = False
        self.head_end: Optional[int] = None
        self.body_start: Optional[int] = None
        self.scripts: List[Tuple[int, int, ScriptElement]] = []

        self._in_title = False
        self._script: Optional[Tuple[int, Dict[str, str]]] = None
        self._script_text: List[str] = []

    def _offset(self) -> int:
        line, column = self.getpos()
        return self._line_starts[line - 1] + column

    @property
    def _in_head(self) -> bool:
        return self.head_end is None and self.body_start is None

    def handle_starttag(self, tag, attrs):
        attrs_dict = {name: (value or "") for name, value in attrs}
        if tag == "html" and not self.language:
            self.language = attrs_dict.get("lang", "")
        elif tag == "meta":
            self.metas.append(attrs_dict)
        elif tag == "title" and not self.title_seen:
            self._in_title = True
        elif tag == "body" and self.body_start is None:
            self.body_start = self._offset()
        elif tag == "script" and self._in_head and attrs_dict.get("type", "").strip().lower() == LD_JSON_TYPE:
            self._script = (self._offset(), attrs_dict)
            self._script_text = []

    def handle_endtag(self, tag):
        if tag == "title" and self._in_title:
            self._in_title = False
            self.title_seen = True
        elif tag == "head" and self.head_end is None:
            self.head_end = self._offset()
        elif tag == "script" and self._script is not None:
            start, attrs_dict = self._script
            close = self.source.find(">", self._offset())
            end = len(self.source) if close == -1 else close + 1
            script_type = attrs_dict.pop("type", LD_JSON_TYPE)
            element = ScriptElement(text="".join(self._script_text), type=script_type, attributes=attrs_dict)
            self.scripts.append((start, end, element))
            self._script = None

    def handle_data(self, data):
        if self._in_title:
            self.title_parts.append(data)
        elif self._script is not None:
            self._script_text.append(data)


class HtmlPage:
    """A parsed HTML page with a mutable head and an event bus.

    Attributes:
        ready_state: "loading" until mark_ready() is called, or "complete"
    """

    def __init__(
        self,
        url: str,
        source: str = EMPTY_DOCUMENT,
        clock: Optional[Callable[[], datetime]] = None,
        ready_state: str = READY_COMPLETE,
    ):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.ready_state = ready_state
        self._listeners: Dict[str, List[Callable[[Event], Any]]] = {}
        self._lock = threading.RLock()
        self._set_location(url)
        self._load_source(source)

    # -- location ---------------------------------------------------------

    def _set_location(self, url: str) -> None:
        parsed = urlparse(url)
        self._href = url
        self._hostname = (parsed.hostname or "").lower()
        self._pathname = parsed.path or "/"

    @property
    def href(self) -> str:
        return self._href

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def pathname(self) -> str:
        return self._pathname

    # -- document ---------------------------------------------------------

    def _load_source(self, source: str) -> None:
        parser = _PageParser(source)
        parser.feed(source)
        parser.close()

        self._title = " ".join("".join(parser.title_parts).split())
        self._language = parser.language
        self._metas = parser.metas

        # Cut the head JSON-LD scripts out of the source; render() puts the
        # current set back at the insertion point.
        pieces = []
        cursor = 0
        removed_before_insert = 0
        insert_at = parser.head_end if parser.head_end is not None else parser.body_start
        for start, end, _ in parser.scripts:
            pieces.append(source[cursor:start])
            if insert_at is not None and end <= insert_at:
                removed_before_insert += end - start
            cursor = end
        pieces.append(source[cursor:])

        self._template = "".join(pieces)
        if insert_at is None:
            self._insert_at = parser.scripts[0][0] if parser.scripts else 0
        else:
            self._insert_at = insert_at - removed_before_insert

        with self._lock:
            self._head_scripts = [element for _, _, element in parser.scripts]

    @property
    def title(self) -> str:
        return self._title

    @property
    def language(self) -> str:
        return self._language

    def meta(self, *, name: Optional[str] = None, property: Optional[str] = None) -> Optional[str]:
        """Return the content of the first matching meta element.

        Matches ``<meta name=...>`` or ``<meta property=...>``. A matching
        element without a content attribute yields "".
        """
        for attrs in self._metas:
            if name is not None and attrs.get("name") == name:
                return attrs.get("content", "")
            if property is not None and attrs.get("property") == property:
                return attrs.get("content", "")
        return None

    def now(self) -> datetime:
        return self._clock()

    # -- head scripts -----------------------------------------------------

    @property
    def head_scripts(self) -> List[ScriptElement]:
        with self._lock:
            return list(self._head_scripts)

    def query_scripts(self, attribute: str, value: str) -> List[ScriptElement]:
        with self._lock:
            return [script for script in self._head_scripts if script.matches(attribute, value)]

    def remove_scripts(self, attribute: str, value: str) -> int:
        """Remove every head script carrying attribute=value; returns the count."""
        with self._lock:
            before = len(self._head_scripts)
            self._head_scripts = [s for s in self._head_scripts if not s.matches(attribute, value)]
            return before - len(self._head_scripts)

    def append_script(self, script: ScriptElement) -> None:
        with self._lock:
            self._head_scripts.append(script)

    def replace_scripts(self, attribute: str, value: str, script: ScriptElement) -> int:
        """Atomically remove the marked scripts and append script."""
        with self._lock:
            removed = self.remove_scripts(attribute, value)
            self.append_script(script)
            return removed

    # -- events -----------------------------------------------------------

    def add_event_listener(self, event_type: str, listener: Callable[[Event], Any]) -> None:
        with self._lock:
            listeners = self._listeners.setdefault(event_type, [])
            if listener not in listeners:
                listeners.append(listener)

    def remove_event_listener(self, event_type: str, listener: Callable[[Event], Any]) -> None:
        with self._lock:
            listeners = self._listeners.get(event_type, [])
            if listener in listeners:
                listeners.remove(listener)

    def dispatch_event(self, event_type: str, detail: Any = None) -> Event:
        """Call every listener for event_type in registration order.

        A listener that raises is logged and the remaining listeners still
        run, as in a browser.
        """
        event = Event(type=event_type, target=self, detail=detail)
        with self._lock:
            listeners = list(self._listeners.get(event_type, []))
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener for '{event_type}' failed")
        return event

    def mark_ready(self) -> None:
        """Finish loading and fire DOMContentLoaded."""
        if self.ready_state == READY_LOADING:
            self.ready_state = READY_COMPLETE
            self.dispatch_event("DOMContentLoaded")

    def navigate(self, url: str, source: Optional[str] = None, event_type: str = "turbo:load") -> None:
        """Simulate a client-side navigation.

        The location changes and, when source is given, title, meta elements
        and body are taken from the new document. Head scripts survive the
        swap, as they do with AJAX page transitions; the loader replaces its
        own script once the navigation event fires.
        """
        with self._lock:
            scripts = list(self._head_scripts)
            self._set_location(url)
            if source is not None:
                self._load_source(source)
                # Keep scripts already in the live head, then any new ones
                incoming = [s for s in self._head_scripts if s not in scripts]
                self._head_scripts = scripts + incoming
        self.dispatch_event(event_type)

    # -- output -----------------------------------------------------------

    def render(self) -> str:
        """Return the page HTML with the current head scripts in place."""
        with self._lock:
            scripts = "".join(script.to_html() for script in self._head_scripts)
        return self._template[:self._insert_at] + scripts + self._template[self._insert_at:]
