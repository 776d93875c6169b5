"""
Schema Loader Orchestrator.

Picks the JSON-LD document for a page, fetches it from the CDN, substitutes
page metadata into it and injects it into the page head. Any failure along
the way injects the static fallback organization record instead, so a page
always ends up with exactly one loader-owned document.

Pipeline (one run):
    Resolving -> Fetching -> Processing -> Injecting -> Done
    Fetching/Processing failures -> Fallback -> Injecting -> Done

Runs are triggered by attach() on page-ready and on the client-side
navigation events fired by Swup and Turbo. Every run takes a new run id;
a run that has been overtaken by a newer run on the same page when it
reaches Injecting does not inject, so the most recently started run owns
that page's head. Runs on different pages never supersede each other.

Usage:
    >>> from config import load_config
    >>> loader = SchemaLoader.from_config(load_config())
    >>> result = loader.load(page)
    >>> result.state
    'done'
"""
import copy
import logging
import threading
import weakref
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import requests

from config import LoaderConfig, get_loader_config
from loader.errors import LoaderError, NetworkError
from loader.injector import inject_schema
from loader.metadata import extract_metadata
from loader.page import READY_LOADING, Event, HtmlPage
from loader.resolver import resolve
from loader.template import apply_template


logger = logging.getLogger(__name__)

READY_EVENT = "DOMContentLoaded"
NAVIGATION_EVENTS = ("swup:contentReplaced", "turbo:load")
LOADED_EVENT = "schemaLoaded"

STATE_DONE = "done"
STATE_FALLBACK = "fallback"
STATE_SUPERSEDED = "superseded"


@dataclass
class LoadResult:
    """Outcome of one loader run.

    Attributes:
        run_id: Monotonic id of the run
        state: STATE_DONE, STATE_FALLBACK, or STATE_SUPERSEDED (nothing injected)
        filename: Resolved schema filename, if resolution got that far
        url: Schema URL requested, if any
        schema: Document injected (or that would have been, when superseded)
        error: The failure that triggered the fallback
    """
    run_id: int
    state: str
    filename: Optional[str] = None
    url: Optional[str] = None
    schema: Optional[Any] = None
    error: Optional[Exception] = None

    @property
    def used_fallback(self) -> bool:
        return self.state == STATE_FALLBACK


class SchemaLoader:
    """Loads, templates and injects page JSON-LD.

    One instance can serve any number of pages and runs. The state kept
    between runs is the run counter, the latest run id of each page and the
    event handler of each attached page. Pages are held weakly.
    """

    def __init__(self, config: LoaderConfig, session: Optional[requests.Session] = None, max_workers: int = 4):
        """
        Args:
            config: Loader settings
            session: Optional requests session; module-level requests.get
                     is used when omitted
            max_workers: Thread pool size for load_in_background()
        """
        self.config = config
        self.session = session
        self.max_workers = max_workers
        self._lock = threading.Lock()
        self._run_counter = 0
        self._latest_runs: "weakref.WeakKeyDictionary[HtmlPage, int]" = weakref.WeakKeyDictionary()
        self._handlers: "weakref.WeakKeyDictionary[HtmlPage, Callable[[Event], Any]]" = weakref.WeakKeyDictionary()
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any], session: Optional[requests.Session] = None) -> "SchemaLoader":
        return cls(get_loader_config(config), session=session)

    # -- pure helpers -----------------------------------------------------

    def resolve(self, path: str) -> str:
        return resolve(path, self.config.routes)

    def cache_bucket(self, now: datetime) -> int:
        """Integer bucket that is stable within one cache_time window."""
        return int(now.timestamp() // self.config.cache_time)

    def build_schema_url(self, filename: str, now: datetime) -> str:
        """Build the CDN URL for a schema, with the cache bucket as ``t``.

        Example:
            >>> loader.build_schema_url("faq.json", now)
            'https://cdn.jsdelivr.net/gh/Joao-Aquino/recostseg-schemas@main/schemas/faq.json?t=494472'
        """
        return (
            f"{self.config.cdn_url}{self.config.github_repo}@{self.config.branch}"
            f"/schemas/{filename}?t={self.cache_bucket(now)}"
        )

    def is_debug(self, page: HtmlPage) -> bool:
        return self.config.is_debug_host(page.hostname)

    def fallback_schema(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self.config.fallback_schema))

    # -- network ----------------------------------------------------------

    def fetch_schema(self, url: str) -> Any:
        """GET a schema document and return the parsed JSON body.

        Raises:
            NetworkError: On a non-2xx status, a transport failure, or a body
                that isn't JSON
        """
        http = self.session or requests
        try:
            response = http.get(url, timeout=self.config.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            reason = e.response.reason if e.response is not None else ""
            raise NetworkError(f"HTTP {status}: {reason}", url=url, status_code=status) from e
        except requests.exceptions.JSONDecodeError as e:
            raise NetworkError(f"Invalid JSON from {url}: {e}", url=url) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request failed for {url}: {e}", url=url) from e

    # -- runs -------------------------------------------------------------

    def _start_run(self, page: HtmlPage) -> int:
        with self._lock:
            self._run_counter += 1
            self._latest_runs[page] = self._run_counter
            return self._run_counter

    def _inject_if_latest(self, page: HtmlPage, run_id: int, document: Any, debug: bool) -> bool:
        with self._lock:
            if run_id != self._latest_runs.get(page):
                return False
            inject_schema(
                page,
                document,
                attribute=self.config.marker_attribute,
                value=self.config.marker_value,
                pretty=debug,
            )
            return True

    def _log_failure(self, error: Exception, debug: bool) -> None:
        if debug:
            logger.error(f"Schema Loader Error: {error}")
        else:
            logger.debug(f"Schema Loader Error: {error}")

    def load(self, page: HtmlPage) -> LoadResult:
        """Run the full pipeline once for page.

        Never raises for network, template or resolution problems; those end
        in the fallback document being injected.
        """
        run_id = self._start_run(page)
        debug = self.is_debug(page)
        filename: Optional[str] = None
        url: Optional[str] = None

        try:
            filename = self.resolve(page.pathname)
            url = self.build_schema_url(filename, page.now())
            if debug:
                logger.info(f"Loading schema: {filename}")

            document = self.fetch_schema(url)
            metadata = extract_metadata(
                page,
                default_author=self.config.default_author,
                default_language=self.config.default_language,
            )
            processed = apply_template(document, metadata)
        except LoaderError as e:
            self._log_failure(e, debug)
            return self._fallback(page, run_id, filename, url, e, debug)
        except Exception as e:
            logger.exception(f"Unexpected failure loading schema for {page.href}")
            return self._fallback(page, run_id, filename, url, e, debug)

        if not self._inject_if_latest(page, run_id, processed, debug):
            logger.debug(f"Run {run_id} for {filename} superseded, not injecting")
            return LoadResult(run_id, STATE_SUPERSEDED, filename, url, processed)

        if debug:
            logger.info(f"Schema Loaded: {filename}")
        page.dispatch_event(LOADED_EVENT, {"file": filename, "schema": processed})
        return LoadResult(run_id, STATE_DONE, filename, url, processed)

    def _fallback(
        self,
        page: HtmlPage,
        run_id: int,
        filename: Optional[str],
        url: Optional[str],
        error: Exception,
        debug: bool,
    ) -> LoadResult:
        fallback = self.fallback_schema()
        if not self._inject_if_latest(page, run_id, fallback, debug):
            logger.debug(f"Fallback for run {run_id} superseded, not injecting")
            return LoadResult(run_id, STATE_SUPERSEDED, filename, url, fallback, error)
        return LoadResult(run_id, STATE_FALLBACK, filename, url, fallback, error)

    def load_in_background(self, page: HtmlPage) -> "Future[LoadResult]":
        """Submit load(page) to the loader's thread pool."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="schema-loader"
                )
            executor = self._executor
        return executor.submit(self.load, page)

    def close(self) -> None:
        """Wait for background runs and shut the thread pool down."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    # -- page wiring ------------------------------------------------------

    def attach(self, page: HtmlPage, background: bool = False) -> None:
        """Load now (or on DOMContentLoaded) and again on every navigation.

        Attaching a page that is already attached does nothing.

        Args:
            page: Page to manage
            background: Run loads on the thread pool instead of inline
        """
        run = self.load_in_background if background else self.load

        def handle(event: Event) -> None:
            run(event.target)

        with self._lock:
            if page in self._handlers:
                logger.debug(f"Page {page.href} is already attached")
                return
            self._handlers[page] = handle

        if page.ready_state == READY_LOADING:
            page.add_event_listener(READY_EVENT, handle)
        else:
            run(page)

        for event_type in NAVIGATION_EVENTS:
            page.add_event_listener(event_type, handle)

    def detach(self, page: HtmlPage) -> bool:
        """Stop reloading page on ready and navigation events.

        Returns:
            True if the page was attached
        """
        with self._lock:
            handle = self._handlers.pop(page, None)
        if handle is None:
            return False
        for event_type in (READY_EVENT,) + NAVIGATION_EVENTS:
            page.remove_event_listener(event_type, handle)
        return True
