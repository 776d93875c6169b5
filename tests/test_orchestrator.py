"""
Tests for the Schema Loader orchestrator.

Test Coverage:
    - Cache-busting schema URLs
    - Successful fetch, templating, injection and the schemaLoaded event
    - Fallback on HTTP errors, transport errors, invalid bodies and template errors
    - Idempotent replacement across repeated runs
    - Newer runs superseding older in-flight runs on the same page only
    - Page wiring for DOMContentLoaded and navigation events, attach and detach
    - Debug-host behaviour (pretty output, error logging)

Testing Strategy:
    Uses unittest.mock to patch requests.get with real requests.Response
    objects, so no network requests are made.

Running Tests:
    $ pytest tests/test_orchestrator.py -v
"""
import json
import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from loader.errors import NetworkError, TemplateParseError
from loader.orchestrator import (
    LOADED_EVENT,
    STATE_DONE,
    STATE_FALLBACK,
    STATE_SUPERSEDED,
    SchemaLoader,
)

from conftest import ARTICLE_HTML, FIXED_NOW


MARKER = ("data-schema-loader", "recostseg")

BLOG_TEMPLATE = {
    "@context": "https://schema.org",
    "@type": "BlogPosting",
    "headline": "{{PAGE_TITLE}}",
    "author": {"@type": "Person", "name": "{{AUTHOR}}"},
    "copyrightYear": "{{YEAR}}",
}

FALLBACK = {
    "@context": "https://schema.org",
    "@type": "Organization",
    "name": "RE Cost Seg",
    "url": "https://www.recostseg.com",
    "telephone": "+1 (346) 214-6539",
}


@pytest.fixture
def loader(loader_config):
    schema_loader = SchemaLoader(loader_config)
    yield schema_loader
    schema_loader.close()


def marked_documents(page):
    return [json.loads(script.text) for script in page.query_scripts(*MARKER)]


# =========================================================================
# Unit Tests: URL building
# =========================================================================

class TestSchemaUrl:
    def test_url_shape(self, loader):
        """Test schema URL is CDN, repo, branch, file and cache bucket."""
        bucket = int(FIXED_NOW.timestamp() // 3600)

        url = loader.build_schema_url("faq.json", FIXED_NOW)

        assert url == (
            "https://cdn.jsdelivr.net/gh/Joao-Aquino/recostseg-schemas@main"
            f"/schemas/faq.json?t={bucket}"
        )

    def test_bucket_stable_within_window(self, loader):
        """Test cache bucket only changes at a cache_time boundary."""
        start = datetime(2026, 10, 18, 9, 0, 0, tzinfo=timezone.utc)
        end = datetime(2026, 10, 18, 9, 59, 59, 999000, tzinfo=timezone.utc)
        next_window = datetime(2026, 10, 18, 10, 0, 0, tzinfo=timezone.utc)

        assert loader.cache_bucket(start) == loader.cache_bucket(end)
        assert loader.cache_bucket(next_window) == loader.cache_bucket(start) + 1


# =========================================================================
# Unit Tests: Loading
# =========================================================================

class TestLoad:
    @patch("loader.orchestrator.requests.get")
    def test_success_injects_processed_schema(self, mock_get, loader, make_page, make_response):
        """Test fetched template is filled with page metadata and injected."""
        mock_get.return_value = make_response(body=BLOG_TEMPLATE)
        page = make_page("https://www.recostseg.com/post/cost-seg-101", ARTICLE_HTML)

        result = loader.load(page)

        assert result.state == STATE_DONE
        assert result.filename == "blog-post.json"
        assert result.used_fallback is False
        mock_get.assert_called_once_with(loader.build_schema_url("blog-post.json", FIXED_NOW), timeout=30)
        assert marked_documents(page) == [{
            "@context": "https://schema.org",
            "@type": "BlogPosting",
            "headline": "Cost Segregation 101 | RE Cost Seg",
            "author": {"@type": "Person", "name": "Jane Analyst"},
            "copyrightYear": "2026",
        }]
        assert result.schema == marked_documents(page)[0]

    @patch("loader.orchestrator.requests.get")
    def test_success_dispatches_loaded_event(self, mock_get, loader, make_page, make_response):
        """Test schemaLoaded carries the filename and the injected document."""
        mock_get.return_value = make_response(body=BLOG_TEMPLATE)
        page = make_page("https://www.recostseg.com/post/cost-seg-101", ARTICLE_HTML)
        listener = MagicMock()
        page.add_event_listener(LOADED_EVENT, listener)

        result = loader.load(page)

        listener.assert_called_once()
        detail = listener.call_args[0][0].detail
        assert detail == {"file": "blog-post.json", "schema": result.schema}

    @patch("loader.orchestrator.requests.get")
    def test_http_error_injects_fallback(self, mock_get, loader, make_page, make_response):
        """Test non-2xx response injects the fallback without schemaLoaded."""
        mock_get.return_value = make_response(status=404, reason="Not Found")
        page = make_page("https://www.recostseg.com/faq")
        listener = MagicMock()
        page.add_event_listener(LOADED_EVENT, listener)

        result = loader.load(page)

        assert result.state == STATE_FALLBACK
        assert result.used_fallback is True
        assert result.filename == "faq.json"
        assert isinstance(result.error, NetworkError)
        assert result.error.status_code == 404
        assert marked_documents(page) == [FALLBACK]
        listener.assert_not_called()

    @patch("loader.orchestrator.requests.get")
    def test_transport_error_injects_fallback(self, mock_get, loader, make_page):
        """Test connection failure injects the fallback."""
        mock_get.side_effect = requests.exceptions.ConnectionError("connection refused")
        page = make_page("https://www.recostseg.com/")

        result = loader.load(page)

        assert result.state == STATE_FALLBACK
        assert isinstance(result.error, NetworkError)
        assert result.error.status_code is None
        assert marked_documents(page) == [FALLBACK]

    @patch("loader.orchestrator.requests.get")
    def test_invalid_json_body_injects_fallback(self, mock_get, loader, make_page, make_response):
        """Test non-JSON response body injects the fallback."""
        mock_get.return_value = make_response(body=b"<html>Not JSON</html>")
        page = make_page("https://www.recostseg.com/")

        result = loader.load(page)

        assert result.state == STATE_FALLBACK
        assert marked_documents(page) == [FALLBACK]

    @patch("loader.orchestrator.requests.get")
    def test_unexpected_error_injects_fallback(self, mock_get, loader, make_page):
        """Test exceptions outside the loader hierarchy still end in the fallback."""
        mock_get.side_effect = RuntimeError("unexpected")
        page = make_page("https://www.recostseg.com/")

        result = loader.load(page)

        assert result.state == STATE_FALLBACK
        assert marked_documents(page) == [FALLBACK]

    @patch("loader.orchestrator.apply_template")
    @patch("loader.orchestrator.requests.get")
    def test_template_error_injects_fallback(self, mock_get, mock_apply, loader, make_page, make_response):
        """Test a document that can't be templated injects the fallback without schemaLoaded."""
        mock_get.return_value = make_response(body=BLOG_TEMPLATE)
        mock_apply.side_effect = TemplateParseError("Processed schema is not valid JSON")
        page = make_page("https://www.recostseg.com/post/cost-seg-101", ARTICLE_HTML)
        listener = MagicMock()
        page.add_event_listener(LOADED_EVENT, listener)

        result = loader.load(page)

        assert result.state == STATE_FALLBACK
        assert result.filename == "blog-post.json"
        assert isinstance(result.error, TemplateParseError)
        assert marked_documents(page) == [FALLBACK]
        listener.assert_not_called()

    @patch("loader.orchestrator.requests.get")
    def test_fallback_leaves_config_untouched(self, mock_get, loader, make_page, make_response):
        """Test mutating a fallback result doesn't change the configured record."""
        mock_get.return_value = make_response(status=500, reason="Server Error")
        page = make_page("https://www.recostseg.com/")

        loader.load(page).schema["name"] = "Mutated"

        assert loader.fallback_schema()["name"] == "RE Cost Seg"

    @patch("loader.orchestrator.requests.get")
    def test_fallback_replaces_existing_marked_script(self, mock_get, loader, make_page, make_response):
        """Test fallback replaces a marked script already in the HTML."""
        mock_get.return_value = make_response(status=404, reason="Not Found")
        source = (
            '<html><head><script type="application/ld+json" data-schema-loader="recostseg">'
            '{"stale": true}</script></head><body></body></html>'
        )
        page = make_page("https://www.recostseg.com/contact", source)

        loader.load(page)

        assert marked_documents(page) == [FALLBACK]
        assert page.render().count("data-schema-loader") == 1

    @patch("loader.orchestrator.requests.get")
    def test_second_run_replaces_first(self, mock_get, loader, make_page, make_response):
        """Test repeated runs leave exactly one marked script."""
        mock_get.side_effect = [
            make_response(body={"@context": "https://schema.org", "name": "first"}),
            make_response(body={"@context": "https://schema.org", "name": "second"}),
        ]
        page = make_page("https://www.recostseg.com/about")

        loader.load(page)
        loader.load(page)

        assert marked_documents(page) == [{"@context": "https://schema.org", "name": "second"}]

    @patch("loader.orchestrator.requests.get")
    def test_other_json_ld_scripts_survive(self, mock_get, loader, make_page, make_response):
        """Test unmarked JSON-LD scripts are left alone."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org"})
        source = (
            '<head><script type="application/ld+json">{"@type": "BreadcrumbList"}</script></head>'
        )
        page = make_page("https://www.recostseg.com/", source)

        loader.load(page)

        assert len(page.head_scripts) == 2

    def test_uses_session_when_given(self, loader_config, make_page, make_response):
        """Test a provided requests session is used instead of requests.get."""
        session = MagicMock()
        session.get.return_value = make_response(body={"@context": "https://schema.org"})
        schema_loader = SchemaLoader(loader_config, session=session)

        with patch("loader.orchestrator.requests.get") as mock_get:
            result = schema_loader.load(make_page("https://www.recostseg.com/"))

        assert result.state == STATE_DONE
        session.get.assert_called_once()
        mock_get.assert_not_called()


class TestSupersededRuns:
    def test_older_run_does_not_overwrite_newer(self, loader, make_page, make_response):
        """Test an overtaken run reports superseded and keeps the newer document."""
        page = make_page("https://www.recostseg.com/")
        results = {}

        def slow_then_fast(url, timeout=None):
            if "first" not in results:
                results["first"] = None
                # A navigation starts (and finishes) a new run while this fetch is in flight
                results["second"] = loader.load(page)
                return make_response(body={"@context": "https://schema.org", "name": "stale"})
            return make_response(body={"@context": "https://schema.org", "name": "fresh"})

        with patch("loader.orchestrator.requests.get", side_effect=slow_then_fast):
            first = loader.load(page)

        assert results["second"].state == STATE_DONE
        assert first.state == STATE_SUPERSEDED
        assert first.run_id < results["second"].run_id
        assert marked_documents(page) == [{"@context": "https://schema.org", "name": "fresh"}]

    def test_superseded_fallback_does_not_inject(self, loader, make_page, make_response):
        """Test an overtaken failing run doesn't inject the fallback."""
        page = make_page("https://www.recostseg.com/")
        calls = []

        def fail_after_newer_run(url, timeout=None):
            calls.append(url)
            if len(calls) == 1:
                loader.load(page)
                raise requests.exceptions.Timeout("too slow")
            return make_response(body={"@context": "https://schema.org", "name": "fresh"})

        with patch("loader.orchestrator.requests.get", side_effect=fail_after_newer_run):
            first = loader.load(page)

        assert first.state == STATE_SUPERSEDED
        assert isinstance(first.error, NetworkError)
        assert marked_documents(page) == [{"@context": "https://schema.org", "name": "fresh"}]

    def test_run_on_other_page_does_not_supersede(self, loader, make_page, make_response):
        """Test a run on one page doesn't cancel an in-flight run on another."""
        faq_page = make_page("https://www.recostseg.com/faq")
        about_page = make_page("https://www.recostseg.com/about")
        results = {}

        def fetch(url, timeout=None):
            if "faq.json" in url:
                # The about page loads while the faq fetch is in flight
                results["about"] = loader.load(about_page)
                return make_response(body={"@context": "https://schema.org", "name": "faq"})
            return make_response(body={"@context": "https://schema.org", "name": "about"})

        with patch("loader.orchestrator.requests.get", side_effect=fetch):
            faq = loader.load(faq_page)

        assert faq.state == STATE_DONE
        assert results["about"].state == STATE_DONE
        assert marked_documents(faq_page) == [{"@context": "https://schema.org", "name": "faq"}]
        assert marked_documents(about_page) == [{"@context": "https://schema.org", "name": "about"}]

    def test_failing_run_on_other_page_still_injects_fallback(self, loader, make_page, make_response):
        """Test a failing run still gets its fallback when another page loaded meanwhile."""
        faq_page = make_page("https://www.recostseg.com/faq")
        about_page = make_page("https://www.recostseg.com/about")

        def fetch(url, timeout=None):
            if "faq.json" in url:
                loader.load(about_page)
                raise requests.exceptions.Timeout("too slow")
            return make_response(body={"@context": "https://schema.org", "name": "about"})

        with patch("loader.orchestrator.requests.get", side_effect=fetch):
            faq = loader.load(faq_page)

        assert faq.state == STATE_FALLBACK
        assert marked_documents(faq_page) == [FALLBACK]
        assert marked_documents(about_page) == [{"@context": "https://schema.org", "name": "about"}]


# =========================================================================
# Debug hosts
# =========================================================================

class TestDebug:
    @patch("loader.orchestrator.requests.get")
    def test_pretty_output_on_debug_host(self, mock_get, loader, make_page, make_response):
        """Test debug hosts get indented JSON."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org", "@type": "WebPage"})
        page = make_page("https://recostseg.webflow.io/")

        loader.load(page)

        text = page.query_scripts(*MARKER)[0].text
        assert text == '{\n  "@context": "https://schema.org",\n  "@type": "WebPage"\n}'

    @patch("loader.orchestrator.requests.get")
    def test_compact_output_in_production(self, mock_get, loader, make_page, make_response):
        """Test production hosts get compact JSON."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org", "@type": "WebPage"})
        page = make_page("https://www.recostseg.com/")

        loader.load(page)

        text = page.query_scripts(*MARKER)[0].text
        assert text == '{"@context":"https://schema.org","@type":"WebPage"}'

    @patch("loader.orchestrator.requests.get")
    def test_failure_logged_only_on_debug_host(self, mock_get, loader, make_page, make_response, caplog):
        """Test failures are logged at ERROR on debug hosts only."""
        mock_get.return_value = make_response(status=404, reason="Not Found")

        with caplog.at_level(logging.DEBUG, logger="loader.orchestrator"):
            loader.load(make_page("https://www.recostseg.com/"))
        production_errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
        caplog.clear()

        with caplog.at_level(logging.DEBUG, logger="loader.orchestrator"):
            loader.load(make_page("http://localhost/"))
        debug_errors = [r for r in caplog.records if r.levelno >= logging.ERROR]

        assert production_errors == []
        assert len(debug_errors) == 1
        assert "HTTP 404" in debug_errors[0].getMessage()


# =========================================================================
# Page wiring
# =========================================================================

class TestAttach:
    @patch("loader.orchestrator.requests.get")
    def test_loads_immediately_when_ready(self, mock_get, loader, make_page, make_response):
        """Test attach loads at once when the page is already complete."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org"})
        page = make_page("https://www.recostseg.com/")

        loader.attach(page)

        assert mock_get.call_count == 1
        assert len(page.query_scripts(*MARKER)) == 1

    @patch("loader.orchestrator.requests.get")
    def test_waits_for_dom_content_loaded(self, mock_get, loader, make_page, make_response):
        """Test attach defers the first load until DOMContentLoaded."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org"})
        page = make_page("https://www.recostseg.com/", ready_state="loading")

        loader.attach(page)
        assert mock_get.call_count == 0

        page.mark_ready()
        assert mock_get.call_count == 1
        assert len(page.query_scripts(*MARKER)) == 1

    @pytest.mark.parametrize("event_type", ["swup:contentReplaced", "turbo:load"])
    @patch("loader.orchestrator.requests.get")
    def test_reloads_on_navigation(self, mock_get, event_type, loader, make_page, make_response):
        """Test Swup and Turbo navigation events trigger a new load."""
        mock_get.side_effect = [
            make_response(body={"@context": "https://schema.org", "name": "home"}),
            make_response(body={"@context": "https://schema.org", "name": "faq"}),
        ]
        page = make_page("https://www.recostseg.com/")
        loader.attach(page)

        page.navigate("https://www.recostseg.com/faq/", event_type=event_type)

        assert "/schemas/faq.json?t=" in mock_get.call_args[0][0]
        assert marked_documents(page) == [{"@context": "https://schema.org", "name": "faq"}]

    @patch("loader.orchestrator.requests.get")
    def test_background_attach(self, mock_get, loader, make_page, make_response):
        """Test background attach injects once the pool drains."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org"})
        page = make_page("https://www.recostseg.com/")

        loader.attach(page, background=True)
        loader.close()

        assert len(page.query_scripts(*MARKER)) == 1

    @patch("loader.orchestrator.requests.get")
    def test_attach_twice_is_a_no_op(self, mock_get, loader, make_page, make_response):
        """Test attaching the same page again doesn't double navigation loads."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org"})
        page = make_page("https://www.recostseg.com/")

        loader.attach(page)
        loader.attach(page)
        page.navigate("https://www.recostseg.com/faq")

        assert mock_get.call_count == 2
        assert len(page.query_scripts(*MARKER)) == 1

    @patch("loader.orchestrator.requests.get")
    def test_detach_stops_reloads(self, mock_get, loader, make_page, make_response):
        """Test navigation after detach no longer loads a schema."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org"})
        page = make_page("https://www.recostseg.com/")
        loader.attach(page)

        assert loader.detach(page) is True
        page.navigate("https://www.recostseg.com/faq", event_type="swup:contentReplaced")
        page.navigate("https://www.recostseg.com/about")

        assert mock_get.call_count == 1
        assert loader.detach(page) is False

    @patch("loader.orchestrator.requests.get")
    def test_detach_before_ready(self, mock_get, loader, make_page, make_response):
        """Test a page detached while loading never loads on DOMContentLoaded."""
        page = make_page("https://www.recostseg.com/", ready_state="loading")
        loader.attach(page)

        loader.detach(page)
        page.mark_ready()

        mock_get.assert_not_called()

    @patch("loader.orchestrator.requests.get")
    def test_reattach_after_detach(self, mock_get, loader, make_page, make_response):
        """Test a detached page can be attached again."""
        mock_get.return_value = make_response(body={"@context": "https://schema.org"})
        page = make_page("https://www.recostseg.com/")
        loader.attach(page)
        loader.detach(page)

        loader.attach(page)
        page.navigate("https://www.recostseg.com/faq")

        assert mock_get.call_count == 3


@patch("loader.orchestrator.requests.get")
def test_load_in_background_returns_future(mock_get, loader, make_page, make_response):
    """Test load_in_background returns a future of the LoadResult."""
    mock_get.return_value = make_response(body={"@context": "https://schema.org", "@type": "FAQPage"})
    page = make_page("https://www.recostseg.com/faq")

    result = loader.load_in_background(page).result(timeout=5)

    assert result.state == STATE_DONE
    assert result.filename == "faq.json"
