"""
Unit tests for embedded page-model date extraction.
"""

import json

import pytest

from homelens.extractor.embedded_json import (
    EmbeddedJsonDateExtractor,
    extract_global_json,
    find_date_in_object,
    iter_inline_scripts,
    parse_embedded_json_date,
)
from homelens.extractor.models import DateSource

DATE_KEYS = ("addedOn", "firstListedDate")


def script_page(*scripts: str) -> str:
    return "<html><body><p>Listing</p>" + "".join(f"<script>{s}</script>" for s in scripts) + "</body></html>"


@pytest.mark.unit
class TestFindDateInObject:
    def test_direct_key(self):
        assert find_date_in_object({"addedOn": "2025-09-10"}, DATE_KEYS) == "2025-09-10"

    def test_key_match_is_case_insensitive_substring(self):
        assert find_date_in_object({"listing": {"ADDEDON_UTC": "2025-09-10T00:00:00Z"}}, DATE_KEYS) == (
            "2025-09-10T00:00:00Z"
        )

    def test_slash_dates_are_accepted(self):
        assert find_date_in_object({"firstListedDate": "04/09/2025"}, DATE_KEYS) == "04/09/2025"

    def test_non_date_values_are_skipped(self):
        obj = {"addedOn": "Reduced recently", "analytics": {"firstListedDate": "2025-01-02"}}
        assert find_date_in_object(obj, DATE_KEYS) == "2025-01-02"

    def test_direct_keys_before_nested_values(self):
        obj = {"nested": {"addedOn": "2025-01-01"}, "addedOn": "2025-02-02"}
        assert find_date_in_object(obj, DATE_KEYS) == "2025-02-02"

    def test_lists_are_walked(self):
        obj = {"items": [{"x": 1}, {"addedOn": "2025-03-03"}]}
        assert find_date_in_object(obj, DATE_KEYS) == "2025-03-03"

    def test_depth_limit(self):
        obj = {"a": {"b": {"c": {"addedOn": "2025-03-03"}}}}
        assert find_date_in_object(obj, DATE_KEYS, max_depth=3) == "2025-03-03"
        assert find_date_in_object(obj, DATE_KEYS, max_depth=2) is None

    def test_scalars(self):
        assert find_date_in_object("2025-01-01", DATE_KEYS) is None


@pytest.mark.unit
class TestExtractGlobalJson:
    def test_window_assignment(self):
        script = "window.jsonModel = " + json.dumps({"propertyData": {"listingHistory": {"addedOn": "2025-09-10"}}})
        assert extract_global_json(script, DATE_KEYS) == "2025-09-10"

    def test_nested_braces_in_strings_do_not_break_parsing(self):
        model = {"text": {"description": "Lovely {home} with } stray braces"}, "addedOn": "2025-09-11T09:00:00Z"}
        script = f"var PAGE_MODEL = {json.dumps(model)}; doSomething();"
        assert extract_global_json(script, DATE_KEYS) == "2025-09-11"

    def test_slash_date_normalized_day_first(self):
        script = "window.__PRELOADED_STATE__ = " + json.dumps({"firstListedDate": "04/09/2025"})
        assert extract_global_json(script, DATE_KEYS) == "2025-09-04"

    def test_fallback_to_bare_objects_mentioning_a_date_key(self):
        blob = {"analytics": {"firstListedDate": "2025-05-05", "padding": "x" * 120}}
        script = f"dataLayer.push({json.dumps(blob)});"
        assert extract_global_json(script, DATE_KEYS) == "2025-05-05"

    def test_small_bare_objects_are_ignored(self):
        script = 'track({"addedOn": "2025-05-05"});'
        assert extract_global_json(script, DATE_KEYS) is None
        assert extract_global_json(script, DATE_KEYS, min_object_length=0) == "2025-05-05"

    def test_invalid_model_json_falls_through(self):
        script = "window.jsonModel = {addedOn: '2025-01-01'};"
        assert extract_global_json(script, DATE_KEYS) is None

    def test_custom_model_names(self):
        script = "window.listingState = " + json.dumps({"addedOn": "2025-04-04"})
        assert extract_global_json(script, DATE_KEYS, model_names=["listingState"], min_object_length=1000) == (
            "2025-04-04"
        )


@pytest.mark.unit
class TestParseEmbeddedJsonDate:
    def test_skips_json_ld_and_external_scripts(self):
        html = (
            "<html><head>"
            '<script type="application/ld+json">{"addedOn": "2020-01-01"}</script>'
            '<script src="/app.js"></script>'
            "</head><body>"
            "<script>window.jsonModel = " + json.dumps({"addedOn": "2025-09-10"}) + "</script>"
            "</body></html>"
        )
        assert list(iter_inline_scripts(html)) == ["window.jsonModel = " + json.dumps({"addedOn": "2025-09-10"})]
        assert parse_embedded_json_date(html) == "2025-09-10"

    def test_first_script_with_a_date_wins(self):
        html = script_page(
            "console.log('hello');",
            "window.jsonModel = " + json.dumps({"addedOn": "2025-08-08"}),
            "window.PAGE_MODEL = " + json.dumps({"addedOn": "2025-07-07"}),
        )
        assert parse_embedded_json_date(html) == "2025-08-08"

    def test_no_scripts(self):
        assert parse_embedded_json_date("<html><body></body></html>") is None


@pytest.mark.unit
class TestEmbeddedJsonDateExtractor:
    def test_result_is_tagged_json_model(self, fetched_at):
        html = script_page("window.jsonModel = " + json.dumps({"addedOn": "2025-09-10"}))
        result = EmbeddedJsonDateExtractor().extract(html, fetched_at=fetched_at)
        assert result.date == "2025-09-10"
        assert result.source is DateSource.EMBEDDED_JSON
        assert result.source.value == "jsonModel"
