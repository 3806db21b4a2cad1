"""Tests for record filtering and quick filters."""

import pytest

from conftest import make_record
from monitor.filters import QUICK_FILTERS, filter_records, matches, quick_filter


class TestMatches:
    def test_empty_query_matches_everything(self):
        records = [
            make_record(),
            make_record(status=500, url="/v1beta/models/gemini-pro:generateContent", model="gemini-pro"),
            make_record(method="GET", url="", status=0),
        ]
        assert all(matches(r, "") for r in records)

    def test_url_substring(self):
        record = make_record(url="/v1/chat/completions")
        assert matches(record, "completions")
        assert not matches(record, "gemini")

    def test_case_insensitive(self):
        record = make_record(url="/v1/Messages", model="Claude-3-Opus")
        assert matches(record, "MESSAGES")
        assert matches(record, "claude-3")
        assert matches(record, "post")

    def test_model_optional(self):
        record = make_record(url="/v1/images/generations", model=None)
        assert not matches(record, "dall-e")
        assert matches(make_record(model="dall-e-3"), "dall-e")

    def test_status_substring(self):
        record = make_record(status=404)
        assert matches(record, "404")
        assert matches(record, "40")
        assert not matches(make_record(status=200), "40")

    def test_filter_records_preserves_order(self):
        a = make_record(url="/a/claude")
        b = make_record(url="/b")
        c = make_record(url="/c/claude")
        assert filter_records([a, b, c], "claude") == [a, c]


class TestQuickFilters:
    def test_presets(self):
        assert [(f.name, f.query) for f in QUICK_FILTERS] == [
            ("all", ""),
            ("error", "40"),
            ("chat", "completions"),
            ("gemini", "gemini"),
            ("claude", "claude"),
            ("images", "images"),
        ]

    def test_lookup(self):
        assert quick_filter("Chat").query == "completions"
        with pytest.raises(KeyError):
            quick_filter("nope")

    def test_error_preset_selects_4xx(self):
        records = [make_record(status=s) for s in (200, 401, 404, 500)]
        picked = filter_records(records, quick_filter("error").query)
        assert [r.status for r in picked] == [401, 404]
