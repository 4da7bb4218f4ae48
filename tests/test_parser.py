"""
Tests for the capture parser module.
"""

import json

import pytest

from trafficcop.analysis.errors import (
    CaptureError,
    InvalidDocumentError,
    MalformedInputError,
    MalformedUrlError,
)
from trafficcop.analysis.models import CaptureDocument, Entry, NameValuePair, create_empty
from trafficcop.analysis.parser import (
    format_entry,
    get_cookie,
    get_cookies,
    get_header,
    get_headers,
    get_query_param,
    get_query_params,
    get_request_content_type,
    get_response_content_type,
    get_url,
    has_header,
    is_json_response,
    parse,
    parse_timestamp,
    stringify,
    validate,
)


MINIMAL = '{"log":{"version":"1.2","creator":{"name":"t","version":"1"},"entries":[]}}'


class TestParse:
    """Tests for parse()."""

    def test_minimal_document(self):
        """An empty entries array is a valid capture."""
        doc = parse(MINIMAL)

        assert doc.version == "1.2"
        assert doc.creator.name == "t"
        assert doc.creator.version == "1"
        assert len(doc.entries) == 0

    def test_entries_keep_capture_order(self, sample_capture_text):
        doc = parse(sample_capture_text)

        assert [e.request.method for e in doc.entries] == ["GET", "post"]
        assert doc.entries[0].duration_ms == 120.5
        assert doc.entries[1].response.status == 500

    def test_nested_fields(self, sample_capture_text):
        """Nested records are converted from their HAR keys."""
        doc = parse(sample_capture_text)
        first, second = doc.entries

        assert first.request.query_string[0] == NameValuePair("page", "2")
        assert first.request.cookies[0].name == "session"
        assert first.response.content.mime_type == "application/json"
        assert first.timings.wait == 100
        assert first.pageref == "page_1"
        assert second.request.post_data.text == '{"id": 1}'
        assert second.response.content.size == -1
        assert doc.pages[0].page_timings == {"onLoad": 850}

    def test_invalid_json(self):
        with pytest.raises(MalformedInputError):
            parse('{"log": ')

    def test_malformed_input_is_capture_error(self):
        with pytest.raises(CaptureError):
            parse("not json")

    @pytest.mark.parametrize(
        "text, field",
        [
            ("[]", "root"),
            ("{}", "log"),
            ('{"log": []}', "log"),
            ('{"log": {"version": "1.2"}}', "log.entries"),
            ('{"log": {"entries": {}}}', "log.entries"),
        ],
    )
    def test_missing_structure(self, text, field):
        """Well-formed JSON without the capture container is rejected."""
        with pytest.raises(InvalidDocumentError) as exc_info:
            parse(text)

        assert exc_info.value.field == field

    def test_non_object_entry(self):
        text = '{"log": {"version": "1.2", "entries": [{}, 3]}}'

        with pytest.raises(InvalidDocumentError) as exc_info:
            parse(text)

        assert exc_info.value.index == 1
        assert "index 1" in str(exc_info.value)

    def test_parse_is_lenient_about_entry_fields(self):
        """Per-entry checks belong to validate()."""
        doc = parse('{"log": {"version": "1.2", "entries": [{"time": 5}]}}')

        assert doc.entries[0].request is None
        assert doc.entries[0].duration_ms == 5


class TestStringify:
    """Tests for stringify()."""

    def test_round_trip(self, sample_capture_text):
        """parse(stringify(doc)) is structurally equal to doc."""
        doc = parse(sample_capture_text)

        assert parse(stringify(doc)) == doc
        assert parse(stringify(doc, pretty=True)) == doc

    def test_round_trip_empty(self):
        doc = parse(MINIMAL)
        assert parse(stringify(doc)) == doc

    def test_custom_fields_preserved(self, sample_capture_text):
        """Underscore-prefixed tool fields survive a round trip."""
        doc = parse(sample_capture_text)
        data = json.loads(stringify(doc))

        assert data["log"]["entries"][0]["_resourceType"] == "xhr"

    def test_nested_custom_fields_preserved(self, sample_capture_dict):
        """Tool fields inside request, response, content, timings and postData survive too."""
        first, second = sample_capture_dict["log"]["entries"]
        first["request"]["_initiator"] = {"type": "script"}
        first["response"]["_transferSize"] = 912
        first["response"]["content"]["_compressed"] = True
        first["timings"]["_queued"] = 3.5
        second["request"]["postData"]["_origin"] = "form"

        data = json.loads(stringify(parse(json.dumps(sample_capture_dict))))
        first, second = data["log"]["entries"]

        assert first["request"]["_initiator"] == {"type": "script"}
        assert first["response"]["_transferSize"] == 912
        assert first["response"]["content"]["_compressed"] is True
        assert first["timings"]["_queued"] == 3.5
        assert second["request"]["postData"]["_origin"] == "form"
        assert "_transferSize" not in first["request"]

    def test_compact_and_pretty(self):
        doc = parse(MINIMAL)

        assert "\n" not in stringify(doc)
        assert "\n  " in stringify(doc, pretty=True)

    def test_non_ascii_kept(self):
        doc = create_empty()
        doc.comment = "café"

        assert "café" in stringify(doc)


class TestValidate:
    """Tests for validate()."""

    def test_valid_document(self, sample_capture_text):
        validate(parse(sample_capture_text))

    def test_empty_document_is_valid(self):
        validate(create_empty())

    def test_missing_version(self):
        doc = create_empty()
        doc.version = ""

        with pytest.raises(InvalidDocumentError) as exc_info:
            validate(doc)
        assert exc_info.value.field == "log.version"

    def test_missing_creator(self):
        doc = parse('{"log": {"version": "1.2", "entries": []}}')

        with pytest.raises(InvalidDocumentError) as exc_info:
            validate(doc)
        assert exc_info.value.field == "log.creator"

    def test_missing_response(self, make_entry):
        doc = create_empty()
        broken = make_entry()
        broken.response = None
        doc.entries = [make_entry(), broken]

        with pytest.raises(InvalidDocumentError) as exc_info:
            validate(doc)

        assert exc_info.value.index == 1
        assert exc_info.value.field == "response"

    @pytest.mark.parametrize(
        "mutate, field",
        [
            (lambda e: setattr(e.request, "method", ""), "request.method"),
            (lambda e: setattr(e.request, "url", ""), "request.url"),
            (lambda e: setattr(e.response, "status", "200"), "response.status"),
            (lambda e: setattr(e.response, "status", None), "response.status"),
            (lambda e: setattr(e, "started_at", ""), "startedDateTime"),
            (lambda e: setattr(e, "duration_ms", None), "time"),
            (lambda e: setattr(e, "duration_ms", -5), "time"),
        ],
    )
    def test_entry_defects(self, make_entry, mutate, field):
        """Each defect reports the entry index and the offending field."""
        entry = make_entry()
        mutate(entry)
        doc = create_empty()
        doc.entries = [entry]

        with pytest.raises(InvalidDocumentError) as exc_info:
            validate(doc)

        assert exc_info.value.index == 0
        assert exc_info.value.field == field


class TestHeaderHelpers:
    """Tests for header lookup."""

    HEADERS = [
        NameValuePair("Content-Type", "text/html"),
        NameValuePair("Set-Cookie", "a=1"),
        NameValuePair("set-cookie", "b=2"),
    ]

    def test_get_header_case_insensitive(self):
        assert get_header(self.HEADERS, "content-type") == "text/html"
        assert get_header(self.HEADERS, "CONTENT-TYPE") == "text/html"

    def test_get_header_first_wins(self):
        assert get_header(self.HEADERS, "Set-Cookie") == "a=1"

    def test_get_header_missing(self):
        assert get_header(self.HEADERS, "Authorization") is None
        assert get_header([], "Authorization") is None

    def test_get_headers_all_values(self):
        assert get_headers(self.HEADERS, "SET-COOKIE") == ["a=1", "b=2"]
        assert get_headers(self.HEADERS, "X-Missing") == []

    def test_has_header(self):
        assert has_header(self.HEADERS, "set-cookie") is True
        assert has_header(self.HEADERS, "x-request-id") is False


class TestEntryAccessors:
    """Tests for URL, content type, query and cookie accessors."""

    def test_get_url(self, make_entry):
        parts = get_url(make_entry(url="https://api.example.com:8443/v1/users?id=7"))

        assert parts.scheme == "https"
        assert parts.hostname == "api.example.com"
        assert parts.port == 8443
        assert parts.path == "/v1/users"
        assert parts.query == "id=7"

    @pytest.mark.parametrize(
        "url",
        [
            "not a url",
            "/relative/path",
            "https://example.com:99999/",
            "http://[::1/",
            "https://exa mple.com/",
            "https://:8080/",
        ],
    )
    def test_get_url_malformed(self, make_entry, url):
        with pytest.raises(MalformedUrlError) as exc_info:
            get_url(make_entry(url=url))

        assert exc_info.value.url == url

    def test_is_json_from_content(self, make_entry):
        assert is_json_response(make_entry(mime_type="application/json")) is True
        assert is_json_response(make_entry(mime_type="application/problem+json")) is True
        assert is_json_response(make_entry(mime_type="text/html")) is False

    def test_is_json_from_header(self, make_entry):
        """Falls back to the Content-Type header when the descriptor has none."""
        entry = make_entry(mime_type="", response_headers={"Content-Type": "Application/JSON"})

        assert get_response_content_type(entry) == "Application/JSON"
        assert is_json_response(entry) is True

    def test_is_json_without_content_type(self, make_entry):
        assert is_json_response(make_entry(mime_type="")) is False

    def test_request_content_type(self, make_entry):
        entry = make_entry(request_headers={"content-type": "application/x-www-form-urlencoded"})

        assert get_request_content_type(entry) == "application/x-www-form-urlencoded"
        assert get_request_content_type(make_entry()) is None

    def test_query_params(self, sample_capture_text):
        entry = parse(sample_capture_text).entries[0]

        assert get_query_params(entry) == {"page": "2", "sort": "name"}
        assert get_query_param(entry, "page") == "2"
        assert get_query_param(entry, "missing") is None

    def test_query_params_last_value_wins(self, make_entry):
        entry = make_entry()
        entry.request.query_string = [NameValuePair("tag", "a"), NameValuePair("tag", "b")]

        assert get_query_param(entry, "tag") == "b"

    def test_cookies(self, make_entry):
        entry = make_entry(cookies={"session": "abc", "theme": "dark"})

        assert get_cookies(entry) == {"session": "abc", "theme": "dark"}
        assert get_cookie(entry, "theme") == "dark"
        assert get_cookie(entry, "missing") is None


class TestTimestamps:
    """Tests for parse_timestamp()."""

    def test_zulu(self):
        parsed = parse_timestamp("2024-03-01T10:00:00.000Z")

        assert parsed is not None
        assert parsed.utcoffset().total_seconds() == 0

    def test_offset_compares_with_zulu(self):
        assert parse_timestamp("2024-03-01T12:00:00+02:00") == parse_timestamp("2024-03-01T10:00:00Z")

    def test_naive_is_utc(self):
        assert parse_timestamp("2024-03-01T10:00:00") == parse_timestamp("2024-03-01T10:00:00Z")

    @pytest.mark.parametrize("value", ["", None, "yesterday", "2024-13-45T00:00:00Z"])
    def test_unparsable(self, value):
        assert parse_timestamp(value) is None


class TestModels:
    """Tests for model helpers."""

    def test_create_empty(self):
        doc = create_empty()

        assert doc.version == "1.2"
        assert doc.creator.name == "Traffic Cop"
        assert doc.entries == []
        assert stringify(doc) == (
            '{"log":{"version":"1.2","creator":{"name":"Traffic Cop","version":"0.7.0"},"entries":[]}}'
        )

    def test_create_empty_custom_creator(self):
        doc = create_empty(creator_name="harvester", creator_version="3")

        assert doc.creator.name == "harvester"
        assert doc.creator.version == "3"

    def test_response_size(self, make_entry):
        assert make_entry(size=100).response_size == 100
        assert make_entry(size=-1).response_size == -1
        assert Entry().response_size == 0

    def test_document_from_dict(self, sample_capture_dict):
        doc = CaptureDocument.from_dict(sample_capture_dict)
        assert doc.to_dict() == json.loads(stringify(doc))

    def test_format_entry(self, make_entry):
        entry = make_entry(
            url="https://example.com/a", method="POST", status=201, duration_ms=123.4, size=456
        )

        assert format_entry(entry) == "POST https://example.com/a - 201 (123ms, 456 bytes)"
