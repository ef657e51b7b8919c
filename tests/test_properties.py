"""Tests for database property decoding."""

from appcatalog.services.properties import (
    FieldValue,
    _DECODERS,
    format_timestamp,
    get_file_url,
    get_multi_select_names,
    get_number,
    get_page_icon_url,
    get_rich_text,
    parse_property_to_field,
)
from factories import files_prop, rich, select_prop, text_prop, title_prop


class TestParsePropertyToField:
    def test_rich_text_keeps_first_link(self):
        prop = {"type": "rich_text", "rich_text": [rich("Docs "), rich("here", "https://docs.example.com")]}
        assert parse_property_to_field(prop) == FieldValue("Docs here", "https://docs.example.com")

    def test_empty_title_is_absent(self):
        assert parse_property_to_field(title_prop("")) is None

    def test_integer_number_has_no_decimal(self):
        assert parse_property_to_field({"type": "number", "number": 12.0}) == FieldValue("12")
        assert parse_property_to_field({"type": "number", "number": 4.5}) == FieldValue("4.5")

    def test_zero_number_is_kept(self):
        assert parse_property_to_field({"type": "number", "number": 0}) == FieldValue("0")

    def test_null_number_is_absent(self):
        assert parse_property_to_field({"type": "number", "number": None}) is None

    def test_select_and_status(self):
        assert parse_property_to_field(select_prop("Games")) == FieldValue("Games")
        assert parse_property_to_field({"type": "status", "status": {"name": "Open"}}) == FieldValue("Open")
        assert parse_property_to_field(select_prop(None)) is None

    def test_multi_select_is_comma_joined(self):
        prop = {"type": "multi_select", "multi_select": [{"name": "iOS"}, {"name": "Android"}]}
        assert parse_property_to_field(prop) == FieldValue("iOS, Android")

    def test_contact_types_get_link_schemes(self):
        assert parse_property_to_field({"type": "email", "email": "a@b.co"}) == FieldValue("a@b.co", "mailto:a@b.co")
        assert parse_property_to_field({"type": "phone_number", "phone_number": "+1 555"}) == FieldValue(
            "+1 555", "tel:+1 555"
        )
        assert parse_property_to_field({"type": "url", "url": "https://x.io"}) == FieldValue(
            "https://x.io", "https://x.io"
        )

    def test_checkbox_is_always_present(self):
        assert parse_property_to_field({"type": "checkbox", "checkbox": True}) == FieldValue("Yes")
        assert parse_property_to_field({"type": "checkbox", "checkbox": False}) == FieldValue("No")

    def test_date_range(self):
        prop = {"type": "date", "date": {"start": "2024-01-01", "end": "2024-02-01"}}
        assert parse_property_to_field(prop) == FieldValue("2024-01-01 -> 2024-02-01")
        assert parse_property_to_field({"type": "date", "date": {"start": "2024-01-01"}}) == FieldValue("2024-01-01")

    def test_files_label_and_first_url(self):
        assert parse_property_to_field(files_prop("https://f/1.png")) == FieldValue("Open file", "https://f/1.png")
        assert parse_property_to_field(files_prop("https://f/1.png", "https://f/2.png")) == FieldValue(
            "2 files", "https://f/1.png"
        )

    def test_people_without_names_are_counted(self):
        prop = {"type": "people", "people": [{"id": "u1"}, {"id": "u2"}]}
        assert parse_property_to_field(prop) == FieldValue("2 people")

    def test_relation_count(self):
        assert parse_property_to_field({"type": "relation", "relation": [{"id": "a"}]}) == FieldValue("1 related")
        assert parse_property_to_field({"type": "relation", "relation": []}) is None

    def test_formula_variants(self):
        assert parse_property_to_field({"type": "formula", "formula": {"type": "string", "string": "ok"}}) == FieldValue("ok")
        assert parse_property_to_field({"type": "formula", "formula": {"type": "number", "number": 3.0}}) == FieldValue("3")
        assert parse_property_to_field({"type": "formula", "formula": {"type": "boolean", "boolean": False}}) == FieldValue("No")

    def test_rollup_array_falls_back_to_count(self):
        prop = {"type": "rollup", "rollup": {"type": "array", "array": [{"type": "people", "people": []}] * 3}}
        assert parse_property_to_field(prop) == FieldValue("3 items")

    def test_rollup_array_joins_item_text(self):
        items = [{"type": "number", "number": 1}, {"type": "title", "title": [rich("Two")]}]
        prop = {"type": "rollup", "rollup": {"type": "array", "array": items}}
        assert parse_property_to_field(prop) == FieldValue("1, Two")

    def test_timestamps_truncate_to_utc_day(self):
        prop = {"type": "created_time", "created_time": "2024-03-01T23:30:00.000-05:00"}
        assert parse_property_to_field(prop) == FieldValue("2024-03-02")

    def test_unique_id_with_prefix(self):
        prop = {"type": "unique_id", "unique_id": {"prefix": "APP-", "number": 7}}
        assert parse_property_to_field(prop) == FieldValue("APP-7")

    def test_unknown_type_is_absent(self):
        assert parse_property_to_field({"type": "button", "button": {}}) is None
        assert parse_property_to_field(None) is None


class TestGetters:
    def test_get_rich_text_reads_select(self):
        assert get_rich_text(select_prop("Finance")) == "Finance"
        assert get_rich_text(text_prop("  hello ")) == "hello"
        assert get_rich_text({"type": "number", "number": 1}) == ""

    def test_get_number_rejects_non_numbers(self):
        assert get_number({"type": "number", "number": 4.8}) == 4.8
        assert get_number(text_prop("4.8")) is None

    def test_get_multi_select_names_accepts_select(self):
        assert get_multi_select_names(select_prop("Web")) == ["Web"]

    def test_get_file_url_hosted_file(self):
        prop = {"type": "files", "files": [{"type": "file", "file": {"url": "https://s3/x.png"}}]}
        assert get_file_url(prop) == "https://s3/x.png"

    def test_page_icon_emoji_is_ignored(self):
        assert get_page_icon_url({"icon": {"type": "emoji", "emoji": "🚀"}}) is None
        assert get_page_icon_url({"icon": {"type": "external", "external": {"url": "https://i"}}}) == "https://i"

    def test_format_timestamp_passes_through_garbage(self):
        assert format_timestamp("not a date") == "not a date"


class TestDecoderTotality:
    def test_unset_values_are_absent_or_non_empty(self):
        for prop_type in _DECODERS:
            field = parse_property_to_field({"type": prop_type, prop_type: None})
            assert field is None or field.value, prop_type

    def test_empty_strings_never_leak(self):
        for prop_type in ("url", "email", "phone_number"):
            assert parse_property_to_field({"type": prop_type, prop_type: ""}) is None
        assert parse_property_to_field({"type": "formula", "formula": {"type": "string", "string": ""}}) is None
