"""Tests for filename templating."""

import pytest

from stereoproc.errors import TemplateError
from stereoproc.templating import StringTemplate, format_string


class TestFormatString:
    """Tests for format_string()."""

    def test_no_placeholders_is_identity(self):
        """A template without placeholders renders unchanged for any dictionary."""
        for variables in ({}, {"f": 3}, {"s": "L", "rangeStart": 0}):
            assert format_string("plain/output.png", variables) == "plain/output.png"

    def test_unknown_name_kept_literally(self):
        """Names missing from the dictionary stay in the output verbatim."""
        assert format_string("x_%{q}.png", {"f": 3}) == "x_%{q}.png"

    def test_unknown_name_with_spec_kept_literally(self):
        assert format_string("x_%{q|03d}.png", {}) == "x_%{q|03d}.png"

    def test_integer_default(self):
        assert format_string("img_%{f}.png", {"f": 12}) == "img_12.png"

    def test_integer_with_spec(self):
        """A bar-separated directive is applied printf-style."""
        assert format_string("img_%{f|05d}.png", {"f": 42}) == "img_00042.png"

    def test_integer_hex_spec(self):
        assert format_string("%{f|x}", {"f": 255}) == "ff"

    def test_string_default(self):
        assert format_string("img_%{s}.png", {"s": "L"}) == "img_L.png"

    def test_string_with_spec(self):
        assert format_string("[%{s|3s}]", {"s": "R"}) == "[  R]"

    def test_unsupported_kind_renders_empty(self):
        """Values that are neither strings nor integers render as empty text."""
        assert format_string("a%{v}b", {"v": 1.5}) == "ab"
        assert format_string("a%{v}b", {"v": None}) == "ab"

    def test_bool_is_not_an_integer(self):
        assert format_string("a%{v}b", {"v": True}) == "ab"

    def test_multiple_placeholders_and_trailing_text(self):
        variables = {"f": 7, "s": "R", "rangeStart": 0, "rangeEnd": 9}
        result = format_string(
            "out/%{rangeStart}-%{rangeEnd}/frame_%{f|04d}_%{s}.jpg", variables
        )
        assert result == "out/0-9/frame_0007_R.jpg"

    def test_negative_range_end(self):
        assert format_string("%{rangeEnd}", {"rangeEnd": -1}) == "-1"

    def test_invalid_directive_raises(self):
        """A directive that does not fit the value is a template error."""
        with pytest.raises(TemplateError):
            format_string("%{s|d}", {"s": "L"})

    def test_incomplete_placeholder_is_plain_text(self):
        assert format_string("%{f", {"f": 1}) == "%{f"
        assert format_string("%f}", {"f": 1}) == "%f}"


class TestStringTemplate:
    """Tests for StringTemplate."""

    def test_names(self):
        template = StringTemplate("cam_%{f|03d}_%{s}_%{f}.png")
        assert template.names == ["f", "s", "f"]

    def test_render_reusable(self):
        """A compiled template renders independently for every dictionary."""
        template = StringTemplate("img_%{f}_%{s}.png")
        assert template.render({"f": 0, "s": "L"}) == "img_0_L.png"
        assert template.render({"f": 1, "s": "R"}) == "img_1_R.png"

    def test_repr(self):
        assert repr(StringTemplate("a%{f}")) == "StringTemplate('a%{f}')"
