"""
Unit tests for the coercion helpers used to read validator payloads
"""
import math
from app.utils.coercion import (
    extract_numeric_score,
    first_non_empty,
    first_text,
    round_half_up,
    to_array,
    to_string_array,
)


class TestExtractNumericScore:
    """Tests for extract_numeric_score"""

    def test_integer_passes_through(self):
        assert extract_numeric_score(92) == 92

    def test_score_inside_text_is_rounded(self):
        """Test that "Score: 87.6%" yields 88"""
        assert extract_numeric_score("Score: 87.6%") == 88

    def test_text_without_number_is_none(self):
        assert extract_numeric_score("no number here") is None

    def test_out_of_range_score_is_not_clamped(self):
        assert extract_numeric_score(105) == 105

    def test_half_rounds_up(self):
        assert extract_numeric_score(84.5) == 85
        assert round_half_up(-2.5) == -2

    def test_non_numeric_types_are_none(self):
        assert extract_numeric_score(None) is None
        assert extract_numeric_score(True) is None
        assert extract_numeric_score({"score": 90}) is None
        assert extract_numeric_score(math.nan) is None

    def test_negative_number_in_text(self):
        assert extract_numeric_score("delta -3") == -3

    def test_numbers_without_integer_form_are_none(self):
        """Test that scores overflowing a float yield None instead of raising"""
        assert extract_numeric_score("9" * 400) is None
        assert extract_numeric_score(f"Score: {'9' * 400}%") is None
        assert extract_numeric_score(10 ** 400) is None
        assert round_half_up(math.inf) is None
        assert round_half_up(math.nan) is None


class TestToArray:
    """Tests for to_array"""

    def test_falsy_values_are_empty(self):
        for value in (None, "", 0, [], {}):
            assert to_array(value) == []

    def test_json_list_string_is_decoded(self):
        assert to_array('["a", "b"]') == ["a", "b"]

    def test_plain_string_splits_on_newline_and_semicolon(self):
        assert to_array("first; second\nthird\n\n") == ["first", "second", "third"]

    def test_json_object_string_is_split_not_decoded(self):
        assert to_array('{"a": 1}') == ['{"a": 1}']

    def test_dict_yields_values(self):
        assert to_array({"x": "one", "y": "two"}) == ["one", "two"]

    def test_scalar_is_wrapped(self):
        assert to_array(42) == [42]


class TestToStringArray:
    """Tests for to_string_array"""

    def test_objects_use_first_text_key(self):
        items = [{"description": "Measured wound"}, {"reason": "No photo"}, "  plain  "]
        assert to_string_array(items) == ["Measured wound", "No photo", "plain"]

    def test_empties_and_nested_lists_are_dropped(self):
        assert to_string_array(["", None, ["nested"], {"other": "x"}, 7]) == ["7"]


class TestFirstNonEmpty:
    """Tests for first_non_empty and first_text"""

    def test_skips_none_and_blank(self):
        obj = {"a": None, "b": "  ", "c": "value"}
        assert first_non_empty(obj, ["a", "b", "c"]) == "value"

    def test_blank_kept_when_requested(self):
        assert first_non_empty({"b": ""}, ["b"], skip_blank=False) == ""

    def test_falsy_non_strings_are_usable(self):
        assert first_non_empty({"score": 0}, ["score"]) == 0
        assert first_non_empty({"items": []}, ["items"]) == []

    def test_callable_accessor(self):
        obj = {"lcd": "L35125"}
        assert first_non_empty(obj, ["title", lambda o: f"LCD {o['lcd']}"]) == "LCD L35125"

    def test_non_dict_is_none(self):
        assert first_non_empty("text", ["a"]) is None
        assert first_non_empty(None, ["a"]) is None

    def test_first_text_ignores_non_strings(self):
        obj = {"summary": ["list"], "assessment": "Documented"}
        assert first_text(obj, ["summary", "assessment"]) == "Documented"
