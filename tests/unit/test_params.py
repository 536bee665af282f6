"""
Unit tests for jQuery.param style query string decoding.
"""

import pytest

from ccm.data_server.api.params import MAX_ARRAY_GAP, QueryStringError, deparam


class TestDeparam:
    """Tests for deparam."""

    def test_empty(self):
        assert deparam("") == {}

    def test_plain_values(self):
        assert deparam("store=users&get=u1") == {"store": "users", "get": "u1"}

    def test_values_are_not_coerced(self):
        assert deparam("set[key]=u1&set[age]=30&set[ok]=true") == {
            "set": {"key": "u1", "age": "30", "ok": "true"}
        }

    def test_percent_and_plus_decoding(self):
        assert deparam("get[name]=Ann+Lee&get[city]=K%C3%B6ln") == {
            "get": {"name": "Ann Lee", "city": "Köln"}
        }

    def test_encoded_brackets(self):
        assert deparam("del%5B%5D=a&del%5B%5D=b") == {"del": ["a", "b"]}

    def test_array_notation(self):
        assert deparam("get[]=course&get[]=7") == {"get": ["course", "7"]}

    def test_indexed_array(self):
        assert deparam("get[0]=course&get[1]=7") == {"get": ["course", "7"]}

    def test_nested_objects_and_arrays(self):
        assert deparam("set[key]=u1&set[tags][]=x&set[tags][]=y&set[profile][city]=Bonn") == {
            "set": {"key": "u1", "tags": ["x", "y"], "profile": {"city": "Bonn"}}
        }

    def test_array_of_objects(self):
        assert deparam("set[items][0][a]=1&set[items][1][a]=2") == {
            "set": {"items": [{"a": "1"}, {"a": "2"}]}
        }

    def test_repeated_plain_key(self):
        assert deparam("get=a&get=b&get=c") == {"get": ["a", "b", "c"]}

    def test_key_without_value(self):
        assert deparam("get") == {"get": ""}

    def test_empty_value(self):
        assert deparam("get=") == {"get": ""}

    def test_skips_empty_pairs(self):
        assert deparam("&get=u1&&") == {"get": "u1"}

    def test_conflicting_paths(self):
        with pytest.raises(QueryStringError):
            deparam("get[]=a&get[name]=b")

    def test_query_string_error_is_value_error(self):
        assert issubclass(QueryStringError, ValueError)

    def test_bracket_key_without_value_stays_literal(self):
        assert deparam("a[b]") == {"a[b]": ""}

    def test_small_index_gap_is_padded(self):
        assert deparam("get[2]=x") == {"get": [None, None, "x"]}

    def test_huge_array_index(self):
        with pytest.raises(QueryStringError):
            deparam("get[999999999]=x")

    def test_huge_nested_array_index(self):
        with pytest.raises(QueryStringError):
            deparam("set[key]=u1&set[tags][20000000][a]=x")

    def test_array_index_gap_limit(self):
        assert len(deparam(f"get[{MAX_ARRAY_GAP}]=x")["get"]) == MAX_ARRAY_GAP + 1
        with pytest.raises(QueryStringError):
            deparam(f"get[{MAX_ARRAY_GAP + 1}]=x")
