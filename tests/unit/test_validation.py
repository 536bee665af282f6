"""
Unit tests for request validation.
"""

import pytest

from ccm.data_server.validation import (
    has_single_operation,
    is_object,
    operation_of,
    validate_request,
)


class TestValidateRequest:
    """Tests for validate_request."""

    @pytest.mark.parametrize(
        "data",
        [
            {"get": "u1"},
            {"get": ["a", "b"]},
            {"get": {"name": "Ann"}},
            {"get": {}},
            {"store": "users", "get": "u1"},
            {"set": {"key": "u1", "name": "Ann"}},
            {"set": {"key": ["a", "b"]}},
            {"del": "u1"},
            {"del": ["a", "b"]},
            {"store": None, "del": "u1"},
        ],
    )
    def test_valid_requests(self, data):
        assert validate_request(data)

    @pytest.mark.parametrize(
        "data",
        [
            {"store": 42, "get": "u1"},
            {"store": ["users"], "get": "u1"},
            {"get": "bad key!"},
            {"get": 42},
            {"get": ["ok", "not ok"]},
            {"set": "u1"},
            {"set": ["u1"]},
            {"set": {"name": "Ann"}},
            {"set": {"key": None}},
            {"set": {"key": "bad key!"}},
            {"set": {"key": {"nested": "u1"}}},
            {"del": {"key": "u1"}},
            {"del": "a,b"},
        ],
    )
    def test_invalid_requests(self, data):
        assert not validate_request(data)

    @pytest.mark.parametrize("data", [None, "get=u1", ["get", "u1"], 42])
    def test_request_must_be_an_object(self, data):
        assert not validate_request(data)


class TestSingleOperation:
    """Tests for has_single_operation / operation_of."""

    def test_exactly_one(self):
        assert has_single_operation({"get": "u1"})
        assert has_single_operation({"store": "s", "del": "u1"})

    def test_none(self):
        assert not has_single_operation({})
        assert not has_single_operation({"store": "users"})
        assert not has_single_operation({"get": None})

    def test_several(self):
        assert not has_single_operation({"get": "u1", "set": {"key": "u1"}})
        assert not has_single_operation({"get": "u1", "del": "u1"})

    def test_operation_of(self):
        assert operation_of({"set": {"key": "u1"}}) == "set"
        with pytest.raises(ValueError):
            operation_of({"store": "users"})


def test_is_object():
    assert is_object({})
    assert not is_object(None)
    assert not is_object([])
    assert not is_object("x")
