"""Test fingerprint key helpers."""

import math

import pytest

from gengate.utils.hasher import (
    FINGERPRINT_PREFIX,
    canonical_json,
    generate_fingerprint_key,
    generate_hits_key,
)


class TestCanonicalJson:
    """Test canonical serialization."""

    def test_should_sort_keys(self):
        """Test key order does not affect output."""
        assert canonical_json({"b": 1, "a": 2}) == canonical_json({"a": 2, "b": 1})

    def test_should_omit_insignificant_whitespace(self):
        """Test compact separators."""
        assert canonical_json({"a": [1, 2]}) == '{"a":[1,2]}'

    def test_should_reject_nan(self):
        """Test NaN is not serializable."""
        with pytest.raises(ValueError):
            canonical_json({"a": math.nan})

    def test_should_reject_unserializable_values(self):
        """Test arbitrary objects raise TypeError."""
        with pytest.raises(TypeError):
            canonical_json({"a": object()})


class TestKeys:
    """Test key generation."""

    def test_should_prefix_fingerprint(self):
        """Test fingerprint prefix and digest length."""
        key = generate_fingerprint_key('{"prompt":"x"}')
        assert key.startswith(FINGERPRINT_PREFIX)
        assert len(key) == len(FINGERPRINT_PREFIX) + 64

    def test_should_be_deterministic(self):
        """Test same content gives same key."""
        assert generate_fingerprint_key("abc") == generate_fingerprint_key("abc")
        assert generate_fingerprint_key("abc") != generate_fingerprint_key("abd")

    def test_should_build_hits_key(self):
        """Test hit counter key format."""
        assert generate_hits_key("gen:abc") == "hits:gen:abc"
