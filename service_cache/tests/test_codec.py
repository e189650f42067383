"""
Unit tests for the entry codec.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any, List

import pytest

from service_cache.app.caching import decode_entry, encode_entry
from shared.errors import CacheClientError, SchemaDecodeError, SchemaEncodeError

from conftest import User

NOW_MS = 1_700_000_000_000


class TestEncodeEntry:
    """Envelope encoding."""

    def test_envelope_shape(self, user):
        payload = json.loads(encode_entry(user, User, NOW_MS))

        assert payload == {
            "v": {"id": "1", "name": "Test User", "email": "test@example.com"},
            "t": NOW_MS,
        }

    def test_accepts_plain_dict_for_model_schema(self):
        payload = json.loads(encode_entry({"id": "2", "name": "A", "email": "a@x"}, User, NOW_MS))

        assert payload["v"]["id"] == "2"

    def test_rejects_value_not_matching_schema(self):
        with pytest.raises(SchemaEncodeError) as exc_info:
            encode_entry({"id": "1"}, User, NOW_MS)

        assert exc_info.value.code == "SCHEMA_ENCODE_ERROR"
        assert exc_info.value.details["errors"]

    def test_rejects_unserializable_value(self):
        with pytest.raises(SchemaEncodeError):
            encode_entry(object(), Any, NOW_MS)

    def test_encodes_datetimes(self):
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc)

        entry = decode_entry(encode_entry(moment, datetime, NOW_MS), datetime)

        assert entry.value == moment


class TestDecodeEntry:
    """Envelope decoding and validation."""

    def test_decodes_value_and_timestamp(self, user):
        entry = decode_entry(encode_entry(user, User, NOW_MS), User)

        assert entry.value == user
        assert entry.computed_at == NOW_MS

    def test_decodes_collections(self):
        users = [User(id=str(i), name=f"U{i}", email=f"u{i}@x") for i in range(3)]

        entry = decode_entry(encode_entry(users, List[User], NOW_MS), List[User])

        assert entry.value == users

    def test_accepts_bytes(self, user):
        raw = encode_entry(user, User, NOW_MS).encode("utf-8")

        assert decode_entry(raw, User).value == user

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"v": {"id": "1", "name": "x", "email": "y"}}',
            '{"t": 1}',
            '{"v": {"id": "1"}, "t": 1}',
            '{"v": {"id": "1", "name": "x", "email": "y"}, "t": "soon"}',
            "[1, 2, 3]",
        ],
    )
    def test_malformed_payloads_raise_decode_error(self, raw):
        with pytest.raises(SchemaDecodeError) as exc_info:
            decode_entry(raw, User)

        assert not isinstance(exc_info.value, CacheClientError)
        assert exc_info.value.code == "SCHEMA_DECODE_ERROR"

    def test_non_text_payload(self):
        with pytest.raises(SchemaDecodeError):
            decode_entry(42, User)

    def test_error_details_omit_input(self):
        with pytest.raises(SchemaDecodeError) as exc_info:
            decode_entry('{"v": {"id": 1, "secret": "hunter2"}, "t": 1}', User)

        errors = exc_info.value.details["errors"]
        assert errors
        assert all("input" not in error for error in errors)


class TestUnhashableSchema:
    """Annotated schemas with unhashable metadata."""

    def test_round_trip(self):
        schema = Annotated[int, {"unit": "seconds"}]

        raw = encode_entry(30, schema, NOW_MS)

        assert json.loads(raw) == {"v": 30, "t": NOW_MS}
        assert decode_entry(raw, schema).value == 30

    def test_validation_still_applies(self):
        schema = Annotated[int, {"unit": "seconds"}]

        with pytest.raises(SchemaEncodeError):
            encode_entry("soon", schema, NOW_MS)
