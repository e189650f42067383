"""Entry codec.

Serializes ``(value, computed_at)`` into the ``{"v": ..., "t": ...}`` envelope
and validates ``v`` against the caller's schema on the way back. A payload that
does not match is a hard ``SchemaDecodeError``; it is never turned into a miss.
"""

from functools import lru_cache
from typing import Any, Type

from pydantic import BaseModel, ValidationError, create_model
from pydantic_core import PydanticSerializationError

from shared.errors import SchemaDecodeError, SchemaEncodeError
from .models import CacheEntry, CacheEnvelope, is_hashable


@lru_cache(maxsize=512)
def _parametrized_envelope(schema: Any) -> Type[CacheEnvelope]:
    return CacheEnvelope[schema]


def envelope_for(schema: Any) -> Type[BaseModel]:
    """Return the envelope model whose ``v`` field is typed as ``schema``."""
    if is_hashable(schema):
        return _parametrized_envelope(schema)
    # CacheEnvelope[...] hashes its type argument
    return create_model("CacheEnvelope", v=(schema, ...), t=(int, ...))


def _schema_name(schema: Any) -> str:
    return getattr(schema, "__qualname__", None) or repr(schema)


def encode_entry(value: Any, schema: Any, now_ms: int) -> str:
    """Validate ``value`` against ``schema`` and serialize it with its timestamp."""
    envelope_type = envelope_for(schema)
    try:
        envelope = envelope_type(v=value, t=int(now_ms))
        return envelope.model_dump_json()
    except ValidationError as e:
        raise SchemaEncodeError(
            f"Value does not match schema {_schema_name(schema)}",
            cause=e,
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e
    except PydanticSerializationError as e:
        raise SchemaEncodeError(
            f"Value for schema {_schema_name(schema)} cannot be serialized",
            cause=e,
        ) from e


def decode_entry(raw: Any, schema: Any) -> CacheEntry:
    """Parse an envelope and validate its value against ``schema``."""
    if not isinstance(raw, (str, bytes, bytearray)):
        raise SchemaDecodeError(f"Cached payload must be text, got {type(raw).__name__}")

    envelope_type = envelope_for(schema)
    try:
        envelope = envelope_type.model_validate_json(raw)
    except ValidationError as e:
        raise SchemaDecodeError(
            f"Cached payload does not match schema {_schema_name(schema)}",
            cause=e,
            details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        ) from e

    return CacheEntry(value=envelope.v, computed_at=envelope.t)
