"""Version resolver.

Derives key prefixes from a content hash of the schema so a change in the
shape of cached data lands on a different key and old entries are simply
never read again.
"""

import hashlib
import json
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from pydantic import TypeAdapter
from pydantic.errors import PydanticInvalidForJsonSchema, PydanticSchemaGenerationError

from shared.errors import CacheConfigurationError
from .models import Version, is_hashable

HASH_WIDTH = 13  # 64 bits in base36
_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"

# Human annotations that do not change what validates
_ANNOTATION_KEYS = frozenset({"title", "description", "examples"})
# Keywords whose values map names to subschemas; the names are structure
_NAME_MAPS = frozenset({"properties", "patternProperties", "$defs", "definitions", "dependentSchemas"})
# Keywords whose list values are sets; declaration order is not structure
_UNORDERED_LISTS = frozenset({"required", "enum"})
_DEFS_REF = "#/$defs/"


def _sort_key(item: Any) -> str:
    return json.dumps(item, sort_keys=True, separators=(",", ":"))


def _strip_annotations(node: Any, names_only: bool = False) -> Any:
    if isinstance(node, dict):
        if names_only:
            return {name: _strip_annotations(sub) for name, sub in node.items()}
        stripped = {}
        for key, value in node.items():
            if key in _ANNOTATION_KEYS:
                continue
            value = _strip_annotations(value, names_only=key in _NAME_MAPS)
            if key in _UNORDERED_LISTS and isinstance(value, list):
                value = sorted(value, key=_sort_key)
            stripped[key] = value
        return stripped
    if isinstance(node, list):
        return [_strip_annotations(item) for item in node]
    return node


def _inline_refs(node: Any, defs: Dict[str, Any], stack: Tuple[str, ...] = ()) -> Any:
    """Replace ``$defs`` references with the definitions they point to.

    Definition names come from class names, so they must not reach the hash.
    A reference back into a definition that is already being expanded becomes
    ``{"$recursiveRef": n}``, where ``n`` counts the enclosing definitions up
    to the one it refers to.
    """
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith(_DEFS_REF) and ref[len(_DEFS_REF):] in defs:
            name = ref[len(_DEFS_REF):]
            siblings = {key: _inline_refs(value, defs, stack) for key, value in node.items() if key != "$ref"}
            if name in stack:
                target = {"$recursiveRef": len(stack) - stack.index(name)}
            else:
                target = _inline_refs(defs[name], defs, stack + (name,))
            return {**target, **siblings}
        return {key: _inline_refs(value, defs, stack) for key, value in node.items()}
    if isinstance(node, list):
        return [_inline_refs(item, defs, stack) for item in node]
    return node


def canonicalize_schema(schema: Any) -> str:
    """
    Render ``schema`` as canonical JSON.

    Uses the JSON Schema pydantic generates for validation with titles,
    descriptions and examples removed, ``required``/``enum`` sorted and every
    ``$defs`` reference inlined. Two schemas that validate the same shapes
    render the same text regardless of field order or nested class names.
    """
    try:
        json_schema: Dict[str, Any] = TypeAdapter(schema).json_schema(mode="validation")
    except (PydanticInvalidForJsonSchema, PydanticSchemaGenerationError) as e:
        raise CacheConfigurationError(
            "Schema cannot be versioned automatically; pass an explicit version string",
            details={"schema": repr(schema), "error": str(e)},
        ) from e

    stripped = _strip_annotations(json_schema)
    defs = stripped.pop("$defs", {})

    return json.dumps(
        _inline_refs(stripped, defs),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits)) or "0"


def _hash_schema(schema: Any) -> str:
    digest = hashlib.sha256(canonicalize_schema(schema).encode("utf-8")).digest()
    return _base36(int.from_bytes(digest[:8], "big")).rjust(HASH_WIDTH, "0")


_memoized_hash = lru_cache(maxsize=512)(_hash_schema)


def resolve_version(schema: Any) -> str:
    """Return a fixed-width lowercase base36 hash of ``schema``'s shape.

    Hashable schemas are memoized; ``Annotated`` types carrying unhashable
    metadata are hashed on every call.
    """
    if is_hashable(schema):
        return _memoized_hash(schema)
    return _hash_schema(schema)


def resolve_key(raw_key: str, version: Version = None, schema: Optional[Any] = None) -> str:
    """Apply the version segment to ``raw_key``."""
    if version is None:
        return raw_key
    if version is True:
        if schema is None:
            raise CacheConfigurationError(
                "version=True needs the schema to derive the key prefix",
                details={"key": raw_key},
            )
        return f"{resolve_version(schema)}:{raw_key}"
    if isinstance(version, str) and version:
        return f"{version}:{raw_key}"
    raise CacheConfigurationError(
        "version must be a non-empty string or True",
        details={"key": raw_key, "version": repr(version)},
    )
