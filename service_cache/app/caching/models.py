"""Models for the cache layer.

Provides per-call options, the stored envelope and the decoded entry.
"""

import math
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Generic, Literal, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

Version = Union[Literal[True], str, None]


class CacheKeyOptions(BaseModel):
    """
    Options that only affect how a key is resolved.

    ``version`` is either a literal prefix (``"v2"`` -> ``"v2:user:1"``) or
    ``True`` to derive the prefix from a hash of the schema.
    """

    model_config = ConfigDict(frozen=True)

    version: Version = Field(default=None, description="Literal key prefix, or True for a schema hash")

    @field_validator("version")
    @classmethod
    def _non_empty_version(cls, value: Version) -> Version:
        if isinstance(value, str) and not value:
            raise ValueError("version must be a non-empty string or True")
        return value


CacheGetOptions = CacheKeyOptions
CacheInvalidateOptions = CacheKeyOptions


class CacheOptions(CacheKeyOptions):
    """
    Per-call cache behaviour.

    ``ttl`` is the freshness window. ``swr`` extends it: a stale entry younger
    than ``ttl + swr`` is served while a refresh runs in the background. The
    store keeps the entry for ``ttl + swr`` so it physically outlives its
    freshness window by exactly the SWR margin. Durations accept seconds or
    ``timedelta``.
    """

    ttl: timedelta = Field(description="Freshness window")
    swr: Optional[timedelta] = Field(default=None, description="Stale-while-revalidate window")

    @field_validator("ttl")
    @classmethod
    def _positive_ttl(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("ttl must be positive")
        return value

    @field_validator("swr")
    @classmethod
    def _non_negative_swr(cls, value: Optional[timedelta]) -> Optional[timedelta]:
        if value is not None and value < timedelta(0):
            raise ValueError("swr must not be negative")
        return value

    @property
    def ttl_ms(self) -> int:
        return _to_ms(self.ttl)

    @property
    def swr_ms(self) -> int:
        return _to_ms(self.swr) if self.swr is not None else 0

    @property
    def storage_ttl_seconds(self) -> int:
        """Expiry handed to the backing store, rounded up to whole seconds."""
        return max(1, math.ceil((self.ttl_ms + self.swr_ms) / 1000))


def _to_ms(value: timedelta) -> int:
    return round(value.total_seconds() * 1000)


OptionsT = TypeVar("OptionsT", bound=CacheKeyOptions)


def coerce_options(
    options: Union[OptionsT, Mapping[str, Any], None],
    model: Type[OptionsT],
) -> Optional[OptionsT]:
    """Accept an options model or a plain mapping such as ``{"ttl": 60}``."""
    if options is None or isinstance(options, model):
        return options
    if isinstance(options, BaseModel):
        return model.model_validate(options.model_dump(exclude_unset=True))
    return model.model_validate(dict(options))


def is_hashable(schema: Any) -> bool:
    """False for typing expressions such as ``Annotated[int, {"unit": "s"}]``."""
    try:
        hash(schema)
    except TypeError:
        return False
    return True


class CacheEnvelope(BaseModel, Generic[T]):
    """Wire form of an entry: ``{"v": <value>, "t": <epoch ms>}``."""

    v: T
    t: int


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A decoded entry."""

    value: T
    computed_at: int  # epoch milliseconds


class EntryState(str, Enum):
    """Freshness classification of a stored entry."""

    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"
