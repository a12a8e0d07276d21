"""Data models passed between the loader stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class OutputIdentity:
    """Resolved output names for the original asset and its WebP derivative."""

    url: str
    derivative_url: str


@dataclass(frozen=True)
class Decision:
    """Outcome of the size-threshold policy."""

    inline: bool
    data_uri: Optional[str] = None


@dataclass(frozen=True)
class Inlined:
    """The asset was small enough to embed as a data URI."""

    data_uri: str


@dataclass(frozen=True)
class Emitted:
    """The asset is file-backed; ``derivative`` is None in debug-bypass mode."""

    identity: OutputIdentity
    derivative: Optional[bytes]


EmissionOutcome = Union[Inlined, Emitted]
