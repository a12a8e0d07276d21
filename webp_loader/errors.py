"""Exceptions raised by the loader pipeline."""

from __future__ import annotations


class LoaderError(Exception):
    """Base class for every error the loader raises on its own."""


class HostCapabilityMissing(LoaderError):
    """The host context lacks an interface the loader cannot work without."""


class OptionsError(LoaderError, ValueError):
    """A loader option has a value outside its accepted range or type."""


class CompressionError(LoaderError):
    """The codec chain rejected the input or failed while encoding it."""
