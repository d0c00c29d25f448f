"""Error taxonomy shared by the extraction pipeline, the document model and the API."""

from __future__ import annotations


class MenuError(Exception):
    """Base class for all menu generator failures."""


class ConfigurationError(MenuError):
    """Required configuration (e.g. the provider credential) is missing or invalid."""


class NoFileProvided(MenuError):
    """The request carried no image."""


class ExtractionFailure(MenuError):
    """The upstream model call errored, timed out or returned no content."""


class MalformedResponse(MenuError):
    """The model output could not be parsed into a menu document."""


class IndexOutOfRange(MenuError, IndexError):
    """An edit addressed a section or item position that does not exist."""


class InvalidField(MenuError, ValueError):
    """An edit addressed a field that is not editable."""


__all__ = [
    "MenuError",
    "ConfigurationError",
    "NoFileProvided",
    "ExtractionFailure",
    "MalformedResponse",
    "IndexOutOfRange",
    "InvalidField",
]
