from __future__ import annotations


class ConversionError(Exception):
    """Base class for failures raised while converting a library."""


class TagStreamError(ConversionError):
    """Raised when a binary tag stream cannot be decoded."""


class TruncatedPayload(TagStreamError):
    """A tag declared more payload bytes than the stream holds (or a forbidden zero length)."""


class InvalidFrameHeader(TagStreamError):
    """The fixed header in front of a marker payload did not match."""


class UnsupportedFile(ConversionError):
    """Raised for missing files or files with an unrecognised extension."""


class MissingSubcrateDirectory(ConversionError):
    """The Serato root does not contain a _Serato_/Subcrates directory."""
