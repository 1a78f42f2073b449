"""Error taxonomy shared by the library, stores, and generators."""

from __future__ import annotations


class CastStudioError(RuntimeError):
    """Base class for recoverable cast_studio failures."""


class ValidationError(CastStudioError):
    """Raised when a draft cannot be saved; blocks only that save."""


class StorageError(CastStudioError):
    """Base class for persistence failures surfaced as a banner."""


class StorageUnavailable(StorageError):
    """Raised when the primary backend cannot be opened at all."""


class ReadError(StorageError):
    """Raised when stored records cannot be read."""


class WriteError(StorageError):
    """Raised when a batch write or delete fails; batches are all-or-nothing."""


class ImportFormatError(CastStudioError):
    """Raised when an import payload is not a JSON array."""


class GenerationError(CastStudioError):
    """Raised when the text generator is unconfigured or returns no usable text."""


class GenerationBusy(GenerationError):
    """Raised when a generation is requested while another one is running."""
