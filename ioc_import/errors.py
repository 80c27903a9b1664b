"""Exceptions raised by the import pipeline."""


class IOCImportError(Exception):
    """Base class for import pipeline errors."""

    pass


class IOCFormatError(IOCImportError):
    """Raised when a document's top-level structure cannot be parsed."""

    pass


class DuplicateIndicatorError(IOCImportError):
    """Raised by a store when the (type, value) key already exists."""

    pass


class HostIntelError(IOCImportError):
    """Raised when a host intelligence lookup fails."""

    pass
