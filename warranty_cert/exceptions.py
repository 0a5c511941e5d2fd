"""
Error types raised by the certificate pipeline.
"""


class WarrantyCertError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(WarrantyCertError):
    """Malformed identifier input or missing checkpoint."""


class NotFoundError(WarrantyCertError):
    """The requested invoice does not exist upstream."""


class FetchError(WarrantyCertError):
    """Transient failure while downloading an invoice document."""


class ExtractionAmbiguityError(WarrantyCertError):
    """A required field could not be recovered from the document."""


class TemplateMissingError(WarrantyCertError):
    """No certificate template could be located."""
