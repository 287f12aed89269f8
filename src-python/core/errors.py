"""Exception taxonomy shared by ingestion, extraction and the editor.

Routers translate these into HTTP responses; detection and geometry
code never raises for edge cases (empty lines, reversed ranges) and
simply produces nothing.
"""

from __future__ import annotations


class InputAcquisitionError(RuntimeError):
    """The uploaded file could not be read or is not a supported PDF."""


class UnsupportedFormatError(InputAcquisitionError):
    """The file type is not accepted."""


class CorruptDocumentError(InputAcquisitionError):
    """The PDF is damaged or not a PDF at all."""


class PasswordRequiredError(InputAcquisitionError):
    """The PDF is encrypted and no password was supplied."""


class InvalidPasswordError(InputAcquisitionError):
    """A password was supplied but the PDF rejected it."""


class ExtractionError(RuntimeError):
    """The remote extraction service failed after every fallback model."""


class RateLimitError(ExtractionError):
    """The remote service answered with a rate-limit response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmptyExtractionError(ExtractionError):
    """Extraction succeeded but returned zero records."""


class EditorError(ValueError):
    """An editor command was rejected (e.g. deleting the last page)."""


class HostUnavailableError(RuntimeError):
    """No parent / opener context has completed the handshake."""
