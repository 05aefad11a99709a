"""
Error types for SST.

Every failure the ingest core can report is an SSTError carrying a machine
code, a human-readable message and the HTTP-style status the outer surface
should answer with.
"""

from typing import Any, Dict, Optional


class SSTError(Exception):
    """
    Base class for all SST errors.
    """

    default_status = 400

    def __init__(self, code: str, message: str, status: Optional[int] = None,
                 data: Optional[Dict[str, Any]] = None):
        """
        Initialize the error.

        Args:
            code: Machine-readable error code (e.g. "empty-title")
            message: Human-readable description
            status: HTTP-style status code (defaults to the class default)
            data: Optional extra data attached to the error
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status if status is not None else self.default_status
        self.data = data or {}

    def to_dict(self) -> Dict[str, Any]:
        """Render the error the way the wire response carries it."""
        return {
            "code": self.code,
            "message": self.message,
            "data": {**self.data, "status": self.status},
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r}, status={self.status})"


class RequestValidationError(SSTError):
    """Raised when a request is missing required fields or is malformed."""

    default_status = 400


class NotFoundError(SSTError):
    """Raised when an object id does not exist in the content store."""

    default_status = 404


class StoreError(SSTError):
    """Raised when the content store rejects a create or update."""

    default_status = 500


class TermExistsError(StoreError):
    """
    Raised by the content store when a term being created already exists.

    The id of the existing term is available as ``term_id``.
    """

    default_status = 400

    def __init__(self, term_id: int, message: str = "A term with the name provided already exists."):
        super().__init__("term_exists", message, data={"term_id": term_id})
        self.term_id = term_id


class ReferenceResolutionError(SSTError):
    """Raised when a single reference cannot be resolved. Never fatal to the request."""

    default_status = 400


class MediaFetchError(ReferenceResolutionError):
    """Raised when a media file cannot be downloaded or stored."""
