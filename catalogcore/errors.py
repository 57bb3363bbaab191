"""Error taxonomy for catalog resolution and mutation."""

from __future__ import annotations


class CatalogError(RuntimeError):
    """Base class for every failure raised by the catalog engine."""

    status_code = 500


class ValidationError(CatalogError):
    """Raised when caller supplied input is malformed."""

    status_code = 400


class DuplicateError(CatalogError):
    """Raised when a product name is already taken."""

    status_code = 409


class NotFoundError(CatalogError):
    """Raised when a product name does not exist in the catalog."""

    status_code = 404


class ContainerUnreachableError(CatalogError):
    """Raised when an artifact container cannot be reached.

    The message is intentionally generic; the underlying detail is logged
    where the failure is observed.
    """

    status_code = 502

    def __init__(self, message: str = "Template folder could not be reached") -> None:
        super().__init__(message)


class ConfigLoadError(CatalogError):
    """Raised when no catalog can be loaded for the current request."""

    status_code = 503
