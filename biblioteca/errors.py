from fastapi import status


class LibraryError(Exception):
    """
    Base class for business rule violations raised by the service layer.

    Each subclass carries the HTTP status it maps to, so the transport
    layer can translate it without knowing which rule failed.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(LibraryError):
    """A referenced entity id does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class BadRequestError(LibraryError):
    """The requested book ids resolve to nothing."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(LibraryError):
    """The requested change would break the availability invariant."""

    status_code = status.HTTP_409_CONFLICT
