"""Exceptions raised by the repository client.

Every failure in the discovery chain is one of these, so callers can branch
on the type. A service that simply does not exist is not an error for
``RepositoryClient.get_service`` (it returns None); only ``create_client``
turns it into ServiceNotFoundError.
"""

import logging

logger = logging.getLogger(__name__)


class RepositoryClientError(Exception):
    """Base exception with a message, optionally logged when raised."""
    default_message = "A repository client error occurred"

    def __init__(self, message: str | None = None, log: bool = False):
        self.message = message or self.default_message
        super().__init__(self.message)
        if log:
            logger.error(self.message)


class InvalidArgumentError(RepositoryClientError, ValueError):
    """A required argument was missing or unusable."""
    default_message = "Invalid argument"


class TransportError(RepositoryClientError):
    """The network call failed or returned a non-success status."""
    default_message = "Transport error"

    def __init__(self, message: str | None = None, *, url: str | None = None,
                 status_code: int | None = None, log: bool = False):
        self.url = url
        self.status_code = status_code
        super().__init__(message, log=log)


class ParseError(RepositoryClientError):
    """The repository description was not valid JSON or had the wrong shape."""
    default_message = "Invalid repository description"


class ServiceNotFoundError(RepositoryClientError, LookupError):
    """No service with the requested name exists in the repository."""
    default_message = "Service not found"

    def __init__(self, service_name: str, message: str | None = None, log: bool = False):
        self.service_name = service_name
        super().__init__(message or f"Service not found: {service_name!r}", log=log)


class OperationCancelledError(RepositoryClientError):
    """The operation's cancellation token was triggered."""
    default_message = "The operation was cancelled"


class ObjectDisposedError(RepositoryClientError):
    """The repository client was used after it was closed."""
    default_message = "The repository client has been closed"
