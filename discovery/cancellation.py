"""Cooperative cancellation for repository operations."""

import threading

from discovery.errors import OperationCancelledError


class CancellationToken:
    """
    A cancellation signal passed explicitly through every call.

    Operations check it at defined points (before a request is sent and
    right after the response arrives) and fail with OperationCancelledError
    when it is set. ``cancel()`` may be called from any thread.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(client.get_service("search", token))
        token.cancel()
    """

    def __init__(self, cancelled: bool = False):
        self._event = threading.Event()
        if cancelled:
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
