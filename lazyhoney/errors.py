from __future__ import annotations

"""
Errors raised by lazyhoney
"""

import functools
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    import niquests
    from .types import Event


class HoneyError(Exception):
    """
    Base error for lazyhoney
    """


class ConfigurationError(HoneyError, ValueError):
    """
    Raised when a client or transport is built with invalid arguments
    """


class SendError(HoneyError):
    """
    Raised when an event cannot be submitted
    """


class PreProcessorError(SendError):
    """
    Raised when the event pre-processor fails for a single event

    The original exception is available as `error` and as `__cause__`.
    """

    def __init__(self, event: 'Event', error: Exception):
        self.event = event
        self.error = error
        super().__init__(f'Event pre-processor failed: {type(error).__name__}: {error}')


class TransportError(HoneyError):
    client_name: str = 'HoneyTransport'

    def __init__(
        self,
        response: 'niquests.Response'
    ):
        self.response = response
        super().__init__(str(self))

    @functools.cached_property
    def url(self) -> Optional[str]:
        return self.response.url

    @functools.cached_property
    def status_code(self) -> Optional[int]:
        return self.response.status_code

    @functools.cached_property
    def payload(self) -> Any:
        try:
            return self.response.json()
        except Exception:
            return self.response.text

    def __str__(self):
        return f"[{self.client_name}] url: {self.url}, status_code: {self.status_code}, payload: {self.payload}"
