from __future__ import annotations

"""Test fixtures for exercising the clients without the network."""

import typing as t

from lazyhoney import HoneySettings, Transport, Event, SendResponse


def make_settings(**kwargs: t.Any) -> HoneySettings:
    """Settings that are enabled and point at a test dataset."""

    values = {'write_key': 'test-key', 'dataset': 'test-dataset'}
    values.update(kwargs)
    return HoneySettings(**values)


class RecordingTransport(Transport):
    """Transport that keeps every submitted event in memory."""

    name = 'recording'

    def __init__(self, capacity: t.Optional[int] = None) -> None:
        super().__init__()
        self.capacity = capacity
        self.events: t.List[Event] = []
        self.flushed = 0
        self.closed = False

    def submit(self, event: Event) -> bool:
        if self.capacity is not None and len(self.events) >= self.capacity:
            self.record_response(SendResponse(metadata = event.metadata, error = 'queue overflow'))
            return False
        self.events.append(event)
        return True

    def flush(self) -> None:
        self.flushed += 1

    async def aflush(self) -> None:
        self.flushed += 1

    def close(self) -> None:
        self.closed = True


class FakeResponse:
    """Stands in for a niquests response."""

    def __init__(self, status_code: int, payload: t.Any = None, url: str = 'https://api.honeycomb.io/1/batch/test-dataset') -> None:
        self.status_code = status_code
        self.payload = payload
        self.url = url

    @property
    def text(self) -> str:
        return str(self.payload)

    def json(self) -> t.Any:
        if self.payload is None:
            raise ValueError('no json body')
        return self.payload


class FakeSession:
    """Records POSTs and answers each with `respond(json_body)`."""

    def __init__(self, respond: t.Callable[[t.List[t.Dict[str, t.Any]]], FakeResponse]) -> None:
        self.respond = respond
        self.requests: t.List[t.Dict[str, t.Any]] = []
        self.closed = False

    def post(self, url: str, json: t.Any = None, headers: t.Any = None, timeout: t.Any = None) -> FakeResponse:
        self.requests.append({'url': url, 'json': json, 'headers': headers, 'timeout': timeout})
        return self.respond(json)

    def close(self) -> None:
        self.closed = True


class FakeAsyncSession(FakeSession):
    """Async variant of `FakeSession`."""

    async def post(self, url: str, json: t.Any = None, headers: t.Any = None, timeout: t.Any = None) -> FakeResponse:  # type: ignore[override]
        return FakeSession.post(self, url, json = json, headers = headers, timeout = timeout)

    async def close(self) -> None:  # type: ignore[override]
        self.closed = True


def accept_all(body: t.List[t.Dict[str, t.Any]]) -> FakeResponse:
    """Honeycomb-style per-event acceptance."""

    return FakeResponse(200, [{'status': 202} for _ in body])
