from __future__ import annotations

import datetime
from urllib.parse import urljoin, quote
from pydantic import BaseModel, Field, ConfigDict, PrivateAttr
from typing import Optional, List, Dict, Any, Tuple, Callable, TYPE_CHECKING

from .errors import SendError

if TYPE_CHECKING:
    from .base import HoneyClient

"""
Event Wire Format (one item of a batch request)
{
    "time": "2024-01-01T00:00:00+00:00",
    "samplerate": 1,
    "data": {
        "name": "my_event",
        "duration_ms": 12.5,
    },
}
"""


def utc_now() -> datetime.datetime:
    """
    Returns the current time in UTC
    """
    return datetime.datetime.now(datetime.timezone.utc)


class HoneyEndpoint(BaseModel):
    endpoint: str

    def get_url(self, *paths: str) -> str:
        """
        Returns the URL
        """
        return urljoin(self.endpoint.rstrip('/') + '/', '/'.join(paths)).rstrip('/')

    def batch(self, dataset: str) -> str:
        """
        Returns the Batch URL for the dataset
        """
        return self.get_url('1', 'batch', quote(dataset, safe = ''))


class Event(BaseModel):
    """
    A single telemetry event

    Events are usually created with `client.new_event()`, which binds the
    event to the client so that `event.send()` goes through it.
    """

    model_config = ConfigDict(arbitrary_types_allowed = True)

    data: Dict[str, Any] = Field(default_factory = dict)
    dataset: Optional[str] = None
    write_key: Optional[str] = None
    api_host: Optional[str] = None
    sample_rate: int = Field(1, ge = 1)
    timestamp: datetime.datetime = Field(default_factory = utc_now)
    metadata: Optional[Any] = None

    _client: Optional['HoneyClient'] = PrivateAttr(None)

    def bind(self, client: 'HoneyClient') -> 'Event':
        """
        Binds the event to the client that will send it
        """
        self._client = client
        return self

    @property
    def client(self) -> Optional['HoneyClient']:
        """
        Returns the client the event is bound to
        """
        return self._client

    def add_field(self, name: str, value: Any) -> 'Event':
        """
        Adds a single field to the event
        """
        self.data[name] = value
        return self

    def add(self, data: Dict[str, Any]) -> 'Event':
        """
        Adds all the fields in the mapping to the event
        """
        self.data.update(data)
        return self

    @property
    def batch_key(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        """
        Events sharing this key can be delivered in the same request
        """
        return (self.api_host, self.write_key, self.dataset)

    def send(self) -> bool:
        """
        Sends the event through the bound client
        """
        if self._client is None: raise SendError('Event is not bound to a client. Use `client.new_event()` or `client.send(event)`')
        return self._client.send(self)

    def send_presampled(self) -> bool:
        """
        Sends the event through the bound client without sampling it again
        """
        if self._client is None: raise SendError('Event is not bound to a client. Use `client.new_event()` or `client.send_presampled(event)`')
        return self._client.send_presampled(self)

    def prepare_request(self) -> Dict[str, Any]:
        """
        Formats the event as a batch item
        """
        return {
            'time': self.timestamp.isoformat(),
            'samplerate': self.sample_rate,
            'data': self.data,
        }


PreProcessorT = Callable[[Event], Optional[Event]]


class SendResponse(BaseModel):
    """
    The delivery result of a single event
    """

    status_code: Optional[int] = None
    duration: Optional[float] = 0.0
    metadata: Optional[Any] = None
    body: Optional[Any] = None
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """
        Returns True if the event was accepted
        """
        return self.error is None and self.status_code is not None and 200 <= self.status_code < 300


class EventBatch(BaseModel):
    """
    A group of events that are sent in a single request
    """

    api_host: str
    write_key: str
    dataset: str
    events: List[Event] = Field(default_factory = list)

    @property
    def url(self) -> str:
        """
        Returns the Batch URL
        """
        return HoneyEndpoint(endpoint = self.api_host).batch(self.dataset)

    def get_headers(self, user_agent: Optional[str] = None) -> Dict[str, str]:
        """
        Returns the request headers
        """
        headers = {
            'X-Honeycomb-Team': self.write_key,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        if user_agent: headers['User-Agent'] = user_agent
        return headers

    def prepare_request(self) -> List[Dict[str, Any]]:
        """
        Returns the JSON body of the batch request
        """
        return [e.prepare_request() for e in self.events]

    def __len__(self):
        return len(self.events)


class EventQueue(BaseModel):
    """
    The pending events
    """
    events: Optional[List[Event]] = Field(default_factory = list, description = 'The queued events')

    def add_event(self, event: Event):
        """
        Adds an event to the queue
        """
        self.events.append(event)

    def __len__(self):
        """
        Returns the length of the event queue
        """
        return len(self.events)

    def __bool__(self):
        """
        Returns whether the queue has events
        """
        return len(self) > 0

    def clear(self):
        """
        Clears the event queue
        """
        self.events.clear()

    def prepare_batches(
        self,
        batch_size: int,
        clear_after: Optional[bool] = True,
    ) -> List[EventBatch]:
        """
        Groups the events by destination and splits them into batches of
        at most `batch_size` events, preserving submission order
        """
        groups: Dict[Tuple[str, str, str], List[Event]] = {}
        for event in self.events:
            groups.setdefault(event.batch_key, []).append(event)
        batches = []
        for (api_host, write_key, dataset), events in groups.items():
            for i in range(0, len(events), batch_size):
                batches.append(EventBatch(
                    api_host = api_host,
                    write_key = write_key,
                    dataset = dataset,
                    events = events[i:i + batch_size],
                ))
        if clear_after: self.events.clear()
        return batches
