from __future__ import annotations

"""
The Honeycomb Client with an Event Pre-Processor

`Client` wraps a `HoneyClient` and adds a single optional hook that is
called with every outbound event before it is sampled and handed to the
transport. Everything else is forwarded to the wrapped client.

Usage:

    from lazyhoney import Client, HoneySettings, Event

    def scrub(event: Event) -> Optional[Event]:
        if event.data.get('path') == '/healthz': return None  # drop
        event.data.pop('password', None)
        return event

    client = Client(HoneySettings(write_key = 'xxx', dataset = 'api'))
    client.set_pre_processor(scrub)
    client.send_now({'path': '/login', 'password': 'hunter2'})
"""

from typing import Optional, Dict, Any, List, Union, Callable, TypeVar, TYPE_CHECKING

from .base import HoneyClient, build_capture_decorator
from .config import HoneySettings, TransportSettings
from .errors import PreProcessorError
from .transport import Transport
from .types import Event, PreProcessorT, SendResponse
from .utils import register_honey_client

if TYPE_CHECKING:
    from lazyhoney.logs import Logger


RT = TypeVar('RT')


class Client:
    """
    A Honeycomb Client that supports an event pre-processor

    The pre-processor is called synchronously by `send` with the event and
    returns either an `Event` to send (the same one or a replacement) or
    `None` to drop it. If it raises, `send` raises `PreProcessorError` and
    nothing is queued for that event.
    """

    def __init__(
        self,
        options: Optional[HoneySettings] = None,
        transport: Optional[Union[TransportSettings, Transport]] = None,
        *,
        pre_processor: Optional[PreProcessorT] = None,
        **kwargs
    ):
        """
        Initializes the Client

        Takes the same arguments as `HoneyClient`, which it builds and wraps:

            Client(options)
            Client(options, transport_settings)
            Client(options, transport)

        - `pre_processor`: An optional event pre-processor to install
        """
        self._setup(HoneyClient(options, transport, **kwargs), pre_processor)

    @classmethod
    def from_client(
        cls,
        client: HoneyClient,
        pre_processor: Optional[PreProcessorT] = None,
    ) -> 'Client':
        """
        Wraps an existing HoneyClient
        """
        new = cls.__new__(cls)
        new._setup(client, pre_processor)
        return new

    def _setup(self, client: HoneyClient, pre_processor: Optional[PreProcessorT]):
        self.client = client
        self._pre_processor: Optional[PreProcessorT] = pre_processor
        self.pre_processor_dropped: int = 0
        register_honey_client(self, replaces = client)

    def set_pre_processor(self, pre_processor: Optional[PreProcessorT]) -> None:
        """
        Installs the event pre-processor, replacing any previous one.
        Pass `None` to remove it
        """
        self._pre_processor = pre_processor

    def get_pre_processor(self) -> Optional[PreProcessorT]:
        """
        Returns the event pre-processor, if any
        """
        return self._pre_processor

    pre_processor = property(get_pre_processor, set_pre_processor)

    def pre_process(self, event: Event) -> Optional[Event]:
        """
        Runs the pre-processor on the event

        Returns the event to send, or None if the event should be dropped
        """
        hook = self._pre_processor
        if hook is None: return event
        self.client.resolve_event(event)
        try:
            result = hook(event)
        except Exception as e:
            raise PreProcessorError(event, e) from e
        if result is None:
            self.pre_processor_dropped += 1
            self.autologger.debug(f'Event dropped by pre-processor: {event.data}', prefix = 'Honeycomb', max_length = 500)
            return None
        if not isinstance(result, Event):
            error = TypeError(f'Event pre-processor must return an Event or None, not {type(result).__name__}')
            raise PreProcessorError(event, error) from error
        return result

    def send(self, event: Event) -> bool:
        """
        Pre-processes the event, then samples it and hands it to the transport

        Returns True if the transport accepted the event
        """
        if not self.client.enabled: return self.client.send(event)
        event = self.pre_process(event)
        if event is None: return False
        return self.client.send(event)

    def send_presampled(self, event: Event) -> bool:
        """
        Pre-processes the event and hands it to the transport without sampling
        """
        if not self.client.enabled: return self.client.send_presampled(event)
        event = self.pre_process(event)
        if event is None: return False
        return self.client.send_presampled(event)

    def send_now(self, data: Dict[str, Any], **kwargs) -> bool:
        """
        Creates and sends an event in one call
        """
        return self.new_event(data, **kwargs).send()

    def new_event(self, data: Optional[Dict[str, Any]] = None, **kwargs) -> Event:
        """
        Creates a new event bound to this client, so that `event.send()`
        goes through the pre-processor
        """
        return self.client.new_event(data, **kwargs).bind(self)

    def configure(self, **kwargs) -> 'Client':
        """
        Configures the wrapped client
        """
        self.client.configure(**kwargs)
        return self

    def add_field(self, name: str, value: Any) -> 'Client':
        self.client.add_field(name, value)
        return self

    def add(self, data: Dict[str, Any]) -> 'Client':
        self.client.add(data)
        return self

    def add_dynamic_field(self, func: Callable[[], Any]) -> 'Client':
        self.client.add_dynamic_field(func)
        return self

    @property
    def settings(self) -> HoneySettings:
        return self.client.settings

    @property
    def transport(self) -> Transport:
        return self.client.transport

    @property
    def enabled(self) -> bool:
        return self.client.enabled

    @property
    def autologger(self) -> 'Logger':
        return self.client.autologger

    @property
    def stats(self) -> Dict[str, int]:
        """
        Returns the client and transport counters
        """
        return {
            **self.client.stats,
            'pre_processor_dropped': self.pre_processor_dropped,
        }

    def get_responses(self, clear: Optional[bool] = True) -> List[SendResponse]:
        return self.client.get_responses(clear = clear)

    def flush(self) -> None:
        self.client.flush()

    async def aflush(self) -> None:
        await self.client.aflush()

    def close(self) -> None:
        self.client.close()

    async def aclose(self) -> None:
        await self.client.aclose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.flush()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aflush()

    def capture(
        self,
        name: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        **_kwargs: Any,
    ) -> Callable[[Callable[..., RT]], Callable[..., RT]]:
        """
        Creates a decorator that sends an event for each call of the function
        through this client, and so through the pre-processor
        """
        return build_capture_decorator(lambda: self, name = name, data = data, **_kwargs)
