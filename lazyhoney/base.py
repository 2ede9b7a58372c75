from __future__ import annotations

"""
The Base Honeycomb Client

- Sends through a pluggable Transport (niquests by default)
"""

import time
import random
import inspect
import functools
from lazyhoney.logs import logger, null_logger, Logger
from typing import Optional, Dict, Any, List, Union, Callable, TypeVar

from .config import HoneySettings, TransportSettings
from .errors import HoneyError, ConfigurationError, SendError
from .transport import Transport, HTTPTransport
from .types import Event, SendResponse
from .utils import get_honey_settings, register_honey_client


RT = TypeVar('RT')


class HoneyClient:
    """
    A Honeycomb Client that hands events to a Transport which batches and
    delivers them.

    The client supports three construction forms:

        HoneyClient(options)
        HoneyClient(options, TransportSettings(...))
        HoneyClient(options, transport)

    where `options` is a `HoneySettings` (or None to load from the environment).
    """

    settings: Optional[HoneySettings] = None

    def __init__(
        self,
        options: Optional[HoneySettings] = None,
        transport: Optional[Union[TransportSettings, Transport]] = None,
        write_key: Optional[str] = None,
        dataset: Optional[str] = None,
        api_host: Optional[str] = None,
        sample_rate: Optional[int] = None,
        global_fields: Optional[Dict[str, Any]] = None,
        enabled: Optional[bool] = None,
        debug_enabled: Optional[bool] = None,
        **kwargs
    ):
        """
        Initializes the Honeycomb Client

        - `options`: The client settings. Defaults to the settings loaded from `HONEYCOMB_*` env vars
        - `transport`: Either the `TransportSettings` for the default HTTP transport or a `Transport` instance
        - `write_key`: The Honeycomb API key
        - `dataset`: The dataset events are sent to
        - `api_host`: The Honeycomb API host
        - `sample_rate`: Send 1 in `sample_rate` events
        - `global_fields`: Fields added to every event
        - `enabled`: Whether the client is enabled or not
        - `debug_enabled`: Whether to enable debug logging

        These parameters will override the values in the options
        """
        if options is not None and not isinstance(options, HoneySettings):
            raise ConfigurationError(f'`options` must be a HoneySettings, not {type(options).__name__}')
        self.settings = options if options is not None else get_honey_settings()
        self.configure(
            write_key = write_key,
            dataset = dataset,
            api_host = api_host,
            sample_rate = sample_rate,
            global_fields = global_fields,
            enabled = enabled,
            debug_enabled = debug_enabled,
        )

        if transport is None or isinstance(transport, TransportSettings):
            self.transport: Transport = HTTPTransport(transport, **kwargs)
        elif isinstance(transport, Transport):
            self.transport = transport
            if kwargs: logger.warning(f'Ignoring transport options {list(kwargs)} since a Transport instance was given', prefix = 'Honeycomb')
        else:
            raise ConfigurationError(f'`transport` must be a TransportSettings or a Transport, not {type(transport).__name__}')
        if self.transport.debug_enabled is None: self.transport.debug_enabled = self.settings.debug_enabled

        self.fields: Dict[str, Any] = dict(self.settings.global_fields or {})
        self.dynamic_fields: List[Callable[[], Any]] = []

        self.submitted_events: int = 0
        self.sampled_events: int = 0
        self.dropped_events: int = 0
        self._warned_disabled: bool = False
        register_honey_client(self)

    def configure(
        self,
        write_key: Optional[str] = None,
        dataset: Optional[str] = None,
        api_host: Optional[str] = None,
        sample_rate: Optional[int] = None,
        global_fields: Optional[Dict[str, Any]] = None,
        enabled: Optional[bool] = None,
        debug_enabled: Optional[bool] = None,
        **kwargs
    ) -> 'HoneyClient':
        """
        Configures the Honeycomb Client
        """
        if write_key is not None: self.settings.write_key = write_key
        if dataset is not None: self.settings.dataset = dataset
        if api_host is not None: self.settings.api_host = api_host
        if sample_rate is not None: self.settings.sample_rate = sample_rate
        if global_fields is not None:
            self.settings.global_fields = global_fields
            if hasattr(self, 'fields'): self.fields.update(global_fields)
        if enabled is not None: self.settings.enabled = enabled
        if debug_enabled is not None: self.settings.debug_enabled = debug_enabled
        self.settings.update_enabled()
        return self

    @property
    def autologger(self) -> 'Logger':
        """
        Returns the autologger
        """
        return logger if self.settings.debug_enabled else null_logger

    @property
    def enabled(self) -> bool:
        """
        Returns True if the client is enabled
        """
        return self.settings.is_enabled

    @property
    def stats(self) -> Dict[str, int]:
        """
        Returns the client and transport counters
        """
        return {
            'submitted': self.submitted_events,
            'sampled': self.sampled_events,
            'dropped': self.dropped_events,
            **self.transport.stats,
        }

    def add_field(self, name: str, value: Any) -> 'HoneyClient':
        """
        Adds a field that is copied into every new event
        """
        self.fields[name] = value
        return self

    def add(self, data: Dict[str, Any]) -> 'HoneyClient':
        """
        Adds fields that are copied into every new event
        """
        self.fields.update(data)
        return self

    def add_dynamic_field(self, func: Callable[[], Any]) -> 'HoneyClient':
        """
        Adds a function that is called for every new event. The function
        name is used as the field name
        """
        if func not in self.dynamic_fields: self.dynamic_fields.append(func)
        return self

    def new_event(self, data: Optional[Dict[str, Any]] = None, **kwargs) -> Event:
        """
        Creates a new event populated with the global and dynamic fields

        - `data`: Fields to add to the event
        - `kwargs`: Overrides for the event attributes, e.g. `dataset`, `sample_rate`, `metadata`
        """
        fields = dict(self.fields)
        for func in self.dynamic_fields:
            fields[func.__name__] = func()
        if data: fields.update(data)
        event_kwargs = {
            'dataset': self.settings.dataset,
            'write_key': self.settings.write_key,
            'api_host': self.settings.api_host,
            'sample_rate': self.settings.sample_rate,
            **kwargs,
        }
        return Event(data = fields, **event_kwargs).bind(self)

    def resolve_event(self, event: Event) -> Event:
        """
        Fills in the destination of an event that was built without the client
        """
        if event.dataset is None: event.dataset = self.settings.dataset
        if event.write_key is None: event.write_key = self.settings.write_key
        if event.api_host is None: event.api_host = self.settings.api_host
        return event

    def validate_event(self, event: Event):
        """
        Checks that the event can be delivered
        """
        if not event.data: raise SendError('No fields added to the event. Refusing to send an empty event')
        if not event.write_key: raise SendError('No `write_key` specified. Set `HONEYCOMB_WRITE_KEY` or pass `write_key`')
        if not event.dataset: raise SendError('No `dataset` specified. Set `HONEYCOMB_DATASET` or pass `dataset`')
        if not event.api_host: raise SendError('No `api_host` specified')

    def should_drop(self, event: Event) -> bool:
        """
        Returns True if the event is sampled out
        """
        return event.sample_rate > 1 and random.randint(1, event.sample_rate) != 1

    def send(self, event: Event) -> bool:
        """
        Samples the event and hands it to the transport

        Returns True if the transport accepted the event
        """
        return self._send(event, presampled = False)

    def send_presampled(self, event: Event) -> bool:
        """
        Hands the event to the transport without sampling it

        Use this when the caller already made the sampling decision. The
        event's `sample_rate` is still reported to Honeycomb.
        """
        return self._send(event, presampled = True)

    def _send(self, event: Event, presampled: bool) -> bool:
        if not self.enabled:
            if not self._warned_disabled:
                logger.warning('Honeycomb is not enabled. Please set `HONEYCOMB_WRITE_KEY` to enable Honeycomb. Skipping Events', prefix = 'Honeycomb')
                self._warned_disabled = True
            return False
        self.resolve_event(event)
        self.validate_event(event)
        if not presampled and self.should_drop(event):
            self.sampled_events += 1
            return False
        self.submitted_events += 1
        accepted = self.transport.submit(event)
        if not accepted: self.dropped_events += 1
        return accepted

    def send_now(self, data: Dict[str, Any], **kwargs) -> bool:
        """
        Creates and sends an event in one call
        """
        return self.new_event(data, **kwargs).send()

    def get_responses(self, clear: Optional[bool] = True) -> List[SendResponse]:
        """
        Returns the delivery results recorded by the transport
        """
        return self.transport.get_responses(clear = clear)

    def flush(self) -> None:
        """
        Flushes the events
        """
        self.transport.flush()

    async def aflush(self) -> None:
        """
        Flushes the events
        """
        await self.transport.aflush()

    def close(self) -> None:
        """
        Flushes the events and closes the transport
        """
        self.transport.close()

    async def aclose(self) -> None:
        """
        Flushes the events and closes the transport
        """
        await self.transport.aclose()

    def __enter__(self):
        """
        Context Manager for the Honeycomb Client

        Events added within the context are flushed on exit
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.flush()

    async def __aenter__(self):
        """
        Async Context Manager for the Honeycomb Client

        Events added within the context are flushed on exit
        """
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

        The function receives a mutable `hc_ctx` dict of fields, and the event
        records `name`, `duration_ms` and, if the function raises, `error`.
        """
        return build_capture_decorator(lambda: self, name = name, data = data, **_kwargs)


def build_capture_decorator(
    get_client: Callable[[], Optional['HoneyClient']],
    name: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    **_kwargs: Any,
) -> Callable[[Callable[..., RT]], Callable[..., RT]]:
    """
    Builds the capture decorator. The client is resolved when the event is sent
    """
    def decorator(func: Callable[..., RT]) -> Callable[..., RT]:
        event_name = name or func.__name__

        def _send(hc_ctx: Dict[str, Any], start: float, error: Optional[BaseException]):
            client = get_client()
            if client is None or not client.enabled: return
            hc_ctx.setdefault('name', event_name)
            hc_ctx['duration_ms'] = (time.perf_counter() - start) * 1000
            if error is not None: hc_ctx['error'] = type(error).__name__
            try:
                client.new_event(hc_ctx, **_kwargs).send()
            except HoneyError as e:
                logger.warning(f'Error Capturing `{event_name}`: {type(e).__name__}: {e}', prefix = 'Honeycomb')

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def capture_decorator(*args, **kwargs):
                hc_ctx = dict(data or {})
                start = time.perf_counter()
                try:
                    result = await func(*args, hc_ctx = hc_ctx, **kwargs)
                except Exception as e:
                    _send(hc_ctx, start, e)
                    raise
                _send(hc_ctx, start, None)
                return result
        else:
            @functools.wraps(func)
            def capture_decorator(*args, **kwargs):
                hc_ctx = dict(data or {})
                start = time.perf_counter()
                try:
                    result = func(*args, hc_ctx = hc_ctx, **kwargs)
                except Exception as e:
                    _send(hc_ctx, start, e)
                    raise
                _send(hc_ctx, start, None)
                return result
        return capture_decorator

    return decorator
