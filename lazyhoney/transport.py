from __future__ import annotations

"""
Transports

A transport receives events that are ready to go (already sampled and
pre-processed by the client) and is responsible for queueing, batching
and delivering them.
"""

import abc
import time
import asyncio
import threading
import collections
import niquests

from lazyhoney.logs import logger, null_logger, Logger
from typing import Optional, Dict, Any, List, Set, Deque

from .config import TransportSettings
from .errors import TransportError
from .types import Event, EventBatch, EventQueue, SendResponse
from .version import VERSION


class Transport(abc.ABC):
    """
    The base transport

    Subclasses implement `submit` and the flush methods. Delivery results
    are recorded with `record_response` and read back with `get_responses`.
    """

    name: Optional[str] = 'transport'
    debug_enabled: Optional[bool] = None

    def __init__(self, max_responses: Optional[int] = 1000, **kwargs):
        self._responses: Deque[SendResponse] = collections.deque(maxlen = max_responses)
        self._responses_lock = threading.Lock()
        self.successful_events: int = 0
        self.failed_events: int = 0

    @property
    def autologger(self) -> 'Logger':
        """
        Returns the autologger
        """
        return logger if self.debug_enabled else null_logger

    @abc.abstractmethod
    def submit(self, event: Event) -> bool:
        """
        Hands an event to the transport. Returns False if it was not accepted
        """
        ...

    @abc.abstractmethod
    def flush(self) -> None:
        """
        Delivers all pending events
        """
        ...

    @abc.abstractmethod
    async def aflush(self) -> None:
        """
        Delivers all pending events
        """
        ...

    def close(self) -> None:
        """
        Delivers all pending events and releases resources
        """
        self.flush()

    async def aclose(self) -> None:
        """
        Delivers all pending events and releases resources
        """
        await self.aflush()

    def record_response(self, response: SendResponse):
        """
        Records the delivery result of a single event
        """
        with self._responses_lock:
            self._responses.append(response)
        if response.is_success: self.successful_events += 1
        else: self.failed_events += 1

    def get_responses(self, clear: Optional[bool] = True) -> List[SendResponse]:
        """
        Returns the delivery results recorded so far
        """
        with self._responses_lock:
            responses = list(self._responses)
            if clear: self._responses.clear()
        return responses

    @property
    def stats(self) -> Dict[str, int]:
        """
        Returns the transport counters
        """
        return {
            'successful': self.successful_events,
            'failed': self.failed_events,
        }


class HTTPTransport(Transport):
    """
    Delivers events to the Honeycomb batch API

    - Events are buffered in an `EventQueue` up to `queue_capacity`.
    - When an event loop is running, background workers dispatch a batch once
      `batch_size` events are queued or `batch_interval` seconds have passed.
    - Without an event loop, events are delivered on `flush()` / `close()`.
    """

    name: Optional[str] = 'http'

    def __init__(
        self,
        settings: Optional[TransportSettings] = None,
        **kwargs
    ):
        """
        Initializes the HTTP Transport

        - `settings`: The transport settings. Defaults to `TransportSettings()`
        - `kwargs`: Overrides for individual settings, e.g. `batch_size = 10`
        """
        self.settings = settings if settings is not None else TransportSettings()
        self.configure(**kwargs)
        super().__init__(max_responses = self.settings.max_responses)

        self._session: Optional['niquests.Session'] = None
        self._asession: Optional['niquests.AsyncSession'] = None
        self._lock: Optional[asyncio.Lock] = None
        self._queue_lock = threading.Lock()

        self.event_queue = EventQueue()
        self.main_task: Optional[asyncio.Task] = None
        self.stop_event: Optional[asyncio.Event] = None
        self.tasks: Set[asyncio.Task] = set()
        self.started_time: Optional[float] = None

        self.events_sent: int = 0
        self.overflow_events: int = 0
        self.send_duration: float = 0.0

    def configure(self, **kwargs) -> 'HTTPTransport':
        """
        Updates the transport settings
        """
        for key, value in kwargs.items():
            if key not in TransportSettings.model_fields:
                logger.warning(f'Unknown transport option `{key}`. Ignoring', prefix = 'Honeycomb')
                continue
            if value is None: continue
            setattr(self.settings, key, value)
        return self

    @property
    def started(self) -> bool:
        """
        Returns True if the background workers are running
        """
        return self.main_task is not None

    @property
    def user_agent(self) -> str:
        """
        Returns the User-Agent header value
        """
        ua = f'lazyhoney/{VERSION}'
        if self.settings.user_agent_addition: ua += f' {self.settings.user_agent_addition}'
        return ua

    def get_session_kwargs(self, **kwargs) -> Dict[str, Any]:
        """
        Returns the session kwargs
        """
        return {
            'pool_connections': 10,
            'pool_maxsize': 10,
            'retries': self.settings.default_retries,
            **kwargs,
        }

    @property
    def session(self) -> 'niquests.Session':
        """
        Returns the Session
        """
        if self._session is None: self._session = niquests.Session(**self.get_session_kwargs())
        return self._session

    @property
    def asession(self) -> 'niquests.AsyncSession':
        """
        Returns the Async Session
        """
        if self._asession is None: self._asession = niquests.AsyncSession(**self.get_session_kwargs())
        return self._asession

    @property
    def lock(self) -> asyncio.Lock:
        """
        Returns the Lock
        """
        if self._lock is None: self._lock = asyncio.Lock()
        return self._lock

    def reset_session(self):
        """
        Resets the session
        """
        if self._session is not None: self._session.close()
        self._session = None

    async def areset_session(self):
        """
        Resets the async session
        """
        if self._asession is not None: await self._asession.close()
        self._asession = None
        self.reset_session()

    def submit(self, event: Event) -> bool:
        """
        Adds the event to the queue

        Returns False when the queue is full and the event was dropped
        """
        with self._queue_lock:
            if len(self.event_queue) >= self.settings.queue_capacity:
                self.overflow_events += 1
                overflow = True
            else:
                self.event_queue.add_event(event)
                overflow = False
        if overflow:
            logger.warning(f'Event Queue is full ({self.settings.queue_capacity}). Dropping Event', prefix = 'Honeycomb')
            self.record_response(SendResponse(metadata = event.metadata, error = 'queue overflow'))
            return False
        if not self.started: self.start_task_queue()
        return True

    def drain(self) -> List[EventBatch]:
        """
        Removes all queued events and returns them as batches
        """
        with self._queue_lock:
            return self.event_queue.prepare_batches(self.settings.batch_size, clear_after = True)

    def should_send_events(self, ts: Optional[float] = None, force: Optional[bool] = None) -> bool:
        """
        Checks if the events should be sent
        """
        if not self.event_queue: return False
        if force: return True
        if ts and (elapsed_s := (time.monotonic() - ts)) > self.settings.batch_interval:
            self.autologger.info(f'Sending Batch: {len(self.event_queue)} @ {elapsed_s:.2f}s', prefix = 'Max Interval')
            return True
        if len(self.event_queue) >= self.settings.batch_size:
            self.autologger.info(f'Sending Batch: {len(self.event_queue)}/{self.settings.batch_size}', prefix = 'Max Size')
            return True
        return False

    def handle_dryrun(self, batch: EventBatch):
        """
        Logs the batch instead of sending it
        """
        self.autologger.info(f'[DRYRUN] Batch of {len(batch)} Events: {batch.prepare_request()}', prefix = batch.url, colored = True)
        for event in batch.events:
            self.record_response(SendResponse(status_code = 202, metadata = event.metadata, body = 'dryrun'))

    def handle_error(self, batch: EventBatch, error: Exception, duration: float):
        """
        Records a failed request for every event in the batch
        """
        logger.warning(f'Error Sending Batch of {len(batch)} Events: |r|{type(error).__name__}: {error}|e|', prefix = batch.url, colored = True)
        for event in batch.events:
            self.record_response(SendResponse(duration = duration, metadata = event.metadata, error = f'{type(error).__name__}: {error}'))

    def handle_response(self, batch: EventBatch, response: 'niquests.Response', duration: float):
        """
        Records the per-event results of a batch request
        """
        self.send_duration += duration
        if response.status_code is None or not (200 <= response.status_code < 300):
            error = TransportError(response)
            logger.warning(f'[{response.status_code}] Error Sending Batch: |y|{error.payload}|e|', prefix = batch.url, colored = True)
            for event in batch.events:
                self.record_response(SendResponse(status_code = response.status_code, duration = duration, metadata = event.metadata, body = error.payload, error = str(error)))
            return

        try:
            results = response.json()
        except ValueError:
            results = None
        if not isinstance(results, list) or len(results) != len(batch):
            results = [{'status': response.status_code}] * len(batch)
        for event, result in zip(batch.events, results):
            if not isinstance(result, dict): result = {'status': response.status_code}
            self.record_response(SendResponse(
                status_code = result.get('status', response.status_code),
                duration = duration,
                metadata = event.metadata,
                body = result,
                error = result.get('error'),
            ))

    def send_batch(self, batch: EventBatch):
        """
        Sends a single batch with the sync session
        """
        if self.settings.dryrun: return self.handle_dryrun(batch)
        t = time.perf_counter()
        try:
            response = self.session.post(
                batch.url,
                json = batch.prepare_request(),
                headers = batch.get_headers(self.user_agent),
                timeout = self.settings.client_timeout,
            )
        except Exception as e:
            return self.handle_error(batch, e, time.perf_counter() - t)
        self.handle_response(batch, response, time.perf_counter() - t)

    async def asend_batch(self, batch: EventBatch):
        """
        Sends a single batch with the async session
        """
        if self.settings.dryrun: return self.handle_dryrun(batch)
        t = time.perf_counter()
        try:
            response = await self.asession.post(
                batch.url,
                json = batch.prepare_request(),
                headers = batch.get_headers(self.user_agent),
                timeout = self.settings.client_timeout,
            )
        except Exception as e:
            return self.handle_error(batch, e, time.perf_counter() - t)
        self.handle_response(batch, response, time.perf_counter() - t)

    def send_events(self) -> int:
        """
        Sends all queued events synchronously. Returns the number of events sent
        """
        sent = 0
        for batch in self.drain():
            self.send_batch(batch)
            sent += len(batch)
        self.events_sent += sent
        return sent

    async def asend_events(self) -> int:
        """
        Sends all queued events. Returns the number of events sent
        """
        sent = 0
        async with self.lock:
            for batch in self.drain():
                await self.asend_batch(batch)
                sent += len(batch)
        self.events_sent += sent
        return sent

    def flush(self) -> None:
        """
        Flushes the events
        """
        self.send_events()

    async def aflush(self) -> None:
        """
        Flushes the events
        """
        await self.asend_events()

    async def upkeep(self, worker_n: Optional[int] = None):
        """
        This is a background task to dispatch batches
        """
        self.autologger.info('Upkeep Started', prefix = f'Honeycomb Worker: {worker_n}', colored = True)
        ts = time.monotonic()
        while not self.stop_event.is_set():
            try:
                if self.should_send_events(ts):
                    await self.asend_events()
                    ts = time.monotonic()
            except Exception as e:
                logger.error(f'Error in Upkeep: |r|{e}|e|', prefix = f'Honeycomb Worker: {worker_n}', colored = True)
            await asyncio.sleep(self.settings.upkeep_interval)

    async def run_task_queue(self, num_workers: Optional[int] = None):
        """
        Runs the workers until `stop_event` is set
        """
        num_workers = num_workers or self.settings.num_workers
        try:
            for n in range(num_workers):
                self.tasks.add(asyncio.create_task(self.upkeep(n)))
            await self.stop_event.wait()
        finally:
            all_tasks = list(self.tasks)
            self.tasks.clear()
            for task in all_tasks:
                if not task.done(): task.cancel()
            await asyncio.gather(*all_tasks, return_exceptions = True)
            self.main_task = None

    def start_task_queue(self, num_workers: Optional[int] = None):
        """
        Starts the background workers if an event loop is running
        """
        if self.started: return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        num_workers = num_workers or self.settings.num_workers
        self.autologger.info(f'Starting Honeycomb Event Queue with |g|{num_workers}|e| Workers', colored = True)
        self.started_time = time.monotonic()
        self.stop_event = asyncio.Event()
        self.main_task = loop.create_task(self.run_task_queue(num_workers = num_workers))

    async def stop_task_queue(self):
        """
        Stops the background workers
        """
        if self.main_task is None: return
        self.autologger.info('Stopping Honeycomb Event Queue')
        main_task = self.main_task
        self.stop_event.set()
        await asyncio.gather(main_task, return_exceptions = True)

    def get_stat_message(self) -> str:
        """
        Returns the stat message
        """
        m = f'Events Sent: |g|{self.events_sent}|e|. Successful: |g|{self.successful_events}|e|. Failed: |r|{self.failed_events}|e|. Overflow: |y|{self.overflow_events}|e|.'
        if self.send_duration: m += f' Avg |g|{self.events_sent / self.send_duration:.2f} events/s|e|'
        return m

    def close(self) -> None:
        """
        Sends any remaining events and closes the session
        """
        if self.stop_event is not None: self.stop_event.set()
        self.send_events()
        self.reset_session()
        self.autologger.info(f'Transport Closed. {self.get_stat_message()}', prefix = 'Honeycomb', colored = True)

    async def aclose(self) -> None:
        """
        Stops the workers, sends any remaining events and closes the sessions
        """
        await self.stop_task_queue()
        await self.asend_events()
        await self.areset_session()
        self.autologger.info(f'Transport Closed. {self.get_stat_message()}', prefix = 'Honeycomb', colored = True)

    @property
    def stats(self) -> Dict[str, int]:
        """
        Returns the transport counters
        """
        return {
            **super().stats,
            'queued': len(self.event_queue),
            'sent': self.events_sent,
            'overflow': self.overflow_events,
        }
