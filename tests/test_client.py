from __future__ import annotations

import typing as t

import pytest
from pydantic import ValidationError

from lazyhoney import (
    Client,
    ConfigurationError,
    Event,
    HoneyClient,
    HTTPTransport,
    PreProcessorError,
    TransportSettings,
    get_honey_client,
)

from lazyhoney.logs import logger

from .fixtures import RecordingTransport, make_settings


def make_client(**kwargs: t.Any) -> t.Tuple[Client, RecordingTransport]:
    transport = RecordingTransport()
    return Client(make_settings(**kwargs), transport), transport


def add_tag(event: Event) -> Event:
    return event.add_field('tag', 'pre-processed')


# Construction


def test_options_only_builds_default_http_transport() -> None:
    client = Client(make_settings())
    base = HoneyClient(make_settings())

    assert isinstance(client.transport, HTTPTransport)
    assert type(client.transport) is type(base.transport)
    assert client.settings.dataset == base.settings.dataset == 'test-dataset'
    assert client.get_pre_processor() is None


def test_transport_settings_are_forwarded() -> None:
    client = Client(make_settings(), TransportSettings(batch_size = 7, dryrun = True))

    assert isinstance(client.transport, HTTPTransport)
    assert client.transport.settings.batch_size == 7
    assert client.transport.settings.dryrun is True


def test_transport_instance_is_used_as_is() -> None:
    transport = RecordingTransport()
    client = Client(make_settings(), transport)

    assert client.transport is transport


def test_keyword_overrides_are_forwarded() -> None:
    client = Client(make_settings(), RecordingTransport(), dataset = 'other', global_fields = {'service': 'api'})

    assert client.settings.dataset == 'other'
    assert client.new_event().data == {'service': 'api'}


@pytest.mark.parametrize('options, transport', [
    ({'write_key': 'x'}, None),
    (make_settings(), 'not-a-transport'),
])
def test_construction_errors_propagate_unchanged(options: t.Any, transport: t.Any) -> None:
    with pytest.raises(ConfigurationError) as base_exc:
        HoneyClient(options, transport)
    with pytest.raises(ConfigurationError) as exc:
        Client(options, transport)

    assert str(exc.value) == str(base_exc.value)


def test_invalid_override_raises_validation_error() -> None:
    with pytest.raises(ValidationError):
        Client(make_settings(), RecordingTransport(), sample_rate = 0)


def test_from_client_wraps_and_registers_over_base() -> None:
    base = HoneyClient(make_settings(), RecordingTransport())
    assert get_honey_client() is base

    client = Client.from_client(base, pre_processor = add_tag)

    assert client.client is base
    assert client.get_pre_processor() is add_tag
    assert get_honey_client() is client


# Accessors


def test_get_returns_what_was_set() -> None:
    client, _ = make_client()

    client.set_pre_processor(add_tag)
    assert client.get_pre_processor() is add_tag

    client.set_pre_processor(None)
    assert client.get_pre_processor() is None


def test_last_write_wins() -> None:
    client, transport = make_client()

    def first(event: Event) -> Event:
        return event.add_field('first', True)

    def second(event: Event) -> Event:
        return event.add_field('second', True)

    client.set_pre_processor(first)
    client.set_pre_processor(second)
    client.send_now({'name': 'evt'})

    assert client.get_pre_processor() is second
    assert transport.events[0].data == {'name': 'evt', 'second': True}


def test_pre_processor_property_and_constructor_argument() -> None:
    client = Client(make_settings(), RecordingTransport(), pre_processor = add_tag)
    assert client.pre_processor is add_tag

    client.pre_processor = None
    assert client.get_pre_processor() is None


# Invocation


def test_transport_receives_transformed_event() -> None:
    client, transport = make_client()
    client.set_pre_processor(add_tag)

    assert client.send_now({'name': 'evt'}) is True
    assert len(transport.events) == 1
    assert transport.events[0].data == {'name': 'evt', 'tag': 'pre-processed'}


def test_replacement_event_is_sent_instead_of_original() -> None:
    client, transport = make_client()
    replacement = Event(data = {'name': 'replacement'})
    client.set_pre_processor(lambda event: replacement)

    client.send_now({'name': 'original'})

    assert transport.events == [replacement]
    assert replacement.dataset == 'test-dataset'


def test_dropped_events_never_reach_transport() -> None:
    client, transport = make_client()

    def drop_healthz(event: Event) -> t.Optional[Event]:
        return None if event.data.get('path') == '/healthz' else event

    client.set_pre_processor(drop_healthz)

    assert client.send_now({'path': '/healthz'}) is False
    assert client.send_now({'path': '/login'}) is True
    assert client.send_now({'path': '/healthz'}) is False

    assert [e.data for e in transport.events] == [{'path': '/login'}]
    assert client.stats['pre_processor_dropped'] == 2
    assert client.stats['submitted'] == 1


def test_raising_hook_fails_only_that_event() -> None:
    client, transport = make_client()

    def reject_bad(event: Event) -> Event:
        if event.data.get('bad'):
            raise ValueError('bad event')
        return event

    client.set_pre_processor(reject_bad)
    client.send_now({'name': 'before'})

    with pytest.raises(PreProcessorError) as exc:
        client.send_now({'name': 'broken', 'bad': True})

    assert isinstance(exc.value.error, ValueError)
    assert exc.value.__cause__ is exc.value.error
    assert exc.value.event.data['name'] == 'broken'

    assert client.send_now({'name': 'after'}) is True
    assert [e.data['name'] for e in transport.events] == ['before', 'after']


def test_hook_returning_wrong_type_is_an_error() -> None:
    client, transport = make_client()
    client.set_pre_processor(lambda event: {'name': 'not-an-event'})

    with pytest.raises(PreProcessorError) as exc:
        client.send_now({'name': 'evt'})

    assert isinstance(exc.value.error, TypeError)
    assert transport.events == []


def test_event_send_goes_through_hook() -> None:
    client, transport = make_client()
    client.set_pre_processor(add_tag)

    event = client.new_event({'name': 'bound'})
    assert event.client is client
    event.send()

    assert transport.events[0].data['tag'] == 'pre-processed'


def test_hook_sees_resolved_destination_for_bare_events() -> None:
    client, transport = make_client()
    seen: t.List[t.Optional[str]] = []

    def record(event: Event) -> Event:
        seen.append(event.dataset)
        return event

    client.set_pre_processor(record)
    client.send(Event(data = {'name': 'bare'}))

    assert seen == ['test-dataset']
    assert len(transport.events) == 1


def test_hook_runs_before_sampling(monkeypatch: pytest.MonkeyPatch) -> None:
    client, transport = make_client(sample_rate = 100)
    monkeypatch.setattr('lazyhoney.base.random.randint', lambda a, b: 2)

    def keep_errors(event: Event) -> Event:
        if event.data.get('error'):
            event.sample_rate = 1
        return event

    client.set_pre_processor(keep_errors)
    client.send_now({'name': 'ok'})
    client.send_now({'name': 'failed', 'error': 'boom'})

    assert [e.data['name'] for e in transport.events] == ['failed']
    assert client.stats['sampled'] == 1


def test_presampled_send_runs_hook_but_skips_sampling(monkeypatch: pytest.MonkeyPatch) -> None:
    client, transport = make_client(sample_rate = 100)
    monkeypatch.setattr('lazyhoney.base.random.randint', lambda a, b: 2)
    client.set_pre_processor(add_tag)

    assert client.new_event({'name': 'evt'}).send_presampled() is True
    assert transport.events[0].data['tag'] == 'pre-processed'
    assert transport.events[0].sample_rate == 100


def test_disabled_client_does_not_call_hook() -> None:
    client, transport = make_client(enabled = False)
    calls: t.List[Event] = []
    client.set_pre_processor(lambda event: calls.append(event) or event)

    assert client.send_now({'name': 'evt'}) is False
    assert calls == []
    assert transport.events == []


def test_capture_sends_through_hook() -> None:
    client, transport = make_client()
    client.set_pre_processor(add_tag)

    @client.capture(name = 'load_user')
    def load_user(user_id: str, hc_ctx: t.Dict[str, t.Any]) -> str:
        hc_ctx['user_id'] = user_id
        return user_id

    assert load_user('u-1') == 'u-1'

    data = transport.events[0].data
    assert data['name'] == 'load_user'
    assert data['user_id'] == 'u-1'
    assert data['tag'] == 'pre-processed'
    assert data['duration_ms'] >= 0


@pytest.mark.asyncio
async def test_capture_async_records_errors_and_reraises() -> None:
    client, transport = make_client()

    @client.capture()
    async def explode(hc_ctx: t.Dict[str, t.Any]) -> None:
        raise KeyError('missing')

    with pytest.raises(KeyError):
        await explode()

    data = transport.events[0].data
    assert data['name'] == 'explode'
    assert data['error'] == 'KeyError'


def test_lifecycle_is_forwarded() -> None:
    client, transport = make_client()

    with client as c:
        assert c is client
        c.send_now({'name': 'evt'})
    assert transport.flushed == 1

    client.close()
    assert transport.closed is True


def test_capture_keeps_function_error_when_hook_fails(log_messages: t.List[str]) -> None:
    client, transport = make_client()

    def broken(event: Event) -> Event:
        raise RuntimeError('hook')

    client.set_pre_processor(broken)

    @client.capture()
    def explode(hc_ctx: t.Dict[str, t.Any]) -> None:
        raise KeyError('missing')

    with pytest.raises(KeyError):
        explode()

    assert transport.events == []
    assert any('PreProcessorError' in m for m in log_messages)


def test_capture_returns_value_when_hook_fails() -> None:
    client, transport = make_client()
    client.set_pre_processor(lambda event: {'not': 'an event'})

    @client.capture()
    def answer(hc_ctx: t.Dict[str, t.Any]) -> int:
        return 42

    assert answer() == 42
    assert transport.events == []


def test_drops_are_logged_at_debug_level() -> None:
    client, _ = make_client(debug_enabled = True)
    client.set_pre_processor(lambda event: None)
    levels: t.List[str] = []
    sink_id = logger.add(lambda message: levels.append(message.record['level'].name), level = 'DEBUG')
    try:
        client.send_now({'name': 'evt'})
    finally:
        logger.remove(sink_id)

    assert levels == ['DEBUG']
