"""
The Honeycomb Client

A Honeycomb event client that hands events to a batching Transport and
supports an optional event pre-processor that can observe, rewrite or drop
every event before it is sent.

- Batching: The HTTP transport queues events and sends them in batches once
  the batch size is reached or the batch interval has passed.
- Asynchronous Workers: When an event loop is running, background workers
  dispatch the batches. Without one, events are sent on `flush()` / `close()`.
- Pre-Processor: `Client.set_pre_processor()` installs a function that is
  called synchronously with each event before it is sampled and queued.


Usage:

from lazyhoney import Client, HoneySettings, TransportSettings, capture

client = Client(
    HoneySettings(write_key = 'xxx', dataset = 'my-service'),
    TransportSettings(batch_size = 100),
)

def add_region(event):
    event.add_field('region', 'us-east-1')
    return event

client.set_pre_processor(add_region)
client.send_now({'name': 'startup'})

@client.capture(name = 'load_user')
async def load_user(user_id: str, hc_ctx: dict):
    hc_ctx['user_id'] = user_id
    ...

await client.aclose()
"""

from .config import HoneySettings, TransportSettings
from .base import HoneyClient
from .client import Client
from .errors import HoneyError, ConfigurationError, SendError, PreProcessorError, TransportError
from .transport import Transport, HTTPTransport
from .types import Event, EventBatch, EventQueue, HoneyEndpoint, SendResponse, PreProcessorT
from .utils import get_honey_client, get_honey_settings, register_honey_client, capture
from .version import VERSION

__version__ = VERSION
