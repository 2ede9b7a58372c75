from __future__ import annotations

"""
Utilities
"""
from lazyhoney.logs import logger
from typing import Any, Dict, Optional, TypeVar, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from .base import HoneyClient
    from .config import HoneySettings


_hc_settings: Optional['HoneySettings'] = None
_hc_client: Optional['HoneyClient'] = None

RT = TypeVar('RT')

def get_honey_settings() -> 'HoneySettings':
    """
    Returns the Honeycomb Settings
    """
    global _hc_settings
    if _hc_settings is None:
        from .config import HoneySettings
        _hc_settings = HoneySettings()
    return _hc_settings


def get_honey_client(**kwargs) -> 'HoneyClient':
    """
    Returns the default Honeycomb Client, creating an extended `Client` if none exists
    """
    global _hc_client
    if _hc_client is None:
        from .client import Client
        _hc_client = Client(**kwargs)
    elif kwargs: _hc_client.configure(**kwargs)
    return _hc_client


def register_honey_client(client: 'HoneyClient', replaces: Optional['HoneyClient'] = None, **kwargs):
    """
    Registers the Honeycomb Client as the default if there is none

    - `replaces`: a client that may be swapped out, used when a wrapping client registers over the client it wraps
    """
    global _hc_client
    if _hc_client is None or (replaces is not None and _hc_client is replaces): _hc_client = client


def has_existing_honey_client() -> bool:
    """
    Checks if there is an existing Honeycomb Client
    """
    return _hc_client is not None


def reset_honey_client():
    """
    Forgets the default Honeycomb Client and Settings
    """
    global _hc_client, _hc_settings
    _hc_client = None
    _hc_settings = None


"""
Basic Idea

@capture(name = 'load_user')
async def load_user(user_id: str, hc_ctx: Dict[str, Any]):

    # hc_ctx is a dict of fields that will be sent with the event
    # after the function is called, along with `name` and `duration_ms`

    hc_ctx['user_id'] = user_id
    ...
"""


def capture(
    name: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    **_kwargs: Any,
) -> Callable[[Callable[..., RT]], Callable[..., RT]]:
    """
    Creates a decorator that sends an event for each call of the function
    through the default client

    If no client exists when the function is decorated, the lookup is
    deferred until the function is called. Calls made while no enabled
    client exists are not captured.
    """
    from .base import build_capture_decorator

    def _get_client() -> Optional['HoneyClient']:
        if _hc_client is not None: return _hc_client
        if get_honey_settings().is_enabled: return get_honey_client()
        return None

    if _hc_client is None: logger.debug('Using Deferred Capture', prefix = 'Honeycomb')
    return build_capture_decorator(_get_client, name = name, data = data, **_kwargs)
