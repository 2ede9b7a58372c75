from __future__ import annotations

from pydantic import Field, model_validator, PrivateAttr
from pydantic_settings import BaseSettings
from typing import Optional, Dict, Any


class HoneySettings(BaseSettings):
    """
    Honeycomb Client Settings
    """

    write_key: Optional[str] = None
    dataset: Optional[str] = None
    api_host: Optional[str] = 'https://api.honeycomb.io'
    sample_rate: Optional[int] = Field(1, ge = 1)

    global_fields: Optional[Dict[str, Any]] = Field(default_factory = dict)

    enabled: Optional[bool] = None
    debug_enabled: Optional[bool] = None

    # The internal enabled flag without affecting the user-provided value
    _enabled: Optional[bool] = PrivateAttr(None)

    class Config:
        env_prefix = 'HONEYCOMB_'
        case_sensitive = False
        extra = 'allow'
        validate_assignment = True

    @model_validator(mode = 'after')
    def validate_honey_config(self):
        """
        Validates the Honeycomb Configuration
        """
        self.update_enabled()
        return self

    def update_enabled(self):
        """
        Update the enabled status
        """
        if self.enabled is None: self._enabled = self.write_key is not None
        else: self._enabled = self.enabled

    @property
    def is_enabled(self) -> bool:
        """
        Returns True if the client should send events
        """
        return self._enabled


class TransportSettings(BaseSettings):
    """
    Transport Settings

    Controls batching, queueing and delivery of events
    """

    batch_size: Optional[int] = Field(50, ge = 1) # If the queued events reach this, the batch is dispatched
    batch_interval: Optional[float] = 0.1 # If the wait duration exceeds this, the batch is dispatched
    queue_capacity: Optional[int] = Field(10_000, ge = 1)
    client_timeout: Optional[float] = 10.0
    num_workers: Optional[int] = Field(1, ge = 1)
    default_retries: Optional[int] = 3
    upkeep_interval: Optional[float] = 0.05
    max_responses: Optional[int] = 1000
    dryrun: Optional[bool] = False
    user_agent_addition: Optional[str] = None

    class Config:
        env_prefix = 'HONEYCOMB_TRANSPORT_'
        case_sensitive = False
        extra = 'allow'
        validate_assignment = True
