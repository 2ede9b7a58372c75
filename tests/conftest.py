from __future__ import annotations

import os

import pytest

from lazyhoney import utils
from lazyhoney.logs import logger


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch):
    """Keep HONEYCOMB_* variables and the default client out of each test."""

    for key in list(os.environ):
        if key.startswith('HONEYCOMB_'):
            monkeypatch.delenv(key, raising=False)
    utils.reset_honey_client()
    yield
    utils.reset_honey_client()


@pytest.fixture
def log_messages():
    """Collect the messages the package logger emits at WARNING and above."""

    messages = []
    sink_id = logger.add(messages.append, level='WARNING', format='{message}')
    yield messages
    logger.remove(sink_id)
