"""pytest configuration for the arp-skeleton plugin test suite.

Automatically suppresses ``asyncio.sleep`` delays inside ``@with_retry``
decorated functions so retry tests run instantly without any manual patching.
"""

from __future__ import annotations

import pytest

from arp_plugin_sdk.core.config import reset_settings_instance
from arp_plugin_sdk.testing import patch_retry_sleep


@pytest.fixture(autouse=True)
def _no_retry_sleep():
    with patch_retry_sleep() as mock_sleep:
        yield mock_sleep


@pytest.fixture(autouse=True)
def _fresh_settings_instance():
    reset_settings_instance()
    yield
    reset_settings_instance()
