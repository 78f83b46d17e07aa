"""Shared fixtures."""
from typing import List, Optional

import pytest

from refiner.services.oracle import OracleGateway
from tests.scripted import Scripted, ScriptedTransport, critique_json


@pytest.fixture
def scripted_gateway():
    """Factory: scripted_gateway(responses, default=None) -> (gateway, transport)."""

    def make(responses: Optional[List[Scripted]] = None, default: Optional[Scripted] = None):
        transport = ScriptedTransport(responses, default)
        return OracleGateway(transport=transport, timeout_seconds=5), transport

    return make


@pytest.fixture
def critique():
    return critique_json
