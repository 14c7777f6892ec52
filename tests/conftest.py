"""Shared fixtures for txdecode tests."""

import json
from unittest.mock import MagicMock

import pytest

from helpers import APPROVE_ABI_ENTRY, TRANSFER_ABI_ENTRY, TRANSFER_CALLDATA_HEX, TRANSFER_EVENT_ENTRY
from txdecode.cache import ABICache
from txdecode.verified_abi import VerifiedABIClient


@pytest.fixture
def transfer_calldata() -> bytes:
    """Calldata for transfer(0x0742...0beb, 1_000_000)."""
    return bytes.fromhex(TRANSFER_CALLDATA_HEX)


@pytest.fixture
def abi_cache(tmp_path) -> ABICache:
    return ABICache(tmp_path / "cache")


@pytest.fixture
def mock_etherscan():
    """Mock EtherscanClient serving a verified ABI with transfer, approve and one event."""
    client = MagicMock()
    client.api_key = "test-key"
    client.get_abi.return_value = {
        "status": "1",
        "message": "OK",
        "result": json.dumps([TRANSFER_ABI_ENTRY, APPROVE_ABI_ENTRY, TRANSFER_EVENT_ENTRY]),
    }
    return client


@pytest.fixture
def verified_abi(mock_etherscan, abi_cache) -> VerifiedABIClient:
    return VerifiedABIClient(mock_etherscan, abi_cache)
