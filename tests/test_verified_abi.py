"""
Unit tests for verified ABI lookup and the Etherscan getabi envelope.

Covers:
- Cache hits answered without a network request
- Cache misses fetched, filtered to functions and stored
- Rejected, unparseable and incomplete ABI responses
"""

import json
from unittest.mock import patch

import pytest

from helpers import APPROVE_SELECTOR, CONTRACT, TOTAL_SUPPLY_SELECTOR, TRANSFER_ABI_ENTRY, TRANSFER_SELECTOR
from txdecode.errors import ABIParseError, ABIServiceRejected, CacheWriteError, FunctionNotFound
from txdecode.signatures import FunctionDescriptor
from txdecode.verified_abi import find_function, parse_abi_response


class TestParseABIResponse:
    def test_string_result_filtered_to_functions(self):
        payload = {
            "status": "1",
            "message": "OK",
            "result": json.dumps(
                [
                    {"type": "constructor", "inputs": []},
                    TRANSFER_ABI_ENTRY,
                    {"type": "event", "name": "Transfer", "inputs": []},
                    {"name": "owner", "inputs": [], "outputs": [{"type": "address"}]},
                ]
            ),
        }

        functions = parse_abi_response(payload, CONTRACT)

        assert [func.signature for func in functions] == ["transfer(address,uint256)", "owner()"]

    def test_list_result_accepted(self):
        functions = parse_abi_response({"status": "1", "result": [TRANSFER_ABI_ENTRY]}, CONTRACT)

        assert functions[0].name == "transfer"

    def test_non_success_status_is_rejected(self):
        payload = {"status": "0", "message": "NOTOK", "result": "Contract source code not verified"}

        with pytest.raises(ABIServiceRejected) as exc_info:
            parse_abi_response(payload, CONTRACT)

        assert "Contract source code not verified" in exc_info.value.message
        assert exc_info.value.details["address"] == CONTRACT
        assert exc_info.value.details["stage"] == "verified_abi"

    @pytest.mark.parametrize(
        "result",
        [
            "{not json",
            json.dumps({"name": "transfer"}),
            json.dumps(["transfer(address,uint256)"]),
            json.dumps([{"type": "function", "name": "f", "inputs": [{"type": "uint7"}]}]),
        ],
    )
    def test_unusable_abi_is_parse_error(self, result):
        with pytest.raises(ABIParseError):
            parse_abi_response({"status": "1", "result": result}, CONTRACT)

    def test_find_function(self):
        functions = [FunctionDescriptor.from_abi(TRANSFER_ABI_ENTRY)]

        assert find_function(functions, TRANSFER_SELECTOR).name == "transfer"
        assert find_function(functions, APPROVE_SELECTOR) is None


class TestVerifiedABIClient:
    def test_miss_fetches_and_caches(self, verified_abi, mock_etherscan, abi_cache):
        descriptor = verified_abi.fetch_function(CONTRACT, TRANSFER_SELECTOR, chain_id=1)

        assert descriptor.signature == "transfer(address,uint256)"
        mock_etherscan.get_abi.assert_called_once_with(CONTRACT, api_key=None, chain_id=1)
        assert [func.name for func in abi_cache.load(CONTRACT)] == ["transfer", "approve"]

    def test_cache_hit_makes_no_request(self, verified_abi, mock_etherscan, abi_cache):
        abi_cache.save(CONTRACT, [FunctionDescriptor.from_abi(TRANSFER_ABI_ENTRY)])

        descriptor = verified_abi.fetch_function(CONTRACT.upper().replace("0X", "0x"), TRANSFER_SELECTOR)

        assert descriptor.name == "transfer"
        mock_etherscan.get_abi.assert_not_called()

    def test_second_lookup_uses_cache(self, verified_abi, mock_etherscan):
        verified_abi.fetch_function(CONTRACT, TRANSFER_SELECTOR)
        descriptor = verified_abi.fetch_function(CONTRACT, APPROVE_SELECTOR)

        assert descriptor.name == "approve"
        assert mock_etherscan.get_abi.call_count == 1

    def test_cached_abi_without_selector_refetches(self, verified_abi, mock_etherscan, abi_cache):
        abi_cache.save(CONTRACT, [FunctionDescriptor.from_abi(TRANSFER_ABI_ENTRY)])

        descriptor = verified_abi.fetch_function(CONTRACT, APPROVE_SELECTOR)

        assert descriptor.name == "approve"
        mock_etherscan.get_abi.assert_called_once()

    def test_function_not_found(self, verified_abi):
        with pytest.raises(FunctionNotFound) as exc_info:
            verified_abi.fetch_function(CONTRACT, TOTAL_SUPPLY_SELECTOR)

        assert exc_info.value.details["selector"] == "0x18160ddd"
        assert exc_info.value.details["functions"] == 2

    def test_rejection_propagates(self, verified_abi, mock_etherscan):
        mock_etherscan.get_abi.return_value = {"status": "0", "message": "NOTOK", "result": "Invalid API Key"}

        with pytest.raises(ABIServiceRejected):
            verified_abi.fetch_function(CONTRACT, TRANSFER_SELECTOR)

    def test_cache_write_failure_is_not_fatal(self, verified_abi, abi_cache):
        with patch.object(abi_cache, "save", side_effect=CacheWriteError("read-only filesystem")):
            descriptor = verified_abi.fetch_function(CONTRACT, TRANSFER_SELECTOR)

        assert descriptor.name == "transfer"

    def test_has_credential(self, verified_abi, mock_etherscan):
        assert verified_abi.has_credential()
        mock_etherscan.api_key = None
        assert not verified_abi.has_credential()
        assert verified_abi.has_credential("per-call")
