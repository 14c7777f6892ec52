"""
Unit tests for the HTTP clients (signature directory, Etherscan, JSON-RPC).

All network access goes through a mocked ``requests.Session``.
Covers:
- Request shape (URL, query parameters, timeouts)
- Response shape validation and error classification
- Pagination of directory results
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from helpers import CONTRACT, TRANSFER_CALLDATA_HEX, TRANSFER_SELECTOR
from txdecode.directory_client import SignatureDirectoryClient
from txdecode.errors import (
    ABIParseError,
    ABIServiceRejected,
    ABIServiceUnavailable,
    LookupMalformed,
    LookupUnavailable,
    TransactionSourceError,
)
from txdecode.etherscan_client import EtherscanClient
from txdecode.rpc_client import RpcClient

DIRECTORY_URL = "https://sigs.example/api/v1/signatures/"
TX_HASH = "0x" + "ab" * 32


def make_response(payload=None, json_error=None, http_error=None):
    response = MagicMock()
    if http_error is not None:
        response.raise_for_status.side_effect = http_error
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return MagicMock()


class TestSignatureDirectoryClient:
    def test_lookup_returns_signatures_in_service_order(self, session):
        session.get.return_value = make_response(
            {
                "next": None,
                "results": [
                    {"id": 2, "text_signature": "many_msg_babbage(bytes1)"},
                    {"id": 1, "text_signature": "transfer(address,uint256)"},
                ],
            }
        )
        client = SignatureDirectoryClient(DIRECTORY_URL, timeout=5.0, session=session)

        signatures = client.lookup(TRANSFER_SELECTOR)

        assert signatures == ["many_msg_babbage(bytes1)", "transfer(address,uint256)"]
        session.get.assert_called_once_with(DIRECTORY_URL, params={"hex_signature": "0xa9059cbb"}, timeout=5.0)

    def test_empty_results_are_not_an_error(self, session):
        session.get.return_value = make_response({"count": 0, "results": []})
        client = SignatureDirectoryClient(DIRECTORY_URL, session=session)

        assert client.lookup(TRANSFER_SELECTOR) == []

    def test_follows_next_page_up_to_limit(self, session):
        page_two = DIRECTORY_URL + "?hex_signature=0xa9059cbb&page=2"
        session.get.side_effect = [
            make_response({"next": page_two, "results": [{"text_signature": "a()"}]}),
            make_response({"next": page_two + "x", "results": [{"text_signature": "b()"}]}),
        ]
        client = SignatureDirectoryClient(DIRECTORY_URL, max_pages=2, session=session)

        assert client.lookup(TRANSFER_SELECTOR) == ["a()", "b()"]
        assert session.get.call_count == 2
        assert session.get.call_args_list[1].args == (page_two,)
        assert session.get.call_args_list[1].kwargs["params"] is None

    def test_pages_share_one_timeout(self, session):
        session.get.side_effect = [
            make_response({"next": DIRECTORY_URL + "?page=2", "results": [{"text_signature": "a()"}]}),
            make_response({"next": None, "results": [{"text_signature": "b()"}]}),
        ]
        client = SignatureDirectoryClient(DIRECTORY_URL, timeout=5.0, max_pages=2, session=session)

        with patch("txdecode.directory_client.time") as mock_time:
            mock_time.monotonic.side_effect = [100.0, 104.0]
            assert client.lookup(TRANSFER_SELECTOR) == ["a()", "b()"]

        assert session.get.call_args_list[0].kwargs["timeout"] == 5.0
        assert session.get.call_args_list[1].kwargs["timeout"] == pytest.approx(1.0)

    def test_exhausted_timeout_stops_paging(self, session):
        session.get.return_value = make_response({"next": DIRECTORY_URL + "?page=2", "results": []})
        client = SignatureDirectoryClient(DIRECTORY_URL, timeout=5.0, max_pages=3, session=session)

        with patch("txdecode.directory_client.time") as mock_time:
            mock_time.monotonic.side_effect = [100.0, 106.0]
            with pytest.raises(LookupUnavailable) as exc_info:
                client.lookup(TRANSFER_SELECTOR)

        assert "timed out" in exc_info.value.message
        assert session.get.call_count == 1

    def test_single_page_by_default(self, session):
        session.get.return_value = make_response({"next": DIRECTORY_URL + "?page=2", "results": []})
        client = SignatureDirectoryClient(DIRECTORY_URL, session=session)

        client.lookup(TRANSFER_SELECTOR)

        assert session.get.call_count == 1

    @pytest.mark.parametrize(
        "error",
        [requests.ConnectionError("refused"), requests.Timeout("slow")],
    )
    def test_transport_errors_are_unavailable(self, session, error):
        session.get.side_effect = error
        client = SignatureDirectoryClient(DIRECTORY_URL, session=session)

        with pytest.raises(LookupUnavailable) as exc_info:
            client.lookup(TRANSFER_SELECTOR)

        assert exc_info.value.details["selector"] == "0xa9059cbb"

    def test_http_error_is_unavailable(self, session):
        session.get.return_value = make_response(http_error=requests.HTTPError("502 Bad Gateway"))
        client = SignatureDirectoryClient(DIRECTORY_URL, session=session)

        with pytest.raises(LookupUnavailable):
            client.lookup(TRANSFER_SELECTOR)

    @pytest.mark.parametrize(
        "response",
        [
            make_response(json_error=ValueError("no json")),
            make_response(["transfer(address,uint256)"]),
            make_response({"detail": "not found"}),
            make_response({"results": [{"hex_signature": "0xa9059cbb"}]}),
            make_response({"results": ["transfer(address,uint256)"]}),
        ],
    )
    def test_unexpected_shapes_are_malformed(self, session, response):
        session.get.return_value = response
        client = SignatureDirectoryClient(DIRECTORY_URL, session=session)

        with pytest.raises(LookupMalformed):
            client.lookup(TRANSFER_SELECTOR)


class TestEtherscanClient:
    def test_get_abi_request_params(self, session):
        session.get.return_value = make_response({"status": "1", "message": "OK", "result": "[]"})
        client = EtherscanClient(api_key="key", base_url="https://scan.example/v2/api/", session=session)

        payload = client.get_abi(CONTRACT, chain_id=8453)

        assert payload["status"] == "1"
        session.get.assert_called_once_with(
            "https://scan.example/v2/api",
            params={
                "module": "contract",
                "action": "getabi",
                "address": CONTRACT,
                "chainid": 8453,
                "apikey": "key",
            },
            timeout=10.0,
        )

    def test_per_call_key_overrides_default(self, session):
        session.get.return_value = make_response({"status": "1", "result": "[]"})
        client = EtherscanClient(api_key="default", session=session)

        client.get_abi(CONTRACT, api_key="override")

        assert session.get.call_args.kwargs["params"]["apikey"] == "override"
        assert session.get.call_args.kwargs["params"]["chainid"] == 1

    def test_missing_key_is_rejected_without_request(self, session):
        client = EtherscanClient(session=session)

        with pytest.raises(ABIServiceRejected):
            client.get_abi(CONTRACT)

        session.get.assert_not_called()

    def test_transport_error_is_unavailable(self, session):
        session.get.side_effect = requests.Timeout("slow")
        client = EtherscanClient(api_key="key", session=session)

        with pytest.raises(ABIServiceUnavailable) as exc_info:
            client.get_abi(CONTRACT)

        assert exc_info.value.details["address"] == CONTRACT

    def test_rate_limit_payload_is_unavailable(self, session):
        session.get.return_value = make_response(
            {"status": "0", "message": "NOTOK", "result": "Max calls per sec rate limit reached (5/sec)"}
        )
        client = EtherscanClient(api_key="key", session=session)

        with pytest.raises(ABIServiceUnavailable):
            client.get_abi(CONTRACT)

    def test_non_json_body_is_parse_error(self, session):
        session.get.return_value = make_response(json_error=ValueError("html"))
        client = EtherscanClient(api_key="key", session=session)

        with pytest.raises(ABIParseError):
            client.get_abi(CONTRACT)

    def test_is_rate_limit_payload(self):
        client = EtherscanClient(api_key="key", session=MagicMock())

        assert client.is_rate_limit_payload({"message": "Too Many Requests"})
        assert not client.is_rate_limit_payload({"status": "0", "result": "Contract source code not verified"})
        assert not client.is_rate_limit_payload("rate limit")


class TestRpcClient:
    def test_get_transaction(self, session):
        session.post.return_value = make_response(
            {"jsonrpc": "2.0", "id": 1, "result": {"hash": TX_HASH, "to": CONTRACT, "input": "0x" + TRANSFER_CALLDATA_HEX}}
        )
        client = RpcClient("https://rpc.example", session=session)

        tx = client.get_transaction(TX_HASH)

        assert tx.to == CONTRACT
        assert tx.data == bytes.fromhex(TRANSFER_CALLDATA_HEX)
        body = session.post.call_args.kwargs["json"]
        assert body["method"] == "eth_getTransactionByHash"
        assert body["params"] == [TX_HASH]

    def test_unknown_transaction(self, session):
        session.post.return_value = make_response({"jsonrpc": "2.0", "id": 1, "result": None})
        client = RpcClient("https://rpc.example", session=session)

        with pytest.raises(TransactionSourceError) as exc_info:
            client.get_transaction(TX_HASH)

        assert exc_info.value.details["tx_hash"] == TX_HASH

    def test_rpc_error_object(self, session):
        session.post.return_value = make_response(
            {"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "invalid argument"}}
        )
        client = RpcClient("https://rpc.example", session=session)

        with pytest.raises(TransactionSourceError, match="invalid argument"):
            client.get_transaction(TX_HASH)

    def test_invalid_hash_rejected_without_request(self, session):
        client = RpcClient("https://rpc.example", session=session)

        with pytest.raises(TransactionSourceError):
            client.get_transaction("0x1234")

        session.post.assert_not_called()

    def test_empty_rpc_url_rejected(self):
        with pytest.raises(ValueError):
            RpcClient("  ")
