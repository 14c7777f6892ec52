from typing import Any, Dict, Optional

import requests

from .config import DEFAULT_CHAIN_ID, DEFAULT_ETHERSCAN_URL
from .errors import ABIParseError, ABIServiceRejected, ABIServiceUnavailable

RATE_LIMIT_MARKERS = (
    "rate limit",
    "max calls per sec",
    "max calls per second",
    "too many requests",
)


class EtherscanClient:
    """Thin wrapper around the Etherscan v2 contract ABI endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_ETHERSCAN_URL,
        chain_id: int = DEFAULT_CHAIN_ID,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_abi(
        self, address: str, api_key: Optional[str] = None, chain_id: Optional[int] = None
    ) -> Dict[str, Any]:
        params = {
            "module": "contract",
            "action": "getabi",
            "address": address,
            "chainid": chain_id or self.chain_id,
        }
        return self._request(params, address, api_key or self.api_key)

    def is_rate_limit_payload(self, payload: Any) -> bool:
        if not isinstance(payload, dict):
            return False

        candidates: list[str] = []
        for key in ("message", "result"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                candidates.append(value)

        haystack = " ".join(candidates).lower()
        return any(marker in haystack for marker in RATE_LIMIT_MARKERS)

    def _request(self, params: Dict[str, Any], address: str, api_key: Optional[str]) -> Dict[str, Any]:
        if not api_key:
            raise ABIServiceRejected("An Etherscan API key is required.", address=address)
        merged = {**params, "apikey": api_key}
        try:
            response = self.session.get(self.base_url, params=merged, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ABIServiceUnavailable(f"Etherscan request failed: {exc}", address=address) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ABIParseError("Failed to parse response from Etherscan.", address=address) from exc

        if self.is_rate_limit_payload(payload):
            raise ABIServiceUnavailable(
                f"Etherscan rate limit reached: {payload.get('result') or payload.get('message')}",
                address=address,
            )
        return payload
