"""
Verified contract ABI lookup with on-disk caching.

The first lookup for a contract fetches its whole verified ABI from Etherscan
and caches every function, so later lookups for any function on the same
contract are answered from disk.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from .cache import ABICache
from .errors import ABIParseError, ABIServiceRejected, CacheWriteError, FunctionNotFound
from .etherscan_client import EtherscanClient
from .selector import selector_hex
from .signatures import FunctionDescriptor

logger = logging.getLogger(__name__)


class VerifiedABIClient:
    def __init__(self, client: EtherscanClient, cache: ABICache) -> None:
        self.client = client
        self.cache = cache

    def has_credential(self, api_key: Optional[str] = None) -> bool:
        return bool(api_key or self.client.api_key)

    def fetch_function(
        self,
        address: str,
        selector: bytes,
        api_key: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> FunctionDescriptor:
        """
        Return the verified function matching ``selector`` on ``address``.

        Raises:
            ABIServiceUnavailable: On transport, timeout or rate-limit failures.
            ABIServiceRejected: If Etherscan reports a non-success status.
            ABIParseError: If the returned ABI is not a JSON ABI array.
            FunctionNotFound: If no function in the ABI has ``selector``.
        """
        cached = self.cache.load(address)
        if cached:
            match = find_function(cached, selector)
            if match is not None:
                logger.debug(f"ABI cache hit for {address} {selector_hex(selector)}")
                return match

        functions = self.fetch_functions(address, api_key=api_key, chain_id=chain_id)
        match = find_function(functions, selector)
        if match is None:
            raise FunctionNotFound(
                f"Function with selector {selector_hex(selector)} not found in ABI.",
                address=address,
                selector=selector_hex(selector),
                functions=len(functions),
            )
        return match

    def fetch_functions(
        self,
        address: str,
        api_key: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> List[FunctionDescriptor]:
        logger.info(f"Fetching verified ABI for {address} from Etherscan")
        payload = self.client.get_abi(address, api_key=api_key, chain_id=chain_id)
        functions = parse_abi_response(payload, address)

        try:
            self.cache.save(address, functions)
        except CacheWriteError as exc:
            logger.warning(f"Could not cache ABI for {address}: {exc.message}")
        return functions


def find_function(functions: Sequence[FunctionDescriptor], selector: bytes) -> Optional[FunctionDescriptor]:
    for func in functions:
        if func.selector == selector:
            return func
    return None


def parse_abi_response(payload: Dict[str, Any], address: str) -> List[FunctionDescriptor]:
    """Turn an Etherscan ``getabi`` envelope into function descriptors."""
    if not isinstance(payload, dict):
        raise ABIParseError("Unexpected response from Etherscan.", address=address)

    status = str(payload.get("status", "")).strip()
    message = payload.get("message", "")
    result = payload.get("result")

    if status != "1":
        detail = result if isinstance(result, str) else ""
        raise ABIServiceRejected(
            f"Etherscan error: {detail or message or 'unknown error'}.",
            address=address,
            status=status or None,
        )

    if isinstance(result, str):
        try:
            abi = json.loads(result)
        except json.JSONDecodeError as exc:
            raise ABIParseError("Invalid ABI returned from Etherscan.", address=address) from exc
    else:
        abi = result

    if not isinstance(abi, list):
        raise ABIParseError("ABI returned from Etherscan is not a list.", address=address)

    functions: List[FunctionDescriptor] = []
    for entry in abi:
        if not isinstance(entry, dict):
            raise ABIParseError("ABI entries must be objects.", address=address)
        if entry.get("type", "function") != "function":
            continue
        try:
            functions.append(FunctionDescriptor.from_abi(entry))
        except ValueError as exc:
            raise ABIParseError(f"Invalid ABI function entry: {exc}", address=address) from exc
    return functions
