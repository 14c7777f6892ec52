import re
from typing import Any, Dict, List, Optional

from .cache import ABICache
from .config import Config
from .decoder import CalldataDecoder, DecodeRequest, DecodeResult, rank_candidates
from .directory_client import SignatureDirectoryClient
from .errors import SignatureSyntaxError, TxDecodeError
from .etherscan_client import EtherscanClient
from .presenter import result_to_dict
from .rpc_client import RpcClient
from .selector import parse_hex_data, parse_selector, selector_hex
from .signatures import parse_signature
from .verified_abi import VerifiedABIClient

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class DecodeService:
    """Combine configuration, cache, and clients to serve calldata decoding."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.cache = ABICache(config.cache_dir)
        self.directory = SignatureDirectoryClient(
            base_url=config.directory_url,
            timeout=config.directory_timeout,
            max_pages=config.directory_max_pages,
        )
        self.etherscan = EtherscanClient(
            api_key=config.api_key,
            base_url=config.etherscan_url,
            chain_id=config.chain_id,
            timeout=config.request_timeout,
        )
        self.verified_abi = VerifiedABIClient(self.etherscan, self.cache)
        self.decoder = CalldataDecoder(
            self.directory,
            self.verified_abi,
            api_key=config.api_key,
            chain_id=config.chain_id,
        )

    def decode_hex(
        self,
        data: str,
        address: Optional[str] = None,
        api_key: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        calldata = parse_hex_data(data)
        normalized_address = self._normalize_address_optional(address)
        result = self.decoder.decode(
            calldata, contract_address=normalized_address, api_key=api_key, chain_id=chain_id
        )
        return self._result_payload(result, normalized_address)

    def decode_transaction(
        self,
        tx_hash: str,
        rpc_url: Optional[str] = None,
        api_key: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        rpc = RpcClient(rpc_url or self.config.rpc_url, timeout=self.config.request_timeout)
        tx = rpc.get_transaction(tx_hash)
        address = self._normalize_address_optional(tx.to)
        result = self.decoder.decode(tx.data, contract_address=address, api_key=api_key, chain_id=chain_id)
        payload = self._result_payload(result, address)
        payload["tx_hash"] = tx.tx_hash
        return payload

    def decode_many(self, items: List[Dict[str, Any]], api_key: Optional[str] = None) -> List[Dict[str, Any]]:
        batch: List[DecodeRequest] = []
        for idx, item in enumerate(items):
            if not isinstance(item, dict) or not isinstance(item.get("data"), str):
                raise ValueError(f"items[{idx}] must be an object with a 'data' hex string.")
            batch.append(
                DecodeRequest(parse_hex_data(item["data"]), self._normalize_address_optional(item.get("address")))
            )
        results = self.decoder.decode_batch(batch, max_workers=self.config.batch_workers, api_key=api_key)
        return [
            result.to_dict() if isinstance(result, TxDecodeError) else self._result_payload(result, req.contract_address)
            for req, result in zip(batch, results)
        ]

    def lookup_selector(self, selector: str) -> Dict[str, Any]:
        raw = parse_selector(selector)
        candidates = self.directory.lookup(raw)
        ranked: List[Dict[str, Any]] = []
        for text in rank_candidates(candidates):
            entry: Dict[str, Any] = {"text": text, "valid": False, "selector_match": False}
            try:
                descriptor = parse_signature(text)
            except SignatureSyntaxError as exc:
                entry["error"] = exc.message
            else:
                entry["valid"] = True
                entry["signature"] = descriptor.signature
                entry["selector_match"] = descriptor.selector == raw
            ranked.append(entry)
        return {"selector": selector_hex(raw), "candidates": ranked}

    def get_function_abi(
        self,
        address: str,
        selector: str,
        api_key: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        normalized_address = self._normalize_address(address)
        raw = parse_selector(selector)
        descriptor = self.verified_abi.fetch_function(
            normalized_address, raw, api_key=api_key, chain_id=chain_id
        )
        return {
            "address": normalized_address,
            "selector": selector_hex(raw),
            "signature": descriptor.signature,
            "abi": descriptor.to_abi(),
        }

    def _result_payload(self, result: DecodeResult, address: Optional[str]) -> Dict[str, Any]:
        payload = result_to_dict(result)
        payload["address"] = address
        return payload

    def _normalize_address(self, address: str) -> str:
        if not isinstance(address, str):
            raise ValueError("Address must be a string.")
        candidate = address.strip()
        if not ADDRESS_PATTERN.fullmatch(candidate):
            raise ValueError("Invalid address format. Expected 0x-prefixed 40 hex chars.")
        return candidate.lower()

    def _normalize_address_optional(self, address: Any) -> Optional[str]:
        if not address:
            return None
        return self._normalize_address(address)
