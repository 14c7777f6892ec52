import re
from dataclasses import dataclass
from typing import Any, List, Optional

import requests

from .config import DEFAULT_RPC_URL
from .errors import MalformedCalldata, TransactionSourceError
from .selector import parse_hex_data

TX_HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


@dataclass
class TransactionInput:
    tx_hash: str
    to: Optional[str]
    data: bytes


class RpcClient:
    """Minimal JSON-RPC 2.0 client used to fetch transaction calldata."""

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")

        self.rpc_url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self._next_id = 1

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params or [],
        }
        self._next_id += 1

        try:
            response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise TransactionSourceError(f"RPC request {method} failed: {exc}", rpc_url=self.rpc_url) from exc
        except ValueError as exc:
            raise TransactionSourceError(f"RPC returned non-JSON body for {method}.", rpc_url=self.rpc_url) from exc

        if not isinstance(data, dict):
            raise TransactionSourceError("Unexpected JSON-RPC response (non-object).", rpc_url=self.rpc_url)

        error_obj = data.get("error")
        if isinstance(error_obj, dict):
            parts: list[str] = []
            if error_obj.get("code") is not None:
                parts.append(f"code {error_obj['code']}")
            if error_obj.get("message"):
                parts.append(str(error_obj["message"]))
            detail = ": ".join(parts) if parts else "unknown error"
            raise TransactionSourceError(f"RPC error: {detail}.", rpc_url=self.rpc_url)

        if "result" not in data:
            raise TransactionSourceError("Unexpected JSON-RPC response (missing result).", rpc_url=self.rpc_url)
        return data["result"]

    def get_transaction(self, tx_hash: str) -> TransactionInput:
        tx_hash = tx_hash.strip()
        if not TX_HASH_PATTERN.fullmatch(tx_hash):
            raise TransactionSourceError(
                "Transaction hash must be 0x-prefixed 32-byte hex.", rpc_url=self.rpc_url, tx_hash=tx_hash
            )

        tx = self.call("eth_getTransactionByHash", [tx_hash])
        if tx is None:
            raise TransactionSourceError(
                f"Transaction not found: {tx_hash}", rpc_url=self.rpc_url, tx_hash=tx_hash
            )
        if not isinstance(tx, dict):
            raise TransactionSourceError(
                "Unexpected eth_getTransactionByHash result.", rpc_url=self.rpc_url, tx_hash=tx_hash
            )

        try:
            data = parse_hex_data(tx.get("input") or tx.get("data") or "0x")
        except MalformedCalldata as exc:
            raise TransactionSourceError(
                f"Transaction input is not valid hex: {exc.message}", rpc_url=self.rpc_url, tx_hash=tx_hash
            ) from exc
        return TransactionInput(tx_hash=tx_hash, to=tx.get("to"), data=data)
