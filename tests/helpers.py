"""ABI encoding helpers and test doubles shared by the txdecode tests."""

from typing import List, Optional

TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")
APPROVE_SELECTOR = bytes.fromhex("095ea7b3")
TOTAL_SUPPLY_SELECTOR = bytes.fromhex("18160ddd")
RECIPIENT = "0x0742d35cc6634c0532925a3b844bc9e7595f0beb"
CONTRACT = "0xdac17f958d2ee523a2206206994597c13d831ec7"

TRANSFER_CALLDATA_HEX = (
    "a9059cbb"
    "0000000000000000000000000742d35cc6634c0532925a3b844bc9e7595f0beb"
    "00000000000000000000000000000000000000000000000000000000000f4240"
)

TRANSFER_ABI_ENTRY = {
    "type": "function",
    "name": "transfer",
    "stateMutability": "nonpayable",
    "inputs": [
        {"name": "to", "type": "address", "internalType": "address"},
        {"name": "amount", "type": "uint256", "internalType": "uint256"},
    ],
    "outputs": [{"name": "", "type": "bool"}],
}

TRANSFER_EVENT_ENTRY = {"type": "event", "name": "Transfer", "inputs": []}

APPROVE_ABI_ENTRY = {
    "type": "function",
    "name": "approve",
    "inputs": [
        {"name": "spender", "type": "address"},
        {"name": "amount", "type": "uint256"},
    ],
}


def word(value: int) -> bytes:
    """Encode a non-negative integer as one 32-byte big-endian word."""
    return value.to_bytes(32, "big")


def address_word(address: str) -> bytes:
    return bytes(12) + bytes.fromhex(address[2:])


def padded(data: bytes) -> bytes:
    """Right-pad ``data`` with zeros to a multiple of 32 bytes."""
    return data + bytes(-len(data) % 32)


class FakeDirectory:
    """Deterministic stand-in for SignatureDirectoryClient."""

    def __init__(self, candidates: Optional[List[str]] = None, error: Optional[Exception] = None) -> None:
        self.candidates = candidates or []
        self.error = error
        self.calls: List[bytes] = []

    def lookup(self, selector: bytes) -> List[str]:
        self.calls.append(selector)
        if self.error is not None:
            raise self.error
        return list(self.candidates)
