import re

from eth_utils import keccak

from .errors import MalformedCalldata

SELECTOR_SIZE = 4
HEX_PATTERN = re.compile(r"^[0-9a-fA-F]*$")


def extract_selector(calldata: bytes) -> bytes:
    """Return the 4-byte function selector at the start of ``calldata``."""
    if len(calldata) < SELECTOR_SIZE:
        raise MalformedCalldata(
            f"Calldata too short to extract selector: {len(calldata)} bytes.",
            length=len(calldata),
        )
    return bytes(calldata[:SELECTOR_SIZE])


def parse_hex_data(value: str) -> bytes:
    """Convert 0x-prefixed (or bare) hex text into bytes."""
    if not isinstance(value, str):
        raise MalformedCalldata("Calldata must be a hex string.")
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if len(text) % 2 != 0:
        raise MalformedCalldata("Calldata hex must have an even number of digits.", length=len(text))
    if not HEX_PATTERN.fullmatch(text):
        raise MalformedCalldata("Calldata must be a hex string.")
    return bytes.fromhex(text)


def parse_selector(value: str) -> bytes:
    selector = parse_hex_data(value)
    if len(selector) != SELECTOR_SIZE:
        raise MalformedCalldata(
            f"Selector must be exactly {SELECTOR_SIZE} bytes, got {len(selector)}.",
            length=len(selector),
        )
    return selector


def selector_hex(selector: bytes) -> str:
    return "0x" + bytes(selector).hex()


def compute_selector(canonical_signature: str) -> bytes:
    """keccak256 of the canonical signature, truncated to 4 bytes."""
    return keccak(text=canonical_signature)[:SELECTOR_SIZE]
