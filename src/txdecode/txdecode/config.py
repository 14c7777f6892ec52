import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_ETHERSCAN_URL = "https://api.etherscan.io/v2/api"
DEFAULT_DIRECTORY_URL = "https://www.4byte.directory/api/v1/signatures/"
DEFAULT_RPC_URL = "https://ethereum-rpc.publicnode.com"
DEFAULT_CACHE_DIR = Path.home() / ".txdecode" / "cache"
DEFAULT_CHAIN_ID = 1

NETWORK_CHAIN_ID_MAP = {
    "mainnet": 1,
    "ethereum": 1,
    "eth": 1,
    "sepolia": 11155111,
    "holesky": 17000,
    "optimism": 10,
    "bsc": 56,
    "polygon": 137,
    "base": 8453,
    "arbitrum": 42161,
}


@dataclass
class Config:
    api_key: Optional[str] = None
    etherscan_url: str = DEFAULT_ETHERSCAN_URL
    directory_url: str = DEFAULT_DIRECTORY_URL
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = DEFAULT_CHAIN_ID
    cache_dir: Path = field(default_factory=lambda: DEFAULT_CACHE_DIR)
    directory_timeout: float = 5.0
    request_timeout: float = 10.0
    directory_max_pages: int = 1
    batch_workers: int = 4


def resolve_chain_id(network: Optional[str], override_chain_id: Optional[str] = None) -> int:
    """Resolve chain ID from override, numeric network, or static network mapping."""
    if override_chain_id:
        return _parse_positive_int(override_chain_id, "CHAIN_ID")

    normalized = (network or "").strip().lower()
    if not normalized:
        return DEFAULT_CHAIN_ID
    if normalized.isdigit():
        return _parse_positive_int(normalized, "NETWORK")

    if normalized in NETWORK_CHAIN_ID_MAP:
        return NETWORK_CHAIN_ID_MAP[normalized]

    allowed = ", ".join(sorted(NETWORK_CHAIN_ID_MAP.keys()) + ["<chain_id>"])
    raise ValueError(f"Unknown network '{network}'. Supported: {allowed}.")


def _parse_positive_int(value: str, field_name: str) -> int:
    text = str(value).strip()
    if not text.isdigit() or int(text) <= 0:
        raise ValueError(f"{field_name} must be a positive integer, got '{value}'.")
    return int(text)


def load_config() -> Config:
    """Load configuration from environment variables."""
    api_key = (os.getenv("ETHERSCAN_API_KEY") or "").strip() or None
    etherscan_url = os.getenv("ETHERSCAN_BASE_URL", DEFAULT_ETHERSCAN_URL).rstrip("/")
    directory_url = os.getenv("SIGNATURE_DIRECTORY_URL", DEFAULT_DIRECTORY_URL)
    rpc_url = os.getenv("RPC_URL", DEFAULT_RPC_URL).strip()
    chain_id = resolve_chain_id(os.getenv("NETWORK"), os.getenv("CHAIN_ID"))
    cache_dir = Path(os.getenv("TXDECODE_CACHE_DIR") or DEFAULT_CACHE_DIR).expanduser()
    directory_timeout = float(os.getenv("DIRECTORY_TIMEOUT", "5"))
    request_timeout = float(os.getenv("REQUEST_TIMEOUT", "10"))
    max_pages = int(os.getenv("DIRECTORY_MAX_PAGES", "1"))
    workers = int(os.getenv("BATCH_WORKERS", "4"))

    return Config(
        api_key=api_key,
        etherscan_url=etherscan_url,
        directory_url=directory_url,
        rpc_url=rpc_url,
        chain_id=chain_id,
        cache_dir=cache_dir,
        directory_timeout=directory_timeout,
        request_timeout=request_timeout,
        directory_max_pages=max(1, max_pages),
        batch_workers=max(1, workers),
    )
