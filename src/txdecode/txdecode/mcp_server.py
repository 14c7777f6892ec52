"""
MCP server exposing calldata decoding via the signature directory and Etherscan V2.
"""

import argparse
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .errors import TxDecodeError
from .service import DecodeService

server = FastMCP(
    name="txdecode",
    instructions="Decode Ethereum calldata into function calls using 4byte.directory and verified ABIs.",
)

_service: Optional[DecodeService] = None


def _get_service() -> DecodeService:
    global _service
    if _service is None:
        cfg = load_config()
        _service = DecodeService(cfg)
    return _service


def _normalize_batch_items(value: Any) -> List[Dict[str, Any]]:
    """
    Normalize MCP batch input:
    - list/tuple of objects: used as-is
    - a single object: wrapped into a one-item list
    - str/bytes: likely a bare calldata string, raise with guidance
    """
    if isinstance(value, (str, bytes)):
        raise ValueError("items must be an array of {data, address?} objects; got a string.")
    if isinstance(value, dict):
        return [value]
    if isinstance(value, (list, tuple)):
        return list(value)
    raise ValueError("items must be an array of {data, address?} objects.")


def _structured(call) -> Dict[str, Any]:
    try:
        return call()
    except TxDecodeError as exc:
        return exc.to_dict()


@server.tool(
    name="decode_calldata",
    title="Decode Calldata",
    description="Decode raw calldata hex. Provide the target contract address to enable the verified ABI fallback.",
)
def decode_calldata(data: str, address: Optional[str] = None, chain_id: Optional[int] = None) -> dict:
    svc = _get_service()
    return _structured(lambda: svc.decode_hex(data, address=address, chain_id=chain_id))


@server.tool(
    name="decode_calldata_batch",
    title="Decode Calldata Batch",
    description="Decode many calldata payloads concurrently. Each item is {data, address?}; failures are returned per item.",
)
def decode_calldata_batch(items: Any) -> dict:
    svc = _get_service()
    normalized = _normalize_batch_items(items)
    return _structured(lambda: {"results": svc.decode_many(normalized)})


@server.tool(
    name="decode_transaction",
    title="Decode Transaction",
    description="Fetch a transaction by hash over JSON-RPC and decode its input.",
)
def decode_transaction(tx_hash: str, rpc_url: Optional[str] = None, chain_id: Optional[int] = None) -> dict:
    svc = _get_service()
    return _structured(lambda: svc.decode_transaction(tx_hash, rpc_url=rpc_url, chain_id=chain_id))


@server.tool(
    name="lookup_selector",
    title="Lookup Selector",
    description="List ranked signature directory candidates for a 4-byte selector.",
)
def lookup_selector(selector: str) -> dict:
    svc = _get_service()
    return _structured(lambda: svc.lookup_selector(selector))


@server.tool(
    name="get_function_abi",
    title="Get Verified Function ABI",
    description="Return the verified ABI entry for a selector on a contract (cached on disk).",
)
def get_function_abi(address: str, selector: str, chain_id: Optional[int] = None) -> dict:
    svc = _get_service()
    return _structured(lambda: svc.get_function_abi(address, selector, chain_id=chain_id))


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the txdecode MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    args = parser.parse_args()

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
