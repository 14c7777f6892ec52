import argparse
import json
import logging
import os
import sys
from typing import Optional

from .config import load_config, resolve_chain_id
from .errors import TxDecodeError
from .service import DecodeService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Decode Ethereum transaction calldata into a function call.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log candidate resolution details to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_parser = subparsers.add_parser("decode", help="Decode calldata or a transaction's input")
    source = decode_parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--data",
        help="Raw calldata hex (0x-prefixed or bare).",
    )
    source.add_argument(
        "--tx",
        help="Transaction hash; calldata and target address are fetched over RPC.",
    )
    decode_parser.add_argument(
        "--address",
        required=False,
        help="Contract address for the verified ABI fallback. Not allowed with --tx, which uses the transaction target.",
    )
    decode_parser.add_argument(
        "--api-key",
        required=False,
        default=os.getenv("ETHERSCAN_API_KEY"),
        help="Etherscan API key. Defaults to ETHERSCAN_API_KEY env.",
    )
    decode_parser.add_argument(
        "--rpc-url",
        required=False,
        help="JSON-RPC endpoint used with --tx. Defaults to RPC_URL env or a public endpoint.",
    )
    decode_parser.add_argument(
        "--chain",
        required=False,
        help="Chain id or network name for the verified ABI lookup. Defaults to mainnet.",
    )

    lookup_parser = subparsers.add_parser("lookup", help="List directory signatures for a selector")
    lookup_parser.add_argument(
        "--selector",
        required=True,
        help="4-byte selector hex, e.g. 0xa9059cbb.",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "decode" and args.tx and args.address:
        parser.error("--address cannot be used with --tx; the transaction's target address is used.")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config()
        service = DecodeService(config)

        if args.command == "decode":
            chain_id = resolve_chain_id(args.chain) if args.chain else None
            if args.tx:
                result = service.decode_transaction(
                    args.tx,
                    rpc_url=args.rpc_url,
                    api_key=args.api_key,
                    chain_id=chain_id,
                )
            else:
                result = service.decode_hex(
                    args.data,
                    address=args.address,
                    api_key=args.api_key,
                    chain_id=chain_id,
                )
            print(json.dumps(result, indent=2))
        elif args.command == "lookup":
            result = service.lookup_selector(args.selector)
            print(json.dumps(result, indent=2))
    except TxDecodeError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        print(exc.to_json(), file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
