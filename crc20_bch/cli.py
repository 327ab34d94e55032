"""Command-line interface for the CRC20 token resolver.

The CLI is a thin front end over :class:`~crc20_bch.resolver.TokenResolver`
and the covenant helpers so operators can look up tokens, check which
category owns a symbol and audit individual genesis reveals.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .config import ConfigurationError, load_electrum_config
from .covenant import CovenantAddressDeriver, InvalidParameterError
from .electrum_client import CollaboratorError, ElectrumClient
from .genesis import GenesisOutputParser
from .metainfo import encode_meta_info, extract_meta_info
from .model import TokenRecord, Trust
from .resolver import TokenResolver, color_trust, symbol_address
from .script import DEFAULT_CODEC, ScriptDecodeError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CRC20 token resolver for Bitcoin Cash")
    parser.add_argument("--config", default=None, help="Path to a YAML config file (default: ~/.crc20.yaml)")
    parser.add_argument(
        "--electrum-url",
        default=None,
        help="Electrum WebSocket endpoint, e.g. wss://scaling.cash:50004",
    )
    parser.add_argument("--network", default=None, help="mainnet or testnet")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    symbol_parser = subparsers.add_parser(
        "query-symbol", help="list every verified token revealed under a symbol"
    )
    symbol_parser.add_argument("symbol", help="Ticker symbol to look up")
    symbol_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")

    category_parser = subparsers.add_parser(
        "query-category", help="show the verified token for a category id"
    )
    category_parser.add_argument("category", help="Category (commit transaction id)")
    category_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")

    address_parser = subparsers.add_parser(
        "symbol-address", help="print the P2PKH lookup address for a symbol"
    )
    address_parser.add_argument("symbol", help="Ticker symbol")

    covenant_parser = subparsers.add_parser(
        "covenant-address", help="derive the GenesisOutput deposit address for new metadata"
    )
    covenant_parser.add_argument("--pubkey", required=True, help="Recipient public key (hex, compressed or not)")
    covenant_parser.add_argument("--symbol", required=True, help="Token symbol")
    covenant_parser.add_argument("--decimals", type=int, required=True, help="Decimal precision (0-255)")
    covenant_parser.add_argument("--name", default="", help="Display name")

    inspect_parser = subparsers.add_parser(
        "inspect-genesis", help="verify a genesis locking/unlocking script pair"
    )
    inspect_parser.add_argument("--locking-hex", required=True, help="Commit output #0 scriptPubKey hex")
    inspect_parser.add_argument("--unlocking-hex", required=True, help="Reveal input scriptSig hex")
    inspect_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")

    return parser


def _load_config(args: argparse.Namespace):
    return load_electrum_config(
        config_path=args.config,
        overrides={"url": args.electrum_url, "network": args.network},
    )


def _network_prefix(args: argparse.Namespace) -> str:
    return _load_config(args).cashaddr_prefix


def _normalize_pubkey(raw: str) -> bytes:
    try:
        encoded = bytes.fromhex(raw)
    except ValueError as exc:
        raise CLIError(f"public key is not valid hex: {raw}") from exc
    try:
        key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), encoded)
    except ValueError as exc:
        raise CLIError(f"public key is not a secp256k1 point: {raw}") from exc
    return key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def _print_records(records: Sequence[TokenRecord], colors: dict[str, Trust]) -> None:
    print(" trust       | category                                                         | dec | height  | conf  | name")
    print("-------------+------------------------------------------------------------------+-----+---------+-------+-----")
    for record in records:
        trust = colors.get(record.category, Trust.UNCONFIRMED)
        print(
            f" {trust.value:<11} | {record.category} | {record.decimals:>3} | "
            f"{record.reveal_height:>7} | {record.reveal_confirmations:>5} | {record.name}"
        )
        if record.mint_amount is not None:
            print(f"             mint amount {record.mint_amount}, supply {record.total_supply}")
        else:
            print(f"             supply {record.total_supply}")


def cmd_query_symbol(args: argparse.Namespace) -> None:
    config = _load_config(args)
    with ElectrumClient(config) as client:
        resolver = TokenResolver(client, prefix=config.cashaddr_prefix)
        records = resolver.resolve_by_symbol(args.symbol)
    colors = color_trust(records)

    if args.as_json:
        output: list[dict[str, Any]] = []
        for record in records:
            entry = record.to_dict()
            entry["trust"] = colors[record.category].value
            entry["color"] = colors[record.category].color
            output.append(entry)
        print(json.dumps(output, indent=2))
        return

    if not records:
        print(f"Symbol {args.symbol} is not a CRC20 token.")
        return
    print(f"Found {len(records)} token(s) for symbol {args.symbol}")
    _print_records(records, colors)


def cmd_query_category(args: argparse.Namespace) -> None:
    config = _load_config(args)
    with ElectrumClient(config) as client:
        resolver = TokenResolver(client, prefix=config.cashaddr_prefix)
        record = resolver.resolve_by_category(args.category)

    if args.as_json:
        print(json.dumps(record.to_dict() if record else None, indent=2))
        return
    if record is None:
        print(f"Category {args.category} is not a CRC20 token.")
        return
    print(f"symbol: {record.symbol}")
    print(f"name: {record.name}")
    print(f"decimals: {record.decimals}")
    print(f"reveal: {record.reveal_txid} at height {record.reveal_height} ({record.reveal_confirmations} conf)")
    print(f"supply: {record.total_supply}")
    if record.mint_amount is not None:
        print(f"mint amount: {record.mint_amount}")


def cmd_symbol_address(args: argparse.Namespace) -> None:
    print(symbol_address(args.symbol, _network_prefix(args)))


def cmd_covenant_address(args: argparse.Namespace) -> None:
    pubkey = _normalize_pubkey(args.pubkey)
    try:
        metadata, symbol_length = encode_meta_info(args.symbol, args.decimals, args.name)
    except ValueError as exc:
        raise CLIError(str(exc)) from exc
    deriver = CovenantAddressDeriver(prefix=_network_prefix(args))
    print(deriver.deposit_address(pubkey, metadata, symbol_length))


def cmd_inspect_genesis(args: argparse.Namespace) -> None:
    inspection = GenesisOutputParser().inspect_hex(args.locking_hex, args.unlocking_hex)
    result: dict[str, Any] = {"accepted": inspection.accepted}
    if inspection.accepted:
        parameters = inspection.parameters
        result["recipient_pubkey"] = parameters.recipient_pubkey.hex()
        result["metadata"] = parameters.metadata.hex()
        result["symbol_length"] = parameters.symbol_length
        meta = extract_meta_info(parameters.metadata, parameters.symbol_length)
        if meta is not None:
            result.update(symbol=meta.symbol, decimals=meta.decimals, name=meta.name)
    else:
        result["rejection"] = inspection.rejection.name.lower()
        result["reason"] = inspection.rejection.value

    if args.as_json:
        print(json.dumps(result, indent=2))
        return
    if not inspection.accepted:
        print(f"Rejected: {result['reason']}")
        return
    try:
        print(f"unlocking asm: {DEFAULT_CODEC.to_asm(bytes.fromhex(args.unlocking_hex))}")
    except ScriptDecodeError:  # pragma: no cover - accepted scripts always decode
        pass
    for key in ("symbol", "decimals", "name", "symbol_length", "recipient_pubkey"):
        if key in result:
            print(f"{key}: {result[key]}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger("crc20_bch").setLevel(logging.DEBUG)
    try:
        if args.command == "query-symbol":
            cmd_query_symbol(args)
        elif args.command == "query-category":
            cmd_query_category(args)
        elif args.command == "symbol-address":
            cmd_symbol_address(args)
        elif args.command == "covenant-address":
            cmd_covenant_address(args)
        elif args.command == "inspect-genesis":
            cmd_inspect_genesis(args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (CLIError, ConfigurationError, CollaboratorError, InvalidParameterError) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
