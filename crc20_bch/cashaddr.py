"""CashAddr encoding for Bitcoin Cash P2PKH and P2SH hashes.

Implements the subset of the CashAddr format needed for 20-byte hashes:
version byte, base32 payload and the 40-bit BCH checksum over the prefix.
"""

from __future__ import annotations

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"

MAINNET_PREFIX = "bitcoincash"
TESTNET_PREFIX = "bchtest"

TYPE_P2PKH = 0
TYPE_P2SH = 1

_GENERATORS = (0x98F2BC8E61, 0x79B76D99E2, 0xF33E5FB3C4, 0xAE2EABE2A8, 0x1E4F43E470)


class CashAddrError(ValueError):
    """Raised when an address string cannot be decoded."""


def prefix_for_network(network: str) -> str:
    """Map ``mainnet``/``testnet`` onto the CashAddr human-readable prefix."""

    normalized = network.strip().lower()
    if normalized in {"mainnet", "main", MAINNET_PREFIX}:
        return MAINNET_PREFIX
    if normalized in {"testnet", "test", "chipnet", TESTNET_PREFIX}:
        return TESTNET_PREFIX
    raise ValueError(f"Unknown network: {network}")


def _polymod(values: list[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 35
        checksum = ((checksum & 0x07FFFFFFFF) << 5) ^ value
        for i, generator in enumerate(_GENERATORS):
            if (top >> i) & 1:
                checksum ^= generator
    return checksum ^ 1


def _prefix_expand(prefix: str) -> list[int]:
    return [ord(char) & 0x1F for char in prefix] + [0]


def _convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int] | None:
    acc = 0
    bits = 0
    ret: list[int] = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1
    for value in data:
        if value < 0 or value >> frombits:
            return None
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        return None
    return ret


def encode(prefix: str, address_type: int, hash_bytes: bytes) -> str:
    """Encode a 20-byte hash as a prefixed CashAddr string."""

    if len(hash_bytes) != 20:
        raise ValueError(f"CashAddr hash must be 20 bytes, got {len(hash_bytes)}")
    if address_type not in (TYPE_P2PKH, TYPE_P2SH):
        raise ValueError(f"Unsupported CashAddr type: {address_type}")
    version = address_type << 3  # size bits 000 -> 160-bit hash
    payload = _convertbits(bytes([version]) + hash_bytes, 8, 5)
    if payload is None:
        raise CashAddrError("CashAddr payload could not be regrouped into 5-bit words")
    checksum = _polymod(_prefix_expand(prefix) + payload + [0] * 8)
    checksum_words = [(checksum >> 5 * (7 - i)) & 0x1F for i in range(8)]
    return prefix + ":" + "".join(CHARSET[d] for d in payload + checksum_words)


def decode(address: str, default_prefix: str = MAINNET_PREFIX) -> tuple[str, int, bytes]:
    """Decode ``address`` into ``(prefix, type, hash)``.

    Addresses without a prefix are checked against ``default_prefix``.
    """

    if address.lower() != address and address.upper() != address:
        raise CashAddrError("CashAddr must not mix upper and lower case")
    address = address.lower()
    if ":" in address:
        prefix, body = address.split(":", 1)
    else:
        prefix, body = default_prefix, address
    if not body:
        raise CashAddrError("CashAddr payload is empty")

    values: list[int] = []
    for char in body:
        position = CHARSET.find(char)
        if position == -1:
            raise CashAddrError(f"Invalid CashAddr character: {char!r}")
        values.append(position)
    if _polymod(_prefix_expand(prefix) + values):
        raise CashAddrError(f"CashAddr checksum mismatch for {address}")

    decoded = _convertbits(values[:-8], 5, 8, pad=False)
    if decoded is None or not decoded:
        raise CashAddrError("CashAddr payload has invalid padding")
    version = decoded[0]
    hash_bytes = bytes(decoded[1:])
    if version & 0x07 != 0 or len(hash_bytes) != 20:
        raise CashAddrError("Only 160-bit CashAddr hashes are supported")
    return prefix, version >> 3, hash_bytes


def p2pkh_address(pubkey_hash: bytes, prefix: str = MAINNET_PREFIX) -> str:
    return encode(prefix, TYPE_P2PKH, pubkey_hash)


def p2sh_address(script_hash: bytes, prefix: str = MAINNET_PREFIX) -> str:
    return encode(prefix, TYPE_P2SH, script_hash)


__all__ = [
    "CashAddrError",
    "MAINNET_PREFIX",
    "TESTNET_PREFIX",
    "TYPE_P2PKH",
    "TYPE_P2SH",
    "decode",
    "encode",
    "p2pkh_address",
    "p2sh_address",
    "prefix_for_network",
]
