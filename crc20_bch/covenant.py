"""The CRC20 ``GenesisOutput`` covenant and its address derivation.

The covenant is compiled from the following CashScript source::

    contract GenesisOutput(pubkey recipientPK, bytes metainfo, int symbolLength) {
        function reveal(sig recipientSig) {
            require(checkSig(recipientSig, recipientPK));
            bytes20 symbolHash = hash160(metainfo.split(symbolLength)[0]);
            bytes25 outLockingBytecode = new LockingBytecodeP2PKH(symbolHash);
            require(tx.outputs[0].lockingBytecode == outLockingBytecode);
        }
    }

An instance's redeem script is the constructor arguments pushed in reverse
declaration order followed by the compiled body in :data:`REVEAL_BYTECODE`.
"""

from __future__ import annotations

from dataclasses import dataclass

from . import cashaddr
from .script import DEFAULT_CODEC, ScriptCodec, hash160

REVEAL_BYTECODE = bytes.fromhex("537a7cad7c7f75a90376a9147c7e0288ac7e00cd87")

PUBKEY_LENGTH = 65
MAX_SYMBOL_LENGTH = 0xFFFF


class InvalidParameterError(ValueError):
    """Raised when covenant parameters cannot be encoded."""


@dataclass(frozen=True)
class CovenantParameters:
    """Constructor arguments of a ``GenesisOutput`` instance."""

    recipient_pubkey: bytes
    metadata: bytes
    symbol_length: int


class CovenantAddressDeriver:
    """Rebuild the P2SH hash of a ``GenesisOutput`` instance."""

    def __init__(self, codec: ScriptCodec | None = None, prefix: str = cashaddr.MAINNET_PREFIX) -> None:
        self.codec = codec or DEFAULT_CODEC
        self.prefix = prefix

    def redeem_script(self, recipient_pubkey: bytes, metadata: bytes, symbol_length: int) -> bytes:
        _check_parameters(recipient_pubkey, metadata, symbol_length)
        return (
            self.codec.encode_int_push(symbol_length)
            + self.codec.encode_push(bytes(metadata))
            + self.codec.encode_push(bytes(recipient_pubkey))
            + REVEAL_BYTECODE
        )

    def derive(self, recipient_pubkey: bytes, metadata: bytes, symbol_length: int) -> bytes:
        """Return the 20-byte script hash for these parameters."""

        return hash160(self.redeem_script(recipient_pubkey, metadata, symbol_length))

    def deposit_address(self, recipient_pubkey: bytes, metadata: bytes, symbol_length: int) -> str:
        return cashaddr.p2sh_address(self.derive(recipient_pubkey, metadata, symbol_length), self.prefix)

    def locking_script(self, recipient_pubkey: bytes, metadata: bytes, symbol_length: int) -> bytes:
        return self.codec.p2sh_locking_script(self.derive(recipient_pubkey, metadata, symbol_length))


def _check_parameters(recipient_pubkey: bytes, metadata: bytes, symbol_length: int) -> None:
    if not isinstance(recipient_pubkey, (bytes, bytearray)):
        raise InvalidParameterError("recipient public key must be bytes")
    if len(recipient_pubkey) != PUBKEY_LENGTH:
        raise InvalidParameterError(
            f"recipient public key must be {PUBKEY_LENGTH} bytes, got {len(recipient_pubkey)}"
        )
    if not isinstance(metadata, (bytes, bytearray)):
        raise InvalidParameterError("metadata must be bytes")
    if isinstance(symbol_length, bool) or not isinstance(symbol_length, int):
        raise InvalidParameterError("symbol length must be an integer")
    if not 0 <= symbol_length <= MAX_SYMBOL_LENGTH:
        raise InvalidParameterError(f"symbol length out of range: {symbol_length}")


__all__ = [
    "CovenantAddressDeriver",
    "CovenantParameters",
    "InvalidParameterError",
    "PUBKEY_LENGTH",
    "REVEAL_BYTECODE",
]
