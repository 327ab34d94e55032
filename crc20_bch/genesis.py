"""Verify CRC20 genesis reveals against the ``GenesisOutput`` covenant.

A reveal transaction spends output #0 of the commit transaction. That output
is a P2SH lock on a ``GenesisOutput`` instance, so the spending input's
unlocking script carries ``<sig> <redeem script>`` and the redeem script
starts with the three constructor arguments. The parser pulls those
arguments out, rebuilds the instance's script hash and only accepts the
arguments when it matches the hash that locked the commit output.

Every stage works on attacker-supplied bytes. Stages hand back either a value
or a :class:`Rejection`; none of them raise on malformed input.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from .covenant import (
    MAX_SYMBOL_LENGTH,
    PUBKEY_LENGTH,
    REVEAL_BYTECODE,
    CovenantAddressDeriver,
    CovenantParameters,
)
from .script import DEFAULT_CODEC, ScriptCodec, ScriptDecodeError, ScriptToken

logger = logging.getLogger(__name__)


class Rejection(enum.Enum):
    """Why a script pair is not a CRC20 genesis reveal."""

    NOT_P2SH = "locking script is not pay-to-script-hash"
    BAD_LOCKING_SCRIPT = "locking script does not decode to three tokens"
    BAD_UNLOCKING_SCRIPT = "unlocking script is not exactly two data pushes"
    NOT_COVENANT = "redeem script does not end with the GenesisOutput body"
    BAD_PARAMETERS = "redeem script head is not exactly three tokens"
    BAD_PUBKEY = "recipient public key is not a 65-byte push"
    BAD_METADATA = "metainfo is not a data push"
    BAD_SYMBOL_LENGTH = "symbol length is not a valid script number"
    ADDRESS_MISMATCH = "derived covenant address differs from the locking script"
    INVALID_HEX = "script hex could not be decoded"


@dataclass(frozen=True)
class GenesisInspection:
    """Outcome of inspecting a locking/unlocking script pair."""

    parameters: CovenantParameters | None = None
    rejection: Rejection | None = None

    @property
    def accepted(self) -> bool:
        return self.parameters is not None


def _reject(reason: Rejection) -> GenesisInspection:
    return GenesisInspection(rejection=reason)


class GenesisOutputParser:
    """Extract and verify ``GenesisOutput`` constructor arguments."""

    def __init__(
        self,
        codec: ScriptCodec | None = None,
        deriver: CovenantAddressDeriver | None = None,
    ) -> None:
        self.codec = codec or DEFAULT_CODEC
        self.deriver = deriver or CovenantAddressDeriver(self.codec)

    def parse(self, locking_script: bytes, unlocking_script: bytes) -> CovenantParameters | None:
        """Return verified parameters, or ``None`` if this is not a genesis reveal."""

        return self.inspect(locking_script, unlocking_script).parameters

    def parse_hex(self, locking_hex: str, unlocking_hex: str) -> CovenantParameters | None:
        return self.inspect_hex(locking_hex, unlocking_hex).parameters

    def inspect_hex(self, locking_hex: str, unlocking_hex: str) -> GenesisInspection:
        try:
            locking_script = bytes.fromhex(locking_hex)
            unlocking_script = bytes.fromhex(unlocking_hex)
        except (TypeError, ValueError):
            return _reject(Rejection.INVALID_HEX)
        return self.inspect(locking_script, unlocking_script)

    def inspect(self, locking_script: bytes, unlocking_script: bytes) -> GenesisInspection:
        script_hash = self._locking_hash(locking_script)
        if isinstance(script_hash, Rejection):
            return _reject(script_hash)

        redeem_script = self._redeem_script(unlocking_script)
        if isinstance(redeem_script, Rejection):
            return _reject(redeem_script)

        head = self._decode(redeem_script[: -len(REVEAL_BYTECODE)])
        if head is None or len(head) != 3:
            return _reject(Rejection.BAD_PARAMETERS)
        symbol_length_token, metadata_token, pubkey_token = head

        # Minimal encoding turns one-byte values into OP_1..OP_16 or OP_1NEGATE.
        recipient_pubkey = pubkey_token.pushed_bytes
        if recipient_pubkey is None or len(recipient_pubkey) != PUBKEY_LENGTH:
            return _reject(Rejection.BAD_PUBKEY)
        metadata = metadata_token.pushed_bytes
        if metadata is None:
            return _reject(Rejection.BAD_METADATA)

        symbol_length = self._symbol_length(symbol_length_token)
        if symbol_length is None:
            return _reject(Rejection.BAD_SYMBOL_LENGTH)

        parameters = CovenantParameters(
            recipient_pubkey=recipient_pubkey,
            metadata=metadata,
            symbol_length=symbol_length,
        )
        derived = self.deriver.derive(
            parameters.recipient_pubkey, parameters.metadata, parameters.symbol_length
        )
        if derived != script_hash:
            logger.warning(
                "GenesisOutput parameters do not match locking hash %s (derived %s); possible spoofed reveal",
                script_hash.hex(),
                derived.hex(),
            )
            return _reject(Rejection.ADDRESS_MISMATCH)
        return GenesisInspection(parameters=parameters)

    def _decode(self, script: bytes) -> list[ScriptToken] | None:
        try:
            return self.codec.decode(script)
        except ScriptDecodeError as exc:
            logger.debug("Script decode failed: %s", exc)
            return None

    def _locking_hash(self, locking_script: bytes) -> bytes | Rejection:
        if not self.codec.is_p2sh(locking_script):
            return Rejection.NOT_P2SH
        tokens = self._decode(locking_script)
        if tokens is None or len(tokens) != 3 or not tokens[1].is_push or len(tokens[1].data) != 20:
            return Rejection.BAD_LOCKING_SCRIPT
        return tokens[1].data

    def _redeem_script(self, unlocking_script: bytes) -> bytes | Rejection:
        tokens = self._decode(unlocking_script)
        if tokens is None or len(tokens) != 2 or not all(token.is_push for token in tokens):
            return Rejection.BAD_UNLOCKING_SCRIPT
        redeem_script = tokens[1].data
        if len(redeem_script) <= len(REVEAL_BYTECODE) or not redeem_script.endswith(REVEAL_BYTECODE):
            return Rejection.NOT_COVENANT
        return redeem_script

    def _symbol_length(self, token: ScriptToken) -> int | None:
        small = token.small_int
        if small is not None:
            return small
        if not token.is_push or not token.data:
            return None
        try:
            value = self.codec.decode_number(token.data)
        except ScriptDecodeError as exc:
            logger.debug("Symbol length decode failed: %s", exc)
            return None
        if not 0 < value <= MAX_SYMBOL_LENGTH:
            return None
        return value


__all__ = ["GenesisInspection", "GenesisOutputParser", "Rejection"]
