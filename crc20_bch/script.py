"""Bitcoin Cash script helpers used by the CRC20 covenant tooling.

The codec turns raw bytecode into a flat list of :class:`ScriptToken` entries
(data pushes and bare opcodes), renders and parses the ASM form shown by
explorers, and provides the minimal push / script-number encodings that the
CashScript compiler emits. Nothing here evaluates scripts; the goal is to
take untrusted bytes apart without ever faulting on them.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from Crypto.Hash import RIPEMD160

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_16 = 0x60
OP_RETURN = 0x6A
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC

MAX_SCRIPT_NUM_LENGTH = 4

OPCODE_NAMES: dict[int, str] = {
    0x00: "OP_0",
    0x4C: "OP_PUSHDATA1",
    0x4D: "OP_PUSHDATA2",
    0x4E: "OP_PUSHDATA4",
    0x4F: "OP_1NEGATE",
    0x50: "OP_RESERVED",
    0x61: "OP_NOP",
    0x62: "OP_VER",
    0x63: "OP_IF",
    0x64: "OP_NOTIF",
    0x65: "OP_VERIF",
    0x66: "OP_VERNOTIF",
    0x67: "OP_ELSE",
    0x68: "OP_ENDIF",
    0x69: "OP_VERIFY",
    0x6A: "OP_RETURN",
    0x6B: "OP_TOALTSTACK",
    0x6C: "OP_FROMALTSTACK",
    0x6D: "OP_2DROP",
    0x6E: "OP_2DUP",
    0x6F: "OP_3DUP",
    0x70: "OP_2OVER",
    0x71: "OP_2ROT",
    0x72: "OP_2SWAP",
    0x73: "OP_IFDUP",
    0x74: "OP_DEPTH",
    0x75: "OP_DROP",
    0x76: "OP_DUP",
    0x77: "OP_NIP",
    0x78: "OP_OVER",
    0x79: "OP_PICK",
    0x7A: "OP_ROLL",
    0x7B: "OP_ROT",
    0x7C: "OP_SWAP",
    0x7D: "OP_TUCK",
    0x7E: "OP_CAT",
    0x7F: "OP_SPLIT",
    0x80: "OP_NUM2BIN",
    0x81: "OP_BIN2NUM",
    0x82: "OP_SIZE",
    0x83: "OP_INVERT",
    0x84: "OP_AND",
    0x85: "OP_OR",
    0x86: "OP_XOR",
    0x87: "OP_EQUAL",
    0x88: "OP_EQUALVERIFY",
    0x89: "OP_RESERVED1",
    0x8A: "OP_RESERVED2",
    0x8B: "OP_1ADD",
    0x8C: "OP_1SUB",
    0x8D: "OP_2MUL",
    0x8E: "OP_2DIV",
    0x8F: "OP_NEGATE",
    0x90: "OP_ABS",
    0x91: "OP_NOT",
    0x92: "OP_0NOTEQUAL",
    0x93: "OP_ADD",
    0x94: "OP_SUB",
    0x95: "OP_MUL",
    0x96: "OP_DIV",
    0x97: "OP_MOD",
    0x98: "OP_LSHIFT",
    0x99: "OP_RSHIFT",
    0x9A: "OP_BOOLAND",
    0x9B: "OP_BOOLOR",
    0x9C: "OP_NUMEQUAL",
    0x9D: "OP_NUMEQUALVERIFY",
    0x9E: "OP_NUMNOTEQUAL",
    0x9F: "OP_LESSTHAN",
    0xA0: "OP_GREATERTHAN",
    0xA1: "OP_LESSTHANOREQUAL",
    0xA2: "OP_GREATERTHANOREQUAL",
    0xA3: "OP_MIN",
    0xA4: "OP_MAX",
    0xA5: "OP_WITHIN",
    0xA6: "OP_RIPEMD160",
    0xA7: "OP_SHA1",
    0xA8: "OP_SHA256",
    0xA9: "OP_HASH160",
    0xAA: "OP_HASH256",
    0xAB: "OP_CODESEPARATOR",
    0xAC: "OP_CHECKSIG",
    0xAD: "OP_CHECKSIGVERIFY",
    0xAE: "OP_CHECKMULTISIG",
    0xAF: "OP_CHECKMULTISIGVERIFY",
    0xB0: "OP_NOP1",
    0xB1: "OP_CHECKLOCKTIMEVERIFY",
    0xB2: "OP_CHECKSEQUENCEVERIFY",
    0xBA: "OP_CHECKDATASIG",
    0xBB: "OP_CHECKDATASIGVERIFY",
    0xBC: "OP_REVERSEBYTES",
    0xC0: "OP_INPUTINDEX",
    0xC1: "OP_ACTIVEBYTECODE",
    0xC2: "OP_TXVERSION",
    0xC3: "OP_TXINPUTCOUNT",
    0xC4: "OP_TXOUTPUTCOUNT",
    0xC5: "OP_TXLOCKTIME",
    0xC6: "OP_UTXOVALUE",
    0xC7: "OP_UTXOBYTECODE",
    0xC8: "OP_OUTPOINTTXHASH",
    0xC9: "OP_OUTPOINTINDEX",
    0xCA: "OP_INPUTBYTECODE",
    0xCB: "OP_INPUTSEQUENCENUMBER",
    0xCC: "OP_OUTPUTVALUE",
    0xCD: "OP_OUTPUTBYTECODE",
    0xCE: "OP_UTXOTOKENCATEGORY",
    0xCF: "OP_UTXOTOKENCOMMITMENT",
    0xD0: "OP_UTXOTOKENAMOUNT",
    0xD1: "OP_OUTPUTTOKENCATEGORY",
    0xD2: "OP_OUTPUTTOKENCOMMITMENT",
    0xD3: "OP_OUTPUTTOKENAMOUNT",
}
OPCODE_NAMES.update({OP_1 + i: f"OP_{i + 1}" for i in range(16)})
OPCODE_NAMES.update({0xB3 + i: f"OP_NOP{i + 4}" for i in range(7)})

OPCODES_BY_NAME: dict[str, int] = {name: code for code, name in OPCODE_NAMES.items()}
OPCODES_BY_NAME["OP_FALSE"] = OP_0
OPCODES_BY_NAME["OP_TRUE"] = OP_1


class ScriptDecodeError(ValueError):
    """Raised when bytecode or ASM cannot be decoded into script tokens."""


@dataclass(frozen=True)
class ScriptToken:
    """A single decoded script element.

    ``data`` is set for push operations (``OP_0`` pushes ``b""``) and is
    ``None`` for every other opcode, including ``OP_1NEGATE`` and the
    ``OP_1``..``OP_16`` small-integer opcodes.
    """

    opcode: int
    data: bytes | None = None

    @property
    def is_push(self) -> bool:
        return self.data is not None

    @property
    def small_int(self) -> int | None:
        if OP_1 <= self.opcode <= OP_16:
            return self.opcode - OP_1 + 1
        return None

    @property
    def pushed_bytes(self) -> bytes | None:
        """Bytes this token leaves on the stack, counting minimal one-byte pushes."""

        if self.data is not None:
            return self.data
        small = self.small_int
        if small is not None:
            return bytes([small])
        if self.opcode == OP_1NEGATE:
            return b"\x81"
        return None


def hash160(data: bytes) -> bytes:
    """Return ``RIPEMD160(SHA256(data))``."""

    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


class ScriptCodec:
    """Stateless bytecode/ASM codec.

    The methods are grouped on a class so callers (the genesis parser in
    particular) can be handed an alternative implementation.
    """

    # Decoding -----------------------------------------------------------

    def decode(self, script: bytes) -> list[ScriptToken]:
        """Split ``script`` into tokens, raising on truncated pushes."""

        tokens: list[ScriptToken] = []
        index = 0
        length = len(script)
        while index < length:
            opcode = script[index]
            index += 1
            if OP_0 < opcode < OP_PUSHDATA1:
                size = opcode
            elif opcode == OP_PUSHDATA1:
                size, index = self._read_length(script, index, 1)
            elif opcode == OP_PUSHDATA2:
                size, index = self._read_length(script, index, 2)
            elif opcode == OP_PUSHDATA4:
                size, index = self._read_length(script, index, 4)
            elif opcode == OP_0:
                tokens.append(ScriptToken(opcode, b""))
                continue
            else:
                tokens.append(ScriptToken(opcode))
                continue

            if index + size > length:
                raise ScriptDecodeError(
                    f"push of {size} bytes at offset {index} overruns script of {length} bytes"
                )
            tokens.append(ScriptToken(opcode, script[index : index + size]))
            index += size
        return tokens

    @staticmethod
    def _read_length(script: bytes, index: int, width: int) -> tuple[int, int]:
        if index + width > len(script):
            raise ScriptDecodeError(f"truncated {width}-byte push length at offset {index}")
        return int.from_bytes(script[index : index + width], "little"), index + width

    def to_asm(self, script: bytes) -> str:
        """Render ``script`` the way block explorers show it."""

        parts: list[str] = []
        for token in self.decode(script):
            if token.is_push and token.opcode != OP_0:
                parts.append(token.data.hex())
            else:
                parts.append(OPCODE_NAMES.get(token.opcode, f"OP_UNKNOWN{token.opcode}"))
        return " ".join(parts)

    def from_asm(self, asm: str) -> bytes:
        """Assemble an ASM string; hex words become minimal pushes."""

        out = bytearray()
        for word in asm.split():
            opcode = OPCODES_BY_NAME.get(word.upper())
            if opcode is not None:
                out.append(opcode)
                continue
            try:
                data = bytes.fromhex(word)
            except ValueError as exc:
                raise ScriptDecodeError(f"unknown ASM word: {word}") from exc
            out += self.encode_push(data)
        return bytes(out)

    # Encoding -----------------------------------------------------------

    def encode_push(self, data: bytes) -> bytes:
        """Return the minimal push operation for ``data``."""

        size = len(data)
        if size == 0:
            return bytes([OP_0])
        if size == 1 and 1 <= data[0] <= 16:
            return bytes([OP_1 + data[0] - 1])
        if size == 1 and data[0] == 0x81:
            return bytes([OP_1NEGATE])
        if size < OP_PUSHDATA1:
            return bytes([size]) + data
        if size <= 0xFF:
            return bytes([OP_PUSHDATA1, size]) + data
        if size <= 0xFFFF:
            return bytes([OP_PUSHDATA2]) + size.to_bytes(2, "little") + data
        return bytes([OP_PUSHDATA4]) + size.to_bytes(4, "little") + data

    def encode_number(self, value: int) -> bytes:
        """Minimal little-endian sign-magnitude script number."""

        if value == 0:
            return b""
        negative = value < 0
        magnitude = abs(value)
        out = bytearray()
        while magnitude:
            out.append(magnitude & 0xFF)
            magnitude >>= 8
        if out[-1] & 0x80:
            out.append(0x80 if negative else 0x00)
        elif negative:
            out[-1] |= 0x80
        return bytes(out)

    def decode_number(self, data: bytes, max_length: int = MAX_SCRIPT_NUM_LENGTH) -> int:
        """Decode a minimally-encoded script number.

        Raises :class:`ScriptDecodeError` for oversized or non-minimal input.
        """

        if len(data) > max_length:
            raise ScriptDecodeError(f"script number of {len(data)} bytes exceeds {max_length}")
        if not data:
            return 0
        # The top byte may only be 0x00/0x80 when it is needed for the sign bit.
        if data[-1] & 0x7F == 0 and (len(data) == 1 or not data[-2] & 0x80):
            raise ScriptDecodeError(f"non-minimal script number: {data.hex()}")
        value = int.from_bytes(data, "little")
        if data[-1] & 0x80:
            return -(value & ~(0x80 << (8 * (len(data) - 1))))
        return value

    def encode_int_push(self, value: int) -> bytes:
        """Push ``value`` the way the CashScript compiler does."""

        return self.encode_push(self.encode_number(value))

    # Standard locking scripts ------------------------------------------

    def p2pkh_locking_script(self, pubkey_hash: bytes) -> bytes:
        if len(pubkey_hash) != 20:
            raise ValueError(f"P2PKH hash must be 20 bytes, got {len(pubkey_hash)}")
        return bytes([OP_DUP, OP_HASH160, 0x14]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])

    def p2sh_locking_script(self, script_hash: bytes) -> bytes:
        if len(script_hash) != 20:
            raise ValueError(f"P2SH hash must be 20 bytes, got {len(script_hash)}")
        return bytes([OP_HASH160, 0x14]) + script_hash + bytes([OP_EQUAL])

    def is_p2sh(self, script: bytes) -> bool:
        return (
            len(script) == 23
            and script[0] == OP_HASH160
            and script[1] == 0x14
            and script[22] == OP_EQUAL
        )

    def is_p2pkh(self, script: bytes) -> bool:
        return (
            len(script) == 25
            and script[0] == OP_DUP
            and script[1] == OP_HASH160
            and script[2] == 0x14
            and script[23] == OP_EQUALVERIFY
            and script[24] == OP_CHECKSIG
        )


DEFAULT_CODEC = ScriptCodec()


__all__ = [
    "DEFAULT_CODEC",
    "OPCODE_NAMES",
    "ScriptCodec",
    "ScriptDecodeError",
    "ScriptToken",
    "hash160",
]
