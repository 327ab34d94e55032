from __future__ import annotations

import pytest

from crc20_bch.script import (
    OP_1,
    OP_16,
    ScriptCodec,
    ScriptDecodeError,
    ScriptToken,
    hash160,
)

codec = ScriptCodec()


def test_hash160_of_empty_input() -> None:
    assert hash160(b"").hex() == "b472a266d0bd89c13706a4132ccfb16f7c3b9fcb"


def test_encode_push_small_literal() -> None:
    data = b"x" * 10

    assert codec.encode_push(data) == b"\x0a" + data


def test_encode_push_op_pushdata1() -> None:
    data = b"x" * 100

    encoded = codec.encode_push(data)

    assert encoded.startswith(b"\x4c\x64")
    assert len(encoded) == 2 + len(data)


def test_encode_push_op_pushdata2() -> None:
    data = b"x" * 300

    encoded = codec.encode_push(data)

    assert encoded.startswith(b"\x4d")
    assert encoded[1:3] == len(data).to_bytes(2, "little")


def test_encode_push_uses_small_int_opcodes() -> None:
    assert codec.encode_push(b"") == b"\x00"
    assert codec.encode_push(b"\x01") == bytes([OP_1])
    assert codec.encode_push(b"\x10") == bytes([OP_16])
    assert codec.encode_push(b"\x81") == b"\x4f"
    assert codec.encode_push(b"\x11") == b"\x01\x11"


def test_decode_splits_pushes_and_opcodes() -> None:
    script = bytes.fromhex("76a914" + "ab" * 20 + "88ac")

    tokens = codec.decode(script)

    assert [token.opcode for token in tokens] == [0x76, 0xA9, 0x14, 0x88, 0xAC]
    assert tokens[2].data == b"\xab" * 20
    assert not tokens[0].is_push


def test_decode_handles_pushdata_lengths() -> None:
    payload = b"y" * 300
    script = codec.encode_push(payload) + codec.encode_push(b"z" * 80)

    tokens = codec.decode(script)

    assert [token.data for token in tokens] == [payload, b"z" * 80]


def test_decode_marks_op_0_as_empty_push() -> None:
    tokens = codec.decode(b"\x00\x51")

    assert tokens[0] == ScriptToken(0x00, b"")
    assert tokens[1].data is None
    assert tokens[1].small_int == 1


@pytest.mark.parametrize(
    "script_hex",
    ["05aabb", "4c", "4c05aa", "4d0100", "4e01000000"],
)
def test_decode_rejects_truncated_pushes(script_hex: str) -> None:
    with pytest.raises(ScriptDecodeError):
        codec.decode(bytes.fromhex(script_hex))


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (b"", 0),
        (b"\x11", 17),
        (b"\x7f", 127),
        (b"\x80\x00", 128),
        (b"\xff\x00", 255),
        (b"\x00\x01", 256),
        (b"\x81", -1),
        (b"\xff\x80", -255),
    ],
)
def test_decode_number(data: bytes, expected: int) -> None:
    assert codec.decode_number(data) == expected
    assert codec.encode_number(expected) == data


@pytest.mark.parametrize("data", [b"\x00", b"\x80", b"\x11\x00", b"\x01\x00\x00", b"\x01\x02\x03\x04\x05"])
def test_decode_number_rejects_non_minimal_or_oversized(data: bytes) -> None:
    with pytest.raises(ScriptDecodeError):
        codec.decode_number(data)


def test_asm_round_trip() -> None:
    asm = "OP_HASH160 " + "cd" * 20 + " OP_EQUAL"

    script = codec.from_asm(asm)

    assert codec.is_p2sh(script)
    assert codec.to_asm(script) == asm


def test_from_asm_rejects_unknown_words() -> None:
    with pytest.raises(ScriptDecodeError):
        codec.from_asm("OP_DUP OP_NOT_A_THING")


def test_standard_locking_scripts_classify() -> None:
    digest = hash160(b"FOO")

    assert codec.is_p2pkh(codec.p2pkh_locking_script(digest))
    assert codec.is_p2sh(codec.p2sh_locking_script(digest))
    assert not codec.is_p2sh(codec.p2pkh_locking_script(digest))
    with pytest.raises(ValueError):
        codec.p2sh_locking_script(b"\x00" * 19)
