from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from crc20_bch.covenant import CovenantAddressDeriver
from crc20_bch.metainfo import encode_meta_info
from crc20_bch.script import DEFAULT_CODEC, hash160

FAKE_SIGNATURE = bytes.fromhex("30" * 64 + "41")


def uncompressed_pubkey(secret: int) -> bytes:
    key = ec.derive_private_key(secret, ec.SECP256K1())
    return key.public_key().public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def compressed_pubkey(secret: int) -> bytes:
    key = ec.derive_private_key(secret, ec.SECP256K1())
    return key.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint)


@dataclass
class GenesisScripts:
    pubkey: bytes
    metadata: bytes
    symbol_length: int
    redeem_script: bytes
    locking_script: bytes
    unlocking_script: bytes


def build_genesis(pubkey: bytes, metadata: bytes, symbol_length: int) -> GenesisScripts:
    """Instantiate the covenant and spend it with a placeholder signature."""

    deriver = CovenantAddressDeriver()
    redeem_script = deriver.redeem_script(pubkey, metadata, symbol_length)
    unlocking_script = DEFAULT_CODEC.encode_push(FAKE_SIGNATURE) + DEFAULT_CODEC.encode_push(redeem_script)
    return GenesisScripts(
        pubkey=pubkey,
        metadata=metadata,
        symbol_length=symbol_length,
        redeem_script=redeem_script,
        locking_script=deriver.locking_script(pubkey, metadata, symbol_length),
        unlocking_script=unlocking_script,
    )


def build_token_genesis(symbol: str, decimals: int, name: str, secret: int = 1234) -> GenesisScripts:
    metadata, symbol_length = encode_meta_info(symbol, decimals, name)
    return build_genesis(uncompressed_pubkey(secret), metadata, symbol_length)


@dataclass
class MockElectrum:
    """In-memory stand-in for :class:`crc20_bch.electrum_client.ElectrumClient`."""

    transactions: dict[str, dict] = field(default_factory=dict)
    unspent: dict[str, list[dict]] = field(default_factory=dict)
    histories: dict[str, list[dict]] = field(default_factory=dict)
    calls: list[tuple[str, Any]] = field(default_factory=list)

    def get_raw_transaction(self, txid: str, verbose: bool = True) -> dict:
        self.calls.append(("get_raw_transaction", txid))
        return self.transactions[txid]

    def list_unspent(self, address: str) -> list[dict]:
        self.calls.append(("list_unspent", address))
        return self.unspent.get(address, [])

    def get_history(self, address: str) -> list[dict]:
        self.calls.append(("get_history", address))
        return self.histories.get(address, [])


def commit_tx(txid: str, locking_script: bytes) -> dict:
    return {
        "txid": txid,
        "confirmations": 20,
        "vin": [{"txid": "ee" * 32, "vout": 1, "scriptSig": {"hex": ""}}],
        "vout": [
            {"n": 0, "value": 0.00001, "scriptPubKey": {"hex": locking_script.hex(), "type": "scripthash"}},
        ],
    }


def reveal_tx(
    txid: str,
    category: str,
    unlocking_script: bytes,
    symbol: str,
    *,
    amount: Any = "21000000",
    confirmations: int | None = 15,
    mint_amount: int | None = None,
) -> dict:
    symbol_lock = DEFAULT_CODEC.p2pkh_locking_script(hash160(symbol.encode("utf-8")))
    outputs: list[dict] = [
        {
            "n": 0,
            "value": 0.00000800,
            "scriptPubKey": {"hex": symbol_lock.hex(), "type": "pubkeyhash"},
            "tokenData": {"category": category, "amount": amount},
        },
        {"n": 1, "value": 0.1, "scriptPubKey": {"hex": "76a914" + "11" * 20 + "88ac", "type": "pubkeyhash"}},
    ]
    if mint_amount is not None:
        outputs.append(
            {
                "n": 2,
                "value": 0,
                "scriptPubKey": {"hex": "6a08" + mint_amount.to_bytes(8, "big").hex(), "type": "nulldata"},
            }
        )
    tx: dict[str, Any] = {
        "txid": txid,
        "vin": [{"txid": category, "vout": 0, "scriptSig": {"hex": unlocking_script.hex()}}],
        "vout": outputs,
    }
    if confirmations is not None:
        tx["confirmations"] = confirmations
    return tx
