"""Resolve CRC20 tokens by symbol or category.

The ``GenesisOutput`` covenant forces the reveal transaction to pay its
output #0 to the P2PKH address of ``hash160(symbol)``. That address is used
as a search index: every unspent output #0 sitting on it is a candidate
reveal. Each candidate is only reported after the genesis parser has
verified the covenant parameters against the commit transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from . import cashaddr
from .electrum_client import ElectrumClient, UpstreamDataError
from .genesis import GenesisOutputParser
from .metainfo import MetaInfo, extract_meta_info
from .model import TokenRecord, Trust
from .script import DEFAULT_CODEC, hash160

logger = logging.getLogger(__name__)

CONFIRMATION_THRESHOLD = 10


@dataclass(frozen=True)
class RevealMatch:
    """A verified genesis claim found inside a reveal transaction."""

    category: str
    meta: MetaInfo
    mint_amount: Optional[int]
    confirmations: int
    total_supply: int


def symbol_address(symbol: str, prefix: str = cashaddr.MAINNET_PREFIX) -> str:
    """Return the P2PKH lookup address for ``symbol``."""

    return cashaddr.p2pkh_address(hash160(symbol.encode("utf-8")), prefix)


class TokenResolver:
    """Look up verified CRC20 token records through an Electrum client."""

    def __init__(
        self,
        client: ElectrumClient,
        prefix: str = cashaddr.MAINNET_PREFIX,
        parser: GenesisOutputParser | None = None,
    ) -> None:
        self.client = client
        self.prefix = prefix
        self.parser = parser or GenesisOutputParser()

    def get_transaction(self, txid: str) -> Dict[str, Any]:
        tx = self.client.get_raw_transaction(txid, verbose=True)
        if not isinstance(tx, dict):
            raise UpstreamDataError(f"transaction {txid} was not returned in verbose form")
        return tx

    def resolve_by_symbol(self, symbol: str) -> List[TokenRecord]:
        """Return every verified token revealed under ``symbol``."""

        address = symbol_address(symbol, self.prefix)
        logger.debug("Symbol %r maps to lookup address %s", symbol, address)
        utxos = self.client.list_unspent(address)
        if not isinstance(utxos, list):
            raise UpstreamDataError(f"listunspent for {address} did not return a list")

        records: List[TokenRecord] = []
        seen: set[str] = set()
        for utxo in utxos:
            if _require_int(utxo, "tx_pos") != 0:
                continue
            reveal_txid = _require_str(utxo, "tx_hash")
            tx = self.get_transaction(reveal_txid)
            match = self._find_reveal(tx, symbol=symbol)
            if match is None or match.category in seen:
                continue
            seen.add(match.category)
            records.append(
                _build_record(match, reveal_height=_require_int(utxo, "height"), reveal_txid=reveal_txid)
            )
        if not records:
            logger.info("Symbol %s is not a CRC20 token", symbol)
        return records

    def resolve_by_category(self, category: str) -> TokenRecord | None:
        """Return the verified token for ``category`` or ``None``."""

        category = category.strip().lower()
        commit_tx = self.get_transaction(category)
        locking_script = _output_script(commit_tx, 0)
        if locking_script is None or not DEFAULT_CODEC.is_p2sh(locking_script):
            logger.debug("Category %s output #0 is not P2SH", category)
            return None
        address = cashaddr.p2sh_address(locking_script[2:22], self.prefix)

        history = self.client.get_history(address)
        if not isinstance(history, list):
            raise UpstreamDataError(f"get_history for {address} did not return a list")
        for entry in history:
            tx = self.get_transaction(_require_str(entry, "tx_hash"))
            if not any(vin.get("txid") == category for vin in _inputs(tx)):
                continue
            match = self._find_reveal(tx, category=category)
            if match is None:
                continue
            if match.category != category:
                return None
            return _build_record(
                match,
                reveal_height=_require_int(entry, "height"),
                reveal_txid=_require_str(tx, "txid"),
            )
        return None

    def _find_reveal(
        self,
        tx: Dict[str, Any],
        *,
        symbol: Optional[str] = None,
        category: Optional[str] = None,
    ) -> RevealMatch | None:
        """Find a token output of ``tx`` whose genesis input verifies."""

        mint_amount = _mint_amount(tx)
        inputs = _inputs(tx)
        for vout in _outputs(tx):
            token_data = vout.get("tokenData")
            if not isinstance(token_data, dict):
                continue
            token_category = _require_str(token_data, "category")
            if category is not None and token_category != category:
                continue
            for vin in inputs:
                if vin.get("txid") != token_category or vin.get("vout") != 0:
                    continue
                meta = self._verify_genesis_input(token_category, vin)
                if meta is None:
                    continue
                if symbol is not None and meta.symbol != symbol:
                    logger.debug(
                        "Category %s reveals symbol %r, not %r", token_category, meta.symbol, symbol
                    )
                    continue
                return RevealMatch(
                    category=token_category,
                    meta=meta,
                    mint_amount=mint_amount,
                    confirmations=_optional_int(tx, "confirmations") or 0,
                    total_supply=_token_amount(token_data),
                )
        return None

    def _verify_genesis_input(self, category: str, vin: Dict[str, Any]) -> MetaInfo | None:
        commit_tx = self.get_transaction(category)
        locking_hex = _output_script_hex(commit_tx, 0)
        script_sig = vin.get("scriptSig")
        unlocking_hex = script_sig.get("hex") if isinstance(script_sig, dict) else None
        if locking_hex is None or not isinstance(unlocking_hex, str):
            return None
        inspection = self.parser.inspect_hex(locking_hex, unlocking_hex)
        if not inspection.accepted:
            logger.debug("Genesis of %s rejected: %s", category, inspection.rejection.value)
            return None
        parameters = inspection.parameters
        return extract_meta_info(parameters.metadata, parameters.symbol_length)


def color_trust(
    records: Iterable[TokenRecord], threshold: int = CONFIRMATION_THRESHOLD
) -> Dict[str, Trust]:
    """Classify each category against the others sharing its symbol.

    Per symbol, the first record (in the given order) with at least
    ``threshold`` confirmations is canonical. Until one exists, every
    category of that symbol is unconfirmed.
    """

    by_symbol: Dict[str, List[TokenRecord]] = {}
    for record in records:
        by_symbol.setdefault(record.symbol, []).append(record)

    colors: Dict[str, Trust] = {}
    for group in by_symbol.values():
        canonical = next(
            (record.category for record in group if record.reveal_confirmations >= threshold),
            None,
        )
        for record in group:
            if canonical is None:
                colors[record.category] = Trust.UNCONFIRMED
            elif record.category == canonical:
                colors[record.category] = Trust.CONFIRMED
            else:
                colors[record.category] = Trust.CONFLICTING
    return colors


def _build_record(match: RevealMatch, *, reveal_height: int, reveal_txid: str) -> TokenRecord:
    return TokenRecord(
        symbol=match.meta.symbol,
        category=match.category,
        name=match.meta.name,
        decimals=match.meta.decimals,
        mint_amount=match.mint_amount,
        reveal_height=reveal_height,
        reveal_txid=reveal_txid,
        reveal_confirmations=match.confirmations,
        total_supply=match.total_supply,
    )


def _mint_amount(tx: Dict[str, Any]) -> Optional[int]:
    """Per-mint release amount carried by an 8-byte OP_RETURN in output #2."""

    outputs = _outputs(tx)
    if len(outputs) != 3:
        return None
    script_pub_key = outputs[2].get("scriptPubKey") or {}
    script_hex = script_pub_key.get("hex")
    if script_pub_key.get("type") != "nulldata" or not isinstance(script_hex, str):
        return None
    if len(script_hex) != 20 or not script_hex.lower().startswith("6a08"):
        return None
    try:
        return int.from_bytes(bytes.fromhex(script_hex[4:]), "big")
    except ValueError:
        return None


def _inputs(tx: Dict[str, Any]) -> List[Dict[str, Any]]:
    inputs = tx.get("vin", [])
    if not isinstance(inputs, list):
        raise UpstreamDataError("transaction vin is not a list")
    return [vin for vin in inputs if isinstance(vin, dict)]


def _outputs(tx: Dict[str, Any]) -> List[Dict[str, Any]]:
    outputs = tx.get("vout", [])
    if not isinstance(outputs, list):
        raise UpstreamDataError("transaction vout is not a list")
    return [vout for vout in outputs if isinstance(vout, dict)]


def _output_script_hex(tx: Dict[str, Any], index: int) -> Optional[str]:
    outputs = _outputs(tx)
    if len(outputs) <= index:
        return None
    script_hex = (outputs[index].get("scriptPubKey") or {}).get("hex")
    return script_hex if isinstance(script_hex, str) else None


def _output_script(tx: Dict[str, Any], index: int) -> Optional[bytes]:
    script_hex = _output_script_hex(tx, index)
    if script_hex is None:
        return None
    try:
        return bytes.fromhex(script_hex)
    except ValueError:
        return None


def _token_amount(token_data: Dict[str, Any]) -> int:
    raw = token_data.get("amount", 0)
    if isinstance(raw, bool):
        raise UpstreamDataError(f"token amount is not an integer: {raw!r}")
    try:
        amount = int(raw)
    except (TypeError, ValueError) as exc:
        raise UpstreamDataError(f"token amount is not an integer: {raw!r}") from exc
    if amount < 0:
        raise UpstreamDataError(f"token amount is negative: {raw!r}")
    return amount


def _require_str(mapping: Any, key: str) -> str:
    value = mapping.get(key) if isinstance(mapping, dict) else None
    if not isinstance(value, str):
        raise UpstreamDataError(f"expected string field {key!r} in {mapping!r}")
    return value


def _require_int(mapping: Any, key: str) -> int:
    value = _optional_int(mapping, key)
    if value is None:
        raise UpstreamDataError(f"expected integer field {key!r} in {mapping!r}")
    return value


def _optional_int(mapping: Any, key: str) -> Optional[int]:
    value = mapping.get(key) if isinstance(mapping, dict) else None
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise UpstreamDataError(f"field {key!r} is not an integer: {value!r}")
    return value


__all__ = [
    "CONFIRMATION_THRESHOLD",
    "RevealMatch",
    "TokenResolver",
    "color_trust",
    "symbol_address",
]
