from __future__ import annotations

import pytest

from builders import MockElectrum, build_genesis, build_token_genesis, commit_tx, reveal_tx
from crc20_bch import cashaddr
from crc20_bch.electrum_client import ElectrumTransportError, UpstreamDataError
from crc20_bch.model import TokenRecord, Trust
from crc20_bch.resolver import TokenResolver, color_trust, symbol_address
from crc20_bch.script import hash160

CATEGORY = "aa" * 32
REVEAL = "bb" * 32
OTHER_CATEGORY = "cc" * 32
OTHER_REVEAL = "dd" * 32


def _foo_chain(**reveal_kwargs) -> tuple[MockElectrum, str]:
    genesis = build_token_genesis("FOO", 8, "Foo Token")
    electrum = MockElectrum()
    electrum.transactions[CATEGORY] = commit_tx(CATEGORY, genesis.locking_script)
    electrum.transactions[REVEAL] = reveal_tx(
        REVEAL, CATEGORY, genesis.unlocking_script, "FOO", **reveal_kwargs
    )
    electrum.unspent[symbol_address("FOO")] = [
        {"tx_hash": REVEAL, "tx_pos": 0, "height": 800_000, "value": 800},
    ]
    p2sh = cashaddr.p2sh_address(genesis.locking_script[2:22])
    electrum.histories[p2sh] = [
        {"tx_hash": CATEGORY, "height": 799_999},
        {"tx_hash": REVEAL, "height": 800_000},
    ]
    return electrum, p2sh


def _record(category: str, confirmations: int, symbol: str = "X") -> TokenRecord:
    return TokenRecord(
        symbol=symbol,
        category=category,
        name="",
        decimals=0,
        mint_amount=None,
        reveal_height=1,
        reveal_txid="00" * 32,
        reveal_confirmations=confirmations,
        total_supply=1,
    )


def test_symbol_address_is_p2pkh_of_symbol_hash() -> None:
    expected = cashaddr.p2pkh_address(hash160(b"FOO"))

    assert symbol_address("FOO") == expected
    assert symbol_address("FOO", cashaddr.TESTNET_PREFIX).startswith("bchtest:q")


def test_resolve_by_symbol_returns_verified_record() -> None:
    electrum, _ = _foo_chain(mint_amount=10_000)

    records = TokenResolver(electrum).resolve_by_symbol("FOO")

    assert records == [
        TokenRecord(
            symbol="FOO",
            category=CATEGORY,
            name="Foo Token",
            decimals=8,
            mint_amount=10_000,
            reveal_height=800_000,
            reveal_txid=REVEAL,
            reveal_confirmations=15,
            total_supply=21_000_000,
        )
    ]


def test_resolve_by_symbol_skips_outputs_other_than_zero() -> None:
    electrum, _ = _foo_chain()
    electrum.unspent[symbol_address("FOO")].append(
        {"tx_hash": OTHER_REVEAL, "tx_pos": 1, "height": 800_001, "value": 800}
    )

    records = TokenResolver(electrum).resolve_by_symbol("FOO")

    assert [record.category for record in records] == [CATEGORY]
    assert ("get_raw_transaction", OTHER_REVEAL) not in electrum.calls


def test_resolve_by_symbol_deduplicates_categories() -> None:
    electrum, _ = _foo_chain()
    electrum.unspent[symbol_address("FOO")].append(
        {"tx_hash": REVEAL, "tx_pos": 0, "height": 800_000, "value": 800}
    )

    assert len(TokenResolver(electrum).resolve_by_symbol("FOO")) == 1


def test_resolve_by_symbol_requires_matching_symbol() -> None:
    electrum, _ = _foo_chain()
    electrum.unspent[symbol_address("BAR")] = electrum.unspent[symbol_address("FOO")]

    assert TokenResolver(electrum).resolve_by_symbol("BAR") == []


def test_resolve_by_symbol_ignores_spoofed_reveal() -> None:
    electrum, _ = _foo_chain()
    genuine = build_token_genesis("FOO", 8, "Foo Token")
    spoof = build_genesis(genuine.pubkey, b"FOO\x12Fake Token", 3)
    electrum.transactions[REVEAL] = reveal_tx(REVEAL, CATEGORY, spoof.unlocking_script, "FOO")

    assert TokenResolver(electrum).resolve_by_symbol("FOO") == []


def test_resolve_by_symbol_without_utxos_is_empty() -> None:
    assert TokenResolver(MockElectrum()).resolve_by_symbol("NOPE") == []


def test_resolve_by_symbol_defaults_missing_confirmations_to_zero() -> None:
    electrum, _ = _foo_chain(confirmations=None)

    (record,) = TokenResolver(electrum).resolve_by_symbol("FOO")

    assert record.reveal_confirmations == 0
    assert record.mint_amount is None


def test_collaborator_failure_is_not_reported_as_absence() -> None:
    electrum, _ = _foo_chain()

    def broken(txid: str, verbose: bool = True) -> dict:
        raise ElectrumTransportError("connection reset")

    electrum.get_raw_transaction = broken

    with pytest.raises(ElectrumTransportError):
        TokenResolver(electrum).resolve_by_symbol("FOO")


@pytest.mark.parametrize("amount", ["lots", None, -5, True])
def test_malformed_token_amount_raises_upstream_error(amount) -> None:
    electrum, _ = _foo_chain(amount=amount)

    with pytest.raises(UpstreamDataError):
        TokenResolver(electrum).resolve_by_symbol("FOO")


def test_malformed_utxo_listing_raises_upstream_error() -> None:
    electrum, _ = _foo_chain()
    electrum.unspent[symbol_address("FOO")] = [{"tx_hash": REVEAL}]

    with pytest.raises(UpstreamDataError):
        TokenResolver(electrum).resolve_by_symbol("FOO")


def test_resolve_by_category_walks_p2sh_history() -> None:
    electrum, p2sh = _foo_chain()

    record = TokenResolver(electrum).resolve_by_category(CATEGORY)

    assert record is not None
    assert record.symbol == "FOO"
    assert record.category == CATEGORY
    assert record.reveal_txid == REVEAL
    assert record.reveal_height == 800_000
    assert ("get_history", p2sh) in electrum.calls


def test_resolve_by_category_without_reveal_is_none() -> None:
    electrum, p2sh = _foo_chain()
    electrum.histories[p2sh] = [{"tx_hash": CATEGORY, "height": 799_999}]

    assert TokenResolver(electrum).resolve_by_category(CATEGORY) is None


def test_resolve_by_category_with_undecodable_claim_is_none() -> None:
    electrum, _ = _foo_chain()
    other = build_token_genesis("FOO", 8, "Foo Token", secret=99)
    electrum.transactions[REVEAL] = reveal_tx(REVEAL, CATEGORY, other.unlocking_script, "FOO")

    assert TokenResolver(electrum).resolve_by_category(CATEGORY) is None


def test_resolve_by_category_requires_p2sh_genesis_output() -> None:
    electrum = MockElectrum()
    electrum.transactions[OTHER_CATEGORY] = {
        "txid": OTHER_CATEGORY,
        "vin": [],
        "vout": [{"n": 0, "scriptPubKey": {"hex": "76a914" + "00" * 20 + "88ac"}}],
    }

    assert TokenResolver(electrum).resolve_by_category(OTHER_CATEGORY) is None
    assert not any(call[0] == "get_history" for call in electrum.calls)


def test_color_trust_prefers_first_confirmed_record() -> None:
    records = [_record("c1", 3), _record("c2", 15), _record("c3", 7)]

    colors = color_trust(records)

    assert colors == {"c1": Trust.CONFLICTING, "c2": Trust.CONFIRMED, "c3": Trust.CONFLICTING}


def test_color_trust_without_confirmed_record_is_unconfirmed() -> None:
    colors = color_trust([_record("c1", 3), _record("c2", 7)])

    assert colors == {"c1": Trust.UNCONFIRMED, "c2": Trust.UNCONFIRMED}
    assert colors["c1"].color == "yellow"


def test_color_trust_groups_by_symbol() -> None:
    records = [_record("a1", 12, "A"), _record("a2", 40, "A"), _record("b1", 2, "B")]

    colors = color_trust(records)

    assert colors["a1"] is Trust.CONFIRMED
    assert colors["a2"] is Trust.CONFLICTING
    assert colors["b1"] is Trust.UNCONFIRMED
    assert Trust.CONFIRMED.color == "green"
    assert Trust.CONFLICTING.color == "red"


def test_resolve_by_category_accepts_uppercase_txid() -> None:
    electrum, _ = _foo_chain()

    record = TokenResolver(electrum).resolve_by_category(CATEGORY.upper())

    assert record is not None
    assert record.category == CATEGORY
