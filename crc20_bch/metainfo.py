"""Decode the ``metainfo`` blob committed by a CRC20 genesis covenant."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetaInfo:
    symbol: str
    decimals: int
    name: str


def extract_meta_info(metadata: bytes, symbol_length: int) -> MetaInfo | None:
    """Split ``metadata`` into symbol, decimals and name.

    The layout is ``symbol || decimals || name`` where the symbol is exactly
    ``symbol_length`` bytes, decimals is one unsigned byte and the name is
    whatever remains. Returns ``None`` when the blob is too short to hold the
    symbol and the decimals byte. Invalid UTF-8 is replaced, never raised.
    """

    if symbol_length < 0 or len(metadata) < symbol_length + 1:
        logger.debug(
            "metainfo of %d bytes too short for symbol length %d", len(metadata), symbol_length
        )
        return None
    symbol = metadata[:symbol_length].decode("utf-8", errors="replace")
    decimals = metadata[symbol_length]
    name = metadata[symbol_length + 1 :].decode("utf-8", errors="replace")
    return MetaInfo(symbol=symbol, decimals=decimals, name=name)


def encode_meta_info(symbol: str, decimals: int, name: str = "") -> tuple[bytes, int]:
    """Build a metainfo blob and return it with its symbol length."""

    symbol_bytes = symbol.encode("utf-8")
    if not symbol_bytes:
        raise ValueError("symbol must not be empty")
    if not 0 <= decimals <= 0xFF:
        raise ValueError(f"decimals must fit in one byte, got {decimals}")
    return symbol_bytes + bytes([decimals]) + name.encode("utf-8"), len(symbol_bytes)


__all__ = ["MetaInfo", "encode_meta_info", "extract_meta_info"]
