"""Records describing resolved CRC20 tokens.

A symbol is only a lookup key: anyone can reveal a token with an already
used symbol, so several records may share one. The category (the commit
transaction id) is the token's identity.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from typing import Any


class Trust(enum.Enum):
    """How much a category can be relied on for its symbol."""

    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    CONFLICTING = "conflicting"

    @property
    def color(self) -> str:
        return _TRUST_COLORS[self]


_TRUST_COLORS = {
    Trust.CONFIRMED: "green",
    Trust.UNCONFIRMED: "yellow",
    Trust.CONFLICTING: "red",
}


@dataclass(frozen=True)
class TokenRecord:
    """One verified genesis reveal."""

    symbol: str
    category: str
    name: str
    decimals: int
    mint_amount: int | None
    reveal_height: int
    reveal_txid: str
    reveal_confirmations: int
    total_supply: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
