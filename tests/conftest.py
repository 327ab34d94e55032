from __future__ import annotations

import pytest

from builders import uncompressed_pubkey


@pytest.fixture
def pubkey() -> bytes:
    return uncompressed_pubkey(0xC0FFEE)
