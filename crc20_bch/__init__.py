"""CRC20 token metadata resolver for Bitcoin Cash."""

from .covenant import (
    REVEAL_BYTECODE,
    CovenantAddressDeriver,
    CovenantParameters,
    InvalidParameterError,
)
from .electrum_client import (
    CollaboratorError,
    ElectrumClient,
    ElectrumError,
    ElectrumTransportError,
    UpstreamDataError,
)
from .genesis import GenesisInspection, GenesisOutputParser, Rejection
from .metainfo import MetaInfo, encode_meta_info, extract_meta_info
from .model import TokenRecord, Trust
from .resolver import TokenResolver, color_trust, symbol_address
from .script import ScriptCodec, ScriptDecodeError, ScriptToken, hash160

__all__ = [
    "CollaboratorError",
    "CovenantAddressDeriver",
    "CovenantParameters",
    "ElectrumClient",
    "ElectrumError",
    "ElectrumTransportError",
    "GenesisInspection",
    "GenesisOutputParser",
    "InvalidParameterError",
    "MetaInfo",
    "REVEAL_BYTECODE",
    "Rejection",
    "ScriptCodec",
    "ScriptDecodeError",
    "ScriptToken",
    "TokenRecord",
    "TokenResolver",
    "Trust",
    "UpstreamDataError",
    "color_trust",
    "encode_meta_info",
    "extract_meta_info",
    "hash160",
    "symbol_address",
]
