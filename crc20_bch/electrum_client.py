"""Electrum protocol client for Fulcrum-style Bitcoin Cash indexers.

The client speaks JSON-RPC over a single WebSocket. The socket is opened on
first use (or explicitly via :meth:`ElectrumClient.connect`), negotiated once
with ``server.version`` and then reused for every request until
:meth:`ElectrumClient.close`. Requests are serialized by a lock so one client
can be shared between threads; responses are matched on their id.
"""

from __future__ import annotations

import itertools
import json
import logging
import threading
from typing import Any, Dict, List, Optional

from websockets.exceptions import WebSocketException
from websockets.sync.client import ClientConnection, connect

from .config import ElectrumConfig

logger = logging.getLogger(__name__)


class CollaboratorError(RuntimeError):
    """Base class for failures of the indexing service or its data."""


class ElectrumError(CollaboratorError):
    """Raised when the Electrum server answers with an error object."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"Electrum error {code}: {message}")
        self.code = code
        self.message = message


class ElectrumTransportError(CollaboratorError):
    """Raised when the server is unreachable or returns malformed frames."""


class UpstreamDataError(CollaboratorError):
    """Raised when a well-formed response lacks the data we rely on."""


class ElectrumClient:
    """Thin Electrum protocol client.

    Each helper maps directly onto an Electrum method and returns the parsed
    ``result``. The client owns exactly one connection; callers share the
    client object rather than reconnecting.
    """

    def __init__(self, config: ElectrumConfig) -> None:
        self.config = config
        self._connection: ClientConnection | None = None
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.server_version: Any = None

    def __enter__(self) -> "ElectrumClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        return self._connection is not None

    def connect(self) -> None:
        """Open the WebSocket and negotiate the protocol version if needed."""

        with self._lock:
            self._ensure_connected()

    def close(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            try:
                self._connection.close()
            except (OSError, WebSocketException) as exc:  # pragma: no cover - best effort
                logger.debug("Ignoring error while closing Electrum socket: %s", exc)
            finally:
                self._connection = None

    def _ensure_connected(self) -> ClientConnection:
        if self._connection is not None:
            return self._connection
        url = self.config.url
        logger.debug("Connecting to Electrum server %s", url)
        try:
            connection = connect(
                url,
                open_timeout=self.config.timeout,
                close_timeout=self.config.timeout,
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            logger.error(
                "Electrum connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise ElectrumTransportError(
                f"Could not connect to Electrum server {url}. Check CRC20_ELECTRUM_* variables "
                "(or ~/.crc20.yaml) and that the server accepts WebSocket connections."
            ) from exc
        self._connection = connection
        try:
            self.server_version = self._exchange(
                "server.version", [self.config.client_name, self.config.protocol_version]
            )
        except CollaboratorError:
            self._drop_connection()
            raise
        logger.debug("Electrum server version: %s", self.server_version)
        return connection

    def _drop_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                connection.close()
            except (OSError, WebSocketException):  # pragma: no cover - best effort
                pass

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request over the shared connection."""

        with self._lock:
            self._ensure_connected()
            return self._exchange(method, params or [])

    def _exchange(self, method: str, params: list[Any]) -> Any:
        connection = self._connection
        if connection is None:
            raise ElectrumTransportError(f"Electrum request {method} issued without a connection")
        request_id = next(self._ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        logger.debug("Electrum call %s params=%s", method, params)
        try:
            connection.send(json.dumps(payload))
            while True:
                frame = connection.recv(timeout=self.config.timeout)
                message = self._decode_frame(frame)
                if message.get("id") == request_id:
                    break
                # Subscription notifications carry no id.
                logger.debug("Skipping unrelated Electrum message: %s", message.get("method"))
        except (OSError, TimeoutError, WebSocketException) as exc:
            self._drop_connection()
            logger.error(
                "Electrum %s failed: %s",
                method,
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise ElectrumTransportError(f"Electrum request {method} failed: {exc}") from exc

        error = message.get("error")
        if error:
            if isinstance(error, dict):
                raise ElectrumError(_error_code(error.get("code")), str(error.get("message", "unknown")))
            raise ElectrumError(-1, str(error))
        return message.get("result")

    @staticmethod
    def _decode_frame(frame: str | bytes) -> Dict[str, Any]:
        try:
            message = json.loads(frame)
        except (TypeError, ValueError) as exc:
            logger.debug("Electrum JSON parse error: %r", frame, exc_info=True)
            raise ElectrumTransportError("Electrum server returned malformed JSON") from exc
        if not isinstance(message, dict):
            raise ElectrumTransportError("Electrum server returned a non-object JSON message")
        return message

    # Convenience wrappers -------------------------------------------------

    def get_raw_transaction(self, txid: str, verbose: bool = True) -> Any:
        return self.call("blockchain.transaction.get", [txid, verbose])

    def list_unspent(self, address: str) -> List[Dict[str, Any]]:
        return self.call("blockchain.address.listunspent", [address])

    def get_history(self, address: str) -> List[Dict[str, Any]]:
        return self.call("blockchain.address.get_history", [address])


def _error_code(raw: Any) -> int:
    if isinstance(raw, bool):
        return -1
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.debug("Electrum error carried a non-numeric code: %r", raw)
        return -1


__all__ = [
    "CollaboratorError",
    "ElectrumClient",
    "ElectrumError",
    "ElectrumTransportError",
    "UpstreamDataError",
]
