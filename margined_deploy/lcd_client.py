"""
Margined Deploy - LCD Client

REST client for Cosmos SDK / wasmd nodes (LCD gateway).

Responsibilities:
  - Account number / sequence lookup before every transaction
  - Gas simulation, broadcast, and polling until inclusion
  - Smart contract queries, bank balances, block height

LCD endpoints are usually load balanced, so a query fired right after a
broadcast may land on a replica that has not seen the new block yet. Every
confirmed broadcast is followed by `settle_delay` seconds of sleep.
"""

import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar

import requests

from .chain_types import Account, ChainEndpoint, Coin, TransactionResult

log = logging.getLogger(__name__)

T = TypeVar("T")

# gRPC status the gateway reports for unknown accounts and transactions
GRPC_NOT_FOUND = 5


class NetworkError(Exception):
    """Endpoint unreachable, timed out, or returned a malformed response."""
    def __init__(self, message: str, txhash: str = ""):
        self.txhash = txhash
        super().__init__(message)


class ChainError(Exception):
    """The chain (or a contract) rejected the request."""
    def __init__(self, code: int, codespace: str, raw_log: str, txhash: str = ""):
        self.code = code
        self.codespace = codespace
        self.raw_log = raw_log
        self.txhash = txhash
        super().__init__(f"Chain error {codespace or '-'}/{code}: {raw_log}")

    @classmethod
    def from_result(cls, result: TransactionResult) -> "ChainError":
        return cls(result.code, result.codespace, result.raw_log, result.txhash)


def _reports_not_found(body: Any) -> bool:
    """True when a 404 body is the node saying the resource does not exist."""
    if not isinstance(body, dict):
        return False
    if str(body.get("code")) == str(GRPC_NOT_FOUND):
        return True
    return "not found" in str(body.get("message", "")).lower()


@dataclass(frozen=True)
class ClientConfig:
    """Per-client tuning; one instance per run, never shared global state."""
    settle_delay: float = 1.0
    gas_adjustment: float = 1.2
    request_timeout: float = 30.0
    poll_interval: float = 1.0
    max_poll_attempts: int = 60
    query_retries: int = 3
    retry_backoff: float = 1.0


class LCDClient:
    """
    Chain client adapter over the LCD REST gateway.

    Usage:
        client = LCDClient(ChainEndpoint("Oraichain", "http://localhost:1317", "orai"))
        account = client.fetch_account("orai1...")
        result = client.broadcast(tx_bytes)
        state = client.query_contract("orai1...", {"state": {}})
    """

    def __init__(self, endpoint: ChainEndpoint, config: Optional[ClientConfig] = None,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.endpoint = endpoint
        self.config = config or ClientConfig()
        self.session = session or requests.Session()
        self._sleep = sleep

    # ═══════════════════════════════════════════════════════════════════════
    # TRANSPORT
    # ═══════════════════════════════════════════════════════════════════════

    def _url(self, path: str) -> str:
        return self.endpoint.lcd_url.rstrip("/") + path

    def _request(self, method: str, path: str, payload: Optional[dict] = None,
                 allow_missing: bool = False) -> Optional[dict]:
        """
        Make one HTTP call and classify the outcome.

        Returns:
            Decoded JSON body, or None when allow_missing is set and the node
            answers 404 with a NotFound error body

        Raises:
            NetworkError: connection failure, timeout, malformed body
            ChainError: the node answered with a chain error body
        """
        url = self._url(path)
        try:
            response = self.session.request(method, url, json=payload,
                                            timeout=self.config.request_timeout)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Connection failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise NetworkError(
                f"Malformed response from {path} (HTTP {response.status_code})") from e

        if response.status_code == 404 and allow_missing and _reports_not_found(body):
            return None

        if response.status_code >= 400 or not isinstance(body, dict):
            if isinstance(body, dict) and body.get("code"):
                raise ChainError(int(body["code"]), body.get("codespace", ""),
                                 body.get("message", "") or json.dumps(body))
            raise NetworkError(f"HTTP {response.status_code} from {path}: {body}")
        return body

    def _retrying(self, description: str, call: Callable[[], T]) -> T:
        """Run a read-only call, retrying NetworkError with exponential backoff."""
        backoff = self.config.retry_backoff
        attempts = max(1, self.config.query_retries)
        for attempt in range(1, attempts + 1):
            try:
                return call()
            except NetworkError as e:
                if attempt == attempts:
                    raise
                log.warning(f"{description} failed ({e}), retry {attempt}/{attempts - 1} "
                            f"in {backoff:.1f}s")
                self._sleep(backoff)
                backoff *= 2
        raise AssertionError("unreachable")

    # ═══════════════════════════════════════════════════════════════════════
    # ACCOUNTS
    # ═══════════════════════════════════════════════════════════════════════

    def fetch_account(self, address: str) -> Account:
        """Get current account number and sequence (fresh, never cached)."""
        def call() -> Account:
            body = self._request("GET", f"/cosmos/auth/v1beta1/accounts/{address}",
                                 allow_missing=True)
            if body is None:
                return Account(0, 0)
            account = body.get("account") or {}
            # vesting / module accounts nest the base account
            base = account.get("base_account") or \
                account.get("base_vesting_account", {}).get("base_account") or account
            try:
                return Account(int(base.get("account_number") or 0),
                               int(base.get("sequence") or 0))
            except (TypeError, ValueError) as e:
                raise NetworkError(f"Malformed account response for {address}") from e

        return self._retrying(f"account lookup {address}", call)

    def query_balances(self, address: str) -> List[Coin]:
        """Get all native balances of an address."""
        def call() -> List[Coin]:
            body = self._request("GET", f"/cosmos/bank/v1beta1/balances/{address}")
            return [Coin.from_dict(c) for c in body.get("balances", [])]

        return self._retrying(f"balance query {address}", call)

    # ═══════════════════════════════════════════════════════════════════════
    # TRANSACTIONS
    # ═══════════════════════════════════════════════════════════════════════

    def simulate(self, tx_bytes: bytes) -> int:
        """Estimate gas used by a (possibly unsigned) transaction."""
        body = self._request("POST", "/cosmos/tx/v1beta1/simulate",
                             {"tx_bytes": base64.b64encode(tx_bytes).decode()})
        try:
            return int(body["gas_info"]["gas_used"])
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Malformed simulate response: {body}") from e

    def estimate_gas(self, tx_bytes: bytes) -> int:
        """Simulated gas multiplied by the configured gas adjustment."""
        gas_used = self.simulate(tx_bytes)
        return int(gas_used * self.config.gas_adjustment + 0.999999)

    def broadcast(self, tx_bytes: bytes) -> TransactionResult:
        """
        Submit a signed transaction and block until it is included.

        Never retried: a resubmission could double-apply the transaction.

        Returns:
            TransactionResult (success=False when the chain rejected it)
        """
        body = self._request("POST", "/cosmos/tx/v1beta1/txs", {
            "tx_bytes": base64.b64encode(tx_bytes).decode(),
            "mode": "BROADCAST_MODE_SYNC",
        })
        check = TransactionResult.from_tx_response(body.get("tx_response") or {})
        if not check.txhash:
            raise NetworkError(f"Broadcast returned no tx hash: {body}")
        if not check.success:
            log.debug(f"TX {check.txhash[:16]}... rejected at CheckTx: {check.raw_log}")
            return check

        result = self.wait_for_tx(check.txhash)
        if self.config.settle_delay > 0:
            self._sleep(self.config.settle_delay)
        return result

    def wait_for_tx(self, txhash: str) -> TransactionResult:
        """Poll until the transaction appears in a block."""
        for attempt in range(1, self.config.max_poll_attempts + 1):
            body = self._retrying(
                f"tx lookup {txhash[:16]}...",
                lambda: self._request("GET", f"/cosmos/tx/v1beta1/txs/{txhash}",
                                      allow_missing=True))
            if body and body.get("tx_response"):
                result = TransactionResult.from_tx_response(body["tx_response"])
                log.debug(f"TX {txhash[:16]}... included at height {result.height} "
                          f"(gas {result.gas_used}/{result.gas_wanted})")
                return result
            log.debug(f"TX {txhash[:16]}... not yet included ({attempt}/{self.config.max_poll_attempts})")
            self._sleep(self.config.poll_interval)
        raise NetworkError(f"Transaction {txhash} not confirmed after "
                           f"{self.config.max_poll_attempts} polls", txhash=txhash)

    # ═══════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    def query_contract(self, address: str, query: Any) -> Any:
        """Smart query a contract; read-only, retried on network failure."""
        encoded = base64.urlsafe_b64encode(
            json.dumps(query, separators=(",", ":")).encode()).decode()

        def call() -> Any:
            body = self._request("GET", f"/cosmwasm/wasm/v1/contract/{address}/smart/{encoded}")
            if "data" not in body:
                raise NetworkError(f"Malformed query response from {address}: {body}")
            return body["data"]

        return self._retrying(f"query {address}", call)

    def latest_block_height(self) -> int:
        def call() -> int:
            body = self._request("GET", "/cosmos/base/tendermint/v1beta1/blocks/latest")
            block = body.get("sdk_block") or body.get("block") or {}
            try:
                return int(block["header"]["height"])
            except (KeyError, TypeError, ValueError) as e:
                raise NetworkError(f"Malformed block response: {body}") from e

        return self._retrying("latest block", call)

    def wait_until_block_height(self, height: int, max_tries: int = 10) -> int:
        """
        Wait until the chain reaches a block height.

        Backs off exponentially starting at one second.

        Raises:
            NetworkError: height not reached after max_tries polls
        """
        backoff = 1.0
        for tries in range(1, max_tries + 1):
            latest = self.latest_block_height()
            if latest >= height:
                return latest
            if tries == max_tries:
                raise NetworkError(f"timed out waiting for block height {height}, "
                                   f"current block height: {latest}")
            self._sleep(backoff)
            backoff *= 2
        raise AssertionError("unreachable")
