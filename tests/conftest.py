"""
Shared fixtures: an in-memory LCD transport, a fake chain client and
deterministic test wallets. No test touches the network.
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from margined_deploy.chain_types import Account, ChainEndpoint, Coin, TransactionResult
from margined_deploy.lcd_client import ClientConfig, LCDClient
from margined_deploy.wallet import Wallet

BASE_URL = "http://lcd.test"
ENDPOINT = ChainEndpoint("localterra", BASE_URL, "terra")

OWNER_KEY = "0x" + "4c" * 32
ALICE_KEY = "0x" + "5d" * 32
OWNER_ADDRESS = "terra1x46rqay4d3cssq8gxxvqz8xt6nwlz4td20k38v"
ALICE_ADDRESS = "terra17lmam6zguazs5q5u6z5mmx76uj63gldnse2pdp"

MALFORMED = object()


class FakeResponse:
    def __init__(self, status_code: int, body: Any):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is MALFORMED:
            raise ValueError("Expecting value")
        return self._body


class FakeSession:
    """
    Stand-in for requests.Session.

    Routes are (method, path) -> list of responses served in order; the last
    one repeats. A response is (status, body) or an exception to raise.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[Tuple[str, str, Optional[dict]]] = []

    def add(self, method: str, path: str, *responses) -> "FakeSession":
        self.routes[(method, path)] = list(responses)
        return self

    def request(self, method, url, json=None, timeout=None):
        path = url[len(BASE_URL):]
        self.calls.append((method, path, json))
        queue = self.routes.get((method, path))
        if not queue:
            return FakeResponse(404, {"code": 5, "message": f"{path} not found"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        status, body = response
        return FakeResponse(status, body)

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.calls if m == method and p == path)


class FakeClient:
    """
    Chain client double for executor-level tests.

    Every broadcast pops the next queued TransactionResult and records the
    raw transaction bytes.
    """

    def __init__(self, endpoint: ChainEndpoint = ENDPOINT):
        self.endpoint = endpoint
        self.config = ClientConfig(settle_delay=0)
        self.results: List[TransactionResult] = []
        self.broadcasts: List[bytes] = []
        self.estimates: List[bytes] = []
        self.sequence = 0
        self.balances: Dict[str, List[Coin]] = {}
        self.query_results: Dict[str, Any] = {}

    def queue(self, *results: TransactionResult) -> "FakeClient":
        self.results.extend(results)
        return self

    def fetch_account(self, address: str) -> Account:
        return Account(7, self.sequence)

    def estimate_gas(self, tx_bytes: bytes) -> int:
        self.estimates.append(tx_bytes)
        return 150_000

    def broadcast(self, tx_bytes: bytes) -> TransactionResult:
        self.broadcasts.append(tx_bytes)
        self.sequence += 1
        if self.results:
            return self.results.pop(0)
        return TransactionResult(True, f"TX{self.sequence}", gas_used=100_000)

    def query_contract(self, address: str, query: Any) -> Any:
        return self.query_results[address]

    def query_balances(self, address: str) -> List[Coin]:
        return self.balances.get(address, [])


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def client(session, sleeps):
    config = ClientConfig(settle_delay=0.5, poll_interval=0.1, max_poll_attempts=3,
                          query_retries=3, retry_backoff=1.0)
    return LCDClient(ENDPOINT, config, session=session, sleep=sleeps.append)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def owner():
    return Wallet(OWNER_ADDRESS, OWNER_KEY, name="owner")


@pytest.fixture
def alice():
    return Wallet(ALICE_ADDRESS, ALICE_KEY, name="alice")
