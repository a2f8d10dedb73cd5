import base64
import json

import pytest
import requests

from margined_deploy.chain_types import Account, Coin
from margined_deploy.lcd_client import ChainError, NetworkError

from .conftest import MALFORMED

ADDRESS = "terra1x46rqay4d3cssq8gxxvqz8xt6nwlz4td20k38v"
CONTRACT = "terra14hj2tavq8fpesdwxxcu44rty3hh90vhujrvcmstl4zr3txmfvw9ssrc8au"


def _smart_path(query):
    encoded = base64.urlsafe_b64encode(json.dumps(query, separators=(",", ":")).encode()).decode()
    return f"/cosmwasm/wasm/v1/contract/{CONTRACT}/smart/{encoded}"


def _tx_response(txhash="ABCDEF0123456789", code=0, raw_log="", **extra):
    return {"tx_response": {"txhash": txhash, "code": code, "raw_log": raw_log, **extra}}


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

def test_connection_failure_is_network_error(client, session):
    session.add("GET", f"/cosmos/bank/v1beta1/balances/{ADDRESS}",
                requests.exceptions.ConnectionError("refused"))
    with pytest.raises(NetworkError, match="Connection failed"):
        client.query_balances(ADDRESS)


def test_malformed_body_is_network_error(client, session):
    session.add("GET", "/cosmos/base/tendermint/v1beta1/blocks/latest", (502, MALFORMED))
    with pytest.raises(NetworkError, match="Malformed"):
        client.latest_block_height()


def test_contract_error_is_chain_error_and_not_retried(client, session, sleeps):
    query = {"position": {"vamm": "terra1vamm", "position_id": 1}}
    session.add("GET", _smart_path(query),
                (500, {"code": 2, "message": "Generic error: position not found"}))
    with pytest.raises(ChainError) as info:
        client.query_contract(CONTRACT, query)
    assert info.value.code == 2
    assert "position not found" in info.value.raw_log
    assert session.count("GET", _smart_path(query)) == 1
    assert sleeps == []


# ═══════════════════════════════════════════════════════════════════════════════
# QUERIES
# ═══════════════════════════════════════════════════════════════════════════════

def test_query_retried_with_backoff(client, session, sleeps):
    query = {"state": {}}
    session.add("GET", _smart_path(query),
                requests.exceptions.Timeout("slow"),
                requests.exceptions.Timeout("slow"),
                (200, {"data": {"open": True}}))
    assert client.query_contract(CONTRACT, query) == {"open": True}
    assert sleeps == [1.0, 2.0]


def test_query_gives_up_after_retries(client, session, sleeps):
    query = {"state": {}}
    session.add("GET", _smart_path(query), requests.exceptions.Timeout("slow"))
    with pytest.raises(NetworkError):
        client.query_contract(CONTRACT, query)
    assert session.count("GET", _smart_path(query)) == 3


def test_balances(client, session):
    session.add("GET", f"/cosmos/bank/v1beta1/balances/{ADDRESS}",
                (200, {"balances": [{"denom": "uluna", "amount": "1000"}]}))
    assert client.query_balances(ADDRESS) == [Coin("uluna", 1000)]


def test_unknown_account_starts_at_zero(client, session):
    assert client.fetch_account(ADDRESS) == Account(0, 0)


def test_html_404_for_account_is_network_error(client, session):
    path = f"/cosmos/auth/v1beta1/accounts/{ADDRESS}"
    session.add("GET", path, (404, MALFORMED))
    with pytest.raises(NetworkError, match="Malformed"):
        client.fetch_account(ADDRESS)
    assert session.count("GET", path) == 3


def test_404_without_not_found_body_is_network_error(client, session):
    session.add("GET", f"/cosmos/auth/v1beta1/accounts/{ADDRESS}",
                (404, {"error": "no route"}))
    with pytest.raises(NetworkError, match="HTTP 404"):
        client.fetch_account(ADDRESS)


def test_not_found_message_starts_at_zero(client, session):
    session.add("GET", f"/cosmos/auth/v1beta1/accounts/{ADDRESS}",
                (404, {"code": "5", "message": f"account {ADDRESS} not found"}))
    assert client.fetch_account(ADDRESS) == Account(0, 0)


def test_vesting_account_unwrapped(client, session):
    session.add("GET", f"/cosmos/auth/v1beta1/accounts/{ADDRESS}", (200, {"account": {
        "@type": "/cosmos.vesting.v1beta1.ContinuousVestingAccount",
        "base_vesting_account": {"base_account": {"account_number": "12", "sequence": "4"}},
    }}))
    assert client.fetch_account(ADDRESS) == Account(12, 4)


def test_estimate_gas_applies_adjustment(client, session):
    client.config = type(client.config)(gas_adjustment=1.5)
    session.add("POST", "/cosmos/tx/v1beta1/simulate", (200, {"gas_info": {"gas_used": "1000"}}))
    assert client.estimate_gas(b"tx") == 1500


def test_block_height(client, session):
    session.add("GET", "/cosmos/base/tendermint/v1beta1/blocks/latest",
                (200, {"block": {"header": {"height": "4821"}}}))
    assert client.latest_block_height() == 4821


def test_wait_until_block_height_times_out(client, session, sleeps):
    session.add("GET", "/cosmos/base/tendermint/v1beta1/blocks/latest",
                (200, {"sdk_block": {"header": {"height": "10"}}}))
    with pytest.raises(NetworkError, match="block height 20"):
        client.wait_until_block_height(20, max_tries=3)
    assert sleeps == [1.0, 2.0]


# ═══════════════════════════════════════════════════════════════════════════════
# BROADCAST
# ═══════════════════════════════════════════════════════════════════════════════

def test_broadcast_polls_until_included_then_settles(client, session, sleeps):
    txhash = "ABCDEF0123456789"
    session.add("POST", "/cosmos/tx/v1beta1/txs", (200, _tx_response(txhash)))
    session.add("GET", f"/cosmos/tx/v1beta1/txs/{txhash}",
                (404, {"code": 5, "message": "tx not found"}),
                (200, _tx_response(txhash, gas_used="81234", height="77", logs=[{"events": [
                    {"type": "execute", "attributes": [{"key": "_contract_address",
                                                        "value": CONTRACT}]}]}])))
    result = client.broadcast(b"signed")

    assert result.success
    assert result.gas_used == 81234
    assert result.height == 77
    assert result.attribute("execute", "_contract_address") == CONTRACT
    # one poll interval, then the settle delay
    assert sleeps == [0.1, 0.5]
    method, path, payload = session.calls[0]
    assert payload["mode"] == "BROADCAST_MODE_SYNC"
    assert base64.b64decode(payload["tx_bytes"]) == b"signed"


def test_check_tx_rejection_returned_without_polling(client, session, sleeps):
    session.add("POST", "/cosmos/tx/v1beta1/txs",
                (200, _tx_response(code=13, raw_log="insufficient fee", codespace="sdk")))
    result = client.broadcast(b"signed")
    assert not result.success
    assert result.code == 13
    assert result.raw_log == "insufficient fee"
    assert len(session.calls) == 1
    assert sleeps == []


def test_broadcast_never_retried(client, session):
    session.add("POST", "/cosmos/tx/v1beta1/txs", requests.exceptions.ConnectionError("reset"))
    with pytest.raises(NetworkError):
        client.broadcast(b"signed")
    assert session.count("POST", "/cosmos/tx/v1beta1/txs") == 1


def test_unconfirmed_transaction_reports_hash(client, session):
    txhash = "FFFF0000FFFF0000"
    session.add("POST", "/cosmos/tx/v1beta1/txs", (200, _tx_response(txhash)))
    with pytest.raises(NetworkError) as info:
        client.broadcast(b"signed")
    assert info.value.txhash == txhash
    assert session.count("GET", f"/cosmos/tx/v1beta1/txs/{txhash}") == 3


def test_base64_event_attributes_decoded(client, session):
    txhash = "ABCDEF0123456789"
    encode = lambda s: base64.b64encode(s.encode()).decode()
    session.add("POST", "/cosmos/tx/v1beta1/txs", (200, _tx_response(txhash)))
    session.add("GET", f"/cosmos/tx/v1beta1/txs/{txhash}", (200, _tx_response(txhash, events=[
        {"type": "store_code", "attributes": [{"key": encode("code_id"), "value": encode("21")}]}
    ])))
    assert client.broadcast(b"signed").attribute("store_code", "code_id") == "21"
