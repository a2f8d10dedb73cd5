import pytest

from margined_deploy.chain_types import ChainEndpoint, Coin, TransactionResult
from margined_deploy.executor import TxExecutor
from margined_deploy.fee_policy import FeeBid, FeePolicy, NetworkFees
from margined_deploy.gas_logger import GasLogger
from margined_deploy.lcd_client import ChainError, NetworkError
from margined_deploy.messages import SetOpen
from margined_deploy.networks import default_fee_policy
from margined_deploy.wallet import Wallet

from .conftest import FakeClient


def _executor(client, network="local", **kwargs):
    return TxExecutor(client, default_fee_policy(), network, **kwargs)


def test_failed_execution_raises_chain_error(owner, fake_client):
    fake_client.queue(TransactionResult(False, "BAD", code=5, codespace="wasm",
                                        raw_log="execute wasm contract failed: vamm is closed"))
    with pytest.raises(ChainError) as info:
        _executor(fake_client).execute(owner, "terra1engine", {"open_position": {}})
    assert info.value.code == 5
    assert info.value.codespace == "wasm"
    assert info.value.raw_log
    assert info.value.txhash == "BAD"


def test_execute_records_gas(owner, fake_client):
    gas = GasLogger()
    fake_client.queue(TransactionResult(True, "A", gas_used=111),
                      TransactionResult(True, "B", gas_used=333))
    executor = _executor(fake_client, gas_logger=gas)
    executor.execute(owner, "terra1vamm", SetOpen(open=False))
    executor.execute(owner, "terra1vamm", SetOpen(open=True))
    assert gas.average() == 222
    assert gas.max_entry().msg == '{"set_open":{"open":true}}'


def test_upload_returns_code_id(owner, fake_client, tmp_path):
    wasm = tmp_path / "margined_vamm.wasm"
    wasm.write_bytes(b"\x00asm")
    fake_client.queue(TransactionResult(True, "UP", events={"store_code": {"code_id": ["17"]}}))
    assert _executor(fake_client).upload(owner, wasm) == 17


def test_upload_without_code_id_is_network_error(owner, fake_client):
    fake_client.queue(TransactionResult(True, "UP"))
    with pytest.raises(NetworkError) as info:
        _executor(fake_client).upload(owner, b"\x00asm")
    assert info.value.txhash == "UP"


def test_instantiate_defaults_admin_to_wallet(owner, fake_client):
    fake_client.queue(TransactionResult(True, "IN", events={
        "instantiate": {"_contract_address": ["terra1newcontract"]}}))
    address = _executor(fake_client).instantiate(owner, 3, {}, "pricefeed")
    assert address == "terra1newcontract"
    assert address != owner.address
    # sender + admin
    assert fake_client.broadcasts[0].count(owner.address.encode()) == 2


def test_instantiate_explicit_admin(owner, alice, fake_client):
    fake_client.queue(TransactionResult(True, "IN", events={
        "instantiate": {"contract_address": ["terra1newcontract"]}}))
    _executor(fake_client).instantiate(owner, 3, {}, "pricefeed", admin=alice.address)
    tx = fake_client.broadcasts[0]
    assert tx.count(owner.address.encode()) == 1
    assert tx.count(alice.address.encode()) == 1


def test_fee_less_network_simulates_gas(owner, fake_client):
    _executor(fake_client).execute(owner, "terra1vamm", SetOpen(open=True))
    assert len(fake_client.estimates) == 1


def test_fee_bearing_network_uses_schedule(owner):
    client = FakeClient(ChainEndpoint("Oraichain-testnet", "http://lcd.test", "orai"))
    wallet_address = "orai1x46rqay4d3cssq8gxxvqz8xt6nwlz4td3lhjws"
    wallet = Wallet(wallet_address, "0x" + "4c" * 32)
    _executor(client, network="testnet").execute(wallet, "orai1vamm", SetOpen(open=True))
    assert client.estimates == []
    assert b"100000" in client.broadcasts[0]


def test_explicit_fee_overrides_policy(owner, fake_client):
    policy = FeePolicy({"local": NetworkFees("uluna", fee_less=True)})
    executor = TxExecutor(fake_client, policy, "local")
    executor.execute(owner, "terra1vamm", SetOpen(open=True), fee=FeeBid(500_000, "uluna", 7))
    assert fake_client.estimates == []


def test_wallet_from_other_chain_rejected(fake_client):
    wallet = Wallet("orai1x46rqay4d3cssq8gxxvqz8xt6nwlz4td3lhjws", "0x" + "4c" * 32)
    with pytest.raises(ValueError, match="prefix terra"):
        _executor(fake_client).execute(wallet, "terra1vamm", SetOpen(open=True))
    assert fake_client.broadcasts == []


def test_query_balance_missing_denom_is_zero(fake_client):
    fake_client.balances["terra1engine"] = [Coin("uluna", 5)]
    executor = _executor(fake_client)
    assert executor.query_balance("terra1engine", "uluna") == 5
    assert executor.query_balance("terra1engine", "uusd") == 0


def test_transfer_and_admin_operations(owner, alice, fake_client):
    executor = _executor(fake_client)
    executor.transfer(owner, alice.address, [Coin("uluna", 1_000)])
    executor.update_admin(owner, "terra1vamm", alice.address)
    executor.migrate(owner, "terra1vamm", 9)
    assert b"/cosmos.bank.v1beta1.MsgSend" in fake_client.broadcasts[0]
    assert b"/cosmwasm.wasm.v1.MsgUpdateAdmin" in fake_client.broadcasts[1]
    assert b"/cosmwasm.wasm.v1.MsgMigrateContract" in fake_client.broadcasts[2]
