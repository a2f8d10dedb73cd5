import os
from argparse import Namespace

import pytest

from margined_deploy.config import (
    Config,
    ConfigurationError,
    load_env,
    mask_secret,
    wallet_entries,
)

from .conftest import ALICE_ADDRESS, ALICE_KEY, OWNER_ADDRESS, OWNER_KEY


def _args(**kwargs):
    return Namespace(**kwargs)


def test_flags_override_environment():
    env = {"MARGINED_NETWORK": "testnet", "MARGINED_ARTIFACTS": "/env/artifacts"}
    config = Config.from_args(_args(network="local", artifacts=None), env)
    assert config.network == "local"
    assert config.artifacts_dir == "/env/artifacts"


def test_defaults_without_flags_or_environment():
    config = Config.from_args(_args(), {})
    assert config.network == "local"
    assert config.gas_adjustment == 1.2
    assert config.settle_delay is None
    assert config.client_config().settle_delay == 0.0


def test_numeric_environment_values():
    env = {"MARGINED_SETTLE_DELAY": "2.5", "MARGINED_GAS_ADJUSTMENT": "1.4"}
    config = Config.from_args(_args(network="testnet"), env)
    client = config.client_config()
    assert client.settle_delay == 2.5
    assert client.gas_adjustment == 1.4


def test_invalid_number_rejected():
    with pytest.raises(ConfigurationError, match="MARGINED_SETTLE_DELAY"):
        Config.from_args(_args(), {"MARGINED_SETTLE_DELAY": "soon"})


def test_unknown_network_rejected():
    with pytest.raises(ConfigurationError, match="devnet"):
        Config.from_args(_args(network="devnet"), {})


def test_gas_adjustment_below_one_rejected():
    with pytest.raises(ConfigurationError):
        Config.from_args(_args(gas_adjustment=0.9), {})


def test_key_without_address_rejected():
    with pytest.raises(ConfigurationError, match="together"):
        Config.from_args(_args(private_key=OWNER_KEY), {})


def test_lcd_override_keeps_chain_id():
    config = Config.from_args(_args(network="testnet", lcd_url="http://10.0.0.5:1317"), {})
    net = config.network_entry()
    assert net.endpoint.lcd_url == "http://10.0.0.5:1317"
    assert net.endpoint.chain_id == "Oraichain-testnet"


def test_wallets_from_environment():
    env = {
        "MARGINED_PRIVATE_KEY": OWNER_KEY,
        "MARGINED_ADDRESS": OWNER_ADDRESS,
        "MARGINED_WALLET_ALICE_KEY": ALICE_KEY,
        "MARGINED_WALLET_ALICE_ADDRESS": ALICE_ADDRESS,
    }
    wallets = Config.from_args(_args(), env).wallets()
    assert set(wallets) == {"owner", "alice"}
    assert wallets["alice"].address == ALICE_ADDRESS
    assert wallets["owner"].name == "owner"


def test_incomplete_wallet_rejected():
    with pytest.raises(ConfigurationError, match="MARGINED_WALLET_BOB_ADDRESS"):
        wallet_entries({"MARGINED_WALLET_BOB_KEY": ALICE_KEY})


def test_missing_deployer_key():
    with pytest.raises(ConfigurationError, match="MARGINED_PRIVATE_KEY"):
        Config.from_args(_args(), {}).owner_wallet()


def test_mask_secret():
    assert mask_secret(OWNER_KEY) == "0x4c4c...4c4c"
    assert mask_secret("short") == "***"


def test_describe_never_logs_full_key(caplog):
    env = {"MARGINED_PRIVATE_KEY": OWNER_KEY, "MARGINED_ADDRESS": OWNER_ADDRESS}
    with caplog.at_level("INFO"):
        Config.from_args(_args(), env).describe()
    assert OWNER_ADDRESS in caplog.text
    assert OWNER_KEY not in caplog.text


def test_load_env_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_env(str(tmp_path / "absent.env"))


def test_load_env_does_not_override(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("MARGINED_NETWORK=testnet\nMARGINED_ARTIFACTS=/from/file\n")
    monkeypatch.setenv("MARGINED_NETWORK", "local")
    # record the variable so teardown removes the value loaded from the file
    monkeypatch.setenv("MARGINED_ARTIFACTS", "")
    monkeypatch.delenv("MARGINED_ARTIFACTS")
    assert load_env(str(env_file))
    assert os.environ["MARGINED_NETWORK"] == "local"
    assert os.environ["MARGINED_ARTIFACTS"] == "/from/file"
