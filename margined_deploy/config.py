"""
Margined Deploy - Configuration

Run configuration from command line arguments, then environment variables
(optionally loaded from a .env file; keep it chmod 600, it holds keys).

Precedence: --flag > MARGINED_* environment variable > network default.

Environment:
    MARGINED_NETWORK            network name (local, juno-local, testnet, mainnet)
    MARGINED_LCD_URL            LCD endpoint override
    MARGINED_PRIVATE_KEY        deployer key (hex)
    MARGINED_ADDRESS            deployer bech32 address
    MARGINED_ARTIFACTS          directory of compiled .wasm files
    MARGINED_SETTLE_DELAY       seconds to wait after each confirmed tx
    MARGINED_GAS_ADJUSTMENT     multiplier applied to simulated gas
    MARGINED_WALLET_<NAME>_KEY / MARGINED_WALLET_<NAME>_ADDRESS
                                extra scenario wallets (alice, bob, ...)
"""

import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .lcd_client import ClientConfig
from .networks import DEFAULT_NETWORK, Network, get_network
from .wallet import Wallet

log = logging.getLogger(__name__)

ENV_PREFIX = "MARGINED_"
OWNER = "owner"

_WALLET_VAR = re.compile(rf"^{ENV_PREFIX}WALLET_([A-Z0-9_]+?)_(KEY|ADDRESS)$")


class ConfigurationError(Exception):
    """Missing or invalid configuration value."""
    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"{key}: {message}")


def mask_secret(secret: str) -> str:
    """First 6 and last 4 characters; never log a full key."""
    if len(secret) <= 10:
        return "***"
    return secret[:6] + "..." + secret[-4:]


def load_env(env_file: Optional[str] = None) -> bool:
    """Load a .env file into os.environ without overriding existing values."""
    if env_file is not None and not Path(env_file).is_file():
        raise ConfigurationError("env_file", f"{env_file} not found")
    loaded = load_dotenv(env_file, override=False)
    if loaded:
        log.debug(f"Loaded environment from {env_file or '.env'}")
    return loaded


def _env_float(environ: Mapping[str, str], key: str) -> Optional[float]:
    value = environ.get(key)
    if value is None or value == "":
        return None
    try:
        result = float(value)
    except ValueError:
        raise ConfigurationError(key, f"not a number: {value}") from None
    if result < 0:
        raise ConfigurationError(key, f"must be non-negative: {value}")
    return result


def wallet_entries(environ: Mapping[str, str]) -> Dict[str, Tuple[str, str]]:
    """Named (key, address) pairs from MARGINED_WALLET_<NAME>_* variables."""
    found: Dict[str, Dict[str, str]] = {}
    for var, value in environ.items():
        match = _WALLET_VAR.match(var)
        if match and value:
            found.setdefault(match.group(1).lower(), {})[match.group(2)] = value

    entries = {}
    for name, parts in found.items():
        if "KEY" not in parts or "ADDRESS" not in parts:
            missing = "KEY" if "KEY" not in parts else "ADDRESS"
            raise ConfigurationError(f"{ENV_PREFIX}WALLET_{name.upper()}_{missing}",
                                     f"wallet '{name}' is incomplete")
        entries[name] = (parts["KEY"], parts["ADDRESS"])
    return entries


@dataclass
class Config:
    """Resolved settings for one run."""
    network: str = DEFAULT_NETWORK
    lcd_url: str = ""
    private_key: str = ""
    address: str = ""
    artifacts_dir: str = "artifacts"
    params_file: Optional[str] = None
    settle_delay: Optional[float] = None
    gas_adjustment: float = 1.2
    extra_wallets: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    @classmethod
    def from_args(cls, args, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Merge parsed arguments over environment variables.

        Args:
            args: argparse.Namespace (attributes may be missing or None)
            environ: Environment mapping (defaults to os.environ)
        """
        env = os.environ if environ is None else environ

        def pick(attr: str, var: str, default=None):
            value = getattr(args, attr, None)
            if value not in (None, ""):
                return value
            return env.get(ENV_PREFIX + var) or default

        gas_adjustment = getattr(args, "gas_adjustment", None)
        if gas_adjustment is None:
            gas_adjustment = _env_float(env, ENV_PREFIX + "GAS_ADJUSTMENT")
        settle_delay = getattr(args, "settle_delay", None)
        if settle_delay is None:
            settle_delay = _env_float(env, ENV_PREFIX + "SETTLE_DELAY")

        config = cls(
            network=pick("network", "NETWORK", DEFAULT_NETWORK),
            lcd_url=pick("lcd_url", "LCD_URL", ""),
            private_key=pick("private_key", "PRIVATE_KEY", ""),
            address=pick("address", "ADDRESS", ""),
            artifacts_dir=pick("artifacts", "ARTIFACTS", "artifacts"),
            params_file=getattr(args, "params", None),
            settle_delay=settle_delay,
            gas_adjustment=gas_adjustment if gas_adjustment is not None else 1.2,
            extra_wallets=wallet_entries(env),
        )
        config.validate()
        return config

    def validate(self) -> None:
        try:
            get_network(self.network)
        except KeyError as e:
            raise ConfigurationError(f"{ENV_PREFIX}NETWORK", str(e.args[0])) from None
        if self.gas_adjustment < 1.0:
            raise ConfigurationError(f"{ENV_PREFIX}GAS_ADJUSTMENT",
                                     f"must be at least 1.0: {self.gas_adjustment}")
        if bool(self.private_key) != bool(self.address):
            raise ConfigurationError(f"{ENV_PREFIX}PRIVATE_KEY",
                                     "private key and address must be given together")

    def network_entry(self) -> Network:
        """Registry entry with the LCD override applied."""
        net = get_network(self.network)
        if self.lcd_url:
            net = replace(net, endpoint=replace(net.endpoint, lcd_url=self.lcd_url))
        return net

    def client_config(self) -> ClientConfig:
        settle = self.settle_delay
        if settle is None:
            settle = self.network_entry().settle_delay
        return ClientConfig(settle_delay=settle, gas_adjustment=self.gas_adjustment)

    def owner_wallet(self) -> Wallet:
        if not self.private_key:
            raise ConfigurationError(f"{ENV_PREFIX}PRIVATE_KEY",
                                     "deployer key required (--private-key or .env)")
        return Wallet(self.address, self.private_key, name=OWNER)

    def wallets(self) -> Dict[str, Wallet]:
        """Deployer wallet under 'owner' plus every MARGINED_WALLET_* wallet."""
        wallets = {OWNER: self.owner_wallet()}
        for name, (key, address) in self.extra_wallets.items():
            wallets[name] = Wallet(address, key, name=name)
        return wallets

    def describe(self) -> None:
        """Log the effective configuration (keys masked)."""
        net = self.network_entry()
        client = self.client_config()
        log.info("=" * 60)
        log.info(f"Network: {net.name} (chain_id={net.endpoint.chain_id})")
        log.info(f"LCD: {net.endpoint.lcd_url}")
        if self.private_key:
            log.info(f"Deployer: {self.address} key {mask_secret(self.private_key)}")
        for name, (key, address) in sorted(self.extra_wallets.items()):
            log.info(f"Wallet {name}: {address} key {mask_secret(key)}")
        log.info(f"Settle delay: {client.settle_delay}s, gas adjustment: {client.gas_adjustment}")
        log.info("=" * 60)
