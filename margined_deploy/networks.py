"""
Margined Deploy - Networks

Known target networks: endpoint, fee schedule and settling delay.
"""

from dataclasses import dataclass
from typing import Dict

from .chain_types import ChainEndpoint
from .fee_policy import DEFAULT_SCHEDULE, OperationKind, FeePolicy, NetworkFees


@dataclass(frozen=True)
class Network:
    """One entry of the network registry."""
    name: str
    endpoint: ChainEndpoint
    fees: NetworkFees
    settle_delay: float = 1.0


# =============================================================================
# NETWORK CONFIGURATIONS
# =============================================================================

NETWORKS: Dict[str, Network] = {
    # LocalTerra: fee-less, single node, no load balancer in front
    "local": Network(
        name="local",
        endpoint=ChainEndpoint("localterra", "http://localhost:1317", "terra"),
        fees=NetworkFees("uluna", fee_less=True),
        settle_delay=0.0,
    ),
    # wasmd / juno single-node testing chain
    "juno-local": Network(
        name="juno-local",
        endpoint=ChainEndpoint("testing", "http://127.0.0.1:1317", "juno"),
        fees=NetworkFees("ujunox", schedule={
            **DEFAULT_SCHEDULE,
            OperationKind.UPLOAD: (30_000_000, 1_000_000),
            OperationKind.INSTANTIATE: (10_000_000, 500_000),
        }),
        settle_delay=0.0,
    ),
    "testnet": Network(
        name="testnet",
        endpoint=ChainEndpoint("Oraichain-testnet", "https://testnet-lcd.orai.io", "orai"),
        fees=NetworkFees("orai"),
    ),
    "mainnet": Network(
        name="mainnet",
        endpoint=ChainEndpoint("Oraichain", "https://lcd.orai.io", "orai"),
        fees=NetworkFees("orai"),
    ),
}

DEFAULT_NETWORK = "local"


def get_network(name: str) -> Network:
    try:
        return NETWORKS[name]
    except KeyError:
        raise KeyError(f"Unknown network '{name}' (known: {', '.join(sorted(NETWORKS))})") from None


def default_fee_policy() -> FeePolicy:
    """Fee policy covering every registered network."""
    return FeePolicy({name: net.fees for name, net in NETWORKS.items()})
