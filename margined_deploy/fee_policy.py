"""
Margined Deploy - Gas/Fee Policy

Maps (network, operation kind) to a fee bid.

Policy:
  - Fee-less test networks (LocalTerra, test tubes) get a zero bid:
    zero amount and the zero gas-limit sentinel, meaning "estimate the gas,
    the chain will not charge".
  - Every other network pays a positive fee in its native denom, sized by
    operation (upload > instantiate > execute).

Adding a network only means adding one NetworkFees entry; executor logic
never branches on the network.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from .chain_types import Coin


class OperationKind(Enum):
    """Transaction kinds with distinct gas profiles."""
    UPLOAD = "upload"
    INSTANTIATE = "instantiate"
    EXECUTE = "execute"
    MIGRATE = "migrate"
    TRANSFER = "transfer"
    UPDATE_ADMIN = "update_admin"


ESTIMATE_GAS = 0  # gas-limit sentinel: simulate and apply the gas adjustment


@dataclass(frozen=True)
class FeeBid:
    """Fee attached to one transaction."""
    gas_limit: int
    denom: str
    amount: int

    def __post_init__(self):
        if self.gas_limit < 0 or self.amount < 0:
            raise ValueError(f"Fee bid must be non-negative, got {self}")

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def estimates_gas(self) -> bool:
        return self.gas_limit == ESTIMATE_GAS

    def coins(self) -> List[Coin]:
        """Fee amount as coins (empty for a zero bid)."""
        if self.amount == 0:
            return []
        return [Coin(self.denom, self.amount)]


# (gas limit, fee amount) per operation, in the network's base denom units
DEFAULT_SCHEDULE: Dict[OperationKind, Tuple[int, int]] = {
    OperationKind.UPLOAD: (30_000_000, 1_000_000),
    OperationKind.INSTANTIATE: (3_000_000, 150_000),
    OperationKind.MIGRATE: (3_000_000, 150_000),
    OperationKind.EXECUTE: (2_000_000, 100_000),
    OperationKind.UPDATE_ADMIN: (200_000, 10_000),
    OperationKind.TRANSFER: (200_000, 10_000),
}


@dataclass(frozen=True)
class NetworkFees:
    """
    Fee schedule of one network.

    Structure:
      - denom: Native fee denomination (e.g., "orai")
      - fee_less: True for networks accepting zero-fee transactions
      - schedule: OperationKind -> (gas limit, fee amount)
    """
    denom: str
    fee_less: bool = False
    schedule: Mapping[OperationKind, Tuple[int, int]] = field(
        default_factory=lambda: dict(DEFAULT_SCHEDULE))

    def bid(self, kind: OperationKind) -> FeeBid:
        if self.fee_less:
            return FeeBid(ESTIMATE_GAS, self.denom, 0)
        gas_limit, amount = self.schedule[kind]
        return FeeBid(gas_limit, self.denom, amount)


class FeePolicy:
    """
    Lookup table of fee schedules keyed by network name.

    Usage:
        policy = FeePolicy({"local": NetworkFees("uluna", fee_less=True)})
        bid = policy.fee_for("local", OperationKind.UPLOAD)
    """

    def __init__(self, networks: Optional[Mapping[str, NetworkFees]] = None):
        self._networks: Dict[str, NetworkFees] = dict(networks or {})

    def register(self, network: str, fees: NetworkFees) -> None:
        self._networks[network] = fees

    def networks(self) -> List[str]:
        return sorted(self._networks)

    def is_fee_less(self, network: str) -> bool:
        return self._schedule(network).fee_less

    def fee_for(self, network: str, kind: OperationKind) -> FeeBid:
        """
        Get the fee bid for one operation on one network.

        Raises:
            KeyError: Unknown network
        """
        return self._schedule(network).bid(kind)

    def _schedule(self, network: str) -> NetworkFees:
        try:
            return self._networks[network]
        except KeyError:
            raise KeyError(f"No fee schedule for network '{network}' "
                           f"(known: {', '.join(self.networks())})") from None
