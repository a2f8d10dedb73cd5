"""
Margined Deploy - Contract Messages

Typed init / execute / query messages for the protocol contracts.

Each message class knows its contract kind and its variant name and renders
the JSON document the contract expects:
  - Optional fields left as None are omitted (contracts read a missing
    Option<T> as None)
  - Uint128 fields render as decimal strings, u8/u64 fields as numbers
  - Enums render as their snake_case variant names

RawMsg wraps any other JSON document and passes it through untouched,
including explicit nulls, for contracts whose schema is not modeled here.

Ref("label") marks a contract (or wallet) address that is only known once an
earlier deployment step has run; resolve_refs() substitutes the addresses.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Set, Union


class ContractKind(Enum):
    INSURANCE_FUND = "insurance_fund"
    PRICEFEED = "pricefeed"
    VAMM = "vamm"
    ENGINE = "engine"
    FEE_POOL = "fee_pool"
    TOKEN = "token"


class Side(Enum):
    BUY = "buy"
    SELL = "sell"


class Direction(Enum):
    ADD_TO_AMM = "add_to_amm"
    REMOVE_FROM_AMM = "remove_from_amm"


class PnlCalcOption(Enum):
    SPOT_PRICE = "spot_price"
    TWAP = "twap"
    ORACLE = "oracle"


@dataclass(frozen=True)
class Ref:
    """Placeholder for an address produced by an earlier step."""
    label: str

    SENDER: ClassVar[str] = "@sender"

    @classmethod
    def sender(cls) -> "Ref":
        """The address of the wallet submitting the message."""
        return cls(cls.SENDER)

    def __str__(self) -> str:
        return f"<{self.label}>"


def uint128(default: Any = None):
    """Dataclass field rendered as a Uint128 decimal string."""
    return field(default=default, metadata={"uint128": True})


def _render(value: Any, as_uint128: bool = False) -> Any:
    if isinstance(value, ContractMsg):
        return value.to_msg()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool) or isinstance(value, Ref):
        return value
    if isinstance(value, int) and as_uint128:
        return str(value)
    if isinstance(value, dict):
        return {k: _render(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_render(v, as_uint128) for v in value]
    return value


class ContractMsg:
    """Base of all typed messages."""
    contract: ClassVar[Optional[ContractKind]] = None
    variant: ClassVar[str] = ""

    def body(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[f.name] = _render(value, f.metadata.get("uint128", False))
        return out

    def to_msg(self) -> Any:
        if not self.variant:
            return self.body()
        return {self.variant: self.body()}


@dataclass
class RawMsg(ContractMsg):
    """Opaque JSON message, passed through exactly as given."""
    data: Any
    kind: Optional[ContractKind] = None

    def to_msg(self) -> Any:
        return self.data


Message = Union[ContractMsg, Dict[str, Any]]


# ═══════════════════════════════════════════════════════════════════════════════
# INSURANCE FUND
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class InsuranceFundInstantiate(ContractMsg):
    contract = ContractKind.INSURANCE_FUND
    engine: Optional[Union[str, Ref]] = None


@dataclass
class InsuranceFundUpdateConfig(ContractMsg):
    contract = ContractKind.INSURANCE_FUND
    variant = "update_config"
    owner: Optional[Union[str, Ref]] = None
    beneficiary: Optional[Union[str, Ref]] = None


@dataclass
class AddVamm(ContractMsg):
    contract = ContractKind.INSURANCE_FUND
    variant = "add_vamm"
    vamm: Union[str, Ref]


@dataclass
class RemoveVamm(ContractMsg):
    contract = ContractKind.INSURANCE_FUND
    variant = "remove_vamm"
    vamm: Union[str, Ref]


@dataclass
class ShutdownVamms(ContractMsg):
    contract = ContractKind.INSURANCE_FUND
    variant = "shutdown_vamms"


@dataclass
class IsVammQuery(ContractMsg):
    contract = ContractKind.INSURANCE_FUND
    variant = "is_vamm"
    vamm: Union[str, Ref]


# ═══════════════════════════════════════════════════════════════════════════════
# PRICE FEED
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class PricefeedInstantiate(ContractMsg):
    contract = ContractKind.PRICEFEED
    oracle_hub_contract: str = ""
    decimals: Optional[int] = None


@dataclass
class AppendPrice(ContractMsg):
    contract = ContractKind.PRICEFEED
    variant = "append_price"
    key: str
    price: int = uint128(0)
    timestamp: int = 0


@dataclass
class GetPriceQuery(ContractMsg):
    contract = ContractKind.PRICEFEED
    variant = "get_price"
    key: str


# ═══════════════════════════════════════════════════════════════════════════════
# VAMM
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class VammInstantiate(ContractMsg):
    contract = ContractKind.VAMM
    decimals: int
    pricefeed: Union[str, Ref]
    quote_asset: str
    base_asset: str
    quote_asset_reserve: int = uint128(0)
    base_asset_reserve: int = uint128(0)
    funding_period: int = 86_400
    toll_ratio: int = uint128(0)
    spread_ratio: int = uint128(0)
    fluctuation_limit_ratio: int = uint128(0)
    margin_engine: Optional[Union[str, Ref]] = None
    insurance_fund: Optional[Union[str, Ref]] = None
    initial_margin_ratio: Optional[int] = uint128()


@dataclass
class VammUpdateConfig(ContractMsg):
    contract = ContractKind.VAMM
    variant = "update_config"
    base_asset_holding_cap: Optional[int] = uint128()
    open_interest_notional_cap: Optional[int] = uint128()
    toll_ratio: Optional[int] = uint128()
    spread_ratio: Optional[int] = uint128()
    fluctuation_limit_ratio: Optional[int] = uint128()
    margin_engine: Optional[Union[str, Ref]] = None
    insurance_fund: Optional[Union[str, Ref]] = None
    pricefeed: Optional[Union[str, Ref]] = None
    spot_price_twap_interval: Optional[int] = None
    initial_margin_ratio: Optional[int] = uint128()


@dataclass
class SetOpen(ContractMsg):
    contract = ContractKind.VAMM
    variant = "set_open"
    open: bool


@dataclass
class SettleFunding(ContractMsg):
    contract = ContractKind.VAMM
    variant = "settle_funding"


@dataclass
class VammStateQuery(ContractMsg):
    contract = ContractKind.VAMM
    variant = "state"


@dataclass
class VammConfigQuery(ContractMsg):
    contract = ContractKind.VAMM
    variant = "config"


@dataclass
class SpotPriceQuery(ContractMsg):
    contract = ContractKind.VAMM
    variant = "spot_price"


@dataclass
class OutputAmountQuery(ContractMsg):
    contract = ContractKind.VAMM
    variant = "output_amount"
    direction: Direction
    amount: int = uint128(0)


# ═══════════════════════════════════════════════════════════════════════════════
# MARGIN ENGINE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class EngineInstantiate(ContractMsg):
    contract = ContractKind.ENGINE
    pauser: Union[str, Ref]
    fee_pool: Union[str, Ref]
    eligible_collateral: Union[str, Ref]
    initial_margin_ratio: int = uint128(0)
    maintenance_margin_ratio: int = uint128(0)
    liquidation_fee: int = uint128(0)
    insurance_fund: Optional[Union[str, Ref]] = None
    operator: Optional[Union[str, Ref]] = None
    tp_sl_spread: Optional[int] = uint128()
    decimals: Optional[int] = None


@dataclass
class EngineUpdateConfig(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "update_config"
    owner: Optional[Union[str, Ref]] = None
    insurance_fund: Optional[Union[str, Ref]] = None
    fee_pool: Optional[Union[str, Ref]] = None
    eligible_collateral: Optional[Union[str, Ref]] = None
    initial_margin_ratio: Optional[int] = uint128()
    maintenance_margin_ratio: Optional[int] = uint128()
    partial_liquidation_ratio: Optional[int] = uint128()
    tp_sl_spread: Optional[int] = uint128()
    liquidation_fee: Optional[int] = uint128()


@dataclass
class OpenPosition(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "open_position"
    vamm: Union[str, Ref]
    side: Side
    margin_amount: int = uint128(0)
    leverage: int = uint128(0)
    base_asset_limit: int = uint128(0)
    take_profit: int = uint128(0)
    stop_loss: Optional[int] = uint128()


@dataclass
class ClosePosition(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "close_position"
    vamm: Union[str, Ref]
    position_id: int
    quote_asset_limit: int = uint128(0)


@dataclass
class Liquidate(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "liquidate"
    vamm: Union[str, Ref]
    position_id: int
    trader: Union[str, Ref]
    quote_asset_limit: int = uint128(0)


@dataclass
class PayFunding(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "pay_funding"
    vamm: Union[str, Ref]


@dataclass
class DepositMargin(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "deposit_margin"
    vamm: Union[str, Ref]
    position_id: int
    amount: int = uint128(0)


@dataclass
class WithdrawMargin(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "withdraw_margin"
    vamm: Union[str, Ref]
    position_id: int
    amount: int = uint128(0)


@dataclass
class SetPause(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "set_pause"
    pause: bool


@dataclass
class EngineConfigQuery(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "config"


@dataclass
class EngineStateQuery(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "state"


@dataclass
class PositionQuery(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "position"
    vamm: Union[str, Ref]
    position_id: int


@dataclass
class MarginRatioQuery(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "margin_ratio"
    vamm: Union[str, Ref]
    position_id: int


@dataclass
class UnrealizedPnlQuery(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "unrealized_pnl"
    vamm: Union[str, Ref]
    position_id: int
    calc_option: PnlCalcOption = PnlCalcOption.SPOT_PRICE


@dataclass
class LastPositionIdQuery(ContractMsg):
    contract = ContractKind.ENGINE
    variant = "last_position_id"


# ═══════════════════════════════════════════════════════════════════════════════
# FEE POOL
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class FeePoolInstantiate(ContractMsg):
    contract = ContractKind.FEE_POOL


@dataclass
class AddToken(ContractMsg):
    contract = ContractKind.FEE_POOL
    variant = "add_token"
    token: Union[str, Ref]


@dataclass
class SendToken(ContractMsg):
    contract = ContractKind.FEE_POOL
    variant = "send_token"
    token: Union[str, Ref]
    amount: int = uint128(0)
    recipient: Union[str, Ref] = ""


# ═══════════════════════════════════════════════════════════════════════════════
# CW20 TOKEN
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Cw20Instantiate(ContractMsg):
    contract = ContractKind.TOKEN
    name: str
    symbol: str
    decimals: int
    initial_balances: List[Dict[str, Any]] = field(default_factory=list)
    mint: Optional[Dict[str, Any]] = None


@dataclass
class Cw20Mint(ContractMsg):
    contract = ContractKind.TOKEN
    variant = "mint"
    recipient: Union[str, Ref]
    amount: int = uint128(0)


@dataclass
class Cw20Transfer(ContractMsg):
    contract = ContractKind.TOKEN
    variant = "transfer"
    recipient: Union[str, Ref]
    amount: int = uint128(0)


@dataclass
class Cw20IncreaseAllowance(ContractMsg):
    contract = ContractKind.TOKEN
    variant = "increase_allowance"
    spender: Union[str, Ref]
    amount: int = uint128(0)


@dataclass
class Cw20BalanceQuery(ContractMsg):
    contract = ContractKind.TOKEN
    variant = "balance"
    address: Union[str, Ref]


# ═══════════════════════════════════════════════════════════════════════════════
# REFERENCE RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════════

def render(msg: Any) -> Any:
    """Render a typed message (or plain JSON) to a JSON structure, refs kept."""
    if isinstance(msg, ContractMsg):
        return msg.to_msg()
    return msg


def find_refs(msg: Any) -> Set[str]:
    """Labels of every Ref inside a message."""
    found: Set[str] = set()

    def walk(value: Any) -> None:
        if isinstance(value, Ref):
            found.add(value.label)
        elif isinstance(value, dict):
            for v in value.values():
                walk(v)
        elif isinstance(value, (list, tuple)):
            for v in value:
                walk(v)

    walk(render(msg))
    return found


def resolve_refs(msg: Any, addresses: Mapping[str, str]) -> Any:
    """
    Render a message and substitute every Ref with its address.

    Raises:
        LookupError: A Ref names an address that is not known yet
    """
    def walk(value: Any) -> Any:
        if isinstance(value, Ref):
            try:
                return addresses[value.label]
            except KeyError:
                raise LookupError(f"Address of '{value.label}' is not known yet") from None
        if isinstance(value, dict):
            return {k: walk(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [walk(v) for v in value]
        return value

    return walk(render(msg))
