"""
Margined Deploy - Deploy Configs

Per-network initialization parameters and the protocol deployment plan.

Deployment order (two phases, since some contracts reference each other in
both directions):

  Phase 1 - instantiate with what is already known
    fee_pool, insurance_fund, pricefeed      no dependencies
    token (cw20 collateral, optional)        mints to the deployer
    vamm                                     needs pricefeed, insurance_fund
    engine                                   needs insurance_fund, fee_pool

  Phase 2 - close the remaining references
    vamm.update_config{margin_engine}
    insurance_fund.update_config{beneficiary: engine}
    insurance_fund.add_vamm{vamm}
    engine.update_config{eligible_collateral}
    fee_pool.add_token{token}
    pricefeed.append_price (optional seed price)
    vamm.set_open{open: true}
"""

import json
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .deploy_plan import DeploymentPlan
from .messages import (
    AddToken,
    AddVamm,
    AppendPrice,
    Cw20Instantiate,
    EngineInstantiate,
    EngineUpdateConfig,
    FeePoolInstantiate,
    InsuranceFundInstantiate,
    InsuranceFundUpdateConfig,
    PricefeedInstantiate,
    Ref,
    SetOpen,
    VammInstantiate,
    VammUpdateConfig,
)

# Contract artifact file names
ARTIFACTS = {
    "fee_pool": "margined_fee_pool.wasm",
    "insurance_fund": "margined_insurance_fund.wasm",
    "pricefeed": "margined_pricefeed.wasm",
    "vamm": "margined_vamm.wasm",
    "engine": "margined_engine.wasm",
    "token": "cw20_base.wasm",
}


@dataclass
class ProtocolParams:
    """
    Initialization parameters of one protocol deployment.

    Ratios are fixed-point integers scaled by 10^decimals
    (e.g., 50_000 = 0.05 with 6 decimals).
    """
    decimals: int = 6
    quote_asset: str = "USD"
    base_asset: str = "ETH"
    quote_asset_reserve: int = 1_000_000_000   # 1,000.00
    base_asset_reserve: int = 100_000_000      # 100.00
    funding_period: int = 86_400               # 1 day in seconds
    toll_ratio: int = 0
    spread_ratio: int = 0
    fluctuation_limit_ratio: int = 0
    initial_margin_ratio: int = 50_000
    maintenance_margin_ratio: int = 50_000
    liquidation_fee: int = 50_000
    oracle_hub_contract: str = ""
    # native denom used as collateral when no cw20 token is deployed
    native_collateral: str = "uusd"
    deploy_token: bool = False
    token_name: str = "USDC"
    token_symbol: str = "USDC"
    token_initial_supply: int = 0
    collateral_via_update: bool = True
    initial_price: Optional[int] = None
    initial_price_timestamp: int = 1_000_000_000
    artifacts: Dict[str, str] = field(default_factory=lambda: dict(ARTIFACTS))

    @property
    def collateral_is_native(self) -> bool:
        return not self.deploy_token

    def to_decimals(self, value: int) -> int:
        """Scale a whole number to contract fixed-point units."""
        return value * 10 ** self.decimals


# =============================================================================
# NETWORK PARAMETER TABLES
# =============================================================================

local = ProtocolParams()

testnet = ProtocolParams(
    decimals=9,
    quote_asset="USD",
    base_asset="ETH",
    quote_asset_reserve=1_000 * 10 ** 9,
    base_asset_reserve=100 * 10 ** 9,
    initial_margin_ratio=50_000_000,
    maintenance_margin_ratio=50_000_000,
    liquidation_fee=50_000_000,
    native_collateral="orai",
    deploy_token=True,
    token_initial_supply=5_000 * 10 ** 9,
    initial_price=10_000_000_000,
)

mainnet = replace(testnet, initial_price=None, token_initial_supply=0)

PARAMS: Dict[str, ProtocolParams] = {
    "local": local,
    "juno-local": local,
    "testnet": testnet,
    "mainnet": mainnet,
}


def params_for(network: str, override_file: Optional[Union[str, Path]] = None) -> ProtocolParams:
    """
    Parameters of a network, optionally overridden from a JSON file.

    Raises:
        KeyError: unknown network
        ValueError: JSON file names an unknown parameter
    """
    base = PARAMS[network]
    if override_file is None:
        return replace(base, artifacts=dict(base.artifacts))
    overrides: Dict[str, Any] = json.loads(Path(override_file).read_text())
    known = {f.name for f in fields(ProtocolParams)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown parameters in {override_file}: {', '.join(unknown)}")
    overrides["artifacts"] = {**base.artifacts, **overrides.get("artifacts", {})}
    return replace(base, **overrides)


def params_to_dict(params: ProtocolParams) -> Dict[str, Any]:
    return asdict(params)


# =============================================================================
# PROTOCOL PLAN
# =============================================================================

def build_protocol_plan(params: ProtocolParams) -> DeploymentPlan:
    """Full deploy + wiring plan for one vAMM market."""
    plan = DeploymentPlan()
    art = params.artifacts

    plan.deploy("fee_pool", art["fee_pool"], FeePoolInstantiate())
    plan.deploy("insurance_fund", art["insurance_fund"], InsuranceFundInstantiate())
    plan.deploy("pricefeed", art["pricefeed"], PricefeedInstantiate(
        oracle_hub_contract=params.oracle_hub_contract,
        decimals=params.decimals,
    ))

    collateral: Union[str, Ref] = params.native_collateral
    if params.deploy_token:
        initial_balances: List[Dict[str, Any]] = []
        if params.token_initial_supply:
            initial_balances.append({"address": Ref.sender(),
                                     "amount": str(params.token_initial_supply)})
        plan.deploy("token", art["token"], Cw20Instantiate(
            name=params.token_name,
            symbol=params.token_symbol,
            decimals=params.decimals,
            initial_balances=initial_balances,
            mint={"minter": Ref.sender()},
        ))
        collateral = Ref("token")

    plan.deploy("vamm", art["vamm"], VammInstantiate(
        decimals=params.decimals,
        pricefeed=Ref("pricefeed"),
        quote_asset=params.quote_asset,
        base_asset=params.base_asset,
        quote_asset_reserve=params.quote_asset_reserve,
        base_asset_reserve=params.base_asset_reserve,
        funding_period=params.funding_period,
        toll_ratio=params.toll_ratio,
        spread_ratio=params.spread_ratio,
        fluctuation_limit_ratio=params.fluctuation_limit_ratio,
        insurance_fund=Ref("insurance_fund"),
    ))

    plan.deploy("engine", art["engine"], EngineInstantiate(
        pauser=Ref.sender(),
        insurance_fund=Ref("insurance_fund"),
        fee_pool=Ref("fee_pool"),
        eligible_collateral=collateral,
        initial_margin_ratio=params.initial_margin_ratio,
        maintenance_margin_ratio=params.maintenance_margin_ratio,
        liquidation_fee=params.liquidation_fee,
    ))

    plan.execute("vamm", VammUpdateConfig(margin_engine=Ref("engine")),
                 description="set margin engine in vAMM")
    plan.execute("insurance_fund", InsuranceFundUpdateConfig(beneficiary=Ref("engine")),
                 description="set engine as insurance fund beneficiary")
    plan.execute("insurance_fund", AddVamm(vamm=Ref("vamm")),
                 description="register vAMM with insurance fund")
    if params.collateral_via_update:
        plan.execute("engine", EngineUpdateConfig(eligible_collateral=collateral),
                     description="set eligible collateral in engine")
    if params.deploy_token:
        plan.execute("fee_pool", AddToken(token=Ref("token")),
                     description="register collateral token with fee pool")
    if params.initial_price is not None:
        plan.execute("pricefeed", AppendPrice(key=params.base_asset,
                                              price=params.initial_price,
                                              timestamp=params.initial_price_timestamp),
                     description="seed price feed")
    plan.execute("vamm", SetOpen(open=True), description="open vAMM")
    return plan
