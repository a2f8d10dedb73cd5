"""
Margined Deploy - Scenarios

Ready-made scenario scripts for a freshly deployed protocol.
"""

from typing import List, Optional

from .chain_types import Coin
from .deploy_configs import ProtocolParams
from .messages import (
    ClosePosition,
    Cw20BalanceQuery,
    Cw20IncreaseAllowance,
    Liquidate,
    OpenPosition,
    PositionQuery,
    Ref,
    SetOpen,
    Side,
    VammStateQuery,
)
from .scenario import BalanceAction, ExecuteAction, Expect, QueryAction, ScenarioStep


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def amm_position_size(quote_reserve: int, base_reserve: int, notional: int, side: Side) -> int:
    """
    Signed base size of a position opened against a constant-product AMM.

    A long adds `notional` to the quote reserve and takes base out; a short
    removes quote and puts base in. Reserves keep quote * base constant; the
    new base reserve is rounded up (in the AMM's favour).

    >>> amm_position_size(1_000_000_000, 100_000_000, 600_000_000, Side.BUY)
    37500000
    """
    k = quote_reserve * base_reserve
    if side == Side.BUY:
        return base_reserve - _ceil_div(k, quote_reserve + notional)
    if notional >= quote_reserve:
        raise ValueError(f"Short notional {notional} exceeds quote reserve {quote_reserve}")
    return -(_ceil_div(k, quote_reserve - notional) - base_reserve)


def position_scenario(params: ProtocolParams,
                      owner: str = "owner",
                      trader: str = "alice",
                      counterparty: str = "bob",
                      liquidator: str = "carol",
                      long_margin: Optional[int] = None,
                      long_leverage: Optional[int] = None,
                      short_margin: Optional[int] = None,
                      short_leverage: Optional[int] = None,
                      size_tolerance: int = 1,
                      first_position_id: int = 1) -> List[ScenarioStep]:
    """
    Open / query / liquidate / close walk-through on a fresh deployment.

    Margins and leverages are in contract units (scaled by 10^decimals);
    defaults are 60 @ 10x long and 20 @ 5x short. Expected sizes follow the
    vAMM reserves, so the script assumes no other trades on the vAMM.
    """
    one = params.to_decimals(1)
    long_margin = long_margin if long_margin is not None else 60 * one
    long_leverage = long_leverage if long_leverage is not None else 10 * one
    short_margin = short_margin if short_margin is not None else 20 * one
    short_leverage = short_leverage if short_leverage is not None else 5 * one

    long_notional = long_margin * long_leverage // one
    short_notional = short_margin * short_leverage // one

    quote, base = params.quote_asset_reserve, params.base_asset_reserve
    long_size = amm_position_size(quote, base, long_notional, Side.BUY)
    quote, base = quote + long_notional, base - long_size
    short_size = amm_position_size(quote, base, short_notional, Side.SELL)

    long_id, short_id = first_position_id, first_position_id + 1

    def margin_steps(who: str, amount: int):
        """Approve token collateral, or attach native funds."""
        if params.collateral_is_native:
            return [], (Coin(params.native_collateral, amount),)
        approve = ScenarioStep(
            f"{who} approves engine",
            ExecuteAction("token", Cw20IncreaseAllowance(spender=Ref("engine"), amount=amount), who),
        )
        return [approve], ()

    steps: List[ScenarioStep] = [
        ScenarioStep("vamm is open", QueryAction("vamm", VammStateQuery()), expect={"open": True}),
        ScenarioStep("close vamm", ExecuteAction("vamm", SetOpen(open=False), owner)),
        ScenarioStep(
            "open rejected while vamm closed",
            ExecuteAction("engine", OpenPosition(vamm=Ref("vamm"), side=Side.BUY,
                                                 margin_amount=long_margin,
                                                 leverage=long_leverage), trader,
                          funds=margin_steps(trader, long_margin)[1]),
            expect_failure=True,
            requires=("close vamm",),
        ),
        ScenarioStep("reopen vamm", ExecuteAction("vamm", SetOpen(open=True), owner),
                     requires=("close vamm",)),
    ]

    approve, funds = margin_steps(trader, long_margin)
    steps += approve
    steps += [
        ScenarioStep(
            f"{trader} opens long",
            ExecuteAction("engine", OpenPosition(vamm=Ref("vamm"), side=Side.BUY,
                                                 margin_amount=long_margin,
                                                 leverage=long_leverage), trader, funds=funds),
            requires=("reopen vamm",) + tuple(s.name for s in approve),
        ),
        ScenarioStep(
            f"{trader} position",
            QueryAction("engine", PositionQuery(vamm=Ref("vamm"), position_id=long_id)),
            expect={
                "size": Expect(long_size, size_tolerance),
                "margin": long_margin,
                "notional": long_notional,
            },
            requires=(f"{trader} opens long",),
        ),
    ]

    if params.collateral_is_native:
        holding = BalanceAction("engine", params.native_collateral)
        holding_path = "amount"
    else:
        holding = QueryAction("token", Cw20BalanceQuery(address=Ref("engine")))
        holding_path = "balance"
    steps.append(ScenarioStep("engine holds long margin", holding,
                              expect={holding_path: long_margin},
                              requires=(f"{trader} opens long",)))

    approve, funds = margin_steps(counterparty, short_margin)
    steps += approve
    steps += [
        ScenarioStep(
            f"{counterparty} opens short",
            ExecuteAction("engine", OpenPosition(vamm=Ref("vamm"), side=Side.SELL,
                                                 margin_amount=short_margin,
                                                 leverage=short_leverage), counterparty,
                          funds=funds),
            requires=(f"{trader} opens long",) + tuple(s.name for s in approve),
        ),
        ScenarioStep(
            f"{counterparty} position",
            QueryAction("engine", PositionQuery(vamm=Ref("vamm"), position_id=short_id)),
            expect={
                "size": Expect(short_size, size_tolerance),
                "margin": short_margin,
                "notional": short_notional,
            },
            requires=(f"{counterparty} opens short",),
        ),
        ScenarioStep(
            f"{liquidator} cannot liquidate healthy position",
            ExecuteAction("engine", Liquidate(vamm=Ref("vamm"), position_id=long_id,
                                              trader=Ref(trader)), liquidator),
            expect_failure=True,
            requires=(f"{trader} opens long",),
        ),
        ScenarioStep(
            f"{trader} closes long",
            ExecuteAction("engine", ClosePosition(vamm=Ref("vamm"), position_id=long_id), trader),
            requires=(f"{trader} opens long",),
        ),
        ScenarioStep(
            f"{trader} position removed",
            QueryAction("engine", PositionQuery(vamm=Ref("vamm"), position_id=long_id)),
            expect_failure=True,
            requires=(f"{trader} closes long",),
        ),
    ]
    return steps
