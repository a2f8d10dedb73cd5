"""
Margined Deploy

Deployment and scenario tooling for the Margined perpetuals protocol on
CosmWasm chains.

Architecture:
  - LCD client talks to the node (accounts, simulate, broadcast, queries)
  - Transaction executor builds, signs and submits one operation at a time
  - Deployer runs a declarative DeploymentPlan (deploy, then wire)
  - Scenario runner replays scripted trades and checks the results

Fees:
  - Fee-less test networks: zero bid, gas simulated
  - Other networks: fixed bid per operation (upload > instantiate > execute)

Usage:
    from margined_deploy import (LCDClient, TxExecutor, Deployer, ArtifactStore,
                                 Wallet, get_network, default_fee_policy,
                                 build_protocol_plan, params_for)

    net = get_network("testnet")
    client = LCDClient(net.endpoint)
    executor = TxExecutor(client, default_fee_policy(), net.name)

    wallet = Wallet("orai1...", "0x...")
    plan = build_protocol_plan(params_for("testnet"))
    report = Deployer(executor, wallet, ArtifactStore("artifacts")).run(plan)
"""

from .chain_types import Account, ChainEndpoint, Coin, DeployedContract, TransactionResult
from .lcd_client import ChainError, ClientConfig, LCDClient, NetworkError
from .wallet import Wallet
from .fee_policy import ESTIMATE_GAS, FeeBid, FeePolicy, NetworkFees, OperationKind
from .networks import NETWORKS, Network, default_fee_policy, get_network
from .gas_logger import GasLogger
from .executor import TxExecutor
from .messages import RawMsg, Ref, resolve_refs
from .deploy_plan import DeploymentPlan, DeployStep, ExecuteStep, SequencingError
from .deployer import Deployer, DeploymentError, DeploymentReport, StepStatus
from .deploy_configs import ProtocolParams, build_protocol_plan, params_for
from .artifacts import ArtifactStore, fetch_artifact
from .scenario import (
    AssertionFailure,
    BalanceAction,
    ExecuteAction,
    Expect,
    QueryAction,
    ScenarioReport,
    ScenarioRunner,
    ScenarioStatus,
    ScenarioStep,
    approx_equal,
)
from .scenarios import amm_position_size, position_scenario

__version__ = "0.1.0"
__all__ = [
    # Types
    "Account", "ChainEndpoint", "Coin", "DeployedContract", "TransactionResult",
    # Chain access
    "LCDClient", "ClientConfig", "Wallet", "TxExecutor",
    # Errors
    "NetworkError", "ChainError", "SequencingError", "DeploymentError", "AssertionFailure",
    # Fees / networks
    "ESTIMATE_GAS", "FeeBid", "FeePolicy", "NetworkFees", "OperationKind",
    "NETWORKS", "Network", "default_fee_policy", "get_network",
    # Deployment
    "RawMsg", "Ref", "resolve_refs", "DeploymentPlan", "DeployStep", "ExecuteStep",
    "Deployer", "DeploymentReport", "StepStatus",
    "ProtocolParams", "build_protocol_plan", "params_for",
    "ArtifactStore", "fetch_artifact",
    # Scenarios
    "approx_equal", "Expect", "ExecuteAction", "QueryAction", "BalanceAction",
    "ScenarioStep", "ScenarioRunner", "ScenarioReport", "ScenarioStatus",
    "amm_position_size", "position_scenario",
    # Diagnostics
    "GasLogger",
]
