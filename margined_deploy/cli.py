"""
Margined Deploy - Command Line

Usage:
    margined-deploy deploy --network testnet --params testnet.json --output contracts.json
    margined-deploy scenario --contracts contracts.json
    margined-deploy scenario --deploy
    margined-deploy query <contract> '{"state":{}}'
    margined-deploy fetch

Exit status: 0 success, 1 failure, 2 plan ordering error, 3 scenario
assertions failed.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import requests

from .artifacts import CW20_BASE_URL, ArtifactStore, fetch_artifact
from .config import Config, ConfigurationError, load_env
from .deploy_configs import build_protocol_plan, params_for
from .deploy_plan import SequencingError
from .deployer import Deployer, DeploymentError, DeploymentReport
from .executor import TxExecutor
from .gas_logger import GasLogger
from .lcd_client import ChainError, LCDClient, NetworkError
from .networks import NETWORKS, default_fee_policy
from .scenario import ScenarioRunner
from .scenarios import position_scenario

log = logging.getLogger("margined_deploy")

EXIT_FAILURE = 1
EXIT_SEQUENCING = 2
EXIT_ASSERTIONS = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="margined-deploy",
                                     description="Deploy and exercise the Margined perpetuals protocol")
    parser.add_argument("--network", choices=sorted(NETWORKS), default=None,
                        help="Target network (default: MARGINED_NETWORK or local)")
    parser.add_argument("--lcd-url", default=None, help="LCD endpoint override")
    parser.add_argument("--private-key", default=None, help="Deployer private key (prefer .env)")
    parser.add_argument("--address", default=None, help="Deployer bech32 address")
    parser.add_argument("--artifacts", default=None, help="Directory of compiled .wasm files")
    parser.add_argument("--settle-delay", type=float, default=None,
                        help="Seconds to wait after each confirmed transaction")
    parser.add_argument("--gas-adjustment", type=float, default=None,
                        help="Multiplier applied to simulated gas")
    parser.add_argument("--env-file", default=None, help="Load environment from this file")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    sub = parser.add_subparsers(dest="command", required=True)

    deploy = sub.add_parser("deploy", help="Deploy and wire the protocol contracts")
    deploy.add_argument("--params", default=None, help="JSON file overriding network parameters")
    deploy.add_argument("--output", default=None, help="Write contract addresses to this JSON file")
    deploy.add_argument("--gas-log", action="store_true", help="Report gas used per execute call")

    scenario = sub.add_parser("scenario", help="Run the position scenario")
    scenario.add_argument("--params", default=None, help="JSON file overriding network parameters")
    source = scenario.add_mutually_exclusive_group(required=True)
    source.add_argument("--contracts", help="JSON file of contract addresses from a previous deploy")
    source.add_argument("--deploy", action="store_true", help="Deploy a fresh topology first")
    scenario.add_argument("--gas-log", action="store_true", help="Report gas used per execute call")

    query = sub.add_parser("query", help="Smart query a contract")
    query.add_argument("contract", help="Contract address")
    query.add_argument("msg", help="Query message as JSON")

    sub.add_parser("fetch", help="Download the cw20-base collateral token artifact")
    return parser


def _executor(config: Config, gas_logger: Optional[GasLogger] = None) -> TxExecutor:
    net = config.network_entry()
    client = LCDClient(net.endpoint, config.client_config())
    return TxExecutor(client, default_fee_policy(), net.name, gas_logger=gas_logger)


def _deploy(config: Config, executor: TxExecutor, params_file: Optional[str]) -> DeploymentReport:
    params = params_for(config.network, params_file)
    plan = build_protocol_plan(params)
    deployer = Deployer(executor, config.owner_wallet(), ArtifactStore(config.artifacts_dir))
    return deployer.run(plan)


def cmd_deploy(config: Config, args) -> int:
    gas_logger = GasLogger(enabled=args.gas_log)
    report = _deploy(config, _executor(config, gas_logger), args.params)
    addresses = report.addresses()
    if args.output:
        Path(args.output).write_text(json.dumps(addresses, indent=2) + "\n")
        log.info(f"Addresses written to {args.output}")
    print(json.dumps(addresses, indent=2))
    gas_logger.report()
    return 0


def cmd_scenario(config: Config, args) -> int:
    gas_logger = GasLogger(enabled=args.gas_log)
    executor = _executor(config, gas_logger)
    if args.deploy:
        contracts: Dict[str, str] = _deploy(config, executor, args.params).addresses()
    else:
        contracts = json.loads(Path(args.contracts).read_text())

    params = params_for(config.network, args.params)
    runner = ScenarioRunner(executor, contracts, config.wallets())
    report = runner.run(position_scenario(params))
    gas_logger.report()
    for outcome in report.outcomes:
        print(f"{outcome.status.value.upper():<8} {outcome.name}"
              + (f"  ({outcome.detail})" if outcome.detail else ""))
    return 0 if report.passed else EXIT_ASSERTIONS


def cmd_query(config: Config, args) -> int:
    try:
        msg = json.loads(args.msg)
    except ValueError as e:
        raise ConfigurationError("msg", f"invalid JSON: {e}") from None
    print(json.dumps(_executor(config).query(args.contract, msg), indent=2))
    return 0


def cmd_fetch(config: Config, args) -> int:
    fetch_artifact(CW20_BASE_URL, Path(config.artifacts_dir) / "cw20_base.wasm")
    return 0


COMMANDS = {
    "deploy": cmd_deploy,
    "scenario": cmd_scenario,
    "query": cmd_query,
    "fetch": cmd_fetch,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    try:
        load_env(args.env_file)
        config = Config.from_args(args)
        config.describe()
        return COMMANDS[args.command](config, args)
    except SequencingError as e:
        log.error(f"Plan ordering error: {e}")
        return EXIT_SEQUENCING
    except DeploymentError as e:
        log.error(f"Deployment halted: {e}")
        return EXIT_FAILURE
    except ChainError as e:
        log.error(f"Chain rejected request: code {e.code} codespace {e.codespace or '-'}")
        log.error(f"raw log: {e.raw_log}")
        return EXIT_FAILURE
    except (NetworkError, ConfigurationError, FileNotFoundError, ValueError) as e:
        log.error(str(e))
        return EXIT_FAILURE
    except requests.RequestException as e:
        log.error(f"Download failed: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        log.info("Interrupted")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
