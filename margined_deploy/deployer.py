"""
Margined Deploy - Deployer

Runs a DeploymentPlan step by step with one wallet.

Steps are strictly sequential: later payloads embed addresses produced by
earlier steps, and one wallet's sequence number must advance without gaps.
Each step moves PENDING -> SUBMITTED -> CONFIRMED or FAILED. The first
failure halts the run; nothing is rolled back (on-chain deployments are not
reversible), the operator redeploys or patches by hand.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .artifacts import ArtifactStore
from .chain_types import DeployedContract, TransactionResult
from .deploy_plan import DeploymentPlan, DeployStep, SequencingError, Step
from .executor import TxExecutor
from .lcd_client import ChainError
from .messages import Ref, resolve_refs
from .wallet import Wallet

log = logging.getLogger(__name__)


class StepStatus(Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class StepRecord:
    """Progress of one plan step."""
    index: int
    step: Step
    status: StepStatus = StepStatus.PENDING
    contract: Optional[DeployedContract] = None
    result: Optional[TransactionResult] = None
    error: Optional[Exception] = None


class DeploymentError(Exception):
    """A plan step failed; the plan was halted at that step."""
    def __init__(self, step_index: int, label: str, cause: Exception):
        self.step_index = step_index
        self.label = label
        self.cause = cause
        message = f"Step {step_index} ({label}) failed: {cause}"
        if isinstance(cause, ChainError):
            message = (f"Step {step_index} ({label}) failed with "
                       f"code {cause.code} codespace {cause.codespace or '-'}\n"
                       f"raw log: {cause.raw_log}")
        super().__init__(message)

    @property
    def raw_log(self) -> str:
        return getattr(self.cause, "raw_log", "")


@dataclass
class DeploymentReport:
    """Contracts produced by a run and the per-step records."""
    contracts: Dict[str, DeployedContract] = field(default_factory=dict)
    records: List[StepRecord] = field(default_factory=list)

    def address(self, label: str) -> str:
        return self.contracts[label].address

    def addresses(self) -> Dict[str, str]:
        return {label: c.address for label, c in self.contracts.items()}


class Deployer:
    """
    Deployment orchestrator.

    Usage:
        deployer = Deployer(executor, wallet, ArtifactStore("../artifacts"))
        report = deployer.run(plan)
        print(report.address("engine"))
    """

    def __init__(self, executor: TxExecutor, wallet: Wallet, artifacts: ArtifactStore):
        self.executor = executor
        self.wallet = wallet
        self.artifacts = artifacts
        self._code_ids: Dict[str, int] = {}

    def run(self, plan: DeploymentPlan) -> DeploymentReport:
        """
        Execute every step of the plan in order.

        Raises:
            SequencingError: plan is not well ordered (before any network call)
            DeploymentError: a step failed; carries index, label and cause
        """
        plan.validate()
        self._code_ids = {}
        report = DeploymentReport(records=[StepRecord(i, s) for i, s in enumerate(plan)])
        log.info(f"Deploying {len(plan)} step(s) from {self.wallet.address}")

        for record in report.records:
            step = record.step
            addresses = {Ref.SENDER: self.wallet.address, **report.addresses()}
            log.info(f"[{record.index + 1}/{len(plan)}] {step.description}...")
            try:
                if isinstance(step, DeployStep):
                    init_msg = resolve_refs(step.init_msg, addresses)
                    admin = resolve_refs(step.admin, addresses) if step.admin is not None else None
                else:
                    msg = resolve_refs(step.msg, addresses)
                    target = addresses[step.target]
            except LookupError as e:
                record.status = StepStatus.FAILED
                record.error = e
                raise SequencingError(record.index, step.label, str(e)) from e

            record.status = StepStatus.SUBMITTED
            try:
                if isinstance(step, DeployStep):
                    record.contract = self._deploy(step, init_msg, admin)
                    report.contracts[step.label] = record.contract
                else:
                    record.result = self.executor.execute(
                        self.wallet, target, msg, funds=step.funds)
            except Exception as e:
                record.status = StepStatus.FAILED
                record.error = e
                log.error(f"Step {record.index} ({step.label}) failed: {e}")
                raise DeploymentError(record.index, step.label, e) from e
            record.status = StepStatus.CONFIRMED

        for label, contract in report.contracts.items():
            log.info(f"  {label:<16} {contract.address} (code {contract.code_id})")
        return report

    def _deploy(self, step: DeployStep, init_msg: Any, admin: Optional[str]) -> DeployedContract:
        """Upload (once per artifact within a run) and instantiate."""
        code_id = step.code_id
        if code_id is None:
            code_id = self._code_ids.get(step.artifact)
        if code_id is None:
            code_id = self.executor.upload(self.wallet, self.artifacts.path(step.artifact))
            self._code_ids[step.artifact] = code_id
        else:
            log.info(f"Reusing code id {code_id} for {step.label}")

        address = self.executor.instantiate(self.wallet, code_id, init_msg, step.label,
                                            admin=admin, funds=step.funds)
        return DeployedContract(step.label, code_id, address)
