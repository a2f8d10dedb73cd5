"""
Margined Deploy - Scenario Runner

Runs an ordered script of contract calls against a deployed topology and
checks the results.

Steps run strictly in order (later steps read state written by earlier
ones). A failed assertion is recorded and the run continues; steps that
declare `requires=` on a step that did not pass are skipped instead of run
against state they cannot rely on.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .chain_types import Coin
from .executor import TxExecutor
from .lcd_client import ChainError, NetworkError
from .messages import Message, Ref, resolve_refs
from .wallet import Wallet

log = logging.getLogger(__name__)


class AssertionFailure(Exception):
    """Expected value mismatch; carries both exact values."""
    def __init__(self, actual: Any, expected: Any,
                 tolerance: Union[int, float, Decimal] = 0, path: str = ""):
        self.actual = actual
        self.expected = expected
        self.tolerance = tolerance
        self.path = path
        where = f"{path}: " if path else ""
        if tolerance:
            message = f"{where}expected {expected} +/- {tolerance}, got {actual}"
        else:
            message = f"{where}expected {expected}, got {actual}"
        super().__init__(message)


def _as_number(value: Any) -> Optional[Union[int, Decimal]]:
    """
    Integers stay int; floats, Decimals and Uint128/Integer/Decimal strings
    become Decimal. Anything else (including NaN and infinities) is None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    if isinstance(value, (str, float, Decimal)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            return None
        return number if number.is_finite() else None
    return None


def approx_equal(actual: Any, expected: Any, tolerance: Union[int, float, Decimal] = 0) -> bool:
    """
    Check expected - tolerance <= actual <= expected + tolerance.

    Numeric strings (chain Uint128, signed Integer and Decimal) and floats
    compare as numbers. Non-numeric values fall back to exact equality, so
    a failure always reports the exact mismatched values.

    Raises:
        AssertionFailure: values differ beyond tolerance
    """
    if tolerance < 0:
        raise ValueError(f"tolerance must be non-negative: {tolerance}")
    a, e = _as_number(actual), _as_number(expected)
    if a is not None and e is not None:
        tol = tolerance if isinstance(tolerance, (int, Decimal)) else Decimal(str(tolerance))
        if e - tol <= a <= e + tol:
            return True
        if isinstance(a, int) and isinstance(e, int):
            actual, expected = a, e
        raise AssertionFailure(actual, expected, tolerance)
    if actual != expected:
        raise AssertionFailure(actual, expected, tolerance)
    return True


# =============================================================================
# SCRIPT MODEL
# =============================================================================

@dataclass(frozen=True)
class Expect:
    value: Any
    tolerance: Union[int, float, Decimal] = 0


@dataclass
class ExecuteAction:
    """Execute `msg` on `contract` (label or address) signed by wallet `sender`."""
    contract: str
    msg: Message
    sender: str
    funds: Sequence[Coin] = ()


@dataclass
class QueryAction:
    contract: str
    msg: Message


@dataclass
class BalanceAction:
    """Native balance of a wallet name, contract label or address."""
    account: str
    denom: str


Action = Union[ExecuteAction, QueryAction, BalanceAction]


@dataclass
class ScenarioStep:
    """
    One scripted call.

    Structure:
      - expect: dotted path into the JSON result -> Expect (or a bare value)
      - expect_failure: the call must be rejected by the chain
      - requires: names of steps that must have passed first
    """
    name: str
    action: Action
    expect: Dict[str, Any] = field(default_factory=dict)
    expect_failure: bool = False
    requires: Tuple[str, ...] = ()


class ScenarioStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class StepOutcome:
    name: str
    status: ScenarioStatus
    detail: str = ""
    value: Any = None


@dataclass
class ScenarioReport:
    outcomes: List[StepOutcome] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(o.status in (ScenarioStatus.PASSED, ScenarioStatus.SKIPPED)
                   for o in self.outcomes)

    def outcome(self, name: str) -> StepOutcome:
        for o in self.outcomes:
            if o.name == name:
                return o
        raise KeyError(name)

    def counts(self) -> Dict[ScenarioStatus, int]:
        counts = {status: 0 for status in ScenarioStatus}
        for o in self.outcomes:
            counts[o.status] += 1
        return counts


def lookup_path(data: Any, path: str) -> Any:
    """
    Follow a dotted path through dicts and lists ("position.size", "items.0").

    An empty path returns the whole value.
    """
    if not path:
        return data
    value = data
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.lstrip("-").isdigit() and -len(value) <= int(part) < len(value):
            value = value[int(part)]
        else:
            raise AssertionFailure(None, f"a value at '{path}'", path=path)
    return value


# =============================================================================
# RUNNER
# =============================================================================

class ScenarioRunner:
    """
    Usage:
        runner = ScenarioRunner(executor, report.addresses(), {"alice": alice, "bob": bob})
        result = runner.run(position_scenario(params))
        if not result.passed:
            sys.exit(3)
    """

    def __init__(self, executor: TxExecutor, contracts: Mapping[str, str],
                 wallets: Mapping[str, Wallet]):
        self.executor = executor
        self.contracts = dict(contracts)
        self.wallets = dict(wallets)

    def _address(self, name: str) -> str:
        if name in self.contracts:
            return self.contracts[name]
        if name in self.wallets:
            return self.wallets[name].address
        return name

    def _addresses(self, sender: Optional[Wallet] = None) -> Dict[str, str]:
        addresses = {name: w.address for name, w in self.wallets.items()}
        addresses.update(self.contracts)
        if sender is not None:
            addresses[Ref.SENDER] = sender.address
        return addresses

    def _perform(self, action: Action) -> Any:
        if isinstance(action, ExecuteAction):
            try:
                wallet = self.wallets[action.sender]
            except KeyError:
                raise LookupError(f"Unknown wallet '{action.sender}'") from None
            msg = resolve_refs(action.msg, self._addresses(wallet))
            result = self.executor.execute(wallet, self._address(action.contract), msg,
                                           funds=action.funds)
            return {
                "txhash": result.txhash,
                "height": result.height,
                "gas_used": result.gas_used,
                "events": result.events,
            }
        if isinstance(action, QueryAction):
            msg = resolve_refs(action.msg, self._addresses())
            return self.executor.query(self._address(action.contract), msg)
        return {"amount": self.executor.query_balance(self._address(action.account),
                                                      action.denom)}

    def _check(self, step: ScenarioStep, value: Any) -> List[str]:
        failures = []
        for path, expected in step.expect.items():
            if not isinstance(expected, Expect):
                expected = Expect(expected)
            try:
                approx_equal(lookup_path(value, path), expected.value, expected.tolerance)
            except AssertionFailure as e:
                failures.append(str(e) if e.path else f"{path}: {e}")
        return failures

    def run_step(self, step: ScenarioStep) -> StepOutcome:
        try:
            value = self._perform(step.action)
        except ChainError as e:
            if step.expect_failure and e.raw_log:
                return StepOutcome(step.name, ScenarioStatus.PASSED, f"rejected as expected: {e.raw_log}")
            return StepOutcome(step.name, ScenarioStatus.FAILED,
                               f"code {e.code} codespace {e.codespace or '-'}: {e.raw_log}")
        except (NetworkError, LookupError) as e:
            return StepOutcome(step.name, ScenarioStatus.ERROR, str(e))

        if step.expect_failure:
            return StepOutcome(step.name, ScenarioStatus.FAILED,
                               "expected the chain to reject the call, but it succeeded", value)
        failures = self._check(step, value)
        if failures:
            return StepOutcome(step.name, ScenarioStatus.FAILED, "; ".join(failures), value)
        return StepOutcome(step.name, ScenarioStatus.PASSED, value=value)

    def run(self, steps: Sequence[ScenarioStep]) -> ScenarioReport:
        report = ScenarioReport()
        passed = set()
        for index, step in enumerate(steps, 1):
            blocked = [r for r in step.requires if r not in passed]
            if blocked:
                outcome = StepOutcome(step.name, ScenarioStatus.SKIPPED,
                                      f"requires {', '.join(blocked)}")
            else:
                log.info(f"[{index}/{len(steps)}] {step.name}")
                outcome = self.run_step(step)
            if outcome.status == ScenarioStatus.PASSED:
                passed.add(step.name)
            elif outcome.status != ScenarioStatus.SKIPPED:
                log.error(f"  {step.name}: {outcome.status.value.upper()} {outcome.detail}")
            report.outcomes.append(outcome)

        counts = report.counts()
        log.info("Scenario: " + ", ".join(f"{counts[s]} {s.value}" for s in ScenarioStatus))
        return report
