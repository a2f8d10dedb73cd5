"""
Margined Deploy - Deployment Plan

Declarative, ordered list of deploy and configuration steps.

A DeployStep uploads (or reuses) bytecode and instantiates one contract under
a label. An ExecuteStep sends a configuration message to an already deployed
contract. Messages may reference earlier contracts through Ref("label");
validate() rejects any reference to a label that has not been deployed by a
strictly earlier step, before anything touches the network.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Set, Union

from .chain_types import Coin
from .messages import Message, Ref, find_refs


class SequencingError(Exception):
    """The plan references an address before the step producing it."""
    def __init__(self, step_index: int, label: str, message: str):
        self.step_index = step_index
        self.label = label
        super().__init__(f"Step {step_index} ({label}): {message}")


@dataclass
class DeployStep:
    """
    Upload + instantiate one contract.

    Structure:
      - label: Unique name other steps use in Ref("label")
      - artifact: Wasm file name inside the artifact directory
      - init_msg: Instantiate message (typed, RawMsg or plain dict)
      - admin: Migration admin (defaults to the deploying wallet)
      - code_id: Existing code id; skips the upload when set
    """
    label: str
    artifact: str
    init_msg: Message
    admin: Optional[Union[str, Ref]] = None
    funds: Sequence[Coin] = ()
    code_id: Optional[int] = None

    @property
    def description(self) -> str:
        return f"deploy {self.label}"


@dataclass
class ExecuteStep:
    """Configuration call on a contract deployed by an earlier step."""
    target: str
    msg: Message
    funds: Sequence[Coin] = ()
    description: str = ""

    @property
    def label(self) -> str:
        return self.target

    def __post_init__(self):
        if not self.description:
            self.description = f"configure {self.target}"


Step = Union[DeployStep, ExecuteStep]


@dataclass
class DeploymentPlan:
    """
    Ordered deployment pipeline.

    Usage:
        plan = DeploymentPlan()
        plan.deploy("pricefeed", "margined_pricefeed.wasm", PricefeedInstantiate())
        plan.deploy("vamm", "margined_vamm.wasm", VammInstantiate(..., pricefeed=Ref("pricefeed")))
        plan.execute("vamm", SetOpen(open=True))
        plan.validate()
    """
    steps: List[Step] = field(default_factory=list)

    def deploy(self, label: str, artifact: str, init_msg: Message, **kwargs) -> "DeploymentPlan":
        self.steps.append(DeployStep(label, artifact, init_msg, **kwargs))
        return self

    def execute(self, target: str, msg: Message, **kwargs) -> "DeploymentPlan":
        self.steps.append(ExecuteStep(target, msg, **kwargs))
        return self

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def labels(self) -> List[str]:
        """Labels of every contract the plan deploys, in order."""
        return [s.label for s in self.steps if isinstance(s, DeployStep)]

    def validate(self) -> None:
        """
        Check ordering dependencies without any network call.

        Raises:
            SequencingError: duplicate label, forward reference, or execute
                             step targeting a contract not deployed yet
        """
        deployed: Set[str] = set()
        for index, step in enumerate(self.steps):
            if isinstance(step, DeployStep):
                if step.label in deployed:
                    raise SequencingError(index, step.label, "label deployed twice")
                if step.label == Ref.SENDER:
                    raise SequencingError(index, step.label, "label is reserved")
                refs = find_refs(step.init_msg)
                if isinstance(step.admin, Ref):
                    refs.add(step.admin.label)
            else:
                if step.target not in deployed:
                    raise SequencingError(index, step.target,
                                          "execute targets a contract not deployed yet")
                refs = find_refs(step.msg)

            missing = sorted(refs - deployed - {Ref.SENDER})
            if missing:
                raise SequencingError(
                    index, step.label,
                    f"references {', '.join(missing)} before it is deployed")

            if isinstance(step, DeployStep):
                deployed.add(step.label)
