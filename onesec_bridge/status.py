from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .models import Amount, EvmTx, IcpTx, Tx

if TYPE_CHECKING:  # pragma: no cover
    from .steps.fees import ExpectedFee


class StepState(str, Enum):
    PLANNED = "planned"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


TERMINAL_STATES = (StepState.SUCCEEDED, StepState.FAILED, StepState.REFUNDED)


@dataclass(frozen=True)
class About:
    concise: str
    verbose: str


@dataclass(frozen=True)
class StepStatus:
    state: StepState
    concise: str
    verbose: str
    transaction: Optional[Tx] = None
    amount: Optional[Amount] = None
    link: Optional[str] = None
    expected_fee: Optional["ExpectedFee"] = None
    forwarding_address: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def planned(cls) -> "StepStatus":
        return cls(StepState.PLANNED, "planned", "planned")

    @classmethod
    def running(cls, concise: str, verbose: Optional[str] = None, **kwargs: Any) -> "StepStatus":
        return cls(StepState.RUNNING, concise, verbose or concise, **kwargs)

    @classmethod
    def succeeded(cls, concise: str, verbose: Optional[str] = None, **kwargs: Any) -> "StepStatus":
        return cls(StepState.SUCCEEDED, concise, verbose or concise, **kwargs)

    @classmethod
    def failed(cls, concise: str, verbose: Optional[str] = None, **kwargs: Any) -> "StepStatus":
        return cls(StepState.FAILED, concise, verbose or concise, **kwargs)

    @classmethod
    def refunded(cls, concise: str, verbose: Optional[str] = None, **kwargs: Any) -> "StepStatus":
        return cls(StepState.REFUNDED, concise, verbose or concise, **kwargs)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_halting(self) -> bool:
        return self.state in (StepState.FAILED, StepState.REFUNDED)

    def to_state(self) -> Dict[str, Any]:
        state: Dict[str, Any] = {
            "state": self.state.value,
            "concise": self.concise,
            "verbose": self.verbose,
        }
        if isinstance(self.transaction, EvmTx):
            state["transaction"] = {"evm": {"hash": self.transaction.hash, "log_index": self.transaction.log_index}}
        elif isinstance(self.transaction, IcpTx):
            state["transaction"] = {
                "icp": {"block_index": self.transaction.block_index, "ledger": self.transaction.ledger}
            }
        if self.amount is not None:
            state["amount"] = self.amount.to_state()
        if self.link:
            state["link"] = self.link
        if self.forwarding_address:
            state["forwarding_address"] = self.forwarding_address
        if self.details:
            state["details"] = dict(self.details)
        return state
