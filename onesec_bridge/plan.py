"""Ordered execution of bridge steps."""
from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

from .errors import PlanStructureError
from .logging_utils import compose_log
from .status import StepState, StepStatus
from .steps.base import Step
from .steps.fees import ExpectedFee, FetchFeesAndCheckLimitsStep


class BridgingPlan:
    """A fixed list of steps and a cursor over them.

    The cursor only moves past succeeded steps. When the step at the cursor
    has failed or been refunded the plan stops offering steps; the caller may
    retry that step with ``step.run()`` or abandon the plan.
    """

    def __init__(self, steps: Sequence[Step]):
        if not steps:
            raise PlanStructureError("A bridging plan needs at least one step.")
        if len({id(step) for step in steps}) != len(steps):
            raise PlanStructureError("A step appears more than once in the plan.")
        for step in steps:
            if step.index is not None:
                raise PlanStructureError(f"{type(step).__name__} already belongs to another plan.")
        for index, step in enumerate(steps):
            step.bind(index)
        self._steps: Tuple[Step, ...] = tuple(steps)
        self._current = 0

    def steps(self) -> List[Step]:
        return list(self._steps)

    def _advance(self) -> None:
        while self._current < len(self._steps) and self._steps[self._current].status().state is StepState.SUCCEEDED:
            self._current += 1

    def _halted_step(self) -> Optional[Step]:
        if self._current < len(self._steps):
            step = self._steps[self._current]
            if step.status().is_halting:
                return step
        return None

    def next_step_to_run(self) -> Optional[Step]:
        """The step to run next, or ``None`` when finished or halted."""
        self._advance()
        if self._current >= len(self._steps) or self._halted_step() is not None:
            return None
        return self._steps[self._current]

    def latest_step(self) -> Optional[Step]:
        """The step that determined the plan's current outcome, or ``None`` before any progress."""
        self._advance()
        halted = self._halted_step()
        if halted is not None:
            return halted
        if self._current == 0:
            return None
        return self._steps[self._current - 1]

    def is_finished(self) -> bool:
        self._advance()
        return self._current >= len(self._steps)

    def run_all_steps(self, log: Optional[Callable[[str], None]] = None) -> StepStatus:
        """Run steps until the plan finishes or halts and return the final status."""
        _log = compose_log(log)
        step = self.next_step_to_run()
        while step is not None:
            status = step.run()
            _log(f"[{step.index + 1}/{len(self._steps)}] {step.about().concise}: {status.concise}")
            step = self.next_step_to_run()
        latest = self.latest_step()
        return latest.status() if latest is not None else StepStatus.planned()

    def expected_duration_ms(self) -> int:
        return sum(step.expected_duration_ms() for step in self._steps)

    def expected_fee(self) -> Optional[ExpectedFee]:
        for step in self._steps:
            if isinstance(step, FetchFeesAndCheckLimitsStep):
                return step.expected_fee()
        return None
