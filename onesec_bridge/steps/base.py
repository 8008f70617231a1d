from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Optional, Protocol

from web3.exceptions import ContractLogicError, Web3Exception

from ..backoff import Backoff
from ..errors import PlanStructureError, RemoteCallError, RemoteRejection
from ..logging_utils import get_bridge_logger
from ..status import About, StepState, StepStatus

logger = get_bridge_logger()

# Errors a step retries on its next run instead of failing.
TRANSIENT_ERRORS = (RemoteCallError, OSError, Web3Exception)


class Step(Protocol):
    @property
    def index(self) -> Optional[int]:
        ...

    def bind(self, index: int) -> None:
        ...

    def status(self) -> StepStatus:
        ...

    def about(self) -> About:
        ...

    def expected_duration_ms(self) -> int:
        ...

    def run(self) -> StepStatus:
        ...


def sleep_ms(delay_ms: float) -> None:
    time.sleep(delay_ms / 1000)


def now_ms() -> float:
    return time.monotonic() * 1000


class BaseStep(ABC):
    """Runs one attempt per :meth:`run` call and keeps the resulting status.

    Succeeded and refunded steps are final: running them again returns the
    stored status. A failed step is attempted again from scratch.
    """

    def __init__(self) -> None:
        self._status = StepStatus.planned()
        self._index: Optional[int] = None

    @property
    def index(self) -> Optional[int]:
        return self._index

    def bind(self, index: int) -> None:
        if self._index is not None:
            raise PlanStructureError(f"{type(self).__name__} already belongs to a plan (index {self._index}).")
        self._index = index

    def status(self) -> StepStatus:
        return self._status

    @abstractmethod
    def about(self) -> About:
        ...

    @abstractmethod
    def expected_duration_ms(self) -> int:
        ...

    @abstractmethod
    def _attempt(self) -> StepStatus:
        ...

    def _reset_for_retry(self) -> None:
        """Drop state from a failed attempt before retrying."""

    def run(self) -> StepStatus:
        if self._status.state in (StepState.SUCCEEDED, StepState.REFUNDED):
            return self._status
        if self._status.state is StepState.FAILED:
            self._reset_for_retry()
        try:
            status = self._attempt()
        except ContractLogicError as exc:
            status = StepStatus.failed("transaction would revert", f"{self.about().concise}: {exc}")
        except RemoteRejection as exc:
            status = StepStatus.failed("rejected", f"{self.about().concise}: {exc}")
        except TRANSIENT_ERRORS as exc:
            logger.warning("%s: transient error, will retry: %s", type(self).__name__, exc)
            status = StepStatus.running(
                "retrying after error",
                f"{self.about().concise}: {exc}",
                details={"error": str(exc)},
            )
        if status.state is not self._status.state:
            logger.info("Step %s %s: %s", self._index, status.state.value, status.concise)
        self._status = status
        return status


class PollingStep(BaseStep):
    """A step that sleeps for its backoff delay before each remote read."""

    def __init__(self, initial_delay_ms: float):
        super().__init__()
        self._backoff = Backoff(initial_delay_ms)

    def _reset_for_retry(self) -> None:
        self._backoff.reset()

    def _wait(self) -> None:
        sleep_ms(self._backoff.advance())
