from __future__ import annotations

from typing import Optional

from ..constants import CONFIRM_BLOCKS_SLEEP_MS
from ..models import Chain
from ..status import About, StepStatus
from .base import BaseStep, now_ms, sleep_ms


class ConfirmBlocksStep(BaseStep):
    """Waits until enough blocks have probably been produced on ``chain``.

    Confirmations are estimated from wall-clock time and the configured block
    time; the settlement canister checks the real depth.
    """

    def __init__(self, chain: Chain, block_count: int, block_time_ms: int):
        super().__init__()
        self._chain = chain
        self._block_count = block_count
        self._block_time_ms = block_time_ms
        self._started_at_ms: Optional[float] = None

    def about(self) -> About:
        return About(
            concise=f"Wait for {self._block_count} blocks on {self._chain.value}",
            verbose=f"Wait for {self._block_count} blocks on {self._chain.value} to confirm the transaction",
        )

    def expected_duration_ms(self) -> int:
        return self._block_count * self._block_time_ms

    def _reset_for_retry(self) -> None:
        self._started_at_ms = None

    def _attempt(self) -> StepStatus:
        if self._started_at_ms is None:
            self._started_at_ms = now_ms()
        sleep_ms(CONFIRM_BLOCKS_SLEEP_MS)
        elapsed = now_ms() - self._started_at_ms
        confirmed = min(int(elapsed // self._block_time_ms), self._block_count)
        if confirmed >= self._block_count:
            return StepStatus.succeeded(
                f"confirmed {self._block_count} blocks",
                f"{self._block_count} blocks confirmed on {self._chain.value}",
            )
        return StepStatus.running(
            f"confirmed {confirmed}/{self._block_count} blocks",
            f"{confirmed} of {self._block_count} blocks confirmed on {self._chain.value}",
            details={"confirmed_blocks": confirmed},
        )
