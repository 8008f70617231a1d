from __future__ import annotations

from decimal import Decimal, ROUND_DOWN
from typing import List, Optional

from ..constants import ICP_CALL_DURATION_MS
from ..models import Amount, Chain, Token, TransferFee
from ..remote import OneSecCanister
from ..status import About, StepStatus
from ..utils import amount_from_units, format_amount
from .base import BaseStep


class ExpectedFee:
    """Fees a transfer is expected to pay, from the current fee table."""

    def __init__(self, transfer_fee_units: int, protocol_fee_in_percent: float, decimals: int):
        self._transfer_fee_units = transfer_fee_units
        self._protocol_fee_fraction = Decimal(str(protocol_fee_in_percent))
        self._decimals = decimals

    def transfer_fee(self) -> Amount:
        return amount_from_units(self._transfer_fee_units, self._decimals)

    def protocol_fee(self, amount: Amount) -> Amount:
        units = int((Decimal(amount.in_units) * self._protocol_fee_fraction).to_integral_value(rounding=ROUND_DOWN))
        return amount_from_units(units, self._decimals)

    def protocol_fee_in_percent(self) -> Decimal:
        """Protocol fee as a percentage (0.1 means 0.1%)."""
        return self._protocol_fee_fraction * 100

    def total_fee(self, amount: Amount) -> Amount:
        return amount_from_units(self._transfer_fee_units + self.protocol_fee(amount).in_units, self._decimals)


def find_fee(fees: List[TransferFee], token: Token, source: Chain, destination: Chain) -> Optional[TransferFee]:
    for fee in fees:
        if fee.token == token and fee.source_chain == source and fee.destination_chain == destination:
            return fee
    return None


class FetchFeesAndCheckLimitsStep(BaseStep):
    """Checks the route and amount against the remote fee table."""

    def __init__(
        self,
        onesec: OneSecCanister,
        token: Token,
        source_chain: Chain,
        destination_chain: Chain,
        decimals: int,
        *,
        amount: Optional[int] = None,
        is_forwarding: bool = False,
    ):
        super().__init__()
        self._onesec = onesec
        self._token = token
        self._source_chain = source_chain
        self._destination_chain = destination_chain
        self._decimals = decimals
        self._amount = amount
        self._is_forwarding = is_forwarding

    def about(self) -> About:
        return About(
            concise="Fetch fees and check limits",
            verbose=(
                f"Fetch fees and check limits for bridging {self._token.value} "
                f"from {self._source_chain.value} to {self._destination_chain.value}"
            ),
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS

    def expected_fee(self) -> Optional[ExpectedFee]:
        return self._status.expected_fee

    def _fmt(self, units: int) -> str:
        return f"{format_amount(units, self._decimals)} {self._token.value}"

    def _attempt(self) -> StepStatus:
        fees = self._onesec.get_transfer_fees()
        fee = find_fee(fees, self._token, self._source_chain, self._destination_chain)
        if fee is None:
            return StepStatus.failed(
                "bridging not supported",
                f"Bridging {self._token.value} from {self._source_chain.value} "
                f"to {self._destination_chain.value} is not supported",
            )

        if self._amount is not None:
            if self._amount < fee.min_amount:
                return StepStatus.failed(
                    "amount is too low",
                    f"Amount {self._fmt(self._amount)} is below the minimum {self._fmt(fee.min_amount)}",
                )
            if self._amount > fee.max_amount:
                return StepStatus.failed(
                    "amount is too high",
                    f"Amount {self._fmt(self._amount)} is above the maximum {self._fmt(fee.max_amount)}",
                )
            if fee.available is not None and self._amount > fee.available:
                return StepStatus.failed(
                    "insufficient balance on destination chain",
                    f"Only {self._fmt(fee.available)} is available on {self._destination_chain.value}",
                )

        transfer_fee = fee.latest_transfer_fee
        if self._is_forwarding:
            # The forwarding leg is an ICP -> EVM transfer made on the user's behalf.
            reverse = find_fee(fees, self._token, self._destination_chain, self._source_chain)
            if reverse is None:
                return StepStatus.failed(
                    "bridging not supported",
                    f"Bridging {self._token.value} from {self._destination_chain.value} "
                    f"to {self._source_chain.value} is not supported",
                )
            transfer_fee = reverse.latest_transfer_fee

        expected = ExpectedFee(transfer_fee, fee.protocol_fee_in_percent, self._decimals)
        verbose = f"Transfer fee {self._fmt(transfer_fee)}, protocol fee {expected.protocol_fee_in_percent()}%"
        return StepStatus.succeeded(
            "fetched fees",
            verbose,
            expected_fee=expected,
            details={"min_amount": fee.min_amount, "max_amount": fee.max_amount, "available": fee.available},
        )
