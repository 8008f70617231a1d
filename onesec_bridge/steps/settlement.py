"""Polling the settlement canister for the outcome of an accepted transfer."""
from __future__ import annotations

from typing import Dict

from ..constants import EVM_CALL_DURATION_MS, ICP_CALL_DURATION_MS
from ..models import Chain, Token, TraceEvent, Transfer, TransferId, TransferStatusKind
from ..remote import OneSecCanister
from ..slots import Slot
from ..status import About, StepStatus
from ..utils import amount_from_units, explorer_link, format_account, format_amount, format_tx
from .base import PollingStep

TRACE_UNKNOWN = "unknown"
TRACE_SIGNED = "signed"
TRACE_SENT = "sent"
TRACE_EXECUTED = "executed"

_TRACE_RANK = {TRACE_UNKNOWN: 0, TRACE_SIGNED: 1, TRACE_SENT: 2, TRACE_EXECUTED: 3}

_TRACE_EVENTS: Dict[TraceEvent, str] = {
    TraceEvent.FETCH_TX: TRACE_UNKNOWN,
    TraceEvent.SIGN_TX: TRACE_SIGNED,
    TraceEvent.SEND_TX: TRACE_SENT,
    TraceEvent.CONFIRM_TX: TRACE_EXECUTED,
    TraceEvent.PENDING_CONFIRM_TX: TRACE_EXECUTED,
}


def destination_progress(transfer: Transfer, chain: Chain) -> str:
    """Furthest trace event reached on ``chain`` by successful entries."""
    best = TRACE_UNKNOWN
    for entry in transfer.trace:
        if entry.chain != chain or not entry.ok or entry.event is None:
            continue
        progress = _TRACE_EVENTS.get(entry.event, TRACE_UNKNOWN)
        if _TRACE_RANK[progress] > _TRACE_RANK[best]:
            best = progress
    return best


class WaitForSettlementStep(PollingStep):
    """Polls ``get_transfer`` until OneSec reports a final outcome."""

    def __init__(
        self,
        onesec: OneSecCanister,
        token: Token,
        destination_chain: Chain,
        decimals: int,
        transfer_id: Slot[TransferId],
        delay_ms: float,
    ):
        super().__init__(delay_ms)
        self._onesec = onesec
        self._token = token
        self._destination_chain = destination_chain
        self._decimals = decimals
        self._transfer_id = transfer_id

    def about(self) -> About:
        return About(
            concise=f"Wait for transaction on {self._destination_chain.value}",
            verbose=f"Wait for OneSec to send {self._token.value} on {self._destination_chain.value}",
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS

    def _attempt(self) -> StepStatus:
        transfer_id = self._transfer_id.get()
        if transfer_id is None:
            return StepStatus.failed(
                "missing transfer id",
                f"No {self._transfer_id.name} is available: the transfer must be accepted by OneSec first",
            )

        self._wait()
        transfer = self._onesec.get_transfer(transfer_id)
        status = transfer.status
        if status is None:
            return self._pending(transfer_id, transfer)
        if status.kind is TransferStatusKind.SUCCEEDED:
            return self._succeeded(transfer_id, transfer)
        if status.kind is TransferStatusKind.FAILED:
            return StepStatus.failed(
                "transfer failed",
                f"Transfer {transfer_id.id} failed: {status.error or 'unknown error'}",
                details={"transfer_id": transfer_id.id},
            )
        if status.kind is TransferStatusKind.REFUNDED:
            refund_tx = status.refund_tx or transfer.source.tx
            return StepStatus.refunded(
                "transfer refunded",
                f"Transfer {transfer_id.id} was refunded: {format_tx(refund_tx)}",
                transaction=refund_tx,
                link=explorer_link(transfer.source.chain, refund_tx),
                details={"transfer_id": transfer_id.id},
            )
        if status.kind is TransferStatusKind.PENDING_REFUND_TX:
            return StepStatus.running(
                "refunding",
                f"Transfer {transfer_id.id} could not complete; OneSec is refunding the tokens",
                details={"transfer_id": transfer_id.id},
            )
        return self._pending(transfer_id, transfer)

    def _succeeded(self, transfer_id: TransferId, transfer: Transfer) -> StepStatus:
        destination = transfer.destination
        amount = amount_from_units(destination.amount, self._decimals)
        return StepStatus.succeeded(
            f"received {format_amount(destination.amount, self._decimals)} {self._token.value}",
            (
                f"Transfer {transfer_id.id} sent {format_amount(destination.amount, self._decimals)} "
                f"{self._token.value} to {format_account(destination.account)} on "
                f"{self._destination_chain.value}: {format_tx(destination.tx)}"
            ),
            transaction=destination.tx,
            amount=amount,
            link=explorer_link(destination.chain or self._destination_chain, destination.tx),
            details={"transfer_id": transfer_id.id},
        )

    def _pending(self, transfer_id: TransferId, transfer: Transfer) -> StepStatus:
        return StepStatus.running(
            f"waiting for transaction on {self._destination_chain.value}",
            f"Transfer {transfer_id.id} is in progress",
            details={"transfer_id": transfer_id.id},
        )


class WaitForIcpTxStep(WaitForSettlementStep):
    def __init__(
        self,
        onesec: OneSecCanister,
        token: Token,
        decimals: int,
        transfer_id: Slot[TransferId],
        delay_ms: float,
    ):
        super().__init__(onesec, token, Chain.ICP, decimals, transfer_id, delay_ms)

    def about(self) -> About:
        return About(
            concise="Wait for transaction on ICP",
            verbose=f"Wait for OneSec to transfer {self._token.value} to the receiver on ICP",
        )


class WaitForEvmTxStep(WaitForSettlementStep):
    """Like :class:`WaitForSettlementStep`, reporting how far the EVM transaction got."""

    def __init__(
        self,
        onesec: OneSecCanister,
        token: Token,
        evm_chain: Chain,
        decimals: int,
        transfer_id: Slot[TransferId],
        delay_ms: float,
    ):
        super().__init__(onesec, token, evm_chain, decimals, transfer_id, delay_ms)
        self._progress = TRACE_UNKNOWN

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS + EVM_CALL_DURATION_MS

    def progress(self) -> str:
        return self._progress

    def _pending(self, transfer_id: TransferId, transfer: Transfer) -> StepStatus:
        status = transfer.status
        if status is None or status.kind is TransferStatusKind.PENDING_DESTINATION_TX:
            progress = destination_progress(transfer, self._destination_chain)
            if _TRACE_RANK[progress] > _TRACE_RANK[self._progress]:
                self._progress = progress
        chain = self._destination_chain.value
        concise = {
            TRACE_UNKNOWN: f"waiting for transaction on {chain}",
            TRACE_SIGNED: f"signed transaction on {chain}",
            TRACE_SENT: f"sent transaction on {chain}",
            TRACE_EXECUTED: f"confirming transaction on {chain}",
        }[self._progress]
        return StepStatus.running(
            concise,
            f"Transfer {transfer_id.id}: {concise}",
            details={"transfer_id": transfer_id.id, "progress": self._progress},
        )


class ValidateEvmReceiptStep(WaitForSettlementStep):
    """Final check that OneSec recorded the EVM transaction and the received amount."""

    def about(self) -> About:
        return About(
            concise="Validate receipt",
            verbose=f"Validate the receipt of {self._token.value} on {self._destination_chain.value}",
        )