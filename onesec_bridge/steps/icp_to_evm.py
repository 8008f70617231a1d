"""Steps that move tokens from ICP to an EVM chain."""
from __future__ import annotations

from typing import Optional

from ..constants import ICP_CALL_DURATION_MS
from ..models import Chain, IcpTx, Token, TransferAccepted, TransferFailed, TransferId
from ..principal import IcrcAccount
from ..remote import IcrcLedger, OneSecCanister
from ..slots import Slot
from ..status import About, StepStatus
from ..utils import format_amount, format_icp_account
from .base import BaseStep


class IcpApproveStep(BaseStep):
    """ICRC-2 approval letting OneSec pull the tokens from the sender."""

    def __init__(
        self,
        ledger: IcrcLedger,
        ledger_id: str,
        token: Token,
        icp_account: IcrcAccount,
        evm_chain: Chain,
        evm_address: str,
        amount: int,
        decimals: int,
        spender: IcrcAccount,
    ):
        super().__init__()
        self._ledger = ledger
        self._ledger_id = ledger_id
        self._token = token
        self._icp_account = icp_account
        self._evm_chain = evm_chain
        self._evm_address = evm_address
        self._amount = amount
        self._decimals = decimals
        self._spender = spender

    def about(self) -> About:
        return About(
            concise="Approve transaction on ICP",
            verbose=(
                f"Approve OneSec to transfer {format_amount(self._amount, self._decimals)} {self._token.value} "
                f"from {format_icp_account(self._icp_account)} for bridging to {self._evm_address} "
                f"on {self._evm_chain.value}"
            ),
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS

    def _attempt(self) -> StepStatus:
        block_index = self._ledger.icrc2_approve(
            amount=self._amount,
            spender=self._spender,
            from_subaccount=self._icp_account.subaccount,
        )
        tx = IcpTx(block_index=block_index, ledger=self._ledger_id)
        return StepStatus.succeeded(
            f"executed transaction: {block_index}",
            f"Approved OneSec on ledger {self._ledger_id}: block index {block_index}",
            transaction=tx,
        )


class TransferStep(BaseStep):
    """Asks OneSec to start the ICP -> EVM transfer and publishes its id."""

    def __init__(
        self,
        onesec: OneSecCanister,
        token: Token,
        icp_account: IcrcAccount,
        evm_chain: Chain,
        evm_address: str,
        amount: int,
        decimals: int,
        transfer_id: Slot[TransferId],
    ):
        super().__init__()
        self._onesec = onesec
        self._token = token
        self._icp_account = icp_account
        self._evm_chain = evm_chain
        self._evm_address = evm_address
        self._amount = amount
        self._decimals = decimals
        self._transfer_id = transfer_id

    def about(self) -> About:
        return About(
            concise="Transfer to OneSec",
            verbose=(
                f"Transfer {format_amount(self._amount, self._decimals)} {self._token.value} from "
                f"{format_icp_account(self._icp_account)} to OneSec for bridging to {self._evm_address} "
                f"on {self._evm_chain.value}"
            ),
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS

    def transfer_id(self) -> Optional[TransferId]:
        return self._transfer_id.get()

    def _attempt(self) -> StepStatus:
        response = self._onesec.transfer_icp_to_evm(
            token=self._token,
            evm_chain=self._evm_chain,
            evm_account=self._evm_address,
            icp_account=self._icp_account,
            icp_amount=self._amount,
        )
        if isinstance(response, TransferAccepted):
            self._transfer_id.publish(response.transfer_id)
            return StepStatus.succeeded(
                f"transfer id: {response.transfer_id.id}",
                f"OneSec accepted the transfer: transfer id {response.transfer_id.id}",
                details={"transfer_id": response.transfer_id.id},
            )
        if isinstance(response, TransferFailed):
            return StepStatus.failed("transfer failed", response.error)
        return StepStatus.failed(
            "unexpected response",
            f"OneSec replied that it is still fetching block {response.block_height} for an ICP transfer",
        )
