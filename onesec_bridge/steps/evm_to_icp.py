"""Steps that move tokens from an EVM chain to ICP."""
from __future__ import annotations

from abc import abstractmethod
from typing import Optional

from ..constants import EVM_CALL_DURATION_MS, ICP_CALL_DURATION_MS
from ..evm import ERC20, LOCKER
from ..models import Chain, EvmTx, Token, TransferAccepted, TransferFailed, TransferId
from ..principal import IcrcAccount
from ..remote import EvmGateway, OneSecCanister, SignedEvmTx
from ..slots import Slot
from ..status import About, StepStatus
from ..utils import encode_icrc_account, evm_explorer_url, format_amount, format_icp_account
from .base import BaseStep, PollingStep


class EvmTransactionStep(BaseStep):
    """Submits one EVM transaction and waits for its receipt.

    The signed transaction is kept before it is sent. A run interrupted while
    sending or waiting re-sends those same bytes, so the nonce and hash never
    change until the transaction reverts.
    """

    def __init__(
        self,
        gateway: EvmGateway,
        token: Token,
        evm_chain: Chain,
        icp_account: IcrcAccount,
        amount: int,
        decimals: int,
        tx_slot: Optional[Slot[EvmTx]] = None,
    ):
        super().__init__()
        self._gateway = gateway
        self._token = token
        self._evm_chain = evm_chain
        self._icp_account = icp_account
        self._amount = amount
        self._decimals = decimals
        self._tx_slot = tx_slot
        self._signed: Optional[SignedEvmTx] = None
        self._broadcast = False

    @abstractmethod
    def _action(self) -> str:
        ...

    @abstractmethod
    def _sign(self) -> Optional[SignedEvmTx]:
        """Sign the transaction, or return ``None`` when none is needed."""

    def _transfer_text(self) -> str:
        return (
            f"{format_amount(self._amount, self._decimals)} {self._token.value} to OneSec on "
            f"{self._evm_chain.value} for bridging to {format_icp_account(self._icp_account)} on ICP"
        )

    def about(self) -> About:
        action = self._action()
        return About(
            concise=f"{action} transaction on {self._evm_chain.value}",
            verbose=f"{action} transaction to send {self._transfer_text()}",
        )

    def expected_duration_ms(self) -> int:
        return EVM_CALL_DURATION_MS

    def evm_tx(self) -> Optional[EvmTx]:
        """The mined transaction once this step has succeeded."""
        if self._tx_slot is not None:
            return self._tx_slot.get()
        return None

    def _reset_for_retry(self) -> None:
        self._signed = None
        self._broadcast = False

    def _attempt(self) -> StepStatus:
        if self._signed is None:
            signed = self._sign()
            if signed is None:
                return self._skipped()
            self._signed = signed
        tx_hash = self._signed.tx_hash
        if not self._broadcast:
            self._gateway.broadcast(self._signed)
            self._broadcast = True

        tx = EvmTx(hash=tx_hash)
        link = evm_explorer_url(self._evm_chain, tx_hash)
        receipt = self._gateway.wait_for_receipt(tx_hash)
        if receipt is None:
            return StepStatus.running(
                "waiting for transaction receipt",
                f"Waiting for transaction {tx_hash} on {self._evm_chain.value}",
                transaction=tx,
                link=link,
                details={"tx_hash": tx_hash},
            )
        if not receipt.succeeded:
            reason = f": {receipt.revert_reason}" if receipt.revert_reason else ""
            return StepStatus.failed(
                f"transaction reverted: {tx_hash}",
                f"Transaction to send {self._transfer_text()} has been reverted{reason}",
                transaction=tx,
                link=link,
            )
        if self._tx_slot is not None:
            self._tx_slot.publish(tx)
        return StepStatus.succeeded(
            f"executed transaction: {tx_hash}",
            f"Executed transaction to send {self._transfer_text()}: transaction hash {tx_hash}",
            transaction=tx,
            link=link,
        )

    def _skipped(self) -> StepStatus:
        return StepStatus.succeeded("nothing to submit")


class EvmApproveStep(EvmTransactionStep):
    """Approves the locker contract to pull the bridged amount."""

    def _action(self) -> str:
        return "Approve"

    def _sign(self) -> Optional[SignedEvmTx]:
        spender = self._gateway.contract_address(LOCKER)
        allowance = self._gateway.call(ERC20, "allowance", [self._gateway.address, spender])
        if int(allowance) >= self._amount:
            return None
        return self._gateway.sign(ERC20, "approve", [spender, self._amount])

    def _skipped(self) -> StepStatus:
        return StepStatus.succeeded(
            "existing allowance is sufficient",
            f"The locker on {self._evm_chain.value} is already approved to spend "
            f"{format_amount(self._amount, self._decimals)} {self._token.value}",
        )


class LockStep(EvmTransactionStep):
    def _action(self) -> str:
        return "Submit"

    def _sign(self) -> Optional[SignedEvmTx]:
        data1, data2 = encode_icrc_account(self._icp_account)
        if data2 is not None:
            return self._gateway.sign(LOCKER, "lock2", [self._amount, data1, data2])
        return self._gateway.sign(LOCKER, "lock1", [self._amount, data1])


class BurnStep(EvmTransactionStep):
    def _action(self) -> str:
        return "Submit"

    def _sign(self) -> Optional[SignedEvmTx]:
        data1, data2 = encode_icrc_account(self._icp_account)
        if data2 is not None:
            return self._gateway.sign(ERC20, "burn2", [self._amount, data1, data2])
        return self._gateway.sign(ERC20, "burn1", [self._amount, data1])


class ValidateReceiptStep(PollingStep):
    """Hands the source transaction to OneSec and obtains a transfer id."""

    def __init__(
        self,
        onesec: OneSecCanister,
        token: Token,
        evm_chain: Chain,
        evm_address: str,
        icp_account: IcrcAccount,
        amount: int,
        decimals: int,
        evm_tx: Slot[EvmTx],
        transfer_id: Slot[TransferId],
        delay_ms: float,
    ):
        super().__init__(delay_ms)
        self._onesec = onesec
        self._token = token
        self._evm_chain = evm_chain
        self._evm_address = evm_address
        self._icp_account = icp_account
        self._amount = amount
        self._decimals = decimals
        self._evm_tx = evm_tx
        self._transfer_id = transfer_id

    def about(self) -> About:
        return About(
            concise="Validate receipt",
            verbose=(
                f"Validate the receipt of sending {format_amount(self._amount, self._decimals)} "
                f"{self._token.value} on {self._evm_chain.value} with OneSec"
            ),
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS

    def _attempt(self) -> StepStatus:
        evm_tx = self._evm_tx.get()
        if evm_tx is None:
            return StepStatus.failed(
                "missing transaction",
                f"No {self._evm_tx.name} is available: the transaction step must succeed first",
            )

        self._wait()
        response = self._onesec.transfer_evm_to_icp(
            token=self._token,
            evm_chain=self._evm_chain,
            evm_account=self._evm_address,
            evm_tx_hash=evm_tx.hash,
            icp_account=self._icp_account,
            evm_amount=self._amount,
        )
        if isinstance(response, TransferAccepted):
            self._transfer_id.publish(response.transfer_id)
            return StepStatus.succeeded(
                "validated receipt",
                f"OneSec accepted transaction {evm_tx.hash} as transfer {response.transfer_id.id}",
                transaction=evm_tx,
                details={"transfer_id": response.transfer_id.id},
            )
        if isinstance(response, TransferFailed):
            return StepStatus.failed("failed to validate receipt", response.error, transaction=evm_tx)
        return StepStatus.running(
            "waiting for OneSec to fetch the transaction",
            f"OneSec is fetching transaction {evm_tx.hash} (block height {response.block_height})",
            transaction=evm_tx,
            details={"block_height": response.block_height},
        )
