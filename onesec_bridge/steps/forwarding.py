"""Steps of the EVM -> ICP flow that pays into a forwarding address."""
from __future__ import annotations

from typing import Optional

from ..constants import EVM_CALL_DURATION_MS, ICP_CALL_DURATION_MS
from ..forwarding import OneSecForwarding
from ..models import Chain, EvmTx, ForwardingResponse, ForwardingState, Token, TransferId
from ..principal import IcrcAccount
from ..slots import Slot
from ..status import About, StepStatus
from ..utils import evm_explorer_url, format_amount, format_icp_account
from .base import BaseStep, PollingStep


def is_new_transfer(response: ForwardingResponse, last_transfer_id: Optional[TransferId]) -> bool:
    """Whether ``response`` reports a transfer newer than ``last_transfer_id``."""
    if response.done is None:
        return False
    return last_transfer_id is None or response.done > last_transfer_id


def _missing_address() -> StepStatus:
    return StepStatus.failed(
        "missing forwarding address",
        "The compute forwarding address step must succeed before this step",
    )


class ComputeForwardingAddressStep(BaseStep):
    """Derives the forwarding address and records the receiver's latest transfer."""

    def __init__(
        self,
        forwarding: OneSecForwarding,
        token: Token,
        evm_chain: Chain,
        icp_account: IcrcAccount,
        forwarding_address: Slot[str],
        last_transfer_id: Slot[TransferId],
    ):
        super().__init__()
        self._forwarding = forwarding
        self._token = token
        self._evm_chain = evm_chain
        self._icp_account = icp_account
        self._forwarding_address = forwarding_address
        self._last_transfer_id = last_transfer_id

    def about(self) -> About:
        return About(
            concise=f"Compute forwarding address on {self._evm_chain.value}",
            verbose=(
                f"Compute the forwarding address on {self._evm_chain.value} for bridging "
                f"{self._token.value} to {format_icp_account(self._icp_account)} on ICP"
            ),
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS

    def forwarding_address(self) -> Optional[str]:
        return self._forwarding_address.get()

    def _attempt(self) -> StepStatus:
        address = self._forwarding.address_for(self._icp_account)
        response = self._forwarding.get_forwarding_status(self._token, self._evm_chain, address, self._icp_account)
        self._last_transfer_id.clear()
        if response.done is not None:
            self._last_transfer_id.publish(response.done)
        self._forwarding_address.publish(address)
        return StepStatus.succeeded(
            f"computed forwarding address: {address}",
            f"Send {self._token.value} on {self._evm_chain.value} to {address} to bridge it to "
            f"{format_icp_account(self._icp_account)} on ICP",
            forwarding_address=address,
        )


class NotifyForwardingPaymentStep(BaseStep):
    """Tells OneSec that the forwarding address has been funded."""

    def __init__(
        self,
        forwarding: OneSecForwarding,
        token: Token,
        evm_chain: Chain,
        icp_account: IcrcAccount,
        forwarding_address: Slot[str],
    ):
        super().__init__()
        self._forwarding = forwarding
        self._token = token
        self._evm_chain = evm_chain
        self._icp_account = icp_account
        self._forwarding_address = forwarding_address

    def about(self) -> About:
        return About(
            concise="Notify OneSec about the payment",
            verbose=(
                f"Notify OneSec about the payment of {self._token.value} to the forwarding address "
                f"on {self._evm_chain.value}"
            ),
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS

    def _attempt(self) -> StepStatus:
        address = self._forwarding_address.get()
        if address is None:
            return _missing_address()
        self._forwarding.forward_evm_to_icp(self._token, self._evm_chain, address, self._icp_account)
        return StepStatus.succeeded("notified payment", f"Notified OneSec about the payment to {address}")


class WaitForForwardingTxStep(PollingStep):
    """Waits until OneSec moves the funds from the forwarding address into the bridge."""

    def __init__(
        self,
        forwarding: OneSecForwarding,
        token: Token,
        evm_chain: Chain,
        icp_account: IcrcAccount,
        decimals: int,
        forwarding_address: Slot[str],
        last_transfer_id: Slot[TransferId],
        forwarding_tx: Slot[EvmTx],
        delay_ms: float,
    ):
        super().__init__(delay_ms)
        self._forwarding = forwarding
        self._token = token
        self._evm_chain = evm_chain
        self._icp_account = icp_account
        self._decimals = decimals
        self._forwarding_address = forwarding_address
        self._last_transfer_id = last_transfer_id
        self._forwarding_tx = forwarding_tx

    def about(self) -> About:
        return About(
            concise="Wait for forwarding transaction",
            verbose="Wait for the transaction that moves tokens from the forwarding address to the bridge",
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS + EVM_CALL_DURATION_MS

    def forwarding_tx(self) -> Optional[EvmTx]:
        """The forwarding transaction, once OneSec has reported it."""
        return self._forwarding_tx.get()

    def _checking_balance(self) -> StepStatus:
        return StepStatus.running(
            "checking balance of the forwarding address",
            "OneSec is checking the balance of the forwarding address",
        )

    def _attempt(self) -> StepStatus:
        address = self._forwarding_address.get()
        if address is None:
            return _missing_address()

        self._wait()
        response = self._forwarding.get_forwarding_status(self._token, self._evm_chain, address, self._icp_account)
        if is_new_transfer(response, self._last_transfer_id.get()):
            return StepStatus.succeeded(
                "forwarded tokens to bridge",
                f"OneSec forwarded the tokens as transfer {response.done.id}",
                details={"transfer_id": response.done.id},
            )

        status = response.status
        if status is None or status.state is ForwardingState.CHECKING_BALANCE:
            return self._checking_balance()
        if status.state is ForwardingState.FORWARDED:
            if status.tx is not None:
                self._forwarding_tx.publish(status.tx)
            return StepStatus.succeeded(
                "forwarded tokens to bridge",
                "Forwarded tokens to bridge",
                transaction=status.tx,
                link=evm_explorer_url(self._evm_chain, status.tx.hash) if status.tx else None,
            )
        if status.state is ForwardingState.FORWARDING:
            return StepStatus.running(
                "submitting forwarding transaction",
                "OneSec is moving tokens from the forwarding address to the bridge",
            )
        if status.balance:
            return StepStatus.failed(
                "balance is too low",
                (
                    f"Balance of the forwarding address is too low: "
                    f"{format_amount(status.balance, self._decimals)} {self._token.value}, required at least "
                    f"{format_amount(status.min_amount, self._decimals)} {self._token.value}"
                ),
                details={"balance": status.balance, "min_amount": status.min_amount},
            )
        return self._checking_balance()


class ValidateForwardingReceiptStep(PollingStep):
    """Waits for OneSec to register the forwarded transfer and publishes its id."""

    def __init__(
        self,
        forwarding: OneSecForwarding,
        token: Token,
        evm_chain: Chain,
        icp_account: IcrcAccount,
        forwarding_address: Slot[str],
        last_transfer_id: Slot[TransferId],
        transfer_id: Slot[TransferId],
        delay_ms: float,
    ):
        super().__init__(delay_ms)
        self._forwarding = forwarding
        self._token = token
        self._evm_chain = evm_chain
        self._icp_account = icp_account
        self._forwarding_address = forwarding_address
        self._last_transfer_id = last_transfer_id
        self._transfer_id = transfer_id

    def about(self) -> About:
        return About(
            concise="Validate receipt",
            verbose=f"Wait for OneSec to validate the receipt of the {self._evm_chain.value} transaction",
        )

    def expected_duration_ms(self) -> int:
        return ICP_CALL_DURATION_MS

    def _attempt(self) -> StepStatus:
        address = self._forwarding_address.get()
        if address is None:
            return _missing_address()

        self._wait()
        response = self._forwarding.get_forwarding_status(self._token, self._evm_chain, address, self._icp_account)
        if is_new_transfer(response, self._last_transfer_id.get()):
            self._transfer_id.publish(response.done)
            return StepStatus.succeeded(
                "validated receipt",
                f"Validated receipt of the {self._evm_chain.value} transaction: transfer {response.done.id}",
                details={"transfer_id": response.done.id},
            )
        return StepStatus.running(
            "validating receipt",
            f"Waiting for OneSec to validate the receipt of the {self._evm_chain.value} transaction",
        )
