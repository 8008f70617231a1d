import pytest

from fakes import RECEIVER_EVM, USER
from onesec_bridge.errors import BridgeError
from onesec_bridge.forwarding import OneSecForwarding, forwarding_address, notify_forwarding_payment
from onesec_bridge.models import (
    Chain,
    Deployment,
    EvmTx,
    ForwardingResponse,
    ForwardingState,
    ForwardingStatus,
    Token,
    TransferId,
)
from onesec_bridge.plan import BridgingPlan
from onesec_bridge.principal import IcrcAccount
from onesec_bridge.slots import Slot
from onesec_bridge.status import StepState
from onesec_bridge.steps import (
    ComputeForwardingAddressStep,
    NotifyForwardingPaymentStep,
    ValidateForwardingReceiptStep,
    WaitForForwardingTxStep,
)
from onesec_bridge.steps.forwarding import is_new_transfer


class Deriver:
    def __init__(self, address=RECEIVER_EVM):
        self.address = address
        self.calls = []

    def __call__(self, key_id, principal, subaccount):
        self.calls.append((key_id, principal, subaccount))
        return self.address


def test_address_derivation_uses_deployment_key_and_default_subaccount(onesec, receiver):
    derive = Deriver()
    forwarding = OneSecForwarding(onesec, derive, Deployment.TESTNET)

    assert forwarding.compute_address_for(receiver).address == RECEIVER_EVM
    assert derive.calls == [(1, USER.raw, bytes(32))]


def test_address_for_validates_with_onesec(onesec, receiver):
    assert forwarding_address(onesec, Deriver(), receiver) == RECEIVER_EVM
    assert onesec.calls == ["validate_forwarding_address"]


def test_notify_forwarding_payment_passes_everything_through(onesec, receiver):
    notify_forwarding_payment(onesec, Token.USDC, Chain.BASE, RECEIVER_EVM, receiver)
    assert onesec.kwargs["forward_evm_to_icp"] == {
        "token": Token.USDC,
        "evm_chain": Chain.BASE,
        "address": RECEIVER_EVM,
        "receiver": receiver,
    }


def test_is_new_transfer():
    assert not is_new_transfer(ForwardingResponse(), None)
    assert is_new_transfer(ForwardingResponse(done=TransferId(1)), None)
    assert is_new_transfer(ForwardingResponse(done=TransferId(5)), TransferId(4))
    assert not is_new_transfer(ForwardingResponse(done=TransferId(4)), TransferId(4))


def _slots():
    return Slot("forwarding address"), Slot("last transfer id"), Slot("forwarding transaction"), Slot("transfer id")


def test_compute_step_records_address_and_previous_transfer(onesec, receiver):
    onesec.forwarding_replies = [ForwardingResponse(done=TransferId(3))]
    address, last, _, _ = _slots()
    forwarding = OneSecForwarding(onesec, Deriver())
    step = ComputeForwardingAddressStep(forwarding, Token.USDC, Chain.BASE, receiver, address, last)
    BridgingPlan([step])

    status = step.run()
    assert status.state is StepState.SUCCEEDED
    assert status.forwarding_address == RECEIVER_EVM
    assert step.forwarding_address() == RECEIVER_EVM
    assert last.get() == TransferId(3)


def test_notify_step_requires_address(onesec, receiver):
    address, _, _, _ = _slots()
    step = NotifyForwardingPaymentStep(OneSecForwarding(onesec, Deriver()), Token.USDC, Chain.BASE, receiver, address)
    BridgingPlan([step])
    assert step.run().concise == "missing forwarding address"

    address.publish(RECEIVER_EVM)
    assert step.run().state is StepState.SUCCEEDED
    assert "forward_evm_to_icp" in onesec.calls


def _wait_step(onesec, receiver, last_id=None):
    address, last, forwarding_tx, _ = _slots()
    address.publish(RECEIVER_EVM)
    if last_id is not None:
        last.publish(last_id)
    step = WaitForForwardingTxStep(
        OneSecForwarding(onesec, Deriver()),
        Token.USDC,
        Chain.BASE,
        receiver,
        6,
        address,
        last,
        forwarding_tx,
        1000,
    )
    BridgingPlan([step])
    return step, forwarding_tx


def test_wait_for_forwarding_tracks_states(onesec, receiver, clock):
    tx = EvmTx(hash="0xf0")
    onesec.forwarding_replies = [
        ForwardingResponse(status=ForwardingStatus(ForwardingState.CHECKING_BALANCE)),
        ForwardingResponse(status=ForwardingStatus(ForwardingState.LOW_BALANCE)),
        ForwardingResponse(status=ForwardingStatus(ForwardingState.FORWARDING)),
        ForwardingResponse(status=ForwardingStatus(ForwardingState.FORWARDED, tx=tx)),
    ]
    step, forwarding_tx = _wait_step(onesec, receiver)

    assert step.run().concise == "checking balance of the forwarding address"
    assert step.run().concise == "checking balance of the forwarding address"
    assert step.run().concise == "submitting forwarding transaction"
    assert step.forwarding_tx() is None
    done = step.run()
    assert done.state is StepState.SUCCEEDED
    assert done.link == "https://basescan.org/tx/0xf0"
    assert forwarding_tx.get() == tx
    assert step.forwarding_tx() == tx


def test_wait_for_forwarding_fails_on_low_balance(onesec, receiver, clock):
    onesec.forwarding_replies = [
        ForwardingResponse(status=ForwardingStatus(ForwardingState.LOW_BALANCE, balance=10, min_amount=1_000_000))
    ]
    step, _ = _wait_step(onesec, receiver)
    status = step.run()
    assert status.state is StepState.FAILED
    assert status.concise == "balance is too low"
    assert status.details == {"balance": 10, "min_amount": 1_000_000}


def test_wait_for_forwarding_ignores_old_transfers(onesec, receiver, clock):
    onesec.forwarding_replies = [ForwardingResponse(done=TransferId(3)), ForwardingResponse(done=TransferId(4))]
    step, _ = _wait_step(onesec, receiver, last_id=TransferId(3))
    assert step.run().state is StepState.RUNNING
    assert step.run().state is StepState.SUCCEEDED


def test_validate_forwarding_receipt_publishes_new_transfer(onesec, receiver, clock):
    onesec.forwarding_replies = [ForwardingResponse(), ForwardingResponse(done=TransferId(9))]
    address, last, _, transfer_id = _slots()
    address.publish(RECEIVER_EVM)
    step = ValidateForwardingReceiptStep(
        OneSecForwarding(onesec, Deriver()), Token.USDC, Chain.BASE, receiver, address, last, transfer_id, 1000
    )
    BridgingPlan([step])

    assert step.run().state is StepState.RUNNING
    assert step.run().state is StepState.SUCCEEDED
    assert transfer_id.get() == TransferId(9)


def test_derivation_with_explicit_subaccount(onesec):
    subaccount = bytes(range(32))
    derive = Deriver()
    OneSecForwarding(onesec, derive).compute_address_for(IcrcAccount(owner=USER, subaccount=subaccount))
    assert derive.calls == [(0, USER.raw, subaccount)]


def test_invalid_subaccount_cannot_reach_derivation():
    with pytest.raises(BridgeError):
        IcrcAccount(owner=USER, subaccount=b"\x01")
