from decimal import Decimal

from fakes import SIGNER, USER, fee_row, settled_transfer
from onesec_bridge.errors import RemoteCallError
from onesec_bridge.models import (
    Chain,
    EvmAccount,
    EvmTx,
    IcpTx,
    Token,
    TraceEntry,
    TraceEvent,
    TransferFailed,
    TransferFetching,
    TransferId,
    TransferStatusKind,
)
from onesec_bridge.plan import BridgingPlan
from onesec_bridge.principal import IcrcAccount
from onesec_bridge.slots import Slot
from onesec_bridge.status import StepState
from onesec_bridge.steps import (
    ConfirmBlocksStep,
    FetchFeesAndCheckLimitsStep,
    ValidateReceiptStep,
    WaitForEvmTxStep,
    WaitForIcpTxStep,
)
from onesec_bridge.utils import amount_from_units


def _bound(step):
    BridgingPlan([step])
    return step


def _fee_step(onesec, amount=None, **kwargs):
    return _bound(FetchFeesAndCheckLimitsStep(onesec, Token.USDC, Chain.BASE, Chain.ICP, 6, amount=amount, **kwargs))


def test_fee_step_reports_expected_fee(onesec):
    step = _fee_step(onesec, amount=1_500_000)
    status = step.run()

    assert status.state is StepState.SUCCEEDED
    fee = step.expected_fee()
    assert fee.transfer_fee().in_units == 20_000
    assert fee.protocol_fee(amount_from_units(1_500_000, 6)).in_units == 1_500
    assert fee.protocol_fee_in_percent() == Decimal("0.100")
    assert fee.total_fee(amount_from_units(1_500_000, 6)).in_units == 21_500


def test_plan_exposes_fee_once_fetched(onesec):
    plan = BridgingPlan([FetchFeesAndCheckLimitsStep(onesec, Token.USDC, Chain.BASE, Chain.ICP, 6)])
    assert plan.expected_fee() is None
    plan.run_all_steps()
    assert plan.expected_fee().transfer_fee().in_units == 20_000


def test_fee_step_rejects_unsupported_route(onesec):
    step = _bound(FetchFeesAndCheckLimitsStep(onesec, Token.USDT, Chain.ARBITRUM, Chain.ICP, 6, amount=5))
    status = step.run()
    assert status.state is StepState.FAILED
    assert status.concise == "bridging not supported"


def test_fee_step_checks_limits(onesec):
    assert _fee_step(onesec, amount=999_999).run().concise == "amount is too low"
    assert _fee_step(onesec, amount=1_000_000_001).run().concise == "amount is too high"
    assert _fee_step(onesec, amount=600_000_000).run().concise == "insufficient balance on destination chain"


def test_fee_step_without_amount_only_checks_route(onesec):
    assert _fee_step(onesec).run().state is StepState.SUCCEEDED


def test_forwarding_fee_comes_from_reverse_route(onesec):
    step = _fee_step(onesec, amount=1_500_000, is_forwarding=True)
    assert step.run().state is StepState.SUCCEEDED
    assert step.expected_fee().transfer_fee().in_units == 30_000

    onesec.fees = [fee_row()]
    step = _fee_step(onesec, amount=1_500_000, is_forwarding=True)
    assert step.run().concise == "bridging not supported"


def _validate_step(onesec, evm_tx, transfer_id):
    return _bound(
        ValidateReceiptStep(
            onesec,
            Token.USDC,
            Chain.BASE,
            SIGNER,
            IcrcAccount(owner=USER),
            1_500_000,
            6,
            evm_tx,
            transfer_id,
            1000,
        )
    )


def test_validate_receipt_needs_the_transaction(onesec, clock):
    step = _validate_step(onesec, Slot("EVM transaction"), Slot("transfer id"))
    status = step.run()
    assert status.state is StepState.FAILED
    assert status.concise == "missing transaction"
    assert onesec.calls == []


def test_validate_receipt_polls_until_accepted(onesec, clock):
    onesec.evm_to_icp_replies = [TransferFetching(block_height=11), onesec.evm_to_icp_replies[0]]
    transfer_id = Slot("transfer id")
    step = _validate_step(onesec, Slot.filled("EVM transaction", EvmTx(hash="0xabc")), transfer_id)

    first = step.run()
    assert first.state is StepState.RUNNING
    assert first.details == {"block_height": 11}
    assert clock.sleeps == [1000]

    second = step.run()
    assert second.state is StepState.SUCCEEDED
    assert transfer_id.get() == TransferId(7)
    assert clock.sleeps[1] > clock.sleeps[0]
    assert onesec.kwargs["transfer_evm_to_icp"]["evm_tx_hash"] == "0xabc"
    assert onesec.kwargs["transfer_evm_to_icp"]["evm_amount"] == 1_500_000


def test_validate_receipt_failure_is_reported(onesec, clock):
    onesec.evm_to_icp_replies = [TransferFailed(error="unknown tx")]
    step = _validate_step(onesec, Slot.filled("EVM transaction", EvmTx(hash="0xabc")), Slot("transfer id"))
    status = step.run()
    assert status.state is StepState.FAILED
    assert status.verbose == "unknown tx"


def _icp_wait(onesec, transfer_id=TransferId(7)):
    return _bound(WaitForIcpTxStep(onesec, Token.USDC, 6, Slot("transfer id", transfer_id), 1000))


def test_settlement_success_reports_received_amount(onesec, clock):
    onesec.transfers = [
        settled_transfer(TransferStatusKind.PENDING_DESTINATION_TX),
        settled_transfer(TransferStatusKind.SUCCEEDED, destination_tx=IcpTx(block_index=5, ledger="l")),
    ]
    step = _icp_wait(onesec)

    assert step.run().state is StepState.RUNNING
    status = step.run()
    assert status.state is StepState.SUCCEEDED
    assert status.amount.in_units == 1_480_000
    assert status.concise == "received 1.48 USDC"
    assert status.transaction == IcpTx(block_index=5, ledger="l")
    assert status.link is None


def test_settlement_failure_and_refund(onesec, clock):
    onesec.transfers = [settled_transfer(TransferStatusKind.FAILED, error="no liquidity")]
    status = _icp_wait(onesec).run()
    assert status.state is StepState.FAILED
    assert "no liquidity" in status.verbose

    refund = EvmTx(hash="0xdef")
    onesec.transfers = [settled_transfer(TransferStatusKind.REFUNDED, refund_tx=refund)]
    status = _icp_wait(onesec).run()
    assert status.state is StepState.REFUNDED
    assert status.transaction == refund
    assert status.link == "https://basescan.org/tx/0xdef"


def test_pending_refund_keeps_polling(onesec, clock):
    onesec.transfers = [settled_transfer(TransferStatusKind.PENDING_REFUND_TX)]
    status = _icp_wait(onesec).run()
    assert status.state is StepState.RUNNING
    assert status.concise == "refunding"


def test_settlement_without_transfer_id_fails(onesec, clock):
    status = _icp_wait(onesec, transfer_id=None).run()
    assert status.state is StepState.FAILED
    assert status.concise == "missing transfer id"
    assert onesec.calls == []


def test_transport_error_while_polling_is_retried(onesec, clock):
    onesec.transfers = [RemoteCallError("replica unavailable"), settled_transfer(TransferStatusKind.SUCCEEDED)]
    step = _icp_wait(onesec)
    assert step.run().concise == "retrying after error"
    assert step.run().state is StepState.SUCCEEDED


def test_evm_wait_reports_trace_progress_monotonically(onesec, clock):
    def pending(*events):
        return settled_transfer(
            TransferStatusKind.PENDING_DESTINATION_TX,
            destination_chain=Chain.BASE,
            trace=[TraceEntry(chain=Chain.BASE, event=event) for event in events],
        )

    onesec.transfers = [
        pending(TraceEvent.SIGN_TX),
        pending(TraceEvent.SIGN_TX, TraceEvent.SEND_TX),
        pending(TraceEvent.FETCH_TX),
        settled_transfer(
            TransferStatusKind.SUCCEEDED,
            destination_chain=Chain.BASE,
            destination_account=EvmAccount(SIGNER),
            destination_tx=EvmTx(hash="0x99"),
        ),
    ]
    step = _bound(WaitForEvmTxStep(onesec, Token.USDC, Chain.BASE, 6, Slot("transfer id", TransferId(8)), 1000))

    assert step.run().concise == "signed transaction on Base"
    assert step.run().concise == "sent transaction on Base"
    third = step.run()
    assert third.concise == "sent transaction on Base"
    assert third.details["progress"] == "sent"
    final = step.run()
    assert final.state is StepState.SUCCEEDED
    assert final.link == "https://basescan.org/tx/0x99"


def test_failed_trace_entries_do_not_count(onesec, clock):
    onesec.transfers = [
        settled_transfer(
            TransferStatusKind.PENDING_DESTINATION_TX,
            destination_chain=Chain.BASE,
            trace=[TraceEntry(chain=Chain.BASE, event=TraceEvent.SEND_TX, ok=False)],
        )
    ]
    step = _bound(WaitForEvmTxStep(onesec, Token.USDC, Chain.BASE, 6, Slot("transfer id", TransferId(8)), 1000))
    assert step.run().concise == "waiting for transaction on Base"


def test_confirm_blocks_waits_for_estimated_blocks(clock):
    step = _bound(ConfirmBlocksStep(Chain.BASE, 3, 500))
    assert step.expected_duration_ms() == 1500

    first = step.run()
    assert first.state is StepState.RUNNING
    assert first.concise == "confirmed 2/3 blocks"

    second = step.run()
    assert second.state is StepState.SUCCEEDED
    assert clock.sleeps == [1000, 1000]
