from __future__ import annotations

from .base import BaseStep, PollingStep, Step
from .confirm_blocks import ConfirmBlocksStep
from .evm_to_icp import BurnStep, EvmApproveStep, EvmTransactionStep, LockStep, ValidateReceiptStep
from .fees import ExpectedFee, FetchFeesAndCheckLimitsStep
from .forwarding import (
    ComputeForwardingAddressStep,
    NotifyForwardingPaymentStep,
    ValidateForwardingReceiptStep,
    WaitForForwardingTxStep,
)
from .icp_to_evm import IcpApproveStep, TransferStep
from .settlement import ValidateEvmReceiptStep, WaitForEvmTxStep, WaitForIcpTxStep, WaitForSettlementStep

__all__ = [
    "BaseStep",
    "PollingStep",
    "Step",
    "ConfirmBlocksStep",
    "BurnStep",
    "EvmApproveStep",
    "EvmTransactionStep",
    "LockStep",
    "ValidateReceiptStep",
    "ExpectedFee",
    "FetchFeesAndCheckLimitsStep",
    "ComputeForwardingAddressStep",
    "NotifyForwardingPaymentStep",
    "ValidateForwardingReceiptStep",
    "WaitForForwardingTxStep",
    "IcpApproveStep",
    "TransferStep",
    "ValidateEvmReceiptStep",
    "WaitForEvmTxStep",
    "WaitForIcpTxStep",
    "WaitForSettlementStep",
]
