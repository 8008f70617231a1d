"""Rebuild the remaining part of a plan from a transfer id.

Use this when the process that started a transfer is gone but the transfer
id was saved. Only the steps that wait for OneSec are recreated; the
approve/lock/burn/transfer steps already ran.
"""
from __future__ import annotations

from typing import Optional, Union

from .builders import confirm_blocks_step
from .config import DEFAULT_CONFIG, Config, get_icp_poll_delay_ms, token_config
from .errors import RemoteRejection, ResumeError
from .logging_utils import get_bridge_logger
from .models import Chain, Deployment, EvmAccount, Token, Transfer, TransferId, require_evm_chain
from .plan import BridgingPlan
from .principal import IcrcAccount
from .remote import OneSecCanister
from .slots import Slot
from .steps.settlement import ValidateEvmReceiptStep, WaitForEvmTxStep, WaitForIcpTxStep
from .utils import format_account, format_tx

logger = get_bridge_logger()


def _lookup_transfer(onesec: OneSecCanister, transfer_id: TransferId) -> Transfer:
    try:
        return onesec.get_transfer(transfer_id)
    except RemoteRejection as exc:
        raise ResumeError(f"Transfer {transfer_id.id} not found: {exc}") from exc


def resume_icp_to_evm(
    onesec: OneSecCanister,
    transfer_id: Union[TransferId, int],
    evm_chain: Union[Chain, str],
    token: Union[Token, str],
    *,
    deployment: Union[Deployment, str] = Deployment.MAINNET,
    config: Config = DEFAULT_CONFIG,
) -> BridgingPlan:
    """Plan the rest of an ICP -> EVM transfer accepted by ``transfer_icp_to_evm``.

    Raises:
        ResumeError: the transfer is unknown or has no EVM destination.
    """
    if not isinstance(transfer_id, TransferId):
        transfer_id = TransferId(int(transfer_id))
    chain = require_evm_chain(evm_chain)
    token = Token(token)
    deployment = Deployment(deployment)
    decimals = token_config(config, token).decimals

    transfer = _lookup_transfer(onesec, transfer_id)
    destination = transfer.destination.account
    if not isinstance(destination, EvmAccount) or not destination.address:
        raise ResumeError("Could not determine EVM destination address from transfer")

    source: Optional[IcrcAccount] = None
    if isinstance(transfer.source.account, IcrcAccount):
        source = transfer.source.account
    logger.info(
        "Resuming transfer %s from %s to %s on %s %s",
        transfer_id.id,
        format_account(source) or "unknown sender",
        destination.address,
        chain.value,
        format_tx(transfer.destination.tx),
    )

    delay_ms = get_icp_poll_delay_ms(config, deployment)
    slot = Slot.filled("transfer id", transfer_id)
    return BridgingPlan(
        [
            WaitForEvmTxStep(onesec, token, chain, decimals, slot, delay_ms),
            confirm_blocks_step(config, chain, deployment),
            ValidateEvmReceiptStep(onesec, token, chain, decimals, slot, delay_ms),
        ]
    )


def resume_evm_to_icp(
    onesec: OneSecCanister,
    transfer_id: Union[TransferId, int],
    token: Union[Token, str],
    *,
    deployment: Union[Deployment, str] = Deployment.MAINNET,
    config: Config = DEFAULT_CONFIG,
) -> BridgingPlan:
    """Plan the rest of an EVM -> ICP transfer whose receipt OneSec already validated."""
    if not isinstance(transfer_id, TransferId):
        transfer_id = TransferId(int(transfer_id))
    token = Token(token)
    deployment = Deployment(deployment)
    decimals = token_config(config, token).decimals

    transfer = _lookup_transfer(onesec, transfer_id)
    if not isinstance(transfer.destination.account, IcrcAccount):
        raise ResumeError("Could not determine ICP destination account from transfer")

    slot = Slot.filled("transfer id", transfer_id)
    return BridgingPlan(
        [WaitForIcpTxStep(onesec, token, decimals, slot, get_icp_poll_delay_ms(config, deployment))]
    )
