"""Builders that turn a bridging request into a :class:`BridgingPlan`."""
from __future__ import annotations

from typing import List, Optional, Union

from web3 import Web3

from .config import (
    DEFAULT_CONFIG,
    Config,
    get_confirm_blocks,
    get_icp_poll_delay_ms,
    get_onesec_canister,
    get_token_ledger_canister,
    token_config,
)
from .errors import BridgeError, ConfigError
from .forwarding import OneSecForwarding
from .logging_utils import get_bridge_logger
from .models import Chain, Deployment, EvmTx, OperatingMode, Token, TransferId, require_evm_chain
from .plan import BridgingPlan
from .principal import IcrcAccount, Principal
from .remote import AddressDeriver, EvmGateway, IcrcLedger, OneSecCanister
from .slots import Slot
from .steps.base import Step
from .steps.confirm_blocks import ConfirmBlocksStep
from .steps.evm_to_icp import BurnStep, EvmApproveStep, LockStep, ValidateReceiptStep
from .steps.fees import FetchFeesAndCheckLimitsStep
from .steps.forwarding import (
    ComputeForwardingAddressStep,
    NotifyForwardingPaymentStep,
    ValidateForwardingReceiptStep,
    WaitForForwardingTxStep,
)
from .steps.icp_to_evm import IcpApproveStep, TransferStep
from .steps.settlement import ValidateEvmReceiptStep, WaitForEvmTxStep, WaitForIcpTxStep
from .utils import TokenInput, amount_from_tokens

logger = get_bridge_logger()


def resolve_amount(units: Optional[int], tokens: Optional[TokenInput], decimals: int) -> int:
    """Return the amount in units, checking that both forms agree when both are given."""
    if units is None and tokens is None:
        raise BridgeError("Provide amount of tokens to bridge")
    if units is not None and units < 0:
        raise BridgeError("Amount must not be negative.")
    if tokens is None:
        return int(units)
    from_tokens = amount_from_tokens(tokens, decimals).in_units
    if units is not None and units != from_tokens:
        raise BridgeError("Provide either amount of tokens to bridge in units or token, but not both")
    return from_tokens


def confirm_blocks_step(config: Config, chain: Chain, deployment: Deployment) -> ConfirmBlocksStep:
    block_count, block_time_ms = get_confirm_blocks(config, chain, deployment)
    return ConfirmBlocksStep(chain, block_count, block_time_ms)


class EvmToIcpBridgeBuilder:
    """Plans a transfer from an EVM chain to an ICP account.

    ``build(gateway)`` produces a plan that signs the EVM transactions itself;
    ``forward(derive_address)`` produces one where the user pays into a
    forwarding address instead.
    """

    def __init__(self, onesec: OneSecCanister, evm_chain: Union[Chain, str], token: Union[Token, str]):
        self._onesec = onesec
        self._evm_chain = require_evm_chain(evm_chain)
        self._token = Token(token)
        self._deployment = Deployment.MAINNET
        self._config = DEFAULT_CONFIG
        self._evm_address: Optional[str] = None
        self._amount_in_units: Optional[int] = None
        self._amount_in_tokens: Optional[TokenInput] = None
        self._icp_account: Optional[IcrcAccount] = None

    def target(self, deployment: Union[Deployment, str]) -> "EvmToIcpBridgeBuilder":
        self._deployment = Deployment(deployment)
        return self

    def sender(self, evm_address: str) -> "EvmToIcpBridgeBuilder":
        self._evm_address = evm_address
        return self

    def amount_in_units(self, amount: int) -> "EvmToIcpBridgeBuilder":
        self._amount_in_units = amount
        return self

    def amount_in_tokens(self, amount: TokenInput) -> "EvmToIcpBridgeBuilder":
        self._amount_in_tokens = amount
        return self

    def receiver(self, principal: Union[Principal, str], subaccount: Optional[bytes] = None) -> "EvmToIcpBridgeBuilder":
        owner = principal if isinstance(principal, Principal) else Principal.from_text(principal)
        self._icp_account = IcrcAccount(owner=owner, subaccount=subaccount)
        return self

    def with_config(self, config: Config) -> "EvmToIcpBridgeBuilder":
        self._config = config
        return self

    def _require_receiver(self) -> IcrcAccount:
        if self._icp_account is None:
            raise BridgeError("ICP account is required")
        return self._icp_account

    def _delay_ms(self) -> int:
        return get_icp_poll_delay_ms(self._config, self._deployment)

    def build(self, gateway: EvmGateway) -> BridgingPlan:
        icp_account = self._require_receiver()
        cfg = token_config(self._config, self._token)
        amount = resolve_amount(self._amount_in_units, self._amount_in_tokens, cfg.decimals)

        signer_address = gateway.address
        if self._evm_address and self._evm_address.lower() != signer_address.lower():
            raise BridgeError(
                f"The provided EVM address {self._evm_address} doesn't match the signer's address {signer_address}"
            )
        evm_address = Web3.to_checksum_address(signer_address)

        evm_tx: Slot[EvmTx] = Slot("EVM transaction")
        transfer_id: Slot[TransferId] = Slot("transfer id")

        steps: List[Step] = [
            FetchFeesAndCheckLimitsStep(
                self._onesec, self._token, self._evm_chain, Chain.ICP, cfg.decimals, amount=amount
            )
        ]
        if cfg.mode is OperatingMode.LOCKER:
            steps.append(
                EvmApproveStep(gateway, self._token, self._evm_chain, icp_account, amount, cfg.decimals)
            )
            steps.append(
                LockStep(gateway, self._token, self._evm_chain, icp_account, amount, cfg.decimals, evm_tx)
            )
        else:
            steps.append(
                BurnStep(gateway, self._token, self._evm_chain, icp_account, amount, cfg.decimals, evm_tx)
            )
        steps.extend(
            [
                confirm_blocks_step(self._config, self._evm_chain, self._deployment),
                ValidateReceiptStep(
                    self._onesec,
                    self._token,
                    self._evm_chain,
                    evm_address,
                    icp_account,
                    amount,
                    cfg.decimals,
                    evm_tx,
                    transfer_id,
                    self._delay_ms(),
                ),
                WaitForIcpTxStep(self._onesec, self._token, cfg.decimals, transfer_id, self._delay_ms()),
            ]
        )
        logger.info(
            "Planned %s %s bridge from %s to ICP with %d steps",
            cfg.mode.value,
            self._token.value,
            self._evm_chain.value,
            len(steps),
        )
        return BridgingPlan(steps)

    def forward(self, derive_address: AddressDeriver) -> BridgingPlan:
        icp_account = self._require_receiver()
        cfg = token_config(self._config, self._token)
        amount: Optional[int] = None
        if self._amount_in_units is not None or self._amount_in_tokens is not None:
            amount = resolve_amount(self._amount_in_units, self._amount_in_tokens, cfg.decimals)

        forwarding = OneSecForwarding(self._onesec, derive_address, self._deployment, self._config)
        forwarding_address: Slot[str] = Slot("forwarding address")
        last_transfer_id: Slot[TransferId] = Slot("last transfer id")
        forwarding_tx: Slot[EvmTx] = Slot("forwarding transaction")
        transfer_id: Slot[TransferId] = Slot("transfer id")

        steps: List[Step] = [
            FetchFeesAndCheckLimitsStep(
                self._onesec,
                self._token,
                self._evm_chain,
                Chain.ICP,
                cfg.decimals,
                amount=amount,
                is_forwarding=True,
            ),
            ComputeForwardingAddressStep(
                forwarding, self._token, self._evm_chain, icp_account, forwarding_address, last_transfer_id
            ),
            NotifyForwardingPaymentStep(forwarding, self._token, self._evm_chain, icp_account, forwarding_address),
            WaitForForwardingTxStep(
                forwarding,
                self._token,
                self._evm_chain,
                icp_account,
                cfg.decimals,
                forwarding_address,
                last_transfer_id,
                forwarding_tx,
                self._delay_ms(),
            ),
            confirm_blocks_step(self._config, self._evm_chain, self._deployment),
            ValidateForwardingReceiptStep(
                forwarding,
                self._token,
                self._evm_chain,
                icp_account,
                forwarding_address,
                last_transfer_id,
                transfer_id,
                self._delay_ms(),
            ),
            WaitForIcpTxStep(self._onesec, self._token, cfg.decimals, transfer_id, self._delay_ms()),
        ]
        return BridgingPlan(steps)


class IcpToEvmBridgeBuilder:
    """Plans a transfer from an ICP account to an EVM address."""

    def __init__(
        self,
        onesec: OneSecCanister,
        ledger: IcrcLedger,
        evm_chain: Union[Chain, str],
        token: Union[Token, str],
    ):
        self._onesec = onesec
        self._ledger = ledger
        self._evm_chain = require_evm_chain(evm_chain)
        self._token = Token(token)
        self._deployment = Deployment.MAINNET
        self._config = DEFAULT_CONFIG
        self._icp_account: Optional[IcrcAccount] = None
        self._evm_address: Optional[str] = None
        self._amount_in_units: Optional[int] = None
        self._amount_in_tokens: Optional[TokenInput] = None
        self._approve_fee_in_amount = False

    def target(self, deployment: Union[Deployment, str]) -> "IcpToEvmBridgeBuilder":
        self._deployment = Deployment(deployment)
        return self

    def sender(self, principal: Union[Principal, str], subaccount: Optional[bytes] = None) -> "IcpToEvmBridgeBuilder":
        owner = principal if isinstance(principal, Principal) else Principal.from_text(principal)
        self._icp_account = IcrcAccount(owner=owner, subaccount=subaccount)
        return self

    def receiver(self, evm_address: str) -> "IcpToEvmBridgeBuilder":
        self._evm_address = evm_address
        return self

    def amount_in_units(self, amount: int) -> "IcpToEvmBridgeBuilder":
        self._amount_in_units = amount
        return self

    def amount_in_tokens(self, amount: TokenInput) -> "IcpToEvmBridgeBuilder":
        self._amount_in_tokens = amount
        return self

    def pay_approve_fee_from_amount(self) -> "IcpToEvmBridgeBuilder":
        """Deduct the ledger's approval fee from the bridged amount."""
        self._approve_fee_in_amount = True
        return self

    def with_config(self, config: Config) -> "IcpToEvmBridgeBuilder":
        self._config = config
        return self

    def build(self) -> BridgingPlan:
        if not self._evm_address:
            raise BridgeError("Receiver EVM address is required")
        if not Web3.is_address(self._evm_address):
            raise BridgeError(f"Receiver EVM address is invalid: {self._evm_address}")
        evm_address = Web3.to_checksum_address(self._evm_address)

        caller = self._ledger.caller()
        icp_account = self._icp_account or IcrcAccount(owner=caller)
        if icp_account.owner != caller:
            raise BridgeError(
                f"The principal of sender does not match the principal of the agent: {icp_account.owner} vs {caller}"
            )

        cfg = token_config(self._config, self._token)
        amount = resolve_amount(self._amount_in_units, self._amount_in_tokens, cfg.decimals)
        if self._approve_fee_in_amount and amount >= cfg.ledger_fee:
            amount -= cfg.ledger_fee

        ledger_id = get_token_ledger_canister(self._config, self._token, self._deployment)
        if not ledger_id:
            raise ConfigError(f"No ledger canister for {self._token.value} ({self._deployment.value}).")
        onesec_id = Principal.from_text(get_onesec_canister(self._config, self._deployment))
        delay_ms = get_icp_poll_delay_ms(self._config, self._deployment)
        transfer_id: Slot[TransferId] = Slot("transfer id")

        steps: List[Step] = [
            FetchFeesAndCheckLimitsStep(
                self._onesec, self._token, Chain.ICP, self._evm_chain, cfg.decimals, amount=amount
            ),
            IcpApproveStep(
                self._ledger,
                ledger_id,
                self._token,
                icp_account,
                self._evm_chain,
                evm_address,
                amount,
                cfg.decimals,
                IcrcAccount(owner=onesec_id),
            ),
            TransferStep(
                self._onesec, self._token, icp_account, self._evm_chain, evm_address, amount, cfg.decimals, transfer_id
            ),
            WaitForEvmTxStep(self._onesec, self._token, self._evm_chain, cfg.decimals, transfer_id, delay_ms),
            confirm_blocks_step(self._config, self._evm_chain, self._deployment),
            ValidateEvmReceiptStep(self._onesec, self._token, self._evm_chain, cfg.decimals, transfer_id, delay_ms),
        ]
        return BridgingPlan(steps)
