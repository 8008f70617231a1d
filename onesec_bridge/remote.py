"""Boundaries to the settlement canister, ICRC ledgers, EVM wallets and address derivation.

Implementations raise :class:`~onesec_bridge.errors.RemoteCallError` for
transport failures and :class:`~onesec_bridge.errors.RemoteRejection` for
explicit ``Err`` replies.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence

from .models import (
    Account,
    Chain,
    ForwardingResponse,
    Token,
    Transfer,
    TransferFee,
    TransferId,
    TransferResponse,
)
from .principal import IcrcAccount, Principal


class OneSecCanister(Protocol):
    def get_transfer_fees(self) -> List[TransferFee]:
        ...

    def transfer_evm_to_icp(
        self,
        *,
        token: Token,
        evm_chain: Chain,
        evm_account: str,
        evm_tx_hash: str,
        icp_account: IcrcAccount,
        evm_amount: int,
        icp_amount: Optional[int] = None,
    ) -> TransferResponse:
        ...

    def transfer_icp_to_evm(
        self,
        *,
        token: Token,
        evm_chain: Chain,
        evm_account: str,
        icp_account: IcrcAccount,
        icp_amount: int,
        evm_amount: Optional[int] = None,
    ) -> TransferResponse:
        ...

    def get_transfer(self, transfer_id: TransferId) -> Transfer:
        ...

    def get_transfers(self, *, accounts: Sequence[Account], count: int, skip: int) -> List[Transfer]:
        ...

    def get_forwarding_status(
        self, *, token: Token, evm_chain: Chain, address: str, receiver: IcrcAccount
    ) -> ForwardingResponse:
        ...

    def forward_evm_to_icp(
        self, *, token: Token, evm_chain: Chain, address: str, receiver: IcrcAccount
    ) -> ForwardingResponse:
        ...

    def validate_forwarding_address(self, *, receiver: IcrcAccount, address: str) -> None:
        ...


class IcrcLedger(Protocol):
    def caller(self) -> Principal:
        ...

    def icrc2_approve(self, *, amount: int, spender: IcrcAccount, from_subaccount: Optional[bytes] = None) -> int:
        """Approve ``spender`` and return the ledger block index."""
        ...


@dataclass(frozen=True)
class SignedEvmTx:
    tx_hash: str
    raw: bytes


@dataclass(frozen=True)
class EvmReceipt:
    tx_hash: str
    status: int
    block_number: Optional[int] = None
    revert_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class EvmGateway(Protocol):
    """A signer bound to one EVM chain and one bridged token."""

    @property
    def address(self) -> str:
        ...

    def contract_address(self, contract: str) -> str:
        ...

    def call(self, contract: str, function: str, args: Sequence[Any]) -> Any:
        ...

    def sign(self, contract: str, function: str, args: Sequence[Any]) -> SignedEvmTx:
        """Build and sign a call without sending it."""
        ...

    def broadcast(self, signed: SignedEvmTx) -> str:
        """Send a signed transaction, returning its hash.

        Sending the same transaction again is accepted.
        """
        ...

    def wait_for_receipt(self, tx_hash: str) -> Optional[EvmReceipt]:
        """Return the receipt, or ``None`` while the transaction is unmined."""
        ...


# (key_id, principal_bytes, subaccount_bytes) -> EVM address
AddressDeriver = Callable[[int, bytes, bytes], str]
