"""Value objects shared by the steps, builders and the remote boundary."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import BridgeError
from .principal import IcrcAccount


class Chain(str, Enum):
    ICP = "ICP"
    BASE = "Base"
    ARBITRUM = "Arbitrum"
    ETHEREUM = "Ethereum"

    @property
    def is_evm(self) -> bool:
        return self is not Chain.ICP


EVM_CHAINS = (Chain.BASE, Chain.ARBITRUM, Chain.ETHEREUM)


def require_evm_chain(chain: Union[Chain, str]) -> Chain:
    try:
        resolved = Chain(chain)
    except ValueError as exc:
        raise BridgeError(f"Unknown chain: {chain}") from exc
    if not resolved.is_evm:
        raise BridgeError(f"{resolved.value} is not an EVM chain.")
    return resolved


class Token(str, Enum):
    ICP = "ICP"
    USDC = "USDC"
    USDT = "USDT"
    CBBTC = "cbBTC"
    CKBTC = "ckBTC"
    BOB = "BOB"
    GLDT = "GLDT"


class Deployment(str, Enum):
    MAINNET = "Mainnet"
    TESTNET = "Testnet"
    LOCAL = "Local"


class OperatingMode(str, Enum):
    LOCKER = "locker"
    MINTER = "minter"


@dataclass(frozen=True)
class Amount:
    """A token amount; ``in_units`` is authoritative."""

    in_units: int
    in_tokens: Decimal

    def to_state(self) -> Dict[str, Any]:
        return {"in_units": self.in_units, "in_tokens": str(self.in_tokens)}


@dataclass(frozen=True)
class EvmTx:
    hash: str
    log_index: Optional[int] = None


@dataclass(frozen=True)
class IcpTx:
    block_index: int
    ledger: str


Tx = Union[EvmTx, IcpTx]


@dataclass(frozen=True, order=True)
class TransferId:
    id: int


@dataclass(frozen=True)
class EvmAccount:
    address: str


@dataclass(frozen=True)
class IcpAccountId:
    account_id: str


Account = Union[EvmAccount, IcrcAccount, IcpAccountId]


class TransferStatusKind(str, Enum):
    PENDING_SOURCE_TX = "PendingSourceTx"
    PENDING_DESTINATION_TX = "PendingDestinationTx"
    PENDING_REFUND_TX = "PendingRefundTx"
    SUCCEEDED = "Succeeded"
    REFUNDED = "Refunded"
    FAILED = "Failed"


@dataclass(frozen=True)
class TransferStatus:
    kind: TransferStatusKind
    error: Optional[str] = None
    refund_tx: Optional[Tx] = None


@dataclass(frozen=True)
class AssetInfo:
    chain: Optional[Chain]
    token: Optional[Token]
    account: Optional[Account]
    amount: int
    tx: Optional[Tx] = None


class TraceEvent(str, Enum):
    FETCH_TX = "FetchTx"
    SIGN_TX = "SignTx"
    SEND_TX = "SendTx"
    CONFIRM_TX = "ConfirmTx"
    PENDING_CONFIRM_TX = "PendingConfirmTx"


@dataclass(frozen=True)
class TraceEntry:
    chain: Optional[Chain]
    event: Optional[TraceEvent]
    ok: bool = True


@dataclass(frozen=True)
class Transfer:
    source: AssetInfo
    destination: AssetInfo
    status: Optional[TransferStatus] = None
    trace: List[TraceEntry] = field(default_factory=list)
    transfer_id: Optional[TransferId] = None


@dataclass(frozen=True)
class TransferAccepted:
    transfer_id: TransferId


@dataclass(frozen=True)
class TransferFailed:
    error: str


@dataclass(frozen=True)
class TransferFetching:
    block_height: int


TransferResponse = Union[TransferAccepted, TransferFailed, TransferFetching]


class ForwardingState(str, Enum):
    CHECKING_BALANCE = "CheckingBalance"
    LOW_BALANCE = "LowBalance"
    FORWARDING = "Forwarding"
    FORWARDED = "Forwarded"


@dataclass(frozen=True)
class ForwardingStatus:
    state: ForwardingState
    balance: int = 0
    min_amount: int = 0
    tx: Optional[EvmTx] = None


@dataclass(frozen=True)
class ForwardingResponse:
    done: Optional[TransferId] = None
    status: Optional[ForwardingStatus] = None


@dataclass(frozen=True)
class TransferFee:
    token: Token
    source_chain: Chain
    destination_chain: Chain
    min_amount: int
    max_amount: int
    available: Optional[int]
    latest_transfer_fee: int
    average_transfer_fee: int
    protocol_fee_in_percent: float
