from __future__ import annotations

from decimal import Context, Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Optional, Tuple, Union

from .constants import (
    ACCOUNT_WORD_LENGTH,
    EVM_TX_EXPLORER_TEMPLATES,
    ICRC_ACCOUNT_TAG,
)
from .errors import BridgeError
from .models import Amount, Chain, EvmAccount, EvmTx, IcpAccountId, IcpTx, Tx
from .principal import IcrcAccount, Principal

# Wide enough for uint256 values at any decimal scale the tokens use.
_EXACT = Context(prec=200)
_DISPLAY_PLACES = Decimal("0.000001")

TokenInput = Union[Decimal, int, float, str]


def amount_from_units(units: int, decimals: int) -> Amount:
    if units < 0:
        raise BridgeError("Amount must not be negative.")
    return Amount(in_units=int(units), in_tokens=Decimal(int(units)).scaleb(-decimals, context=_EXACT))


def amount_from_tokens(tokens: TokenInput, decimals: int) -> Amount:
    """Build an amount from a human token value, truncating extra precision."""
    try:
        value = tokens if isinstance(tokens, Decimal) else Decimal(str(tokens))
    except (InvalidOperation, ValueError) as exc:
        raise BridgeError("Amount must be a numeric value.") from exc
    if not value.is_finite() or value < 0:
        raise BridgeError("Amount must be a non-negative number.")
    units = int(value.scaleb(decimals, context=_EXACT).to_integral_value(rounding=ROUND_DOWN))
    return amount_from_units(units, decimals)


def format_amount(units: int, decimals: int) -> str:
    """Render ``units`` with at most six fractional digits and no trailing zeros."""
    tokens = Decimal(units).scaleb(-decimals, context=_EXACT).quantize(
        _DISPLAY_PLACES, rounding=ROUND_HALF_UP, context=_EXACT
    )
    text = f"{tokens:f}"
    whole, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0") or "0"
    return f"{whole}.{fraction}"


def encode_principal(principal: Principal) -> bytes:
    """Encode a principal as one 32-byte word: tag, length, bytes, zero padding."""
    raw = principal.raw
    word = bytes([ICRC_ACCOUNT_TAG, len(raw)]) + raw
    return word.ljust(ACCOUNT_WORD_LENGTH, b"\x00")


def encode_icrc_account(account: IcrcAccount) -> Tuple[bytes, Optional[bytes]]:
    """Return the account as one or two 32-byte words for EVM call data."""
    word1 = encode_principal(account.owner)
    if account.subaccount is not None:
        return word1, bytes(account.subaccount)
    return word1, None


def format_icp_account(account: IcrcAccount) -> str:
    if account.has_default_subaccount():
        return account.owner.to_text()
    return f"{account.owner.to_text()} / {account.subaccount.hex()}"


def format_account(account: object) -> str:
    if isinstance(account, IcrcAccount):
        return format_icp_account(account)
    if isinstance(account, EvmAccount):
        return account.address
    if isinstance(account, IcpAccountId):
        return account.account_id
    return ""


def format_tx(tx: Optional[Tx]) -> str:
    if tx is None:
        return ""
    if isinstance(tx, IcpTx):
        return f"block index {tx.block_index} on ledger {tx.ledger}"
    return f"transaction hash {tx.hash}"


def normalise_tx_hash(tx_hash: str) -> str:
    cleaned = tx_hash.strip()
    if not cleaned:
        raise BridgeError("Transaction hash is empty.")
    if not cleaned.startswith(("0x", "0X")):
        cleaned = f"0x{cleaned}"
    return cleaned.lower()


def evm_explorer_url(chain: Chain, tx_hash: str) -> Optional[str]:
    template = EVM_TX_EXPLORER_TEMPLATES.get(chain.value)
    if template is None:
        return None
    return template.format(tx_hash=tx_hash)


def explorer_link(chain: Optional[Chain], tx: Optional[Tx]) -> Optional[str]:
    if chain is None or not chain.is_evm or not isinstance(tx, EvmTx):
        return None
    return evm_explorer_url(chain, tx.hash)
