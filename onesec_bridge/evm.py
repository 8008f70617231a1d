"""web3 helpers for the EVM side of a bridge transfer."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_account import Account
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import TimeExhausted, Web3Exception

try:  # Web3 <=6
    from web3.middleware import geth_poa_middleware  # type: ignore[attr-defined]
except ImportError:  # Web3 >=7
    from web3.middleware import ExtraDataToPOAMiddleware as geth_poa_middleware  # type: ignore[no-redef]

from .config import (
    DEFAULT_CONFIG,
    BridgeSettings,
    Config,
    get_token_erc20_address,
    get_token_locker_address,
    operating_mode,
)
from .constants import DEFAULT_GAS_FALLBACK, DEFAULT_RECEIPT_TIMEOUT
from .errors import BridgeError, ConfigError
from .logging_utils import get_bridge_logger
from .models import Chain, Deployment, OperatingMode, Token
from .remote import EvmReceipt, SignedEvmTx
from .utils import normalise_tx_hash

logger = get_bridge_logger()

ERC20 = "erc20"
LOCKER = "locker"

ERROR_STRING_SELECTOR = "08c379a0"
PANIC_SELECTOR = "4e487b71"

# Node replies meaning a re-sent transaction is already in the pool or mined
RESUBMIT_MARKERS = ("already known", "nonce too low", "known transaction")

ERC20_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [
            {"internalType": "address", "name": "owner", "type": "address"},
            {"internalType": "address", "name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "spender", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

MINTER_ABI: List[Dict[str, Any]] = ERC20_ABI + [
    {
        "inputs": [
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "bytes32", "name": "data1", "type": "bytes32"},
        ],
        "name": "burn1",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "bytes32", "name": "data1", "type": "bytes32"},
            {"internalType": "bytes32", "name": "data2", "type": "bytes32"},
        ],
        "name": "burn2",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

LOCKER_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "bytes32", "name": "data1", "type": "bytes32"},
        ],
        "name": "lock1",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "bytes32", "name": "data1", "type": "bytes32"},
            {"internalType": "bytes32", "name": "data2", "type": "bytes32"},
        ],
        "name": "lock2",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def init_web3(rpc_url: str, label: str) -> Web3:
    if not rpc_url:
        raise ConfigError(f"{label} RPC URL is not configured.")
    try:
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        w3.middleware_onion.inject(geth_poa_middleware, layer=0)
        _ = w3.eth.chain_id  # probe connectivity
        return w3
    except Exception as exc:
        raise BridgeError(f"Unable to connect to {label} RPC: {exc}") from exc


def load_contract(w3: Web3, address: str, abi: List[Dict[str, Any]], label: str) -> Contract:
    if not Web3.is_address(address):
        raise ConfigError(f"{label} contract address is invalid: {address}")
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)


def apply_gas_values(w3: Web3, tx: Dict[str, Any], gas_limit: Optional[int], gas_price_wei: Optional[int]) -> None:
    tx.setdefault("value", 0)
    if gas_limit is not None:
        tx["gas"] = gas_limit
    if "gas" not in tx:
        try:
            estimate = w3.eth.estimate_gas(tx)
            tx["gas"] = int(estimate * 12 // 10)
        except Web3Exception:
            tx["gas"] = DEFAULT_GAS_FALLBACK
    if gas_price_wei is not None:
        tx["gasPrice"] = gas_price_wei
        # Legacy pricing is inferred from gasPrice; EIP-1559 fields and type must go
        tx.pop("maxFeePerGas", None)
        tx.pop("maxPriorityFeePerGas", None)
        tx.pop("type", None)
    elif "maxFeePerGas" not in tx and "gasPrice" not in tx:
        tx["gasPrice"] = w3.eth.gas_price
        tx.pop("type", None)


def decode_revert_data(data_hex: Optional[str]) -> Optional[str]:
    """Decode ``Error(string)`` and ``Panic(uint256)`` revert payloads."""
    if not data_hex or not data_hex.startswith(("0x", "0X")):
        return None
    try:
        data = bytes.fromhex(data_hex[2:])
    except ValueError:
        return None
    if len(data) < 4:
        return None
    selector = data[:4].hex()
    try:
        if selector == ERROR_STRING_SELECTOR:
            (message,) = abi_decode(["string"], data[4:])
            return str(message)
        if selector == PANIC_SELECTOR:
            (code,) = abi_decode(["uint256"], data[4:])
            return f"Panic(0x{code:02x})"
    except DecodingError:
        return f"malformed revert data for selector 0x{selector}"
    return f"custom error 0x{selector}"


def extract_revert_reason(w3: Web3, tx: Dict[str, Any], block_number: Optional[int]) -> Optional[str]:
    """Replay ``tx`` as a call at ``block_number`` and return the revert reason."""
    if block_number is None:
        return None
    call_tx = dict(tx)
    for key in ("nonce", "gas", "gasPrice", "maxFeePerGas", "maxPriorityFeePerGas", "type", "chainId"):
        call_tx.pop(key, None)
    try:
        w3.eth.call(call_tx, block_identifier=block_number)
    except Web3Exception as exc:
        data_hex = getattr(exc, "data", None)
        if not isinstance(data_hex, str) and exc.args and isinstance(exc.args[0], dict):
            data_hex = exc.args[0].get("data")
        decoded = decode_revert_data(data_hex) if isinstance(data_hex, str) else None
        if decoded:
            return decoded
        message = str(exc)
        if "execution reverted:" in message:
            return message.split("execution reverted:", 1)[1].strip()
        return message or None
    return None


class Web3EvmGateway:
    """Signs and submits bridge transactions for one token on one EVM chain."""

    def __init__(
        self,
        w3: Web3,
        private_key: str,
        contracts: Dict[str, Contract],
        *,
        gas_limit: Optional[int] = None,
        gas_price_wei: Optional[int] = None,
        receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT,
    ):
        if not private_key:
            raise ConfigError("EVM private key is not configured.")
        try:
            self._account = Account.from_key(private_key)
        except ValueError as exc:
            raise ConfigError("EVM private key could not be parsed.") from exc
        self._w3 = w3
        self._contracts = contracts
        self._gas_limit = gas_limit
        self._gas_price_wei = gas_price_wei
        self._receipt_timeout = receipt_timeout
        self._sent: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def for_token(
        cls,
        settings: BridgeSettings,
        chain: Chain,
        token: Token,
        *,
        config: Config = DEFAULT_CONFIG,
        deployment: Optional[Deployment] = None,
    ) -> "Web3EvmGateway":
        deployment = deployment or settings.deployment
        w3 = init_web3(settings.rpc_url(chain), chain.value)
        mode = operating_mode(config, token)
        erc20_address = get_token_erc20_address(config, token, deployment, chain)
        if not erc20_address:
            raise ConfigError(f"No ERC-20 contract for {token.value} on {chain.value} ({deployment.value}).")
        contracts = {
            ERC20: load_contract(w3, erc20_address, MINTER_ABI if mode is OperatingMode.MINTER else ERC20_ABI, ERC20),
        }
        if mode is OperatingMode.LOCKER:
            locker_address = get_token_locker_address(config, token, deployment, chain)
            if not locker_address:
                raise ConfigError(f"No locker contract for {token.value} on {chain.value} ({deployment.value}).")
            contracts[LOCKER] = load_contract(w3, locker_address, LOCKER_ABI, LOCKER)
        return cls(
            w3,
            settings.private_key or "",
            contracts,
            gas_limit=settings.gas_limit,
            gas_price_wei=settings.gas_price_wei,
            receipt_timeout=settings.receipt_timeout,
        )

    @property
    def address(self) -> str:
        return self._account.address

    def _contract(self, contract: str) -> Contract:
        try:
            return self._contracts[contract]
        except KeyError as exc:
            raise ConfigError(f"Contract {contract!r} is not available for this token.") from exc

    def contract_address(self, contract: str) -> str:
        return self._contract(contract).address

    def call(self, contract: str, function: str, args: Sequence[Any]) -> Any:
        fn = getattr(self._contract(contract).functions, function)(*args)
        return fn.call()

    def sign(self, contract: str, function: str, args: Sequence[Any]) -> SignedEvmTx:
        fn = getattr(self._contract(contract).functions, function)(*args)
        try:
            nonce = self._w3.eth.get_transaction_count(self.address, "pending")
        except Web3Exception:
            nonce = self._w3.eth.get_transaction_count(self.address)
        tx = fn.build_transaction(
            {
                "from": self.address,
                "nonce": nonce,
                "chainId": self._w3.eth.chain_id,
                "value": 0,
            }
        )
        apply_gas_values(self._w3, tx, self._gas_limit, self._gas_price_wei)

        signed = self._account.sign_transaction(tx)
        raw_tx = getattr(signed, "raw_transaction", None)
        if raw_tx is None:
            raw_tx = getattr(signed, "rawTransaction", None)
        if raw_tx is None:
            raise BridgeError("Signed transaction missing raw_transaction/rawTransaction")
        tx_hash = normalise_tx_hash(Web3.keccak(raw_tx).hex())
        self._sent[tx_hash] = tx
        logger.info("Signed %s.%s as tx %s (nonce %s)", contract, function, tx_hash, nonce)
        return SignedEvmTx(tx_hash=tx_hash, raw=bytes(raw_tx))

    def broadcast(self, signed: SignedEvmTx) -> str:
        try:
            self._w3.eth.send_raw_transaction(signed.raw)
        except (Web3Exception, ValueError) as exc:
            message = str(exc).lower()
            if not any(marker in message for marker in RESUBMIT_MARKERS):
                raise
            logger.info("Tx %s was already submitted: %s", signed.tx_hash, exc)
        else:
            logger.info("Broadcast tx %s", signed.tx_hash)
        return signed.tx_hash

    def wait_for_receipt(self, tx_hash: str) -> Optional[EvmReceipt]:
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        except TimeExhausted:
            return None
        status = int(receipt.get("status", 0))
        block_number = receipt.get("blockNumber")
        sent = self._sent.pop(tx_hash, None)
        reason = None
        if status != 1 and sent is not None:
            reason = extract_revert_reason(self._w3, sent, block_number)
        return EvmReceipt(tx_hash=tx_hash, status=status, block_number=block_number, revert_reason=reason)
