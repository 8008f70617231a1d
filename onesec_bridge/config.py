"""Static bridge tables and environment-driven runtime settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from dotenv import load_dotenv

from .constants import DEFAULT_RECEIPT_TIMEOUT, INITIAL_POLL_DELAY_MS
from .errors import ConfigError
from .models import Chain, Deployment, OperatingMode, Token

# Environment keys
DEPLOYMENT_ENV = "ONESEC_DEPLOYMENT"
RPC_URL_ENV_TEMPLATE = "ONESEC_{chain}_RPC_URL"
EVM_PRIVATE_KEY_ENV = "ONESEC_EVM_PRIVATE_KEY"
PRIVATE_KEY_ENV = "PRIVATE_KEY"
GAS_LIMIT_ENV = "ONESEC_EVM_GAS_LIMIT"
GAS_PRICE_GWEI_ENV = "ONESEC_EVM_GAS_PRICE_GWEI"
ICP_POLL_DELAY_ENV = "ONESEC_ICP_POLL_DELAY_MS"
RECEIPT_TIMEOUT_ENV = "ONESEC_RECEIPT_TIMEOUT"


@dataclass(frozen=True)
class TokenConfig:
    """Per-token settings.

    ``erc20``, ``locker`` and ``ledger`` map lookup keys to addresses or
    canister ids. A key is ``"<Deployment><Chain>"``, ``"<Deployment>"`` or
    ``""`` for a value shared by every deployment.
    """

    mode: OperatingMode
    decimals: int
    ledger_fee: int
    erc20: Dict[str, str] = field(default_factory=dict)
    locker: Dict[str, str] = field(default_factory=dict)
    ledger: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EvmChainConfig:
    confirm_blocks: int
    block_time_ms: Dict[Deployment, int]


@dataclass(frozen=True)
class IcpConfig:
    hosts: Dict[Deployment, str]
    onesec: Dict[Deployment, str]
    forwarding_key_ids: Dict[Deployment, int]
    poll_delay_ms: Dict[Deployment, int]


@dataclass(frozen=True)
class Config:
    tokens: Dict[Token, TokenConfig]
    icp: IcpConfig
    evm: Dict[Chain, EvmChainConfig]


_TOKENS: Dict[Token, TokenConfig] = {
    Token.ICP: TokenConfig(
        mode=OperatingMode.MINTER,
        decimals=8,
        ledger_fee=10_000,
        erc20={
            "Mainnet": "0x00f3C42833C3170159af4E92dbb451Fb3F708917",
            "Local": "0x00f3C42833C3170159af4E92dbb451Fb3F708917",
            "Testnet": "0xa96496d9Ef442a3CF8F3e24B614b87a70ddf74f3",
        },
        ledger={"": "ryjl3-tyaaa-aaaaa-aaaba-cai"},
    ),
    Token.USDC: TokenConfig(
        mode=OperatingMode.LOCKER,
        decimals=6,
        ledger_fee=10_000,
        erc20={
            "MainnetBase": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
            "MainnetArbitrum": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
            "MainnetEthereum": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        },
        locker={
            "Mainnet": "0xAe2351B15cFf68b5863c6690dCA58Dce383bf45A",
            "Local": "0xAe2351B15cFf68b5863c6690dCA58Dce383bf45A",
            "Testnet": "0x38200DD4c3adbE86Be49717ccA8a3fD08466Cba6",
        },
        ledger={
            "Mainnet": "53nhb-haaaa-aaaar-qbn5q-cai",
            "Local": "53nhb-haaaa-aaaar-qbn5q-cai",
            "Testnet": "7csws-aiaaa-aaaar-qaqpa-cai",
        },
    ),
    Token.USDT: TokenConfig(
        mode=OperatingMode.LOCKER,
        decimals=6,
        ledger_fee=10_000,
        erc20={
            "MainnetEthereum": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
            "LocalEthereum": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
            "TestnetEthereum": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        },
        locker={
            "MainnetEthereum": "0xc5AC945a0af0768929301A27D6f2a7770995fAeb",
            "LocalEthereum": "0xc5AC945a0af0768929301A27D6f2a7770995fAeb",
            "TestnetEthereum": "0x205E3f1001bbE91971D25349ac3aA949D9Be5079",
        },
        ledger={
            "Mainnet": "ij33n-oiaaa-aaaar-qbooa-cai",
            "Local": "ij33n-oiaaa-aaaar-qbooa-cai",
            "Testnet": "n4dku-tiaaa-aaaar-qboqa-cai",
        },
    ),
    Token.CBBTC: TokenConfig(
        mode=OperatingMode.LOCKER,
        decimals=8,
        ledger_fee=20,
        erc20={"": "0xcbB7C0000aB88B473b1f5aFd9ef808440eed33Bf"},
        locker={
            "Mainnet": "0x7744c6a83E4b43921f27d3c94a742bf9cd24c062",
            "Local": "0x7744c6a83E4b43921f27d3c94a742bf9cd24c062",
            "Testnet": "0xd543007D8415169756e8a61b2cc079369d4aB6a8",
        },
        ledger={
            "Mainnet": "io25z-dqaaa-aaaar-qbooq-cai",
            "Local": "io25z-dqaaa-aaaar-qbooq-cai",
            "Testnet": "n3cma-6qaaa-aaaar-qboqq-cai",
        },
    ),
    Token.CKBTC: TokenConfig(
        mode=OperatingMode.MINTER,
        decimals=8,
        ledger_fee=10,
        erc20={
            "Mainnet": "0x919A41Ea07c26f0001859Bc5dcb8754068718Fb7",
            "Local": "0x919A41Ea07c26f0001859Bc5dcb8754068718Fb7",
            "Testnet": "0x9D8dE8E7Cd748F760C81199AD3b902798DA7E7bC",
        },
        ledger={"": "mxzaz-hqaaa-aaaar-qaada-cai"},
    ),
    Token.GLDT: TokenConfig(
        mode=OperatingMode.MINTER,
        decimals=8,
        ledger_fee=10_000_000,
        erc20={
            "Mainnet": "0x86856814e74456893Cfc8946BedcBb472b5fA856",
            "Local": "0x86856814e74456893Cfc8946BedcBb472b5fA856",
            "Testnet": "0xB5A497b709703eC987B6879f064B02017998De1d",
        },
        ledger={"": "6c7su-kiaaa-aaaar-qaira-cai"},
    ),
    Token.BOB: TokenConfig(
        mode=OperatingMode.MINTER,
        decimals=8,
        ledger_fee=1_000_000,
        erc20={
            "Mainnet": "0xecc5f868AdD75F4ff9FD00bbBDE12C35BA2C9C89",
            "Local": "0xecc5f868AdD75F4ff9FD00bbBDE12C35BA2C9C89",
            "Testnet": "0xc6d02fa25bC437E38099476a6856225aE5ac2C75",
        },
        ledger={"": "7pail-xaaaa-aaaas-aabmq-cai"},
    ),
}

DEFAULT_CONFIG = Config(
    tokens=_TOKENS,
    icp=IcpConfig(
        hosts={
            Deployment.MAINNET: "https://ic0.app",
            Deployment.TESTNET: "https://ic0.app",
            Deployment.LOCAL: "http://127.0.0.1:8080",
        },
        onesec={
            Deployment.MAINNET: "5okwm-giaaa-aaaar-qbn6a-cai",
            Deployment.TESTNET: "zvjow-lyaaa-aaaar-qap7q-cai",
            Deployment.LOCAL: "5okwm-giaaa-aaaar-qbn6a-cai",
        },
        forwarding_key_ids={
            Deployment.MAINNET: 0,
            Deployment.TESTNET: 1,
            Deployment.LOCAL: 2,
        },
        poll_delay_ms={
            Deployment.MAINNET: INITIAL_POLL_DELAY_MS,
            Deployment.TESTNET: INITIAL_POLL_DELAY_MS,
            Deployment.LOCAL: 100,
        },
    ),
    evm={
        Chain.ARBITRUM: EvmChainConfig(
            confirm_blocks=96,
            block_time_ms={Deployment.MAINNET: 240, Deployment.TESTNET: 240, Deployment.LOCAL: 10},
        ),
        Chain.BASE: EvmChainConfig(
            confirm_blocks=12,
            block_time_ms={Deployment.MAINNET: 1_900, Deployment.TESTNET: 1_900, Deployment.LOCAL: 10},
        ),
        Chain.ETHEREUM: EvmChainConfig(
            confirm_blocks=4,
            block_time_ms={Deployment.MAINNET: 12_000, Deployment.TESTNET: 12_000, Deployment.LOCAL: 10},
        ),
    },
)


def _lookup(table: Dict[str, str], deployment: Deployment, chain: Optional[Chain] = None) -> Optional[str]:
    keys: List[str] = []
    if chain is not None:
        keys.append(f"{deployment.value}{chain.value}")
    keys.append(deployment.value)
    keys.append("")
    for key in keys:
        value = table.get(key)
        if value is not None:
            return value
    return None


def token_config(config: Config, token: Union[Token, str]) -> TokenConfig:
    try:
        return config.tokens[Token(token)]
    except (KeyError, ValueError) as exc:
        raise ConfigError(f"Token {token} is not configured.") from exc


def evm_chain_config(config: Config, chain: Chain) -> EvmChainConfig:
    try:
        return config.evm[chain]
    except KeyError as exc:
        raise ConfigError(f"EVM chain {chain.value} is not configured.") from exc


def operating_mode(config: Config, token: Token) -> OperatingMode:
    return token_config(config, token).mode


def get_token_erc20_address(config: Config, token: Token, deployment: Deployment, chain: Chain) -> Optional[str]:
    return _lookup(token_config(config, token).erc20, deployment, chain)


def get_token_locker_address(config: Config, token: Token, deployment: Deployment, chain: Chain) -> Optional[str]:
    cfg = token_config(config, token)
    if cfg.mode is not OperatingMode.LOCKER:
        return None
    return _lookup(cfg.locker, deployment, chain)


def get_token_ledger_canister(config: Config, token: Token, deployment: Deployment) -> Optional[str]:
    return _lookup(token_config(config, token).ledger, deployment)


def get_onesec_canister(config: Config, deployment: Deployment) -> str:
    canister = config.icp.onesec.get(deployment)
    if not canister:
        raise ConfigError(f"OneSec canister is not configured for {deployment.value}.")
    return canister


def get_icp_host(config: Config, deployment: Deployment) -> str:
    host = config.icp.hosts.get(deployment)
    if not host:
        raise ConfigError(f"ICP host is not configured for {deployment.value}.")
    return host


def get_forwarding_key_id(config: Config, deployment: Deployment) -> int:
    try:
        return config.icp.forwarding_key_ids[deployment]
    except KeyError as exc:
        raise ConfigError(f"Forwarding key id is not configured for {deployment.value}.") from exc


def get_icp_poll_delay_ms(config: Config, deployment: Deployment) -> int:
    return config.icp.poll_delay_ms.get(deployment, INITIAL_POLL_DELAY_MS)


def get_confirm_blocks(config: Config, chain: Chain, deployment: Deployment) -> Tuple[int, int]:
    """Return ``(block_count, block_time_ms)`` for ``chain``."""
    cfg = evm_chain_config(config, chain)
    block_time = cfg.block_time_ms.get(deployment)
    if block_time is None:
        raise ConfigError(f"Block time for {chain.value} is not configured for {deployment.value}.")
    return cfg.confirm_blocks, block_time


@dataclass
class BridgeSettings:
    deployment: Deployment
    rpc_urls: Dict[Chain, str]
    private_key: Optional[str]
    gas_limit: Optional[int]
    gas_price_wei: Optional[int]
    icp_poll_delay_ms: Optional[int]
    receipt_timeout: int

    def rpc_url(self, chain: Chain) -> str:
        url = self.rpc_urls.get(chain)
        if not url:
            raise ConfigError(f"Set {RPC_URL_ENV_TEMPLATE.format(chain=chain.value.upper())} to bridge on {chain.value}.")
        return url


def _parse_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value, 0)
    except ValueError:
        return None


def _parse_gas_price(gwei_value: Optional[str]) -> Optional[int]:
    if not gwei_value:
        return None
    try:
        decimal_value = Decimal(gwei_value)
        return int(decimal_value * Decimal(1_000_000_000))
    except (InvalidOperation, ValueError):
        return None


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Tuple[Optional[BridgeSettings], Optional[str]]:
    """Read runtime settings from the environment (and ``env_file`` when given).

    Returns ``(settings, None)`` on success or ``(None, message)`` describing
    what needs fixing.
    """
    if env_file is not None:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    raw_deployment = os.getenv(DEPLOYMENT_ENV) or Deployment.MAINNET.value
    try:
        deployment = Deployment(raw_deployment)
    except ValueError:
        options = ", ".join(d.value for d in Deployment)
        return None, f"`{DEPLOYMENT_ENV}` must be one of {options}, got `{raw_deployment}`"

    rpc_urls: Dict[Chain, str] = {}
    for chain in (Chain.BASE, Chain.ARBITRUM, Chain.ETHEREUM):
        url = os.getenv(RPC_URL_ENV_TEMPLATE.format(chain=chain.value.upper()))
        if url:
            rpc_urls[chain] = url

    poll_delay = _parse_int(os.getenv(ICP_POLL_DELAY_ENV))
    if poll_delay is not None and poll_delay <= 0:
        return None, f"`{ICP_POLL_DELAY_ENV}` must be a positive number of milliseconds"

    return (
        BridgeSettings(
            deployment=deployment,
            rpc_urls=rpc_urls,
            private_key=os.getenv(EVM_PRIVATE_KEY_ENV) or os.getenv(PRIVATE_KEY_ENV),
            gas_limit=_parse_int(os.getenv(GAS_LIMIT_ENV)),
            gas_price_wei=_parse_gas_price(os.getenv(GAS_PRICE_GWEI_ENV)),
            icp_poll_delay_ms=poll_delay,
            receipt_timeout=_parse_int(os.getenv(RECEIPT_TIMEOUT_ENV)) or DEFAULT_RECEIPT_TIMEOUT,
        ),
        None,
    )
